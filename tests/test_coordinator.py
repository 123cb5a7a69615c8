"""Tests for snapassert.coordinator — locked read-patch-write cycles."""

import os
import stat
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

import pytest

from snapassert import (
    ArgumentOrder,
    EvaluationContext,
    LocatorMissError,
    LockTimeoutError,
    ParseError,
    PatchOutcome,
    SnapConfig,
    UnrenderableValueError,
    apply_patch_to_file,
    marker_names,
    path_lock,
    snap_config_context,
)
from snapassert import coordinator
from snapassert.coordinator import canonical_path, read_source, write_source

MARK = marker_names("mark", ())


class SomeError(Exception):
    pass


def _write(tmp_path: Path, text: str, name: str = "test_sample.py") -> Path:
    path = tmp_path / name
    path.write_bytes(text.encode())
    return path


def _assert_unlocked(path: Path) -> None:
    with path_lock(path, timeout=1.0):
        pass


@pytest.fixture
def no_writes(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*args: object, **kwargs: object) -> None:
        raise AssertionError("write_source must not be called")

    monkeypatch.setattr(coordinator, "write_source", fail)


# =========================================================================
# Scenarios
# =========================================================================


class TestApplyPatchToFile:
    """One cycle patches exactly the matched call."""

    def test_append_scenario(self, tmp_path: Path) -> None:
        lines = ["import x", "", "", "def test():", '    mark(upper("hi"))', "    other()"]
        path = _write(tmp_path, "\n".join(lines) + "\n")

        outcome = apply_patch_to_file(path, 5, "HI", names=MARK)

        assert outcome is PatchOutcome.PATCHED
        new_lines = path.read_text().split("\n")
        assert new_lines[4] == "    mark(upper(\"hi\"), 'HI')"
        assert new_lines[:4] + new_lines[5:] == lines[:4] + lines[5:] + [""]

    def test_prepend_scenario(self, tmp_path: Path) -> None:
        lines = [f"# {n}" for n in range(1, 9)] + ["mark_raise(fn)"]
        path = _write(tmp_path, "\n".join(lines) + "\n")

        apply_patch_to_file(
            path,
            9,
            SomeError,
            ArgumentOrder.PREPEND,
            names=marker_names("mark_raise", ()),
            namespace={"SomeError": SomeError},
        )

        assert path.read_text().splitlines()[8] == "mark_raise(SomeError, fn)"

    def test_no_call_on_line(self, tmp_path: Path, no_writes: None) -> None:
        source = "".join(f"mark(v{n})\n" for n in range(1, 12)) + "\n"
        path = _write(tmp_path, source)

        assert apply_patch_to_file(path, 12, 1, names=MARK) is PatchOutcome.LOCATOR_MISS
        assert path.read_text() == source

    def test_already_patched_call_is_not_written(self, tmp_path: Path, no_writes: None) -> None:
        path = _write(tmp_path, "snap_assert(x, 1)\n")
        assert apply_patch_to_file(path, 1, 1) is PatchOutcome.LOCATOR_MISS

    def test_default_names_follow_order(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "snap_assert(a)\nsnapassert.snap_assert_raise(fn)\nsnap_assert_raise(g)\n",
        )
        assert apply_patch_to_file(path, 1, 1) is PatchOutcome.PATCHED
        assert apply_patch_to_file(path, 2, KeyError, ArgumentOrder.PREPEND) is PatchOutcome.PATCHED
        # snap_assert_raise is not an APPEND marker.
        assert apply_patch_to_file(path, 3, 1) is PatchOutcome.LOCATOR_MISS
        assert path.read_text() == (
            "snap_assert(a, 1)\nsnapassert.snap_assert_raise(KeyError, fn)\nsnap_assert_raise(g)\n"
        )

    def test_configured_namespace(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "sa.snap_assert(a)\n")
        with snap_config_context(SnapConfig(namespaces=("sa",))):
            assert apply_patch_to_file(path, 1, [1]) is PatchOutcome.PATCHED
        assert path.read_text() == "sa.snap_assert(a, [1])\n"

    def test_second_pass_is_a_miss(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "snap_assert(a)\n")
        assert apply_patch_to_file(path, 1, 1) is PatchOutcome.PATCHED
        assert apply_patch_to_file(path, 1, 1) is PatchOutcome.LOCATOR_MISS
        assert path.read_text() == "snap_assert(a, 1)\n"

    def test_evaluation_context(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "snap_assert(a)\n")
        context = EvaluationContext(path=str(path), line=1, value={"k": 1})
        assert context.apply() is PatchOutcome.PATCHED
        assert path.read_text() == "snap_assert(a, {'k': 1})\n"


# =========================================================================
# Failures
# =========================================================================


class TestFailures:
    """Errors abort the cycle, leave the file alone and release the lock."""

    def test_strict_miss_raises(self, tmp_path: Path, no_writes: None) -> None:
        path = _write(tmp_path, "x = 1\n")
        with snap_config_context(SnapConfig(strict=True)):
            with pytest.raises(LocatorMissError) as exc_info:
                apply_patch_to_file(path, 1, 1)
        assert exc_info.value.line == 1
        _assert_unlocked(path)

    def test_parse_error(self, tmp_path: Path, no_writes: None) -> None:
        path = _write(tmp_path, "snap_assert(x\n")
        with pytest.raises(ParseError) as exc_info:
            apply_patch_to_file(path, 1, 1)
        assert exc_info.value.source_file == canonical_path(path)
        assert path.read_text() == "snap_assert(x\n"
        _assert_unlocked(path)

    def test_unrenderable_value(self, tmp_path: Path, no_writes: None) -> None:
        path = _write(tmp_path, "snap_assert(x)\n")
        with pytest.raises(UnrenderableValueError):
            apply_patch_to_file(path, 1, object())
        assert path.read_text() == "snap_assert(x)\n"
        _assert_unlocked(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "missing.py"
        with pytest.raises(FileNotFoundError):
            apply_patch_to_file(path, 1, 1)
        _assert_unlocked(path)

    def test_failed_write_keeps_original(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write(tmp_path, "snap_assert(x)\n")

        def broken_replace(src: str, dst: str) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(coordinator.os, "replace", broken_replace)
        with pytest.raises(OSError, match="disk full"):
            apply_patch_to_file(path, 1, 1)

        assert path.read_text() == "snap_assert(x)\n"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["test_sample.py"]
        _assert_unlocked(path)


# =========================================================================
# Reading and writing
# =========================================================================


class TestFileFidelity:
    """Bytes outside the patched call survive a cycle unchanged."""

    def test_crlf_line_endings(self, tmp_path: Path) -> None:
        path = tmp_path / "t.py"
        path.write_bytes(b"a = 1\r\nsnap_assert(a)\r\n# end\r\n")
        apply_patch_to_file(path, 2, 1)
        assert path.read_bytes() == b"a = 1\r\nsnap_assert(a, 1)\r\n# end\r\n"

    def test_latin1_cookie(self, tmp_path: Path) -> None:
        path = tmp_path / "t.py"
        path.write_bytes(b"# -*- coding: latin-1 -*-\nsnap_assert('\xe9')\n")
        apply_patch_to_file(path, 2, "\xe9")
        assert path.read_bytes() == b"# -*- coding: latin-1 -*-\nsnap_assert('\xe9', '\xe9')\n"

    def test_bom_kept(self, tmp_path: Path) -> None:
        path = tmp_path / "t.py"
        path.write_bytes(b"\xef\xbb\xbfsnap_assert(a)\n")
        apply_patch_to_file(path, 1, 1)
        assert path.read_bytes() == b"\xef\xbb\xbfsnap_assert(a, 1)\n"

    def test_permissions_kept(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "snap_assert(a)\n")
        path.chmod(0o640)
        apply_patch_to_file(path, 1, 1)
        assert stat.S_IMODE(path.stat().st_mode) == 0o640

    def test_no_temporary_files_left(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "snap_assert(a)\n")
        apply_patch_to_file(path, 1, 1)
        assert [p.name for p in tmp_path.iterdir()] == ["test_sample.py"]

    def test_write_then_read(self, tmp_path: Path) -> None:
        path = tmp_path / "t.py"
        write_source(path, "x = 'é'\r\n", "utf-8")
        assert read_source(path) == ("x = 'é'\r\n", "utf-8")

    def test_write_creates_missing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "new.py"
        write_source(path, "snap_assert(a)\n")
        assert path.read_bytes() == b"snap_assert(a)\n"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert [p.name for p in tmp_path.iterdir()] == ["new.py"]


# =========================================================================
# Locking
# =========================================================================


class TestPathLock:
    """One exclusive lock per file, whatever the spelling of its path."""

    def test_yields_canonical_path(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "")
        with path_lock(path) as key:
            assert key == os.path.realpath(path)

    def test_spellings_share_a_lock(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "")
        link = tmp_path / "link.py"
        link.symlink_to(path)
        dotted = tmp_path / "." / "test_sample.py"
        assert canonical_path(link) == canonical_path(path) == canonical_path(dotted)

    def test_timeout(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "snap_assert(a)\n")
        errors: list[BaseException] = []

        def contender() -> None:
            with snap_config_context(SnapConfig(lock_timeout=0.05)):
                try:
                    apply_patch_to_file(path, 1, 1)
                except LockTimeoutError as e:
                    errors.append(e)

        with path_lock(path):
            thread = threading.Thread(target=contender)
            thread.start()
            thread.join(timeout=5.0)

        assert len(errors) == 1
        assert path.read_text() == "snap_assert(a)\n"

    def test_waits_for_holder(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "snap_assert(a)\n")
        started = threading.Event()
        outcomes: list[PatchOutcome] = []

        def waiter() -> None:
            started.set()
            outcomes.append(apply_patch_to_file(path, 1, 1))

        with path_lock(path):
            thread = threading.Thread(target=waiter)
            thread.start()
            started.wait(timeout=5.0)
            # The holder rewrites the file; the waiter must see this version.
            path.write_text("x = 0\nsnap_assert(a)\n")

        thread.join(timeout=5.0)
        assert outcomes == [PatchOutcome.LOCATOR_MISS]
        assert path.read_text() == "x = 0\nsnap_assert(a)\n"

    def test_one_registry_entry_per_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "")
        link = tmp_path / "link.py"
        link.symlink_to(path)
        for spelling in (path, link, tmp_path / "." / "test_sample.py"):
            with path_lock(spelling):
                pass
        key = canonical_path(path)
        assert [k for k in coordinator._locks if k.startswith(str(tmp_path.resolve()))] == [key]

    def test_released_after_exception(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "")
        with pytest.raises(RuntimeError):
            with path_lock(path):
                raise RuntimeError("boom")
        _assert_unlocked(path)


class TestConcurrentPatching:
    """Concurrent cycles on one file never lose an update."""

    def test_all_patches_land(self, tmp_path: Path) -> None:
        count = 40
        source = "def test():\n" + "".join(f"    snap_assert(v{n})\n" for n in range(count))
        path = _write(tmp_path, source)

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [
                executor.submit(apply_patch_to_file, path, n + 2, n * n) for n in range(count)
            ]
            outcomes = [future.result() for future in as_completed(futures)]

        assert outcomes == [PatchOutcome.PATCHED] * count
        expected = "def test():\n" + "".join(f"    snap_assert(v{n}, {n * n})\n" for n in range(count))
        assert path.read_text() == expected

    def test_same_line_patched_once(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "snap_assert(a)\n")
        barrier = threading.Barrier(6)

        def patch() -> PatchOutcome:
            barrier.wait(timeout=5.0)
            return apply_patch_to_file(path, 1, 7)

        with ThreadPoolExecutor(max_workers=6) as executor:
            outcomes = list(executor.map(lambda _: patch(), range(6)))

        assert outcomes.count(PatchOutcome.PATCHED) == 1
        assert outcomes.count(PatchOutcome.LOCATOR_MISS) == 5
        assert path.read_text() == "snap_assert(a, 7)\n"
