"""Patch many call sites of one file from 8 threads without losing a write."""

import pathlib
import tempfile
from concurrent.futures import ThreadPoolExecutor

from snapassert import PatchOutcome, apply_patch_to_file

test_file = pathlib.Path(tempfile.mkdtemp()) / "test_squares.py"
test_file.write_text("".join(f"snap_assert({i} * {i})\n" for i in range(100)))

with ThreadPoolExecutor(max_workers=8) as ex:
    outcomes = list(ex.map(lambda i: apply_patch_to_file(test_file, i + 1, i * i), range(100)))

print(f"Patched {outcomes.count(PatchOutcome.PATCHED)} of {len(outcomes)} call sites")
print(test_file.read_text().splitlines()[-1])
