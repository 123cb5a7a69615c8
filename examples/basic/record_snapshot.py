"""Record a snapshot, then check it — one file, two runs."""

import pathlib
import runpy
import tempfile

test_file = pathlib.Path(tempfile.mkdtemp()) / "test_upper.py"
test_file.write_text('from snapassert import snap_assert\n\nsnap_assert("hello".upper())\n')

runpy.run_path(str(test_file))  # first run fills in the value
print(test_file.read_text())

runpy.run_path(str(test_file))  # second run is an ordinary assertion
