"""
Shared test fixtures for baseplate split tests.
"""
import stat
import sys
from pathlib import Path

import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from baseplate_split.contracts import BaseplateConfig, ToothPatternSpec
from baseplate_split.partition import split_baseplate_for_printer


FAKE_OPENSCAD = """\
#!{python}
import os
import sys
import time

args = sys.argv[1:]
out_path = args[args.index("-o") + 1]
scad_path = args[-1]
mode = os.environ.get("FAKE_OPENSCAD_MODE", "ok")

log_path = os.environ.get("FAKE_OPENSCAD_LOG")
if log_path:
    with open(log_path, "a") as handle:
        handle.write(scad_path + "\\n")

if mode == "sleep":
    with open(out_path, "w") as handle:
        handle.write("partial")
    time.sleep(10)

if mode == "fail":
    with open(out_path, "w") as handle:
        handle.write("partial")
    sys.stderr.write("ERROR: Parser error in file\\n")
    sys.exit(1)

if mode == "noout":
    sys.exit(0)

with open(scad_path) as handle:
    source = handle.read()
with open(out_path, "w") as handle:
    handle.write("solid fake\\n")
    handle.write("// rendered %d bytes of scad\\n" % len(source))
    handle.write("endsolid fake\\n")
"""


@pytest.fixture
def default_config():
    """Defaults: 3x3 units, 42 mm grid, 220x220 bed, wineglass teeth."""
    return BaseplateConfig()


@pytest.fixture
def split_config():
    """An 8x3 baseplate that needs two segments on a 220x220 bed."""
    return BaseplateConfig(width=8, depth=3, split_enabled=True)


@pytest.fixture
def row_split():
    """13x3 units on a 220x220 bed: three segments in one row."""
    return split_baseplate_for_printer(13, 3, 220, 220, 42, True)


@pytest.fixture
def grid_split():
    """12x7 units on a 220x220 bed: 3x2 segments."""
    return split_baseplate_for_printer(12, 7, 220, 220, 42, True)


@pytest.fixture
def tooth_spec():
    return ToothPatternSpec()


@pytest.fixture
def fake_openscad(tmp_path: Path, monkeypatch) -> Path:
    """Executable standing in for openscad; behaviour set by FAKE_OPENSCAD_MODE."""
    script = tmp_path / "bin" / "openscad"
    script.parent.mkdir(parents=True, exist_ok=True)
    script.write_text(FAKE_OPENSCAD.format(python=sys.executable), encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    monkeypatch.setenv("FAKE_OPENSCAD_MODE", "ok")
    monkeypatch.delenv("OPENSCAD_PATH", raising=False)
    return script
