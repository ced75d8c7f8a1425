import sys
import gzip
import pathlib
import tempfile
import pytest

# Ensure project src/ is on sys.path for imports when running tests locally
PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / 'src'
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from msstats_kit.files import open_text, open_output


def test_open_text_regular():
    """Opening a plain text file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        p = pathlib.Path(tmpdir) / 'sim.ms'
        p.write_text("ms 2 1\n")
        with open_text(str(p)) as fh:
            assert fh.readline() == "ms 2 1\n"


def test_open_text_gzipped():
    """Opening a gzipped file decompresses transparently."""
    with tempfile.TemporaryDirectory() as tmpdir:
        p = pathlib.Path(tmpdir) / 'sim.ms.gz'
        with gzip.open(p, 'wt') as fh:
            fh.write("ms 2 1\n")
        with open_text(str(p)) as fh:
            assert fh.readline() == "ms 2 1\n"


def test_open_text_stdin():
    assert open_text('-') is sys.stdin


def test_open_text_missing():
    with pytest.raises(RuntimeError, match="Input not found"):
        open_text('/nonexistent/sim.ms')


def test_open_output_creates_parent():
    with tempfile.TemporaryDirectory() as tmpdir:
        p = pathlib.Path(tmpdir) / 'nested' / 'dir' / 'out.tsv'
        with open_output(str(p)) as fh:
            fh.write("x\n")
        assert p.read_text() == "x\n"


def test_open_output_stdout():
    assert open_output('-') is sys.stdout
