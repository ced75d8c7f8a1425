import sys
import io
import pathlib
import pytest
import numpy as np

# Ensure project src/ is on sys.path for imports when running tests locally
PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / 'src'
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from msstats_kit.matrix import HaplotypeMatrix
from msstats_kit.msformat import MsReader, MsFormatError
from msstats_kit.pipeline import (
    COLUMNS, ConfigError, PipelineConfig, ReplicateSummary,
    run_pipeline, summarize_round, summarize_replicate, header_line
)

THREE = "ms 3 1 -t 1.0\n1 2 3\n\n//\nsegsites: 2\npositions: 0.1 0.2\n00\n01\n10\n"

MULTI = """ms 6 3 -t 4.0
11 22 33

//
segsites: 4
positions: 0.1 0.2 0.3 0.4
0011
0101
1100
0011
1111
0000

//
segsites: 0

//
segsites: 3
positions: 0.2 0.5 0.7
001
010
100
011
101
110
"""


def _run(text, config):
    out = io.StringIO()
    n = run_pipeline(MsReader(io.StringIO(text)), out, config)
    return n, out.getvalue().splitlines()


def test_validate_defaults_to_full_sample():
    """No subsample size (or 0) means every individual."""
    assert PipelineConfig().validate(10).subsample_size == 10
    assert PipelineConfig(subsample_size=0).validate(10).subsample_size == 10
    assert PipelineConfig(subsample_size=4).validate(10).subsample_size == 4


@pytest.mark.parametrize("kwargs", [
    {"subsample_size": 11},
    {"subsample_size": -1},
    {"n_permutations": 0},
    {"min_count": -1},
    {"workers": 0},
])
def test_validate_errors(kwargs):
    with pytest.raises(ConfigError):
        PipelineConfig(**kwargs).validate(10)


def test_end_to_end_single_replicate():
    """Rows 00,01,10 with q=3, p=1."""
    n, lines = _run(THREE, PipelineConfig(subsample_size=3, n_permutations=1, seed=1))
    assert n == 1
    assert len(lines) == 2
    assert lines[0].split('\t') == list(COLUMNS)
    row = dict(zip(COLUMNS, lines[1].split('\t')))
    assert row['S'] == '2'
    assert row['min_d'] == '1'
    assert row['thetaW'] == '1.33333'
    assert row['Rmin'] == '0'
    # all-zero haplotype present: H - S - 1 = 3 - 2 - 1
    assert row['rmmg'] == '0'
    assert row['nhaps'] == '3'
    assert row['zns'] == '0.25'


def test_permutation_rows():
    """p rounds give p rows per replicate."""
    n, lines = _run(THREE, PipelineConfig(n_permutations=5))
    assert n == 5
    assert len(lines) == 6


def test_rows_follow_replicate_order():
    """Three replicates x two rounds; the empty replicate sits in the middle."""
    n, lines = _run(MULTI, PipelineConfig(n_permutations=2, seed=7))
    assert n == 6
    rows = [l.split('\t') for l in lines[1:]]
    assert [r[0] for r in rows[2:4]] == ['0', '0']
    for r in rows[2:4]:
        assert r[1] == 'nan'
        assert r[4] == 'NAN'
        assert r[11] == 'nan'
    # full-sample rounds only reorder rows, so the statistics match
    assert rows[0] == rows[1]
    assert rows[4] == rows[5]


def test_subsample_rounds_are_resampled():
    """Subsampled rounds vary across rounds."""
    _, lines = _run(MULTI, PipelineConfig(subsample_size=2, n_permutations=30, seed=3))
    first = {l for l in lines[1:31]}
    assert len(first) > 1


def test_subsample_never_exceeds_source_sites():
    """A subsample cannot have more segregating sites than the replicate."""
    _, lines = _run(MULTI, PipelineConfig(subsample_size=3, n_permutations=20, seed=11))
    segs = [int(l.split('\t')[0]) for l in lines[1:]]
    assert all(s <= 4 for s in segs[:20])
    assert all(s == 0 for s in segs[20:40])
    assert all(s <= 3 for s in segs[40:])


def test_seed_is_reproducible():
    cfg = PipelineConfig(subsample_size=3, n_permutations=4, seed=42)
    assert _run(MULTI, cfg) == _run(MULTI, cfg)


def test_workers_match_sequential():
    """Parallel runs keep input order and, seeded, give identical rows."""
    seq = _run(MULTI, PipelineConfig(subsample_size=4, n_permutations=3, seed=5))
    par = _run(MULTI, PipelineConfig(subsample_size=4, n_permutations=3, seed=5, workers=2))
    assert seq == par


def test_oversized_subsample_writes_nothing():
    """Configuration errors surface before the header is written."""
    out = io.StringIO()
    with pytest.raises(ConfigError, match="greater than number of simulated sequences"):
        run_pipeline(MsReader(io.StringIO(THREE)), out, PipelineConfig(subsample_size=4))
    assert out.getvalue() == ""


def test_corrupt_replicate_is_fatal():
    """A malformed block raises instead of being skipped."""
    text = THREE + "\n//\nsegsites: 2\npositions: 0.1 0.2\n00\n"
    with pytest.raises(MsFormatError):
        _run(text, PipelineConfig())


def test_summarize_round_no_sites_after_subsample():
    """Drawing identical individuals leaves no segregating sites."""
    m = HaplotypeMatrix.from_strings(["01", "01", "01"])
    s = summarize_round(m, 2, np.random.default_rng(0))
    assert s.segsites == 0
    assert s.min_d is None
    assert s.rmin is None
    assert s.zns is None
    assert s.nhaps == 1
    fields = s.fields()
    assert fields[1] == 'nan' and fields[4] == 'NAN' and fields[11] == 'nan'


def test_summarize_replicate_count():
    m = HaplotypeMatrix.from_strings(["001", "010", "100", "111"])
    cfg = PipelineConfig(subsample_size=3, n_permutations=4).validate(4)
    rounds = summarize_replicate(m, cfg, np.random.default_rng(9))
    assert len(rounds) == 4
    assert all(isinstance(r, ReplicateSummary) for r in rounds)


def test_summary_formatting():
    """Floats use %g, undefined values their own literals, negatives stay negative."""
    s = ReplicateSummary(
        segsites=3, min_d=None, theta_w=1.0 / 3.0, theta_pi=2.0, rmin=None,
        rm_mg=-2, nhaps=2, hapdiv=float('nan'), walls_b=0.5, walls_q=0.25,
        hudsons_c=float('inf'), zns=None,
    )
    assert s.to_line() == "3\tnan\t0.333333\t2\tNAN\t-2\t2\tnan\t0.5\t0.25\tinf\tnan"
    assert header_line().count('\t') == len(COLUMNS) - 1


GOOD_BLOCK = "\n//\nsegsites: 2\npositions: 0.1 0.2\n00\n01\n10\n11\n"
BAD_BLOCK = "\n//\nsegsites: 2\npositions: 0.1 0.2\n00\n01\n"


@pytest.mark.parametrize("workers", [1, 2])
def test_corrupt_block_keeps_earlier_rows(workers):
    """Replicates before a malformed block are written for any worker count."""
    text = "ms 4 3\n1 2 3\n" + GOOD_BLOCK + GOOD_BLOCK + BAD_BLOCK
    out = io.StringIO()
    with pytest.raises(MsFormatError, match="replicate 3"):
        run_pipeline(MsReader(io.StringIO(text)), out, PipelineConfig(seed=1, workers=workers))
    lines = out.getvalue().splitlines()
    assert len(lines) == 3
    assert lines[1] == lines[2]


def test_corrupt_block_same_rows_sequential_and_parallel():
    text = "ms 4 3\n1 2 3\n" + GOOD_BLOCK + GOOD_BLOCK + BAD_BLOCK
    outputs = []
    for workers in (1, 2):
        out = io.StringIO()
        with pytest.raises(MsFormatError):
            run_pipeline(MsReader(io.StringIO(text)), out, PipelineConfig(seed=1, workers=workers))
        outputs.append(out.getvalue())
    assert outputs[0] == outputs[1]


def test_replicate_count_mismatch_warns(caplog):
    """Fewer blocks than the header declares is logged, not fatal."""
    text = "ms 4 3\n1 2 3\n" + GOOD_BLOCK
    n, lines = _run(text, PipelineConfig(seed=1))
    assert n == 1
    assert "Header declares 3 replicates but 1 were read" in caplog.text


def test_replicate_count_match_does_not_warn(caplog):
    _run(THREE, PipelineConfig(seed=1))
    assert "Header declares" not in caplog.text
