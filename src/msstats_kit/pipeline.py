from __future__ import annotations
import itertools
import logging
import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, replace
from typing import IO, List, Optional, Tuple

import numpy as np

from .ld import DEFAULT_MIN_COUNT, zns
from .matrix import HaplotypeMatrix
from .msformat import MsReader, MsFormatError
from .polystats import PolyStats
from .recomb import min_d, rm_mg
from .resample import sample

logger = logging.getLogger(__name__)

# Output columns, in emission order
COLUMNS = ('S', 'min_d', 'thetaW', 'ThetaPi', 'Rmin', 'rmmg', 'nhaps',
           'hapdiv', 'wallsb', 'wallsq', 'hudsonsc', 'zns')

# replicates handed to the process pool per worker at a time
BATCH_PER_WORKER = 8


class ConfigError(ValueError):
    """Invalid run configuration."""


@dataclass(frozen=True)
class PipelineConfig:
    """
    Run configuration.

    Attributes:
        subsample_size: Individuals drawn per round; None or 0 means the full sample
        n_permutations: Resampling rounds per replicate
        min_count: Minimum minor-allele count for a site to enter Zns
        seed: Seed for the resampling RNG; None draws fresh entropy
        workers: Processes used across replicates
    """
    subsample_size: Optional[int] = None
    n_permutations: int = 1
    min_count: int = DEFAULT_MIN_COUNT
    seed: Optional[int] = None
    workers: int = 1

    def validate(self, total_sample_size: int) -> PipelineConfig:
        """
        Check the configuration against the sample size declared by the input.

        Returns:
            Copy with ``subsample_size`` resolved to a concrete value

        Raises:
            ConfigError: On any invalid setting
        """
        k = self.subsample_size
        if k is None or k == 0:
            k = total_sample_size
        if k < 0:
            raise ConfigError(f"subsample size must be positive, got {k}")
        if k > total_sample_size:
            raise ConfigError(
                f"requested subsample size ({k}) greater than number of simulated sequences ({total_sample_size})")
        if self.n_permutations < 1:
            raise ConfigError(f"number of permutations must be at least 1, got {self.n_permutations}")
        if self.min_count < 0:
            raise ConfigError(f"minimum allele count must be non-negative, got {self.min_count}")
        if self.workers < 1:
            raise ConfigError(f"workers must be at least 1, got {self.workers}")
        return replace(self, subsample_size=k)


def _fmt(x: Optional[float], undefined: str = 'nan') -> str:
    if x is None:
        return undefined
    if isinstance(x, (int, np.integer)):
        return str(int(x))
    if math.isnan(x):
        return undefined
    return f"{x:g}"


@dataclass(frozen=True)
class ReplicateSummary:
    """One output row: the statistics of a single resampling round."""
    segsites: int
    min_d: Optional[int]
    theta_w: float
    theta_pi: float
    rmin: Optional[int]
    rm_mg: int
    nhaps: int
    hapdiv: float
    walls_b: float
    walls_q: float
    hudsons_c: float
    zns: Optional[float]

    def fields(self) -> List[str]:
        return [
            str(self.segsites),
            _fmt(self.min_d),
            _fmt(self.theta_w),
            _fmt(self.theta_pi),
            _fmt(self.rmin, undefined='NAN'),
            str(self.rm_mg),
            str(self.nhaps),
            _fmt(self.hapdiv),
            _fmt(self.walls_b),
            _fmt(self.walls_q),
            _fmt(self.hudsons_c),
            _fmt(self.zns),
        ]

    def to_line(self) -> str:
        return '\t'.join(self.fields())


def header_line() -> str:
    return '\t'.join(COLUMNS)


def summarize_round(matrix: HaplotypeMatrix, k: int, rng: np.random.Generator,
                    min_count: int = DEFAULT_MIN_COUNT) -> ReplicateSummary:
    """
    One resampling round: draw ``k`` individuals, drop invariant sites, compute every statistic.
    """
    sub = sample(matrix, k, rng)
    sub.remove_invariant_columns()
    P = PolyStats(sub)
    S = P.num_poly()
    nhaps = P.num_haplotypes()
    return ReplicateSummary(
        segsites=S,
        min_d=min_d(sub),
        theta_w=P.theta_w(),
        theta_pi=P.theta_pi(),
        rmin=P.minrec(),
        rm_mg=rm_mg(sub, S, nhaps),
        nhaps=nhaps,
        hapdiv=P.haplotype_diversity(),
        walls_b=P.walls_b(),
        walls_q=P.walls_q(),
        hudsons_c=P.hudsons_c(),
        zns=zns(sub, min_count),
    )


def summarize_replicate(matrix: HaplotypeMatrix, config: PipelineConfig,
                        rng: np.random.Generator) -> List[ReplicateSummary]:
    """All resampling rounds for one replicate; ``config`` must already be validated."""
    return [summarize_round(matrix, config.subsample_size, rng, config.min_count)
            for _ in range(config.n_permutations)]


def _replicate_task(task: Tuple[HaplotypeMatrix, PipelineConfig, np.random.SeedSequence]
                    ) -> List[ReplicateSummary]:
    matrix, config, seed = task
    return summarize_replicate(matrix, config, np.random.default_rng(seed))


def run_pipeline(reader: MsReader, out: IO[str], config: PipelineConfig) -> int:
    """
    Process every replicate in the stream and write the statistics table.

    The configuration is validated against the header before anything is
    written. Rows come out in replicate order, then round order, whatever the
    worker count. With a seed the output does not depend on ``workers``.

    Args:
        reader: ms reader positioned at the start of the stream
        out: Text stream for the table
        config: Run configuration

    Returns:
        Number of data rows written

    Raises:
        ConfigError: If the configuration does not fit the input
        MsFormatError: If a replicate block is malformed
    """
    header = reader.read_header()
    config = config.validate(header.nsam)
    logger.info(f"Input: nsam={header.nsam}, nreps={header.nreps}; "
                f"subsample={config.subsample_size}, permutations={config.n_permutations}, "
                f"workers={config.workers}")

    out.write(header_line() + '\n')
    root = np.random.SeedSequence(config.seed)
    nrows = 0

    if config.workers == 1:
        for matrix in reader:
            logger.debug(f"Replicate {reader.replicates_read}: {matrix.num_sites()} segregating sites")
            rng = np.random.default_rng(root.spawn(1)[0])
            for summary in summarize_replicate(matrix, config, rng):
                out.write(summary.to_line() + '\n')
                nrows += 1
    else:
        replicates = iter(reader)
        with ProcessPoolExecutor(max_workers=config.workers) as ex:
            while True:
                batch = []
                error = None
                try:
                    for matrix in itertools.islice(replicates, config.workers * BATCH_PER_WORKER):
                        batch.append(matrix)
                except MsFormatError as e:
                    # replicates read before the bad block are still written
                    error = e
                if batch:
                    tasks = [(m, config, s) for m, s in zip(batch, root.spawn(len(batch)))]
                    # map() yields in submission order
                    for summaries in ex.map(_replicate_task, tasks):
                        for summary in summaries:
                            out.write(summary.to_line() + '\n')
                            nrows += 1
                if error is not None:
                    raise error
                if not batch:
                    break

    if reader.replicates_read != header.nreps:
        logger.warning(f"Header declares {header.nreps} replicates but {reader.replicates_read} were read")
    logger.info(f"Processed {reader.replicates_read} replicates, wrote {nrows} rows")
    return nrows
