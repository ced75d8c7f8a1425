"""
Pairwise linkage disequilibrium and the Zns summary (Kelly 1997).
"""
import logging
import math
from typing import Callable, Iterable, Iterator, NamedTuple, Optional

import numpy as np

from .matrix import HaplotypeMatrix

logger = logging.getLogger(__name__)

# minimum minor-allele count for a site to enter a pair
DEFAULT_MIN_COUNT = 1


class PairStatistic(NamedTuple):
    """LD between two sites. Index 2 is r^2, the last field is the skipped flag."""
    site1: int
    site2: int
    rsq: float
    d: float
    dprime: float
    skipped: bool


def _skipped(site1: int, site2: int) -> PairStatistic:
    return PairStatistic(site1, site2, math.nan, math.nan, math.nan, True)


def pairwise_disequilibrium(matrix: HaplotypeMatrix,
                            min_count: int = DEFAULT_MIN_COUNT) -> Iterator[PairStatistic]:
    """
    Yield r^2, D and D' for every site pair, (0,1),(0,2),...,(1,2),...

    A pair is flagged skipped when either site is monomorphic or has a
    minor-allele count below ``min_count``. The generator is finite and is
    meant to be consumed once.

    Args:
        matrix: Haplotype matrix
        min_count: Minimum minor-allele count per site

    Yields:
        PairStatistic per pair
    """
    X = matrix.data
    n, s = X.shape
    if n == 0:
        for i in range(s):
            for j in range(i + 1, s):
                yield _skipped(i, j)
        return
    derived = X.sum(axis=0)
    minor = np.minimum(derived, n - derived)
    usable = (minor > 0) & (minor >= min_count)
    p = derived / n
    for i in range(s):
        for j in range(i + 1, s):
            if not (usable[i] and usable[j]):
                yield _skipped(i, j)
                continue
            p1, q1 = float(p[i]), float(p[j])
            p11 = float(np.count_nonzero(X[:, i] & X[:, j])) / n
            d = p11 - p1 * q1
            rsq = d * d / (p1 * (1.0 - p1) * q1 * (1.0 - q1))
            if d < 0:
                dmax = min(p1 * q1, (1.0 - p1) * (1.0 - q1))
            else:
                dmax = min(p1 * (1.0 - q1), (1.0 - p1) * q1)
            dprime = d / dmax if dmax > 0 else 0.0
            yield PairStatistic(i, j, rsq, d, dprime, False)


def mean_pair_statistic(stats: Iterable[PairStatistic]) -> Optional[float]:
    """
    Mean of r^2 (element 2) over the pairs that were not skipped.

    Returns:
        The mean, or None when every pair was skipped or none were given
    """
    total = 0.0
    npairs = 0
    for st in stats:
        if st[-1]:
            continue
        total += st[2]
        npairs += 1
    if npairs == 0:
        return None
    return total / npairs


def zns(matrix: HaplotypeMatrix, min_count: int = DEFAULT_MIN_COUNT,
        pairs: Callable[[HaplotypeMatrix, int], Iterable[PairStatistic]] = pairwise_disequilibrium
        ) -> Optional[float]:
    """
    Kelly's Zns: average r^2 over all usable site pairs.

    Args:
        matrix: Haplotype matrix
        min_count: Minimum minor-allele count passed to the pair generator
        pairs: Pair-statistic generator

    Returns:
        Zns, or None for one site or fewer, or when every pair was skipped
    """
    if matrix.num_sites() <= 1:
        return None
    value = mean_pair_statistic(pairs(matrix, min_count))
    if value is None:
        logger.debug(f"All site pairs skipped for {matrix!r}")
    return value
