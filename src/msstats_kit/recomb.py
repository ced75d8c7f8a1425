"""
Lower bounds on the number of historical recombination events.

All estimators return ``None`` where the bound is undefined; callers render
that as NaN rather than mixing a sentinel into arithmetic.
"""
import logging
from typing import Optional

import numpy as np
from scipy.spatial.distance import pdist

from .matrix import HaplotypeMatrix

logger = logging.getLogger(__name__)


def pairwise_differences(matrix: HaplotypeMatrix) -> np.ndarray:
    """
    Hamming distance between every unordered pair of individuals.

    Returns:
        Condensed vector of length n*(n-1)/2 in (0,1),(0,2),...,(1,2),... order
    """
    if matrix.size() < 2:
        return np.zeros(0, dtype=np.int64)
    if matrix.num_sites() == 0:
        return np.zeros(matrix.size() * (matrix.size() - 1) // 2, dtype=np.int64)
    # cityblock on 0/1 vectors counts differing sites exactly
    d = pdist(matrix.data.astype(np.float64), metric='cityblock')
    return np.rint(d).astype(np.int64)


def min_d(matrix: HaplotypeMatrix) -> Optional[int]:
    """
    Minimum pairwise Hamming distance between individuals.

    Every site of every pair is compared. Two identical individuals give 0,
    which is a valid result and distinct from the undefined case.

    Args:
        matrix: Haplotype matrix (usually a subsample with invariant sites removed)

    Returns:
        Minimum distance, or None when there are no sites or fewer than two individuals
    """
    if matrix.num_sites() == 0:
        return None
    dist = pairwise_differences(matrix)
    if dist.size == 0:
        return None
    return int(dist.min())


def rm_mg(matrix: HaplotypeMatrix, segsites: int, nhaps: int) -> int:
    """
    Myers & Griffiths (2003, eq. 4) haplotype bound on recombination events.

    With n individuals, S segregating sites and H distinct haplotypes: when
    n > S the bound is H - S, less one more if the all-ancestral haplotype is
    among the rows; otherwise 0. The value may be negative and is returned
    unclamped.

    Args:
        matrix: Haplotype matrix the counts were taken from
        segsites: Segregating-site count S
        nhaps: Distinct-haplotype count H

    Returns:
        Raw integer bound
    """
    if matrix.size() <= segsites:
        return 0
    ancestral = matrix.has_haplotype('0' * segsites)
    return nhaps - segsites - 1 if ancestral else nhaps - segsites


def incompatible_pairs(matrix: HaplotypeMatrix) -> np.ndarray:
    """
    Site pairs failing the four-gamete test.

    Returns:
        Array of shape (m, 2) with rows (site1, site2), site1 < site2
    """
    X = matrix.data.astype(np.int64)
    n = X.shape[0]
    ones = X.sum(axis=0)
    n11 = X.T @ X
    n10 = ones[:, None] - n11
    n01 = ones[None, :] - n11
    n00 = n - n11 - n10 - n01
    bad = (n11 > 0) & (n10 > 0) & (n01 > 0) & (n00 > 0)
    i, j = np.nonzero(np.triu(bad, k=1))
    return np.column_stack((i, j))


def hudson_kaplan_rm(matrix: HaplotypeMatrix) -> Optional[int]:
    """
    Hudson & Kaplan (1985) minimum number of recombination events.

    Counts the largest set of non-overlapping intervals spanned by
    incompatible site pairs. Intervals sharing only an endpoint site do not
    overlap.

    Returns:
        Rm, or None with fewer than two polymorphic sites
    """
    n = matrix.size()
    ones = matrix.data.sum(axis=0)
    npoly = int(((ones > 0) & (ones < n)).sum())
    if npoly < 2:
        return None
    pairs = incompatible_pairs(matrix)
    if pairs.size == 0:
        return 0
    # earliest right endpoint first
    order = np.lexsort((pairs[:, 0], pairs[:, 1]))
    rm, last = 0, -1
    for left, right in pairs[order]:
        if left >= last:
            rm += 1
            last = right
    return rm
