"""
Diversity and haplotype statistics for a single haplotype matrix.

``PolyStats`` mirrors the summary set reported by classic ``ms`` post-processing
tools: S, Watterson's theta, Tajima's pi, Hudson-Kaplan Rm, haplotype number and
diversity, Wall's B and Q, and Hudson's C. Allele and haplotype counting goes
through scikit-allel.
"""
from __future__ import annotations
import logging
from typing import Optional

import numpy as np
import allel
from scipy.optimize import brentq

from .matrix import HaplotypeMatrix
from .recomb import hudson_kaplan_rm, pairwise_differences

logger = logging.getLogger(__name__)

# Hudson (1987) C search ceiling; the variance curve is flat well before this
HUDSONS_C_MAX = 1e8


def _variance_shape(c: float) -> float:
    # two-sequence variance term under recombination (Hudson 1983)
    return (c + 18.0) / (c * c + 13.0 * c + 18.0)


class PolyStats:
    """
    Summary statistics of one haplotype matrix.

    Only polymorphic columns contribute; a matrix with invariant columns gives
    the same values as the same matrix after ``remove_invariant_columns``.
    """

    def __init__(self, matrix: HaplotypeMatrix):
        self.matrix = matrix
        X = matrix.data
        self.n = X.shape[0]
        derived = X.sum(axis=0)
        poly = (derived > 0) & (derived < self.n)
        self._poly = X[:, poly]
        self._h = allel.HaplotypeArray(np.ascontiguousarray(self._poly.T)) if self._poly.shape[1] else None

    def num_poly(self) -> int:
        """Number of segregating sites."""
        return int(self._poly.shape[1])

    def theta_w(self) -> float:
        """Watterson's theta per region, S / sum_{i=1}^{n-1} 1/i."""
        if self.n < 2:
            return float('nan')
        a1 = float(np.sum(1.0 / np.arange(1, self.n)))
        return self.num_poly() / a1

    def theta_pi(self) -> float:
        """Tajima's pi per region: sum over sites of the mean pairwise difference."""
        if self.n < 2:
            return float('nan')
        if self._h is None:
            return 0.0
        ac = self._h.count_alleles(max_allele=1)
        return float(np.sum(allel.mean_pairwise_difference(ac)))

    def minrec(self) -> Optional[int]:
        """Hudson-Kaplan Rm; None with fewer than two segregating sites."""
        return hudson_kaplan_rm(self.matrix)

    def num_haplotypes(self) -> int:
        """Number of distinct haplotypes."""
        if self.n == 0:
            return 0
        if self._h is None:
            return 1
        return int(len(self._h.distinct_counts()))

    def haplotype_diversity(self) -> float:
        """Unbiased haplotype diversity, n/(n-1) * (1 - sum f_i^2)."""
        if self.n < 2:
            return float('nan')
        if self._h is None:
            return 0.0
        return float(allel.haplotype_diversity(self._h))

    def _congruence(self):
        """Congruent adjacent-pair count and the set of partitions they define."""
        # flip each column so the first individual carries 0; congruent sites then match exactly
        canon = self._poly ^ self._poly[0]
        count = 0
        partitions = set()
        for k in range(canon.shape[1] - 1):
            if np.array_equal(canon[:, k], canon[:, k + 1]):
                count += 1
                partitions.add(canon[:, k].tobytes())
        return count, partitions

    def walls_b(self) -> float:
        """Wall's (1999) B: fraction of adjacent site pairs that are congruent."""
        S = self.num_poly()
        if S < 2:
            return float('nan')
        count, _ = self._congruence()
        return count / (S - 1)

    def walls_q(self) -> float:
        """Wall's (1999) Q: (congruent adjacent pairs + distinct congruent partitions) / S."""
        S = self.num_poly()
        if S < 2:
            return float('nan')
        count, partitions = self._congruence()
        return (count + len(partitions)) / S

    def hudsons_c(self) -> float:
        """
        Hudson's (1987) moment estimator of C = 4Nr.

        Solves S_k^2 = pi + pi^2 * (C + 18) / (C^2 + 13C + 18), where S_k^2 is
        the variance of pairwise differences and pi their mean.

        S_k^2 is the population variance (ddof=0) over all n(n-1)/2 pairs, and
        no root is clamped or interpolated: in small samples S_k^2 <= pi is
        common (e.g. rows 0,0,0,1 or 00,01,10,11), and those give inf. This
        has not been checked against libsequence's HudsonsC, which may use a
        different variance estimator or bound the result.

        Returns:
            C; NaN when pi is 0 or undefined, 0 when the observed variance is at
            or above the no-recombination value, inf when it is at or below pi
        """
        k = pairwise_differences(self.matrix)
        if k.size == 0:
            return float('nan')
        pi = float(k.mean())
        if pi == 0.0:
            return float('nan')
        sk2 = float(k.var())
        target = (sk2 - pi) / (pi * pi)
        if target >= 1.0:
            return 0.0
        if target <= 0.0:
            return float('inf')
        if _variance_shape(HUDSONS_C_MAX) > target:
            logger.debug(f"Hudson's C exceeds {HUDSONS_C_MAX:g} (target {target:g})")
            return float('inf')
        return float(brentq(lambda c: _variance_shape(c) - target, 0.0, HUDSONS_C_MAX))
