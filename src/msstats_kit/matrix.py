from __future__ import annotations
import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


class HaplotypeMatrix:
    """
    Binary haplotype matrix for one simulated replicate.

    Rows are individuals, columns are segregating sites. Alleles are stored as
    int8 (0 = ancestral, 1 = derived). Optional per-site positions are kept
    aligned with the columns through every column operation.
    """

    def __init__(self, data: np.ndarray, positions: Optional[Sequence[float]] = None):
        data = np.asarray(data, dtype=np.int8)
        if data.ndim != 2:
            raise ValueError(f"haplotype data must be 2-dimensional, got shape {data.shape}")
        if data.size and not np.isin(data, (0, 1)).all():
            raise ValueError("haplotype data must contain only 0/1 alleles")
        self._data = data
        if positions is None:
            self._positions = None
        else:
            pos = np.asarray(positions, dtype=float)
            if pos.shape != (data.shape[1],):
                raise ValueError(f"expected {data.shape[1]} positions, got {pos.size}")
            self._positions = pos

    @classmethod
    def from_strings(cls, rows: Iterable[str], positions: Optional[Sequence[float]] = None,
                     num_sites: Optional[int] = None) -> HaplotypeMatrix:
        """
        Build a matrix from haplotype strings such as ``"0110"``.

        Args:
            rows: One string per individual
            positions: Optional site positions, one per column
            num_sites: Column count to use when ``rows`` is empty

        Returns:
            New HaplotypeMatrix

        Raises:
            ValueError: If rows differ in length or contain characters other than 0/1
        """
        rows = list(rows)
        if not rows:
            return cls(np.zeros((0, num_sites or 0), dtype=np.int8), positions)
        width = len(rows[0])
        for i, r in enumerate(rows):
            if len(r) != width:
                raise ValueError(f"haplotype {i} has {len(r)} sites, expected {width}")
            if r.strip('01'):
                raise ValueError(f"haplotype {i} contains characters other than 0/1: {r!r}")
        if width == 0:
            return cls(np.zeros((len(rows), 0), dtype=np.int8), positions)
        buf = np.frombuffer(''.join(rows).encode('ascii'), dtype=np.uint8) - ord('0')
        return cls(buf.reshape(len(rows), width).astype(np.int8), positions)

    @classmethod
    def empty(cls, n_individuals: int) -> HaplotypeMatrix:
        """Matrix of ``n_individuals`` rows and no segregating sites."""
        return cls(np.zeros((n_individuals, 0), dtype=np.int8), positions=[])

    # ----- size queries -----

    def size(self) -> int:
        return self._data.shape[0]

    def num_sites(self) -> int:
        return self._data.shape[1]

    def __len__(self) -> int:
        return self.size()

    @property
    def data(self) -> np.ndarray:
        """Read-only view of the allele array (individuals x sites)."""
        view = self._data.view()
        view.flags.writeable = False
        return view

    @property
    def positions(self) -> Optional[np.ndarray]:
        return None if self._positions is None else self._positions.copy()

    def rows(self) -> List[str]:
        return [''.join('1' if a else '0' for a in row) for row in self._data]

    def has_haplotype(self, haplotype: str) -> bool:
        """Exact row-equality test against a haplotype string."""
        if len(haplotype) != self.num_sites():
            return False
        if self.size() == 0:
            return False
        target = HaplotypeMatrix.from_strings([haplotype]).data[0]
        return bool((self._data == target).all(axis=1).any())

    # ----- derived matrices -----

    def copy(self) -> HaplotypeMatrix:
        return HaplotypeMatrix(self._data.copy(), self._positions)

    def take_rows(self, indices: Sequence[int]) -> HaplotypeMatrix:
        """New matrix holding the given rows (in the given order) and every column."""
        idx = np.asarray(indices, dtype=np.intp)
        return HaplotypeMatrix(self._data[idx].copy(), self._positions)

    # ----- column removal -----

    def invariant_columns(self) -> np.ndarray:
        """Boolean mask of columns where every row carries the same allele."""
        if self.size() == 0:
            return np.ones(self.num_sites(), dtype=bool)
        first = self._data[0]
        return (self._data == first).all(axis=0)

    def remove_invariant_columns(self) -> int:
        """
        Drop, in place, every column with no variation among the rows.

        Relative order of the remaining columns (and their positions) is kept.

        Returns:
            Number of columns removed
        """
        invariant = self.invariant_columns()
        removed = int(invariant.sum())
        if removed:
            keep = ~invariant
            self._data = self._data[:, keep]
            if self._positions is not None:
                self._positions = self._positions[keep]
            logger.debug(f"Removed {removed} invariant sites, {self.num_sites()} remain")
        return removed

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HaplotypeMatrix):
            return NotImplemented
        return self._data.shape == other._data.shape and bool((self._data == other._data).all())

    def __repr__(self) -> str:
        return f"HaplotypeMatrix(individuals={self.size()}, sites={self.num_sites()})"
