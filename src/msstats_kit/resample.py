from typing import Optional

import numpy as np

from .matrix import HaplotypeMatrix


def sample(matrix: HaplotypeMatrix, k: int,
           rng: Optional[np.random.Generator] = None) -> HaplotypeMatrix:
    """
    Draw ``k`` individuals without replacement.

    The rows are the first ``k`` entries of a uniform random permutation of the
    source rows; every column is kept. The source matrix is left untouched, so
    successive calls are independent draws. Invariant sites are not removed
    here; callers do that on the returned matrix.

    Args:
        matrix: Source replicate
        k: Number of individuals to keep, 1 <= k <= matrix.size()
        rng: NumPy generator (a fresh default generator if omitted)

    Returns:
        New HaplotypeMatrix with ``k`` rows

    Raises:
        ValueError: If ``k`` is outside 1..matrix.size()
    """
    n = matrix.size()
    if not 1 <= k <= n:
        raise ValueError(f"subsample size {k} outside 1..{n}")
    if rng is None:
        rng = np.random.default_rng()
    order = rng.permutation(n)
    return matrix.take_rows(order[:k])
