import itertools
import math
from typing import List, Sequence

import numpy as np


def perm_tot(values: Sequence[int]) -> np.ndarray:
    """
    All permutations of `values`, one per row, in lexicographic order of
    positions (the input order is always the first row).

    Args:
        values (sequence of int): Items to permute.

    Returns:
        **array of shape (n!, n):** Every ordering of `values`.
    """
    values = list(values)
    if not values:
        return np.empty((1, 0), dtype=np.int64)
    return np.array(list(itertools.permutations(values)), dtype=np.int64)


def n_permutations(n: int) -> int:
    return math.factorial(n)


def forward_permutations(values: Sequence[int]) -> np.ndarray:
    """
    Permutations of `values` without mirror images: a row is dropped when its
    reverse was already enumerated.
    """
    seen = set()
    rows: List[tuple] = []
    for row in itertools.permutations(list(values)):
        if row[::-1] in seen:
            continue
        seen.add(row)
        rows.append(row)
    if not rows:
        return np.empty((1, 0), dtype=np.int64)
    return np.array(rows, dtype=np.int64)
