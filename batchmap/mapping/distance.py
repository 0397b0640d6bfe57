from typing import Union

import numpy as np

ArrayLike = Union[float, np.ndarray]


def kosambi(rf: ArrayLike) -> np.ndarray:
    """
    Convert recombination fractions to Kosambi map distances (cM).

    Negative fractions (not estimated) give NaN and fractions of 0.5 or more
    give infinity.
    """
    r = np.asarray(rf, dtype=np.float64)
    with np.errstate(divide='ignore', invalid='ignore'):
        d = 25.0 * np.log((1.0 + 2.0 * r) / (1.0 - 2.0 * r))
    d = np.where(r < 0, np.nan, d)
    return np.where(r >= 0.5, np.inf, d)


def haldane(rf: ArrayLike) -> np.ndarray:
    """
    Convert recombination fractions to Haldane map distances (cM).
    """
    r = np.asarray(rf, dtype=np.float64)
    with np.errstate(divide='ignore', invalid='ignore'):
        d = -50.0 * np.log(1.0 - 2.0 * r)
    d = np.where(r < 0, np.nan, d)
    return np.where(r >= 0.5, np.inf, d)


def max_distance(rf: ArrayLike) -> float:
    """
    Largest Kosambi distance between adjacent markers, ignoring undefined
    fractions. Returns 0 when nothing is defined.
    """
    d = kosambi(rf)
    d = d[~np.isnan(d)]
    return float(d.max()) if d.size else 0.0
