import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from batchmap.genobj.outcrossobj import OutcrossObject


log = logging.getLogger(__name__)

TWOPT_COLUMNS = ("marker_1", "marker_2", "phase", "rf", "lod")


def pair_index(a: int, b: int) -> int:
    """
    Canonical packed-triangular offset of the unordered marker pair `{a, b}`.

    Pairs are laid out row by row over the strict lower triangle, so that
    `(1, 0) -> 0`, `(2, 0) -> 1`, `(2, 1) -> 2`, `(3, 0) -> 3` and so on.
    The result does not depend on argument order.

    Args:
        a (int): First marker index (0-based).
        b (int): Second marker index (0-based).

    Returns:
        **int:** Offset of the pair.
    """
    a = int(a)
    b = int(b)
    if a == b:
        raise ValueError(f"A marker cannot be paired with itself (got {a}).")
    if a < 0 or b < 0:
        raise ValueError(f"Marker indices must be non-negative; got ({a}, {b}).")
    low, high = (a, b) if a < b else (b, a)
    return high * (high - 1) // 2 + low


def n_pairs(n_markers: int) -> int:
    return n_markers * (n_markers - 1) // 2


@dataclass(frozen=True)
class TwoPointEntry:
    phase: int
    rf: float
    lod: float


class TwoPointTable:
    """
    Two-point recombination fraction and linkage phase estimates for all
    unordered marker pairs of a dataset.

    Each cell holds the candidate `(phase, rf, lod)` entries of one pair,
    ranked by LOD score (best first). Cells may be empty when the pair carries
    no information.
    """

    def __init__(
        self,
        n_markers: int,
        entries: Optional[Dict[Tuple[int, int], Iterable[TwoPointEntry]]] = None,
        data: Optional[OutcrossObject] = None,
    ) -> None:
        """
        Args:
            n_markers (int): Number of markers covered by the table.
            entries (dict, optional): Mapping from a marker pair to its candidate entries.
            data (OutcrossObject, optional): The raw dataset the table was computed from.
        """
        if n_markers < 0:
            raise ValueError("'n_markers' must be non-negative.")
        if data is not None and data.n_markers != n_markers:
            raise ValueError(
                f"Two-point table covers {n_markers} markers but the dataset has {data.n_markers}."
            )
        self.__n_markers = int(n_markers)
        self.__data = data
        self.__cells: List[List[TwoPointEntry]] = [[] for _ in range(n_pairs(self.__n_markers))]
        if entries is not None:
            for (a, b), cell in entries.items():
                self.set(a, b, cell)

    def __getitem__(self, key: str) -> Any:
        """
        To access an attribute of the class using the square bracket notation,
        similar to a dictionary.
        """
        try:
            return getattr(self, key)
        except Exception:
            raise KeyError(f"Invalid key: {key}.")

    @property
    def n_markers(self) -> int:
        """
        Retrieve `n_markers`.

        Returns:
            **int:** Number of markers covered by the table.
        """
        return self.__n_markers

    @property
    def data(self) -> Optional[OutcrossObject]:
        """
        Retrieve `data`.

        Returns:
            **OutcrossObject:** The raw dataset the table was computed from, if attached.
        """
        return self.__data

    def _offset(self, a: int, b: int) -> int:
        for m in (a, b):
            if not 0 <= int(m) < self.__n_markers:
                raise IndexError(f"Marker {m} is out of range for a table of {self.__n_markers} markers.")
        return pair_index(a, b)

    def set(self, a: int, b: int, entries: Iterable[TwoPointEntry]) -> None:
        """
        Replace the candidate entries of the pair `{a, b}`. Entries are stored
        ranked by LOD score, best first.
        """
        cell = [e if isinstance(e, TwoPointEntry) else TwoPointEntry(*e) for e in entries]
        for e in cell:
            if e.phase not in (1, 2, 3, 4):
                raise ValueError(f"Invalid phase code {e.phase} for pair ({a}, {b}).")
        self.__cells[self._offset(a, b)] = sorted(cell, key=lambda e: e.lod, reverse=True)

    def lookup(self, a: int, b: int) -> List[TwoPointEntry]:
        """
        Candidate entries for the unordered pair `{a, b}`, best LOD first.
        An empty list means the table has no information on the pair.
        """
        return list(self.__cells[self._offset(a, b)])

    def rf_for_phase(self, a: int, b: int, phase: int) -> Optional[float]:
        """
        Recombination fraction estimated for the pair `{a, b}` under `phase`,
        or None if the table has no entry for that phase.
        """
        for e in self.__cells[self._offset(a, b)]:
            if e.phase == phase:
                return e.rf
        return None

    def to_frame(self) -> pd.DataFrame:
        """
        Long-format view of the table, one row per candidate entry.
        """
        rows = []
        for high in range(1, self.__n_markers):
            for low in range(high):
                for e in self.__cells[pair_index(low, high)]:
                    rows.append((low, high, e.phase, e.rf, e.lod))
        return pd.DataFrame(rows, columns=list(TWOPT_COLUMNS))

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        n_markers: Optional[int] = None,
        data: Optional[OutcrossObject] = None,
    ) -> 'TwoPointTable':
        """
        Build a table from a DataFrame with columns `marker_1`, `marker_2`,
        `phase`, `rf` and `lod` (one row per candidate entry).

        Args:
            df (pandas.DataFrame): Long-format two-point estimates.
            n_markers (int, optional): Number of markers. Inferred from `data` or from the largest index.
            data (OutcrossObject, optional): The raw dataset to attach.
        """
        missing = [c for c in TWOPT_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Two-point table is missing columns: {', '.join(missing)}.")
        if n_markers is None:
            if data is not None:
                n_markers = data.n_markers
            elif len(df):
                n_markers = int(max(df["marker_1"].max(), df["marker_2"].max())) + 1
            else:
                n_markers = 0

        grouped: Dict[Tuple[int, int], List[TwoPointEntry]] = {}
        for m1, m2, phase, rf, lod in df[list(TWOPT_COLUMNS)].itertuples(index=False):
            key = (min(int(m1), int(m2)), max(int(m1), int(m2)))
            grouped.setdefault(key, []).append(TwoPointEntry(int(phase), float(rf), float(lod)))
        log.debug(f"Loaded two-point estimates for {len(grouped)} marker pairs")
        return cls(n_markers, grouped, data=data)

    def __repr__(self) -> str:
        filled = int(np.count_nonzero([len(c) for c in self.__cells])) if self.__cells else 0
        return f"TwoPointTable(n_markers={self.__n_markers}, informative_pairs={filled})"
