from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence

import numpy as np
import pandas as pd

from batchmap.genobj.outcrossobj import OutcrossObject

if TYPE_CHECKING:
    from batchmap.twopt.table import TwoPointTable


log = logging.getLogger(__name__)

UNDEFINED_PHASE = -1
UNDEFINED_RF = -1.0


class SequenceObject:
    """
    An ordered sequence of markers of one linkage group, with the linkage
    phases, recombination fractions and log-likelihood of its map.

    Objects are never modified in place: a new map of the same (or a
    re-ordered) sequence is produced with `update`, which always replaces
    phases, recombination fractions and log-likelihood together.
    """

    def __init__(
        self,
        seq_num: Sequence[int],
        seq_phases: Optional[Sequence[int]] = None,
        seq_rf: Optional[Sequence[float]] = None,
        seq_like: Optional[float] = None,
        data: Optional[OutcrossObject] = None,
        twopt: Optional[TwoPointTable] = None,
    ) -> None:
        """
        Args:
            seq_num (array of shape (n_markers,)): Ordered marker indices (0-based) into `data`.
            seq_phases (array of shape (n_markers - 1,), optional): Linkage phase codes (1-4) between
                adjacent markers, `-1` where undefined. Defaults to all undefined.
            seq_rf (array of shape (n_markers - 1,), optional): Recombination fractions between adjacent
                markers, `-1` where not estimated. Defaults to all undefined.
            seq_like (float, optional): Log-likelihood of the map. None if the sequence was not mapped.
            data (OutcrossObject, optional): Raw dataset the markers belong to.
            twopt (TwoPointTable, optional): Two-point analysis the sequence was built from.
        """
        num = np.array(seq_num, dtype=np.int64).reshape(-1)
        n_edges = max(num.size - 1, 0)
        if seq_phases is None:
            seq_phases = np.full(n_edges, UNDEFINED_PHASE, dtype=np.int64)
        if seq_rf is None:
            seq_rf = np.full(n_edges, UNDEFINED_RF, dtype=np.float64)

        self.__seq_num = num
        self.__seq_phases = np.array(seq_phases, dtype=np.int64).reshape(-1)
        self.__seq_rf = np.array(seq_rf, dtype=np.float64).reshape(-1)
        self.__seq_like = None if seq_like is None else float(seq_like)
        self.__data = data
        self.__twopt = twopt

        # Maps are replaced, never patched
        for arr in (self.__seq_num, self.__seq_phases, self.__seq_rf):
            arr.setflags(write=False)

        self._sanity_check()

    def __getitem__(self, key: str) -> Any:
        """
        To access an attribute of the class using the square bracket notation,
        similar to a dictionary.
        """
        try:
            return getattr(self, key)
        except Exception:
            raise KeyError(f"Invalid key: {key}.")

    def __len__(self) -> int:
        return int(self.__seq_num.size)

    @property
    def seq_num(self) -> np.ndarray:
        """
        Retrieve `seq_num`.

        Returns:
            **array of shape (n_markers,):** Ordered marker indices.
        """
        return self.__seq_num

    @property
    def seq_phases(self) -> np.ndarray:
        """
        Retrieve `seq_phases`.

        Returns:
            **array of shape (n_markers - 1,):** Linkage phase codes between adjacent markers.
        """
        return self.__seq_phases

    @property
    def seq_rf(self) -> np.ndarray:
        """
        Retrieve `seq_rf`.

        Returns:
            **array of shape (n_markers - 1,):** Recombination fractions between adjacent markers.
        """
        return self.__seq_rf

    @property
    def seq_like(self) -> Optional[float]:
        """
        Retrieve `seq_like`.

        Returns:
            **float:** Log-likelihood of the map, None if the sequence was not mapped.
        """
        return self.__seq_like

    @property
    def data(self) -> Optional[OutcrossObject]:
        """
        Retrieve `data`.

        Returns:
            **OutcrossObject:** Raw dataset the markers belong to.
        """
        return self.__data

    @property
    def twopt(self) -> Optional[TwoPointTable]:
        """
        Retrieve `twopt`.

        Returns:
            **TwoPointTable:** Two-point analysis the sequence was built from.
        """
        return self.__twopt

    @property
    def n_markers(self) -> int:
        return len(self)

    @property
    def is_mapped(self) -> bool:
        """
        True if the sequence carries a log-likelihood (finite or not).
        """
        return self.__seq_like is not None

    @property
    def is_phased(self) -> bool:
        """
        True if every adjacent pair has a defined linkage phase.
        """
        return bool(np.all(self.__seq_phases != UNDEFINED_PHASE))

    def update(
        self,
        seq_phases: Sequence[int],
        seq_rf: Sequence[float],
        seq_like: Optional[float],
        seq_num: Optional[Sequence[int]] = None,
    ) -> 'SequenceObject':
        """
        Return a new sequence carrying a new map. The marker order is kept
        unless `seq_num` is given; the dataset and two-point references are
        always kept.
        """
        return SequenceObject(
            seq_num=self.__seq_num if seq_num is None else seq_num,
            seq_phases=seq_phases,
            seq_rf=seq_rf,
            seq_like=seq_like,
            data=self.__data,
            twopt=self.__twopt,
        )

    def reorder(self, seq_num: Sequence[int], seq_phases: Optional[Sequence[int]] = None) -> 'SequenceObject':
        """
        Return an unmapped sequence over `seq_num` sharing this sequence's
        dataset and two-point references.
        """
        return SequenceObject(seq_num, seq_phases=seq_phases, data=self.__data, twopt=self.__twopt)

    def distances(self, map_function: str = 'kosambi') -> np.ndarray:
        """
        Map distances (cM) between adjacent markers. Undefined recombination
        fractions give NaN.

        Args:
            map_function (str): Either 'kosambi' or 'haldane'.
        """
        from batchmap.mapping.distance import haldane, kosambi

        if map_function == 'kosambi':
            return kosambi(self.__seq_rf)
        if map_function == 'haldane':
            return haldane(self.__seq_rf)
        raise ValueError(f"Unknown map function '{map_function}' (choose 'kosambi' or 'haldane').")

    def to_frame(self, map_function: str = 'kosambi') -> pd.DataFrame:
        """
        Tabular view of the map: one row per marker with its cumulative
        position under `map_function` and the phase to the next marker.
        """
        dist = np.nan_to_num(self.distances(map_function), nan=0.0)
        position = np.concatenate([[0.0], np.cumsum(dist)]) if len(self) else np.array([])
        phases = np.concatenate([self.__seq_phases, [UNDEFINED_PHASE]]) if len(self) else np.array([])
        if self.__data is not None:
            names = self.__data.names(self.__seq_num)
        else:
            names = [str(m) for m in self.__seq_num]
        return pd.DataFrame({
            'marker': self.__seq_num,
            'name': names,
            'position_cm': np.round(position, 2),
            'phase': phases,
        })

    def _sanity_check(self) -> None:
        """
        Check that phases and recombination fractions describe the gaps
        between adjacent markers.
        """
        n_edges = max(self.__seq_num.size - 1, 0)
        if self.__seq_phases.size != n_edges:
            raise ValueError(
                f"'seq_phases' must have {n_edges} entries for {self.__seq_num.size} markers; "
                f"got {self.__seq_phases.size}."
            )
        if self.__seq_rf.size != n_edges:
            raise ValueError(
                f"'seq_rf' must have {n_edges} entries for {self.__seq_num.size} markers; "
                f"got {self.__seq_rf.size}."
            )
        bad = ~np.isin(self.__seq_phases, (UNDEFINED_PHASE, 1, 2, 3, 4))
        if np.any(bad):
            raise ValueError(f"Invalid linkage phase codes: {np.unique(self.__seq_phases[bad]).tolist()}.")
        if len(np.unique(self.__seq_num)) != self.__seq_num.size:
            raise ValueError("A sequence cannot contain the same marker twice.")

    def __repr__(self) -> str:
        like = 'unmapped' if self.__seq_like is None else f"{self.__seq_like:.2f}"
        return f"SequenceObject(n_markers={len(self)}, seq_like={like})"

    def __str__(self) -> str:
        if not self.is_mapped:
            return f"Unmapped sequence of {len(self)} markers: {' '.join(map(str, self.__seq_num))}"
        body = self.to_frame().to_string(index=False)
        return f"{body}\n\n{len(self)} markers            log-likelihood: {self.__seq_like:.2f}"


def make_seq(
    twopt: TwoPointTable,
    markers: Sequence[int],
    phases: Optional[Sequence[int]] = None,
) -> SequenceObject:
    """
    Build an unmapped sequence of `markers` from a two-point table.

    Args:
        twopt (TwoPointTable): The two-point analysis; its attached dataset becomes the sequence's data.
        markers (sequence of int): Ordered marker indices.
        phases (sequence of int, optional): Known linkage phases between adjacent markers.

    Returns:
        **SequenceObject:** The sequence, with `seq_like` None.
    """
    from batchmap.twopt.table import TwoPointTable

    if not isinstance(twopt, TwoPointTable):
        raise TypeError(f"'twopt' must be a TwoPointTable, got {type(twopt).__name__}.")
    markers = np.asarray(markers, dtype=np.int64)
    if markers.size and (markers.min() < 0 or markers.max() >= twopt.n_markers):
        raise ValueError(
            f"Marker indices must be in [0, {twopt.n_markers}) for this two-point table."
        )
    return SequenceObject(markers, seq_phases=phases, data=twopt.data, twopt=twopt)
