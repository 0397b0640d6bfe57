import logging
import copy
from typing import Any, List, Optional, Sequence

import numpy as np


log = logging.getLogger(__name__)


class OutcrossObject:
    """
    A class for the raw genotype data of a mapping population.
    """

    def __init__(
        self,
        geno: np.ndarray,
        segr_type: Sequence[int],
        marker_names: Optional[Sequence[str]] = None,
        phased: bool = True,
    ) -> None:
        """
        Args:
            geno (array of shape (n_individuals, n_markers)): Genotype codes per individual and marker.
                Missing genotypes are encoded as 0.
            segr_type (array of shape (n_markers,)): Numeric segregation type of each marker.
            marker_names (array of shape (n_markers,), optional): Marker names. Defaults to `M1..Mn`.
            phased (bool): Whether the population is an outcross with linkage phases to estimate.
                Phases are shown in ripple reports only for phased datasets.
        """
        self.__geno = np.asarray(geno)
        self.__segr_type = np.asarray(segr_type)
        if marker_names is None:
            n = self.__geno.shape[1] if self.__geno.ndim == 2 else 0
            marker_names = [f"M{i + 1}" for i in range(n)]
        self.__marker_names = np.asarray(marker_names, dtype=object)
        self.__phased = bool(phased)

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

    @property
    def geno(self) -> np.ndarray:
        """
        Retrieve `geno`.

        Returns:
            **array of shape (n_individuals, n_markers):** Genotype codes per individual and marker.
        """
        return self.__geno

    @property
    def segr_type(self) -> np.ndarray:
        """
        Retrieve `segr_type`.

        Returns:
            **array of shape (n_markers,):** Numeric segregation type of each marker.
        """
        return self.__segr_type

    @property
    def marker_names(self) -> np.ndarray:
        """
        Retrieve `marker_names`.

        Returns:
            **array of shape (n_markers,):** Marker names.
        """
        return self.__marker_names

    @property
    def phased(self) -> bool:
        """
        Retrieve `phased`.

        Returns:
            **bool:** True if linkage phases are estimated for this population.
        """
        return self.__phased

    @property
    def n_individuals(self) -> int:
        """
        Retrieve `n_individuals`.

        Returns:
            **int:** The number of genotyped individuals.
        """
        return self.__geno.shape[0]

    @property
    def n_markers(self) -> int:
        """
        Retrieve `n_markers`.

        Returns:
            **int:** The number of markers.
        """
        return self.__geno.shape[1]

    def columns(self, markers: Sequence[int]) -> np.ndarray:
        """
        Genotype matrix restricted to `markers`, in the given order.

        Args:
            markers (sequence of int): Marker indices (0-based).

        Returns:
            **array of shape (n_individuals, len(markers)):** Reordered genotype columns.
        """
        idx = self._check_markers(markers)
        return self.__geno[:, idx]

    def types(self, markers: Sequence[int]) -> np.ndarray:
        """
        Segregation types of `markers`, in the given order.
        """
        idx = self._check_markers(markers)
        return self.__segr_type[idx]

    def names(self, markers: Sequence[int]) -> List[str]:
        idx = self._check_markers(markers)
        return self.__marker_names[idx].tolist()

    def copy(self) -> 'OutcrossObject':
        """
        Create and return a copy of `self`.

        Returns:
            **OutcrossObject:** A new instance of the current object.
        """
        return copy.deepcopy(self)

    def _check_markers(self, markers: Sequence[int]) -> np.ndarray:
        idx = np.asarray(markers, dtype=np.int64)
        if idx.size and (idx.min() < 0 or idx.max() >= self.n_markers):
            raise IndexError(
                f"Marker indices must be in [0, {self.n_markers}); got range "
                f"[{idx.min()}, {idx.max()}]."
            )
        return idx

    def _sanity_check(self) -> None:
        """
        Perform sanity checks on the dataset dimensions.
        """
        if self.__geno.ndim != 2:
            raise ValueError(
                f"'geno' must be a 2-dimensional array (n_individuals, n_markers); got {self.__geno.ndim} dimensions."
            )
        n_markers = self.__geno.shape[1]
        if self.__segr_type.shape != (n_markers,):
            raise ValueError(
                f"'segr_type' must have one entry per marker: expected {n_markers}, got {self.__segr_type.size}."
            )
        if self.__marker_names.shape != (n_markers,):
            raise ValueError(
                f"'marker_names' must have one entry per marker: expected {n_markers}, got {self.__marker_names.size}."
            )
        if len(set(self.__marker_names.tolist())) != n_markers:
            log.warning("Marker names are not unique.")

    def __repr__(self) -> str:
        return (
            f"OutcrossObject(n_individuals={self.n_individuals}, n_markers={self.n_markers}, "
            f"phased={self.phased})"
        )
