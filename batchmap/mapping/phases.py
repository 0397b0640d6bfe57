import itertools
import logging
from typing import Dict, List, Sequence, Tuple

import numpy as np

from batchmap.genobj.seqobj import UNDEFINED_PHASE
from batchmap.twopt.table import TwoPointTable


log = logging.getLogger(__name__)

# Linkage phase codes of two markers, keyed by the product of their parental
# linkage signs (first parent, second parent).
PHASE_CODES: Dict[Tuple[int, int], int] = {
    (1, 1): 1,
    (1, -1): 2,
    (-1, 1): 3,
    (-1, -1): 4,
}
PHASE_SIGNS: Dict[int, Tuple[int, int]] = {code: signs for signs, code in PHASE_CODES.items()}
ALL_PHASES = (1, 2, 3, 4)

NO_INFO_RF = 0.49
PHASE_LOD_TOLERANCE = 0.005


def phase_code(signs_a: Sequence[int], signs_b: Sequence[int]) -> int:
    """
    Phase code between two markers from their parental linkage signs.
    """
    key = (int(signs_a[0]) * int(signs_b[0]), int(signs_a[1]) * int(signs_b[1]))
    return PHASE_CODES[key]


def linkage_signs(phases: Sequence[int]) -> np.ndarray:
    """
    Parental linkage signs of every marker of a phased sequence.

    The first marker is fixed at `(+1, +1)` and each following marker takes
    its predecessor's signs multiplied by the signs of the phase between them,
    so that `phase_code(signs[i], signs[i + 1]) == phases[i]`. Undefined phases
    are treated as coupling in both parents.

    Args:
        phases (array of shape (n_markers - 1,)): Phase codes between adjacent markers.

    Returns:
        **array of shape (n_markers, 2):** Signs per marker and parent.
    """
    phases = np.asarray(phases, dtype=np.int64)
    signs = np.ones((phases.size + 1, 2), dtype=np.int64)
    for i, code in enumerate(phases):
        step = PHASE_SIGNS.get(int(code), (1, 1))
        signs[i + 1] = signs[i] * np.asarray(step)
    return signs


def combine_phases(choices: Sequence[Sequence[int]]) -> np.ndarray:
    """
    Every phase vector obtained by picking one code per position.

    Args:
        choices (sequence of sequences of int): Candidate codes for each position.

    Returns:
        **array of shape (n_combinations, n_positions):** One candidate phase vector per row,
        varying the last position fastest.
    """
    rows = list(itertools.product(*[list(c) for c in choices]))
    if not rows:
        return np.empty((0, len(choices)), dtype=np.int64)
    return np.array(rows, dtype=np.int64).reshape(len(rows), len(choices))


class PhaseResolver:
    """
    Initial linkage phases and recombination fractions for the multipoint
    estimator, looked up in a two-point table.
    """

    def __init__(
        self,
        twopt: TwoPointTable,
        lod_tolerance: float = PHASE_LOD_TOLERANCE,
        default_rf: float = NO_INFO_RF,
    ) -> None:
        """
        Args:
            twopt (TwoPointTable): Two-point estimates for the dataset.
            lod_tolerance (float): Phases whose two-point LOD is within this distance of the best
                are considered plausible.
            default_rf (float): Seed used for a pair without an estimate for the requested phase.
        """
        if not isinstance(twopt, TwoPointTable):
            raise TypeError(f"'twopt' must be a TwoPointTable, got {type(twopt).__name__}.")
        self.twopt = twopt
        self.lod_tolerance = lod_tolerance
        self.default_rf = default_rf

    def candidate_phases(self, a: int, b: int) -> List[int]:
        """
        Plausible phase codes between markers `a` and `b`, best first. All four
        codes are returned when the table has no information on the pair.
        """
        entries = self.twopt.lookup(a, b)
        if not entries:
            log.debug(f"No two-point information for markers {a} and {b}; trying all phases")
            return list(ALL_PHASES)
        best = entries[0].lod
        return [e.phase for e in entries if best - e.lod <= self.lod_tolerance]

    def rf_seed(self, a: int, b: int, phase: int) -> float:
        """
        Two-point recombination fraction for `a`, `b` under `phase`, or the
        default seed if the table has no such entry.
        """
        if phase == UNDEFINED_PHASE:
            return self.default_rf
        rf = self.twopt.rf_for_phase(a, b, phase)
        return self.default_rf if rf is None else rf

    def rf_seeds(self, order: Sequence[int], phases: Sequence[int]) -> np.ndarray:
        """
        Seeds for every adjacent pair of `order` given its phase vector.
        """
        order = np.asarray(order)
        if len(phases) != max(order.size - 1, 0):
            raise ValueError(
                f"Expected {max(order.size - 1, 0)} phases for {order.size} markers, got {len(phases)}."
            )
        return np.array(
            [self.rf_seed(order[j], order[j + 1], int(phases[j])) for j in range(order.size - 1)],
            dtype=np.float64,
        )

    def reorder_phases(
        self,
        original: Sequence[int],
        phases: Sequence[int],
        order: Sequence[int],
        first_edge: int,
        last_edge: int,
    ) -> np.ndarray:
        """
        Phase vector of a re-ordering of `original`.

        Edges `first_edge..last_edge` (inclusive) of the new order are
        derived from the markers' linkage signs in the original sequence; all
        other edges keep the original phase.
        """
        original = list(np.asarray(original).tolist())
        position = {m: i for i, m in enumerate(original)}
        signs = linkage_signs(phases)
        new = np.array(phases, dtype=np.int64)
        order = np.asarray(order)
        for j in range(first_edge, last_edge + 1):
            a = position[int(order[j])]
            b = position[int(order[j + 1])]
            new[j] = phase_code(signs[a], signs[b])
        return new
