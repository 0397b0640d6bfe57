import threading
from typing import Iterable, List, Optional

import numpy as np

from batchmap.genobj.outcrossobj import OutcrossObject
from batchmap.genobj.seqobj import make_seq
from batchmap.mapping.estimator import EstimateResult, MultipointEstimator
from batchmap.twopt.table import TwoPointEntry, TwoPointTable


def true_phase(a: int, b: int) -> int:
    return 1 + (min(a, b) % 4)


def make_dataset(n_markers: int, n_individuals: int = 3, phased: bool = True) -> OutcrossObject:
    # Every genotype column carries its marker index + 1 so that the fake
    # estimator can recover the order it was given.
    geno = np.tile(np.arange(1, n_markers + 1), (n_individuals, 1))
    return OutcrossObject(geno=geno, segr_type=np.ones(n_markers, dtype=int), phased=phased)


def make_twopt(
    n_markers: int,
    data: Optional[OutcrossObject] = None,
    uninformative: Iterable[tuple] = (),
    ambiguous: Iterable[tuple] = (),
) -> TwoPointTable:
    """
    Two-point table where every pair supports `true_phase` with rf 0.01 per
    index step. Pairs in `uninformative` are left empty; pairs in
    `ambiguous` support two phases equally.
    """
    skip = {tuple(sorted(p)) for p in uninformative}
    tied = {tuple(sorted(p)) for p in ambiguous}
    entries = {}
    for b in range(1, n_markers):
        for a in range(b):
            if (a, b) in skip:
                continue
            ph = true_phase(a, b)
            rf = min(0.01 * (b - a), 0.45)
            other = 1 + (ph % 4)
            other_lod = 8.0 if (a, b) in tied else 2.0
            entries[(a, b)] = [TwoPointEntry(ph, rf, 8.0), TwoPointEntry(other, 0.3, other_lod)]
    return TwoPointTable(n_markers, entries, data=data)


class FakeEstimator(MultipointEstimator):
    """
    Deterministic stand-in for the multipoint HMM.

    The log-likelihood prefers increasing marker order (each unit of
    displacement between neighbours costs `step_cost`) and true phases (each
    wrong phase costs `phase_cost`). Orders containing a marker listed in
    `fail_markers` do not converge. Recombination fractions are 0.01 per index
    step, or `gap_rf` for the pairs listed in `gaps`. The first `fail_first` calls raise.
    """

    def __init__(
        self,
        step_cost: float = 2.0,
        phase_cost: float = 5.0,
        fail_markers: Iterable[int] = (),
        gaps: Iterable[tuple] = (),
        gap_rf: float = 0.45,
        fail_first: int = 0,
    ) -> None:
        self.step_cost = step_cost
        self.phase_cost = phase_cost
        self.fail_markers = set(fail_markers)
        self.gaps = {tuple(sorted(p)) for p in gaps}
        self.gap_rf = gap_rf
        self.fail_first = fail_first
        self.calls: List[np.ndarray] = []
        self.rf_inits: List[np.ndarray] = []
        self._lock = threading.Lock()

    def estimate(self, geno, segr_type, phases, rf_init, tol):
        order = np.asarray(geno[0], dtype=int) - 1
        with self._lock:
            self.calls.append(order.copy())
            self.rf_inits.append(np.asarray(rf_init).copy())
            crash = len(self.calls) <= self.fail_first
        if crash:
            raise RuntimeError("estimator crashed")
        if self.fail_markers.intersection(order.tolist()):
            return EstimateResult(loglike=float("nan"), phases=np.asarray(phases), rf=np.asarray(rf_init))

        steps = np.diff(order)
        loglike = -self.step_cost * float(np.sum(np.abs(steps - 1)))
        for j, ph in enumerate(phases):
            if ph != true_phase(order[j], order[j + 1]):
                loglike -= self.phase_cost
        rf = np.minimum(0.01 * np.abs(steps), 0.45).astype(float)
        for j in range(steps.size):
            if tuple(sorted((order[j], order[j + 1]))) in self.gaps:
                rf[j] = self.gap_rf
        return EstimateResult(loglike=loglike, phases=np.asarray(phases), rf=rf)


def make_sequence(markers, n_markers: Optional[int] = None, phases=None, **twopt_kwargs):
    markers = list(markers)
    n = n_markers if n_markers is not None else max(markers) + 1
    data = make_dataset(n)
    twopt = make_twopt(n, data=data, **twopt_kwargs)
    return make_seq(twopt, markers, phases)


def true_phases(markers) -> List[int]:
    markers = list(markers)
    return [true_phase(markers[j], markers[j + 1]) for j in range(len(markers) - 1)]
