import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from batchmap.genobj.seqobj import UNDEFINED_PHASE, SequenceObject
from batchmap.mapping.estimator import EstimateResult, MultipointEstimator, estimate_order
from batchmap.mapping.parallel import cap_workers, evaluate_tasks
from batchmap.mapping.permutations import forward_permutations, n_permutations, perm_tot
from batchmap.mapping.phases import PhaseResolver


log = logging.getLogger(__name__)

LEADING = 'leading'
INTERIOR = 'interior'
TRAILING = 'trailing'


@dataclass
class CandidateOrder:
    """
    One re-ordering of a sequence evaluated at a window placement.
    """
    order: np.ndarray = field(repr=False)
    phases: np.ndarray = field(repr=False)
    loglike: float
    lod: float = 0.0


@dataclass
class RippleReport:
    """
    Candidate orders of one window placement.

    `candidates` are sorted by LOD score (best first, ties in enumeration
    order) when more than one of them is within `threshold` of the best, and
    kept in enumeration order otherwise.
    """
    kind: str
    start: int
    ws: int
    threshold: float
    sequence: np.ndarray = field(repr=False)
    candidates: List[CandidateOrder] = field(repr=False)
    phased: bool = True

    @property
    def alternatives(self) -> List[CandidateOrder]:
        return [c for c in self.candidates if c.lod > -self.threshold]

    @property
    def ok(self) -> bool:
        """
        True if no alternative order is competitive with the best one.
        """
        return len(self.alternatives) <= 1

    @property
    def n_markers(self) -> int:
        return int(len(self.sequence))

    def _span(self) -> Tuple[int, int]:
        # Window plus its neighbouring markers, as shown in the report rows
        lo = max(self.start - 1, 0)
        hi = min(self.start + self.ws, self.n_markers - 1)
        return lo, hi

    def header(self) -> str:
        seq = [str(m) for m in self.sequence]
        s, ws = self.start, self.ws
        if self.kind == LEADING:
            parts = seq[:ws] + ['|'] + seq[ws:ws + 1] + ['...']
        elif self.kind == TRAILING:
            parts = seq[s - 1:s] + ['|'] + seq[s:]
        else:
            parts = ['...'] + seq[s - 1:s] + ['|'] + seq[s:s + ws] + ['|'] + seq[s + ws:s + ws + 1] + ['...']
        return '-'.join(parts)

    def format(self) -> str:
        """
        Text report of the placement: the window header followed by either
        `OK` or the table of alternative orders.
        """
        if self.ok:
            return f"{self.header()} OK"

        lo, hi = self._span()
        lead = '  ...' if lo > 0 else '  '
        tail = '...' if hi < self.n_markers - 1 else ''
        lines = [self.header(), '', '  Alternative orders:']
        for c in self.alternatives:
            markers = ' '.join(str(m) for m in c.order[lo:hi + 1])
            row = f"{lead}{markers}{tail} : {c.lod:.2f}"
            if self.phased:
                phases = ' '.join(str(p) for p in c.phases[lo:hi])
                row += f" ( linkage phases: {'...' if lo > 0 else ''}{phases}{tail} )"
            lines.append(row)
        return '\n'.join(lines)

    def to_frame(self) -> pd.DataFrame:
        """
        One row per candidate: the window's marker order, phases, log-likelihood and LOD.
        """
        lo, hi = self._span()
        return pd.DataFrame({
            'window': [' '.join(str(m) for m in c.order[self.start:self.start + self.ws]) for c in self.candidates],
            'phases': [' '.join(str(p) for p in c.phases[lo:hi]) for c in self.candidates],
            'loglike': [c.loglike for c in self.candidates],
            'lod': [c.lod for c in self.candidates],
        })


def window_placements(n_markers: int, ws: int) -> Iterator[Tuple[str, int]]:
    """
    Window placements of a sequence: the leading window, every interior
    window sliding by one marker, and the trailing window. Yields
    `(kind, start)` with 0-based window starts.
    """
    yield LEADING, 0
    for start in range(1, n_markers - ws):
        yield INTERIOR, start
    yield TRAILING, n_markers - ws


def window_orders(seq_num: Sequence[int], start: int, ws: int, no_reverse: bool = False) -> np.ndarray:
    """
    Every order of `seq_num` obtained by permuting the `ws` markers starting
    at `start`; the original order comes first.
    """
    seq_num = np.asarray(seq_num, dtype=np.int64)
    window = seq_num[start:start + ws]
    perms = forward_permutations(window) if no_reverse else perm_tot(window)
    orders = np.tile(seq_num, (perms.shape[0], 1))
    orders[:, start:start + ws] = perms
    return orders


def edge_range(n_markers: int, start: int, ws: int) -> Tuple[int, int]:
    """
    First and last (inclusive) adjacent pair touched by a window.
    """
    return max(start - 1, 0), min(start + ws - 1, n_markers - 2)


def lod_scores(loglikes: Sequence[float]) -> np.ndarray:
    """
    LOD of each log-likelihood relative to the best one, rounded to two
    decimals. Non-finite log-likelihoods get -inf.
    """
    ll = np.asarray(loglikes, dtype=np.float64)
    finite = np.isfinite(ll)
    lod = np.full(ll.shape, -np.inf)
    if finite.any():
        best = ll[finite].max()
        lod[finite] = np.round((ll[finite] - best) / math.log(10), 2) + 0.0
    return lod


def _candidate_phases(
    resolver: PhaseResolver, input_seq: SequenceObject, orders: np.ndarray, start: int, ws: int
) -> List[np.ndarray]:
    first, last = edge_range(len(input_seq), start, ws)
    return [
        resolver.reorder_phases(input_seq.seq_num, input_seq.seq_phases, order, first, last)
        for order in orders
    ]


def _score_window(
    input_seq: SequenceObject,
    estimator: MultipointEstimator,
    resolver: PhaseResolver,
    start: int,
    ws: int,
    tol: float,
    n_workers: int,
    no_reverse: bool = False,
) -> Tuple[np.ndarray, List[np.ndarray], List[EstimateResult]]:
    orders = window_orders(input_seq.seq_num, start, ws, no_reverse=no_reverse)
    phases = _candidate_phases(resolver, input_seq, orders, start, ws)

    def _evaluate(task: Tuple[np.ndarray, np.ndarray]) -> EstimateResult:
        order, phase_vec = task
        return estimate_order(input_seq, estimator, order, phase_vec, tol=tol, resolver=resolver)

    results = evaluate_tasks(_evaluate, list(zip(orders, phases)), n_workers=n_workers)
    return orders, phases, results


def ripple_seq(
    input_seq: SequenceObject,
    estimator: MultipointEstimator,
    ws: int = 4,
    LOD: float = 3,
    tol: float = 1e-1,
    n_workers: int = 1,
) -> List[RippleReport]:
    """
    Compare plausible alternative orders for a mapped sequence.

    A window of `ws` adjacent markers slides along the sequence; at each
    placement all `ws!` orders of the window are evaluated with the
    multipoint estimator, the rest of the sequence being kept. Orders whose
    LOD score relative to the best order is above `-LOD` are reported. The
    sequence itself is not modified.

    Large window sizes make computations very slow, especially when many
    markers are partially informative.

    Args:
        input_seq (SequenceObject): A mapped sequence with a predefined order.
        estimator (MultipointEstimator): The multipoint estimator.
        ws (int): Window size, at least 2.
        LOD (float): LOD threshold; alternatives with LOD less than or equal to `-LOD` are not shown.
        tol (float): Convergence tolerance for the estimator.
        n_workers (int): Concurrent estimator calls per placement.

    Returns:
        **list of RippleReport:** One report per window placement, leading window first.
    """
    if not isinstance(input_seq, SequenceObject):
        raise TypeError(f"Expected a SequenceObject, got {type(input_seq).__name__}.")
    if ws < 2:
        raise ValueError("ws must be greater than or equal to 2.")
    if ws > 5:
        warnings.warn("This operation may take a VERY long time for ws > 5.")
    n_markers = len(input_seq)
    if n_markers <= ws:
        raise ValueError(
            f"Length of sequence ({n_markers}) is not greater than ws ({ws}). "
            "Compare all orders of the sequence instead."
        )
    if not input_seq.is_mapped:
        raise ValueError("The sequence must be mapped before searching for alternative orders.")

    resolver = PhaseResolver(input_seq.twopt)
    phased = input_seq.data.phased if input_seq.data is not None else True
    log.debug(f"Evaluating {n_permutations(ws)} orders at each of {n_markers - ws + 1} window placements")
    reports = []
    for kind, start in window_placements(n_markers, ws):
        orders, phases, results = _score_window(input_seq, estimator, resolver, start, ws, tol, n_workers)
        lod = lod_scores([r.loglike for r in results])
        if not np.isfinite(lod).any():
            log.warning(f"No order converged for the window starting at marker {input_seq.seq_num[start]}.")

        candidates = [
            CandidateOrder(order=o, phases=p, loglike=r.loglike, lod=float(d))
            for o, p, r, d in zip(orders, phases, results, lod)
        ]
        if int(np.sum(lod > -LOD)) > 1:
            candidates = sorted(candidates, key=lambda c: -c.lod)

        report = RippleReport(
            kind=kind,
            start=start,
            ws=ws,
            threshold=LOD,
            sequence=input_seq.seq_num,
            candidates=candidates,
            phased=phased,
        )
        log.info(report.format())
        reports.append(report)
    return reports


def ripple_order(
    input_seq: SequenceObject,
    estimator: MultipointEstimator,
    ws: int = 4,
    start: int = 0,
    no_reverse: bool = False,
    tol: float = 1e-4,
    n_workers: int = 1,
    verbosity: Optional[Iterable[str]] = None,
    phase_cores: int = 1,
) -> SequenceObject:
    """
    Improve the order of a sequence by adopting better window permutations.

    The window slides from `start` to the end of the sequence. At every
    placement all orders of the window are mapped and the best one replaces
    the current map if its log-likelihood is higher. A sequence whose phases
    are not all known (such as a sequence that failed to map) has each
    candidate order phased with `seeded_map`.

    Args:
        input_seq (SequenceObject): The sequence to re-order. An unmapped or failed
            sequence is treated as having log-likelihood -inf.
        estimator (MultipointEstimator): The multipoint estimator.
        ws (int): Window size, at least 2.
        start (int): 0-based position of the first window; markers before it keep their place.
        no_reverse (bool): Skip permutations that mirror an earlier one.
        tol (float): Convergence tolerance.
        n_workers (int): Concurrent candidate evaluations per placement.
        verbosity (iterable of str, optional): Progress tags; "position" logs each window and
            "order" logs every adopted re-ordering.
        phase_cores (int): Concurrent estimator calls while phasing a candidate order; capped so that
            `n_workers * phase_cores` does not exceed the available cores.

    Returns:
        **SequenceObject:** The best map found, or `input_seq` unchanged.
    """
    if not isinstance(input_seq, SequenceObject):
        raise TypeError(f"Expected a SequenceObject, got {type(input_seq).__name__}.")
    if ws < 2:
        raise ValueError("ws must be greater than or equal to 2.")
    if start < 0:
        raise ValueError("start must be non-negative.")
    verbosity = set(verbosity or ())

    n_markers = len(input_seq)
    ws = min(ws, n_markers)
    resolver = PhaseResolver(input_seq.twopt)
    current = input_seq
    inner_workers = cap_workers(n_workers, phase_cores)

    for pos in range(start, n_markers - ws + 1):
        if "position" in verbosity:
            log.info(f"Ripple window at position {pos + 1} of {n_markers}")
        current_like = current.seq_like if current.seq_like is not None else -math.inf
        if not math.isfinite(current_like):
            current_like = -math.inf

        if current.is_phased:
            orders, _, results = _score_window(
                current, estimator, resolver, pos, ws, tol, n_workers, no_reverse=no_reverse
            )
            maps = [
                current.update(seq_phases=r.phases, seq_rf=r.rf, seq_like=r.loglike, seq_num=o)
                for o, r in zip(orders, results)
            ]
        else:
            from batchmap.mapping.seeded import seeded_map

            # Known phases ahead of the window are kept as seeds
            defined = current.seq_phases != UNDEFINED_PHASE
            n_known = int(np.argmin(defined)) if not defined.all() else defined.size
            seeds = current.seq_phases[:min(n_known, max(pos - 1, 0))]
            orders = window_orders(current.seq_num, pos, ws, no_reverse=no_reverse)
            maps = evaluate_tasks(
                lambda o: seeded_map(
                    current.reorder(o), estimator, seeds=seeds, tol=tol, n_workers=inner_workers
                ),
                list(orders),
                n_workers=n_workers,
            )

        best = None
        for m in maps:
            if m.seq_like is not None and math.isfinite(m.seq_like):
                if best is None or m.seq_like > best.seq_like:
                    best = m
        if best is not None and best.seq_like > current_like:
            if "order" in verbosity and not np.array_equal(best.seq_num, current.seq_num):
                log.info(
                    f"Adopted order {' '.join(map(str, best.seq_num[pos:pos + ws]))} at position {pos + 1} "
                    f"(log-likelihood {current_like:.2f} -> {best.seq_like:.2f})"
                )
            current = best

    return current
