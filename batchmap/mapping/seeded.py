import logging
import math
import warnings
from typing import Iterable, Optional, Sequence

import numpy as np

from batchmap.genobj.seqobj import UNDEFINED_PHASE, SequenceObject
from batchmap.mapping.estimator import EstimateResult, MultipointEstimator, estimate_order
from batchmap.mapping.map import map_sequence
from batchmap.mapping.parallel import evaluate_tasks
from batchmap.mapping.phases import PhaseResolver, combine_phases


log = logging.getLogger(__name__)


def seeded_map(
    input_seq: SequenceObject,
    estimator: MultipointEstimator,
    seeds: Optional[Sequence[int]] = None,
    tol: float = 1e-4,
    n_workers: int = 1,
    verbosity: Optional[Iterable[str]] = None,
) -> SequenceObject:
    """
    Construct the linkage map of a sequence after seeding the phases of its
    first positions.

    The phases from the first position not covered by `seeds` onwards are
    chosen one marker at a time, left to right: every plausible two-point
    phase of the new pair is appended to the phases fixed so far, the prefix
    of the sequence up to the new marker is mapped with each candidate, and
    the phase with the highest log-likelihood is kept. Earlier phases are
    never revisited. A final call to `map_sequence` maps the whole sequence
    with the assembled phases.

    Args:
        input_seq (SequenceObject): The ordered sequence.
        estimator (MultipointEstimator): The multipoint estimator.
        seeds (sequence of int, optional): Phase codes of the first positions.
        tol (float): Convergence tolerance.
        n_workers (int): Concurrent estimator calls per phase search step.
        verbosity (iterable of str, optional): Progress tags; "phase" logs each phased marker.

    Returns:
        **SequenceObject:** A new, mapped sequence.
    """
    if not isinstance(input_seq, SequenceObject):
        raise TypeError(f"Expected a SequenceObject, got {type(input_seq).__name__}.")
    seq_num = input_seq.seq_num
    if len(seq_num) < 2:
        raise ValueError("The sequence must have at least 2 markers.")
    verbosity = set(verbosity or ())

    seeds = np.asarray([] if seeds is None else seeds, dtype=np.int64)
    n_edges = len(seq_num) - 1
    if seeds.size > n_edges:
        raise ValueError(f"Got {seeds.size} seeds for a sequence with only {n_edges} phases.")

    resolver = PhaseResolver(input_seq.twopt)
    seq_phase = np.full(n_edges, UNDEFINED_PHASE, dtype=np.int64)
    seq_phase[:seeds.size] = seeds

    for mrk in range(seeds.size, n_edges):
        if "phase" in verbosity:
            log.info(f"Phasing marker {seq_num[mrk + 1]}")

        choices = [[p] for p in seq_phase[:mrk]]
        choices.append(resolver.candidate_phases(seq_num[mrk], seq_num[mrk + 1]))
        ph_init = combine_phases(choices)
        prefix = seq_num[:mrk + 2]

        def _evaluate(phase_vec: np.ndarray) -> EstimateResult:
            return estimate_order(input_seq, estimator, prefix, phase_vec, tol=tol, resolver=resolver)

        results = evaluate_tasks(_evaluate, list(ph_init), n_workers=n_workers)

        best_like = -math.inf
        best_phase = UNDEFINED_PHASE
        for res in results:
            if res.converged and res.loglike > best_like:
                best_like = res.loglike
                best_phase = int(res.phases[mrk])

        if best_phase == UNDEFINED_PHASE:
            warnings.warn(f"Could not determine phase for marker {seq_num[mrk + 1]}.")
        seq_phase[mrk] = best_phase

    return map_sequence(input_seq, estimator, phases=seq_phase, tol=tol, verbosity=verbosity)
