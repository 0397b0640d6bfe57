import logging
import time
from typing import Iterable, Optional, Sequence

import numpy as np

from batchmap.genobj.seqobj import SequenceObject
from batchmap.mapping.estimator import MultipointEstimator, estimate_order


log = logging.getLogger(__name__)


def map_sequence(
    input_seq: SequenceObject,
    estimator: MultipointEstimator,
    phases: Optional[Sequence[int]] = None,
    tol: float = 1e-4,
    n_workers: int = 1,
    verbosity: Optional[Iterable[str]] = None,
) -> SequenceObject:
    """
    Construct the linkage map of a sequence in its given order.

    With known linkage phases (passed in `phases`, or carried by a fully
    phased `input_seq`) the estimator is called once. Otherwise the phases are
    searched marker by marker with `seeded_map` and no seeds.

    Args:
        input_seq (SequenceObject): The ordered sequence.
        estimator (MultipointEstimator): The multipoint estimator.
        phases (sequence of int, optional): Linkage phases between adjacent markers.
        tol (float): Convergence tolerance.
        n_workers (int): Concurrent estimator calls during the phase search.
        verbosity (iterable of str, optional): Progress tags; "time" logs the mapping time.

    Returns:
        **SequenceObject:** A new, mapped sequence.
    """
    if not isinstance(input_seq, SequenceObject):
        raise TypeError(f"Expected a SequenceObject, got {type(input_seq).__name__}.")
    if len(input_seq) < 2:
        raise ValueError("The sequence must have at least 2 markers.")
    verbosity = set(verbosity or ())

    if phases is None:
        if not input_seq.is_phased:
            from batchmap.mapping.seeded import seeded_map

            return seeded_map(
                input_seq, estimator, seeds=(), tol=tol, n_workers=n_workers, verbosity=verbosity
            )
        phases = input_seq.seq_phases

    phases = np.asarray(phases, dtype=np.int64)
    if phases.size != len(input_seq) - 1:
        raise ValueError(
            f"Expected {len(input_seq) - 1} phases for {len(input_seq)} markers, got {phases.size}."
        )

    start = time.time()
    result = estimate_order(input_seq, estimator, input_seq.seq_num, phases, tol=tol)
    if "time" in verbosity:
        log.info(f"Mapped {len(input_seq)} markers in {time.time() - start:.2f}s")

    return input_seq.update(seq_phases=result.phases, seq_rf=result.rf, seq_like=result.loglike)
