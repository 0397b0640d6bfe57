import logging
import math
import time
import warnings
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Sequence, Union

import numpy as np

from batchmap.genobj.seqobj import UNDEFINED_PHASE, SequenceObject, make_seq
from batchmap.mapping.distance import max_distance
from batchmap.mapping.estimator import MultipointEstimator
from batchmap.mapping.map import map_sequence
from batchmap.mapping.ripple import ripple_order
from batchmap.mapping.seeded import seeded_map


log = logging.getLogger(__name__)

OrderFunction = Callable[..., SequenceObject]


@dataclass
class Batch:
    """
    A contiguous run of markers of a sequence, mapped on its own.
    """
    markers: List[int]
    size: int
    overlap: int

    def __len__(self) -> int:
        return len(self.markers)

    def __iter__(self):
        return iter(self.markers)


@dataclass
class BatchMapResult:
    """
    Output of `map_overlapping_batches`: the stitched genome-wide map and the
    final map of every batch.
    """
    map: SequenceObject
    batches: List[SequenceObject] = field(repr=False)


def _markers(input_seq: Union[SequenceObject, Sequence[int]]) -> List[int]:
    if isinstance(input_seq, SequenceObject):
        return input_seq.seq_num.tolist()
    return [int(m) for m in input_seq]


def generate_overlapping_batches(
    input_seq: Union[SequenceObject, Sequence[int]],
    size: int = 50,
    overlap: int = 15,
    silent: bool = False,
) -> List[Batch]:
    """
    Split a sequence into overlapping batches.

    The first batch holds the first `size` markers. Every following batch
    starts `overlap` markers before the end of the previous one, so that
    consecutive batches share `overlap + 1` markers (`overlap` adjacent
    pairs), and ends `size - overlap - 1` markers after it. The last batch is
    clipped to the end of the sequence.

    Args:
        input_seq (SequenceObject or sequence of int): The ordered markers.
        size (int): Nominal batch size.
        overlap (int): Overlap between consecutive batches.
        silent (bool): If True, do not warn about poor parameter choices.

    Returns:
        **list of Batch:** The batches, in sequence order. Empty when `size`
        exceeds the number of markers.
    """
    if size < 2:
        raise ValueError("size must be at least 2.")
    if overlap < 0 or overlap + 1 >= size:
        raise ValueError("overlap must be non-negative and smaller than size - 1.")

    markers = _markers(input_seq)
    n = len(markers)
    start, end = 0, size
    res: List[Batch] = []
    while end <= n:
        res.append(Batch(markers=markers[start:end], size=size, overlap=overlap))
        start = end - overlap - 1
        if end == n:
            break
        end = min(end + size - overlap - 1, n)

    sizes = np.array([len(b) for b in res])
    if len(res) < 2 and not silent:
        warnings.warn("You should at least have two overlapping batches. Reconsider the size parameter.")
    if np.any(sizes / size > 1.25) and not silent:
        warnings.warn("One group is 25% bigger than the group size. Consider adjusting parameters.")
    return res


def pick_batch_size(
    input_seq: Union[SequenceObject, Sequence[int]],
    size: int = 50,
    overlap: int = 15,
    around: int = 5,
) -> int:
    """
    Suggest a batch size for `map_overlapping_batches`.

    Every size within `around` of `size` is tried and the one giving the most
    even batch lengths (smallest spread between the longest and shortest
    batch) is returned. Ties are resolved in favour of the larger size.

    Args:
        input_seq (SequenceObject or sequence of int): The ordered markers.
        size (int): Center of the searched range.
        overlap (int): Overlap between batches.
        around (int): Largest distance from `size` to search.

    Returns:
        **int:** The chosen batch size.
    """
    test_sizes = [size] + list(range(size - 1, size - around - 1, -1)) + list(range(size + 1, size + around + 1))
    best_size, best_spread = None, math.inf
    for s in test_sizes:
        try:
            batches = generate_overlapping_batches(input_seq, s, overlap, silent=True)
        except ValueError:
            continue
        lengths = [len(b) for b in batches]
        spread = max(lengths) - min(lengths) if lengths else math.inf
        if best_size is None or spread < best_spread or (spread == best_spread and s > best_size):
            best_size, best_spread = s, spread
    if best_size is None:
        raise ValueError(f"No valid batch size within {around} of {size} for overlap {overlap}.")
    return best_size


def _seed_phases(n_markers: int, seeds: Optional[Sequence[int]]) -> np.ndarray:
    phases = np.full(max(n_markers - 1, 0), UNDEFINED_PHASE, dtype=np.int64)
    if seeds is not None:
        seeds = np.asarray(seeds, dtype=np.int64)[:phases.size]
        phases[:seeds.size] = seeds
    return phases


def _finite_like(seq: Optional[SequenceObject]) -> bool:
    return seq is not None and seq.seq_like is not None and math.isfinite(seq.seq_like)


def _fallback_reorder(
    batch_seq: SequenceObject,
    estimator: MultipointEstimator,
    batch_no: int,
    ws: int,
    start: int,
    ripple_cores: int,
    phase_cores: int,
    tol: float,
    verbosity: Iterable[str],
    reason: str = "",
) -> SequenceObject:
    warnings.warn(
        f"Error during initial map calculation of batch {batch_no}{reason}. Trying to fix by reordering..."
    )
    failed = batch_seq.update(
        seq_phases=batch_seq.seq_phases, seq_rf=batch_seq.seq_rf, seq_like=-math.inf
    )
    lg = ripple_order(
        failed,
        estimator,
        ws=ws,
        start=start,
        no_reverse=True,
        tol=tol,
        n_workers=ripple_cores,
        verbosity=verbosity,
        phase_cores=phase_cores,
    )
    if not _finite_like(lg):
        raise RuntimeError(
            f"Could not fix batch {batch_no}. You need to reorder or provide more informative markers."
        )
    return lg


def _retry_order(
    lg: SequenceObject,
    fun_order: Optional[OrderFunction],
    estimator: MultipointEstimator,
    batch_no: int,
    start: int,
    max_dist: float,
    ws: int,
    increase_every: int,
    max_tries: int,
    min_tries: int,
    ripple_cores: int,
    verbosity: Iterable[str],
    tol: float = 1e-4,
    **kwargs: Any,
) -> SequenceObject:
    """
    Re-order a batch map while it has a gap above `max_dist` or fewer than
    `min_tries` rounds have run. The window size grows by one every
    `increase_every` rounds; after `max_tries` rounds a warning is issued and
    the best map found is kept.
    """
    if fun_order is None:
        return lg

    best = lg
    round_no = 1
    increment = 0
    while max_distance(lg.seq_rf) > max_dist or round_no <= min_tries:
        if round_no > max_tries:
            warnings.warn(f"Algorithm could not solve gaps in batch {batch_no}.")
            return best
        if round_no % increase_every == 0:
            increment += 1
        if "order" in verbosity:
            log.info(f"Reordering batch {batch_no}, round {round_no}, window size {ws + increment}")
        lg = fun_order(
            lg,
            estimator=estimator,
            start=start,
            ws=ws + increment,
            n_workers=ripple_cores,
            verbosity=verbosity,
            tol=tol,
            **kwargs,
        )
        if _finite_like(lg) and (not _finite_like(best) or lg.seq_like > best.seq_like):
            best = lg
        round_no += 1
    return lg


def _stitch(batch_maps: List[SequenceObject], overlap: int):
    final_seq = batch_maps[0].seq_num.tolist()
    final_phase = batch_maps[0].seq_phases.tolist()
    final_rf = batch_maps[0].seq_rf.tolist()
    for lg in batch_maps[1:]:
        num = lg.seq_num.tolist()
        phases = lg.seq_phases.tolist()
        rf = lg.seq_rf.tolist()

        # Markers: overwrite from the start of the overlap, then append
        start = len(final_seq) - overlap - 1
        final_seq[start:] = num[:overlap + 1]
        final_seq.extend(num[overlap + 1:])

        # Phases and rf are one shorter, so the overlap starts one earlier
        start = len(final_phase) - overlap
        final_phase[start:] = phases[:overlap]
        final_phase.extend(phases[overlap:])
        final_rf[start:] = rf[:overlap]
        final_rf.extend(rf[overlap:])
    return final_seq, final_phase, final_rf


def map_overlapping_batches(
    input_seq: SequenceObject,
    estimator: MultipointEstimator,
    size: int = 50,
    overlap: int = 15,
    fun_order: Optional[OrderFunction] = None,
    phase_cores: int = 1,
    ripple_cores: int = 1,
    verbosity: Optional[Iterable[str]] = None,
    max_dist: float = math.inf,
    ws: int = 4,
    increase_every: int = 4,
    max_tries: int = 10,
    min_tries: int = 0,
    seeds: Optional[Sequence[int]] = None,
    tol: float = 1e-4,
    **kwargs: Any,
) -> BatchMapResult:
    """
    Map a long sequence with overlapping batches.

    The sequence is split into batches (see `generate_overlapping_batches`).
    The first batch is mapped from scratch; every following batch takes over
    the order and phases of its predecessor's trailing overlap, which were
    estimated with more information, and maps the remaining markers with
    `seeded_map`. When `fun_order` is given (e.g. `ripple_order`), each batch
    is re-ordered at least `min_tries` times and for as long as two adjacent
    markers are more than `max_dist` cM apart. The batch maps are finally
    stitched together and the whole sequence is mapped once more.

    Args:
        input_seq (SequenceObject): The ordered sequence.
        estimator (MultipointEstimator): The multipoint estimator.
        size (int): Nominal batch size (see `pick_batch_size`).
        overlap (int): Overlap between batches.
        fun_order (callable, optional): Re-ordering function called as
            `fun_order(seq, estimator=..., start=..., ws=..., n_workers=..., verbosity=..., tol=..., **kwargs)`.
        phase_cores (int): Concurrent estimator calls while phasing a marker.
        ripple_cores (int): Concurrent estimator calls while re-ordering.
        verbosity (iterable of str, optional): Any of "batch", "order", "position", "time" and "phase".
        max_dist (float): Largest adjacent distance (cM) tolerated in a batch before re-ordering.
        ws (int): Window size of the re-ordering function.
        increase_every (int): Increase the window size by one every n-th re-ordering round.
        max_tries (int): Maximum number of re-ordering rounds per batch.
        min_tries (int): Minimum number of re-ordering rounds per batch.
        seeds (sequence of int, optional): Phases seeding the first batch.
        tol (float): Convergence tolerance.
        **kwargs: Passed on to `fun_order`.

    Returns:
        **BatchMapResult:** The final map and the map of every batch.
    """
    if not isinstance(input_seq, SequenceObject):
        raise TypeError(f"Expected a SequenceObject, got {type(input_seq).__name__}.")
    if input_seq.twopt is None:
        raise ValueError("The sequence must reference its two-point table.")
    if increase_every < 1:
        raise ValueError("increase_every must be at least 1.")
    verbosity = set(verbosity or ())
    twopt = input_seq.twopt
    t0 = time.time()

    batches = generate_overlapping_batches(input_seq, size, overlap)
    if not batches:
        raise ValueError(
            f"No batch of size {size} fits a sequence of {len(input_seq)} markers. Reduce the size parameter."
        )
    if "batch" in verbosity:
        log.info(f"Have {len(batches)} batches.")
        log.info(f"The number of markers in the final batch is: {len(batches[-1])}")
        log.info("Processing batch 1...")

    retry = dict(
        max_dist=max_dist,
        ws=ws,
        increase_every=increase_every,
        max_tries=max_tries,
        min_tries=min_tries,
        ripple_cores=ripple_cores,
        verbosity=verbosity,
        tol=tol,
    )

    first = make_seq(twopt, batches[0].markers, _seed_phases(len(batches[0]), seeds))
    lg = None
    reason = ""
    try:
        if seeds is None:
            lg = map_sequence(first, estimator, tol=tol, n_workers=phase_cores, verbosity=verbosity)
        else:
            lg = seeded_map(first, estimator, seeds=seeds, tol=tol, n_workers=phase_cores, verbosity=verbosity)
    except Exception as e:
        reason = f" ({e})"
    if not _finite_like(lg):
        lg = _fallback_reorder(first, estimator, 1, ws, 0, ripple_cores, phase_cores, tol, verbosity, reason)
    lg = _retry_order(lg, fun_order, estimator, 1, start=0, **retry, **kwargs)
    lgs = [lg]

    for i in range(1, len(batches)):
        batch_no = i + 1
        if "batch" in verbosity:
            log.info(f"Batch {i} map:\n{lgs[i - 1]}")
            log.info(f"Processing batch {batch_no}...")

        # The overlap was estimated with more information in the previous batch
        prev = lgs[i - 1]
        batch_seeds = prev.seq_phases[len(prev.seq_phases) - overlap:]
        markers = list(batches[i].markers)
        markers[:overlap + 1] = prev.seq_num[len(prev) - overlap - 1:].tolist()
        batches[i] = Batch(markers=markers, size=size, overlap=overlap)

        current = make_seq(twopt, markers, _seed_phases(len(markers), batch_seeds))
        lg = None
        reason = ""
        try:
            lg = seeded_map(
                current, estimator, seeds=batch_seeds, tol=tol, n_workers=phase_cores, verbosity=verbosity
            )
        except Exception as e:
            reason = f" ({e})"
        if not _finite_like(lg):
            lg = _fallback_reorder(
                current, estimator, batch_no, ws, overlap + 1, ripple_cores, phase_cores, tol, verbosity, reason
            )
        lg = _retry_order(lg, fun_order, estimator, batch_no, start=overlap + 1, **retry, **kwargs)
        lgs.append(lg)

    final_seq, final_phase, final_rf = _stitch(lgs, overlap)
    if "batch" in verbosity:
        log.info("Final call to map...")

    # final_rf is informational only; the final map re-estimates every fraction
    log.debug(f"Stitched {len(final_seq)} markers; largest batch gap {max_distance(final_rf):.2f} cM")
    stitched = make_seq(twopt, final_seq, final_phase)
    mp = map_sequence(stitched, estimator, phases=final_phase, tol=tol, verbosity=verbosity)
    if "time" in verbosity:
        log.info(f"Mapped {len(batches)} batches in {time.time() - t0:.2f}s")
    return BatchMapResult(map=mp, batches=lgs)
