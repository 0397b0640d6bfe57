from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("batchmap")
except PackageNotFoundError:
    # package is not installed
    __version__ = "unknown"

from .genobj import OutcrossObject, SequenceObject, make_seq
from .twopt import TwoPointEntry, TwoPointTable, TwoPointReader, pair_index, read_twopt
from .mapping import (
    EstimateResult,
    MultipointEstimator,
    generate_overlapping_batches,
    kosambi,
    map_overlapping_batches,
    map_sequence,
    pick_batch_size,
    ripple_order,
    ripple_seq,
    seeded_map,
)
