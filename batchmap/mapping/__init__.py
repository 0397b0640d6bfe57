from .distance import kosambi, haldane, max_distance
from .estimator import EstimateResult, MultipointEstimator, estimate_order
from .phases import PhaseResolver, combine_phases, linkage_signs, phase_code
from .permutations import perm_tot
from .map import map_sequence
from .seeded import seeded_map
from .ripple import CandidateOrder, RippleReport, ripple_order, ripple_seq
from .batches import (
    Batch,
    BatchMapResult,
    generate_overlapping_batches,
    map_overlapping_batches,
    pick_batch_size,
)

__all__ = [
    'kosambi',
    'haldane',
    'max_distance',
    'EstimateResult',
    'MultipointEstimator',
    'estimate_order',
    'PhaseResolver',
    'combine_phases',
    'linkage_signs',
    'phase_code',
    'perm_tot',
    'map_sequence',
    'seeded_map',
    'CandidateOrder',
    'RippleReport',
    'ripple_order',
    'ripple_seq',
    'Batch',
    'BatchMapResult',
    'generate_overlapping_batches',
    'map_overlapping_batches',
    'pick_batch_size',
]
