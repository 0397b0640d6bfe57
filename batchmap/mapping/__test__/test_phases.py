import numpy as np
import pytest

from batchmap.mapping.__test__.fixtures import make_twopt
from batchmap.mapping.phases import (
    ALL_PHASES,
    NO_INFO_RF,
    PhaseResolver,
    combine_phases,
    linkage_signs,
    phase_code,
)


def test_phase_code_table():
    assert phase_code((1, 1), (1, 1)) == 1
    assert phase_code((1, 1), (1, -1)) == 2
    assert phase_code((1, 1), (-1, 1)) == 3
    assert phase_code((-1, 1), (1, -1)) == 4


def test_linkage_signs_reproduce_adjacent_phases():
    phases = [2, 3, 4, 1, 2]
    signs = linkage_signs(phases)
    assert signs.shape == (6, 2)
    assert signs[0].tolist() == [1, 1]
    for i, code in enumerate(phases):
        assert phase_code(signs[i], signs[i + 1]) == code


def test_combine_phases_varies_last_position_fastest():
    combos = combine_phases([[1], [2, 3], [1, 4]])
    assert combos.tolist() == [[1, 2, 1], [1, 2, 4], [1, 3, 1], [1, 3, 4]]
    assert combine_phases([]).shape == (1, 0)


def test_candidate_phases_within_tolerance():
    twopt = make_twopt(4, ambiguous=[(1, 2)], uninformative=[(2, 3)])
    resolver = PhaseResolver(twopt)
    assert resolver.candidate_phases(0, 1) == [1]
    assert resolver.candidate_phases(2, 1) == [2, 3]
    assert resolver.candidate_phases(2, 3) == list(ALL_PHASES)


def test_rf_seeds_fall_back_to_default():
    twopt = make_twopt(4, uninformative=[(1, 2)])
    resolver = PhaseResolver(twopt)
    seeds = resolver.rf_seeds([0, 1, 2, 3], [1, 2, 3])
    np.testing.assert_allclose(seeds, [0.01, NO_INFO_RF, 0.01])
    # A phase without a two-point estimate, and an undefined phase
    assert resolver.rf_seed(0, 1, 4) == NO_INFO_RF
    assert resolver.rf_seed(0, 1, -1) == NO_INFO_RF
    with pytest.raises(ValueError):
        resolver.rf_seeds([0, 1, 2], [1])


def test_reorder_phases_follows_linkage_signs():
    resolver = PhaseResolver(make_twopt(4))
    original = [0, 1, 2, 3]
    phases = [2, 3, 1]
    new = resolver.reorder_phases(original, phases, [0, 2, 1, 3], 0, 2)

    signs = linkage_signs(phases)
    assert new.tolist() == [
        phase_code(signs[0], signs[2]),
        phase_code(signs[2], signs[1]),
        phase_code(signs[1], signs[3]),
    ]
    # Edges outside the range keep their phase
    kept = resolver.reorder_phases(original, phases, [0, 1, 3, 2], 2, 2)
    assert kept[:2].tolist() == [2, 3]


def test_resolver_requires_twopoint_table():
    with pytest.raises(TypeError):
        PhaseResolver({})
