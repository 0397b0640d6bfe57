import numpy as np
import pytest

from batchmap.genobj.seqobj import UNDEFINED_PHASE
from batchmap.mapping.__test__.fixtures import FakeEstimator, make_sequence, true_phases
from batchmap.mapping.map import map_sequence
from batchmap.mapping.seeded import seeded_map


def test_seeded_map_finds_true_phases_one_call_per_marker():
    seq = make_sequence(range(6))
    est = FakeEstimator()

    out = seeded_map(seq, est)

    assert out.seq_phases.tolist() == true_phases(range(6))
    assert out.seq_like == 0.0
    # One plausible phase per pair, then the terminal call over all markers
    assert len(est.calls) == 5 + 1
    assert [len(c) for c in est.calls[:5]] == [2, 3, 4, 5, 6]
    assert est.calls[-1].tolist() == list(range(6))
    # The input sequence is left untouched
    assert seq.seq_like is None
    assert np.all(seq.seq_phases == UNDEFINED_PHASE)


def test_seeded_map_full_seeds_skip_phase_search():
    phases = true_phases(range(6))
    seq = make_sequence(range(6))
    est = FakeEstimator()

    out = seeded_map(seq, est, seeds=phases)

    assert len(est.calls) == 1
    assert out.seq_phases.tolist() == phases


def test_seeded_map_keeps_seeds_even_when_wrong():
    seq = make_sequence(range(5))
    est = FakeEstimator()
    wrong = 1 + (true_phases(range(5))[0] % 4)

    out = seeded_map(seq, est, seeds=[wrong])

    assert out.seq_phases[0] == wrong
    assert out.seq_phases[1:].tolist() == true_phases(range(5))[1:]
    assert out.seq_like == -5.0


def test_seeded_map_tries_every_phase_without_twopoint_information():
    seq = make_sequence(range(5), uninformative=[(2, 3)])
    est = FakeEstimator()

    out = seeded_map(seq, est)

    # Pair (2, 3) contributes four candidates instead of one
    assert len(est.calls) == 4 + 3 + 1
    assert out.seq_phases.tolist() == true_phases(range(5))


def test_seeded_map_resolves_ambiguous_twopoint_phases():
    seq = make_sequence(range(5), ambiguous=[(1, 2)])
    est = FakeEstimator()

    out = seeded_map(seq, est, n_workers=2)

    assert len(est.calls) == 2 + 3 + 1
    assert out.seq_phases.tolist() == true_phases(range(5))


def test_seeded_map_warns_and_leaves_phase_undefined_when_nothing_converges():
    seq = make_sequence(range(6))
    est = FakeEstimator(fail_markers=[4])

    with pytest.warns(UserWarning, match="Could not determine phase for marker 4"):
        out = seeded_map(seq, est)

    assert out.seq_phases[:3].tolist() == true_phases(range(6))[:3]
    assert out.seq_phases[3] == UNDEFINED_PHASE
    assert out.seq_phases[4] == UNDEFINED_PHASE
    assert np.isnan(out.seq_like)


def test_seeded_map_rejects_bad_input():
    est = FakeEstimator()
    with pytest.raises(TypeError):
        seeded_map([0, 1, 2], est)
    with pytest.raises(ValueError, match="at least 2 markers"):
        seeded_map(make_sequence([0], n_markers=3), est)
    with pytest.raises(ValueError, match="seeds"):
        seeded_map(make_sequence(range(3)), est, seeds=[1, 1, 1])


def test_map_sequence_with_phases_calls_estimator_once():
    seq = make_sequence(range(4))
    est = FakeEstimator()

    out = map_sequence(seq, est, phases=true_phases(range(4)))

    assert len(est.calls) == 1
    assert out.seq_like == 0.0
    np.testing.assert_allclose(out.seq_rf, [0.01, 0.01, 0.01])


def test_map_sequence_without_phases_searches_them():
    seq = make_sequence(range(4))
    est = FakeEstimator()

    out = map_sequence(seq, est)

    assert out.seq_phases.tolist() == true_phases(range(4))
    assert len(est.calls) == 3 + 1


def test_map_sequence_seeds_uninformative_pairs_with_default_rf():
    seq = make_sequence(range(4), uninformative=[(1, 2)])
    est = FakeEstimator()

    map_sequence(seq, est, phases=true_phases(range(4)))

    np.testing.assert_allclose(est.rf_inits[-1], [0.01, 0.49, 0.01])
