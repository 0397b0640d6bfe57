import logging
import warnings

import numpy as np
import pytest

from batchmap.mapping.__test__.fixtures import FakeEstimator, make_sequence, true_phases
from batchmap.mapping.batches import (
    _stitch,
    generate_overlapping_batches,
    map_overlapping_batches,
    pick_batch_size,
)
from batchmap.mapping import parallel, seeded
from batchmap.mapping.map import map_sequence
from batchmap.mapping.ripple import ripple_order


def _spread(n_markers, size, overlap):
    lengths = [len(b) for b in generate_overlapping_batches(range(n_markers), size, overlap, silent=True)]
    return max(lengths) - min(lengths)


def test_generate_overlapping_batches_share_overlap_plus_one_markers():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        batches = generate_overlapping_batches(list(range(100)), size=50, overlap=15)

    assert [b.markers[0] for b in batches] == [0, 34, 68]
    assert [b.markers[-1] for b in batches] == [49, 83, 99]
    assert batches[0].markers == list(range(50))
    for prev, nxt in zip(batches, batches[1:]):
        shared = set(prev.markers) & set(nxt.markers)
        assert len(shared) == 16
        assert prev.markers[-16:] == nxt.markers[:16]


def test_generate_overlapping_batches_accepts_sequences():
    seq = make_sequence(range(30))
    batches = generate_overlapping_batches(seq, size=20, overlap=5)
    assert [len(b) for b in batches] == [20, 16]
    assert list(batches[1]) == list(range(14, 30))


def test_generate_overlapping_batches_warns_about_single_batch():
    with pytest.warns(UserWarning, match="at least have two overlapping batches"):
        batches = generate_overlapping_batches(list(range(50)), size=50, overlap=15)
    assert len(batches) == 1

    with pytest.warns(UserWarning, match="at least have two overlapping batches"):
        batches = generate_overlapping_batches(list(range(30)), size=50, overlap=15)
    assert batches == []


def test_generate_overlapping_batches_rejects_bad_parameters():
    with pytest.raises(ValueError, match="size"):
        generate_overlapping_batches(list(range(10)), size=1, overlap=0)
    with pytest.raises(ValueError, match="overlap"):
        generate_overlapping_batches(list(range(10)), size=5, overlap=4)
    with pytest.raises(ValueError, match="overlap"):
        generate_overlapping_batches(list(range(10)), size=5, overlap=-1)


def test_pick_batch_size_minimises_spread():
    size = pick_batch_size(list(range(100)), size=50, overlap=15, around=5)

    assert 45 <= size <= 55
    spreads = {s: _spread(100, s, 15) for s in range(45, 56)}
    best = min(spreads.values())
    assert spreads[size] == best
    assert size == max(s for s, v in spreads.items() if v == best)


def test_pick_batch_size_prefers_larger_size_on_ties():
    # Sizes 4 and 6 both give batches of equal length
    assert _spread(10, 4, 1) == 0
    assert _spread(10, 5, 1) == 1
    assert _spread(10, 6, 1) == 0
    assert pick_batch_size(list(range(10)), size=5, overlap=1, around=1) == 6


def test_stitch_overwrites_overlap_with_later_batch():
    first = make_sequence(range(6), n_markers=8)
    first = map_sequence(first, FakeEstimator(), phases=true_phases(range(6)))
    second = make_sequence([5, 4, 6, 7], n_markers=8)
    second = map_sequence(second, FakeEstimator(), phases=true_phases([5, 4, 6, 7]))

    seq, phases, rf = _stitch([first, second], overlap=1)

    assert seq == [0, 1, 2, 3, 5, 4, 6, 7]
    assert len(phases) == len(rf) == 7
    assert phases == first.seq_phases[:4].tolist() + second.seq_phases.tolist()
    assert rf == first.seq_rf[:4].tolist() + second.seq_rf.tolist()


def test_map_overlapping_batches_maps_whole_sequence(caplog):
    seq = make_sequence(range(40))
    est = FakeEstimator()

    with caplog.at_level(logging.INFO, logger="batchmap.mapping.batches"):
        result = map_overlapping_batches(seq, est, size=20, overlap=5, phase_cores=2, verbosity=["batch"])

    assert result.map.seq_num.tolist() == list(range(40))
    assert result.map.seq_phases.tolist() == true_phases(range(40))
    assert result.map.seq_like == 0.0
    assert len(result.batches) == 3
    assert [b.seq_num[0] for b in result.batches] == [0, 14, 28]
    # The final call maps every marker at once with the stitched phases
    assert est.calls[-1].tolist() == list(range(40))
    assert "Have 3 batches." in caplog.text
    assert "Final call to map..." in caplog.text


def test_map_overlapping_batches_carries_overlap_phases_forward():
    seq = make_sequence(range(30))
    est = FakeEstimator()
    wrong = 1 + (true_phases(range(30))[0] % 4)

    result = map_overlapping_batches(seq, est, size=20, overlap=5, seeds=[wrong])

    assert result.batches[0].seq_phases[0] == wrong
    first, second = result.batches
    np.testing.assert_array_equal(second.seq_phases[:5], first.seq_phases[-5:])
    assert result.map.seq_phases[0] == wrong


def test_map_overlapping_batches_skips_reordering_without_gaps():
    seq = make_sequence(range(30))
    calls = []

    def fun_order(lg, **kwargs):
        calls.append(kwargs)
        return lg

    map_overlapping_batches(seq, FakeEstimator(), size=20, overlap=5, fun_order=fun_order)
    assert calls == []

    map_overlapping_batches(
        seq, FakeEstimator(), size=20, overlap=5, fun_order=fun_order, min_tries=2, ripple_cores=2, extra="x"
    )
    assert len(calls) == 4
    assert [c["start"] for c in calls] == [0, 0, 6, 6]
    assert [c["ws"] for c in calls] == [4, 4, 4, 4]
    assert all(c["n_workers"] == 2 and c["extra"] == "x" for c in calls)


def test_map_overlapping_batches_gives_up_on_unsolvable_gap():
    seq = make_sequence(range(12))
    est = FakeEstimator(gaps=[(5, 6)])
    window_sizes = []

    def fun_order(lg, **kwargs):
        window_sizes.append(kwargs["ws"])
        return lg.update(lg.seq_phases, lg.seq_rf, lg.seq_like - 1.0)

    with pytest.warns(UserWarning, match="Algorithm could not solve gaps in batch 1"):
        result = map_overlapping_batches(seq, est, size=8, overlap=2, fun_order=fun_order, max_dist=50)

    assert window_sizes[:10] == [4, 4, 4, 5, 5, 5, 5, 6, 6, 6]
    assert len(window_sizes) == 20
    # The best map of each batch is kept
    assert [b.seq_like for b in result.batches] == [0.0, 0.0]


@pytest.mark.parametrize("fail_marker, batch_no", [(3, 1), (10, 2)])
def test_map_overlapping_batches_raises_when_batch_cannot_be_fixed(fail_marker, batch_no):
    seq = make_sequence(range(12))
    est = FakeEstimator(fail_markers=[fail_marker])

    with pytest.warns(UserWarning, match=f"initial map calculation of batch {batch_no}"):
        with pytest.raises(RuntimeError, match=f"Could not fix batch {batch_no}"):
            map_overlapping_batches(seq, est, size=8, overlap=2)


def test_map_overlapping_batches_recovers_from_estimator_error():
    seq = make_sequence(range(12))
    est = FakeEstimator(fail_first=1)

    with pytest.warns(UserWarning, match="estimator crashed"):
        result = map_overlapping_batches(seq, est, size=8, overlap=2)

    assert result.map.seq_num.tolist() == list(range(12))
    assert result.map.seq_like == 0.0


def test_map_overlapping_batches_rejects_bad_input():
    with pytest.raises(TypeError):
        map_overlapping_batches(list(range(10)), FakeEstimator())
    with pytest.warns(UserWarning):
        with pytest.raises(ValueError, match="Reduce the size parameter"):
            map_overlapping_batches(make_sequence(range(10)), FakeEstimator(), size=20, overlap=5)


def _swapped_sequence():
    # Markers 22 and 23 are swapped; they fall in the second batch only
    markers = list(range(30))
    markers[22], markers[23] = markers[23], markers[22]
    return make_sequence(markers, n_markers=30)


def test_map_overlapping_batches_reorders_gap_with_ripple_order():
    seq = _swapped_sequence()
    est = FakeEstimator(phase_cost=0.0)

    with warnings.catch_warnings():
        warnings.simplefilter("error", UserWarning)
        result = map_overlapping_batches(seq, est, size=20, overlap=5, fun_order=ripple_order, max_dist=1.5)

    assert result.map.seq_num.tolist() == list(range(30))
    assert result.map.seq_like == 0.0
    first, second = result.batches
    assert first.seq_num.tolist() == list(range(20))
    # The shared markers keep the order fixed by the first batch
    assert second.seq_num[:6].tolist() == first.seq_num[-6:].tolist()
    assert second.seq_num.tolist() == list(range(14, 30))


def test_map_overlapping_batches_forwards_tolerance_to_reordering():
    seq = _swapped_sequence()
    calls = []

    def fun_order(lg, **kwargs):
        calls.append(kwargs)
        return ripple_order(lg, **kwargs)

    map_overlapping_batches(
        seq, FakeEstimator(phase_cost=0.0), size=20, overlap=5, fun_order=fun_order, max_dist=1.5, tol=1e-3
    )

    assert len(calls) == 1
    assert calls[0]["tol"] == 1e-3
    assert calls[0]["start"] == 6


def test_fallback_reorder_phases_candidates_with_phase_cores(monkeypatch):
    seen = []
    original = seeded.seeded_map

    def recording(*args, **kwargs):
        seen.append(kwargs.get("n_workers", 1))
        return original(*args, **kwargs)

    monkeypatch.setattr(seeded, "seeded_map", recording)
    monkeypatch.setattr(parallel, "available_cores", lambda: 8)

    with pytest.warns(UserWarning, match="estimator crashed"):
        result = map_overlapping_batches(
            make_sequence(range(12)), FakeEstimator(fail_first=1), size=8, overlap=2, phase_cores=2
        )

    assert result.map.seq_num.tolist() == list(range(12))
    assert seen
    assert all(n == 2 for n in seen)
