import numpy as np

from batchmap.mapping.distance import haldane, kosambi, max_distance


def test_kosambi_known_values():
    d = kosambi([0.0, 0.1, 0.5, -1.0])
    assert d[0] == 0.0
    np.testing.assert_allclose(d[1], 25.0 * np.log(1.2 / 0.8))
    assert np.isinf(d[2])
    assert np.isnan(d[3])


def test_haldane_is_larger_than_kosambi():
    rf = np.array([0.05, 0.2, 0.4])
    assert np.all(haldane(rf) > kosambi(rf))
    assert np.isnan(haldane(-1.0))


def test_max_distance_ignores_undefined_fractions():
    assert max_distance([0.01, -1.0, 0.45]) == float(kosambi(0.45))
    assert max_distance([-1.0, -1.0]) == 0.0
    assert max_distance([]) == 0.0
