import math

import numpy as np
import pytest

from ucnareplay.common import Side
from ucnareplay.mathstat import (
    EfficiencyPoints,
    bayes_divide,
    turn_on_model,
    seed_threshold,
    fit_trigger_efficiency,
    fit_all_channels,
)
from ucnareplay.mathstat.fitting import PARAM_BOUNDS, PARAM_NAMES

rng = np.random.default_rng(14077)

X = np.arange(-49.0, 200.0, 2.0)
TRUTH = dict(center=30.0, width=20.0, shape=2.0, plateau=0.98)


def synthetic_points(n_per_bin: int = 2000, side=Side.EAST, tube=0, **params) -> EfficiencyPoints:
    p = turn_on_model(X, **dict(TRUTH, **params))
    total = np.full(len(X), n_per_bin)
    triggered = rng.binomial(total, p)
    return EfficiencyPoints(X, triggered, total, side, tube)


def test_bayes_divide():
    curve = bayes_divide([0, 5, 10, 0], [10, 10, 10, 0], x=[1.0, 2.0, 3.0, 4.0])
    assert len(curve) == 3
    np.testing.assert_array_equal(curve.x, [1.0, 2.0, 3.0])
    np.testing.assert_allclose(curve.eff, [0.0, 0.5, 1.0])
    assert curve.err_lo[0] == 0.0
    assert curve.err_hi[0] > 0
    assert curve.err_hi[2] == 0.0
    assert curve.err_lo[2] > 0
    assert curve.err_lo[1] == pytest.approx(curve.err_hi[1])
    assert 0.1 < curve.err_lo[1] < 0.2
    assert np.all(curve.sigma > 0)


def test_model_is_monotonic():
    x = np.linspace(-50, 200, 1001)
    for _ in range(200):
        params = {name: rng.uniform(*PARAM_BOUNDS[name]) for name in PARAM_NAMES}
        y = turn_on_model(x, **params)
        assert np.all(np.diff(y) >= -1e-12)
        assert np.all(y >= 0)
        assert np.all(y <= params["plateau"] + 1e-12)


def test_model_shape():
    y = turn_on_model(np.array([-50.0, 30.0, 1000.0]), **TRUTH)
    assert y[0] == 0.0
    assert 0.3 < y[1] / TRUTH["plateau"] < 0.7
    assert y[2] == pytest.approx(TRUTH["plateau"])


def test_seed_threshold():
    x = np.array([0.0, 10.0, 20.0, 30.0, 40.0])
    assert seed_threshold(x, [0.0, 0.2, 0.4, 0.8, 0.95]) == (20.0, True)
    assert seed_threshold(x, [0.9, 0.9, 0.9, 0.9, 0.95]) == (10.0, False)
    seed, found = seed_threshold([], [])
    assert not found
    assert PARAM_BOUNDS["center"][0] <= seed <= PARAM_BOUNDS["center"][1]


def test_fit_recovers_curve():
    points = synthetic_points()
    fit = fit_trigger_efficiency(points)
    assert fit.success
    assert fit.key == (Side.EAST, 0)
    assert fit.plateau.nominal_value == pytest.approx(TRUTH["plateau"], abs=0.01)
    truth = turn_on_model(X, **TRUTH)
    assert np.max(np.abs(fit(X) - truth)) < 0.03
    for name in PARAM_NAMES:
        lo, hi = PARAM_BOUNDS[name]
        assert lo <= getattr(fit, name).nominal_value <= hi
    assert fit.n.nominal_value == pytest.approx(
        fit.center.nominal_value / fit.width.nominal_value * fit.shape.nominal_value
    )
    assert "Poisson CDF Fit" in fit.summary()


def test_sparse_data_does_not_raise():
    points = synthetic_points(n_per_bin=3)
    fit = fit_trigger_efficiency(points)
    for name in PARAM_NAMES:
        lo, hi = PARAM_BOUNDS[name]
        assert lo <= getattr(fit, name).nominal_value <= hi


def test_too_few_points_is_best_effort():
    total = np.zeros(len(X), dtype=int)
    total[[60, 61, 62]] = 10
    triggered = total // 2
    fit = fit_trigger_efficiency(EfficiencyPoints(X, triggered, total, Side.WEST, 3))
    assert not fit.success
    assert fit.n_points == 3
    assert math.isnan(fit.center.std_dev)
    assert fit.key == (Side.WEST, 3)

    empty = fit_trigger_efficiency(EfficiencyPoints(X, np.zeros(len(X)), np.zeros(len(X))))
    assert not empty.success
    assert empty.n_points == 0


def test_bad_points_rejected():
    with pytest.raises(ValueError):
        EfficiencyPoints([1.0, 2.0], [3, 0], [2, 0])
    with pytest.raises(ValueError):
        EfficiencyPoints([2.0, 1.0], [0, 0], [1, 1])
    with pytest.raises(ValueError):
        EfficiencyPoints([1.0, 2.0, 3.0], [0, 0], [1, 1])


def test_fit_all_channels_parallel_matches_serial():
    channels = [synthetic_points(side=s, tube=t, center=20.0 + 5 * t) for s in (Side.EAST, Side.WEST) for t in range(2)]
    serial = fit_all_channels(channels, n_jobs=1)
    parallel = fit_all_channels(reversed(channels), n_jobs=2)
    assert set(serial) == {(s, t) for s in (Side.EAST, Side.WEST) for t in range(2)}
    assert set(parallel) == set(serial)
    for key, fit in serial.items():
        np.testing.assert_allclose(parallel[key].params(), fit.params(), rtol=1e-6)
