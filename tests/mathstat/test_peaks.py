import math

import numpy as np
import pytest

from ucnareplay.mathstat import seed_peak, fit_gaussian_peak

rng = np.random.default_rng(20110214)

EDGES = np.arange(0.0, 4010.0, 10.0)
CENTERS = 0.5 * (EDGES[1:] + EDGES[:-1])


def pulser_spectrum(n_peak=20000, n_low=50000, center=2500.0, sigma=150.0):
    """A Gaussian pulser peak on top of a taller exponential pile-up at low ADC."""
    x = np.concatenate([rng.normal(center, sigma, n_peak), rng.exponential(60.0, n_low)])
    counts, _ = np.histogram(x, EDGES)
    return counts


def test_seed_skips_low_pileup():
    counts = pulser_spectrum()
    assert np.argmax(counts) < 20
    seed, found = seed_peak(counts, CENTERS)
    assert found
    assert seed == pytest.approx(2500.0, abs=100.0)


def test_seed_without_peak():
    counts = np.zeros(len(CENTERS))
    counts[100:103] = [3, 5, 2]
    seed, found = seed_peak(counts, CENTERS)
    assert not found
    assert seed == CENTERS[101]
    seed, found = seed_peak(np.zeros(len(CENTERS)), CENTERS)
    assert not found
    assert math.isnan(seed)


def test_fit_gaussian_peak():
    counts = pulser_spectrum()
    seed, _ = seed_peak(counts, CENTERS)
    fit = fit_gaussian_peak(counts, CENTERS, seed, initial_width=200.0, n_sigma=1.5, iterations=3)
    assert fit.success
    assert fit.seed == seed
    assert fit.center.n == pytest.approx(2500.0, abs=6.0)
    assert fit.width.n == pytest.approx(150.0, rel=0.08)
    assert fit.height.n == pytest.approx(20000 * 10.0 / (150.0 * math.sqrt(2 * math.pi)), rel=0.1)
    assert 0 < fit.center.s < 5.0
    assert fit.n_points > 3


def test_fit_with_too_few_bins():
    counts = np.zeros(len(CENTERS))
    counts[200:202] = [40, 50]
    fit = fit_gaussian_peak(counts, CENTERS, CENTERS[201])
    assert not fit.success
    assert fit.center.n == CENTERS[201]
    assert math.isnan(fit.center.s)
    assert math.isnan(fit.width.s)
    assert fit.message

    fit = fit_gaussian_peak(counts, CENTERS, math.nan)
    assert not fit.success
    assert math.isnan(fit.center.n)
