import numpy as np
import pytest

from ucnareplay.common import Side
from ucnareplay.core import PulserMonitor, ReplayConfig, pulser_table

rng = np.random.default_rng(20100615)


def test_slicing():
    pulser = PulserMonitor(ReplayConfig(pulser_slice_s=300.0), 100.0, 1000.0)
    assert pulser.n_slices == 3
    assert pulser.slice_index(100.0) == 0
    assert pulser.slice_index(399.9) == 0
    assert pulser.slice_index(400.0) == 1
    assert pulser.slice_index(1000.0) == 2
    assert pulser.slice_index(5000.0) == 2
    assert pulser.slice_index(0.0) == 0
    assert pulser.slice_time(1) == pytest.approx(550.0)

    short = PulserMonitor(ReplayConfig(), 10.0, 10.0)
    assert short.n_slices == 1
    assert short.slice_index(10.0) == 0


def test_fill_skips_tubes_below_threshold():
    pulser = PulserMonitor(ReplayConfig(), 0.0, 100.0)
    pulser.fill_side(Side.WEST, 50.0, (2500.0, 150.0, 0.0, 5000.0))
    assert pulser[(Side.WEST, 0)].sum() == 1
    assert pulser[(Side.WEST, 0)][0, 250] == 1
    assert pulser[(Side.WEST, 1)].sum() == 0
    assert pulser[(Side.WEST, 3)].sum() == 0
    assert pulser[(Side.EAST, 0)].sum() == 0


def test_gain_drift_is_tracked():
    pulser = PulserMonitor(ReplayConfig(pulser_slice_s=300.0), 0.0, 600.0)
    times = rng.uniform(0.0, 600.0, 4000)
    for t in times:
        center = 1800.0 if t < 300.0 else 1900.0
        pulser.fill_side(Side.EAST, t, (0.0, rng.normal(center, 120.0), 0.0, 0.0))
    peaks = pulser.fit()
    assert [(p.side, p.tube, p.slice) for p in peaks] == [(Side.EAST, 1, 0), (Side.EAST, 1, 1)]
    assert all(p.fit.success for p in peaks)
    assert peaks[0].time == pytest.approx(150.0)
    assert peaks[1].time == pytest.approx(450.0)
    assert peaks[0].center.n == pytest.approx(1800.0, abs=15.0)
    assert peaks[1].center.n == pytest.approx(1900.0, abs=15.0)
    assert peaks[0].width.n == pytest.approx(120.0, rel=0.15)
    assert peaks[0].counts + peaks[1].counts == 4000

    table = pulser_table(peaks)
    assert table.height == 2
    assert table["side"].to_list() == ["East", "East"]
    assert table["center"].to_list() == [p.center.n for p in peaks]
    assert all(table["dcenter"] > 0)

    assert [p.slice for p in pulser.fit(n_jobs=2)] == [0, 1]


def test_empty_table():
    table = pulser_table([])
    assert table.height == 0
    assert "dwidth" in table.columns
