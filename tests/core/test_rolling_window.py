import pytest

from ucnareplay.core import RollingWindowRateMonitor


def test_count_limited_to_n_max():
    mon = RollingWindowRateMonitor(5, 5.0)
    for i in range(8):
        mon.add_count(0.1 * i)
    assert mon.get_count() == 5
    assert mon.is_full()


def test_old_entries_expire():
    mon = RollingWindowRateMonitor(5, 5.0)
    for t in (0.0, 1.0, 2.0):
        mon.add_count(t)
    assert mon.get_count() == 3
    mon.move_time_limit(6.5)
    # only t=2.0 is within 5s of 6.5
    assert mon.get_count() == 1
    mon.move_time_limit(100.0)
    assert mon.get_count() == 0
    assert not mon.is_full()


def test_steady_rate_stays_full():
    mon = RollingWindowRateMonitor(5, 5.0)
    counts = []
    for i in range(100):
        t = 0.5 * i
        mon.add_count(t)
        mon.move_time_limit(t + 0.25)
        counts.append(mon.get_count())
    assert all(c == 5 for c in counts[5:])


def test_bad_parameters():
    with pytest.raises(ValueError):
        RollingWindowRateMonitor(0, 5.0)
    with pytest.raises(ValueError):
        RollingWindowRateMonitor(5, 0.0)
