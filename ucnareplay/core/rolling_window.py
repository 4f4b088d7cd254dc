"""
Rolling-window rate monitor, used to check that a tagged monitor (e.g. the gate-valve UCN monitor) is
firing at its expected steady rate.
"""

from collections import deque


class RollingWindowRateMonitor:
    """Keep the times of up to `n_max` most-recent tagged events that are no older than `l_max`.

    When the monitor fires at (or above) its expected rate, the window holds `n_max` events. A count
    below `n_max` signals a degraded rate.
    """

    def __init__(self, n_max: int, l_max: float):
        if n_max < 1:
            raise ValueError(f"n_max={n_max} must be at least 1")
        if l_max <= 0:
            raise ValueError(f"l_max={l_max} must be positive")
        self.n_max = n_max
        self.l_max = l_max
        self._times: deque[float] = deque()

    def add_count(self, t: float) -> None:
        """Register a tagged event at time `t`."""
        self.move_time_limit(t)
        self._times.append(t)
        while len(self._times) > self.n_max:
            self._times.popleft()

    def move_time_limit(self, t: float) -> None:
        """Advance the window's leading edge to `t`, dropping entries older than `t - l_max`."""
        while self._times and self._times[0] < t - self.l_max:
            self._times.popleft()

    def get_count(self) -> int:
        return len(self._times)

    def is_full(self) -> bool:
        return self.get_count() >= self.n_max

    def __repr__(self) -> str:
        return f"{type(self).__name__}(n_max={self.n_max}, l_max={self.l_max}, count={self.get_count()})"
