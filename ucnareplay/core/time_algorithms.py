import numpy as np
from numpy.typing import ArrayLike, NDArray
import numba


@numba.njit
def _unwrap_scaler(times_s: NDArray, wrap_period_s: float, margin_s: float) -> NDArray:
    corrected = np.empty_like(times_s)
    offset = 0.0
    for i in range(times_s.size):
        if i > 0 and times_s[i] < corrected[i - 1] - offset - margin_s:
            offset += wrap_period_s
        corrected[i] = times_s[i] + offset
    return corrected


def unwrap_scaler(times_s: ArrayLike, wrap_period_s: float, margin_s: float) -> NDArray:
    """Undo wraparound of a fixed-width time scaler, already converted to seconds.

    A reading more than `margin_s` below the previous corrected time (less the correction so far) is
    taken as one wrap, and `wrap_period_s` is added to it and to all later readings.

    Parameters
    ----------
    times_s : ArrayLike
        Raw scaler readings in arrival order, in seconds
    wrap_period_s : float
        Time represented by one full scaler wrap
    margin_s : float
        How far a reading must fall to count as a wrap rather than jitter

    Returns
    -------
    NDArray
        Corrected times, same length as `times_s`
    """
    times_s = np.asarray(times_s, dtype=np.float64)
    return _unwrap_scaler(times_s, float(wrap_period_s), float(margin_s))


def estimate_wall_time(times_s: ArrayLike, wrap_period_s: float, margin_s: float) -> float:
    """Estimate a run's wall time from its whole scaler column (0 for an empty run)."""
    times_s = np.asarray(times_s, dtype=np.float64)
    if times_s.size == 0:
        return 0.0
    return float(unwrap_scaler(times_s, wrap_period_s, margin_s)[-1])
