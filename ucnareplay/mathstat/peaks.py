"""
ucnareplay.mathstat.peaks

Locating and fitting a single Gaussian peak in a binned spectrum, such as the Bi pulser peak
of one PMT.
"""

from dataclasses import dataclass, field
import logging
import math

from numpy.typing import ArrayLike
from uncertainties import UFloat
import lmfit.models
import numpy as np

from .uncertainties_helpers import ufloat_from_param, unknown_uncertainty

__all__ = ["PeakFit", "seed_peak", "fit_gaussian_peak"]

LOG = logging.getLogger("ucnareplay")


@dataclass(frozen=True)
class PeakFit:
    """A fitted Gaussian peak. `width` is the Gaussian sigma; `height` is the peak value in counts per bin."""

    height: UFloat
    center: UFloat
    width: UFloat
    seed: float
    success: bool
    n_points: int = 0
    message: str = field(default="", compare=False)


def seed_peak(counts: ArrayLike, bin_centers: ArrayLike, min_counts: int = 20) -> tuple[float, bool]:
    """Initial guess at the position of the highest-lying peak of a spectrum.

    Bins are scanned from the top down, keeping the tallest bin seen so far. The scan stops once that
    bin holds more than `min_counts` and more than `min_counts` bins in a row have failed to beat it,
    so a taller pile-up at low values is never reached.

    Returns (seed, found). `found` is False when no bin held more than `min_counts`; the seed is then
    the tallest bin of the whole spectrum, or NaN if the spectrum is empty.
    """
    counts = np.asarray(counts, dtype=float)
    bin_centers = np.asarray(bin_centers, dtype=float)
    bmax, pmax, nskip = -1, 0.0, 0
    for b in range(len(counts) - 1, -1, -1):
        if counts[b] > pmax:
            bmax, pmax, nskip = b, counts[b], 0
        else:
            nskip += 1
        if pmax > min_counts and nskip > min_counts:
            break
    if bmax < 0:
        return math.nan, False
    return float(bin_centers[bmax]), bool(pmax > min_counts)


def fit_gaussian_peak(
    counts: ArrayLike,
    bin_centers: ArrayLike,
    seed: float,
    initial_width: float = 200.0,
    n_sigma: float = 1.5,
    iterations: int = 3,
) -> PeakFit:
    """Fit a Gaussian to the core of the peak near `seed`, re-centering the fit window each iteration.

    Each of the `iterations` fits uses only the non-empty bins within `n_sigma` widths of the current
    center, weighted by Poisson errors, and its result sets the window of the next one. Never raises
    for poor data: with too few bins in the window, or when the minimizer fails, the result holds the
    last good center and width with NaN uncertainties and `success=False`.

    Parameters
    ----------
    counts : ArrayLike
        Counts per bin
    bin_centers : ArrayLike
        Bin positions, increasing
    seed : float
        Starting guess for the peak center, e.g. from `seed_peak`
    initial_width : float, optional
        Starting guess for the Gaussian sigma, by default 200.0
    n_sigma : float, optional
        Half-width of the fit window in units of sigma, by default 1.5
    iterations : int, optional
        Number of fit-and-recenter passes, by default 3

    Returns
    -------
    PeakFit
        The fitted peak
    """
    counts = np.asarray(counts, dtype=float)
    bin_centers = np.asarray(bin_centers, dtype=float)
    model = lmfit.models.GaussianModel()
    center, width = float(seed), float(initial_width)

    def best_effort(message: str, n_points: int = 0) -> PeakFit:
        LOG.debug("Gaussian peak fit near %g: %s", seed, message)
        height = float(np.interp(center, bin_centers, counts)) if len(counts) else math.nan
        return PeakFit(
            unknown_uncertainty(height),
            unknown_uncertainty(center),
            unknown_uncertainty(width),
            seed=float(seed),
            success=False,
            n_points=n_points,
            message=message,
        )

    if not math.isfinite(center):
        return best_effort("no peak to fit")

    result = None
    for _ in range(iterations):
        use = (np.abs(bin_centers - center) <= n_sigma * width) & (counts > 0)
        n_points = int(use.sum())
        if n_points <= len(model.param_names):
            return best_effort(f"only {n_points} non-empty bins within {n_sigma} sigma of {center:.1f}", n_points)
        x, y = bin_centers[use], counts[use]
        params = model.make_params()
        params["center"].set(center, min=x.min(), max=x.max())
        params["sigma"].set(width, min=1e-3 * width)
        params["amplitude"].set(y.max() * width * math.sqrt(2 * math.pi), min=0)
        try:
            result = model.fit(y, params, x=x, weights=1.0 / np.sqrt(y))
        except (ValueError, TypeError) as ex:
            return best_effort(f"fit failed: {ex}", n_points)
        center = float(result.params["center"].value)
        width = float(result.params["sigma"].value)

    if result is None:
        return best_effort("no fit iterations requested")
    return PeakFit(
        ufloat_from_param(result.params["height"]),
        ufloat_from_param(result.params["center"]),
        ufloat_from_param(result.params["sigma"]),
        seed=float(seed),
        success=bool(result.success),
        n_points=n_points,
        message=str(result.message),
    )
