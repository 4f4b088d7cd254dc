"""
ucnareplay.mathstat.fitting

Trigger-efficiency curves: Bayesian efficiency ratios from binned (triggered, all) counts, and a
bounded fit of a Poisson-CDF-like turn-on model to them.
"""

from dataclasses import dataclass, field
from collections.abc import Iterable
import logging
import math

from numpy.typing import ArrayLike, NDArray
from uncertainties import UFloat
import joblib
import lmfit
import numpy as np
import scipy as sp
import scipy.special
import scipy.stats

from ..common import Side
from .uncertainties_helpers import ufloat_from_param, unknown_uncertainty

__all__ = [
    "EfficiencyPoints",
    "EfficiencyCurve",
    "TriggerEfficiencyFit",
    "bayes_divide",
    "turn_on_model",
    "seed_threshold",
    "fit_trigger_efficiency",
    "fit_all_channels",
]

LOG = logging.getLogger("ucnareplay")

PARAM_NAMES = ("center", "width", "shape", "plateau")
PARAM_BOUNDS = {
    "center": (0.0, 100.0),
    "width": (2.0, 200.0),
    "shape": (0.1, 1000.0),
    "plateau": (0.75, 1.0),
}
INITIAL_PARAMS = {"width": 10.0, "shape": 1.4, "plateau": 0.99}
DEFAULT_CENTER = 50.0
ONE_SIGMA_CL = 0.682689492


@dataclass(frozen=True)
class EfficiencyPoints:
    """Binned trigger-efficiency data for one PMT: at each threshold-variable value `x`, how many
    events there were (`total`) and how many of them triggered (`triggered`)."""

    x: NDArray
    triggered: NDArray
    total: NDArray
    side: Side | None = None
    tube: int | None = None

    def __post_init__(self) -> None:
        x, trig, tot = (np.asarray(a, dtype=float) for a in (self.x, self.triggered, self.total))
        if not (x.shape == trig.shape == tot.shape) or x.ndim != 1:
            raise ValueError(f"x, triggered and total must be 1d of equal length, got {x.shape}, {trig.shape}, {tot.shape}")
        if np.any(np.diff(x) <= 0):
            raise ValueError("x must be strictly increasing")
        if np.any(trig > tot) or np.any(trig < 0):
            raise ValueError("need 0 <= triggered <= total in every bin")
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "triggered", trig)
        object.__setattr__(self, "total", tot)

    @property
    def key(self) -> tuple[Side | None, int | None]:
        return (self.side, self.tube)


@dataclass(frozen=True)
class EfficiencyCurve:
    """Efficiency estimate with asymmetric 1-sigma errors, only at bins with at least one event."""

    x: NDArray
    eff: NDArray
    err_lo: NDArray
    err_hi: NDArray

    def __len__(self) -> int:
        return len(self.x)

    @property
    def sigma(self) -> NDArray:
        """Symmetrized errors, used as fit weights."""
        return 0.5 * (self.err_lo + self.err_hi)


def bayes_divide(triggered: ArrayLike, total: ArrayLike, x: ArrayLike | None = None, cl: float = ONE_SIGMA_CL) -> EfficiencyCurve:
    """Efficiency triggered/total per bin, with a Bayesian confidence interval.

    With a uniform prior the posterior for the efficiency is Beta(k+1, n-k+1). The estimate is the
    posterior mode k/n. The interval is central with probability `cl`, except that it is one-sided
    (reaching 0 or 1) when k=0 or k=n. Bins with n=0 carry no information and are dropped.

    Parameters
    ----------
    triggered : ArrayLike
        Counts k of triggered events per bin
    total : ArrayLike
        Counts n of all events per bin, n >= k
    x : ArrayLike | None, optional
        Bin positions; defaults to the bin index
    cl : float, optional
        Confidence level of the interval, by default 1 sigma

    Returns
    -------
    EfficiencyCurve
        The efficiency and its errors at the bins with n > 0
    """
    k = np.asarray(triggered, dtype=float)
    n = np.asarray(total, dtype=float)
    if x is None:
        x = np.arange(len(n), dtype=float)
    x = np.asarray(x, dtype=float)
    use = n > 0
    k, n, x = k[use], n[use], x[use]

    eff = k / n
    a, b = k + 1, n - k + 1
    tail = (1 - cl) / 2
    lo = sp.stats.beta.ppf(tail, a, b)
    hi = sp.stats.beta.ppf(1 - tail, a, b)
    none_passed = k == 0
    all_passed = k == n
    lo[none_passed] = 0.0
    hi[none_passed] = sp.stats.beta.ppf(cl, a[none_passed], b[none_passed])
    hi[all_passed] = 1.0
    lo[all_passed] = sp.stats.beta.ppf(1 - cl, a[all_passed], b[all_passed])
    err_lo = np.clip(eff - lo, 0, None)
    err_hi = np.clip(hi - eff, 0, None)
    return EfficiencyCurve(x, eff, err_lo, err_hi)


def turn_on_model(x: ArrayLike, center: float, width: float, shape: float, plateau: float) -> NDArray:
    """Trigger probability vs. signal size `x`, a smoothed Poisson CDF.

    The tube triggers when at least n = center/width*shape photoelectrons are seen. The mean number
    of photoelectrons is linear in x, equal to n at x = center and growing by n per `width`:

        mu(x) = n * (1 + (x - center) / width)

    With the regularized lower incomplete gamma function P standing in for the Poisson CDF at
    non-integer n, the model is

        f(x) = plateau * P(n, max(mu(x), 0))

    It is non-decreasing in x, near plateau/2 at x = center, and tends to `plateau` for large x.
    """
    x = np.asarray(x, dtype=float)
    width = max(float(width), 1e-9)
    n = max(float(center) / width * float(shape), 1e-9)
    mu = np.clip(n * (1 + (x - center) / width), 0, None)
    return plateau * sp.special.gammainc(n, mu)


def seed_threshold(x: ArrayLike, eff: ArrayLike) -> tuple[float, bool]:
    """Initial guess at the 50% point: scanning down from the highest x, the first point below 0.5.

    Returns (seed, found). If no point is below 0.5, the seed is the lowest point scanned (the second
    point), or DEFAULT_CENTER if there are fewer than two points; `found` is then False."""
    x = np.asarray(x, dtype=float)
    eff = np.asarray(eff, dtype=float)
    if len(x) < 2:
        return DEFAULT_CENTER, False
    for b in range(len(x) - 1, 0, -1):
        if eff[b] < 0.5:
            return float(x[b]), True
    return float(x[1]), False


@dataclass(frozen=True)
class TriggerEfficiencyFit:
    """Fitted turn-on curve for one PMT. Immutable once made."""

    center: UFloat
    width: UFloat
    shape: UFloat
    plateau: UFloat
    seed: float
    success: bool
    chisqr: float = math.nan
    n_points: int = 0
    side: Side | None = None
    tube: int | None = None
    message: str = field(default="", compare=False)

    @property
    def n(self) -> UFloat:
        """Effective photoelectron threshold n = center/width*shape."""
        return self.center / self.width * self.shape

    @property
    def key(self) -> tuple[Side | None, int | None]:
        return (self.side, self.tube)

    def params(self) -> NDArray:
        return np.array([getattr(self, name).nominal_value for name in PARAM_NAMES])

    def param_errors(self) -> NDArray:
        return np.array([getattr(self, name).std_dev for name in PARAM_NAMES])

    def __call__(self, x: ArrayLike) -> NDArray:
        return turn_on_model(x, *self.params())

    def summary(self) -> str:
        c, w, s, h = self.center, self.width, self.shape, self.plateau
        return (
            f"Poisson CDF Fit: h = {h.n:.4f}({h.s:.4f}), x0 = {c.n:.1f}({c.s:.1f}), dx = {w.n:.1f}({w.s:.1f}), "
            f"n = {self.n.n:.2f} [adjust {s.n:.2f}({s.s:.2f})]"
        )


def make_params(seed: float) -> lmfit.Parameters:
    """Starting parameters, with the seed clipped into the allowed range of `center`."""
    lo, hi = PARAM_BOUNDS["center"]
    values = dict(INITIAL_PARAMS, center=float(np.clip(seed, lo, hi)))
    params = lmfit.Parameters()
    for name in PARAM_NAMES:
        pmin, pmax = PARAM_BOUNDS[name]
        params.add(name, value=values[name], min=pmin, max=pmax)
    return params


def fit_trigger_efficiency(points: EfficiencyPoints) -> TriggerEfficiencyFit:
    """Fit the turn-on model to one PMT's trigger-efficiency data.

    Never raises for poor data: with no more usable points than free parameters, or when the minimizer
    fails, the result holds the starting values with NaN uncertainties and `success=False`. Parameters
    that want to leave their allowed ranges end up on the bounds.
    """
    curve = bayes_divide(points.triggered, points.total, points.x)
    seed, found = seed_threshold(curve.x, curve.eff)
    LOG.debug("Pre-fit threshold guess: %.1f%s", seed, "" if found else " (default)")
    params = make_params(seed)

    def best_effort(message: str) -> TriggerEfficiencyFit:
        LOG.warning("Trigger efficiency fit for side=%s tube=%s: %s", points.side, points.tube, message)
        return TriggerEfficiencyFit(
            *(unknown_uncertainty(params[name].value) for name in PARAM_NAMES),
            seed=seed,
            success=False,
            n_points=len(curve),
            side=points.side,
            tube=points.tube,
            message=message,
        )

    if len(curve) <= len(PARAM_NAMES):
        return best_effort(f"only {len(curve)} non-empty bins, too few to fit")

    sigma = np.maximum(curve.sigma, 1e-3)
    model = lmfit.Model(turn_on_model)
    try:
        result = model.fit(curve.eff, params, x=curve.x, weights=1.0 / sigma)
    except (ValueError, TypeError) as ex:
        return best_effort(f"fit failed: {ex}")

    fit = TriggerEfficiencyFit(
        *(ufloat_from_param(result.params[name]) for name in PARAM_NAMES),
        seed=seed,
        success=bool(result.success),
        chisqr=float(result.chisqr),
        n_points=len(curve),
        side=points.side,
        tube=points.tube,
        message=str(result.message),
    )
    LOG.info("%s", fit.summary())
    return fit


def fit_all_channels(
    channels: Iterable[EfficiencyPoints], n_jobs: int = 1
) -> dict[tuple[Side | None, int | None], TriggerEfficiencyFit]:
    """Fit every channel's efficiency curve. Channels are independent, so with n_jobs > 1 they are
    fit in parallel threads; the result does not depend on the order."""
    channels = list(channels)
    if n_jobs == 1:
        fits = [fit_trigger_efficiency(points) for points in channels]
    else:
        parallel = joblib.Parallel(n_jobs=n_jobs, prefer="threads")
        fits = parallel(joblib.delayed(fit_trigger_efficiency)(points) for points in channels)
    return {fit.key: fit for fit in fits}
