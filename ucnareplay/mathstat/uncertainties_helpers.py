"""
Helpers for dealing with `uncertainties` scalars, especially ones built from lmfit fit results.
"""

import math

import lmfit
import uncertainties
from uncertainties import UFloat


def ufloat_from_param(param: lmfit.Parameter) -> UFloat:
    """Return a fitted lmfit parameter as a ufloat.

    lmfit leaves `stderr` as None when it could not estimate the covariance (e.g. a parameter stuck
    on a bound, or too few data); the uncertainty is then NaN.
    """
    stderr = param.stderr
    if stderr is None or not math.isfinite(stderr):
        stderr = math.nan
    return uncertainties.ufloat(float(param.value), float(stderr))


def unknown_uncertainty(x: float) -> UFloat:
    """A ufloat with value `x` and NaN uncertainty."""
    return uncertainties.ufloat(float(x), math.nan)

