"""
ucnareplay.mathstat - fitting and statistics tools
"""

# ruff: noqa: F403, F401

from . import uncertainties_helpers
from .fitting import (
    EfficiencyPoints,
    EfficiencyCurve,
    TriggerEfficiencyFit,
    bayes_divide,
    turn_on_model,
    seed_threshold,
    fit_trigger_efficiency,
    fit_all_channels,
)
from .peaks import PeakFit, seed_peak, fit_gaussian_peak
