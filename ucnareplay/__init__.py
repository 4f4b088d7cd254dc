"""
ucnareplay: first-pass replay of UCNA beta-decay detector data

Live-time accounting with scaler overflow correction, event classification, and per-PMT
trigger-efficiency fits, for one run at a time.
"""

# ruff: noqa: F401, F403

try:
    from ._version import version as __version__
    from ._version import version_tuple
except ImportError:
    __version__ = "unknown version"
    version_tuple = (0, 0, "unknown version")

from . import calibration
from . import common
from . import mathstat
from . import core
# at the top level lets import things we imagine people will want to use regularly, and try to avoid importing
# implementation details
from .common import Side, SIDES, EventType, PID
from .core import (
    BlindedTime,
    Blip,
    CutSet,
    RangeCut,
    ConfigurationError,
    ReplayConfig,
    RollingWindowRateMonitor,
    LiveTimeTracker,
    LiveTimeSummary,
    EventClassifier,
    ClassifierInputs,
    classify,
    Replay,
    ReplayResult,
)
from .calibration import LinearCalibrator, TriggerEfficiencyStore
from .mathstat import fit_trigger_efficiency, fit_all_channels, TriggerEfficiencyFit
