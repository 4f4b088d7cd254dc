# ruff: noqa: F403, F401

# Don't import the _contents_ of these at the top level
from . import time_algorithms
from . import utilities

from .blinded_time import BlindedTime, Blip
from .config import ReplayConfig
from .cuts import CutSet, RangeCut, ConfigurationError, required_cut_names
from .rolling_window import RollingWindowRateMonitor
from .livetime import LiveTimeTracker, LiveTimeSummary, EventTime, HeaderCheck
from .classifier import (
    ClassifierInputs,
    ClassificationResult,
    EventClassifier,
    classify,
    determine_pid,
    determine_type,
    determine_side,
    determine_type_and_side,
)
from .event_reco import EventReconstructor, RecoEvent, SideReco
from .trigger_histograms import EfficiencyHistogram, TriggerEfficiencyHistograms
from .pulser_monitor import PulserMonitor, PulserPeak, pulser_table
from .replay import Replay, ReplayResult, required_input_columns
