"""
ucnareplay.calibration - the calibration service interface and calibration artifacts.
"""

# ruff: noqa: F403, F401

from .calibrator import Calibrator, LinearCalibrator, tube_sensor_name, anode_sensor_name
from .artifacts import TriggerEfficiencyRecord, TriggerEfficiencyStore
