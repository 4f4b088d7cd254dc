import pytest

from ucnareplay.common import SIDES
from ucnareplay.core import CutSet

RUN = 14077


def cut_dict() -> dict:
    """A complete cuts file for runs 14000-14999, plus an older entry for every cut."""
    ranges = {
        "Cut_MWPC_{s}_Anode": (0, 5000),
        "Cut_MWPC_{s}_CathMax": (100, 1e9),
        "Cut_MWPC_{s}_CathSum": (100, 1e9),
        "Cut_TDC_Back_{s}": (500, 4000),
        "Cut_ADC_Drift_{s}": (500, 4000),
        "Cut_TDC_Scint_{s}_Selftrig": (1000, 4000),
        "Cut_TDC_Scint_{s}": (100, 4000),
    }
    cuts = {}
    for template, (start, end) in ranges.items():
        for s in SIDES:
            cuts[template.format(s=s.letter)] = [
                {"start": start, "end": end, "runs": [14000, 14999]},
                {"start": 0, "end": 1, "runs": [13000, 13999]},
            ]
    cuts["Cut_TDC_Top_E"] = [{"start": 500, "end": 4000}]
    cuts["Cut_BeamBurst"] = [{"start": 0.05, "end": 1e9, "runs": [14000, 14999]}]
    return {"cuts": cuts, "timecuts": {RUN: [[100.0, 110.0]]}}


def quiet_event(trigger_number: int = 0, time_us: float = 0.0, **overrides) -> dict:
    """An event where nothing fired, with consistent DAQ headers and far from any beam burst."""
    ev = {
        "trigger_number": trigger_number,
        "sis00": 0,
        "time_e": time_us,
        "time_w": time_us,
        "time_both": time_us,
        "beamclock": 1.0e6,
        "top_tdc_e": 0.0,
    }
    for i in range(5):
        ev[f"evnb_{i}"] = trigger_number
        ev[f"bkhf_{i}"] = 17
    for x in "ew":
        for i in range(4):
            ev[f"tdc_{x}{i}"] = 0.0
            ev[f"adc_{x}{i}"] = 0.0
        ev[f"tdc_{x}_2of4"] = 0.0
        for stem in ("anode", "cath_max", "cath_sum", "pos_x", "pos_y", "back_tdc", "drift_tac"):
            ev[f"{stem}_{x}"] = 0.0
    ev.update(overrides)
    return ev


def beta_event(side: str = "e", trigger_number: int = 0, time_us: float = 0.0, adc: float = 300.0, **overrides) -> dict:
    """A clean scintillator-triggered beta on one side: wirechamber and all four tubes fired."""
    ev = quiet_event(trigger_number, time_us, sis00=0b1 if side == "e" else 0b10)
    ev[f"cath_max_{side}"] = 500.0
    ev[f"cath_sum_{side}"] = 2000.0
    ev[f"anode_{side}"] = 800.0
    ev[f"pos_x_{side}"] = 3.0
    ev[f"pos_y_{side}"] = -4.0
    ev[f"tdc_{side}_2of4"] = 2000.0
    for i in range(4):
        ev[f"tdc_{side}{i}"] = 100.0
        ev[f"adc_{side}{i}"] = adc
    ev.update(overrides)
    return ev


@pytest.fixture
def cuts() -> CutSet:
    return CutSet.from_dict(cut_dict(), RUN)


@pytest.fixture
def cuts_dict() -> dict:
    return cut_dict()


@pytest.fixture
def quiet():
    return quiet_event


@pytest.fixture
def beta():
    return beta_event
