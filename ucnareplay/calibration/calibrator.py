"""
The calibration service seen by the replay: pedestals, energy reconstruction and the true-energy
estimate. Real calibrations (position maps, PMT linearity, database lookups) live elsewhere and only
need to provide these methods.
"""

from dataclasses import dataclass, field
from collections.abc import Sequence
from typing import Protocol

from ..common import Side, EventType


def tube_sensor_name(s: Side, tube: int) -> str:
    """Pedestal sensor name of a beta PMT, e.g. "ADCE3Beta" for East tube index 2."""
    return f"ADC{s.letter}{tube + 1}Beta"


def anode_sensor_name(s: Side) -> str:
    return f"MWPC{s.letter}Anode"


class Calibrator(Protocol):
    """What the replay needs from a calibration source."""

    def pedestal(self, sensor: str, t: float) -> float: ...

    def visible_energy(self, s: Side, adc: Sequence[float], x: float, y: float, t: float) -> float: ...

    def anode_energy(self, s: Side, anode: float, x: float, y: float, t: float) -> float: ...

    def etrue(self, s: Side, event_type: EventType, e_east: float, e_west: float) -> float: ...


@dataclass(frozen=True)
class LinearCalibrator:
    """A position-independent calibration: fixed pedestals and one gain per side.

    Useful for tests and for quick looks at data before a real calibration exists."""

    pedestals: dict[str, float] = field(default_factory=dict)
    gain: tuple[float, float] = (1.0, 1.0)
    anode_gain: tuple[float, float] = (1.0, 1.0)

    def pedestal(self, sensor: str, t: float) -> float:
        return self.pedestals.get(sensor, 0.0)

    def visible_energy(self, s: Side, adc: Sequence[float], x: float, y: float, t: float) -> float:
        return self.gain[s] * float(sum(adc))

    def anode_energy(self, s: Side, anode: float, x: float, y: float, t: float) -> float:
        return self.anode_gain[s] * anode

    def etrue(self, s: Side, event_type: EventType, e_east: float, e_west: float) -> float:
        return e_east + e_west
