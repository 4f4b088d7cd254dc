"""
Per-run replay constants, gathered in one frozen object that is passed to the tracker, the event
reconstruction and the efficiency histograms.
"""

from dataclasses import dataclass, field
import numpy as np


def default_effic_bin_edges() -> np.ndarray:
    """Trigger-efficiency histogram bins: ADC channels above pedestal, -50 to 200."""
    return np.arange(-50.0, 202.0, 2.0)


def default_pulser_bin_edges() -> np.ndarray:
    """Bi pulser histogram bins: pedestal-subtracted ADC, 0 to 4000."""
    return np.arange(0.0, 4010.0, 10.0)


@dataclass(frozen=True)
class ReplayConfig:
    """Constants of the DAQ hardware and the replay algorithm.

    Times read from scalers are in `scaler_units_s` per count. The run-time scaler is a
    `wrap_counts`-wide counter; a reading that drops by more than `overflow_margin_s` below the
    previous corrected time is taken as a wrap.
    """

    scaler_units_s: float = 1.0e-6
    wrap_counts: float = 4294967296.0
    overflow_margin_s: float = 1000.0

    # rate check on the gate-valve UCN monitor
    rate_window_n_max: int = 5
    rate_window_l_max_s: float = 5.0
    ignore_beam_out: bool = False

    # trigger (Sis00) word bits
    scint_trigger_mask: int = 0b11
    ucn_mon_bit: int = 2
    ucn_mon_first_bit: int = 8
    rate_tag_monitor: int = 0
    pulser_bit: int = 5
    led_bit: int = 7

    n_tubes: int = 4
    pmt_fired_tdc: float = 5.0
    pulser_adc_thresh: float = 200.0
    pulser_adc_high: float = 1500.0

    n_modules: int = 5
    bkhf_expected: int = 17

    # Bi pulser gain monitor
    pulser_slice_s: float = 300.0
    pulser_fit_iterations: int = 3
    pulser_fit_n_sigma: float = 1.5
    pulser_initial_width: float = 200.0
    pulser_min_peak_counts: int = 20

    effic_bin_edges: np.ndarray = field(default_factory=default_effic_bin_edges, repr=False, compare=False)
    pulser_bin_edges: np.ndarray = field(default_factory=default_pulser_bin_edges, repr=False, compare=False)

    @property
    def wrap_period_s(self) -> float:
        """Elapsed time represented by one full wrap of the run-time scaler."""
        return self.wrap_counts * self.scaler_units_s

    def is_scint_trigger(self, sis00: int) -> bool:
        return bool(int(sis00) & self.scint_trigger_mask)

    def is_led(self, sis00: int) -> bool:
        return bool(int(sis00) & (1 << self.led_bit))

    def is_pulser_flag(self, sis00: int) -> bool:
        return bool(int(sis00) & (1 << self.pulser_bit))

    def is_ucn_mon(self, sis00: int, monitor: int | None = None) -> bool:
        """Whether the event is a UCN-monitor event; if `monitor` is given, whether it is that specific monitor."""
        sis00 = int(sis00)
        if monitor is None:
            mask = (1 << self.ucn_mon_bit) | (0b1111 << self.ucn_mon_first_bit)
            return bool(sis00 & mask)
        return bool(sis00 & (1 << self.ucn_mon_bit)) and bool(sis00 & (1 << (self.ucn_mon_first_bit + monitor)))

    def is_rate_tag(self, sis00: int) -> bool:
        """Whether this event counts toward the rolling-window rate check."""
        return self.is_ucn_mon(sis00, self.rate_tag_monitor)
