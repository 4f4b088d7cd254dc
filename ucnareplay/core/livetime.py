"""
Live-time accounting: scaler overflow correction, the global-acceptance (beam, manual and rate) cuts,
and the blips of run time those cuts exclude.

The tracker sees every event of a run in arrival order. For each event it converts the raw time
scalers to seconds, corrects for scaler wraparound, updates the rolling-window rate check and
decides whether the event passes the global cuts. Each true->false transition of the global cut
opens a Blip and each false->true transition closes it; blip boundaries are placed halfway between
the two events on either side of the transition. At the end of the run,

    wall time == live time + sum of blip lengths

in every side slot.
"""

from dataclasses import dataclass, field
import dataclasses
from collections.abc import Callable, Sequence
import logging

from ..common import Side
from .blinded_time import BlindedTime, Blip
from .config import ReplayConfig
from .rolling_window import RollingWindowRateMonitor

LOG = logging.getLogger("ucnareplay")


@dataclass(frozen=True)
class EventTime:
    """Result of the tracker for one event."""

    time: BlindedTime
    passed_rate: bool
    passed_global: bool
    overflow_fixed: bool = False


@dataclass(frozen=True)
class HeaderCheck:
    """DAQ header/footer consistency of one event."""

    evnb_good: bool
    bkhf_good: bool


@dataclass(frozen=True)
class LiveTimeSummary:
    """End-of-run tally of run time and data-integrity faults."""

    live_time: BlindedTime
    total_time: BlindedTime
    blips: list[Blip] = field(repr=False)
    n_events: int = 0
    n_overflows: int = 0
    n_failed_evnb: int = 0
    n_failed_bkhf: int = 0
    n_time_faults: int = 0
    first_raw_time: float = 0.0
    last_raw_time: float = 0.0

    @property
    def wall_time(self) -> float:
        """Unfiltered run duration: the last corrected time in the BOTH slot."""
        return self.total_time.both

    @property
    def lost_time(self) -> BlindedTime:
        lost = BlindedTime.zero()
        for blip in self.blips:
            lost = lost + blip.length()
        return lost

    @property
    def n_integrity_faults(self) -> int:
        return self.n_failed_evnb + self.n_failed_bkhf + self.n_time_faults


class LiveTimeTracker:
    """Stateful live-time bookkeeping for one run. Not re-entrant: feed events strictly in arrival order.

    Parameters
    ----------
    config : ReplayConfig
        Scaler units, wrap period, overflow margin and rate-window constants
    in_manual_cut : Callable[[float], bool] | None, optional
        Whether a corrected run time (s) falls in a manually excluded interval, such as
        `CutSet.in_manual_cut`; by default nothing is excluded
    """

    def __init__(self, config: ReplayConfig, in_manual_cut: Callable[[float], bool] | None = None):
        self.config = config
        self.in_manual_cut = in_manual_cut or (lambda t: False)
        self.rate_monitor = RollingWindowRateMonitor(config.rate_window_n_max, config.rate_window_l_max_s)
        self.correction = BlindedTime.zero()
        self.total_time = BlindedTime.zero()
        self.prev_passed_cuts = True
        self.prev_passed_rate = True
        self.blips: list[Blip] = []
        self.open_blip: Blip | None = None
        self.n_events = 0
        self.n_overflows = 0
        self.n_failed_evnb = 0
        self.n_failed_bkhf = 0
        self.n_time_faults = 0
        self.first_raw_time = 0.0
        self.last_raw_time = 0.0

    @property
    def state(self) -> str:
        return "INIT" if self.n_events == 0 else "RUNNING"

    def check_header(self, trigger_number: float, evnb: Sequence[float], bkhf: Sequence[float]) -> HeaderCheck:
        """Compare each DAQ module's header counter with the trigger number, and its footer word with
        the expected constant. Failures are tallied, never fatal."""
        evnb_good = all(int(e - trigger_number) == 0 for e in evnb)
        bkhf_good = all(int(b) == self.config.bkhf_expected for b in bkhf)
        self.n_failed_evnb += not evnb_good
        self.n_failed_bkhf += not bkhf_good
        return HeaderCheck(evnb_good, bkhf_good)

    def process(self, raw: BlindedTime | float, passes_instant_cuts: bool, is_rate_tag: bool) -> EventTime:
        """Advance the tracker by one event.

        Parameters
        ----------
        raw : BlindedTime | float
            The raw time scalers (device counts) for each slot; a float is used for every slot
        passes_instant_cuts : bool
            Whether the event passes the per-event beam cuts
        is_rate_tag : bool
            Whether the event counts toward the rolling-window rate check

        Returns
        -------
        EventTime
            The corrected time and the cut decisions for this event
        """
        cfg = self.config
        if not isinstance(raw, BlindedTime):
            raw = BlindedTime.constant(float(raw))
        if self.n_events == 0:
            self.correction = BlindedTime.zero()
            self.total_time = BlindedTime.zero()
            self.prev_passed_cuts = self.prev_passed_rate = True
            self.first_raw_time = raw.both
        self.last_raw_time = raw.both

        t = raw * cfg.scaler_units_s

        overflow_fixed = False
        if t.both < self.total_time.both - self.correction.both - cfg.overflow_margin_s:
            LOG.warning("Fixing timing scaler overflow at event %d", self.n_events)
            # For domain review: the alternative rule resets the E and W offsets to their previous totals.
            self.correction = self.correction + BlindedTime.constant(cfg.wrap_period_s)
            self.n_overflows += 1
            overflow_fixed = True
        corrected = t + self.correction

        if self.n_events > 0:
            corrected = self._check_time_step(corrected)

        if is_rate_tag:
            self.rate_monitor.add_count(corrected.both)
        else:
            self.rate_monitor.move_time_limit(corrected.both)
        count = self.rate_monitor.get_count()
        n_max = self.rate_monitor.n_max
        passed_rate = count == n_max or (self.prev_passed_rate and count > n_max / 2.0)
        self.prev_passed_rate = passed_rate

        instant = passes_instant_cuts and not self.in_manual_cut(corrected.both)
        gating_ok = cfg.ignore_beam_out or corrected.both < self.rate_monitor.l_max or passed_rate
        passed_global = instant and gating_ok

        if passed_global != self.prev_passed_cuts:
            boundary = corrected.midpoint(self.total_time)
            if not passed_global:
                self.open_blip = Blip(boundary)
            else:
                assert self.open_blip is not None, "closing a blip that was never opened"
                self.blips.append(self.open_blip.closed_at(boundary))
                self.open_blip = None

        self.prev_passed_cuts = passed_global
        self.total_time = corrected
        self.n_events += 1
        return EventTime(corrected, passed_rate, passed_global, overflow_fixed)

    def _check_time_step(self, corrected: BlindedTime) -> BlindedTime:
        """Flag physically impossible time steps as data-integrity faults.

        A backwards step too small to be a wrap is held at the previous time, so corrected time never
        decreases; a forward step longer than a full wrap period is kept as is."""
        prev = self.total_time
        if corrected.both < prev.both:
            LOG.warning("Time scaler went backwards by %gs at event %d", prev.both - corrected.both, self.n_events)
            self.n_time_faults += 1
            return BlindedTime(*(max(a, b) for a, b in zip(corrected.as_tuple(), prev.as_tuple())))
        if corrected.both - prev.both > self.config.wrap_period_s:
            LOG.warning("Time scaler jumped %gs at event %d, even after overflow correction", corrected.both - prev.both, self.n_events)
            self.n_time_faults += 1
        return corrected

    def finalize(self) -> LiveTimeSummary:
        """Close any open blip at the final time and tally the live time. Safe to call more than once."""
        if self.open_blip is not None:
            self.blips.append(self.open_blip.closed_at(self.total_time))
            self.open_blip = None
        summary = LiveTimeSummary(
            live_time=BlindedTime.zero(),
            total_time=self.total_time,
            blips=list(self.blips),
            n_events=self.n_events,
            n_overflows=self.n_overflows,
            n_failed_evnb=self.n_failed_evnb,
            n_failed_bkhf=self.n_failed_bkhf,
            n_time_faults=self.n_time_faults,
            first_raw_time=self.first_raw_time,
            last_raw_time=self.last_raw_time,
        )
        live_time = self.total_time - summary.lost_time
        summary = dataclasses.replace(summary, live_time=live_time)
        LOG.info(
            "Lost %.1fs run time to %d blips, leaving %.1fs. (%d,%d failed Evnb,Bkhf)",
            summary.lost_time[Side.BOTH],
            len(summary.blips),
            live_time[Side.BOTH],
            self.n_failed_evnb,
            self.n_failed_bkhf,
        )
        return summary
