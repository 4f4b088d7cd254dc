"""
One replay pass over a run: live-time tracking, reconstruction and classification event by event,
then the trigger-efficiency fits on the accumulated histograms.
"""

from dataclasses import dataclass, field
from pathlib import Path
import logging
import math

import polars as pl

from ..common import Side, SIDES, PID, EventType
from ..calibration.artifacts import TriggerEfficiencyStore
from ..calibration.calibrator import Calibrator
from ..mathstat.fitting import TriggerEfficiencyFit, fit_all_channels
from .blinded_time import BlindedTime
from .classifier import EventClassifier
from .config import ReplayConfig
from .cuts import CutSet
from .event_reco import EventReconstructor, column
from .livetime import LiveTimeSummary, LiveTimeTracker
from .pulser_monitor import PulserMonitor, PulserPeak, pulser_table
from .time_algorithms import estimate_wall_time
from .trigger_histograms import TriggerEfficiencyHistograms
from .utilities import make_updater

LOG = logging.getLogger("ucnareplay")

PID_DTYPE = pl.Enum([p.name for p in PID])
TYPE_DTYPE = pl.Enum([t.word for t in EventType])
SIDE_DTYPE = pl.Enum([s.word for s in Side])


def required_input_columns(config: ReplayConfig) -> list[str]:
    names = ["trigger_number", "sis00", "time_e", "time_w", "time_both", "beamclock", "top_tdc_e"]
    names += [f"evnb_{i}" for i in range(config.n_modules)]
    names += [f"bkhf_{i}" for i in range(config.n_modules)]
    for s in SIDES:
        names += [column("tdc", s, i) for i in range(config.n_tubes)]
        names += [column("adc", s, i) for i in range(config.n_tubes)]
        names.append(column("tdc", s, "_2of4"))
        names += [column(stem, s) for stem in ("anode", "cath_max", "cath_sum", "pos_x", "pos_y", "back_tdc", "drift_tac")]
    return names


@dataclass
class ReplayResult:
    """Everything one replay pass produces."""

    run: int
    df: pl.DataFrame
    summary: LiveTimeSummary
    histograms: TriggerEfficiencyHistograms = field(repr=False)
    fits: dict[tuple[Side, int], TriggerEfficiencyFit] = field(repr=False)
    wall_time_estimate: float = 0.0
    pulser: PulserMonitor | None = field(default=None, repr=False)
    pulser_peaks: list[PulserPeak] = field(default_factory=list, repr=False)
    gv_mon_counts: int = 0
    beta_triggers: dict[Side, int] = field(default_factory=dict)

    def rate(self, counts: int) -> float:
        """Counts per second of wall time, NaN for a run of zero length."""
        wall_time = self.summary.wall_time
        return counts / wall_time if wall_time > 0 else math.nan

    def pulser_table(self) -> pl.DataFrame:
        return pulser_table(self.pulser_peaks)

    def summary_dict(self) -> dict[str, float | int]:
        """The per-run analysis summary record."""
        live = self.summary.live_time
        beta_e = self.beta_triggers.get(Side.EAST, 0)
        beta_w = self.beta_triggers.get(Side.WEST, 0)
        return {
            "run": self.run,
            "live_time_e": live.east,
            "live_time_w": live.west,
            "live_time": live.both,
            "total_time": self.summary.wall_time,
            "misaligned": self.summary.n_failed_evnb,
            "tdc_corrupted": self.summary.n_failed_bkhf,
            "gv_mon_counts": self.gv_mon_counts,
            "gv_mon_rate": self.rate(self.gv_mon_counts),
            "beta_triggers_e": beta_e,
            "beta_triggers_w": beta_w,
            "beta_rate_e": self.rate(beta_e),
            "beta_rate_w": self.rate(beta_w),
        }


class Replay:
    """Replays one run. Holds the run's cuts, configuration and calibration; owns no physics itself.

    Parameters
    ----------
    config : ReplayConfig
        Hardware and algorithm constants
    cuts : CutSet
        The cuts in force for this run
    calibrator : Calibrator
        Source of pedestals and energy calibration
    store : TriggerEfficiencyStore | None, optional
        Where the fitted trigger efficiencies go; a fresh empty store if None
    n_jobs : int, optional
        Number of threads for the per-PMT fits, by default 1
    """

    def __init__(
        self,
        config: ReplayConfig,
        cuts: CutSet,
        calibrator: Calibrator,
        store: TriggerEfficiencyStore | None = None,
        n_jobs: int = 1,
        show_progress: bool = False,
    ):
        self.config = config
        self.cuts = cuts
        self.calibrator = calibrator
        self.store = TriggerEfficiencyStore() if store is None else store
        self.n_jobs = n_jobs
        self.show_progress = show_progress
        self.reconstructor = EventReconstructor(config, cuts, calibrator)
        self.classifier = EventClassifier(config)

    @classmethod
    def from_yaml(cls, config: ReplayConfig, cuts_path: str | Path, run: int, calibrator: Calibrator, **kwargs) -> "Replay":
        cuts = CutSet.from_yaml(cuts_path, run, ignore_beam_out=config.ignore_beam_out)
        return cls(config, cuts, calibrator, **kwargs)

    @property
    def run_number(self) -> int:
        return self.cuts.run

    def run(self, df: pl.DataFrame) -> ReplayResult:
        """Replay every event of `df` in row order; the output has one row per input row."""
        cfg = self.config
        missing = [name for name in required_input_columns(cfg) if name not in df.columns]
        if missing:
            raise ValueError(f"input is missing columns {missing}")

        wall_time = estimate_wall_time(
            df["time_both"].to_numpy() * cfg.scaler_units_s, cfg.wrap_period_s, cfg.overflow_margin_s
        )
        LOG.info("Replaying run %d: %d events, estimated wall time %.1fs", self.run_number, len(df), wall_time)

        t_start = float(df["time_both"][0]) * cfg.scaler_units_s if len(df) else 0.0
        tracker = LiveTimeTracker(cfg, self.cuts.in_manual_cut)
        hists = TriggerEfficiencyHistograms(cfg)
        pulser = PulserMonitor(cfg, t_start, wall_time)
        out: dict[str, list] = {name: [] for name in self._output_columns()}
        updater = make_updater(f"Replay run {self.run_number}", self.show_progress)
        n_rows = len(df)
        for i, row in enumerate(df.iter_rows(named=True)):
            self._replay_event(row, tracker, hists, pulser, out)
            if (i + 1) % 10000 == 0 or i + 1 == n_rows:
                updater.update((i + 1) / n_rows)

        summary = tracker.finalize()
        fits = fit_all_channels(hists.points(), n_jobs=self.n_jobs)
        for fit in fits.values():
            self.store.upload_fit(self.run_number, fit)
        pulser_peaks = pulser.fit(n_jobs=self.n_jobs)

        result_df = df.with_columns(self._to_series(out))
        gv_mon_counts = sum(cfg.is_rate_tag(sis00) for sis00 in df["sis00"].to_list())
        beta_triggers = {s: self._count_beta_triggers(result_df, s) for s in SIDES}
        return ReplayResult(
            self.run_number,
            result_df,
            summary,
            hists,
            fits,
            wall_time,
            pulser=pulser,
            pulser_peaks=pulser_peaks,
            gv_mon_counts=gv_mon_counts,
            beta_triggers=beta_triggers,
        )

    @staticmethod
    def _count_beta_triggers(result_df: pl.DataFrame, s: Side) -> int:
        """Beta events of type 0, I or II whose primary side is `s`."""
        types = [t.word for t in (EventType.TYPE_0, EventType.TYPE_I, EventType.TYPE_II)]
        selected = result_df.filter(
            (pl.col("pid") == PID.BETA.name) & pl.col("type").is_in(types) & (pl.col("side") == s.word)
        )
        return selected.height

    def _replay_event(
        self, row: dict, tracker: LiveTimeTracker, hists: TriggerEfficiencyHistograms, pulser: PulserMonitor, out: dict[str, list]
    ) -> None:
        cfg = self.config
        header = tracker.check_header(
            row["trigger_number"],
            [row[f"evnb_{i}"] for i in range(cfg.n_modules)],
            [row[f"bkhf_{i}"] for i in range(cfg.n_modules)],
        )
        sis00 = int(row["sis00"])
        raw = BlindedTime(float(row["time_e"]), float(row["time_w"]), float(row["time_both"]), float(row["time_both"]))
        event_time = tracker.process(raw, self.reconstructor.passes_beam_cuts(row), cfg.is_rate_tag(sis00))
        t = event_time.time

        reco = self.reconstructor.reconstruct(row, t.both)
        result = self.classifier(reco.inputs)
        e_true = self.reconstructor.true_energy(reco, result)
        is_scint_trigger = cfg.is_scint_trigger(sis00)
        if is_scint_trigger and result.pid != PID.LED:
            for s in SIDES:
                hists.fill_side(s, reco[s].adc, reco[s].tdc)
        if result.pid == PID.PULSER:
            for s in SIDES:
                pulser.fill_side(s, t.both, reco[s].adc)

        out["time_e"].append(t.east)
        out["time_w"].append(t.west)
        out["time_both"].append(t.both)
        out["passed_global"].append(event_time.passed_global)
        out["evnb_good"].append(header.evnb_good)
        out["bkhf_good"].append(header.bkhf_good)
        out["is_scint_trigger"].append(is_scint_trigger)
        for s in SIDES:
            side = reco[s]
            out[column("passed_mwpc", s)].append(side.passed_mwpc)
            out[column("passed_anode", s)].append(side.passed_anode)
            out[column("passed_cath_sum", s)].append(side.passed_cath_sum)
            out[column("passed_tdc", s)].append(side.passed_tdc)
            out[column("tagged_back", s)].append(side.tagged_back)
            out[column("tagged_drift", s)].append(side.tagged_drift)
            out[column("tagged_top", s)].append(side.tagged_top)
        out["pid"].append(result.pid.name)
        out["type"].append(result.event_type.word)
        out["side"].append(result.side.word)
        out["e_true"].append(e_true)

    @staticmethod
    def _output_columns() -> dict[str, pl.DataType]:
        cols: dict[str, pl.DataType] = {
            "time_e": pl.Float64,
            "time_w": pl.Float64,
            "time_both": pl.Float64,
            "passed_global": pl.Boolean,
            "evnb_good": pl.Boolean,
            "bkhf_good": pl.Boolean,
            "is_scint_trigger": pl.Boolean,
        }
        for s in SIDES:
            for stem in ("passed_mwpc", "passed_anode", "passed_cath_sum", "passed_tdc", "tagged_back", "tagged_drift", "tagged_top"):
                cols[column(stem, s)] = pl.Boolean
        cols.update(pid=PID_DTYPE, type=TYPE_DTYPE, side=SIDE_DTYPE, e_true=pl.Float64)
        return cols

    def _to_series(self, out: dict[str, list]) -> list[pl.Series]:
        return [pl.Series(name, out[name], dtype=dtype) for name, dtype in self._output_columns().items()]
