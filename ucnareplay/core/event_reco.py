"""
Per-event reconstruction: turn one raw event record into pedestal-subtracted, calibrated quantities
and the cut decisions that feed the classifier.

The wirechamber position fit (cathode max, cathode sum and x/y position) is done upstream; this module
only applies cuts to its outputs.
"""

from dataclasses import dataclass
from collections.abc import Mapping
from typing import Any

from ..common import Side, SIDES, EventType
from ..calibration.calibrator import Calibrator, tube_sensor_name, anode_sensor_name
from .classifier import ClassifierInputs, ClassificationResult
from .config import ReplayConfig
from .cuts import CutSet


def column(stem: str, s: Side, suffix: Any = "") -> str:
    """Input column name for a per-side quantity, e.g. column("adc", Side.WEST, 2) == "adc_w2"."""
    return f"{stem}_{s.letter.lower()}{suffix}"


@dataclass(frozen=True)
class SideReco:
    """Reconstructed quantities for one side of one event."""

    adc: tuple[float, ...]
    tdc: tuple[float, ...]
    tdc_2of4: float
    anode: float
    cath_max: float
    cath_sum: float
    pos_x: float
    pos_y: float
    passed_anode: bool
    passed_cath_sum: bool
    passed_mwpc: bool
    passed_tdc: bool
    tagged_back: bool
    tagged_drift: bool
    tagged_top: bool
    single_high_tube: bool
    e_vis: float
    e_mwpc: float


@dataclass(frozen=True)
class RecoEvent:
    sides: tuple[SideReco, SideReco]
    inputs: ClassifierInputs

    def __getitem__(self, s: Side) -> SideReco:
        return self.sides[s]


class EventReconstructor:
    """Applies one run's cuts and calibration to raw event records."""

    def __init__(self, config: ReplayConfig, cuts: CutSet, calibrator: Calibrator):
        self.config = config
        self.cuts = cuts
        self.calibrator = calibrator
        cuts.validate()
        self.beam_cut = cuts["Cut_BeamBurst"]
        self.selftrig = tuple(cuts.side_cut("Cut_TDC_Scint_{s}_Selftrig", s) for s in SIDES)

    def passes_beam_cuts(self, row: Mapping[str, Any]) -> bool:
        """The per-event part of the global cuts: time since the last beam burst must be in range."""
        return self.beam_cut.in_range(float(row["beamclock"]) * self.config.scaler_units_s)

    def tube_fired(self, tdc: float) -> bool:
        return tdc > self.config.pmt_fired_tdc

    def pedestal_subtracted_adc(self, row: Mapping[str, Any], s: Side, t: float) -> tuple[float, ...]:
        cal = self.calibrator
        return tuple(
            float(row[column("adc", s, i)]) - cal.pedestal(tube_sensor_name(s, i), t) for i in range(self.config.n_tubes)
        )

    def single_high_tube(self, adc: tuple[float, ...]) -> bool:
        """The Bi pulser signature: exactly one tube above threshold, and that tube far above it."""
        n_thresh = sum(a > self.config.pulser_adc_thresh for a in adc)
        n_high = sum(a > self.config.pulser_adc_high for a in adc)
        return n_thresh == 1 and n_high == 1

    def reconstruct_side(self, row: Mapping[str, Any], s: Side, t: float) -> SideReco:
        cuts = self.cuts
        adc = self.pedestal_subtracted_adc(row, s, t)
        tdc = tuple(float(row[column("tdc", s, i)]) for i in range(self.config.n_tubes))
        tdc_2of4 = float(row[column("tdc", s, "_2of4")])
        anode = float(row[column("anode", s)]) - self.calibrator.pedestal(anode_sensor_name(s), t)
        cath_max = float(row[column("cath_max", s)])
        cath_sum = float(row[column("cath_sum", s)])
        passed_mwpc = cuts.side_cut("Cut_MWPC_{s}_CathMax", s).in_range(cath_max)
        if passed_mwpc:
            x, y = float(row[column("pos_x", s)]), float(row[column("pos_y", s)])
        else:
            x, y = 0.0, 0.0
        if s == Side.EAST:
            tagged_top = cuts["Cut_TDC_Top_E"].in_range(float(row["top_tdc_e"]))
        else:
            tagged_top = False
        return SideReco(
            adc=adc,
            tdc=tdc,
            tdc_2of4=tdc_2of4,
            anode=anode,
            cath_max=cath_max,
            cath_sum=cath_sum,
            pos_x=x,
            pos_y=y,
            passed_anode=cuts.side_cut("Cut_MWPC_{s}_Anode", s).in_range(anode),
            passed_cath_sum=cuts.side_cut("Cut_MWPC_{s}_CathSum", s).in_range(cath_sum),
            passed_mwpc=passed_mwpc,
            passed_tdc=cuts.side_cut("Cut_TDC_Scint_{s}", s).in_range(tdc_2of4),
            tagged_back=cuts.side_cut("Cut_TDC_Back_{s}", s).in_range(float(row[column("back_tdc", s)])),
            tagged_drift=cuts.side_cut("Cut_ADC_Drift_{s}", s).in_range(float(row[column("drift_tac", s)])),
            tagged_top=tagged_top,
            single_high_tube=self.single_high_tube(adc),
            e_vis=self.calibrator.visible_energy(s, adc, x, y, t),
            e_mwpc=self.calibrator.anode_energy(s, anode, x, y, t),
        )

    def reconstruct(self, row: Mapping[str, Any], t: float) -> RecoEvent:
        """Reconstruct both sides of one event, at corrected run time `t` (s)."""
        east, west = (self.reconstruct_side(row, s, t) for s in SIDES)
        inputs = ClassifierInputs(
            passed_mwpc=(east.passed_mwpc, west.passed_mwpc),
            passed_tdc=(east.passed_tdc, west.passed_tdc),
            tagged_back=(east.tagged_back, west.tagged_back),
            tagged_drift=(east.tagged_drift, west.tagged_drift),
            tagged_top=(east.tagged_top, west.tagged_top),
            trigger_flags=int(row["sis00"]),
            single_high_tube=(east.single_high_tube, west.single_high_tube),
            selftrig_tdc=(east.tdc_2of4, west.tdc_2of4),
            selftrig_start=(self.selftrig[Side.EAST].start, self.selftrig[Side.WEST].start),
        )
        return RecoEvent((east, west), inputs)

    def true_energy(self, reco: RecoEvent, result: ClassificationResult) -> float:
        """Energy estimate corrected for the event type, for single-sided events of type III or lower;
        otherwise the summed visible energy."""
        e_east, e_west = reco[Side.EAST].e_vis, reco[Side.WEST].e_vis
        if result.side in SIDES and result.event_type <= EventType.TYPE_III:
            return self.calibrator.etrue(result.side, result.event_type, e_east, e_west)
        return e_east + e_west
