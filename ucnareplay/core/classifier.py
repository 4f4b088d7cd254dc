"""
Event classification: particle ID (PID) and event type/side from the per-event cut decisions.

The PID is the first matching rule of `PID_RULES`; the type and primary side follow from the
two-of-four coincidence (wirechamber AND scintillator TDC) on each side. Classification is a pure
function of `ClassifierInputs` and never fails: ambiguous or empty inputs give the least
informative class (SINGLE, type IV, side NONE).
"""

from dataclasses import dataclass
from collections.abc import Callable

from ..common import Side, SIDES, PID, EventType, other_side
from .config import ReplayConfig


@dataclass(frozen=True)
class ClassifierInputs:
    """Everything the classifier looks at for one event. Per-side tuples are indexed (EAST, WEST)."""

    passed_mwpc: tuple[bool, bool] = (False, False)
    passed_tdc: tuple[bool, bool] = (False, False)
    tagged_back: tuple[bool, bool] = (False, False)
    tagged_drift: tuple[bool, bool] = (False, False)
    tagged_top: tuple[bool, bool] = (False, False)
    trigger_flags: int = 0
    single_high_tube: tuple[bool, bool] = (False, False)
    selftrig_tdc: tuple[float, float] = (0.0, 0.0)
    selftrig_start: tuple[float, float] = (0.0, 0.0)

    def is_two_fold(self, s: Side) -> bool:
        """Two-of-four coincidence on side `s`: wirechamber and scintillator TDC cuts both pass."""
        return bool(self.passed_mwpc[s] and self.passed_tdc[s])

    def any_two_fold(self) -> bool:
        return any(self.is_two_fold(s) for s in SIDES)

    def tagged_muon(self) -> bool:
        """Any muon veto (backing, drift tubes or top) fired on either side."""
        return any(self.tagged_back) or any(self.tagged_drift) or any(self.tagged_top)


@dataclass(frozen=True)
class ClassificationResult:
    pid: PID
    event_type: EventType
    side: Side


Rule = Callable[[ClassifierInputs, ReplayConfig], bool]


def _is_led(inp: ClassifierInputs, cfg: ReplayConfig) -> bool:
    return cfg.is_led(inp.trigger_flags)


def _is_pulser(inp: ClassifierInputs, cfg: ReplayConfig) -> bool:
    if inp.any_two_fold():
        return False
    return cfg.is_pulser_flag(inp.trigger_flags) or any(inp.single_high_tube)


def _is_muon(inp: ClassifierInputs, cfg: ReplayConfig) -> bool:
    return inp.any_two_fold() and inp.tagged_muon()


def _is_beta(inp: ClassifierInputs, cfg: ReplayConfig) -> bool:
    return inp.any_two_fold()


def _always(inp: ClassifierInputs, cfg: ReplayConfig) -> bool:
    return True


# evaluated in order, first match wins
PID_RULES: tuple[tuple[PID, Rule], ...] = (
    (PID.LED, _is_led),
    (PID.PULSER, _is_pulser),
    (PID.MUON, _is_muon),
    (PID.BETA, _is_beta),
    (PID.SINGLE, _always),
)


def determine_pid(inp: ClassifierInputs, config: ReplayConfig | None = None) -> PID:
    cfg = config or ReplayConfig()
    for pid, rule in PID_RULES:
        if rule(inp, cfg):
            return pid
    return PID.SINGLE


def determine_type(inp: ClassifierInputs) -> EventType:
    """Type I if both sides are two-fold; type II/0 if exactly one side is two-fold and the other side's
    scintillator did not fire (II when the other wirechamber did, 0 when it did not); else type IV."""
    if inp.is_two_fold(Side.EAST) and inp.is_two_fold(Side.WEST):
        return EventType.TYPE_I
    for s in SIDES:
        o = other_side(s)
        if inp.is_two_fold(s) and not inp.passed_tdc[o]:
            return EventType.TYPE_II if inp.passed_mwpc[o] else EventType.TYPE_0
    return EventType.TYPE_IV


def determine_side(inp: ClassifierInputs) -> Side:
    """The side whose scintillator TDC cut passed.

    If both passed, the West self-trigger TDC decides: below the lower end of the West self-trigger
    range gives EAST, otherwise WEST."""
    east, west = inp.passed_tdc
    if east and west:
        # West has the cleaner TDC separation. Only West's range is consulted, never East's.
        if inp.selftrig_tdc[Side.WEST] < inp.selftrig_start[Side.WEST]:
            return Side.EAST
        return Side.WEST
    if east:
        return Side.EAST
    if west:
        return Side.WEST
    return Side.NONE


def determine_type_and_side(inp: ClassifierInputs) -> tuple[EventType, Side]:
    return determine_type(inp), determine_side(inp)


def classify(inp: ClassifierInputs, config: ReplayConfig | None = None) -> ClassificationResult:
    """Assign PID, type and primary side to one event."""
    return ClassificationResult(determine_pid(inp, config), *determine_type_and_side(inp))


class EventClassifier:
    """`classify` bound to one run's configuration."""

    def __init__(self, config: ReplayConfig):
        self.config = config

    def __call__(self, inp: ClassifierInputs) -> ClassificationResult:
        return classify(inp, self.config)
