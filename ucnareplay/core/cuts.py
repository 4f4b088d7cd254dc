"""
Range cuts and the per-run cut configuration.

A cuts file is YAML of the form

    cuts:
      Cut_MWPC_E_Anode:
        - {start: 50, end: 4000, runs: [14000, 14999]}
        - {start: 60, end: 4000, runs: [15000, 16999]}
      ...
    timecuts:
      14077: [[120.0, 135.5], [900.0, 910.0]]

Each named cut must have exactly one entry whose `runs` range covers the run being replayed.
"""

from dataclasses import dataclass, field
from collections.abc import Iterable
from pathlib import Path
from typing import Any
import logging
import math
import yaml

from ..common import Side, SIDES, side_subst

LOG = logging.getLogger("ucnareplay")

SIDED_CUT_TEMPLATES = (
    "Cut_MWPC_{s}_Anode",
    "Cut_MWPC_{s}_CathMax",
    "Cut_MWPC_{s}_CathSum",
    "Cut_TDC_Back_{s}",
    "Cut_ADC_Drift_{s}",
    "Cut_TDC_Scint_{s}_Selftrig",
    "Cut_TDC_Scint_{s}",
)
UNSIDED_CUTS = ("Cut_TDC_Top_E", "Cut_BeamBurst")


def required_cut_names() -> list[str]:
    """All cut names that must be configured for every run."""
    names = [side_subst(template, s) for s in SIDES for template in SIDED_CUT_TEMPLATES]
    return names + list(UNSIDED_CUTS)


class ConfigurationError(Exception):
    """A required cut is missing, duplicated, or malformed. Replaying a run with bad cuts is not allowed."""

    pass


@dataclass(frozen=True)
class RangeCut:
    """An inclusive interval: `x` passes when start <= x <= end."""

    start: float = 0.0
    end: float = 0.0

    def in_range(self, x: float) -> bool:
        return self.start <= x <= self.end

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "RangeCut":
        try:
            start, end = float(d["start"]), float(d["end"])
        except (KeyError, TypeError, ValueError) as ex:
            raise ConfigurationError(f"cut entry {d} needs numeric 'start' and 'end'") from ex
        if start > end:
            raise ConfigurationError(f"cut entry {d} has start > end")
        return cls(start, end)


@dataclass(frozen=True)
class CutSet:
    """The cuts in force for one run: named RangeCuts plus manually excluded time intervals."""

    run: int
    ranges: dict[str, RangeCut]
    manual_cuts: list[tuple[float, float]] = field(default_factory=list)

    def __getitem__(self, name: str) -> RangeCut:
        try:
            return self.ranges[name]
        except KeyError:
            raise ConfigurationError(f"no cut named '{name}' configured for run {self.run}") from None

    def side_cut(self, template: str, s: Side) -> RangeCut:
        """Look up a per-side cut from its name template, e.g. side_cut("Cut_TDC_Back_{s}", Side.EAST)."""
        return self[side_subst(template, s)]

    def in_manual_cut(self, t: float) -> bool:
        """Whether time `t` falls inside any manually cut interval (inclusive)."""
        return any(lo <= t <= hi for lo, hi in self.manual_cuts)

    def validate(self, required: Iterable[str] | None = None) -> None:
        """Raise ConfigurationError if any required cut is absent."""
        if required is None:
            required = required_cut_names()
        missing = [name for name in required if name not in self.ranges]
        if missing:
            raise ConfigurationError(f"run {self.run} is missing required cuts: {missing}")

    @classmethod
    def from_dict(cls, d: dict[str, Any], run: int, ignore_beam_out: bool = False, validate: bool = True) -> "CutSet":
        """Select the cuts covering `run` from a parsed cuts file.

        Parameters
        ----------
        d : dict
            Parsed cuts file, with keys "cuts" and (optionally) "timecuts"
        run : int
            The run number
        ignore_beam_out : bool, optional
            If True, widen the upper end of `Cut_BeamBurst` to infinity, by default False
        validate : bool, optional
            Whether to require every name in `required_cut_names()`, by default True

        Returns
        -------
        CutSet
            The cuts for this run

        Raises
        ------
        ConfigurationError
            If a cut has zero or several entries covering `run`, or an entry is malformed
        """
        if not isinstance(d, dict) or not isinstance(d.get("cuts", {}), dict):
            raise ConfigurationError("cuts file must be a mapping with a 'cuts' mapping")
        ranges: dict[str, RangeCut] = {}
        for name, entries in d.get("cuts", {}).items():
            if not isinstance(entries, list):
                raise ConfigurationError(f"cut {name} must be a list of entries")
            matching = [e for e in entries if _covers_run(e, run)]
            if len(matching) != 1:
                raise ConfigurationError(f"expected 1 cut but found {len(matching)} for {name}/{run}")
            ranges[name] = RangeCut.from_dict(matching[0])
            LOG.info("Loaded cut %s/%d = (%g,%g)", name, run, ranges[name].start, ranges[name].end)

        if ignore_beam_out and "Cut_BeamBurst" in ranges:
            ranges["Cut_BeamBurst"] = RangeCut(ranges["Cut_BeamBurst"].start, math.inf)

        timecuts = d.get("timecuts") or {}
        intervals = timecuts.get(run, timecuts.get(str(run), []))
        try:
            manual_cuts = [(float(lo), float(hi)) for lo, hi in intervals]
        except (TypeError, ValueError) as ex:
            raise ConfigurationError(f"timecuts for run {run} must be [start, end] pairs, got {intervals}") from ex
        if manual_cuts:
            LOG.info("Manually cutting %d time ranges...", len(manual_cuts))

        cutset = cls(run, ranges, manual_cuts)
        if validate:
            cutset.validate()
        return cutset

    @classmethod
    def from_yaml(cls, path: str | Path, run: int, ignore_beam_out: bool = False) -> "CutSet":
        """Load the cuts for `run` from a YAML cuts file."""
        with open(path, encoding="utf-8") as file:
            d = yaml.safe_load(file)
        return cls.from_dict(d, run, ignore_beam_out=ignore_beam_out)


def _covers_run(entry: dict[str, Any], run: int) -> bool:
    runs = entry.get("runs")
    if runs is None:
        return True
    try:
        first, last = runs
        return int(first) <= run <= int(last)
    except (TypeError, ValueError) as ex:
        raise ConfigurationError(f"cut entry {entry} needs 'runs' as [first, last]") from ex
