"""
Bi pulser gain monitor.

Every PMT sees light from its own Bi pulser. Pulser events fill, for every tube, a histogram of
pedestal-subtracted ADC in one of several equal slices of run time. At the end of the run the
pulser peak in each (side, tube, slice) histogram is located by scanning down from the top of the
ADC range, then fit with a Gaussian, giving the PMT gain drift over the run.
"""

from dataclasses import dataclass
from collections.abc import Sequence
import logging
import math

import joblib
import numpy as np
import polars as pl

from ..common import Side, SIDES
from ..mathstat.peaks import PeakFit, seed_peak, fit_gaussian_peak
from .config import ReplayConfig

LOG = logging.getLogger("ucnareplay")


@dataclass(frozen=True)
class PulserPeak:
    """The fitted pulser peak of one tube in one time slice."""

    side: Side
    tube: int
    slice: int
    time: float
    counts: int
    fit: PeakFit

    @property
    def center(self):
        return self.fit.center

    @property
    def width(self):
        return self.fit.width

    @property
    def height(self):
        return self.fit.height


class PulserMonitor:
    """Time-sliced pulser ADC histograms of every tube, for one run spanning [t_start, t_end] seconds.

    The run is cut into ceil(duration / config.pulser_slice_s) equal slices, at least one.
    """

    def __init__(self, config: ReplayConfig, t_start: float, t_end: float):
        self.config = config
        self.t_start = float(t_start)
        self.duration = max(float(t_end) - self.t_start, 0.0)
        self.n_slices = max(1, math.ceil(self.duration / config.pulser_slice_s))
        self.bin_edges = np.asarray(config.pulser_bin_edges, dtype=float)
        nbins = len(self.bin_edges) - 1
        self.counts = {(s, t): np.zeros((self.n_slices, nbins), dtype=np.int64) for s in SIDES for t in range(config.n_tubes)}

    def __getitem__(self, key: tuple[Side, int]) -> np.ndarray:
        return self.counts[key]

    @property
    def bin_centers(self) -> np.ndarray:
        return 0.5 * (self.bin_edges[1:] + self.bin_edges[:-1])

    def slice_index(self, t: float) -> int:
        """The slice holding run time `t`; times outside the run go to the first or last slice."""
        if self.duration <= 0:
            return 0
        i = int((t - self.t_start) / self.duration * self.n_slices)
        return min(max(i, 0), self.n_slices - 1)

    def slice_time(self, i: int) -> float:
        """Run time at the middle of slice `i`."""
        return self.t_start + (i + 0.5) * self.duration / self.n_slices

    def fill_side(self, s: Side, t: float, adc: Sequence[float]) -> None:
        """Fill the tubes of side `s` that are above the pulser threshold, from one pulser event's
        pedestal-subtracted ADCs."""
        i = self.slice_index(t)
        for tube in range(self.config.n_tubes):
            if adc[tube] <= self.config.pulser_adc_thresh:
                continue
            b = int(np.searchsorted(self.bin_edges, adc[tube], side="right")) - 1
            if 0 <= b < len(self.bin_edges) - 1:
                self.counts[(s, tube)][i, b] += 1

    def fit_slice(self, s: Side, tube: int, i: int) -> PulserPeak | None:
        """Fit the pulser peak of one histogram, or None if it has no peak tall enough to seed a fit."""
        cfg = self.config
        counts = self.counts[(s, tube)][i]
        seed, found = seed_peak(counts, self.bin_centers, cfg.pulser_min_peak_counts)
        if not found:
            LOG.debug("No pulser peak for side=%s tube=%d slice=%d", s.letter, tube, i)
            return None
        fit = fit_gaussian_peak(
            counts,
            self.bin_centers,
            seed,
            initial_width=cfg.pulser_initial_width,
            n_sigma=cfg.pulser_fit_n_sigma,
            iterations=cfg.pulser_fit_iterations,
        )
        if not fit.success:
            LOG.warning("Pulser peak fit failed for side=%s tube=%d slice=%d: %s", s.letter, tube, i, fit.message)
        return PulserPeak(s, tube, i, self.slice_time(i), int(counts.sum()), fit)

    def fit(self, n_jobs: int = 1) -> list[PulserPeak]:
        """Fit every (side, tube, slice) histogram that holds a pulser peak, in parallel threads if n_jobs > 1."""
        keys = [(s, tube, i) for (s, tube) in self.counts for i in range(self.n_slices)]
        if n_jobs == 1:
            peaks = [self.fit_slice(*key) for key in keys]
        else:
            parallel = joblib.Parallel(n_jobs=n_jobs, prefer="threads")
            peaks = parallel(joblib.delayed(self.fit_slice)(*key) for key in keys)
        peaks = [p for p in peaks if p is not None]
        LOG.info("Fit %d pulser peaks in %d time slices", len(peaks), self.n_slices)
        return peaks


def pulser_table(peaks: Sequence[PulserPeak]) -> pl.DataFrame:
    """One row per fitted pulser peak: where, when, and the peak parameters with their uncertainties."""
    rows = [
        {
            "side": p.side.word,
            "tube": p.tube,
            "slice": p.slice,
            "time": p.time,
            "counts": p.counts,
            "height": p.height.n,
            "dheight": p.height.s,
            "center": p.center.n,
            "dcenter": p.center.s,
            "width": p.width.n,
            "dwidth": p.width.s,
            "success": p.fit.success,
        }
        for p in peaks
    ]
    schema = {
        "side": pl.String,
        "tube": pl.Int64,
        "slice": pl.Int64,
        "time": pl.Float64,
        "counts": pl.Int64,
        "height": pl.Float64,
        "dheight": pl.Float64,
        "center": pl.Float64,
        "dcenter": pl.Float64,
        "width": pl.Float64,
        "dwidth": pl.Float64,
        "success": pl.Boolean,
    }
    return pl.DataFrame(rows, schema=schema)
