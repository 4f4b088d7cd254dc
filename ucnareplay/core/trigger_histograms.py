"""
Per-PMT trigger-efficiency histograms.

For each tube, an event enters the "all" histogram (at the tube's pedestal-subtracted ADC) when at
least two of the other three tubes on that side fired, so the side would have triggered without it.
It also enters the "triggered" histogram when the tube itself fired.
"""

from collections.abc import Iterator
import numpy as np

from ..common import Side, SIDES
from ..mathstat.fitting import EfficiencyPoints
from .config import ReplayConfig


class EfficiencyHistogram:
    """Counts of all and triggered events vs. ADC for one tube."""

    def __init__(self, bin_edges: np.ndarray, side: Side, tube: int):
        self.bin_edges = np.asarray(bin_edges, dtype=float)
        self.side = side
        self.tube = tube
        nbins = len(self.bin_edges) - 1
        self.all_counts = np.zeros(nbins, dtype=np.int64)
        self.triggered_counts = np.zeros(nbins, dtype=np.int64)

    def bin_index(self, x: float) -> int | None:
        """Index of the bin containing x, or None if it is outside the histogram."""
        i = int(np.searchsorted(self.bin_edges, x, side="right")) - 1
        if 0 <= i < len(self.all_counts):
            return i
        return None

    def fill(self, x: float, triggered: bool) -> None:
        i = self.bin_index(x)
        if i is None:
            return
        self.all_counts[i] += 1
        if triggered:
            self.triggered_counts[i] += 1

    @property
    def bin_centers(self) -> np.ndarray:
        return 0.5 * (self.bin_edges[1:] + self.bin_edges[:-1])

    @property
    def entries(self) -> int:
        return int(self.all_counts.sum())

    def points(self) -> EfficiencyPoints:
        return EfficiencyPoints(self.bin_centers, self.triggered_counts.copy(), self.all_counts.copy(), self.side, self.tube)


class TriggerEfficiencyHistograms:
    """The efficiency histograms of all tubes on both sides."""

    def __init__(self, config: ReplayConfig):
        self.config = config
        self.hists = {
            (s, t): EfficiencyHistogram(config.effic_bin_edges, s, t) for s in SIDES for t in range(config.n_tubes)
        }

    def __getitem__(self, key: tuple[Side, int]) -> EfficiencyHistogram:
        return self.hists[key]

    def __len__(self) -> int:
        return len(self.hists)

    def fill_side(self, s: Side, adc: tuple[float, ...], tdc: tuple[float, ...]) -> None:
        """Fill every tube of side `s` from one event's pedestal-subtracted ADCs and TDCs."""
        fired = [t > self.config.pmt_fired_tdc for t in tdc]
        n_fired = sum(fired)
        for tube in range(self.config.n_tubes):
            if n_fired - fired[tube] >= 2:
                self.hists[(s, tube)].fill(adc[tube], fired[tube])

    def points(self) -> Iterator[EfficiencyPoints]:
        for hist in self.hists.values():
            yield hist.points()
