"""
Progress reporting for long replays:

* InlineUpdater: rewrites one terminal line with the fraction done and a time-remaining estimate.
* NullUpdater: the same API, doing nothing.
"""

import time
import sys
import logging


class InlineUpdater:
    """Prints replay progress to stdout. Silent unless the "ucnareplay" logger is at INFO level or
    more verbose. No estimate is shown until `min_elapsed_s` has passed."""

    def __init__(self, label: str, min_elapsed_s: float = 1.0):
        self.label = label
        self.min_elapsed_s = min_elapsed_s
        self.start_time = time.time()
        self.logger = logging.getLogger("ucnareplay")

    def update(self, frac_done: float) -> None:
        if self.logger.getEffectiveLevel() >= logging.WARNING:
            return
        elapsed = time.time() - self.start_time
        remaining = "?"
        if elapsed > self.min_elapsed_s and frac_done > 0:
            remaining = f"{elapsed * (1 - frac_done) / frac_done / 60.0:.1f} min"
        sys.stdout.write(f"\r{self.label} {frac_done * 100.0:.1f}% done, estimated {remaining} left")
        sys.stdout.flush()
        if frac_done >= 1:
            sys.stdout.write(f"\n{self.label} finished in {elapsed / 60.0:.1f} min\n")


class NullUpdater:
    """A do-nothing updater class with the same API as InlineUpdater."""

    def update(self, frac_done: float) -> None:
        pass


def make_updater(name: str, show_progress: bool) -> InlineUpdater | NullUpdater:
    return InlineUpdater(name) if show_progress else NullUpdater()
