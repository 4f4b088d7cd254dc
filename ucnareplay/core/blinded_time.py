"""
Blinded times (one value per side slot) and the excluded-time intervals ("blips") built from them.
"""

from dataclasses import dataclass
import dataclasses

from ..common import Side


@dataclass(frozen=True)
class BlindedTime:
    """Times for each of the four side slots: EAST, WEST, BOTH (unblinded) and NONE.

    Arithmetic is element-wise over all four slots."""

    east: float = 0.0
    west: float = 0.0
    both: float = 0.0
    none: float = 0.0

    @classmethod
    def constant(cls, t: float) -> "BlindedTime":
        """A BlindedTime with the same value `t` in every slot."""
        return cls(t, t, t, t)

    @classmethod
    def zero(cls) -> "BlindedTime":
        return cls()

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.east, self.west, self.both, self.none)

    def __getitem__(self, s: Side) -> float:
        return self.as_tuple()[s]

    def __add__(self, other: "BlindedTime") -> "BlindedTime":
        return BlindedTime(*(a + b for a, b in zip(self.as_tuple(), other.as_tuple())))

    def __sub__(self, other: "BlindedTime") -> "BlindedTime":
        return BlindedTime(*(a - b for a, b in zip(self.as_tuple(), other.as_tuple())))

    def __mul__(self, x: float) -> "BlindedTime":
        return BlindedTime(*(x * a for a in self.as_tuple()))

    __rmul__ = __mul__

    def midpoint(self, other: "BlindedTime") -> "BlindedTime":
        """Element-wise average of two times, used to place blip boundaries between events."""
        return 0.5 * (self + other)


@dataclass(frozen=True)
class Blip:
    """An interval [start, end) of run time excluded from the live time.

    A Blip with `end is None` is still open."""

    start: BlindedTime
    end: BlindedTime | None = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def closed_at(self, end: BlindedTime) -> "Blip":
        """Return a copy of this blip, closed at time `end`."""
        assert self.is_open, "blip is already closed"
        return dataclasses.replace(self, end=end)

    def length(self) -> BlindedTime:
        """Length of the (closed) blip in every slot."""
        if self.end is None:
            raise ValueError("an open blip has no length")
        return self.end - self.start
