"""
common.py

Enumerations and stand-alone helpers used throughout ucnareplay.
"""

from enum import Enum, IntEnum, auto


class Side(IntEnum):
    """Detector side. The integer value indexes the slots of a BlindedTime."""

    EAST = 0
    WEST = 1
    BOTH = 2
    NONE = 3

    @property
    def letter(self) -> str:
        return "EWBN"[self]

    @property
    def word(self) -> str:
        return ("East", "West", "Both", "None")[self]

    @classmethod
    def from_letter(cls, letter: str) -> "Side":
        return cls("EWBN".index(letter.upper()))


SIDES = (Side.EAST, Side.WEST)


class EventType(IntEnum):
    """Event topology (backscatter) class. Ordered, so `TYPE_III` and below can be selected by comparison."""

    TYPE_0 = 0
    TYPE_I = 1
    TYPE_II = 2
    TYPE_III = 3
    TYPE_IV = 4

    @property
    def word(self) -> str:
        return ("Type0", "TypeI", "TypeII", "TypeIII", "TypeIV")[self]


class PID(Enum):
    """Particle identification class."""

    LED = auto()
    PULSER = auto()
    MUON = auto()
    BETA = auto()
    SINGLE = auto()


def other_side(s: Side) -> Side:
    """Return the opposite side: EAST<->WEST and BOTH<->NONE."""
    return {Side.EAST: Side.WEST, Side.WEST: Side.EAST, Side.BOTH: Side.NONE, Side.NONE: Side.BOTH}[s]


def side_subst(template: str, s: Side) -> str:
    """Fill a name template with a side, e.g. side_subst("Cut_TDC_Back_{s}", Side.EAST) == "Cut_TDC_Back_E".

    `{s}` is replaced by the side letter, `{side}` by the side word."""
    return template.format(s=s.letter, side=s.word)
