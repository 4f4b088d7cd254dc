import pytest

from ucnareplay.common import Side
from ucnareplay.core import BlindedTime, Blip


def test_arithmetic_is_elementwise():
    a = BlindedTime(1.0, 2.0, 3.0, 4.0)
    b = BlindedTime(0.5, 0.5, 1.0, 2.0)
    assert (a + b).as_tuple() == (1.5, 2.5, 4.0, 6.0)
    assert (a - b).as_tuple() == (0.5, 1.5, 2.0, 2.0)
    assert (2 * a).as_tuple() == (2.0, 4.0, 6.0, 8.0)
    assert (a * 0.5) == BlindedTime(0.5, 1.0, 1.5, 2.0)


def test_indexing_by_side():
    t = BlindedTime(1.0, 2.0, 3.0, 4.0)
    assert t[Side.EAST] == 1.0
    assert t[Side.WEST] == 2.0
    assert t[Side.BOTH] == 3.0
    assert t[Side.NONE] == 4.0


def test_midpoint():
    a = BlindedTime.constant(10.0)
    b = BlindedTime(12.0, 14.0, 16.0, 18.0)
    assert a.midpoint(b) == BlindedTime(11.0, 12.0, 13.0, 14.0)
    assert BlindedTime.zero() == BlindedTime.constant(0.0)


def test_blip_length():
    blip = Blip(BlindedTime.constant(2.5))
    assert blip.is_open
    with pytest.raises(ValueError):
        blip.length()
    closed = blip.closed_at(BlindedTime(6.5, 7.0, 6.5, 6.5))
    assert not closed.is_open
    assert blip.is_open
    assert closed.length() == BlindedTime(4.0, 4.5, 4.0, 4.0)
