"""Reference times counted in 100-nanosecond units."""

from __future__ import annotations

from dataclasses import dataclass

MILLISECONDS = 1000
NANOSECONDS = 1_000_000_000
UNITS = NANOSECONDS // 100
TIME_ZERO = 0

RESOLUTION = 1
ADVISE_CACHE = 4
MAX_TIME = 0x7FFFFFFFFFFFFFFF

_UNITS_PER_MILLISECOND = UNITS // MILLISECONDS


def _truncating_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


@dataclass(frozen=True, order=True)
class RefTime:
    """A time value in 100ns units with simple arithmetic."""

    time: int = TIME_ZERO

    @classmethod
    def from_milliseconds(cls, msecs: int) -> RefTime:
        """Build a reference time from whole milliseconds."""
        return cls(int(msecs) * _UNITS_PER_MILLISECOND)

    def millisecs(self) -> int:
        """Whole milliseconds, truncated toward zero."""
        return _truncating_div(self.time, _UNITS_PER_MILLISECOND)

    def __int__(self) -> int:
        return self.time

    def __add__(self, other: RefTime | int) -> RefTime:
        if isinstance(other, (RefTime, int)):
            return RefTime(self.time + int(other))
        return NotImplemented

    __radd__ = __add__

    def __sub__(self, other: RefTime | int) -> RefTime:
        if isinstance(other, (RefTime, int)):
            return RefTime(self.time - int(other))
        return NotImplemented


def convert_to_milliseconds(rt: RefTime | int) -> int:
    """Convert a reference time to whole milliseconds, truncated toward zero."""
    return _truncating_div(int(rt), _UNITS_PER_MILLISECOND)