"""Period and fixed-unit duration values used by resolved configuration."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Final

_PERIOD_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:(?P<days>\d+)d)?"
    r"(?:(?P<hours>\d+)h)?"
    r"(?:(?P<minutes>\d+)m(?!s))?"
    r"(?:(?P<seconds>\d+)s)?"
    r"(?:(?P<millis>\d+)ms)?$"
)
_INTEGER_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True, slots=True)
class Period:
    """Calendar period such as ``14d`` or ``1d12h``.

    Periods keep the units they were written in; comparisons go through the
    standard duration where a day is 24 hours.
    """

    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    millis: int = 0

    def __post_init__(self) -> None:
        for name in ("days", "hours", "minutes", "seconds", "millis"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"period {name} must be a non-negative integer")

    @classmethod
    def from_timedelta(cls, value: timedelta) -> Period:
        """Split a non-negative duration into day, hour, minute, second and millisecond units."""

        if value < timedelta(0):
            raise ValueError("period must not be negative")
        total_millis = value // timedelta(milliseconds=1)
        seconds, millis = divmod(total_millis, 1000)
        minutes_, seconds = divmod(seconds, 60)
        hours, minutes_ = divmod(minutes_, 60)
        days_, hours = divmod(hours, 24)
        return cls(days=days_, hours=hours, minutes=minutes_, seconds=seconds, millis=millis)

    def to_timedelta(self) -> timedelta:
        return timedelta(
            days=self.days,
            hours=self.hours,
            minutes=self.minutes,
            seconds=self.seconds,
            milliseconds=self.millis,
        )

    def longer_than(self, other: Period) -> bool:
        return self.to_timedelta() > other.to_timedelta()

    def __str__(self) -> str:
        parts = [
            f"{value}{unit}"
            for value, unit in (
                (self.days, "d"),
                (self.hours, "h"),
                (self.minutes, "m"),
                (self.seconds, "s"),
                (self.millis, "ms"),
            )
            if value
        ]
        return "".join(parts) or "0s"


def parse_period(text: str) -> Period:
    """Parse ``<n>d<n>h<n>m<n>s<n>ms`` (each unit optional, in that order)."""

    candidate = text.strip()
    match = _PERIOD_PATTERN.fullmatch(candidate)
    if not candidate or match is None:
        raise ValueError(f"invalid period {text!r}; expected a value like 14d, 12h or 30m")
    fields = {name: int(value) for name, value in match.groupdict().items() if value is not None}
    return Period(**fields)


def parse_whole_number(value: object) -> int:
    """Accept an ``int`` or an integer-like string; reject booleans."""

    if isinstance(value, bool):
        raise ValueError(f"expected integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER_PATTERN.fullmatch(value.strip()):
        return int(value.strip())
    raise ValueError(f"expected integer, got {value!r}")


def minutes(value: object) -> timedelta:
    return timedelta(minutes=parse_whole_number(value))


def days(value: object) -> timedelta:
    return timedelta(days=parse_whole_number(value))


def whole_minutes(value: timedelta) -> int:
    return int(value.total_seconds() // 60)


def whole_days(value: timedelta) -> int:
    return value.days


__all__ = [
    "Period",
    "days",
    "minutes",
    "parse_period",
    "parse_whole_number",
    "whole_days",
    "whole_minutes",
]
