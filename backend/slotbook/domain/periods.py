from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Iterable, Iterator

from ..schemas import Period
from ..utils.time import local_zone


def _period(name: str, start: str, end: str) -> Period:
    return Period(name=name, label=f"{start} - {end}", start=start, end=end)


DEFAULT_PERIODS: tuple[Period, ...] = (
    _period("1st Period", "09:00", "09:45"),
    _period("2nd Period", "09:50", "10:35"),
    _period("3rd Period", "10:55", "11:40"),
    _period("4th Period (LG)", "11:45", "12:30"),
    _period("4th Period (UG)", "12:35", "13:20"),
    _period("5th Period", "13:25", "14:10"),
    _period("6th Period", "14:15", "15:00"),
)


class PeriodCatalog:
    """Ordered, name-addressable set of daily periods."""

    def __init__(self, periods: Iterable[Period] = DEFAULT_PERIODS) -> None:
        self._periods: dict[str, Period] = {}
        for period in periods:
            if period.name in self._periods:
                raise ValueError(f"duplicate period name {period.name!r}")
            self._periods[period.name] = period

    def __iter__(self) -> Iterator[Period]:
        return iter(self._periods.values())

    def __len__(self) -> int:
        return len(self._periods)

    def __contains__(self, name: object) -> bool:
        return name in self._periods

    def get(self, name: str) -> Period:
        return self._periods[name]


def period_window(period: Period, day: date, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """Absolute [start, end) of ``period`` on ``day`` in the local zone, seconds zeroed."""
    zone = tz or local_zone()
    start = datetime.combine(day, period.start_time, tzinfo=zone)
    end = datetime.combine(day, period.end_time, tzinfo=zone)
    return start, end
