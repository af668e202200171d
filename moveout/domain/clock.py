# moveout/domain/clock.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def today(self) -> date: ...


@dataclass(frozen=True)
class SystemClock:
    """Start-of-day "today" in a fixed zone, so a late-evening call never lands on tomorrow."""

    tz_name: str = "UTC"

    def today(self) -> date:
        return datetime.now(ZoneInfo(self.tz_name)).date()


@dataclass(frozen=True)
class FixedClock:
    day: date

    def today(self) -> date:
        return self.day


def default_clock() -> Clock:
    from ..config import settings

    return SystemClock(settings.timezone)
