"""Typed view over a store's weekly working-hours table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any, Dict, Mapping, Optional

from .constants import WEEKDAY_KEYS


def parse_hhmm(value: str) -> time:
    """Parse an ``HH:MM`` wall-clock string."""
    try:
        hour_str, minute_str = value.strip().split(":")
        return time(int(hour_str), int(minute_str))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid time format: {value!r}. Expected HH:MM.") from exc


@dataclass(frozen=True)
class DaySchedule:
    """Opening window for a single weekday."""

    start: time
    end: time
    active: bool = True

    def fits(self, local_start: datetime, duration_minutes: int) -> bool:
        """True when ``[local_start, local_start + duration)`` lies inside ``[start, end)``."""
        if not self.active:
            return False
        local_end = local_start + timedelta(minutes=duration_minutes)
        if local_end.date() != local_start.date():
            return False
        start_t = local_start.time().replace(tzinfo=None)
        end_t = local_end.time().replace(tzinfo=None)
        return self.start <= start_t and end_t <= self.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M"),
            "active": self.active,
        }


@dataclass(frozen=True)
class WorkingHours:
    """Weekly table keyed by ``datetime.weekday()`` (Monday == 0)."""

    days: Dict[int, DaySchedule]

    @classmethod
    def parse(cls, raw: Optional[Mapping[str, Any]]) -> "WorkingHours":
        """
        Build from the JSON stored on ``Store.working_hours``.

        Raises:
            ValueError: On unknown weekday keys, bad times, or an active day
                whose start is not before its end.
        """
        days: Dict[int, DaySchedule] = {}
        for key, entry in (raw or {}).items():
            normalized = str(key).strip().lower()
            if normalized not in WEEKDAY_KEYS:
                raise ValueError(f"Unknown weekday: {key!r}")
            if not isinstance(entry, Mapping):
                raise ValueError(f"Working hours for {normalized} must be an object")
            active = bool(entry.get("active", False))
            start = parse_hhmm(str(entry.get("start", "00:00")))
            end = parse_hhmm(str(entry.get("end", "00:00")))
            if active and not start < end:
                raise ValueError(f"Working hours for {normalized}: start must be before end")
            days[WEEKDAY_KEYS.index(normalized)] = DaySchedule(start=start, end=end, active=active)
        return cls(days=days)

    def for_weekday(self, weekday: int) -> Optional[DaySchedule]:
        schedule = self.days.get(weekday)
        if schedule is None or not schedule.active:
            return None
        return schedule

    def is_open(self, local_start: datetime, duration_minutes: int) -> bool:
        schedule = self.for_weekday(local_start.weekday())
        return schedule is not None and schedule.fits(local_start, duration_minutes)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {WEEKDAY_KEYS[idx]: day.to_dict() for idx, day in sorted(self.days.items())}
