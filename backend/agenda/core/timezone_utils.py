"""
Timezone utilities for the Agenda booking engine.

All instants are stored and compared in UTC. Working hours are wall-clock
times in the single configured store timezone.
"""

from datetime import date, datetime, time, timezone
from typing import Callable

import pytz

from .config import settings

Clock = Callable[[], datetime]


def get_store_timezone() -> pytz.BaseTzInfo:
    """Return the configured store timezone as a pytz timezone object."""
    return pytz.timezone(settings.store_timezone)


def utc_now() -> datetime:
    """Current instant, timezone-aware UTC. Default clock for services."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are interpreted as store-local wall-clock time, which is how
    the first-party booking form submits them.
    """
    if value.tzinfo is None:
        value = get_store_timezone().localize(value)
    return value.astimezone(timezone.utc)


def to_store_local(value: datetime) -> datetime:
    """Convert an instant to store-local wall-clock time."""
    return ensure_utc(value).astimezone(get_store_timezone())


def local_to_utc(day: date, wall_time: time) -> datetime:
    """Combine a store-local date and time into an aware UTC instant."""
    tz = get_store_timezone()
    return tz.localize(datetime.combine(day, wall_time)).astimezone(timezone.utc)
