"""Club-local calendar time.

Slots are stored as a calendar date plus a wall-clock hour in the club's
time zone. Converting a slot to an instant must resolve the UTC offset at
the slot's own date, not at "now", otherwise every window and expiry
calculation is an hour off across a DST change.

Pure calculation module: no database, no async.
"""

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from app.core.config import settings

CLUB_TZ = ZoneInfo(settings.club_timezone)


def club_now() -> datetime:
    return datetime.now(CLUB_TZ)


def slot_start(slot_date: date, hour: int) -> datetime:
    """Aware datetime of the slot's start in club-local time."""
    return datetime.combine(slot_date, time(hour), tzinfo=CLUB_TZ)


def hours_until(slot_date: date, hour: int, now: datetime) -> float:
    """Real elapsed hours from now until the slot starts (negative once started).

    Both sides are converted to UTC first: subtracting two datetimes that
    share a tzinfo compares wall clocks and ignores the offset change.
    """
    delta = slot_start(slot_date, hour).astimezone(UTC) - now.astimezone(UTC)
    return delta.total_seconds() / 3600


def iso_week_bounds(day: date) -> tuple[date, date]:
    """Monday and Sunday of the ISO week containing day."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)
