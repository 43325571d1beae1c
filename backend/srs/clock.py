"""Time and interval arithmetic shared by the scheduler, queue and stats.

All moments are naive UTC datetimes (see ``backend.config.utcnow``) and all
intervals are fractional days.
"""

from datetime import date, datetime, timedelta

MINUTES_PER_DAY = 1440


def minutes_to_days(minutes: float) -> float:
    """Convert a learning-step duration in minutes to fractional days."""
    return minutes / MINUTES_PER_DAY


def due_after(now: datetime, interval_days: float) -> datetime:
    """Return the moment a card with the given interval becomes due."""
    return now + timedelta(days=interval_days)


def day_key(moment: datetime) -> str:
    """Return the calendar day of a moment as ``YYYY-MM-DD``."""
    return moment.date().isoformat()


def days_between(earlier: datetime | date, later: datetime | date) -> int:
    """Whole calendar days between two moments, ignoring the time of day."""
    if isinstance(earlier, datetime):
        earlier = earlier.date()
    if isinstance(later, datetime):
        later = later.date()
    return abs((later - earlier).days)
