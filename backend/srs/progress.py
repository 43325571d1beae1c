"""Daily study counters and the day-rollover rule.

Counters are reset lazily: whenever the stored day key differs from today's,
both counts are treated as zero. ``normalize_progress`` is the single place
that rule lives; callers run it before reading quotas or recording a review.
"""

from dataclasses import dataclass, replace
from datetime import datetime

from backend.config import utcnow
from backend.srs.clock import day_key
from backend.srs.scheduler import CardStatus, parse_status


@dataclass(frozen=True)
class DailyProgress:
    """How many new and review cards have been studied on ``date``."""

    date: str  # YYYY-MM-DD
    new_studied: int = 0
    review_studied: int = 0


def today_progress(now: datetime | None = None) -> DailyProgress:
    """Return empty progress for the current day."""
    return DailyProgress(date=day_key(now or utcnow()))


def normalize_progress(progress: DailyProgress, now: datetime | None = None) -> DailyProgress:
    """Return progress that belongs to today, zeroed if the day rolled over."""
    today = day_key(now or utcnow())
    if progress.date == today:
        return progress
    return DailyProgress(date=today)


def record_review(
    progress: DailyProgress,
    previous_status: CardStatus | str,
    now: datetime | None = None,
) -> DailyProgress:
    """Count one rated card against today's new or review quota."""
    current = normalize_progress(progress, now)
    if parse_status(previous_status) == CardStatus.NEW:
        return replace(current, new_studied=current.new_studied + 1)
    return replace(current, review_studied=current.review_studied + 1)
