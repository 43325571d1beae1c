"""XP, level and daily-streak bookkeeping for rated reviews."""

from dataclasses import dataclass, replace
from datetime import datetime

from backend.config import utcnow
from backend.srs.clock import days_between
from backend.srs.scheduler import CardStatus, Rating, parse_rating, parse_status

XP_PER_LEVEL = 500
BASE_XP = 10
NEW_CARD_XP = 15
EASY_BONUS_XP = 5
AGAIN_XP = 2


@dataclass(frozen=True)
class UserStats:
    """Cumulative gamification state for the learner."""

    xp: int = 0
    level: int = 1
    streak: int = 0
    last_study_date: datetime | None = None
    cards_learned: int = 0


def level_for_xp(xp: int) -> int:
    """Return the level reached with ``xp`` points (level 1 starts at 0)."""
    return xp // XP_PER_LEVEL + 1


def xp_for_review(rating: Rating, previous_status: CardStatus) -> int:
    """Return the XP earned for one rated card.

    A failed card always earns the flat "again" award, even when new.
    """
    if rating == Rating.AGAIN:
        return AGAIN_XP
    xp = NEW_CARD_XP if previous_status == CardStatus.NEW else BASE_XP
    if rating == Rating.EASY:
        xp += EASY_BONUS_XP
    return xp


def update_user_stats(
    stats: UserStats,
    rating: Rating | str,
    previous_status: CardStatus | str,
    now: datetime | None = None,
) -> UserStats:
    """Apply one rated review to the learner's stats.

    Args:
        stats: Stats before the review.
        rating: The rating the learner submitted.
        previous_status: The card's status before it was scheduled.
        now: Review time (defaults to utcnow).

    Returns:
        New stats with XP, level, streak and last study date updated.
    """
    rating = parse_rating(rating)
    previous_status = parse_status(previous_status)
    now = now or utcnow()

    xp = stats.xp + xp_for_review(rating, previous_status)

    if stats.last_study_date is None:
        streak = 1
    else:
        gap = days_between(stats.last_study_date, now)
        if gap == 0:
            streak = stats.streak
        elif gap == 1:
            streak = stats.streak + 1
        else:
            streak = 1

    cards_learned = stats.cards_learned
    if previous_status == CardStatus.NEW and rating != Rating.AGAIN:
        cards_learned += 1

    return replace(
        stats,
        xp=xp,
        level=level_for_xp(xp),
        streak=streak,
        last_study_date=now,
        cards_learned=cards_learned,
    )
