"""Review session orchestrator.

Runs the read-modify-write cycle for a rating: normalize today's progress,
schedule the card, update the learner's stats and counters, log the review,
and commit everything in one transaction.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import utcnow
from backend.models.card import Card
from backend.models.deck import Deck
from backend.models.learner import Learner
from backend.models.review_log import ReviewLog
from backend.srs.progress import DailyProgress, record_review
from backend.srs.queue import StudyQueue, build_queue
from backend.srs.scheduler import (
    CardState,
    CardStatus,
    Rating,
    Scheduler,
    adjust_for_reaction_time,
    parse_rating,
    suspend_card,
    unsuspend_card,
)
from backend.srs.stats import UserStats, update_user_stats

logger = logging.getLogger(__name__)


@dataclass
class ReviewOutcome:
    """Everything a single rating changed."""

    previous: CardState
    card: CardState
    rating: Rating
    applied_rating: Rating
    stats: UserStats
    progress: DailyProgress
    xp_earned: int


async def _get_learner_card(db: AsyncSession, learner_id: int, card_id: int) -> tuple[Learner, Card]:
    learner = await db.get(Learner, learner_id)
    if learner is None:
        raise LookupError(f"Learner {learner_id} not found")
    card = await db.get(Card, card_id)
    if card is None:
        raise LookupError(f"Card {card_id} not found")
    deck = await db.get(Deck, card.deck_id)
    if deck is None or deck.learner_id != learner_id:
        raise LookupError(f"Card {card_id} does not belong to learner {learner_id}")
    return learner, card


async def apply_review(
    db: AsyncSession,
    learner_id: int,
    card_id: int,
    rating: Rating | str,
    time_ms: int,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> ReviewOutcome:
    """Rate a card and persist the card, stats, progress and review log.

    Args:
        db: Database session.
        learner_id: The learner doing the review.
        card_id: The card being rated.
        rating: again/hard/good/easy.
        time_ms: How long the answer took in milliseconds.
        now: Review time (defaults to utcnow).
        rng: Random source for interval fuzz.

    Returns:
        The ReviewOutcome that was committed.

    Raises:
        LookupError: The learner or card does not exist.
        SchedulingError: The rating, status or settings are invalid; nothing
            is written in that case.
    """
    rating = parse_rating(rating)
    now = now or utcnow()
    learner, card = await _get_learner_card(db, learner_id, card_id)

    settings = learner.scheduler_settings()
    previous = card.to_state()
    updated = Scheduler(settings, rng=rng).schedule(previous, rating, time_ms, now=now)
    applied = adjust_for_reaction_time(rating, time_ms, settings)

    old_stats = learner.user_stats()
    stats = update_user_stats(old_stats, rating, previous.status, now)
    progress = record_review(learner.daily_progress(), previous.status, now)

    card.apply_state(updated)
    learner.apply_stats(stats)
    learner.apply_progress(progress)
    db.add(
        ReviewLog(
            card_id=card.id,
            learner_id=learner_id,
            rating=rating.value,
            applied_rating=applied.value,
            time_ms=time_ms,
            status_before=previous.status.value,
            status_after=updated.status.value,
            interval_before=previous.interval,
            interval_after=updated.interval,
            ease_before=previous.ease_factor,
            ease_after=updated.ease_factor,
            reviewed_at=now,
        )
    )
    await db.commit()

    logger.info(
        "Learner %d rated card %d %s: %s -> %s, next due %s",
        learner_id,
        card_id,
        rating.value,
        previous.status.value,
        updated.status.value,
        updated.due_date.isoformat(timespec="minutes"),
    )
    return ReviewOutcome(
        previous=previous,
        card=updated,
        rating=rating,
        applied_rating=applied,
        stats=stats,
        progress=progress,
        xp_earned=stats.xp - old_stats.xp,
    )


async def set_suspended(
    db: AsyncSession,
    card_id: int,
    suspended: bool,
    now: datetime | None = None,
) -> CardState:
    """Suspend or un-suspend a card and commit."""
    card = await db.get(Card, card_id)
    if card is None:
        raise LookupError(f"Card {card_id} not found")
    state = card.to_state()
    if suspended:
        updated = suspend_card(state)
    else:
        deck = await db.get(Deck, card.deck_id)
        learner = await db.get(Learner, deck.learner_id) if deck is not None else None
        settings = learner.scheduler_settings() if learner is not None else None
        updated = unsuspend_card(state, now, settings)
    card.apply_state(updated)
    await db.commit()
    logger.info("Card %d is now %s", card_id, updated.status.value)
    return updated


@dataclass
class SessionStats:
    """Statistics for a review session."""

    cards_reviewed: int = 0
    again: int = 0
    hard: int = 0
    good: int = 0
    easy: int = 0
    new_cards_seen: int = 0
    suspended: int = 0
    xp_earned: int = 0
    average_time_ms: float = 0.0
    total_time_ms: int = 0


@dataclass
class ReviewSession:
    """Walks a learner through a prepared study queue."""

    learner_id: int
    queue: StudyQueue
    deck_id: int | None = None
    stats: SessionStats = field(default_factory=SessionStats)
    _card_index: int = 0
    _cards: list[CardState] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Initialize the card list from the queue."""
        self._cards = self.queue.ordered()

    @property
    def remaining(self) -> int:
        """Return the number of cards left to review."""
        return max(0, len(self._cards) - self._card_index)

    @property
    def is_complete(self) -> bool:
        """Return True if all cards have been reviewed."""
        return self._card_index >= len(self._cards)

    @property
    def current_card(self) -> CardState | None:
        """Return the current card or None if session is complete."""
        if self._card_index < len(self._cards):
            return self._cards[self._card_index]
        return None

    def _require_current(self) -> CardState:
        card = self.current_card
        if card is None:
            raise LookupError("Session is complete")
        return card

    async def submit_rating(
        self,
        db: AsyncSession,
        rating: Rating | str,
        time_ms: int,
        now: datetime | None = None,
        rng: random.Random | None = None,
    ) -> ReviewOutcome:
        """Rate the current card and advance to the next one."""
        card = self._require_current()
        outcome = await apply_review(db, self.learner_id, card.id, rating, time_ms, now=now, rng=rng)

        self.stats.cards_reviewed += 1
        self.stats.total_time_ms += time_ms
        self.stats.average_time_ms = self.stats.total_time_ms / self.stats.cards_reviewed
        self.stats.xp_earned += outcome.xp_earned
        if outcome.previous.status == CardStatus.NEW:
            self.stats.new_cards_seen += 1
        tally = outcome.rating.value
        setattr(self.stats, tally, getattr(self.stats, tally) + 1)
        if outcome.card.status == CardStatus.SUSPENDED:
            self.stats.suspended += 1

        self._card_index += 1
        return outcome

    async def suspend_current(self, db: AsyncSession) -> CardState:
        """Suspend the current card and skip past it."""
        card = self._require_current()
        updated = await set_suspended(db, card.id, True)
        self.stats.suspended += 1
        self._card_index += 1
        return updated


async def start_session(
    db: AsyncSession,
    learner_id: int,
    deck_id: int | None = None,
    now: datetime | None = None,
) -> ReviewSession:
    """Start a new review session for a learner.

    Args:
        db: Database session.
        learner_id: The learner starting the session.
        deck_id: Study one deck only (defaults to every deck).
        now: Current time (defaults to utcnow).

    Returns:
        A ReviewSession ready for use.
    """
    queue = await build_queue(db, learner_id, deck_id=deck_id, now=now)
    session = ReviewSession(learner_id=learner_id, queue=queue, deck_id=deck_id)

    logger.info(
        "Started session for learner %d: %d cards queued",
        learner_id,
        queue.total,
    )
    return session
