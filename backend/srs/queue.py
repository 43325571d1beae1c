"""Queue management for study sessions.

Decides which cards are studied now and in what order:
cards mid-ladder first (never quota-limited), then the most overdue
reviews, then new cards, both capped by today's remaining quota.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import utcnow
from backend.models.card import Card
from backend.models.deck import Deck
from backend.models.learner import Learner
from backend.srs.progress import DailyProgress, normalize_progress
from backend.srs.scheduler import CardState, CardStatus, SchedulerSettings

logger = logging.getLogger(__name__)

LEARNING_STATUSES = (CardStatus.LEARNING, CardStatus.RELEARNING)


@dataclass
class StudyQueue:
    """A prepared queue of cards, split into its three buckets."""

    learning_cards: list[CardState] = field(default_factory=list)
    review_cards: list[CardState] = field(default_factory=list)
    new_cards: list[CardState] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.learning_cards) + len(self.review_cards) + len(self.new_cards)

    def ordered(self) -> list[CardState]:
        """Return learning cards, then reviews, then new cards."""
        return [*self.learning_cards, *self.review_cards, *self.new_cards]


@dataclass(frozen=True)
class QueueCounts:
    """Bucket sizes for display, without quota limits."""

    new: int = 0
    learning: int = 0
    review: int = 0
    suspended: int = 0


def _is_due_learning(card: CardState, now: datetime) -> bool:
    return card.status in LEARNING_STATUSES and card.due_date <= now


def _is_due_review(card: CardState, now: datetime) -> bool:
    return card.status == CardStatus.REVIEW and card.due_date <= now


def partition_queue(
    cards: Iterable[CardState],
    settings: SchedulerSettings,
    progress: DailyProgress,
    now: datetime | None = None,
) -> StudyQueue:
    """Split cards into the learning, review and new buckets for today.

    Args:
        cards: Card snapshots in their natural (creation) order.
        settings: Supplies the daily new/review limits.
        progress: Today's counters; stale counters count as zero.
        now: Current time (defaults to utcnow).

    Returns:
        A StudyQueue with the review and new buckets already truncated.
    """
    now = now or utcnow()
    today = normalize_progress(progress, now)

    active = [c for c in cards if c.status != CardStatus.SUSPENDED]
    learning = [c for c in active if _is_due_learning(c, now)]
    reviews = sorted((c for c in active if _is_due_review(c, now)), key=lambda c: c.due_date)
    new = [c for c in active if c.status == CardStatus.NEW]

    review_quota = max(0, settings.max_reviews_per_day - today.review_studied)
    new_quota = max(0, settings.max_new_per_day - today.new_studied)

    return StudyQueue(
        learning_cards=learning,
        review_cards=reviews[:review_quota],
        new_cards=new[:new_quota],
    )


def get_study_queue(
    cards: Iterable[CardState],
    settings: SchedulerSettings,
    progress: DailyProgress,
    now: datetime | None = None,
) -> list[CardState]:
    """Return the cards to study now, in presentation order."""
    return partition_queue(cards, settings, progress, now).ordered()


def get_counts(cards: Iterable[CardState], now: datetime | None = None) -> QueueCounts:
    """Count new, due learning, due review and suspended cards."""
    now = now or utcnow()
    new = learning = review = suspended = 0
    for card in cards:
        if card.status == CardStatus.NEW:
            new += 1
        elif card.status == CardStatus.SUSPENDED:
            suspended += 1
        elif _is_due_learning(card, now):
            learning += 1
        elif _is_due_review(card, now):
            review += 1
    return QueueCounts(new=new, learning=learning, review=review, suspended=suspended)


async def load_card_states(
    session: AsyncSession,
    learner_id: int,
    deck_id: int | None = None,
) -> list[CardState]:
    """Load a learner's cards (optionally one deck) oldest first."""
    stmt = select(Card).join(Deck).where(Deck.learner_id == learner_id).order_by(Card.id.asc())
    if deck_id is not None:
        stmt = stmt.where(Card.deck_id == deck_id)
    result = await session.execute(stmt)
    return [card.to_state() for card in result.scalars().all()]


async def build_queue(
    session: AsyncSession,
    learner_id: int,
    deck_id: int | None = None,
    now: datetime | None = None,
) -> StudyQueue:
    """Build today's study queue for a learner.

    Args:
        session: Database session.
        learner_id: The learner to build the queue for.
        deck_id: Restrict to one deck (defaults to all of the learner's decks).
        now: Current time (defaults to utcnow).

    Returns:
        A StudyQueue honoring the learner's settings and today's progress.

    Raises:
        LookupError: The learner does not exist.
    """
    now = now or utcnow()
    learner = await session.get(Learner, learner_id)
    if learner is None:
        raise LookupError(f"Learner {learner_id} not found")

    cards = await load_card_states(session, learner_id, deck_id)
    queue = partition_queue(cards, learner.scheduler_settings(), learner.daily_progress(), now)

    logger.info(
        "Built queue for learner %d: %d learning + %d review + %d new = %d total",
        learner_id,
        len(queue.learning_cards),
        len(queue.review_cards),
        len(queue.new_cards),
        queue.total,
    )
    return queue
