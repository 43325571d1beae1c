"""SM-2 style review scheduler with learning steps and leech detection.

Cards move through four scheduling phases:
- new / learning: short, minute-based steps before graduation.
- review: day-scale intervals grown by the card's ease factor.
- relearning: a lapsed review card working its way back.
- suspended: parked, never scheduled (leeches land here automatically).

Ratings: again < hard < good < easy. Slow "good"/"easy" answers are
downgraded one tier before scheduling.
"""

import logging
import random
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from backend.config import utcnow
from backend.srs.clock import due_after, minutes_to_days

logger = logging.getLogger(__name__)

MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5

AGAIN_EASE_PENALTY = 0.2
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15
HARD_INTERVAL_FACTOR = 1.2
RELEARN_RECOVERY_FACTOR = 0.5
SLOW_ANSWER_MULTIPLIER = 3

# Review intervals above this many days get +/-5% jitter
FUZZ_THRESHOLD_DAYS = 2
FUZZ_RANGE = (0.95, 1.05)


class Rating(Enum):
    """The learner's self-assessed recall."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class CardStatus(Enum):
    """Which scheduling phase a card is in."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"
    SUSPENDED = "suspended"


class CardType(Enum):
    BASIC = "basic"
    CLOZE = "cloze"


class SchedulingError(ValueError):
    """Base class for inputs the scheduler refuses to process."""


class InvalidRatingError(SchedulingError):
    pass


class InvalidStatusError(SchedulingError):
    pass


class InvalidSettingsError(SchedulingError):
    pass


class CardSuspendedError(SchedulingError):
    pass


@dataclass(frozen=True)
class SchedulerSettings:
    """Per-learner scheduling configuration, validated on construction."""

    learning_steps: tuple[float, ...] = (1, 10)  # minutes
    graduating_interval: float = 1.0  # days
    easy_bonus: float = 1.3
    leech_threshold: int = 8
    reaction_time_target_ms: int = 5000
    max_new_per_day: int = 20
    max_reviews_per_day: int = 100

    def __post_init__(self) -> None:
        object.__setattr__(self, "learning_steps", tuple(self.learning_steps))
        if not self.learning_steps:
            raise InvalidSettingsError("learning_steps must contain at least one step")
        if any(step < 0 for step in self.learning_steps):
            raise InvalidSettingsError(
                f"learning_steps must be non-negative minutes, got {list(self.learning_steps)}"
            )
        if self.graduating_interval < 0:
            raise InvalidSettingsError("graduating_interval must be >= 0 days")
        if self.easy_bonus < 1:
            raise InvalidSettingsError(f"easy_bonus must be a multiplier >= 1, got {self.easy_bonus}")
        if self.leech_threshold < 1:
            raise InvalidSettingsError("leech_threshold must be at least 1")
        if self.reaction_time_target_ms < 0:
            raise InvalidSettingsError("reaction_time_target_ms must be >= 0")
        if self.max_new_per_day < 0 or self.max_reviews_per_day < 0:
            raise InvalidSettingsError("daily limits must be >= 0")


@dataclass(frozen=True)
class CardState:
    """An immutable snapshot of a card and its scheduling state."""

    id: int | str
    front: str = ""
    back: str = ""
    card_type: CardType = CardType.BASIC
    status: CardStatus = CardStatus.NEW
    interval: float = 0.0  # days
    ease_factor: float = DEFAULT_EASE_FACTOR
    reps: int = 0
    lapses: int = 0
    due_date: datetime = field(default_factory=utcnow)
    step_index: int = 0
    last_reviewed: datetime | None = None
    suspended_from: CardStatus | None = None  # phase to restore on un-suspend


def parse_rating(value: Rating | str) -> Rating:
    """Return ``value`` as a Rating, rejecting anything unrecognized."""
    if isinstance(value, Rating):
        return value
    try:
        return Rating(str(value).strip().lower())
    except ValueError:
        raise InvalidRatingError(
            f"Unknown rating {value!r}; expected one of {[r.value for r in Rating]}"
        ) from None


def parse_status(value: CardStatus | str) -> CardStatus:
    """Return ``value`` as a CardStatus, rejecting anything unrecognized."""
    if isinstance(value, CardStatus):
        return value
    try:
        return CardStatus(value)
    except ValueError:
        raise InvalidStatusError(f"Unknown card status {value!r}") from None


def adjust_for_reaction_time(
    rating: Rating, time_taken_ms: float, settings: SchedulerSettings
) -> Rating:
    """Downgrade slow good/easy answers by one tier."""
    if time_taken_ms <= settings.reaction_time_target_ms * SLOW_ANSWER_MULTIPLIER:
        return rating
    if rating == Rating.EASY:
        return Rating.GOOD
    if rating == Rating.GOOD:
        return Rating.HARD
    return rating


class Scheduler:
    """Applies ratings to card snapshots under one set of settings."""

    def __init__(
        self,
        settings: SchedulerSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or SchedulerSettings()
        self.rng = rng or random.Random()

    def schedule(
        self,
        card: CardState,
        rating: Rating | str,
        time_taken_ms: float = 0,
        now: datetime | None = None,
    ) -> CardState:
        """Return the card as it stands after being rated.

        Args:
            card: Current card snapshot (never modified).
            rating: The submitted rating.
            time_taken_ms: How long the learner took to answer.
            now: Review time (defaults to utcnow).

        Returns:
            A new CardState with status, interval, ease and due date updated.

        Raises:
            InvalidRatingError: The rating is not one of again/hard/good/easy.
            InvalidStatusError: The card's status is not recognized.
            CardSuspendedError: The card is suspended.
        """
        submitted = parse_rating(rating)
        status = parse_status(card.status)
        now = now or utcnow()
        applied = adjust_for_reaction_time(submitted, time_taken_ms, self.settings)
        if applied != submitted:
            logger.debug(
                "Card %s: slow answer (%d ms), %s downgraded to %s",
                card.id,
                time_taken_ms,
                submitted.value,
                applied.value,
            )

        if status in (CardStatus.NEW, CardStatus.LEARNING):
            updated = self._schedule_learning(card, applied)
        elif status == CardStatus.REVIEW:
            updated = self._schedule_review(card, applied)
        elif status == CardStatus.RELEARNING:
            updated = self._schedule_relearning(card, applied)
        elif status == CardStatus.SUSPENDED:
            raise CardSuspendedError(f"Card {card.id} is suspended and cannot be reviewed")
        else:
            raise InvalidStatusError(f"Unhandled card status {status!r}")

        interval = updated.interval
        if updated.status == CardStatus.REVIEW and interval > FUZZ_THRESHOLD_DAYS:
            interval *= self.rng.uniform(*FUZZ_RANGE)

        result = replace(
            updated,
            interval=interval,
            due_date=due_after(now, interval),
            last_reviewed=now,
        )
        logger.debug(
            "Card %s: %s -> %s (%s), interval %.4f days",
            card.id,
            status.value,
            result.status.value,
            applied.value,
            result.interval,
        )
        return result

    def _first_step(self) -> float:
        return minutes_to_days(self.settings.learning_steps[0])

    def _schedule_learning(self, card: CardState, rating: Rating) -> CardState:
        steps = self.settings.learning_steps

        if rating == Rating.AGAIN:
            return replace(card, step_index=0, interval=self._first_step())

        if rating == Rating.HARD:
            index = min(card.step_index, len(steps) - 1)
            return replace(card, interval=minutes_to_days(steps[index]))

        if rating == Rating.GOOD:
            next_index = card.step_index + 1
            if next_index < len(steps):
                return replace(
                    card,
                    status=CardStatus.LEARNING,
                    step_index=next_index,
                    interval=minutes_to_days(steps[next_index]),
                )
            # Ladder exhausted: graduate
            return replace(
                card,
                status=CardStatus.REVIEW,
                step_index=0,
                interval=self.settings.graduating_interval,
            )

        if rating == Rating.EASY:
            return replace(
                card,
                status=CardStatus.REVIEW,
                step_index=0,
                interval=self.settings.graduating_interval * self.settings.easy_bonus,
            )

        raise InvalidRatingError(f"Unhandled rating {rating!r}")

    def _schedule_review(self, card: CardState, rating: Rating) -> CardState:
        if rating == Rating.AGAIN:
            lapses = card.lapses + 1
            status = CardStatus.RELEARNING
            suspended_from = None
            if lapses >= self.settings.leech_threshold:
                logger.warning(
                    "Card %s reached %d lapses, suspending as a leech", card.id, lapses
                )
                status, suspended_from = CardStatus.SUSPENDED, CardStatus.RELEARNING
            return replace(
                card,
                status=status,
                suspended_from=suspended_from,
                lapses=lapses,
                ease_factor=max(MIN_EASE_FACTOR, card.ease_factor - AGAIN_EASE_PENALTY),
                reps=0,
                interval=self._first_step(),
            )

        if rating == Rating.HARD:
            return replace(
                card,
                interval=card.interval * HARD_INTERVAL_FACTOR,
                ease_factor=max(MIN_EASE_FACTOR, card.ease_factor - HARD_EASE_PENALTY),
            )

        if rating == Rating.GOOD:
            return replace(
                card,
                interval=card.interval * card.ease_factor,
                reps=card.reps + 1,
            )

        if rating == Rating.EASY:
            return replace(
                card,
                interval=card.interval * card.ease_factor * self.settings.easy_bonus,
                ease_factor=card.ease_factor + EASY_EASE_BONUS,
                reps=card.reps + 1,
            )

        raise InvalidRatingError(f"Unhandled rating {rating!r}")

    def _schedule_relearning(self, card: CardState, rating: Rating) -> CardState:
        # "hard" repeats the relearning step just like "again", without a second lapse
        if rating in (Rating.AGAIN, Rating.HARD):
            return replace(card, interval=self._first_step())

        if rating in (Rating.GOOD, Rating.EASY):
            return replace(
                card,
                status=CardStatus.REVIEW,
                interval=max(1.0, card.interval * RELEARN_RECOVERY_FACTOR),
            )

        raise InvalidRatingError(f"Unhandled rating {rating!r}")


def schedule_card(
    card: CardState,
    rating: Rating | str,
    time_taken_ms: float,
    settings: SchedulerSettings,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> CardState:
    """Schedule a single card; see ``Scheduler.schedule``."""
    return Scheduler(settings, rng=rng).schedule(card, rating, time_taken_ms, now=now)


def suspend_card(card: CardState) -> CardState:
    """Park a card so it never appears in a study queue.

    The card's current phase is remembered so ``unsuspend_card`` can put it
    back where it was.
    """
    status = parse_status(card.status)
    if status == CardStatus.SUSPENDED:
        return card
    return replace(card, status=CardStatus.SUSPENDED, suspended_from=status)


def _phase_before_suspension(card: CardState, settings: SchedulerSettings) -> CardStatus:
    if card.suspended_from is not None:
        return parse_status(card.suspended_from)
    # No recorded phase: infer it from the card's history
    if card.last_reviewed is None:
        return CardStatus.NEW
    if card.interval >= settings.graduating_interval:
        return CardStatus.REVIEW
    return CardStatus.LEARNING


def unsuspend_card(
    card: CardState,
    now: datetime | None = None,
    settings: SchedulerSettings | None = None,
) -> CardState:
    """Return a suspended card to the phase it was suspended from, due immediately.

    A leech goes back to relearning. Lapses are kept, so a leech re-suspends
    on its next lapse. Cards without a recorded phase go back to new if never
    reviewed, to review if their interval had graduated, and otherwise to the
    start of the learning ladder.
    """
    if parse_status(card.status) != CardStatus.SUSPENDED:
        return card
    status = _phase_before_suspension(card, settings or SchedulerSettings())
    step_index = card.step_index if card.suspended_from is not None else 0
    return replace(
        card,
        status=status,
        step_index=step_index,
        suspended_from=None,
        due_date=now or utcnow(),
    )
