"""Flashcard model carrying its SM-2 scheduling state."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.config import utcnow
from backend.models.base import Base, TimestampMixin
from backend.srs.scheduler import (
    DEFAULT_EASE_FACTOR,
    CardState,
    CardStatus,
    CardType,
    InvalidStatusError,
    parse_status,
)


class Card(Base, TimestampMixin):
    """A flashcard in a deck with its scheduling state."""

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    deck_id: Mapped[int] = mapped_column(ForeignKey("decks.id", ondelete="CASCADE"), nullable=False)
    front: Mapped[str] = mapped_column(Text, nullable=False)  # cloze text lives here for cloze cards
    back: Mapped[str] = mapped_column(Text, nullable=False, default="")
    card_type: Mapped[str] = mapped_column(String(10), nullable=False, default=CardType.BASIC.value)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CardStatus.NEW.value)
    interval: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # days
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=DEFAULT_EASE_FACTOR)
    reps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    step_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reviewed: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    suspended_from: Mapped[str | None] = mapped_column(String(20), nullable=True)

    source_type: Mapped[str | None] = mapped_column(String(10), nullable=True)  # note, pdf
    source_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_title: Mapped[str | None] = mapped_column(String(500), nullable=True)

    deck: Mapped["Deck"] = relationship(back_populates="cards")  # type: ignore[name-defined] # noqa: F821
    review_logs: Mapped[list["ReviewLog"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="card", cascade="all, delete-orphan"
    )

    def to_state(self) -> CardState:
        """Snapshot the scheduling fields for the pure scheduler/queue code."""
        try:
            card_type = CardType(self.card_type)
        except ValueError:
            raise InvalidStatusError(f"Card {self.id} has unknown type {self.card_type!r}") from None
        return CardState(
            id=self.id,
            front=self.front,
            back=self.back,
            card_type=card_type,
            status=parse_status(self.status),
            interval=self.interval,
            ease_factor=self.ease_factor,
            reps=self.reps,
            lapses=self.lapses,
            due_date=self.due_date,
            step_index=self.step_index,
            last_reviewed=self.last_reviewed,
            suspended_from=parse_status(self.suspended_from) if self.suspended_from else None,
        )

    def apply_state(self, state: CardState) -> None:
        """Copy a scheduled snapshot back onto the row."""
        self.status = parse_status(state.status).value
        self.interval = state.interval
        self.ease_factor = state.ease_factor
        self.reps = state.reps
        self.lapses = state.lapses
        self.due_date = state.due_date
        self.step_index = state.step_index
        self.last_reviewed = state.last_reviewed
        self.suspended_from = (
            parse_status(state.suspended_from).value if state.suspended_from else None
        )
