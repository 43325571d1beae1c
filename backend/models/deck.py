from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, TimestampMixin


class Deck(Base, TimestampMixin):
    __tablename__ = "decks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    learner_id: Mapped[int] = mapped_column(ForeignKey("learners.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    subject: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    learner: Mapped["Learner"] = relationship(back_populates="decks")  # type: ignore[name-defined] # noqa: F821
    cards: Mapped[list["Card"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="deck", cascade="all, delete-orphan"
    )
