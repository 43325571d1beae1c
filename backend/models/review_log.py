from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.config import utcnow
from backend.models.base import Base


class ReviewLog(Base):
    __tablename__ = "review_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    card_id: Mapped[int] = mapped_column(ForeignKey("cards.id", ondelete="CASCADE"), nullable=False)
    learner_id: Mapped[int] = mapped_column(ForeignKey("learners.id"), nullable=False)
    rating: Mapped[str] = mapped_column(String(10), nullable=False)  # as submitted
    applied_rating: Mapped[str] = mapped_column(String(10), nullable=False)  # after slow-answer downgrade
    time_ms: Mapped[int] = mapped_column(Integer, nullable=False)  # Response time in ms
    status_before: Mapped[str] = mapped_column(String(20), nullable=False)
    status_after: Mapped[str] = mapped_column(String(20), nullable=False)
    interval_before: Mapped[float] = mapped_column(Float, nullable=False)
    interval_after: Mapped[float] = mapped_column(Float, nullable=False)
    ease_before: Mapped[float] = mapped_column(Float, nullable=False)
    ease_after: Mapped[float] = mapped_column(Float, nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    card: Mapped["Card"] = relationship(back_populates="review_logs")  # type: ignore[name-defined] # noqa: F821
    learner: Mapped["Learner"] = relationship(back_populates="review_logs")  # type: ignore[name-defined] # noqa: F821
