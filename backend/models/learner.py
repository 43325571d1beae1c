"""The local learner: gamification stats, today's counters and scheduling settings."""

import json
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.config import settings
from backend.models.base import Base, TimestampMixin
from backend.srs.progress import DailyProgress
from backend.srs.scheduler import SchedulerSettings
from backend.srs.stats import UserStats


class Learner(Base, TimestampMixin):
    __tablename__ = "learners"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Stats
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_study_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cards_learned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Daily progress
    progress_date: Mapped[str] = mapped_column(String(10), nullable=False, default="")  # YYYY-MM-DD
    new_studied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    review_studied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Scheduling settings
    learning_steps: Mapped[str] = mapped_column(
        Text, nullable=False, default=lambda: json.dumps(settings.learning_steps)
    )  # JSON array of minutes
    graduating_interval: Mapped[float] = mapped_column(
        Float, nullable=False, default=lambda: settings.graduating_interval
    )
    easy_bonus: Mapped[float] = mapped_column(Float, nullable=False, default=lambda: settings.easy_bonus)
    leech_threshold: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: settings.leech_threshold
    )
    reaction_time_target_ms: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: settings.reaction_time_target_ms
    )
    max_new_per_day: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: settings.max_new_per_day
    )
    max_reviews_per_day: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: settings.max_reviews_per_day
    )

    decks: Mapped[list["Deck"]] = relationship(back_populates="learner")  # type: ignore[name-defined] # noqa: F821
    review_logs: Mapped[list["ReviewLog"]] = relationship(back_populates="learner")  # type: ignore[name-defined] # noqa: F821

    def scheduler_settings(self) -> SchedulerSettings:
        return SchedulerSettings(
            learning_steps=tuple(json.loads(self.learning_steps)),
            graduating_interval=self.graduating_interval,
            easy_bonus=self.easy_bonus,
            leech_threshold=self.leech_threshold,
            reaction_time_target_ms=self.reaction_time_target_ms,
            max_new_per_day=self.max_new_per_day,
            max_reviews_per_day=self.max_reviews_per_day,
        )

    def apply_settings(self, new_settings: SchedulerSettings) -> None:
        self.learning_steps = json.dumps(list(new_settings.learning_steps))
        self.graduating_interval = new_settings.graduating_interval
        self.easy_bonus = new_settings.easy_bonus
        self.leech_threshold = new_settings.leech_threshold
        self.reaction_time_target_ms = new_settings.reaction_time_target_ms
        self.max_new_per_day = new_settings.max_new_per_day
        self.max_reviews_per_day = new_settings.max_reviews_per_day

    def user_stats(self) -> UserStats:
        return UserStats(
            xp=self.xp,
            level=self.level,
            streak=self.streak,
            last_study_date=self.last_study_date,
            cards_learned=self.cards_learned,
        )

    def apply_stats(self, stats: UserStats) -> None:
        self.xp = stats.xp
        self.level = stats.level
        self.streak = stats.streak
        self.last_study_date = stats.last_study_date
        self.cards_learned = stats.cards_learned

    def daily_progress(self) -> DailyProgress:
        return DailyProgress(
            date=self.progress_date,
            new_studied=self.new_studied,
            review_studied=self.review_studied,
        )

    def apply_progress(self, progress: DailyProgress) -> None:
        self.progress_date = progress.date
        self.new_studied = progress.new_studied
        self.review_studied = progress.review_studied
