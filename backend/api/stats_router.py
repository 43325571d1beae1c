"""API routes for learner statistics and scheduling settings."""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import CountsResponse, LearnerStatsResponse, SettingsPayload
from backend.config import utcnow
from backend.database import get_session
from backend.models.learner import Learner
from backend.models.review_log import ReviewLog
from backend.srs.progress import normalize_progress
from backend.srs.queue import get_counts, load_card_states
from backend.srs.scheduler import Rating, SchedulerSettings, SchedulingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])

RETENTION_WINDOW_DAYS = 30


async def _get_learner(db: AsyncSession, learner_id: int) -> Learner:
    learner = await db.get(Learner, learner_id)
    if learner is None:
        raise HTTPException(status_code=404, detail="Learner not found")
    return learner


def _settings_payload(settings: SchedulerSettings) -> SettingsPayload:
    return SettingsPayload(
        learning_steps=list(settings.learning_steps),
        graduating_interval=settings.graduating_interval,
        easy_bonus=settings.easy_bonus,
        leech_threshold=settings.leech_threshold,
        reaction_time_target_ms=settings.reaction_time_target_ms,
        max_new_per_day=settings.max_new_per_day,
        max_reviews_per_day=settings.max_reviews_per_day,
    )


@router.get("/{learner_id}", response_model=LearnerStatsResponse)
async def get_learner_stats(
    learner_id: int,
    db: AsyncSession = Depends(get_session),
) -> LearnerStatsResponse:
    """Get overall statistics for a learner."""
    now = utcnow()
    learner = await _get_learner(db, learner_id)

    cards = await load_card_states(db, learner_id)
    counts = get_counts(cards, now)
    progress = normalize_progress(learner.daily_progress(), now)

    # Total reviews
    reviews_stmt = select(func.count(ReviewLog.id)).where(ReviewLog.learner_id == learner_id)
    total_reviews = (await db.execute(reviews_stmt)).scalar() or 0

    # Average retention (from recent reviews: % not rated again)
    recent_cutoff = now - timedelta(days=RETENTION_WINDOW_DAYS)
    retention_total_stmt = select(func.count(ReviewLog.id)).where(
        and_(
            ReviewLog.learner_id == learner_id,
            ReviewLog.reviewed_at >= recent_cutoff,
        )
    )
    retention_pass_stmt = select(func.count(ReviewLog.id)).where(
        and_(
            ReviewLog.learner_id == learner_id,
            ReviewLog.reviewed_at >= recent_cutoff,
            ReviewLog.rating != Rating.AGAIN.value,
        )
    )
    retention_total = (await db.execute(retention_total_stmt)).scalar() or 0
    retention_pass = (await db.execute(retention_pass_stmt)).scalar() or 0
    average_retention = retention_pass / retention_total if retention_total > 0 else None

    stats = learner.user_stats()
    return LearnerStatsResponse(
        xp=stats.xp,
        level=stats.level,
        streak=stats.streak,
        last_study_date=stats.last_study_date,
        cards_learned=stats.cards_learned,
        total_cards=len(cards),
        counts=CountsResponse(
            new=counts.new,
            learning=counts.learning,
            review=counts.review,
            suspended=counts.suspended,
        ),
        new_studied_today=progress.new_studied,
        reviews_studied_today=progress.review_studied,
        total_reviews=total_reviews,
        average_retention=round(average_retention, 3) if average_retention is not None else None,
    )


@router.get("/{learner_id}/settings", response_model=SettingsPayload)
async def get_settings(
    learner_id: int,
    db: AsyncSession = Depends(get_session),
) -> SettingsPayload:
    learner = await _get_learner(db, learner_id)
    return _settings_payload(learner.scheduler_settings())


@router.put("/{learner_id}/settings", response_model=SettingsPayload)
async def update_settings(
    learner_id: int,
    payload: SettingsPayload,
    db: AsyncSession = Depends(get_session),
) -> SettingsPayload:
    """Replace a learner's scheduling settings."""
    learner = await _get_learner(db, learner_id)
    try:
        new_settings = SchedulerSettings(**payload.model_dump())
    except SchedulingError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    learner.apply_settings(new_settings)
    await db.commit()
    logger.info("Updated scheduling settings for learner %d", learner_id)
    return _settings_payload(new_settings)
