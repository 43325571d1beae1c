"""API routes for review sessions."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import (
    AnswerRequest,
    AnswerResponse,
    CardPromptResponse,
    SessionStartRequest,
    SessionStartResponse,
    SessionStatsResponse,
)
from backend.database import get_session
from backend.srs.cloze import parse_cloze, render_cloze_answer
from backend.srs.scheduler import CardSuspendedError, CardType, SchedulingError
from backend.srs.session import ReviewSession, start_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])

# In-memory session store (single local user)
_active_sessions: dict[str, ReviewSession] = {}


def _get_active(session_id: str) -> ReviewSession:
    review_session = _active_sessions.get(session_id)
    if not review_session:
        raise HTTPException(status_code=404, detail="Session not found")
    return review_session


@router.post("/start", response_model=SessionStartResponse)
async def session_start(
    request: SessionStartRequest,
    db: AsyncSession = Depends(get_session),
) -> SessionStartResponse:
    """Start a new review session for a learner."""
    try:
        review_session = await start_session(db, request.learner_id, deck_id=request.deck_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except SchedulingError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    if review_session.queue.total == 0:
        raise HTTPException(status_code=404, detail="No cards available for review")

    session_id = str(uuid.uuid4())
    _active_sessions[session_id] = review_session

    queue = review_session.queue
    return SessionStartResponse(
        session_id=session_id,
        learner_id=request.learner_id,
        total_cards=queue.total,
        learning_cards=len(queue.learning_cards),
        review_cards=len(queue.review_cards),
        new_cards=len(queue.new_cards),
    )


@router.get("/next/{session_id}", response_model=CardPromptResponse)
async def session_next(session_id: str) -> CardPromptResponse:
    """Get the next card in the session."""
    review_session = _get_active(session_id)
    card = review_session.current_card
    if card is None:
        raise HTTPException(status_code=410, detail="Session is complete")

    if card.card_type == CardType.CLOZE:
        prompt, answer = parse_cloze(card.front), render_cloze_answer(card.front)
    else:
        prompt, answer = card.front, card.back

    return CardPromptResponse(
        card_id=card.id,
        card_type=card.card_type.value,
        status=card.status.value,
        prompt=prompt,
        answer=answer,
        remaining=review_session.remaining,
    )


@router.post("/answer/{session_id}", response_model=AnswerResponse)
async def session_answer(
    session_id: str,
    request: AnswerRequest,
    db: AsyncSession = Depends(get_session),
) -> AnswerResponse:
    """Rate the current card."""
    review_session = _get_active(session_id)
    card = review_session.current_card
    if card is None:
        raise HTTPException(status_code=410, detail="Session is complete")

    # Verify the card matches
    if card.id != request.card_id:
        raise HTTPException(status_code=400, detail="Card ID mismatch")

    try:
        outcome = await review_session.submit_rating(db, request.rating, request.time_ms)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except CardSuspendedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except SchedulingError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return AnswerResponse(
        rating=outcome.rating.value,
        applied_rating=outcome.applied_rating.value,
        status=outcome.card.status.value,
        interval_days=outcome.card.interval,
        next_due=outcome.card.due_date,
        xp_earned=outcome.xp_earned,
        remaining=review_session.remaining,
        session_complete=review_session.is_complete,
    )


@router.post("/suspend/{session_id}")
async def session_suspend(
    session_id: str,
    db: AsyncSession = Depends(get_session),
) -> dict:
    """Suspend the current card and move on."""
    review_session = _get_active(session_id)
    try:
        card = await review_session.suspend_current(db)
    except LookupError as e:
        raise HTTPException(status_code=410, detail=str(e)) from e
    return {"card_id": card.id, "status": card.status.value, "remaining": review_session.remaining}


@router.get("/stats/{session_id}", response_model=SessionStatsResponse)
async def session_stats(session_id: str) -> SessionStatsResponse:
    """Get stats for the current session."""
    s = _get_active(session_id).stats
    return SessionStatsResponse(
        cards_reviewed=s.cards_reviewed,
        again=s.again,
        hard=s.hard,
        good=s.good,
        easy=s.easy,
        new_cards_seen=s.new_cards_seen,
        suspended=s.suspended,
        xp_earned=s.xp_earned,
        average_time_ms=s.average_time_ms,
    )


@router.post("/end/{session_id}")
async def session_end(session_id: str) -> dict:
    """End a session and clean up."""
    review_session = _active_sessions.pop(session_id, None)
    if not review_session:
        raise HTTPException(status_code=404, detail="Session not found")

    s = review_session.stats
    return {
        "status": "ended",
        "cards_reviewed": s.cards_reviewed,
        "xp_earned": s.xp_earned,
    }
