"""API routes for decks and cards."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import (
    CardCreateRequest,
    CardResponse,
    CountsResponse,
    DeckCreateRequest,
    DeckResponse,
    ImportRequest,
    ImportResponse,
    LearnerCreateRequest,
    LearnerResponse,
)
from backend.config import utcnow
from backend.database import get_session
from backend.models.card import Card
from backend.models.deck import Deck
from backend.models.learner import Learner
from backend.srs.cloze import cloze_deletions
from backend.srs.queue import QueueCounts, get_counts
from backend.srs.session import set_suspended
from ingestion.file_handlers import RawDocument
from ingestion.pipeline import extract_from_documents, load_cards

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["decks"])


def _counts(counts: QueueCounts) -> CountsResponse:
    return CountsResponse(
        new=counts.new,
        learning=counts.learning,
        review=counts.review,
        suspended=counts.suspended,
    )


async def _deck_cards(db: AsyncSession, deck_id: int) -> list[Card]:
    stmt = select(Card).where(Card.deck_id == deck_id).order_by(Card.id.asc())
    return list((await db.execute(stmt)).scalars().all())


async def _get_deck(db: AsyncSession, deck_id: int) -> Deck:
    deck = await db.get(Deck, deck_id)
    if deck is None:
        raise HTTPException(status_code=404, detail="Deck not found")
    return deck


async def _deck_response(db: AsyncSession, deck: Deck) -> DeckResponse:
    cards = await _deck_cards(db, deck.id)
    return DeckResponse(
        id=deck.id,
        title=deck.title,
        subject=deck.subject,
        total_cards=len(cards),
        counts=_counts(get_counts([c.to_state() for c in cards], utcnow())),
    )


@router.post("/decks", response_model=DeckResponse, status_code=201)
async def create_deck(
    request: DeckCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> DeckResponse:
    """Create an empty deck for a learner."""
    if await db.get(Learner, request.learner_id) is None:
        raise HTTPException(status_code=404, detail="Learner not found")

    deck = Deck(learner_id=request.learner_id, title=request.title, subject=request.subject)
    db.add(deck)
    await db.commit()
    await db.refresh(deck)
    logger.info("Created deck %d (%s) for learner %d", deck.id, deck.title, request.learner_id)
    return await _deck_response(db, deck)


@router.get("/decks", response_model=list[DeckResponse])
async def list_decks(
    learner_id: int,
    db: AsyncSession = Depends(get_session),
) -> list[DeckResponse]:
    """List a learner's decks with their card counts."""
    stmt = select(Deck).where(Deck.learner_id == learner_id).order_by(Deck.id.asc())
    decks = (await db.execute(stmt)).scalars().all()
    return [await _deck_response(db, deck) for deck in decks]


@router.delete("/decks/{deck_id}")
async def delete_deck(
    deck_id: int,
    db: AsyncSession = Depends(get_session),
) -> dict:
    """Delete a deck together with its cards."""
    deck = await _get_deck(db, deck_id)
    await db.delete(deck)
    await db.commit()
    logger.info("Deleted deck %d", deck_id)
    return {"status": "deleted", "deck_id": deck_id}


@router.get("/decks/{deck_id}/counts", response_model=CountsResponse)
async def deck_counts(
    deck_id: int,
    db: AsyncSession = Depends(get_session),
) -> CountsResponse:
    """Count new, due and suspended cards in a deck."""
    await _get_deck(db, deck_id)
    cards = await _deck_cards(db, deck_id)
    return _counts(get_counts([c.to_state() for c in cards], utcnow()))


@router.get("/decks/{deck_id}/cards", response_model=list[CardResponse])
async def list_cards(
    deck_id: int,
    db: AsyncSession = Depends(get_session),
) -> list[CardResponse]:
    await _get_deck(db, deck_id)
    return [CardResponse.model_validate(card) for card in await _deck_cards(db, deck_id)]


@router.post("/decks/{deck_id}/cards", response_model=CardResponse, status_code=201)
async def add_card(
    deck_id: int,
    request: CardCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> CardResponse:
    """Add a new card to a deck."""
    await _get_deck(db, deck_id)
    if request.card_type == "cloze" and not cloze_deletions(request.front):
        raise HTTPException(
            status_code=400, detail="Cloze cards need at least one {{c1::...}} deletion"
        )

    card = Card(
        deck_id=deck_id,
        front=request.front,
        back=request.back,
        card_type=request.card_type,
        due_date=utcnow(),
        source_type=request.source_type,
        source_id=request.source_id,
        source_title=request.source_title,
    )
    db.add(card)
    await db.commit()
    await db.refresh(card)
    return CardResponse.model_validate(card)


@router.post("/decks/{deck_id}/import", response_model=ImportResponse)
async def import_cards(
    deck_id: int,
    request: ImportRequest,
    db: AsyncSession = Depends(get_session),
) -> ImportResponse:
    """Extract Q/A and cloze cards from pasted note text into a deck."""
    await _get_deck(db, deck_id)
    document = RawDocument(content=request.text, source_path="", file_type="txt")
    result = extract_from_documents([document])
    created = await load_cards(db, deck_id, result.cards, source_title=request.source_title)
    return ImportResponse(
        cards_extracted=result.cards_extracted,
        cards_after_dedup=result.cards_after_dedup,
        cards_created=created,
    )


@router.post("/cards/{card_id}/suspend", response_model=CardResponse)
async def suspend(
    card_id: int,
    db: AsyncSession = Depends(get_session),
) -> CardResponse:
    """Take a card out of rotation."""
    try:
        await set_suspended(db, card_id, True)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return CardResponse.model_validate(await db.get(Card, card_id))


@router.post("/cards/{card_id}/unsuspend", response_model=CardResponse)
async def unsuspend(
    card_id: int,
    db: AsyncSession = Depends(get_session),
) -> CardResponse:
    """Return a suspended card to rotation, due now."""
    try:
        await set_suspended(db, card_id, False)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return CardResponse.model_validate(await db.get(Card, card_id))


@router.post("/learners", response_model=LearnerResponse, status_code=201)
async def create_learner(
    request: LearnerCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> LearnerResponse:
    """Create a learner with the default scheduling settings."""
    learner = Learner(name=request.name)
    db.add(learner)
    await db.commit()
    await db.refresh(learner)
    return LearnerResponse(id=learner.id, name=learner.name)
