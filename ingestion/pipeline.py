"""Ingestion pipeline: read note files, extract cards, deduplicate, load into a deck."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import utcnow
from backend.models.card import Card
from backend.models.deck import Deck
from ingestion.dedup import deduplicate, normalize_front
from ingestion.extractor import ExtractedCard, extract_cards_from_text
from ingestion.file_handlers import RawDocument, read_directory, read_file

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Result of running the extraction pipeline."""

    documents_read: int = 0
    cards_extracted: int = 0
    cards_after_dedup: int = 0
    cards: list[ExtractedCard] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def extract_from_documents(documents: list[RawDocument]) -> PipelineResult:
    """Extract and deduplicate cards from already-read documents."""
    result = PipelineResult(documents_read=len(documents))

    all_cards: list[ExtractedCard] = []
    for doc in documents:
        all_cards.extend(extract_cards_from_text(doc.content, source_file=doc.source_path))
    result.cards_extracted = len(all_cards)

    result.cards = deduplicate(all_cards)
    result.cards_after_dedup = len(result.cards)
    return result


def run_pipeline(source: Path) -> PipelineResult:
    """Run extraction on a file or a directory of notes.

    Steps:
    1. Read source files
    2. Extract cards line by line
    3. Deduplicate by normalized front

    Args:
        source: Path to a file or directory of source notes.

    Returns:
        PipelineResult with the unique cards and any errors.
    """
    logger.info("Reading source files from %s", source)
    if source.is_dir():
        documents = read_directory(source)
    elif source.is_file():
        try:
            documents = [read_file(source)]
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.error("Failed to read %s: %s", source, e)
            return PipelineResult(errors=[f"Failed to read {source}: {e}"])
    else:
        return PipelineResult(errors=[f"Source path does not exist: {source}"])

    if not documents:
        return PipelineResult(errors=["No readable documents found"])

    result = extract_from_documents(documents)
    logger.info(
        "Pipeline complete: %d docs -> %d cards -> %d unique",
        result.documents_read,
        result.cards_extracted,
        result.cards_after_dedup,
    )
    return result


async def load_cards(
    session: AsyncSession,
    deck_id: int,
    cards: list[ExtractedCard],
    source_title: str | None = None,
) -> int:
    """Add extracted cards to a deck as new cards.

    Skips cards whose front already exists in the deck, making it safe to
    re-run. Returns the number of cards created.

    Raises:
        LookupError: The deck does not exist.
    """
    deck = await session.get(Deck, deck_id)
    if deck is None:
        raise LookupError(f"Deck {deck_id} not found")

    existing_stmt = select(Card.front).where(Card.deck_id == deck_id)
    existing = {normalize_front(f) for f in (await session.execute(existing_stmt)).scalars().all()}

    created = 0
    now = utcnow()
    for extracted in cards:
        key = normalize_front(extracted.front)
        if key in existing:
            continue
        existing.add(key)
        session.add(
            Card(
                deck_id=deck_id,
                front=extracted.front,
                back=extracted.back,
                card_type=extracted.card_type.value,
                due_date=now,
                source_type="note" if extracted.source_file else None,
                source_id=extracted.source_file,
                source_title=source_title,
            )
        )
        created += 1

    await session.commit()
    logger.info(
        "Created %d cards in deck %d (%d skipped as duplicates)",
        created,
        deck_id,
        len(cards) - created,
    )
    return created
