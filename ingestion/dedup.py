"""Deduplication and normalization for extracted cards."""

import logging
import unicodedata

from ingestion.extractor import ExtractedCard

logger = logging.getLogger(__name__)

ZERO_WIDTH_CHARS = "\u200b\u200c\u200d\ufeff"


def normalize_front(text: str) -> str:
    """Normalize card text for duplicate detection.

    - Unicode NFC normalization
    - Case folding and collapsed whitespace
    - Remove zero-width characters that don't affect meaning
    """
    text = unicodedata.normalize("NFC", text)
    for ch in ZERO_WIDTH_CHARS:
        text = text.replace(ch, "")
    return " ".join(text.casefold().split())


def deduplicate(cards: list[ExtractedCard]) -> list[ExtractedCard]:
    """Deduplicate extracted cards, keeping the richest back for each front.

    Order follows the first occurrence of each front.
    """
    groups: dict[str, list[ExtractedCard]] = {}
    for card in cards:
        groups.setdefault(normalize_front(card.front), []).append(card)

    deduped = [max(group, key=lambda c: len(c.back)) for group in groups.values()]

    logger.info(
        "Deduplication: %d cards -> %d unique (%d duplicates merged)",
        len(cards),
        len(deduped),
        len(cards) - len(deduped),
    )
    return deduped
