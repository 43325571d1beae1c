"""Pattern-based extraction of flashcards from plain text notes.

Recognized, one card per line:
- ``front :: back`` (simple Anki style)
- ``Q: question A: answer`` (case-insensitive markers)
- any line holding cloze deletions (``{{c1::...}}``) becomes a cloze card
"""

import logging
import re
from dataclasses import dataclass

from backend.srs.cloze import is_cloze
from backend.srs.scheduler import CardType

logger = logging.getLogger(__name__)

SEPARATOR = "::"
QA_PATTERN = re.compile(r"^\s*q:\s*(.*?)\s*a:\s*(.*)$", re.IGNORECASE)


@dataclass
class ExtractedCard:
    """A card found in a source document, not yet stored."""

    front: str
    back: str
    card_type: CardType = CardType.BASIC
    source_file: str | None = None


def extract_cards_from_text(text: str, source_file: str | None = None) -> list[ExtractedCard]:
    """Scan ``text`` line by line and return every card pattern found."""
    cards: list[ExtractedCard] = []

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue

        if is_cloze(stripped):
            cards.append(
                ExtractedCard(
                    front=stripped, back="", card_type=CardType.CLOZE, source_file=source_file
                )
            )
        elif SEPARATOR in stripped:
            parts = stripped.split(SEPARATOR)
            front, back = parts[0].strip(), parts[1].strip()
            if front and back:
                cards.append(ExtractedCard(front=front, back=back, source_file=source_file))
            else:
                logger.debug("Skipping line with an empty side: %r", stripped)
        else:
            match = QA_PATTERN.match(stripped)
            if match and match.group(1) and match.group(2).strip():
                cards.append(
                    ExtractedCard(
                        front=match.group(1),
                        back=match.group(2).strip(),
                        source_file=source_file,
                    )
                )

    logger.info("Extracted %d cards from %s", len(cards), source_file or "text")
    return cards
