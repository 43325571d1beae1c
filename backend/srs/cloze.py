"""Cloze deletion parsing and rendering.

Cloze text marks hidden spans as ``{{c1::answer}}`` or
``{{c1::answer::hint}}``; several deletions may share one card.
"""

import re
from dataclasses import dataclass

CLOZE_PATTERN = re.compile(r"{{c(\d+)::([\s\S]*?)(?:::(.*?))?}}")
BLANK = "___"


@dataclass(frozen=True)
class ClozeDeletion:
    number: int
    answer: str
    hint: str | None = None


def cloze_deletions(text: str) -> list[ClozeDeletion]:
    """Return every deletion in ``text`` in reading order."""
    return [
        ClozeDeletion(number=int(m.group(1)), answer=m.group(2), hint=m.group(3))
        for m in CLOZE_PATTERN.finditer(text)
    ]


def is_cloze(text: str) -> bool:
    return CLOZE_PATTERN.search(text) is not None


def parse_cloze(text: str) -> str:
    """Hide every deletion behind a blank for the question side."""
    return CLOZE_PATTERN.sub(BLANK, text)


def render_cloze_answer(text: str, template: str = "[{answer}]") -> str:
    """Reveal every deletion, formatted through ``template``."""
    return CLOZE_PATTERN.sub(lambda m: template.format(answer=m.group(2)), text)
