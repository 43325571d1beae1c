"""Readers that turn note files into plain text for card extraction.

Every handler returns a ``RawDocument`` whose ``content`` is line-oriented
text the extractor understands. Tabular exports (.csv, .tsv) are rewritten
as ``front :: back`` lines.
"""

import csv
import io
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from ingestion.extractor import SEPARATOR

logger = logging.getLogger(__name__)

FRONT_MATTER_FENCE = "---"


@dataclass
class RawDocument:
    """Text read from one source file."""

    content: str
    source_path: str
    file_type: str
    metadata: dict = field(default_factory=dict)


def read_text_file(path: Path) -> RawDocument:
    return RawDocument(
        content=path.read_text(encoding="utf-8"),
        source_path=str(path),
        file_type="txt",
    )


def _split_front_matter(text: str) -> tuple[list[str], list[str]]:
    lines = text.splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_FENCE:
        return [], lines
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == FRONT_MATTER_FENCE:
            return lines[1:i], lines[i + 1 :]
    return [], lines


def read_markdown_file(path: Path) -> RawDocument:
    """Read a .md note, dropping YAML front matter.

    The first level-one heading, if any, is kept as the document title.
    """
    front_matter, body = _split_front_matter(path.read_text(encoding="utf-8"))
    title = next((line[2:].strip() for line in body if line.startswith("# ")), None)
    return RawDocument(
        content="\n".join(body),
        source_path=str(path),
        file_type="md",
        metadata={"title": title, "front_matter_lines": len(front_matter)},
    )


def _read_delimited(path: Path, delimiter: str, file_type: str) -> RawDocument:
    """Read a two-column card export (front, back) with a header row."""
    reader = csv.reader(io.StringIO(path.read_text(encoding="utf-8")), delimiter=delimiter)
    header = next(reader, [])
    rows = list(reader)
    lines = [
        f"{row[0].strip()} {SEPARATOR} {row[1].strip()}"
        for row in rows
        if len(row) >= 2 and row[0].strip()
    ]
    if len(lines) < len(rows):
        logger.debug("Skipped %d short or empty rows in %s", len(rows) - len(lines), path.name)
    return RawDocument(
        content="\n".join(lines),
        source_path=str(path),
        file_type=file_type,
        metadata={"row_count": len(lines), "columns": header},
    )


def read_csv_file(path: Path) -> RawDocument:
    return _read_delimited(path, ",", "csv")


def read_tsv_file(path: Path) -> RawDocument:
    """Read a tab-separated export such as Anki's "Notes in Plain Text"."""
    return _read_delimited(path, "\t", "tsv")


HANDLERS: dict[str, Callable[[Path], RawDocument]] = {
    ".txt": read_text_file,
    ".md": read_markdown_file,
    ".csv": read_csv_file,
    ".tsv": read_tsv_file,
}


def read_file(path: Path) -> RawDocument:
    """Read one file with the handler registered for its extension."""
    handler = HANDLERS.get(path.suffix.lower())
    if handler is None:
        raise ValueError(
            f"Unsupported file type: {path.suffix or path.name}. Supported: {sorted(HANDLERS)}"
        )
    logger.info("Reading %s", path.name)
    return handler(path)


def read_directory(directory: Path) -> list[RawDocument]:
    """Read every supported file under ``directory``, in path order.

    Unreadable files are logged and skipped.
    """
    documents = []
    for path in sorted(p for p in directory.rglob("*") if p.suffix.lower() in HANDLERS):
        if not path.is_file():
            continue
        try:
            documents.append(read_file(path))
        except (OSError, UnicodeDecodeError, csv.Error):
            logger.exception("Failed to read %s", path)
    logger.info("Read %d documents from %s", len(documents), directory)
    return documents
