"""Tests for cloze handling and the note ingestion pipeline."""

from pathlib import Path

import pytest

from backend.srs.cloze import (
    BLANK,
    ClozeDeletion,
    cloze_deletions,
    is_cloze,
    parse_cloze,
    render_cloze_answer,
)
from backend.srs.scheduler import CardType
from ingestion.dedup import deduplicate, normalize_front
from ingestion.extractor import ExtractedCard, extract_cards_from_text
from ingestion.file_handlers import read_csv_file, read_directory, read_file
from ingestion.pipeline import run_pipeline

# --- Cloze ---


class TestCloze:
    def test_parse_replaces_every_deletion(self) -> None:
        text = "The {{c1::mitochondria}} is the {{c2::powerhouse}} of the cell"
        assert parse_cloze(text) == f"The {BLANK} is the {BLANK} of the cell"

    def test_parse_hides_hints(self) -> None:
        assert parse_cloze("Capital: {{c1::Paris::city}}") == f"Capital: {BLANK}"

    def test_render_answer(self) -> None:
        text = "{{c1::H2O::formula}} is water"
        assert render_cloze_answer(text) == "[H2O] is water"
        assert render_cloze_answer(text, template="<b>{answer}</b>") == "<b>H2O</b> is water"

    def test_text_without_deletions_is_unchanged(self) -> None:
        assert parse_cloze("plain text") == "plain text"
        assert not is_cloze("plain text")
        assert not is_cloze("{{c::missing number}}")

    def test_deletions(self) -> None:
        deletions = cloze_deletions("{{c1::A}} and {{c2::B::hint}}")
        assert deletions == [
            ClozeDeletion(number=1, answer="A"),
            ClozeDeletion(number=2, answer="B", hint="hint"),
        ]

    def test_deletion_may_span_lines(self) -> None:
        assert cloze_deletions("{{c1::first\nsecond}}")[0].answer == "first\nsecond"


# --- Extraction ---


class TestExtractor:
    def test_separator_lines(self) -> None:
        cards = extract_cards_from_text("Mitochondria :: Powerhouse of the cell")
        assert cards == [ExtractedCard(front="Mitochondria", back="Powerhouse of the cell")]

    def test_qa_lines(self) -> None:
        cards = extract_cards_from_text("q: What is DNA? A: Deoxyribonucleic acid")
        assert len(cards) == 1
        assert cards[0].front == "What is DNA?"
        assert cards[0].back == "Deoxyribonucleic acid"

    def test_cloze_lines(self) -> None:
        cards = extract_cards_from_text("The {{c1::heart}} pumps blood", source_file="bio.md")
        assert cards[0].card_type == CardType.CLOZE
        assert cards[0].front == "The {{c1::heart}} pumps blood"
        assert cards[0].back == ""
        assert cards[0].source_file == "bio.md"

    def test_empty_sides_are_skipped(self) -> None:
        text = ":: orphan back\nfront only ::\nQ: question A:   \n\n   \n"
        assert extract_cards_from_text(text) == []

    def test_prose_is_ignored(self) -> None:
        text = "# Chapter 1\nSome notes about cells.\nCell :: Basic unit of life"
        cards = extract_cards_from_text(text)
        assert [c.front for c in cards] == ["Cell"]

    def test_mixed_document(self) -> None:
        text = "A :: 1\nQ: B? A: 2\n{{c1::C}} is three"
        types = [c.card_type for c in extract_cards_from_text(text)]
        assert types == [CardType.BASIC, CardType.BASIC, CardType.CLOZE]


# --- Deduplication ---


class TestDedup:
    def test_normalize_front(self) -> None:
        assert normalize_front("  What\u200b IS\n  DNA?  ") == "what is dna?"
        assert normalize_front("Cafe\u0301") == normalize_front("Caf\u00e9")

    def test_keeps_longest_back(self) -> None:
        cards = [
            ExtractedCard(front="DNA", back="acid"),
            ExtractedCard(front="dna ", back="deoxyribonucleic acid"),
            ExtractedCard(front="RNA", back="ribonucleic acid"),
        ]
        deduped = deduplicate(cards)
        assert [c.back for c in deduped] == ["deoxyribonucleic acid", "ribonucleic acid"]

    def test_no_duplicates(self) -> None:
        cards = [ExtractedCard(front="A", back="1"), ExtractedCard(front="B", back="2")]
        assert deduplicate(cards) == cards


# --- File handlers & pipeline ---


class TestPipeline:
    def test_read_text_file(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("A :: 1\n", encoding="utf-8")
        doc = read_file(path)
        assert doc.file_type == "txt"
        assert doc.content == "A :: 1\n"

    def test_read_markdown_drops_front_matter(self, tmp_path: Path) -> None:
        path = tmp_path / "cells.md"
        path.write_text(
            "---\ntags: [bio]\nsource:: textbook\n---\n# Cells\nCell :: Unit of life\n",
            encoding="utf-8",
        )
        doc = read_file(path)
        assert doc.file_type == "md"
        assert doc.content == "# Cells\nCell :: Unit of life"
        assert doc.metadata == {"title": "Cells", "front_matter_lines": 2}
        assert [c.front for c in extract_cards_from_text(doc.content)] == ["Cell"]

    def test_read_markdown_without_front_matter(self, tmp_path: Path) -> None:
        path = tmp_path / "plain.md"
        path.write_text("---\nnot closed\nA :: 1", encoding="utf-8")
        doc = read_file(path)
        assert doc.content == "---\nnot closed\nA :: 1"
        assert doc.metadata["title"] is None

    def test_read_tsv_file(self, tmp_path: Path) -> None:
        path = tmp_path / "export.tsv"
        path.write_text("front\tback\nAtom\tSmallest unit\n\tno front\n", encoding="utf-8")
        doc = read_file(path)
        assert doc.file_type == "tsv"
        assert doc.content == "Atom :: Smallest unit"

    def test_read_csv_file(self, tmp_path: Path) -> None:
        path = tmp_path / "cards.csv"
        path.write_text('front,back\nDNA,"acid, nucleic"\nlonely\n', encoding="utf-8")
        doc = read_csv_file(path)
        assert doc.content == "DNA :: acid, nucleic"
        assert doc.metadata == {"row_count": 1, "columns": ["front", "back"]}

    def test_unsupported_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "slides.pptx"
        path.write_bytes(b"")
        with pytest.raises(ValueError, match="Unsupported file type"):
            read_file(path)

    def test_read_directory_recurses(self, tmp_path: Path) -> None:
        (tmp_path / "sub").mkdir()
        (tmp_path / "a.txt").write_text("A :: 1", encoding="utf-8")
        (tmp_path / "sub" / "b.md").write_text("B :: 2", encoding="utf-8")
        (tmp_path / "ignored.pdf").write_bytes(b"%PDF")
        assert len(read_directory(tmp_path)) == 2

    def test_run_pipeline_directory(self, tmp_path: Path) -> None:
        (tmp_path / "one.md").write_text("DNA :: acid\nQ: RNA? A: ribo", encoding="utf-8")
        (tmp_path / "two.txt").write_text("dna :: deoxyribonucleic acid", encoding="utf-8")

        result = run_pipeline(tmp_path)
        assert result.documents_read == 2
        assert result.cards_extracted == 3
        assert result.cards_after_dedup == 2
        assert result.errors == []
        assert {c.back for c in result.cards} == {"deoxyribonucleic acid", "ribo"}

    def test_run_pipeline_missing_source(self, tmp_path: Path) -> None:
        result = run_pipeline(tmp_path / "nope.md")
        assert result.cards == []
        assert "does not exist" in result.errors[0]

    def test_run_pipeline_empty_directory(self, tmp_path: Path) -> None:
        assert run_pipeline(tmp_path).errors == ["No readable documents found"]

    def test_run_pipeline_unsupported_file(self, tmp_path: Path) -> None:
        path = tmp_path / "deck.apkg"
        path.write_bytes(b"")
        result = run_pipeline(path)
        assert result.errors and "Unsupported" in result.errors[0]
