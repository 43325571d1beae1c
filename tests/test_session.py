"""Tests for persisting reviews and running review sessions against the database."""

import random
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from backend.models.card import Card
from backend.models.deck import Deck
from backend.models.learner import Learner
from backend.models.review_log import ReviewLog
from backend.srs.queue import build_queue
from backend.srs.scheduler import CardStatus, CardSuspendedError, InvalidRatingError, Rating
from backend.srs.session import apply_review, set_suspended, start_session
from ingestion.extractor import ExtractedCard
from ingestion.pipeline import load_cards

NOW = datetime(2026, 3, 1, 12, 0, 0)


async def _add_card(db, deck: Deck, front: str = "Q", **fields) -> Card:
    card = Card(deck_id=deck.id, front=front, back="A", due_date=NOW, **fields)
    db.add(card)
    await db.commit()
    return card


async def _log_count(db, learner_id: int) -> int:
    stmt = select(func.count(ReviewLog.id)).where(ReviewLog.learner_id == learner_id)
    return (await db.execute(stmt)).scalar() or 0


class TestApplyReview:
    @pytest.mark.asyncio
    async def test_new_card_good(self, db, learner, deck) -> None:
        card = await _add_card(db, deck)

        outcome = await apply_review(db, learner.id, card.id, "good", 2000, now=NOW)

        assert outcome.previous.status == CardStatus.NEW
        assert outcome.xp_earned == 15
        assert card.status == "learning"
        assert card.interval == pytest.approx(10 / 1440)
        assert card.due_date == NOW + timedelta(minutes=10)
        assert card.last_reviewed == NOW

        assert learner.xp == 15
        assert learner.streak == 1
        assert learner.cards_learned == 1
        assert learner.last_study_date == NOW
        assert (learner.progress_date, learner.new_studied, learner.review_studied) == (
            "2026-03-01",
            1,
            0,
        )
        assert await _log_count(db, learner.id) == 1

    @pytest.mark.asyncio
    async def test_slow_answer_is_logged_with_both_ratings(self, db, learner, deck) -> None:
        card = await _add_card(db, deck, status="review", interval=0.5, last_reviewed=NOW)

        outcome = await apply_review(db, learner.id, card.id, Rating.EASY, 20000, now=NOW)

        assert outcome.rating == Rating.EASY
        assert outcome.applied_rating == Rating.GOOD
        assert card.interval == pytest.approx(1.25)
        assert learner.review_studied == 1

        log = (
            await db.execute(select(ReviewLog).where(ReviewLog.card_id == card.id))
        ).scalar_one()
        assert (log.rating, log.applied_rating) == ("easy", "good")
        assert (log.status_before, log.status_after) == ("review", "review")
        assert log.time_ms == 20000

    @pytest.mark.asyncio
    async def test_leech_leaves_the_queue(self, db, learner, deck) -> None:
        card = await _add_card(db, deck, status="review", interval=3.0, lapses=7)

        outcome = await apply_review(db, learner.id, card.id, "again", 1000, now=NOW)

        assert outcome.card.status == CardStatus.SUSPENDED
        assert card.lapses == 8
        queue = await build_queue(db, learner.id, now=NOW + timedelta(days=30))
        assert card.id not in [c.id for c in queue.ordered()]

    @pytest.mark.asyncio
    async def test_suspended_card_is_refused_without_writes(self, db, learner, deck) -> None:
        card = await _add_card(db, deck, status="suspended")

        with pytest.raises(CardSuspendedError):
            await apply_review(db, learner.id, card.id, "good", 1000, now=NOW)

        assert await _log_count(db, learner.id) == 0
        assert learner.xp == 0

    @pytest.mark.asyncio
    async def test_invalid_rating(self, db, learner, deck) -> None:
        card = await _add_card(db, deck)
        with pytest.raises(InvalidRatingError):
            await apply_review(db, learner.id, card.id, "perfect", 1000, now=NOW)

    @pytest.mark.asyncio
    async def test_unknown_card(self, db, learner) -> None:
        with pytest.raises(LookupError):
            await apply_review(db, learner.id, 999_999, "good", 1000, now=NOW)

    @pytest.mark.asyncio
    async def test_card_of_another_learner(self, db, learner, deck) -> None:
        card = await _add_card(db, deck)
        other = Learner(name="Other")
        db.add(other)
        await db.commit()

        with pytest.raises(LookupError):
            await apply_review(db, other.id, card.id, "good", 1000, now=NOW)

    @pytest.mark.asyncio
    async def test_stale_progress_rolls_over(self, db, learner, deck) -> None:
        learner.progress_date = "2026-02-28"
        learner.new_studied = 20
        learner.review_studied = 50
        await db.commit()
        card = await _add_card(db, deck)

        outcome = await apply_review(db, learner.id, card.id, "good", 1000, now=NOW)

        assert outcome.progress.date == "2026-03-01"
        assert (learner.new_studied, learner.review_studied) == (1, 0)

    @pytest.mark.asyncio
    async def test_fuzz_uses_injected_rng(self, db, learner, deck) -> None:
        first = await _add_card(db, deck, front="A", status="review", interval=10.0)
        second = await _add_card(db, deck, front="B", status="review", interval=10.0)

        a = await apply_review(db, learner.id, first.id, "good", 0, NOW, random.Random(3))
        b = await apply_review(db, learner.id, second.id, "good", 0, NOW, random.Random(3))

        assert a.card.interval == b.card.interval
        assert 23.75 <= a.card.interval <= 26.25


class TestSuspension:
    @pytest.mark.asyncio
    async def test_suspend_and_unsuspend(self, db, learner, deck) -> None:
        card = await _add_card(db, deck, status="review", interval=4.0, lapses=8, last_reviewed=NOW)

        suspended = await set_suspended(db, card.id, True)
        assert suspended.status == CardStatus.SUSPENDED
        assert card.status == "suspended"

        later = NOW + timedelta(days=2)
        restored = await set_suspended(db, card.id, False, now=later)
        assert restored.status == CardStatus.REVIEW
        assert card.due_date == later
        assert card.lapses == 8

    @pytest.mark.asyncio
    async def test_learning_card_keeps_its_phase(self, db, learner, deck) -> None:
        card = await _add_card(db, deck)
        await apply_review(db, learner.id, card.id, "good", 1000, now=NOW)
        assert (card.status, card.step_index) == ("learning", 1)

        await set_suspended(db, card.id, True)
        assert card.suspended_from == "learning"

        restored = await set_suspended(db, card.id, False, now=NOW)
        assert restored.status == CardStatus.LEARNING
        assert (card.status, card.step_index, card.suspended_from) == ("learning", 1, None)

        outcome = await apply_review(db, learner.id, card.id, "good", 1000, now=NOW)
        assert outcome.card.status == CardStatus.REVIEW
        assert outcome.card.interval == 1.0

    @pytest.mark.asyncio
    async def test_unknown_card(self, db) -> None:
        with pytest.raises(LookupError):
            await set_suspended(db, 999_999, True)


class TestReviewSession:
    @pytest.mark.asyncio
    async def test_full_session(self, db, learner, deck) -> None:
        for front in ("one", "two", "three"):
            await _add_card(db, deck, front=front)

        session = await start_session(db, learner.id, now=NOW)
        assert session.remaining == 3
        assert session.current_card.front == "one"

        await session.submit_rating(db, "good", 1000, now=NOW)
        await session.submit_rating(db, "again", 3000, now=NOW)
        await session.submit_rating(db, "easy", 2000, now=NOW)

        assert session.is_complete
        assert session.current_card is None
        stats = session.stats
        assert (stats.cards_reviewed, stats.good, stats.again, stats.easy) == (3, 1, 1, 1)
        assert stats.new_cards_seen == 3
        assert stats.xp_earned == 15 + 2 + 20
        assert stats.average_time_ms == 2000
        assert learner.new_studied == 3

        with pytest.raises(LookupError):
            await session.submit_rating(db, "good", 1000, now=NOW)

    @pytest.mark.asyncio
    async def test_learning_cards_come_first(self, db, learner, deck) -> None:
        new = await _add_card(db, deck, front="new")
        review = await _add_card(db, deck, front="review", status="review", interval=2.0)
        learning = await _add_card(db, deck, front="learning", status="learning")

        session = await start_session(db, learner.id, now=NOW)

        assert [c.id for c in session.queue.ordered()] == [learning.id, review.id, new.id]

    @pytest.mark.asyncio
    async def test_daily_new_limit(self, db, learner, deck) -> None:
        learner.max_new_per_day = 2
        await db.commit()
        for i in range(5):
            await _add_card(db, deck, front=f"card {i}")

        session = await start_session(db, learner.id, now=NOW)
        assert session.queue.total == 2

    @pytest.mark.asyncio
    async def test_deck_filter(self, db, learner, deck) -> None:
        other = Deck(learner_id=learner.id, title="History")
        db.add(other)
        await db.commit()
        await _add_card(db, deck, front="cell")
        await _add_card(db, other, front="war")

        session = await start_session(db, learner.id, deck_id=other.id, now=NOW)
        assert [c.front for c in session.queue.ordered()] == ["war"]

    @pytest.mark.asyncio
    async def test_suspend_current_skips_card(self, db, learner, deck) -> None:
        await _add_card(db, deck, front="one")
        await _add_card(db, deck, front="two")

        session = await start_session(db, learner.id, now=NOW)
        await session.suspend_current(db)

        assert session.stats.suspended == 1
        assert session.current_card.front == "two"

    @pytest.mark.asyncio
    async def test_unknown_learner(self, db) -> None:
        with pytest.raises(LookupError):
            await start_session(db, 999_999)


class TestLoadCards:
    @pytest.mark.asyncio
    async def test_skips_existing_fronts(self, db, learner, deck) -> None:
        await _add_card(db, deck, front="DNA")
        cards = [
            ExtractedCard(front="dna", back="acid", source_file="bio.md"),
            ExtractedCard(front="RNA", back="ribo", source_file="bio.md"),
        ]

        created = await load_cards(db, deck.id, cards, source_title="Biology notes")

        assert created == 1
        rows = (await db.execute(select(Card).where(Card.deck_id == deck.id))).scalars().all()
        rna = next(c for c in rows if c.front == "RNA")
        assert (rna.status, rna.source_type, rna.source_title) == ("new", "note", "Biology notes")

    @pytest.mark.asyncio
    async def test_unknown_deck(self, db) -> None:
        with pytest.raises(LookupError):
            await load_cards(db, 999_999, [ExtractedCard(front="a", back="b")])
