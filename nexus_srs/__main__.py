"""CLI interface for Nexus Study.

Usage:
    python -m nexus_srs review [--deck ID]             Start a review session
    python -m nexus_srs stats                          Show your statistics
    python -m nexus_srs due                            Show how many cards are due
    python -m nexus_srs decks                          List decks
    python -m nexus_srs decks --create "Biology"       Create a deck
    python -m nexus_srs add DECK "front" "back"        Add a card
    python -m nexus_srs add DECK "The {{c1::DNA}}" --cloze
    python -m nexus_srs import DECK notes.md           Extract cards from notes
    python -m nexus_srs suspend CARD | unsuspend CARD
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

from sqlalchemy import func, select

from backend.config import utcnow
from backend.database import async_session, init_db
from backend.models.card import Card
from backend.models.deck import Deck
from backend.models.learner import Learner
from backend.models.review_log import ReviewLog
from backend.srs.cloze import cloze_deletions, parse_cloze, render_cloze_answer
from backend.srs.progress import normalize_progress
from backend.srs.queue import get_counts, load_card_states
from backend.srs.scheduler import CardStatus, CardType, Rating, SchedulingError
from backend.srs.session import set_suspended, start_session
from ingestion.pipeline import load_cards, run_pipeline

RATING_KEYS = {"1": Rating.AGAIN, "2": Rating.HARD, "3": Rating.GOOD, "4": Rating.EASY}


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    await init_db()


async def ensure_learner() -> int:
    """Ensure there's a default learner and return the ID."""
    async with async_session() as db:
        stmt = select(Learner).order_by(Learner.id.asc()).limit(1)
        result = await db.execute(stmt)
        learner = result.scalar_one_or_none()
        if learner:
            return learner.id

        learner = Learner(name="Student")
        db.add(learner)
        await db.commit()
        await db.refresh(learner)
        return learner.id


def _format_interval(days: float) -> str:
    if days < 1:
        return f"{days * 1440:.0f} min"
    return f"{days:.1f} days"


async def cmd_review(args: argparse.Namespace) -> None:
    """Run an interactive review session."""
    await ensure_db()
    learner_id = await ensure_learner()

    async with async_session() as db:
        session = await start_session(db, learner_id, deck_id=args.deck)
        queue = session.queue

        if session.is_complete:
            print("\nNo cards due for review. You're all caught up!")
            return

        print("\n  Review Session")
        print(
            f"  {len(queue.learning_cards)} learning + {len(queue.review_cards)} review"
            f" + {len(queue.new_cards)} new = {queue.total} cards\n"
        )
        print("  Ratings: 1=Again  2=Hard  3=Good  4=Easy   s=suspend  q=quit\n")

        position = 0
        while (card := session.current_card) is not None:
            position += 1
            card_label = f"  [{position}/{queue.total}]"
            if card.status == CardStatus.NEW:
                card_label += " (NEW)"
            print(card_label)

            if card.card_type == CardType.CLOZE:
                print(f"  {parse_cloze(card.front)}")
            else:
                print(f"  {card.front}")

            start_time = time.time()
            response = input("\n  Press enter to show the answer: ").strip().lower()
            time_ms = int((time.time() - start_time) * 1000)
            if response == "q":
                print("\n  Session ended early.")
                break

            if card.card_type == CardType.CLOZE:
                print(f"  {render_cloze_answer(card.front)}")
            else:
                print(f"  {card.back}")

            rating = None
            while rating is None:
                rate_input = input("  Rate [1-4, s, q]: ").strip().lower()
                if rate_input in ("q", "s"):
                    break
                rating = RATING_KEYS.get(rate_input)

            if rate_input == "q":
                print("\n  Session ended early.")
                break
            if rate_input == "s":
                await session.suspend_current(db)
                print("  Suspended.\n")
                continue

            outcome = await session.submit_rating(db, rating, time_ms)
            if outcome.applied_rating != outcome.rating:
                print(f"  Slow answer: counted as {outcome.applied_rating.value}")
            if outcome.card.status == CardStatus.SUSPENDED:
                print("  Leech detected: card suspended.\n")
            else:
                print(f"  Next review in {_format_interval(outcome.card.interval)}\n")

    # Summary
    s = session.stats
    print("\n  Session Complete!")
    print(f"  Reviewed: {s.cards_reviewed}  Again: {s.again}  XP: +{s.xp_earned}\n")


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show learner statistics."""
    await ensure_db()
    learner_id = await ensure_learner()
    now = utcnow()

    async with async_session() as db:
        learner = await db.get(Learner, learner_id)
        cards = await load_card_states(db, learner_id)
        reviews = (
            await db.execute(
                select(func.count(ReviewLog.id)).where(ReviewLog.learner_id == learner_id)
            )
        ).scalar() or 0

    stats = learner.user_stats()
    progress = normalize_progress(learner.daily_progress(), now)
    settings = learner.scheduler_settings()
    counts = get_counts(cards, now)

    print("\n  Nexus Study Statistics")
    print(f"  {'Level:':<20} {stats.level} ({stats.xp} XP)")
    print(f"  {'Streak:':<20} {stats.streak} days")
    print(f"  {'Cards learned:':<20} {stats.cards_learned}")
    print(f"  {'Total cards:':<20} {len(cards)}")
    print(f"  {'Suspended:':<20} {counts.suspended}")
    print(f"  {'New today:':<20} {progress.new_studied}/{settings.max_new_per_day}")
    print(f"  {'Reviews today:':<20} {progress.review_studied}/{settings.max_reviews_per_day}")
    print(f"  {'Total reviews:':<20} {reviews}")
    print()


async def cmd_due(args: argparse.Namespace) -> None:
    """Show how many cards are due."""
    await ensure_db()
    learner_id = await ensure_learner()

    async with async_session() as db:
        counts = get_counts(await load_card_states(db, learner_id, args.deck))

    print(
        f"  {counts.learning} learning, {counts.review} review due,"
        f" {counts.new} new cards available"
    )


async def cmd_decks(args: argparse.Namespace) -> None:
    """List decks, or create one."""
    await ensure_db()
    learner_id = await ensure_learner()

    async with async_session() as db:
        if args.create:
            deck = Deck(learner_id=learner_id, title=args.create, subject=args.subject)
            db.add(deck)
            await db.commit()
            print(f"  Created deck {deck.id}: {deck.title}")
            return

        decks = (
            await db.execute(select(Deck).where(Deck.learner_id == learner_id).order_by(Deck.id))
        ).scalars().all()
        if not decks:
            print("  No decks yet. Create one with: decks --create TITLE")
            return
        for deck in decks:
            counts = get_counts(await load_card_states(db, learner_id, deck.id))
            print(
                f"  {deck.id:>4}  {deck.title:<30} new {counts.new:>3}"
                f"  learning {counts.learning:>3}  review {counts.review:>3}"
            )


async def cmd_add(args: argparse.Namespace) -> None:
    """Add a new card to a deck."""
    await ensure_db()

    card_type = CardType.CLOZE if args.cloze else CardType.BASIC
    if card_type == CardType.CLOZE and not cloze_deletions(args.front):
        print("  Cloze cards need at least one {{c1::...}} deletion.")
        sys.exit(1)

    async with async_session() as db:
        if await db.get(Deck, args.deck) is None:
            print(f"  Deck {args.deck} not found.")
            sys.exit(1)

        card = Card(
            deck_id=args.deck,
            front=args.front,
            back=args.back or "",
            card_type=card_type.value,
            due_date=utcnow(),
        )
        db.add(card)
        await db.commit()
        print(f"  Added card {card.id} (ready for review).")


async def cmd_import(args: argparse.Namespace) -> None:
    """Extract cards from note files into a deck."""
    await ensure_db()

    result = run_pipeline(args.source)
    for error in result.errors:
        print(f"  {error}")
    if not result.cards:
        print("  No cards found.")
        return

    async with async_session() as db:
        try:
            created = await load_cards(db, args.deck, result.cards, source_title=args.source.name)
        except LookupError as e:
            print(f"  {e}")
            sys.exit(1)

    print(
        f"  {result.cards_extracted} cards found, {result.cards_after_dedup} unique,"
        f" {created} added to deck {args.deck}."
    )


async def cmd_suspend(args: argparse.Namespace) -> None:
    """Suspend or un-suspend a card."""
    await ensure_db()
    suspend = args.command == "suspend"

    async with async_session() as db:
        try:
            card = await set_suspended(db, args.card, suspend)
        except LookupError as e:
            print(f"  {e}")
            sys.exit(1)

    print(f"  Card {card.id} is now {card.status.value}.")


def main() -> None:
    """Entry point for the Nexus Study CLI application."""
    parser = argparse.ArgumentParser(
        prog="nexus_srs",
        description="Nexus Study spaced repetition flashcards",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # review
    review_parser = subparsers.add_parser("review", help="Start a review session")
    review_parser.add_argument("--deck", type=int, default=None, help="Study only this deck")

    # stats
    subparsers.add_parser("stats", help="Show your statistics")

    # due
    due_parser = subparsers.add_parser("due", help="Show cards due for review")
    due_parser.add_argument("--deck", type=int, default=None, help="Count only this deck")

    # decks
    decks_parser = subparsers.add_parser("decks", help="List or create decks")
    decks_parser.add_argument("--create", metavar="TITLE", help="Create a deck with this title")
    decks_parser.add_argument("--subject", default="", help="Subject of the new deck")

    # add
    add_parser = subparsers.add_parser("add", help="Add a card to a deck")
    add_parser.add_argument("deck", type=int, help="Deck ID")
    add_parser.add_argument("front", help="Question (or cloze text)")
    add_parser.add_argument("back", nargs="?", default="", help="Answer")
    add_parser.add_argument("--cloze", action="store_true", help="Front holds cloze deletions")

    # import
    import_parser = subparsers.add_parser("import", help="Extract cards from .txt/.md/.csv/.tsv notes")
    import_parser.add_argument("deck", type=int, help="Deck ID")
    import_parser.add_argument("source", type=Path, help="File or directory of notes")

    # suspend / unsuspend
    for name, text in (("suspend", "Suspend a card"), ("unsuspend", "Return a card to rotation")):
        p = subparsers.add_parser(name, help=text)
        p.add_argument("card", type=int, help="Card ID")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    cmd_map = {
        "review": cmd_review,
        "stats": cmd_stats,
        "due": cmd_due,
        "decks": cmd_decks,
        "add": cmd_add,
        "import": cmd_import,
        "suspend": cmd_suspend,
        "unsuspend": cmd_suspend,
    }

    try:
        asyncio.run(cmd_map[args.command](args))
    except SchedulingError as e:
        print(f"  Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
