"""CLI interface for Hifz Mushaf.

Usage:
    python -m hifz page 1                     Print a rebuilt page line by line
    python -m hifz verify 1                   Check a page's boundaries against the edition
    python -m hifz add mistake 2 255 42 "front" "back"
                                              Add a flashcard
    python -m hifz due                        Show how many cards are due
    python -m hifz review                     Start a review session
    python -m hifz stats                      Show flashcard and annotation statistics
    python -m hifz cache [--clear]            Show or clear the verse cache
"""

import argparse
import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine

from backend.config import settings
from backend.context import AppContext
from backend.database import async_session, engine
from backend.errors import HifzError
from backend.models import Base, FlashcardType
from backend.srs.fsrs import Rating
from backend.srs.queue import QueueConfig
from backend.srs.session import start_session
from backend.stores.flashcards import make_flashcard

logger = logging.getLogger(__name__)

RATING_KEYS = {"1": Rating.AGAIN, "2": Rating.HARD, "3": Rating.GOOD, "4": Rating.EASY}


async def ensure_db(bind: AsyncEngine = engine) -> None:
    """Create tables if they don't exist."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def open_context() -> AsyncIterator[AppContext]:
    await ensure_db()
    ctx = AppContext.create(async_session, settings)
    try:
        yield ctx
    finally:
        await ctx.close()


async def cmd_page(args: argparse.Namespace, ctx: AppContext) -> None:
    """Print a rebuilt page."""
    page = await ctx.reconstructor.rebuild_page(args.page)
    print(f"\n  Page {page.page_number} ({page.edition_id}, {len(page.lines)} lines)\n")
    for line in page.lines:
        text = " ".join(word.text for word in line.words)
        print(f"  {line.line_number:>2}  {text}")
        if args.keys:
            print(f"      {', '.join(line.verse_keys)}")
    print()


async def cmd_verify(args: argparse.Namespace, ctx: AppContext) -> None:
    valid = await ctx.reconstructor.verify_page_boundaries(args.page)
    result = "matches" if valid else "does NOT match"
    print(f"  Page {args.page} {result} {ctx.reconstructor.edition.name}")


async def cmd_add(args: argparse.Namespace, ctx: AppContext) -> None:
    """Add a flashcard for a verse."""
    flashcard = make_flashcard(
        args.type,
        args.surah,
        args.ayah,
        args.page,
        args.front,
        args.back,
        scheduler=ctx.scheduler,
    )
    await ctx.flashcards.create(flashcard)
    print(f"  Added {flashcard.type} card {flashcard.id} for {flashcard.verse_key}")


async def cmd_due(args: argparse.Namespace, ctx: AppContext) -> None:
    due = await ctx.flashcards.get_due_cards()
    new = sum(1 for card in due if card.reps == 0)
    print(f"  {len(due) - new} cards due, {new} new cards available")


async def cmd_review(args: argparse.Namespace, ctx: AppContext) -> None:
    """Run an interactive review session."""
    config = QueueConfig(
        max_reviews=args.max_cards,
        max_new=args.new_cards,
        card_type=FlashcardType(args.type) if args.type else None,
    )
    session = await start_session(ctx.flashcards, config)

    if session.is_complete:
        print("\nNo cards due for review. You're all caught up!")
        return

    print("\n  Review Session")
    print(
        f"  {len(session.queue.due_cards)} due + {len(session.queue.new_cards)} new"
        f" = {session.queue.total} cards\n"
    )
    print("  Ratings: 1=Again  2=Hard  3=Good  4=Easy")
    print("  Type 'q' to quit\n")

    total = session.queue.total
    while (card := session.current_card) is not None:
        label = f"  [{total - session.remaining + 1}/{total}] {card.verse_key} ({card.type})"
        if card.reps == 0:
            label += " (NEW)"
        print(label)
        print(f"  {card.front}")

        if input("\n  Show answer [enter, q=quit]: ").strip().lower() == "q":
            print("\n  Session ended early.")
            break
        print(f"  {card.back}\n")

        key = input("  Rate [1-4, enter=3]: ").strip() or "3"
        if key.lower() == "q":
            print("\n  Session ended early.")
            break
        rating = RATING_KEYS.get(key, Rating.GOOD)

        updated = await session.rate_current(rating)
        print(f"  Next review {updated.due:%Y-%m-%d %H:%M} ({updated.state})\n")

    stats = session.stats
    print("\n  Session Complete!")
    print(
        f"  Reviewed: {stats.cards_reviewed}  Again: {stats.again}"
        f"  Accuracy: {stats.accuracy * 100:.0f}%\n"
    )


async def cmd_stats(args: argparse.Namespace, ctx: AppContext) -> None:
    cards = await ctx.flashcards.get_stats()
    annotations = await ctx.annotations.get_stats()
    scheduler = ctx.scheduler.get_stats(
        [card.fsrs_state for card in await ctx.flashcards.get_all()]
    )

    print("\n  Hifz Statistics")
    print(f"  {'Total cards:':<20} {cards['total']}")
    for card_type, count in cards["by_type"].items():
        print(f"    {card_type + ':':<18} {count}")
    print(f"  {'Due now:':<20} {cards['due_today']}")
    print(f"  {'New (unseen):':<20} {scheduler.new}")
    print(f"  {'Learning:':<20} {scheduler.learning}")
    print(f"  {'In review:':<20} {scheduler.review}")
    print(f"  {'Annotations:':<20} {annotations['total']}")
    print()


async def cmd_cache(args: argparse.Namespace, ctx: AppContext) -> None:
    if args.clear:
        await ctx.source.clear_cache()
        print("  Verse cache cleared")
        return
    stats = await ctx.source.get_cache_stats()
    print(f"  {stats['pages']} pages, {stats['verses']} verses cached")


async def run(args: argparse.Namespace) -> None:
    cmd_map = {
        "page": cmd_page,
        "verify": cmd_verify,
        "add": cmd_add,
        "due": cmd_due,
        "review": cmd_review,
        "stats": cmd_stats,
        "cache": cmd_cache,
    }
    async with open_context() as ctx:
        await cmd_map[args.command](args, ctx)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hifz",
        description="Mushaf reader and Hifz flashcard review",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    page_parser = subparsers.add_parser("page", help="Print a rebuilt Mushaf page")
    page_parser.add_argument("page", type=int, help="Page number (1-604)")
    page_parser.add_argument("-k", "--keys", action="store_true", help="Show verse keys per line")

    verify_parser = subparsers.add_parser("verify", help="Verify a page against the edition")
    verify_parser.add_argument("page", type=int, help="Page number (1-604)")

    add_parser = subparsers.add_parser("add", help="Add a flashcard")
    add_parser.add_argument("type", choices=[t.value for t in FlashcardType])
    add_parser.add_argument("surah", type=int)
    add_parser.add_argument("ayah", type=int)
    add_parser.add_argument("page", type=int)
    add_parser.add_argument("front")
    add_parser.add_argument("back")

    subparsers.add_parser("due", help="Show cards due for review")

    review_parser = subparsers.add_parser("review", help="Start a review session")
    review_parser.add_argument(
        "--max-cards", type=int, default=settings.max_reviews_per_session, help="Max reviews"
    )
    review_parser.add_argument(
        "--new-cards", type=int, default=settings.max_new_cards_per_session, help="Max new cards"
    )
    review_parser.add_argument(
        "--type", choices=[t.value for t in FlashcardType], help="Only review one card type"
    )

    subparsers.add_parser("stats", help="Show statistics")

    cache_parser = subparsers.add_parser("cache", help="Show or clear the verse cache")
    cache_parser.add_argument("--clear", action="store_true", help="Delete every cached entry")

    return parser


def main() -> None:
    """Entry point for the Hifz CLI application."""
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose or settings.debug else logging.WARNING
    )

    if not args.command:
        parser.print_help()
        return

    try:
        asyncio.run(run(args))
    except HifzError as e:
        logger.debug("Command failed: %s", e.context)
        parser.exit(1, f"  Error: {e}\n")


if __name__ == "__main__":
    main()
