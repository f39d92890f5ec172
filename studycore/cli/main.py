"""
CLI entry point for studycore.
"""

# Standard library imports
import logging
from pathlib import Path
from typing import Optional
from uuid import UUID

# Third-party imports
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

# Local application imports
from studycore.config import settings
from studycore.db.database import StudyDatabase
from studycore.exceptions import (
    DatabaseError,
    DeckNotFoundError,
    InvalidArgumentError,
)
from studycore.models import Card, CardSource, Deck, Rating, StudyStatistics
from studycore.review_processor import ReviewProcessor, rating_from_ui_scale
from studycore.study import StudyService
from studycore.cli.study_ui import start_study_flow


console = Console()

app = typer.Typer(
    name="studycore",
    help="Studycore: flashcard decks with SM-2 spaced repetition.",
    add_completion=False,
    rich_markup_mode="markdown",
)
deck_app = typer.Typer(name="deck", help="Create and list decks.")
card_app = typer.Typer(name="card", help="Add, archive and restore cards.")
app.add_typer(deck_app)
app.add_typer(card_app)


@app.callback()
def _configure(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
):
    """Studycore command-line interface."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        )


# ---------------------------------------------------------------------------
# Helpers for resolving the --db path (--db flag, STUDYCORE_DB, then settings)
# ---------------------------------------------------------------------------


def _resolve_db_path(db: Optional[Path]) -> Path:
    """Resolve db path from the CLI flag / STUDYCORE_DB envvar, else settings."""
    if db is not None:
        return db
    return settings.db_path


# Common typer options reused across commands
_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB database file. "
    "Falls back to STUDYCORE_DB env var.",
    envvar="STUDYCORE_DB",
)

_deck_option = typer.Option(  # noqa: B008
    None,
    "--deck",
    "-d",
    help="Deck slug or UUID to restrict the command to.",
)


def _find_deck(db_inst: StudyDatabase, user_id: UUID, ref: str) -> Deck:
    """Look a deck up by slug or UUID. Raises DeckNotFoundError."""
    for deck in db_inst.get_decks(user_id, include_archived=True):
        if deck.slug == ref or str(deck.uuid) == ref:
            return deck
    raise DeckNotFoundError(f"Deck '{ref}' not found.")


def _resolve_deck_uuid(
    db_inst: StudyDatabase, user_id: UUID, ref: Optional[str]
) -> Optional[UUID]:
    return _find_deck(db_inst, user_id, ref).uuid if ref else None


def _fail(message: str, error: Exception) -> None:
    console.print(f"[bold red]{message}: {escape(str(error))}[/bold red]")
    raise typer.Exit(code=1) from error


# ---------------------------------------------------------------------------
# Deck commands
# ---------------------------------------------------------------------------


@deck_app.command("add")
def deck_add(
    name: str = typer.Argument(..., help="Display name of the deck."),  # noqa: B008
    slug: Optional[str] = typer.Option(
        None, "--slug", help="Kebab-case slug; derived from the name if omitted."
    ),
    language: Optional[str] = typer.Option(
        None, "--language", help="Language code of the deck's content."
    ),
    db: Optional[Path] = _db_option,
):
    """Create a new deck."""
    db_path = _resolve_db_path(db)
    try:
        deck = Deck(
            user_id=settings.user_id,
            name=name,
            slug=slug,
            language_code=language,
        )
        with StudyDatabase(db_path=db_path) as db_inst:
            db_inst.create_deck(deck)
    except ValueError as e:
        _fail("Invalid deck", e)
    except DatabaseError as e:
        _fail("A database error occurred", e)
    console.print(
        f"[bold green]Created deck '{deck.name}' ({deck.slug}).[/bold green]"
    )


@deck_app.command("list")
def deck_list(
    include_archived: bool = typer.Option(
        False, "--all", help="Include archived decks."
    ),
    db: Optional[Path] = _db_option,
):
    """List your decks."""
    db_path = _resolve_db_path(db)
    try:
        with StudyDatabase(db_path=db_path) as db_inst:
            decks = db_inst.get_decks(
                settings.user_id, include_archived=include_archived
            )
            card_counts = {
                deck.uuid: len(
                    db_inst.get_cards(
                        settings.user_id,
                        deck_uuid=deck.uuid,
                        include_archived=False,
                    )
                )
                for deck in decks
            }
    except DatabaseError as e:
        _fail("A database error occurred", e)

    if not decks:
        console.print("[yellow]No decks found.[/yellow]")
        return

    table = Table(title="Decks")
    table.add_column("Slug", style="cyan")
    table.add_column("Name")
    table.add_column("Cards", style="magenta")
    table.add_column("UUID", style="dim")
    for deck in decks:
        name = f"{deck.name} (archived)" if deck.is_archived else deck.name
        table.add_row(deck.slug, name, str(card_counts[deck.uuid]), str(deck.uuid))
    console.print(table)


def _set_deck_archived(ref: str, archived: bool, db: Optional[Path]) -> Deck:
    db_path = _resolve_db_path(db)
    try:
        with StudyDatabase(db_path=db_path) as db_inst:
            target = _find_deck(db_inst, settings.user_id, ref)
            return db_inst.set_deck_archived(target.uuid, archived)
    except DatabaseError as e:
        _fail("Error", e)


@deck_app.command("archive")
def deck_archive(
    deck: str = typer.Argument(..., help="Deck slug or UUID."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Archive a deck so it is hidden from `deck list`."""
    archived = _set_deck_archived(deck, True, db)
    console.print(f"[bold green]Archived deck '{escape(archived.name)}'.[/bold green]")


@deck_app.command("restore")
def deck_restore(
    deck: str = typer.Argument(..., help="Deck slug or UUID."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Restore an archived deck."""
    restored = _set_deck_archived(deck, False, db)
    console.print(f"[bold green]Restored deck '{escape(restored.name)}'.[/bold green]")


# ---------------------------------------------------------------------------
# Card commands
# ---------------------------------------------------------------------------


@card_app.command("add")
def card_add(
    deck: str = typer.Argument(..., help="Deck slug or UUID."),  # noqa: B008
    front: str = typer.Option(..., "--front", help="Question side."),
    back: str = typer.Option(..., "--back", help="Answer side."),
    source: CardSource = typer.Option(
        CardSource.MANUAL, "--source", help="Where the card came from."
    ),
    db: Optional[Path] = _db_option,
):
    """Add a card to a deck."""
    db_path = _resolve_db_path(db)
    try:
        with StudyDatabase(db_path=db_path) as db_inst:
            target = _find_deck(db_inst, settings.user_id, deck)
            card = Card(
                user_id=settings.user_id,
                deck_uuid=target.uuid,
                front=front,
                back=back,
                source=source,
                language_code=target.language_code,
            )
            db_inst.upsert_cards_batch([card])
    except DeckNotFoundError as e:
        _fail("Error", e)
    except ValueError as e:
        _fail("Invalid card", e)
    except DatabaseError as e:
        _fail("A database error occurred", e)
    console.print(f"[bold green]Added card {card.uuid}.[/bold green]")


def _set_archived(card_uuid: UUID, archived: bool, db: Optional[Path]) -> Card:
    db_path = _resolve_db_path(db)
    try:
        with StudyDatabase(db_path=db_path) as db_inst:
            return db_inst.set_card_archived(card_uuid, archived)
    except DatabaseError as e:
        _fail("Error", e)


@card_app.command("archive")
def card_archive(
    card_uuid: UUID = typer.Argument(..., help="UUID of the card."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Archive a card so it no longer appears in queues or statistics."""
    card = _set_archived(card_uuid, True, db)
    console.print(f"[bold green]Archived card {card.uuid}.[/bold green]")


@card_app.command("restore")
def card_restore(
    card_uuid: UUID = typer.Argument(..., help="UUID of the card."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Restore an archived card with its learning state intact."""
    card = _set_archived(card_uuid, False, db)
    console.print(f"[bold green]Restored card {card.uuid}.[/bold green]")


# ---------------------------------------------------------------------------
# Study commands
# ---------------------------------------------------------------------------


@app.command()
def queue(
    deck: Optional[str] = _deck_option,
    limit: int = typer.Option(
        settings.queue_limit, "--limit", "-l", help="Maximum cards to list."
    ),
    db: Optional[Path] = _db_option,
):
    """Show the cards that are due, in study order."""
    db_path = _resolve_db_path(db)
    try:
        with StudyDatabase(db_path=db_path) as db_inst:
            deck_uuid = _resolve_deck_uuid(db_inst, settings.user_id, deck)
            cards = StudyService(db_inst).get_study_queue(
                settings.user_id, deck_uuid=deck_uuid, limit=limit
            )
    except InvalidArgumentError as e:
        _fail("Error", e)
    except DatabaseError as e:
        _fail("A database error occurred", e)

    if not cards:
        console.print("[yellow]No cards are due.[/yellow]")
        return

    table = Table(title="Study Queue")
    table.add_column("#", style="dim")
    table.add_column("Front", style="cyan")
    table.add_column("Due", style="yellow")
    table.add_column("Interval", style="magenta")
    table.add_column("UUID", style="dim")
    for position, card in enumerate(cards, start=1):
        due = card.due_at.strftime("%Y-%m-%d %H:%M") if card.due_at else "new"
        table.add_row(
            str(position),
            card.front,
            due,
            f"{card.interval_days}d",
            str(card.uuid),
        )
    console.print(table)


@app.command()
def rate(
    card_uuid: UUID = typer.Argument(..., help="UUID of the card."),  # noqa: B008
    rating: int = typer.Argument(  # noqa: B008
        ..., help="0:Blackout, 1:Incorrect, 2:Hesitant, 3:Perfect."
    ),
    ui_scale: bool = typer.Option(
        False, "--ui-scale", help="Interpret RATING on the 0-5 UI scale."
    ),
    duration_ms: Optional[int] = typer.Option(
        None, "--duration-ms", help="Time spent on the card."
    ),
    db: Optional[Path] = _db_option,
):
    """Record a single review of a card."""
    db_path = _resolve_db_path(db)
    try:
        if ui_scale:
            rating = rating_from_ui_scale(rating)
        with StudyDatabase(db_path=db_path) as db_inst:
            result = ReviewProcessor(db_inst).process_review_by_uuid(
                card_uuid, rating, duration_ms=duration_ms
            )
    except InvalidArgumentError as e:
        _fail("Error", e)
    except DatabaseError as e:
        _fail("Error", e)

    card = result.card
    console.print(
        f"[green]Rated {Rating(rating).name}.[/green] "
        f"Next due [bold]{card.due_at:%Y-%m-%d %H:%M}[/bold] "
        f"(interval {card.interval_days}d, ease {card.ease_factor:.2f})."
    )


@app.command()
def study(
    deck: Optional[str] = _deck_option,
    limit: int = typer.Option(
        settings.queue_limit, "--limit", "-l", help="Maximum cards to study."
    ),
    db: Optional[Path] = _db_option,
):
    """Start an interactive study session over the due cards."""
    db_path = _resolve_db_path(db)
    try:
        with StudyDatabase(db_path=db_path) as db_inst:
            deck_uuid = _resolve_deck_uuid(db_inst, settings.user_id, deck)
            start_study_flow(
                StudyService(db_inst),
                ReviewProcessor(db_inst),
                settings.user_id,
                deck_uuid=deck_uuid,
                limit=limit,
            )
    except InvalidArgumentError as e:
        _fail("Error", e)
    except DatabaseError as e:
        _fail("A database error occurred", e)


# ---------------------------------------------------------------------------
# Stats helpers & command
# ---------------------------------------------------------------------------


def _display_overall_stats(cons: Console, statistics: StudyStatistics):
    """Print the per-user totals."""
    overall_table = Table(title="Study Statistics", show_header=False)
    overall_table.add_column("Metric", style="cyan")
    overall_table.add_column("Value", style="magenta")
    last = statistics.last_reviewed_at
    overall_table.add_row("Total Cards", str(statistics.cards_total))
    overall_table.add_row("Archived Cards", str(statistics.cards_archived))
    overall_table.add_row("Due Now", str(statistics.cards_due))
    overall_table.add_row("Total Reviews", str(statistics.reviews_total))
    overall_table.add_row(
        "Last Review", last.strftime("%Y-%m-%d %H:%M") if last else "never"
    )
    cons.print(overall_table)


def _display_breakdown(cons: Console, statistics: StudyStatistics):
    """Print the bucket counts of the non-archived cards."""
    breakdown = statistics.breakdown
    table = Table(title="Active Cards")
    table.add_column("Bucket", style="cyan")
    table.add_column("Count", style="magenta")
    table.add_row("New", str(breakdown.new))
    table.add_row("Due", str(breakdown.due))
    table.add_row("Learning", str(breakdown.learning))
    table.add_row("Mastered", str(breakdown.mastered))
    cons.print(table)


@app.command()
def stats(
    db: Optional[Path] = _db_option,
):
    """Display study statistics."""
    db_path = _resolve_db_path(db)
    try:
        with StudyDatabase(db_path=db_path) as db_inst:
            statistics = StudyService(db_inst).get_study_statistics(
                settings.user_id
            )
    except DatabaseError as e:
        _fail("A database error occurred", e)

    _display_overall_stats(console, statistics)
    if not statistics.cards_total:
        console.print("[yellow]No cards found in the database.[/yellow]")
        return
    _display_breakdown(console, statistics)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """
    Run the CLI application.

    If an unexpected exception occurs, print a bold red error message to the console and exit the process with status code 1.
    """
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]UNEXPECTED ERROR: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
