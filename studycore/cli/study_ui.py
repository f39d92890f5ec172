"""
Command-line interface for studying due flashcards.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from rich.console import Console
from rich.panel import Panel

from studycore.constants import DEFAULT_QUEUE_LIMIT, MAX_RATING, MIN_RATING
from studycore.exceptions import ConcurrentReviewError, DatabaseError
from studycore.models import Card, Rating
from studycore.review_processor import ReviewProcessor
from studycore.study import StudyService

logger = logging.getLogger(__name__)
console = Console()

_RATING_PROMPT = ", ".join(f"{r.value}:{r.name}" for r in Rating)


def _get_user_rating() -> int:
    """
    Prompt until the user enters a rating between 0 and 3.

    Returns:
        int: The accepted rating.
    """
    while True:
        rating_str = console.input(f"[bold]Rating ({_RATING_PROMPT}): [/bold]")
        try:
            rating = int(rating_str)
        except (ValueError, TypeError):
            console.print(
                "[bold red]Invalid input. Please enter a number.[/bold red]"
            )
            continue
        if MIN_RATING <= rating <= MAX_RATING:
            return rating
        console.print(
            f"[bold red]Invalid rating. Please enter a number between {MIN_RATING} and {MAX_RATING}.[/bold red]"  # noqa: E501
        )


def _display_card(card: Card) -> int:
    """
    Show a card's front, wait for Enter, then reveal the back.

    Returns:
        int: Milliseconds between showing the front and the user pressing Enter.
    """
    console.print(Panel(card.front, title="Front", border_style="green"))
    start_time = time.time()
    console.input("[italic]Press Enter to see the back...[/italic]")
    end_time = time.time()
    console.print(Panel(card.back, title="Back", border_style="blue"))
    return int((end_time - start_time) * 1000)


def start_study_flow(
    service: StudyService,
    processor: ReviewProcessor,
    user_id: UUID,
    deck_uuid: Optional[UUID] = None,
    limit: int = DEFAULT_QUEUE_LIMIT,
) -> int:
    """
    Run an interactive study session over the current study queue.

    Returns:
        int: Number of cards reviewed successfully.
    """
    console.print("[bold cyan]Starting study session...[/bold cyan]")
    queue = service.get_study_queue(user_id, deck_uuid=deck_uuid, limit=limit)

    if not queue:
        console.print("[bold yellow]No cards are due for study.[/bold yellow]")
        console.print("[bold cyan]Study session finished.[/bold cyan]")
        return 0

    reviewed_count = 0
    for position, card in enumerate(queue, start=1):
        console.rule(f"[bold]Card {position} of {len(queue)}[/bold]")

        duration_ms = _display_card(card)
        rating = _get_user_rating()

        try:
            result = processor.process_review(
                card, rating, duration_ms=duration_ms
            )
        except ConcurrentReviewError as e:
            logger.warning(f"Skipped stale card {card.uuid}: {e}")
            console.print(
                "[bold yellow]This card was reviewed elsewhere meanwhile. Skipping.[/bold yellow]"  # noqa: E501
            )
            continue
        except DatabaseError as e:
            logger.error(f"Failed to submit review for {card.uuid}: {e}")
            console.print(
                "[bold red]Error submitting review. Card will be studied again later.[/bold red]"  # noqa: E501
            )
            continue

        reviewed_count += 1
        updated = result.card
        if updated.due_at:
            days_until_due = (
                updated.due_at.date() - datetime.now(timezone.utc).date()
            ).days
            due_date_str = updated.due_at.strftime("%Y-%m-%d")
            console.print(
                f"[green]Reviewed.[/green] Next due in [bold]{days_until_due} days[/bold] on {due_date_str}."  # noqa: E501
            )
        else:
            console.print("[green]Reviewed.[/green]")

    console.print(
        f"[bold cyan]Study session finished. Reviewed {reviewed_count} card(s).[/bold cyan]"  # noqa: E501
    )
    return reviewed_count
