"""
Aggregate study statistics over a collection of cards.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from .constants import (
    LEARNING_MAX_REPETITIONS,
    LEARNING_MIN_REPETITIONS,
    MASTERED_MIN_REPETITIONS,
)
from .models import StudyStats, ensure_utc
from .scheduler import card_field


def compute_stats(
    cards: Iterable[Any], now: Optional[datetime] = None
) -> StudyStats:
    """
    Count cards by study bucket.

    Archived cards are filtered out before anything else is counted. The
    "learning" bucket is based on repetition count alone, so a card may be
    counted as both learning and due.

    Parameters:
        cards: Cards, or mappings, exposing `due_at`, `repetitions_count`
            and `is_archived`.
        now: Reference instant for the due bucket; defaults to now (UTC).

    Returns:
        StudyStats: total, new, due, learning and mastered counts.
    """
    now = ensure_utc(now or datetime.now(timezone.utc))
    active = [card for card in cards if not card_field(card, "is_archived")]

    new = due = learning = mastered = 0
    for card in active:
        due_at = card_field(card, "due_at")
        repetitions = card_field(card, "repetitions_count") or 0
        if due_at is None:
            new += 1
        elif ensure_utc(due_at) <= now:
            due += 1
        if LEARNING_MIN_REPETITIONS <= repetitions <= LEARNING_MAX_REPETITIONS:
            learning += 1
        elif repetitions >= MASTERED_MIN_REPETITIONS:
            mastered += 1

    return StudyStats(
        total=len(active),
        new=new,
        due=due,
        learning=learning,
        mastered=mastered,
    )
