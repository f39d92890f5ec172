"""Studycore - flashcard decks with an SM-2 spaced repetition scheduler."""

from .models import (
    Card,
    CardSource,
    Deck,
    LearningState,
    Rating,
    ReviewAuditRecord,
    ReviewOutcome,
    StudyStatistics,
    StudyStats,
)
from .constants import DEFAULT_EASE_FACTOR, MINIMUM_EASE_FACTOR
from .scheduler import SM2Scheduler, is_due, order_by_priority, transition
from .stats import compute_stats
from .db import StudyDatabase

__all__ = [
    "Card",
    "CardSource",
    "Deck",
    "LearningState",
    "Rating",
    "ReviewAuditRecord",
    "ReviewOutcome",
    "StudyStatistics",
    "StudyStats",
    "DEFAULT_EASE_FACTOR",
    "MINIMUM_EASE_FACTOR",
    "SM2Scheduler",
    "is_due",
    "order_by_priority",
    "transition",
    "compute_stats",
    "StudyDatabase",
]
