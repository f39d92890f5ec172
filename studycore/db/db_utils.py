"""
Utility functions for data marshalling between Pydantic models and database formats.  # noqa: E501
This module helps decouple the core database logic from the specifics of data conversion.  # noqa: E501
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from ..exceptions import MarshallingError
from ..models import (
    Card,
    Deck,
    LearningState,
    ReviewAuditRecord,
    ReviewOutcome,
    ensure_utc,
)


def to_db_timestamp(ts: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware (or naive-UTC) datetime into the naive UTC value stored in the DB."""  # noqa: E501
    if ts is None:
        return None
    return ensure_utc(ts).replace(tzinfo=None)


def from_db_timestamp(ts: Optional[datetime]) -> Optional[datetime]:
    """Re-attach the UTC zone to a naive timestamp read from the DB."""
    if ts is None:
        return None
    return ensure_utc(ts)


def _to_float(value: Any) -> Any:
    return float(value) if isinstance(value, Decimal) else value


_CARD_TIMESTAMP_FIELDS = ("created_at", "updated_at", "due_at", "last_reviewed_at")


def deck_to_db_params_tuple(deck: Deck) -> Tuple:
    """
    Convert a Deck model into a tuple suitable for database insertion.

    Returns:
        tuple: (uuid, user_id, name, slug, language_code, is_archived,
                created_at, updated_at)
    """
    return (
        deck.uuid,
        deck.user_id,
        deck.name,
        deck.slug,
        deck.language_code,
        deck.is_archived,
        to_db_timestamp(deck.created_at),
        to_db_timestamp(deck.updated_at),
    )


def db_row_to_deck(row_dict: Dict[str, Any]) -> Deck:
    """
    Create a Deck model from a database row dictionary.

    Raises:
        MarshallingError: If the row cannot be validated into a Deck.
    """
    data = row_dict.copy()
    for key in ("created_at", "updated_at"):
        data[key] = from_db_timestamp(data.get(key))
    try:
        return Deck(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse deck from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def card_to_db_params_list(cards: Sequence[Card]) -> List[Tuple]:
    """
    Convert a sequence of Card models into a list of tuples suitable for bulk database insertion.  # noqa: E501

    Returns:
        List[Tuple]: One tuple per card with fields in the following order:
        (uuid, user_id, deck_uuid, front, back, source, is_archived,
        language_code, created_at, updated_at, due_at, last_reviewed_at,
        repetitions_count, lapses_count, ease_factor, interval_days).
    """
    return [
        (
            card.uuid,
            card.user_id,
            card.deck_uuid,
            card.front,
            card.back,
            card.source.value,
            card.is_archived,
            card.language_code,
            to_db_timestamp(card.created_at),
            to_db_timestamp(card.updated_at),
            to_db_timestamp(card.due_at),
            to_db_timestamp(card.last_reviewed_at),
            card.repetitions_count,
            card.lapses_count,
            card.ease_factor,
            card.interval_days,
        )
        for card in cards
    ]


def transform_db_row_for_card(row_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Prepare a database row dictionary for constructing a Card model.

    Returns:
        Dict[str, Any]: A copy of the row with UTC-aware timestamps and a
        float ease factor (DECIMAL columns come back as Decimal).
    """
    data = row_dict.copy()
    for key in _CARD_TIMESTAMP_FIELDS:
        data[key] = from_db_timestamp(data.get(key))
    data["ease_factor"] = _to_float(data.get("ease_factor"))
    return data


def db_row_to_card(row_dict: Dict[str, Any]) -> Card:
    """
    Create a Card model from a database row dictionary.

    Raises:
        MarshallingError: If the row cannot be validated into a Card (wraps the original ValidationError).  # noqa: E501
    """
    data = transform_db_row_for_card(row_dict)
    try:
        return Card(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse card from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def audit_record_to_db_params_tuple(record: ReviewAuditRecord) -> Tuple:
    """
    Convert a ReviewAuditRecord into a tuple suitable for database insertion.

    Returns:
        tuple: (review_uuid, user_id, card_uuid, reviewed_at, rating,
                duration_ms, pre_ease_factor, post_ease_factor,
                pre_interval_days, post_interval_days,
                pre_repetitions_count, post_repetitions_count,
                pre_lapses_count, post_lapses_count,
                pre_due_at, post_due_at, pre_last_reviewed_at)
    """
    before, after, outcome = record.before, record.after, record.outcome
    return (
        record.review_uuid,
        record.user_id,
        record.card_uuid,
        to_db_timestamp(outcome.reviewed_at),
        outcome.rating,
        outcome.duration_ms,
        before.ease_factor,
        after.ease_factor,
        before.interval_days,
        after.interval_days,
        before.repetitions_count,
        after.repetitions_count,
        before.lapses_count,
        after.lapses_count,
        to_db_timestamp(before.due_at),
        to_db_timestamp(after.due_at),
        to_db_timestamp(before.last_reviewed_at),
    )


def db_row_to_audit_record(row_dict: Dict[str, Any]) -> ReviewAuditRecord:
    """
    Rebuild a ReviewAuditRecord from a reviews row.

    The post-review state's last_reviewed_at is the review timestamp itself.

    Raises:
        MarshallingError: If the row cannot be validated.
    """
    reviewed_at = from_db_timestamp(row_dict.get("reviewed_at"))
    try:
        return ReviewAuditRecord(
            review_uuid=row_dict["review_uuid"],
            card_uuid=row_dict["card_uuid"],
            user_id=row_dict["user_id"],
            outcome=ReviewOutcome(
                rating=row_dict["rating"],
                reviewed_at=reviewed_at,
                duration_ms=row_dict.get("duration_ms"),
            ),
            before=LearningState(
                repetitions_count=row_dict["pre_repetitions_count"],
                lapses_count=row_dict["pre_lapses_count"],
                ease_factor=_to_float(row_dict["pre_ease_factor"]),
                interval_days=row_dict["pre_interval_days"],
                due_at=from_db_timestamp(row_dict.get("pre_due_at")),
                last_reviewed_at=from_db_timestamp(
                    row_dict.get("pre_last_reviewed_at")
                ),
            ),
            after=LearningState(
                repetitions_count=row_dict["post_repetitions_count"],
                lapses_count=row_dict["post_lapses_count"],
                ease_factor=_to_float(row_dict["post_ease_factor"]),
                interval_days=row_dict["post_interval_days"],
                due_at=from_db_timestamp(row_dict.get("post_due_at")),
                last_reviewed_at=reviewed_at,
            ),
        )
    except (KeyError, ValidationError) as e:
        raise MarshallingError(
            f"Failed to parse review from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e
