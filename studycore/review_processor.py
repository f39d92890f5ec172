"""
Review submission logic for studycore.

The ReviewProcessor runs the full submission of one review:
1. Timestamp handling
2. Scheduler computation (pure SM-2 transition)
3. Audit record creation
4. Atomic persistence of the audit record and the new card state
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from .constants import UI_RATING_RANGE
from .db.database import StudyDatabase
from .exceptions import CardNotFoundError, CardOperationError, InvalidArgumentError
from .models import Card, ReviewAuditRecord, ReviewOutcome
from .scheduler import BaseScheduler, SchedulerOutput, SM2Scheduler

# Initialize logger
logger = logging.getLogger(__name__)

# UI rating (0-5) -> scheduler rating (0-3)
_UI_TO_RATING = {0: 0, 1: 0, 2: 1, 3: 2, 4: 3, 5: 3}


def rating_from_ui_scale(value: Any) -> int:
    """
    Map a rating from the 0-5 UI scale onto the scheduler's 0-3 scale.

    0 and 1 map to Blackout, 2 to Incorrect, 3 to Hesitant, 4 and 5 to Perfect.

    Raises:
        InvalidArgumentError: If `value` is not an integer in [0, 5].
    """
    low, high = UI_RATING_RANGE
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(
            f"Invalid UI rating: {value!r}. Must be an integer between {low} and {high}."  # noqa: E501
        )
    if value not in _UI_TO_RATING:
        raise InvalidArgumentError(
            f"Invalid UI rating: {value}. Must be an integer between {low} and {high}."  # noqa: E501
        )
    return _UI_TO_RATING[value]


@dataclass(frozen=True)
class ReviewResult:
    """The persisted card after a review and the audit record written for it."""

    card: Card
    record: ReviewAuditRecord


class ReviewProcessor:
    """
    Processes review submissions: computes the next learning state and
    persists it together with an immutable audit record.
    """

    def __init__(
        self,
        db_manager: StudyDatabase,
        scheduler: Optional[BaseScheduler] = None,
    ):
        """
        Initialize the ReviewProcessor.

        Args:
            db_manager: Database facade used for persistence
            scheduler: Scheduler computing next states (SM-2 by default)
        """
        self.db_manager = db_manager
        self.scheduler = scheduler or SM2Scheduler()

    def process_review(
        self,
        card: Card,
        rating: int,
        duration_ms: Optional[int] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> ReviewResult:
        """
        Process a review submission.

        Args:
            card: The card being reviewed, as last read from the database
            rating: Rating on the 0-3 scale (Blackout, Incorrect, Hesitant, Perfect)
            duration_ms: Time spent on the card in milliseconds (informational)
            reviewed_at: Review timestamp (defaults to current time)

        Returns:
            ReviewResult with the updated card and the audit record.

        Raises:
            InvalidArgumentError: If the rating is invalid
            CardOperationError: If the card is archived or the update fails
            ConcurrentReviewError: If the card was reviewed since it was read
        """
        ts = reviewed_at or datetime.now(timezone.utc)

        logger.debug(
            f"Processing review for card {card.uuid} with rating {rating}"
        )

        if card.is_archived:
            raise CardOperationError(
                f"Card {card.uuid} is archived and cannot be reviewed."
            )

        try:
            scheduler_output: SchedulerOutput = (
                self.scheduler.compute_next_state(
                    card.learning_state, rating, reviewed_at=ts
                )
            )

            record = ReviewAuditRecord(
                card_uuid=card.uuid,
                user_id=card.user_id,
                outcome=ReviewOutcome(
                    rating=scheduler_output.rating,
                    reviewed_at=scheduler_output.reviewed_at,
                    duration_ms=duration_ms,
                ),
                before=scheduler_output.before,
                after=scheduler_output.after,
            )

            updated_card = self.db_manager.add_review_and_update_card(record)

            logger.debug(
                f"Review processed successfully for card {card.uuid}. "
                f"Next due: {updated_card.due_at}, interval: {updated_card.interval_days}d"  # noqa: E501
            )
            return ReviewResult(card=updated_card, record=record)

        except InvalidArgumentError:
            raise
        except Exception:
            logger.exception(f"Failed to process review for card {card.uuid}")
            raise

    def process_review_by_uuid(
        self,
        card_uuid: UUID,
        rating: int,
        duration_ms: Optional[int] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> ReviewResult:
        """
        Fetch a card by UUID and process a review for it.

        Raises:
            CardNotFoundError: If no card has the given UUID
        """
        card = self.db_manager.get_card_by_uuid(card_uuid)
        if not card:
            raise CardNotFoundError(f"Card {card_uuid} not found in database")

        return self.process_review(
            card=card,
            rating=rating,
            duration_ms=duration_ms,
            reviewed_at=reviewed_at,
        )
