"""
Study queue and statistics services built on the scheduler helpers.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from .constants import DEFAULT_QUEUE_LIMIT
from .db.database import StudyDatabase
from .exceptions import InvalidArgumentError
from .models import Card, StudyStatistics, StudyStats, ensure_utc
from .scheduler import order_by_priority
from .stats import compute_stats

logger = logging.getLogger(__name__)


class StudyService:
    """Read-side operations for a study session: what to study next and how far along a user is."""  # noqa: E501

    def __init__(self, db_manager: StudyDatabase):
        self.db_manager = db_manager

    def get_study_queue(
        self,
        user_id: UUID,
        deck_uuid: Optional[UUID] = None,
        limit: int = DEFAULT_QUEUE_LIMIT,
        now: Optional[datetime] = None,
    ) -> List[Card]:
        """
        Build the user's study queue.

        Loads the non-archived cards that are due at `now` (never-scheduled
        cards included), orders them by priority and keeps the first `limit`.

        Raises:
            InvalidArgumentError: If `limit` is smaller than 1.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidArgumentError(
                f"Invalid queue limit: {limit!r}. Must be a positive integer."
            )
        now = ensure_utc(now or datetime.now(timezone.utc))

        due_cards = self.db_manager.get_due_cards(
            user_id, now, deck_uuid=deck_uuid
        )
        queue = order_by_priority(due_cards)[:limit]
        logger.debug(
            f"Study queue for user {user_id}: {len(queue)} of {len(due_cards)} due cards."  # noqa: E501
        )
        return queue

    def get_card_stats(
        self,
        user_id: UUID,
        deck_uuid: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> StudyStats:
        """Bucket counts over all of the user's cards (archived cards are ignored by compute_stats)."""  # noqa: E501
        cards = self.db_manager.get_cards(
            user_id, deck_uuid=deck_uuid, include_archived=True
        )
        return compute_stats(cards, now=now)

    def get_study_statistics(
        self, user_id: UUID, now: Optional[datetime] = None
    ) -> StudyStatistics:
        """
        Summarize a user's study progress.

        Returns:
            StudyStatistics: total and archived card counts, cards due now,
            review count, last review timestamp and the bucket breakdown.
        """
        now = ensure_utc(now or datetime.now(timezone.utc))
        cards = self.db_manager.get_cards(user_id, include_archived=True)
        reviews_total, last_reviewed_at = self.db_manager.get_review_summary(
            user_id
        )
        breakdown = compute_stats(cards, now=now)
        return StudyStatistics(
            cards_total=len(cards),
            cards_archived=sum(1 for card in cards if card.is_archived),
            cards_due=breakdown.new + breakdown.due,
            reviews_total=reviews_total,
            last_reviewed_at=last_reviewed_at,
            breakdown=breakdown,
        )
