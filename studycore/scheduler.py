# studycore/scheduler.py

"""
Defines the BaseScheduler abstract class and the SM2Scheduler for studycore,
plus the due-ness and study-queue ordering helpers.
"""

import logging
from abc import ABC, abstractmethod
import datetime
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, Field

from .constants import (
    EASE_PRECISION,
    FIRST_INTERVAL_DAYS,
    LAPSE_INTERVAL_DAYS,
    MAXIMUM_INTERVAL_DAYS,
    MAX_RATING,
    MIN_RATING,
    MINIMUM_EASE_FACTOR,
    PASSING_RATING,
    SECOND_INTERVAL_DAYS,
)
from .exceptions import InvalidArgumentError
from .models import LearningState, ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerOutput:
    before: LearningState
    after: LearningState
    rating: int
    reviewed_at: datetime.datetime

    @property
    def is_lapse(self) -> bool:
        return self.rating < PASSING_RATING


class BaseScheduler(ABC):
    """
    Abstract base class for all schedulers in studycore.
    """

    @abstractmethod
    def compute_next_state(
        self,
        state: LearningState,
        rating: int,
        reviewed_at: Optional[datetime.datetime] = None,
    ) -> SchedulerOutput:
        """
        Computes the next learning state of a card from its current state
        and a new rating.

        Args:
            state: The card's current LearningState.
            rating: The rating given for the current review (0-3).
            reviewed_at: Timestamp of the review; defaults to now (UTC).

        Returns:
            A SchedulerOutput holding the before and after snapshots.

        Raises:
            InvalidArgumentError: If the rating is invalid.
        """
        pass

    def transition(
        self,
        state: LearningState,
        rating: int,
        reviewed_at: Optional[datetime.datetime] = None,
    ) -> LearningState:
        """Return only the post-review LearningState."""
        return self.compute_next_state(state, rating, reviewed_at).after


class SM2SchedulerConfig(BaseModel):
    """Configuration for the SM-2 Scheduler."""

    minimum_ease_factor: float = Field(default=MINIMUM_EASE_FACTOR, gt=0)
    first_interval_days: int = Field(default=FIRST_INTERVAL_DAYS, ge=1)
    second_interval_days: int = Field(default=SECOND_INTERVAL_DAYS, ge=1)
    lapse_interval_days: int = Field(default=LAPSE_INTERVAL_DAYS, ge=1)
    maximum_interval_days: int = Field(default=MAXIMUM_INTERVAL_DAYS, ge=1)
    ease_precision: int = Field(default=EASE_PRECISION, ge=0)


class SM2Scheduler(BaseScheduler):
    """
    SM-2 variant used by studycore.

    A lapse (rating < 2) resets the repetition streak and the interval but
    leaves the ease factor untouched. A success grows the interval
    1 -> 6 -> round(interval * ease), capped at maximum_interval_days, and
    adjusts the ease factor by the classic SM-2 formula, floored at 1.3. Ease
    arithmetic runs on Decimal so results are exact to the configured
    precision.
    """

    def __init__(self, config: Optional[SM2SchedulerConfig] = None):
        if config is None:
            config = SM2SchedulerConfig()
        self.config = config
        self._ease_quantum = Decimal(1).scaleb(-self.config.ease_precision)
        self._ease_floor = Decimal(str(self.config.minimum_ease_factor))

    @staticmethod
    def validate_rating(rating: Any) -> int:
        """Rejects anything that is not an integer rating in [0, 3]."""
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InvalidArgumentError(
                f"Invalid rating: {rating!r}. Must be an integer between "
                f"{MIN_RATING} and {MAX_RATING}."
            )
        if not (MIN_RATING <= rating <= MAX_RATING):
            raise InvalidArgumentError(
                f"Invalid rating: {rating}. Must be an integer between "
                f"{MIN_RATING} and {MAX_RATING}."
            )
        return int(rating)

    def _next_ease(self, ease: Decimal, rating: int) -> Decimal:
        miss = Decimal(MAX_RATING - rating)
        ease += Decimal("0.1") - miss * (Decimal("0.08") + miss * Decimal("0.02"))
        return max(ease, self._ease_floor)

    def _next_interval(
        self, repetitions_count: int, interval_days: int, ease: Decimal
    ) -> int:
        if repetitions_count == 1:
            return self.config.first_interval_days
        if repetitions_count == 2:
            return self.config.second_interval_days
        grown = (Decimal(interval_days) * ease).quantize(
            Decimal(1), rounding=ROUND_HALF_UP
        )
        return min(int(grown), self.config.maximum_interval_days)

    def compute_next_state(
        self,
        state: LearningState,
        rating: int,
        reviewed_at: Optional[datetime.datetime] = None,
    ) -> SchedulerOutput:
        rating = self.validate_rating(rating)
        ts = ensure_utc(reviewed_at or datetime.datetime.now(datetime.timezone.utc))

        ease = Decimal(str(state.ease_factor))
        repetitions_count = state.repetitions_count
        lapses_count = state.lapses_count

        if rating < PASSING_RATING:
            repetitions_count = 0
            interval_days = self.config.lapse_interval_days
            lapses_count += 1
        else:
            repetitions_count += 1
            # The interval grows by the ease factor in effect before this review.
            interval_days = self._next_interval(
                repetitions_count, state.interval_days, ease
            )
            ease = self._next_ease(ease, rating)

        ease = ease.quantize(self._ease_quantum, rounding=ROUND_HALF_UP)

        after = LearningState(
            repetitions_count=repetitions_count,
            lapses_count=lapses_count,
            ease_factor=float(ease),
            interval_days=interval_days,
            due_at=ts + datetime.timedelta(days=interval_days),
            last_reviewed_at=ts,
        )
        logger.debug(
            f"SM-2 transition rating={rating}: reps {state.repetitions_count}->"
            f"{after.repetitions_count}, interval {state.interval_days}->"
            f"{after.interval_days}, ease {state.ease_factor}->{after.ease_factor}"
        )
        return SchedulerOutput(
            before=state, after=after, rating=rating, reviewed_at=ts
        )


_default_scheduler = SM2Scheduler()


def transition(
    state: LearningState,
    rating: int,
    reviewed_at: Optional[datetime.datetime] = None,
) -> LearningState:
    """Apply one review to a learning state with the default SM-2 settings."""
    return _default_scheduler.transition(state, rating, reviewed_at)


def card_field(item: Any, name: str) -> Any:
    """Read a field from a model or a plain mapping."""
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name)


def is_due(item: Any, now: Optional[datetime.datetime] = None) -> bool:
    """
    Whether a card (or LearningState, or mapping with `due_at`) is due.

    A card that was never scheduled is always due.
    """
    due_at = card_field(item, "due_at")
    if due_at is None:
        return True
    now = ensure_utc(now or datetime.datetime.now(datetime.timezone.utc))
    return now >= ensure_utc(due_at)


def _priority_key(item: Any):
    due_at = card_field(item, "due_at")
    interval_days = card_field(item, "interval_days") or 0
    if due_at is None:
        return (0, 0.0, interval_days)
    return (1, ensure_utc(due_at).timestamp(), interval_days)


def order_by_priority(cards: Iterable[Any]) -> List[Any]:
    """
    Order cards for a study queue: never-scheduled cards first, then by
    earliest due_at, then by shortest interval. The sort is stable and the
    input is left untouched.
    """
    return sorted(cards, key=_priority_key)
