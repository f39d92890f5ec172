"""
Pydantic models shared by the scheduler, the persistence layer and the CLI.
"""

from __future__ import annotations

import re
import uuid
from enum import Enum, IntEnum
from uuid import UUID
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .constants import DEFAULT_EASE_FACTOR

# Regex for Kebab-case validation (e.g., "spanish-verbs", "chapter-3")
KEBAB_CASE_REGEX_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


def ensure_utc(ts: datetime) -> datetime:
    """Ensures the given datetime is UTC. Assumes UTC if naive."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        return ts.replace(tzinfo=timezone.utc)
    if ts.tzinfo != timezone.utc:
        return ts.astimezone(timezone.utc)
    return ts


def _utc_or_none(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value is not None else None


def slugify(name: str) -> str:
    """Derive a kebab-case slug from a deck name."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "deck"


class Rating(IntEnum):
    """
    Represents the user's rating of their recall performance.
    """

    Blackout = 0
    Incorrect = 1
    Hesitant = 2
    Perfect = 3


class CardSource(str, Enum):
    """Where a card's content came from."""

    MANUAL = "manual"
    AI = "ai"


class LearningState(BaseModel):
    """
    Scheduling state of a single card. Produced only by the scheduler's
    transition; the default instance is the state of a never-reviewed card.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    repetitions_count: int = Field(
        default=0,
        ge=0,
        description="Consecutive successful recalls since the last lapse.",
    )
    lapses_count: int = Field(
        default=0,
        ge=0,
        description="Lifetime count of failed recalls (never decreases).",
    )
    ease_factor: float = Field(
        default=DEFAULT_EASE_FACTOR,
        gt=0,
        description="Interval growth multiplier; floor 1.3 after a review.",
    )
    interval_days: int = Field(
        default=0,
        ge=0,
        description="Days until the next review, as of the last transition.",
    )
    due_at: Optional[datetime] = Field(
        default=None,
        description="UTC instant the card becomes due (None = never scheduled).",
    )
    last_reviewed_at: Optional[datetime] = Field(
        default=None,
        description="UTC timestamp of the review that produced this state.",
    )

    @field_validator("due_at", "last_reviewed_at")
    @classmethod
    def normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc_or_none(value)


class ReviewOutcome(BaseModel):
    """
    The input of a single review. Not persisted as state, but recorded in
    the review audit log.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rating: int = Field(
        ...,
        ge=0,
        le=3,
        description="0=Blackout, 1=Incorrect, 2=Hesitant, 3=Perfect.",
    )
    reviewed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="The UTC timestamp when the review occurred.",
    )
    duration_ms: Optional[int] = Field(
        default=None,
        ge=0,
        description="Time spent on the card in ms (informational only).",
    )

    @field_validator("reviewed_at")
    @classmethod
    def normalize_reviewed_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ReviewAuditRecord(BaseModel):
    """
    Immutable history entry capturing the learning state immediately
    before and after a review, plus the review outcome.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    review_uuid: UUID = Field(
        default_factory=uuid.uuid4,
        description="Unique identifier of the review record.",
    )
    card_uuid: UUID = Field(..., description="UUID of the reviewed card.")
    user_id: UUID = Field(..., description="Owner of the reviewed card.")
    outcome: ReviewOutcome
    before: LearningState
    after: LearningState

    @property
    def is_lapse(self) -> bool:
        return self.after.lapses_count > self.before.lapses_count


class Deck(BaseModel):
    """A named collection of cards owned by one user."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    uuid: UUID = Field(default_factory=uuid.uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=200)
    language_code: Optional[str] = None
    is_archived: bool = False
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @model_validator(mode="before")
    @classmethod
    def derive_slug(cls, data: Any) -> Any:
        """Fill in the slug from the name when it was not given."""
        if isinstance(data, dict) and not data.get("slug") and data.get("name"):
            data = {**data, "slug": slugify(str(data["name"]))}
        return data

    @field_validator("slug")
    @classmethod
    def validate_slug_kebab_case(cls, slug: str) -> str:
        if not re.match(KEBAB_CASE_REGEX_PATTERN, slug):
            raise ValueError(f"Slug '{slug}' is not in kebab-case.")
        return slug

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class Card(BaseModel):
    """
    A flashcard with its content and its flattened learning state.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    uuid: UUID = Field(
        default_factory=uuid.uuid4,
        description="Unique UUIDv4 for the card. Auto-generated.",
    )
    user_id: UUID = Field(..., description="Owner of the card.")
    deck_uuid: UUID = Field(..., description="Deck the card belongs to.")
    front: str = Field(..., min_length=1, max_length=2000)
    back: str = Field(..., min_length=1, max_length=2000)
    source: CardSource = CardSource.MANUAL
    is_archived: bool = False
    language_code: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    due_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None
    repetitions_count: int = Field(default=0, ge=0)
    lapses_count: int = Field(default=0, ge=0)
    ease_factor: float = Field(default=DEFAULT_EASE_FACTOR, gt=0)
    interval_days: int = Field(default=0, ge=0)

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("due_at", "last_reviewed_at")
    @classmethod
    def normalize_optional_timestamps(
        cls, value: Optional[datetime]
    ) -> Optional[datetime]:
        return _utc_or_none(value)

    @property
    def learning_state(self) -> LearningState:
        """The card's scheduling fields as a LearningState."""
        return LearningState(
            repetitions_count=self.repetitions_count,
            lapses_count=self.lapses_count,
            ease_factor=self.ease_factor,
            interval_days=self.interval_days,
            due_at=self.due_at,
            last_reviewed_at=self.last_reviewed_at,
        )

    def with_learning_state(self, state: LearningState) -> "Card":
        """Return a copy of this card carrying the given learning state."""
        return self.model_copy(update=state.model_dump())


class StudyStats(BaseModel):
    """Counts of a card collection by study bucket. Archived cards are
    never counted; learning and due may overlap."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    total: int = Field(default=0, ge=0)
    new: int = Field(default=0, ge=0)
    due: int = Field(default=0, ge=0)
    learning: int = Field(default=0, ge=0)
    mastered: int = Field(default=0, ge=0)


class StudyStatistics(BaseModel):
    """Per-user study summary combining card and review counts."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    cards_total: int = Field(default=0, ge=0)
    cards_archived: int = Field(default=0, ge=0)
    cards_due: int = Field(default=0, ge=0)
    reviews_total: int = Field(default=0, ge=0)
    last_reviewed_at: Optional[datetime] = None
    breakdown: StudyStats = Field(default_factory=StudyStats)
