from typing import Optional


class InvalidArgumentError(ValueError):
    """Raised when a caller passes an argument outside its accepted domain,
    such as a review rating outside 0-3."""

    pass


class DatabaseError(Exception):
    """Base exception for database-related errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class DatabaseConnectionError(DatabaseError):
    """Raised for errors connecting to the database."""

    pass


class SchemaInitializationError(DatabaseError):
    """Raised for errors during schema setup."""

    pass


class CardOperationError(DatabaseError):
    """Raised for errors during card operations (CRUD)."""

    pass


class CardNotFoundError(CardOperationError):
    """Raised when a specified card is not found."""

    pass


class DeckOperationError(DatabaseError):
    """Raised for errors during deck operations."""

    pass


class DeckNotFoundError(DeckOperationError):
    """Raised when a specified deck is not found."""

    pass


class ReviewOperationError(DatabaseError):
    """Indicates an error during a review-related database operation."""

    pass


class ConcurrentReviewError(ReviewOperationError):
    """Raised when a card's stored learning state no longer matches the
    state a review was computed from."""

    pass


class MarshallingError(DatabaseError):
    """Indicates an error during data conversion between application models
    and DB format."""

    pass
