"""
DuckDB database interactions for studycore.
Implements the StudyDatabase facade over decks, cards and the review audit log.
"""

import duckdb
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from datetime import datetime, timezone
import logging

from ..exceptions import (
    CardNotFoundError,
    CardOperationError,
    ConcurrentReviewError,
    DatabaseConnectionError,
    DatabaseError,
    DeckNotFoundError,
    DeckOperationError,
    MarshallingError,
    ReviewOperationError,
)
from ..models import Card, Deck, ReviewAuditRecord
from . import db_utils
from .connection import ConnectionHandler
from .schema_manager import SchemaManager

# --- Logging Setup ---
logger = logging.getLogger(__name__)

# --- Helper Functions ---


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows:
        return []
    description = cursor.description
    if description is None:
        return []
    columns = [desc[0] for desc in description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class StudyDatabase:
    """
    Acts as a Facade for the database subsystem, providing a simple, high-level
    interface for deck, card and review persistence.

    It coordinates the ConnectionHandler, SchemaManager, and data marshalling
    utilities. Intended for use as a context manager.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Create a StudyDatabase backed by the given DuckDB path.

        Args:
            db_path (str | Path): Path to the database file. Use ':memory:' for an in-memory database.
            read_only (bool): If True, open the database in read-only mode.
        """
        self._handler = ConnectionHandler(db_path=db_path, read_only=read_only)
        self._schema_manager = SchemaManager(self._handler)
        logger.info(
            f"StudyDatabase initialized for DB at: {self._handler.db_path_resolved}"  # noqa: E501
        )

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    @property
    def read_only(self) -> bool:
        return self._handler.read_only

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self._handler.get_connection()

    def close_connection(self) -> None:
        self._handler.close_connection()

    def __enter__(self) -> "StudyDatabase":
        """
        Open the database connection and initialize the schema if a new writable database was created.
        """
        self.get_connection()
        if self._handler.is_new_db and not self._handler.read_only:
            self.initialize_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Ensures the connection is closed on exiting the context."""
        self.close_connection()

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Ensure the database schema is created; optionally recreate tables.

        Parameters:
            force_recreate_tables (bool): If True, existing tables will be dropped and recreated.
        """
        self._schema_manager.initialize_schema(
            force_recreate_tables=force_recreate_tables
        )

    def _require_writable(self, operation: str) -> None:
        if self.read_only:
            raise DatabaseConnectionError(
                f"Cannot {operation} in read-only mode."
            )

    # --- Deck Operations ---

    _INSERT_DECK_SQL = """
        INSERT INTO decks (uuid, user_id, name, slug, language_code, is_archived,
                           created_at, updated_at)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8);
        """

    def create_deck(self, deck: Deck) -> Deck:
        """
        Insert a new deck.

        Raises:
            DeckOperationError: If a deck with the same slug already exists for the user, or the insert fails.  # noqa: E501
        """
        self._require_writable("create decks")
        params = db_utils.deck_to_db_params_tuple(deck)
        try:
            with self._handler.transaction() as cursor:
                cursor.execute(self._INSERT_DECK_SQL, params)
        except duckdb.ConstraintException as e:
            logger.error(f"Deck '{deck.slug}' already exists: {e}")
            raise DeckOperationError(
                f"A deck with slug '{deck.slug}' already exists.",
                original_exception=e,
            ) from e
        except duckdb.Error as e:
            logger.error(f"Error creating deck '{deck.name}': {e}")
            raise DeckOperationError(
                f"Failed to create deck: {e}", original_exception=e
            ) from e
        logger.info(f"Created deck '{deck.name}' ({deck.uuid}).")
        return deck

    def get_deck(self, deck_uuid: uuid.UUID) -> Optional[Deck]:
        """
        Fetch a deck by UUID, or None when it does not exist.

        Raises:
            DeckOperationError: If the query fails or the row cannot be parsed.
        """
        conn = self.get_connection()
        try:
            cursor = conn.execute("SELECT * FROM decks WHERE uuid = $1;", (deck_uuid,))
            rows = _rows_to_dicts(cursor)
            return db_utils.db_row_to_deck(rows[0]) if rows else None
        except (duckdb.Error, MarshallingError) as e:
            logger.error(f"Error fetching deck {deck_uuid}: {e}")
            raise DeckOperationError(
                f"Failed to fetch deck {deck_uuid}: {e}", original_exception=e
            ) from e

    def get_decks(
        self, user_id: uuid.UUID, include_archived: bool = False
    ) -> List[Deck]:
        """
        Return the user's decks ordered by name.

        Raises:
            DeckOperationError: If the query fails or a row cannot be parsed.
        """
        conn = self.get_connection()
        sql = "SELECT * FROM decks WHERE user_id = $1"
        if not include_archived:
            sql += " AND NOT is_archived"
        sql += " ORDER BY name, created_at;"
        try:
            cursor = conn.execute(sql, (user_id,))
            return [db_utils.db_row_to_deck(row) for row in _rows_to_dicts(cursor)]
        except (duckdb.Error, MarshallingError) as e:
            logger.error(f"Error fetching decks for user {user_id}: {e}")
            raise DeckOperationError(
                f"Failed to fetch decks: {e}", original_exception=e
            ) from e

    def set_deck_archived(self, deck_uuid: uuid.UUID, archived: bool) -> Deck:
        """
        Archive or restore a deck. Its cards are left untouched.

        Raises:
            DeckNotFoundError: If the deck does not exist.
            DeckOperationError: If the update fails.
        """
        self._require_writable("archive decks")
        sql = """
        UPDATE decks SET is_archived = $1, updated_at = $2
        WHERE uuid = $3
        RETURNING *;
        """
        updated_at = db_utils.to_db_timestamp(datetime.now(timezone.utc))
        try:
            with self._handler.transaction() as cursor:
                rows = _rows_to_dicts(
                    cursor.execute(sql, (archived, updated_at, deck_uuid))
                )
        except duckdb.Error as e:
            logger.error(f"Error updating archive flag of deck {deck_uuid}: {e}")
            raise DeckOperationError(
                f"Failed to update deck {deck_uuid}: {e}", original_exception=e
            ) from e
        if not rows:
            raise DeckNotFoundError(f"Deck {deck_uuid} not found.")
        logger.info(f"Deck {deck_uuid} archived={archived}.")
        return db_utils.db_row_to_deck(rows[0])

    # --- Card Operations ---
    _UPSERT_CARDS_SQL = """
        INSERT INTO cards (uuid, user_id, deck_uuid, front, back, source, is_archived,
                           language_code, created_at, updated_at, due_at, last_reviewed_at,
                           repetitions_count, lapses_count, ease_factor, interval_days)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16)
        ON CONFLICT (uuid) DO UPDATE SET
            -- Content fields only. Learning state changes go through reviews and
            -- indexed columns (deck_uuid, user_id) cannot be assigned here.
            front = EXCLUDED.front,
            back = EXCLUDED.back,
            source = EXCLUDED.source,
            is_archived = EXCLUDED.is_archived,
            language_code = EXCLUDED.language_code,
            updated_at = EXCLUDED.updated_at;
        """

    def upsert_cards_batch(self, cards: Sequence[Card]) -> int:
        """
        Upserts a sequence of cards in a single transactional batch.

        Existing cards keep their learning state; only content fields are updated.

        Returns:
            int: Number of cards processed.

        Raises:
            CardOperationError: If the database operation cannot be completed.
        """
        if not cards:
            return 0
        self._require_writable("upsert cards")

        card_params_list = db_utils.card_to_db_params_list(cards)
        try:
            with self._handler.transaction() as cursor:
                cursor.executemany(self._UPSERT_CARDS_SQL, card_params_list)
        except duckdb.Error as e:
            logger.error(f"Error during batch card upsert: {e}")
            raise CardOperationError(
                f"Batch card upsert failed: {e}", original_exception=e
            ) from e
        logger.info(f"Successfully upserted {len(card_params_list)} cards.")
        return len(card_params_list)

    def _fetch_cards(self, sql: str, params: Sequence[Any]) -> List[Card]:
        conn = self.get_connection()
        try:
            cursor = conn.execute(sql, params)
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error fetching cards: {e}")
            raise CardOperationError(
                f"Failed to fetch cards: {e}", original_exception=e
            ) from e
        try:
            return [db_utils.db_row_to_card(row) for row in rows]
        except MarshallingError as e:
            raise CardOperationError(
                "Failed to parse cards from database.", original_exception=e
            ) from e

    def get_card_by_uuid(self, card_uuid: uuid.UUID) -> Optional[Card]:
        """
        Fetches a card by its UUID.

        Returns:
            Card | None: The card, or `None` if no matching card exists.

        Raises:
            CardOperationError: If a database error occurs or the row cannot be parsed into a Card.  # noqa: E501
        """
        cards = self._fetch_cards("SELECT * FROM cards WHERE uuid = $1;", (card_uuid,))
        return cards[0] if cards else None

    def get_cards(
        self,
        user_id: uuid.UUID,
        deck_uuid: Optional[uuid.UUID] = None,
        include_archived: bool = True,
    ) -> List[Card]:
        """
        Retrieve a user's cards, optionally limited to one deck.

        Returns:
            List[Card]: Cards ordered by creation time.
        """
        sql = "SELECT * FROM cards WHERE user_id = $1"
        params: List[Any] = [user_id]
        if deck_uuid is not None:
            params.append(deck_uuid)
            sql += f" AND deck_uuid = ${len(params)}"
        if not include_archived:
            sql += " AND NOT is_archived"
        sql += " ORDER BY created_at, uuid;"
        return self._fetch_cards(sql, params)

    def get_due_cards(
        self,
        user_id: uuid.UUID,
        now: datetime,
        deck_uuid: Optional[uuid.UUID] = None,
    ) -> List[Card]:
        """
        Retrieve the user's non-archived cards that are due at `now`.

        A card is due if it was never scheduled (`due_at` is NULL) or its
        `due_at` is at or before `now`. No ordering beyond a stable base
        order is applied; queue priority is the scheduler's concern.
        """
        sql = """
        SELECT * FROM cards
        WHERE user_id = $1 AND NOT is_archived
          AND (due_at IS NULL OR due_at <= $2)
        """
        params: List[Any] = [user_id, db_utils.to_db_timestamp(now)]
        if deck_uuid is not None:
            params.append(deck_uuid)
            sql += f" AND deck_uuid = ${len(params)}"
        sql += " ORDER BY created_at, uuid;"
        return self._fetch_cards(sql, params)

    def set_card_archived(self, card_uuid: uuid.UUID, archived: bool) -> Card:
        """
        Archive or restore a card. Learning state is left untouched.

        Raises:
            CardNotFoundError: If the card does not exist.
            CardOperationError: If the update fails.
        """
        self._require_writable("archive cards")
        sql = """
        UPDATE cards SET is_archived = $1, updated_at = $2
        WHERE uuid = $3
        RETURNING *;
        """
        updated_at = db_utils.to_db_timestamp(datetime.now(timezone.utc))
        try:
            with self._handler.transaction() as cursor:
                rows = _rows_to_dicts(
                    cursor.execute(sql, (archived, updated_at, card_uuid))
                )
        except duckdb.Error as e:
            logger.error(f"Error updating archive flag of card {card_uuid}: {e}")
            raise CardOperationError(
                f"Failed to update card {card_uuid}: {e}", original_exception=e
            ) from e
        if not rows:
            raise CardNotFoundError(f"Card {card_uuid} not found.")
        logger.info(f"Card {card_uuid} archived={archived}.")
        return db_utils.db_row_to_card(rows[0])

    # --- Review Operations ---

    _INSERT_REVIEW_SQL = """
        INSERT INTO reviews (review_uuid, user_id, card_uuid, reviewed_at, rating, duration_ms,
                             pre_ease_factor, post_ease_factor, pre_interval_days, post_interval_days,
                             pre_repetitions_count, post_repetitions_count,
                             pre_lapses_count, post_lapses_count,
                             pre_due_at, post_due_at, pre_last_reviewed_at)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17);
        """  # noqa: E501

    # The WHERE clause pins the stored state to the review's "before"
    # snapshot, so a concurrent review of the same card updates nothing.
    _APPLY_REVIEW_SQL = """
        UPDATE cards
        SET repetitions_count = $1, lapses_count = $2, ease_factor = $3,
            interval_days = $4, due_at = $5, last_reviewed_at = $6, updated_at = $7
        WHERE uuid = $8
          AND repetitions_count = $9
          AND lapses_count = $10
          AND ease_factor = CAST($11 AS DECIMAL(4, 2))
          AND interval_days = $12
          AND last_reviewed_at IS NOT DISTINCT FROM CAST($13 AS TIMESTAMP)
        RETURNING *;
        """

    def _apply_review_params(self, record: ReviewAuditRecord) -> Tuple:
        before, after = record.before, record.after
        reviewed_at = db_utils.to_db_timestamp(record.outcome.reviewed_at)
        return (
            after.repetitions_count,
            after.lapses_count,
            after.ease_factor,
            after.interval_days,
            db_utils.to_db_timestamp(after.due_at),
            db_utils.to_db_timestamp(after.last_reviewed_at),
            reviewed_at,
            record.card_uuid,
            before.repetitions_count,
            before.lapses_count,
            before.ease_factor,
            before.interval_days,
            db_utils.to_db_timestamp(before.last_reviewed_at),
        )

    def add_review_and_update_card(self, record: ReviewAuditRecord) -> Card:
        """
        Append a review audit record and apply its post-review state to the card, atomically.  # noqa: E501

        The card is only updated when its stored learning state still equals
        `record.before`; otherwise nothing is written.

        Returns:
            Card: The card record after applying the review.

        Raises:
            DatabaseConnectionError: If the database is opened in read-only mode.
            CardNotFoundError: If the card does not exist.
            ConcurrentReviewError: If the card changed since `record.before` was read.  # noqa: E501
            ReviewOperationError: If the transaction fails for any other reason.
        """
        self._require_writable("add reviews")
        try:
            with self._handler.transaction() as cursor:
                cursor.execute(
                    self._INSERT_REVIEW_SQL,
                    db_utils.audit_record_to_db_params_tuple(record),
                )
                rows = _rows_to_dicts(
                    cursor.execute(
                        self._APPLY_REVIEW_SQL, self._apply_review_params(record)
                    )
                )
                if not rows:
                    exists = cursor.execute(
                        "SELECT 1 FROM cards WHERE uuid = $1;", (record.card_uuid,)
                    ).fetchone()
                    if exists is None:
                        raise CardNotFoundError(
                            f"Card {record.card_uuid} not found."
                        )
                    raise ConcurrentReviewError(
                        f"Card {record.card_uuid} was modified by another review; "  # noqa: E501
                        "reload it and retry."
                    )
        except DatabaseError:
            raise
        except duckdb.Error as e:
            logger.error(
                f"Error during review and card update transaction: {e}"
            )
            raise ReviewOperationError(
                f"Failed to add review and update card: {e}",
                original_exception=e,
            ) from e

        try:
            return db_utils.db_row_to_card(rows[0])
        except MarshallingError as e:
            raise ReviewOperationError(
                f"Failed to parse card '{record.card_uuid}' after review update.",  # noqa: E501
                original_exception=e,
            ) from e

    def get_reviews_for_card(
        self, card_uuid: uuid.UUID, order_by_ts_desc: bool = True
    ) -> List[ReviewAuditRecord]:
        """
        Retrieve the audit records of a card ordered by review timestamp.

        Raises:
            ReviewOperationError: If database access fails or rows cannot be parsed.
        """
        conn = self.get_connection()
        order_clause = (
            "ORDER BY reviewed_at DESC, review_uuid DESC"
            if order_by_ts_desc
            else "ORDER BY reviewed_at ASC, review_uuid ASC"
        )
        sql = f"SELECT * FROM reviews WHERE card_uuid = $1 {order_clause};"
        try:
            cursor = conn.execute(sql, (card_uuid,))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error fetching reviews for card UUID {card_uuid}: {e}")
            raise ReviewOperationError(
                f"Failed to get reviews for card {card_uuid}: {e}",
                original_exception=e,
            ) from e
        try:
            return [db_utils.db_row_to_audit_record(row) for row in rows]
        except MarshallingError as e:
            raise ReviewOperationError(
                f"Failed to parse reviews for card {card_uuid} from database.",
                original_exception=e,
            ) from e

    def get_review_summary(
        self, user_id: uuid.UUID
    ) -> Tuple[int, Optional[datetime]]:
        """
        Return the user's total review count and latest review timestamp.

        Raises:
            ReviewOperationError: If the query fails.
        """
        conn = self.get_connection()
        sql = "SELECT COUNT(*), MAX(reviewed_at) FROM reviews WHERE user_id = $1;"
        try:
            result = conn.execute(sql, (user_id,)).fetchone()
        except duckdb.Error as e:
            logger.error(f"Error summarizing reviews for user {user_id}: {e}")
            raise ReviewOperationError(
                f"Failed to summarize reviews: {e}", original_exception=e
            ) from e
        if not result:
            return 0, None
        return result[0] or 0, db_utils.from_db_timestamp(result[1])
