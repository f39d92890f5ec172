import duckdb
import logging

from .connection import ConnectionHandler
from . import schema
from ..exceptions import DatabaseConnectionError, SchemaInitializationError
from .. import config as studycore_config

logger = logging.getLogger(__name__)


class SchemaManager:
    """Manages the database schema initialization and maintenance."""

    def __init__(self, handler: ConnectionHandler):
        self._handler = handler

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Initializes the database schema using a transaction. Skips if in read-only mode
        unless it's an in-memory DB. Can force recreation of tables, which will
        delete all existing data.
        """
        if self._handle_read_only_initialization(force_recreate_tables):
            return

        try:
            with self._handler.transaction() as cursor:
                if force_recreate_tables:
                    self._recreate_tables(cursor)
                cursor.execute(schema.DB_SCHEMA_SQL)
            logger.info(f"Database schema at {self._handler.db_path_resolved} initialized successfully (or already exists).")
        except duckdb.Error as e:
            logger.error(f"Error initializing database schema at {self._handler.db_path_resolved}: {e}")
            raise SchemaInitializationError(f"Failed to initialize schema: {e}", original_exception=e) from e

    def _handle_read_only_initialization(self, force_recreate_tables: bool) -> bool:
        """Returns True if schema initialization should be skipped because the DB is read-only."""
        if self._handler.read_only:
            if force_recreate_tables:
                raise DatabaseConnectionError("Cannot force_recreate_tables in read-only mode.")
            if not self._handler.is_in_memory:
                logger.warning("Attempting to initialize schema in read-only mode. Skipping.")
                return True
        return False

    def _perform_safety_check(self, cursor: duckdb.DuckDBPyConnection) -> None:
        """Refuses to drop tables that still hold cards or reviews."""
        if self._handler.is_in_memory or studycore_config.settings.testing_mode:
            return

        existing = {
            row[0]
            for row in cursor.execute(
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_name IN ('cards', 'reviews');"
            ).fetchall()
        }
        counts = {
            table: cursor.execute(f"SELECT COUNT(*) FROM {table};").fetchone()[0]
            for table in existing
        }
        review_count = counts.get("reviews", 0)
        card_count = counts.get("cards", 0)
        if review_count > 0 or card_count > 0:
            error_msg = f"CRITICAL: Attempted to drop tables with existing data! Reviews: {review_count}, Cards: {card_count}. This would cause permanent data loss."
            logger.error(error_msg)
            raise SchemaInitializationError(error_msg)

    def _recreate_tables(self, cursor: duckdb.DuckDBPyConnection) -> None:
        """Drops all tables to force recreation."""
        self._perform_safety_check(cursor)

        logger.warning(f"Forcing table recreation for {self._handler.db_path_resolved}. ALL EXISTING DATA WILL BE LOST.")
        cursor.execute("DROP TABLE IF EXISTS reviews;")
        cursor.execute("DROP TABLE IF EXISTS cards;")
        cursor.execute("DROP TABLE IF EXISTS decks;")
