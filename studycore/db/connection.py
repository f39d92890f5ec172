import duckdb
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from ..exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)


class ConnectionHandler:
    """Manages the lifecycle of a DuckDB database connection."""

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Initialize the ConnectionHandler with a database path and optional read-only mode.

        Parameters:
            db_path (Union[str, Path]): Path to the DuckDB database file or the string ":memory:" (case-insensitive) for an in-memory database. File paths are resolved to an absolute Path.
            read_only (bool): Whether the connection should be opened in read-only mode.
        """
        if isinstance(db_path, str) and db_path.lower() == ":memory:":
            self.db_path_resolved = Path(":memory:")
            logger.info("Using in-memory DuckDB database.")
        else:
            self.db_path_resolved = Path(db_path).resolve()
            logger.info(
                f"ConnectionHandler initialized for DB at: {self.db_path_resolved}"  # noqa: E501
            )

        self.read_only: bool = read_only
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self.is_new_db: bool = False

    @property
    def is_in_memory(self) -> bool:
        return str(self.db_path_resolved) == ":memory:"

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Provide an active DuckDB connection, creating one if none exists.

        Sets `is_new_db` when the database is in-memory or the file does not
        exist yet, and creates the parent directory of file databases.

        Raises:
            DatabaseConnectionError: If DuckDB fails to establish the connection.
        """
        if self._connection is None:
            try:
                if self.is_in_memory:
                    self.is_new_db = True
                else:
                    self.is_new_db = not self.db_path_resolved.exists()
                    self.db_path_resolved.parent.mkdir(
                        parents=True, exist_ok=True
                    )

                self._connection = duckdb.connect(
                    database=str(self.db_path_resolved),
                    read_only=self.read_only,
                )
                logger.info("Successfully connected to the database.")
            except duckdb.Error as e:
                raise DatabaseConnectionError(
                    f"Failed to connect to database: {e}", original_exception=e
                ) from e
        return self._connection

    def close_connection(self) -> None:
        """Closes the connection if it exists and sets it to None, allowing
        for reconnection."""
        if self._connection:
            try:
                self._connection.close()
                logger.info(
                    f"Database connection to {self.db_path_resolved} closed."
                )
            except duckdb.Error as e:
                logger.error(f"Error closing the database connection: {e}")
            finally:
                self._connection = None

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Run a block inside a single transaction on a fresh cursor.

        Commits when the block completes and rolls back when it raises; a
        failed rollback is logged and the original exception propagates.
        """
        with self.get_connection().cursor() as cursor:
            cursor.begin()
            try:
                yield cursor
            except BaseException:
                try:
                    cursor.rollback()
                    logger.info("Transaction rolled back.")
                except duckdb.Error as rb_err:
                    logger.error(f"Failed to rollback transaction: {rb_err}")
                raise
            cursor.commit()

    def __enter__(self) -> duckdb.DuckDBPyConnection:
        return self.get_connection()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_connection()
