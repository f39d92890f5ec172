import uuid
import pytest
from unittest.mock import patch, MagicMock
from datetime import datetime, timezone
import duckdb

from studycore.db import StudyDatabase
from studycore.db import db_utils
from studycore.exceptions import (
    CardOperationError,
    DatabaseConnectionError,
    DatabaseError,
    DeckOperationError,
    MarshallingError,
    ReviewOperationError,
    SchemaInitializationError,
)
from studycore.models import LearningState, ReviewAuditRecord, ReviewOutcome


def _mock_connection(cursor: MagicMock) -> MagicMock:
    mock_connection = MagicMock()
    mock_connection.cursor.return_value.__enter__.return_value = cursor
    return mock_connection


def _record() -> ReviewAuditRecord:
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return ReviewAuditRecord(
        card_uuid=uuid.uuid4(),
        user_id=uuid.uuid4(),
        outcome=ReviewOutcome(rating=3, reviewed_at=ts),
        before=LearningState(),
        after=LearningState(
            repetitions_count=1,
            ease_factor=2.6,
            interval_days=1,
            last_reviewed_at=ts,
            due_at=ts,
        ),
    )


@patch('studycore.db.connection.duckdb.connect')
def test_get_connection_raises_custom_error_on_duckdb_error(mock_connect):
    """get_connection wraps duckdb.Error in DatabaseConnectionError."""
    mock_connect.side_effect = duckdb.Error("Connection failed")
    db = StudyDatabase(db_path=':memory:')

    with pytest.raises(DatabaseConnectionError, match="Failed to connect to database") as excinfo:
        db.get_connection()
    assert isinstance(excinfo.value.original_exception, duckdb.Error)


@patch('studycore.db.connection.duckdb.connect')
def test_initialize_schema_raises_custom_error_on_duckdb_error(mock_duckdb_connect):
    mock_cursor = MagicMock()
    mock_cursor.execute.side_effect = duckdb.Error("Schema creation failed")
    mock_duckdb_connect.return_value = _mock_connection(mock_cursor)

    db = StudyDatabase(db_path=':memory:')

    with pytest.raises(SchemaInitializationError, match="Failed to initialize schema"):
        db.initialize_schema()
    mock_cursor.rollback.assert_called_once()
    mock_cursor.commit.assert_not_called()


@patch('studycore.db.connection.logger.error')
@patch('studycore.db.connection.duckdb.connect')
def test_initialize_schema_handles_rollback_error(mock_duckdb_connect, mock_logger_error):
    """A failing rollback is logged and the original error still surfaces."""
    mock_cursor = MagicMock()
    mock_cursor.execute.side_effect = duckdb.Error("Initial schema error")
    mock_cursor.rollback.side_effect = duckdb.Error("Rollback failed!")
    mock_duckdb_connect.return_value = _mock_connection(mock_cursor)

    db = StudyDatabase(db_path=':memory:')

    with pytest.raises(SchemaInitializationError, match="Initial schema error"):
        db.initialize_schema()

    mock_logger_error.assert_called_once()
    assert "Failed to rollback transaction" in mock_logger_error.call_args[0][0]


@patch('studycore.db.connection.duckdb.connect')
def test_upsert_cards_batch_wraps_duckdb_error(mock_duckdb_connect, sample_card1):
    mock_cursor = MagicMock()
    mock_cursor.executemany.side_effect = duckdb.Error("disk full")
    mock_duckdb_connect.return_value = _mock_connection(mock_cursor)
    db = StudyDatabase(db_path=':memory:')

    with pytest.raises(CardOperationError, match="Batch card upsert failed") as excinfo:
        db.upsert_cards_batch([sample_card1])

    assert isinstance(excinfo.value.original_exception, duckdb.Error)
    mock_cursor.rollback.assert_called_once()


@patch('studycore.db.connection.duckdb.connect')
def test_create_deck_wraps_duckdb_error(mock_duckdb_connect, sample_deck):
    mock_cursor = MagicMock()
    mock_cursor.execute.side_effect = duckdb.Error("boom")
    mock_duckdb_connect.return_value = _mock_connection(mock_cursor)
    db = StudyDatabase(db_path=':memory:')

    with pytest.raises(DeckOperationError, match="Failed to create deck"):
        db.create_deck(sample_deck)


@patch('studycore.db.connection.duckdb.connect')
def test_add_review_wraps_duckdb_error(mock_duckdb_connect):
    mock_cursor = MagicMock()
    mock_cursor.execute.side_effect = duckdb.Error("insert failed")
    mock_duckdb_connect.return_value = _mock_connection(mock_cursor)
    db = StudyDatabase(db_path=':memory:')

    with pytest.raises(ReviewOperationError, match="Failed to add review and update card"):
        db.add_review_and_update_card(_record())
    mock_cursor.rollback.assert_called_once()


def test_get_reviews_wraps_query_error():
    db = StudyDatabase(db_path=':memory:')
    mock_conn = MagicMock()
    mock_conn.execute.side_effect = duckdb.Error("query failed")

    with patch.object(db, "get_connection", return_value=mock_conn):
        with pytest.raises(ReviewOperationError, match="Failed to get reviews"):
            db.get_reviews_for_card(uuid.uuid4())


def test_get_review_summary_wraps_query_error():
    db = StudyDatabase(db_path=':memory:')
    mock_conn = MagicMock()
    mock_conn.execute.side_effect = duckdb.Error("query failed")

    with patch.object(db, "get_connection", return_value=mock_conn):
        with pytest.raises(ReviewOperationError, match="Failed to summarize reviews"):
            db.get_review_summary(uuid.uuid4())


def test_get_card_marshalling_error_is_wrapped(initialized_db_manager, sample_card1):
    initialized_db_manager.upsert_cards_batch([sample_card1])

    with patch(
        "studycore.db.database.db_utils.db_row_to_card",
        side_effect=MarshallingError("bad row"),
    ):
        with pytest.raises(CardOperationError, match="Failed to parse cards") as excinfo:
            initialized_db_manager.get_card_by_uuid(sample_card1.uuid)

    assert isinstance(excinfo.value.original_exception, MarshallingError)


def test_db_row_to_card_raises_marshalling_error(sample_card1):
    row = {
        "uuid": sample_card1.uuid,
        "user_id": sample_card1.user_id,
        "deck_uuid": sample_card1.deck_uuid,
        "front": "",
        "back": "A",
        "source": "manual",
        "is_archived": False,
        "language_code": None,
        "created_at": datetime(2024, 1, 1),
        "updated_at": datetime(2024, 1, 1),
        "due_at": None,
        "last_reviewed_at": None,
        "repetitions_count": 0,
        "lapses_count": 0,
        "ease_factor": 2.5,
        "interval_days": 0,
    }

    with pytest.raises(MarshallingError, match="Failed to parse card"):
        db_utils.db_row_to_card(row)


def test_db_row_to_audit_record_missing_column():
    with pytest.raises(MarshallingError):
        db_utils.db_row_to_audit_record({"review_uuid": uuid.uuid4()})


def test_database_errors_share_a_base():
    for exc_type in (
        DatabaseConnectionError,
        SchemaInitializationError,
        CardOperationError,
        DeckOperationError,
        ReviewOperationError,
        MarshallingError,
    ):
        assert issubclass(exc_type, DatabaseError)
