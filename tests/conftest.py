import sys
import uuid
import pytest
from pathlib import Path
from typing import Generator
from datetime import datetime, timezone

from studycore.models import Card, Deck
from studycore.db import StudyDatabase


USER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")
OTHER_USER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000bb")


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(request):
    """
    Run each test with its tmpdir as the working directory, so no stray
    `.env` file or database from the checkout leaks into it.
    """
    tmpdir = request.getfixturevalue("tmpdir")
    sys.path.insert(0, str(tmpdir))
    with tmpdir.as_cwd():
        yield


# --- Database Fixtures ---
@pytest.fixture
def db_path_memory() -> str:
    return ":memory:"


@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    return tmp_path / "test_study.db"


@pytest.fixture(params=["memory", "file"])
def db_manager(
    request, db_path_memory: str, db_path_file: Path
) -> Generator[StudyDatabase, None, None]:
    """
    Provide a StudyDatabase, either in-memory or file-backed, and close it on teardown.
    """
    if request.param == "memory":
        db_man = StudyDatabase(db_path_memory)
    else:
        db_man = StudyDatabase(db_path_file)
    try:
        yield db_man
    finally:
        db_man.close_connection()


@pytest.fixture
def initialized_db_manager(db_manager: StudyDatabase) -> StudyDatabase:
    """Ensure the provided StudyDatabase has its schema created and return it."""
    db_manager.initialize_schema()
    return db_manager


@pytest.fixture
def user_id() -> uuid.UUID:
    return USER_ID


@pytest.fixture
def sample_deck() -> Deck:
    return Deck(
        uuid=uuid.UUID("dddddddd-0000-0000-0000-000000000001"),
        user_id=USER_ID,
        name="Spanish Verbs",
        language_code="es",
        created_at=datetime(2023, 1, 1, 9, 0, tzinfo=timezone.utc),
        updated_at=datetime(2023, 1, 1, 9, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_deck_b() -> Deck:
    return Deck(
        uuid=uuid.UUID("dddddddd-0000-0000-0000-000000000002"),
        user_id=USER_ID,
        name="Chemistry",
        created_at=datetime(2023, 1, 1, 9, 30, tzinfo=timezone.utc),
        updated_at=datetime(2023, 1, 1, 9, 30, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_card1(sample_deck: Deck) -> Card:
    """A never-reviewed card in "Spanish Verbs"."""
    return Card(
        uuid=uuid.UUID("11111111-1111-1111-1111-111111111111"),
        user_id=USER_ID,
        deck_uuid=sample_deck.uuid,
        front="hablar",
        back="to speak",
        created_at=datetime(2023, 1, 1, 10, 0, tzinfo=timezone.utc),
        updated_at=datetime(2023, 1, 1, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_card2(sample_deck: Deck) -> Card:
    """A reviewed card in "Spanish Verbs", due 2023-01-10 10:00 UTC."""
    return Card(
        uuid=uuid.UUID("22222222-2222-2222-2222-222222222222"),
        user_id=USER_ID,
        deck_uuid=sample_deck.uuid,
        front="comer",
        back="to eat",
        created_at=datetime(2023, 1, 2, 10, 0, tzinfo=timezone.utc),
        updated_at=datetime(2023, 1, 2, 10, 0, tzinfo=timezone.utc),
        repetitions_count=2,
        ease_factor=2.6,
        interval_days=6,
        last_reviewed_at=datetime(2023, 1, 4, 10, 0, tzinfo=timezone.utc),
        due_at=datetime(2023, 1, 10, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_card3_deck_b(sample_deck_b: Deck) -> Card:
    """A never-reviewed card in "Chemistry"."""
    return Card(
        uuid=uuid.UUID("33333333-3333-3333-3333-333333333333"),
        user_id=USER_ID,
        deck_uuid=sample_deck_b.uuid,
        front="H2O",
        back="water",
        source="ai",
        created_at=datetime(2023, 1, 3, 10, 0, tzinfo=timezone.utc),
        updated_at=datetime(2023, 1, 3, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def populated_db_manager(
    initialized_db_manager: StudyDatabase,
    sample_deck: Deck,
    sample_deck_b: Deck,
    sample_card1: Card,
    sample_card2: Card,
    sample_card3_deck_b: Card,
) -> StudyDatabase:
    """An initialized database holding both sample decks and all three sample cards."""
    initialized_db_manager.create_deck(sample_deck)
    initialized_db_manager.create_deck(sample_deck_b)
    initialized_db_manager.upsert_cards_batch(
        [sample_card1, sample_card2, sample_card3_deck_b]
    )
    return initialized_db_manager
