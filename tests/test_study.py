import uuid
import pytest
from datetime import datetime, timedelta, timezone

from studycore.exceptions import InvalidArgumentError
from studycore.models import Card, StudyStats
from studycore.review_processor import ReviewProcessor
from studycore.study import StudyService

UTC = timezone.utc
NOW = datetime(2023, 1, 15, 12, 0, tzinfo=UTC)


def _card(user_id, deck_uuid, front, created_offset, **learning) -> Card:
    created = datetime(2023, 1, 1, tzinfo=UTC) + timedelta(minutes=created_offset)
    return Card(
        user_id=user_id,
        deck_uuid=deck_uuid,
        front=front,
        back="back",
        created_at=created,
        updated_at=created,
        **learning,
    )


@pytest.fixture
def service(populated_db_manager) -> StudyService:
    return StudyService(populated_db_manager)


class TestStudyQueue:
    def test_queue_orders_new_cards_first_then_by_due_date(
        self, service, populated_db_manager, sample_deck, user_id
    ):
        extra = [
            _card(user_id, sample_deck.uuid, "due-late-short", 10,
                  repetitions_count=1, interval_days=1,
                  due_at=datetime(2023, 1, 12, tzinfo=UTC)),
            _card(user_id, sample_deck.uuid, "due-early", 11,
                  repetitions_count=3, interval_days=15,
                  due_at=datetime(2023, 1, 5, tzinfo=UTC)),
            _card(user_id, sample_deck.uuid, "future", 12,
                  repetitions_count=1, interval_days=1,
                  due_at=datetime(2023, 2, 1, tzinfo=UTC)),
        ]
        populated_db_manager.upsert_cards_batch(extra)

        queue = service.get_study_queue(user_id, now=NOW)

        assert [c.front for c in queue] == [
            "hablar",  # never scheduled, created first
            "H2O",  # never scheduled
            "due-early",
            "comer",  # due 2023-01-10
            "due-late-short",
        ]

    def test_queue_excludes_archived_and_future_cards(
        self, service, populated_db_manager, sample_card1, user_id
    ):
        populated_db_manager.set_card_archived(sample_card1.uuid, True)
        before_card2_due = datetime(2023, 1, 9, tzinfo=UTC)

        queue = service.get_study_queue(user_id, now=before_card2_due)

        assert [c.front for c in queue] == ["H2O"]

    def test_queue_limit_and_deck_filter(self, service, sample_deck, user_id):
        assert len(service.get_study_queue(user_id, limit=1, now=NOW)) == 1
        deck_queue = service.get_study_queue(user_id, deck_uuid=sample_deck.uuid, now=NOW)
        assert [c.front for c in deck_queue] == ["hablar", "comer"]

    @pytest.mark.parametrize("bad_limit", [0, -3, 1.5, True])
    def test_invalid_limit(self, service, user_id, bad_limit):
        with pytest.raises(InvalidArgumentError):
            service.get_study_queue(user_id, limit=bad_limit, now=NOW)

    def test_reviewed_card_leaves_the_queue(self, service, populated_db_manager, sample_card1, user_id):
        ReviewProcessor(populated_db_manager).process_review(sample_card1, 3, reviewed_at=NOW)

        queue = service.get_study_queue(user_id, now=NOW + timedelta(hours=1))

        assert sample_card1.uuid not in {c.uuid for c in queue}

    def test_other_users_cards_are_not_queued(self, service):
        assert service.get_study_queue(uuid.uuid4(), now=NOW) == []


class TestStatistics:
    def test_card_stats(self, service, populated_db_manager, sample_card1, user_id):
        populated_db_manager.set_card_archived(sample_card1.uuid, True)

        stats = service.get_card_stats(user_id, now=NOW)

        assert stats == StudyStats(total=2, new=1, due=1, learning=1, mastered=0)

    def test_card_stats_for_deck(self, service, sample_deck_b, user_id):
        stats = service.get_card_stats(user_id, deck_uuid=sample_deck_b.uuid, now=NOW)
        assert stats == StudyStats(total=1, new=1)

    def test_study_statistics(self, service, populated_db_manager, sample_card1, sample_card3_deck_b, user_id):
        processor = ReviewProcessor(populated_db_manager)
        reviewed_at = NOW - timedelta(hours=2)
        processor.process_review(sample_card1, 3, reviewed_at=reviewed_at)
        populated_db_manager.set_card_archived(sample_card3_deck_b.uuid, True)

        statistics = service.get_study_statistics(user_id, now=NOW)

        assert statistics.cards_total == 3
        assert statistics.cards_archived == 1
        # card2 is overdue; card1 is due tomorrow; card3 is archived
        assert statistics.cards_due == 1
        assert statistics.reviews_total == 1
        assert statistics.last_reviewed_at == reviewed_at
        assert statistics.breakdown == StudyStats(total=2, new=0, due=1, learning=2, mastered=0)

    def test_study_statistics_for_empty_user(self, service):
        statistics = service.get_study_statistics(uuid.uuid4(), now=NOW)
        assert statistics.cards_total == 0
        assert statistics.reviews_total == 0
        assert statistics.last_reviewed_at is None
        assert statistics.breakdown == StudyStats()
