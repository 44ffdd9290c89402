"""
Tests for the batch progress store on the domain row.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.models.domain import PromptRunStatus
from app.services.progress_tracker import (
    ProgressTracker,
    create_progress_tracker,
    get_status,
    set_status,
)
from app.utils.error_handler import DomainNotFoundError


@pytest.fixture
def domain(make_domain):
    return make_domain()


@pytest.fixture
def tracker(db_session, domain):
    return create_progress_tracker(db_session, domain.id)


class TestProgressTracker:
    def test_new_domain_is_pending(self, tracker, domain):
        status = tracker.get_status()

        assert status.domain_id == domain.id
        assert status.status == "pending"
        assert status.progress == 0
        assert status.total == 0
        assert status.started_at is None

    def test_claim_moves_to_running(self, tracker):
        assert tracker.claim(5) is True

        status = tracker.get_status()
        assert status.status == "running"
        assert status.progress == 0
        assert status.total == 5
        assert status.started_at is not None
        assert status.started_at.tzinfo is not None
        assert status.completed_at is None

    def test_second_claim_loses_while_running(self, db_session, tracker, domain):
        assert tracker.claim(5) is True
        assert ProgressTracker(db_session, domain.id).claim(3) is False
        assert tracker.get_status().total == 5

    def test_claim_after_completion(self, tracker):
        tracker.claim(2)
        tracker.complete()

        assert tracker.claim(4) is True
        status = tracker.get_status()
        assert status.total == 4
        assert status.completed_at is None

    def test_increment_is_durable_and_monotonic(self, tracker):
        tracker.claim(3)

        assert [tracker.increment() for _ in range(3)] == [1, 2, 3]
        assert tracker.get_status().progress == 3

    def test_complete_sets_completed_at(self, tracker):
        tracker.claim(1)
        tracker.increment()
        tracker.complete()

        status = tracker.get_status()
        assert status.status == "completed"
        assert status.progress == 1
        assert status.completed_at is not None

    def test_stale_running_batch_reads_as_failed(self, tracker, run_settings):
        tracker.claim(10)
        later = datetime.now(timezone.utc) + timedelta(
            seconds=run_settings.PROMPT_RUN_STALE_AFTER_SECONDS + 60
        )

        assert tracker.get_status(now=later).status == "failed"
        # Stored status is untouched
        assert tracker.get_status().status == "running"

    def test_stale_running_batch_can_be_reclaimed(self, db_session, tracker, domain, run_settings):
        tracker.claim(10)
        run_settings.PROMPT_RUN_STALE_AFTER_SECONDS = -1

        assert ProgressTracker(db_session, domain.id).claim(2) is True

    def test_set_status_pending_clears_start(self, db_session, tracker, domain):
        tracker.claim(4)
        set_status(db_session, domain.id, PromptRunStatus.PENDING, progress=0, total=0)

        status = get_status(db_session, domain.id)
        assert status.status == "pending"
        assert status.total == 0
        assert status.started_at is None

    def test_to_dict(self, tracker, domain):
        tracker.claim(2)
        data = tracker.get_status().to_dict()

        assert data["domain_id"] == domain.id
        assert data["status"] == "running"
        assert isinstance(data["started_at"], str)
        assert data["completed_at"] is None

    def test_unknown_domain(self, db_session):
        with pytest.raises(DomainNotFoundError):
            get_status(db_session, "missing")

    def test_claim_unknown_domain_returns_false(self, db_session):
        assert ProgressTracker(db_session, "missing").claim(1) is False
