from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from push_fanout.notifications.errors import CleanupJobError, StoreUnavailableError
from push_fanout.services import token_cleanup_scheduler as scheduler_module
from push_fanout.services.token_cleanup import TokenCleanupJob
from push_fanout.services.token_cleanup_scheduler import TokenCleanupScheduler, seconds_until_next_run
from push_fanout.storage.repository import TokenRepository


def test_cleanup_deletes_only_expired_tokens(db_session, clock) -> None:
    repo = TokenRepository(db_session)
    repo.register("expired", registered_at=clock.now() - timedelta(days=120))
    repo.register("recent", registered_at=clock.now() - timedelta(days=30))

    result = TokenCleanupJob(repo, clock, retention_days=90).run()

    assert result.deleted_count == 1
    assert result.cutoff == clock.now() - timedelta(days=90)
    assert result.as_dict() == {"message": "Cleaned up 1 tokens", "timestamp": "2026-10-01T12:00:00Z"}
    assert [token.value for token in repo.list_all()] == ["recent"]


def test_second_cleanup_run_deletes_nothing(db_session, clock) -> None:
    repo = TokenRepository(db_session)
    repo.register("expired-1", registered_at=clock.now() - timedelta(days=200))
    repo.register("expired-2", registered_at=clock.now() - timedelta(days=91))
    job = TokenCleanupJob(repo, clock, retention_days=90)

    assert job.run().deleted_count == 2
    assert job.run().deleted_count == 0


def test_cleanup_failure_is_resignalled(db_session, clock) -> None:
    class BrokenRepository(TokenRepository):
        def delete_older_than(self, cutoff) -> int:
            raise StoreUnavailableError("delete_older_than failed")

    with pytest.raises(CleanupJobError) as excinfo:
        TokenCleanupJob(BrokenRepository(db_session), clock).run()

    assert isinstance(excinfo.value.__cause__, StoreUnavailableError)


def test_seconds_until_next_run() -> None:
    before = datetime(2026, 10, 1, 1, 30, tzinfo=timezone.utc)
    after = datetime(2026, 10, 1, 3, 0, tzinfo=timezone.utc)

    assert seconds_until_next_run(before, 3) == 90 * 60
    assert seconds_until_next_run(after, 3) == 24 * 60 * 60


def test_scheduler_run_survives_job_failure(monkeypatch, db_session, clock) -> None:
    class FailingJob:
        def __init__(self, tokens, clock) -> None:
            pass

        def run(self):
            raise CleanupJobError("Token cleanup failed: boom")

    monkeypatch.setattr(scheduler_module.db_module, "new_session", lambda: db_session)
    monkeypatch.setattr(scheduler_module, "TokenCleanupJob", FailingJob)

    assert TokenCleanupScheduler(clock=clock).run_once() is None


def test_scheduler_run_reports_deleted_count(monkeypatch, db_session, clock) -> None:
    TokenRepository(db_session).register("expired", registered_at=clock.now() - timedelta(days=365))
    monkeypatch.setattr(scheduler_module.db_module, "new_session", lambda: db_session)

    assert TokenCleanupScheduler(clock=clock).run_once() == 1
