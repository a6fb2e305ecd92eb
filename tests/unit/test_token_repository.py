from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from push_fanout.models.db import Base
from push_fanout.notifications.errors import StoreUnavailableError
from push_fanout.storage.repository import TokenRepository

T0 = datetime(2026, 6, 1, 8, 30, tzinfo=timezone.utc)


def test_register_upserts_by_value(db_session) -> None:
    repo = TokenRepository(db_session)
    repo.register("abc", registered_at=T0)
    refreshed = repo.register(" abc ", registered_at=T0 + timedelta(days=3), platform="android")

    tokens = repo.list_all()
    assert repo.count() == 1
    assert tokens[0].value == "abc"
    assert tokens[0].platform == "android"
    assert tokens[0].registered_at == T0 + timedelta(days=3)
    assert refreshed.registered_at == tokens[0].registered_at


def test_register_rejects_blank_token(db_session) -> None:
    with pytest.raises(ValueError):
        TokenRepository(db_session).register("   ", registered_at=T0)


def test_delete_by_value_is_idempotent(db_session) -> None:
    repo = TokenRepository(db_session)
    repo.register("abc", registered_at=T0)

    assert repo.delete_by_value("abc") == 1
    assert repo.delete_by_value("abc") == 0
    assert repo.delete_by_value("never-registered") == 0
    assert repo.list_all() == []


def test_delete_older_than_counts_deleted_rows(db_session) -> None:
    repo = TokenRepository(db_session)
    repo.register("old-1", registered_at=T0 - timedelta(days=100))
    repo.register("old-2", registered_at=T0 - timedelta(days=91))
    repo.register("fresh", registered_at=T0 - timedelta(days=10))

    deleted = repo.delete_older_than(T0 - timedelta(days=90))

    assert deleted == 2
    assert [token.value for token in repo.list_all()] == ["fresh"]


def test_store_failure_is_not_reported_as_empty(db_session) -> None:
    repo = TokenRepository(db_session)
    repo.register("abc", registered_at=T0)
    Base.metadata.drop_all(bind=db_session.get_bind())

    with pytest.raises(StoreUnavailableError):
        repo.list_all()
    with pytest.raises(StoreUnavailableError):
        repo.count()


def test_register_recovers_when_another_writer_inserts_first(db_session) -> None:
    class RacingRepository(TokenRepository):
        lookups = 0

        def _find(self, value: str):
            # The first lookup misses a row a concurrent request already committed.
            self.lookups += 1
            if self.lookups == 1:
                return None
            return super()._find(value)

    TokenRepository(db_session).register("abc", registered_at=T0)
    repo = RacingRepository(db_session)

    token = repo.register("abc", registered_at=T0 + timedelta(days=1), platform="ios")

    assert repo.lookups == 2
    assert repo.count() == 1
    assert token.platform == "ios"
    assert repo.list_all()[0].registered_at == T0 + timedelta(days=1)
