from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


class FixedClock:
    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def db_session(tmp_path) -> Generator:
    from push_fanout.models import tables  # noqa: F401
    from push_fanout.models.db import Base

    engine = create_engine(f"sqlite:///{tmp_path / 'unit.db'}", future=True)
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def test_ctx(tmp_path, monkeypatch, clock) -> Generator[dict, None, None]:
    import push_fanout.models.db as db_module
    from push_fanout.models.db import Base
    from push_fanout.notifications.providers import MockNotificationProvider, get_notification_provider
    from push_fanout.utils.time import get_clock

    db_file = tmp_path / "test.db"
    test_url = f"sqlite:///{db_file}"
    engine = create_engine(test_url, connect_args={"check_same_thread": False}, future=True)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    monkeypatch.setattr(db_module, "engine", engine, raising=False)
    monkeypatch.setattr(db_module, "SessionLocal", TestingSessionLocal, raising=False)

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    import push_fanout.app as app_module

    monkeypatch.setattr(app_module.token_cleanup_scheduler, "enabled", False)
    provider = MockNotificationProvider()
    app = app_module.app
    app.dependency_overrides[get_notification_provider] = lambda: provider
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app, raise_server_exceptions=False) as client:
        yield {
            "client": client,
            "session_local": TestingSessionLocal,
            "engine": engine,
            "provider": provider,
            "clock": clock,
        }

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
