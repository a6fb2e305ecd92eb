from __future__ import annotations

from datetime import timedelta

from push_fanout.notifications.engine import BroadcastEngine
from push_fanout.notifications.payloads import APP_DOWNLOAD_AVAILABLE
from push_fanout.notifications.providers import MockNotificationProvider
from push_fanout.services.update_trigger import AppChange, AppUpdateTrigger
from push_fanout.storage.repository import AppUpdateLogRepository, BroadcastLogRepository, TokenRepository


def _trigger(db_session, provider, clock) -> AppUpdateTrigger:
    engine = BroadcastEngine(
        tokens=TokenRepository(db_session),
        provider=provider,
        broadcast_log=BroadcastLogRepository(db_session),
        clock=clock,
    )
    return AppUpdateTrigger(engine=engine, update_log=AppUpdateLogRepository(db_session), clock=clock)


def test_unchanged_version_is_a_noop(db_session, clock) -> None:
    TokenRepository(db_session).register("A", registered_at=clock.now())
    provider = MockNotificationProvider()
    change = AppChange(
        app_id="app-1",
        before={"name": "Notes", "version": "1.0", "downloads": 10},
        after={"name": "Notes Pro", "version": "1.0", "downloads": 11},
    )

    assert _trigger(db_session, provider, clock).handle(change) is None
    assert provider.sent == []
    assert AppUpdateLogRepository(db_session).list_for_app("app-1") == []


def test_version_change_notifies_all_devices(db_session, clock) -> None:
    repo = TokenRepository(db_session)
    for value in ("A", "B", "C"):
        repo.register(value, registered_at=clock.now() - timedelta(days=1))
    provider = MockNotificationProvider()
    change = AppChange(
        app_id="app-1",
        before={"name": "Notes", "version": "1.0"},
        after={"name": "Notes", "version": "1.1", "icon": "https://cdn.example/notes.png"},
    )

    report = _trigger(db_session, provider, clock).handle(change)

    assert report.success_count == 3
    sent_tokens, payload = provider.sent[0]
    assert sorted(sent_tokens) == ["A", "B", "C"]
    assert payload.title == "Notes Updated"
    assert payload.body == "Version 1.1 is now available"
    assert payload.icon == "https://cdn.example/notes.png"
    assert payload.data["type"] == APP_DOWNLOAD_AVAILABLE
    assert payload.data["appIcon"] == "https://cdn.example/notes.png"

    entries = AppUpdateLogRepository(db_session).list_for_app("app-1")
    assert len(entries) == 1
    assert entries[0].version == "1.1"
    assert entries[0].app_name == "Notes"
    assert (entries[0].sent_count, entries[0].failure_count) == (3, 0)


def test_version_change_without_devices_skips_log(db_session, clock) -> None:
    provider = MockNotificationProvider()
    change = AppChange(app_id="app-2", before={"version": "2.0"}, after={"name": "Maps", "version": "2.1"})

    assert _trigger(db_session, provider, clock).handle(change) is None
    assert provider.sent == []
    assert AppUpdateLogRepository(db_session).list_for_app("app-2") == []
