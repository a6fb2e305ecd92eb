from __future__ import annotations

from datetime import timedelta

from push_fanout.models.notification import BroadcastReport
from push_fanout.services.stats_service import NotificationStatsService, format_success_rate
from push_fanout.storage.repository import BroadcastLogRepository, TokenRepository


def _report(clock, success: int, failure: int, days_ago: int) -> BroadcastReport:
    return BroadcastReport(
        kind="APP_UPDATE",
        success_count=success,
        failure_count=failure,
        total_attempted=success + failure,
        timestamp=clock.now() - timedelta(days=days_ago),
    )


def test_success_rate_formatting() -> None:
    assert format_success_rate(0, 0) == "0%"
    assert format_success_rate(2, 1) == "66.67%"
    assert format_success_rate(10, 0) == "100.00%"
    assert format_success_rate(0, 4) == "0.00%"


def test_stats_without_broadcasts(db_session, clock) -> None:
    TokenRepository(db_session).register("abc", registered_at=clock.now())
    service = NotificationStatsService(TokenRepository(db_session), BroadcastLogRepository(db_session), clock)

    assert service.get_stats() == {
        "total_tokens": 1,
        "success_rate": "0%",
        "window": {"sent": 0, "failed": 0, "total": 0},
    }


def test_stats_only_count_trailing_window(db_session, clock) -> None:
    log = BroadcastLogRepository(db_session)
    log.append(_report(clock, success=8, failure=2, days_ago=1))
    log.append(_report(clock, success=1, failure=1, days_ago=29))
    log.append(_report(clock, success=50, failure=50, days_ago=45))

    stats = NotificationStatsService(TokenRepository(db_session), log, clock).get_stats()

    assert stats["total_tokens"] == 0
    assert stats["window"] == {"sent": 9, "failed": 3, "total": 12}
    assert stats["success_rate"] == "75.00%"


def test_window_is_pinned_to_thirty_days(db_session, clock, monkeypatch) -> None:
    monkeypatch.setenv("STATS_WINDOW_DAYS", "7")
    log = BroadcastLogRepository(db_session)
    log.append(_report(clock, success=3, failure=0, days_ago=20))

    service = NotificationStatsService(TokenRepository(db_session), log, clock)

    assert service.window_days == 30
    assert service.get_stats()["window"]["sent"] == 3
