from __future__ import annotations

from datetime import timedelta

from push_fanout.storage.repository import BroadcastLogRepository, TokenRepository
from push_fanout.utils.time import Clock

# Matches the `last30Days` key of the stats response.
STATS_WINDOW_DAYS = 30


def format_success_rate(sent: int, failed: int) -> str:
    total = sent + failed
    if total == 0:
        return "0%"
    return f"{sent / total * 100:.2f}%"


class NotificationStatsService:
    def __init__(
        self,
        tokens: TokenRepository,
        broadcast_log: BroadcastLogRepository,
        clock: Clock,
        window_days: int = STATS_WINDOW_DAYS,
    ) -> None:
        self.tokens = tokens
        self.broadcast_log = broadcast_log
        self.clock = clock
        self.window_days = window_days

    def get_stats(self) -> dict:
        since = self.clock.now() - timedelta(days=self.window_days)
        sent, failed = self.broadcast_log.totals_since(since)
        return {
            "total_tokens": self.tokens.count(),
            "success_rate": format_success_rate(sent, failed),
            "window": {"sent": sent, "failed": failed, "total": sent + failed},
        }
