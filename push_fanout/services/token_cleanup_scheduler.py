from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta

from push_fanout.config import settings
from push_fanout.models import db as db_module
from push_fanout.notifications.errors import CleanupJobError
from push_fanout.services.token_cleanup import TokenCleanupJob
from push_fanout.storage.repository import TokenRepository
from push_fanout.utils.time import Clock, get_clock

logger = logging.getLogger(__name__)


def seconds_until_next_run(now: datetime, hour_utc: int) -> float:
    target = now.replace(hour=hour_utc % 24, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class TokenCleanupScheduler:
    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or get_clock()
        self.enabled = settings.token_cleanup_scheduler_enabled
        self.hour_utc = settings.token_cleanup_hour_utc
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if not self.enabled:
            return
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="token-cleanup",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Token cleanup scheduler started",
            extra={"hour_utc": self.hour_utc, "retention_days": settings.token_retention_days},
        )

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)

    def _run_loop(self) -> None:
        while not self._stop_event.wait(seconds_until_next_run(self.clock.now(), self.hour_utc)):
            self.run_once()

    def run_once(self) -> int | None:
        db = db_module.new_session()
        try:
            result = TokenCleanupJob(TokenRepository(db), self.clock).run()
            return result.deleted_count
        except CleanupJobError:
            # Already logged by the job; the loop must keep running.
            return None
        finally:
            db.close()
