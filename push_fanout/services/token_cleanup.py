from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from push_fanout.config import get_settings
from push_fanout.notifications.errors import CleanupJobError
from push_fanout.storage.repository import TokenRepository
from push_fanout.utils.time import Clock, iso_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupResult:
    deleted_count: int
    cutoff: datetime
    timestamp: datetime

    @property
    def message(self) -> str:
        return f"Cleaned up {self.deleted_count} tokens"

    def as_dict(self) -> dict:
        return {"message": self.message, "timestamp": iso_timestamp(self.timestamp)}


class TokenCleanupJob:
    def __init__(self, tokens: TokenRepository, clock: Clock, retention_days: int | None = None) -> None:
        self.tokens = tokens
        self.clock = clock
        days = retention_days if retention_days is not None else get_settings().token_retention_days
        self.retention_days = max(1, days)

    def run(self) -> CleanupResult:
        """Delete tokens registered before the retention window.

        Failures are logged here and re-raised as ``CleanupJobError`` so the
        caller can alert on them.
        """
        now = self.clock.now()
        cutoff = now - timedelta(days=self.retention_days)
        logger.info("Starting token cleanup", extra={"cutoff": iso_timestamp(cutoff)})
        try:
            deleted = self.tokens.delete_older_than(cutoff)
        except Exception as exc:
            logger.exception("Token cleanup failed", extra={"error": str(exc)})
            raise CleanupJobError(f"Token cleanup failed: {exc}") from exc

        logger.info("Cleaned up expired tokens", extra={"deleted": deleted, "retention_days": self.retention_days})
        return CleanupResult(deleted_count=deleted, cutoff=cutoff, timestamp=now)
