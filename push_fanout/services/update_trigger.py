from __future__ import annotations

import logging
from dataclasses import dataclass, field

from push_fanout.config import Settings, get_settings
from push_fanout.models.notification import BroadcastReport
from push_fanout.notifications.engine import BroadcastEngine
from push_fanout.notifications.errors import NoTargetsError
from push_fanout.notifications.payloads import build_update_notification
from push_fanout.storage.repository import AppUpdateLogRepository
from push_fanout.utils.time import Clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppChange:
    app_id: str
    before: dict = field(default_factory=dict)
    after: dict = field(default_factory=dict)

    @property
    def version_changed(self) -> bool:
        return self.before.get("version") != self.after.get("version")


class AppUpdateTrigger:
    """Notifies every device when an app record's version changes.

    Only the ``version`` attribute is compared, so updates to other fields of
    the record never send anything.
    """

    def __init__(
        self,
        engine: BroadcastEngine,
        update_log: AppUpdateLogRepository,
        clock: Clock,
        settings: Settings | None = None,
    ) -> None:
        self.engine = engine
        self.update_log = update_log
        self.clock = clock
        self.settings = settings or get_settings()

    def handle(self, change: AppChange) -> BroadcastReport | None:
        if not change.version_changed:
            return None

        logger.info(
            "App version changed",
            extra={
                "app_id": change.app_id,
                "from_version": change.before.get("version"),
                "to_version": change.after.get("version"),
            },
        )
        payload = build_update_notification(
            self.settings,
            app_id=change.app_id,
            record=change.after,
            now=self.clock.now(),
        )
        try:
            report = self.engine.broadcast(payload)
        except NoTargetsError:
            logger.info("No tokens to notify", extra={"app_id": change.app_id})
            return None

        self.update_log.append(
            app_id=change.app_id,
            app_name=payload.data["appName"] or None,
            version=payload.data["version"],
            sent_count=report.success_count,
            failure_count=report.failure_count,
            timestamp=report.timestamp,
        )
        return report
