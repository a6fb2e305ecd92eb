from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from push_fanout.config import Settings, get_settings
from push_fanout.models.notification import BroadcastReport, DeliveryOutcome, DeviceToken
from push_fanout.notifications.engine import BroadcastEngine
from push_fanout.notifications.payloads import (
    build_app_notification,
    build_progress_notification,
    build_test_notification,
)
from push_fanout.notifications.providers import BaseNotificationProvider
from push_fanout.storage.repository import BroadcastLogRepository, TokenRepository
from push_fanout.utils.time import Clock

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(
        self,
        db: Session,
        provider: BaseNotificationProvider,
        clock: Clock,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.provider = provider
        self.clock = clock
        self.tokens = TokenRepository(db)
        self.engine = BroadcastEngine(
            tokens=self.tokens,
            provider=provider,
            broadcast_log=BroadcastLogRepository(db),
            clock=clock,
        )

    def register_device(self, token: str, platform: str = "web") -> DeviceToken:
        return self.tokens.register(token, registered_at=self.clock.now(), platform=platform)

    def send_app_notification(
        self,
        *,
        app_id: str,
        app_name: str | None,
        message_type: str,
        title: str | None = None,
        body: str | None = None,
        icon: str | None = None,
        download_url: str | None = None,
    ) -> BroadcastReport:
        payload = build_app_notification(
            self.settings,
            app_id=app_id,
            app_name=app_name,
            message_type=message_type,
            now=self.clock.now(),
            title=title,
            body=body,
            icon=icon,
            download_url=download_url,
        )
        return self.engine.broadcast(payload)

    def broadcast_progress(self, *, app_id: str, app_name: str | None, progress: int | float) -> BroadcastReport:
        payload = build_progress_notification(
            app_id=app_id,
            app_name=app_name,
            progress=progress,
            now=self.clock.now(),
        )
        return self.engine.broadcast(payload)

    def send_progress_to_device(
        self,
        *,
        device_token: str,
        app_id: str,
        app_name: str | None,
        progress: int | float,
    ) -> DeliveryOutcome:
        payload = build_progress_notification(
            app_id=app_id,
            app_name=app_name,
            progress=progress,
            now=self.clock.now(),
        )
        return self.provider.send_to_one(device_token, payload)

    def send_test(self, *, token: str, app_name: str | None) -> DeliveryOutcome:
        payload = build_test_notification(self.settings, app_name=app_name, now=self.clock.now())
        outcome = self.provider.send_to_one(token, payload)
        logger.info("Test notification attempted", extra={"delivered": outcome.success})
        return outcome
