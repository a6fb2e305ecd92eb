from __future__ import annotations

from datetime import datetime

from push_fanout.config import Settings
from push_fanout.models.notification import NotificationPayload
from push_fanout.utils.time import iso_timestamp

APP_DOWNLOAD_AVAILABLE = "APP_DOWNLOAD_AVAILABLE"
DOWNLOAD_PROGRESS = "DOWNLOAD_PROGRESS"
TEST = "TEST"


def _text(value) -> str:
    return "" if value is None else str(value)


def build_app_notification(
    settings: Settings,
    *,
    app_id: str,
    app_name: str | None,
    message_type: str,
    now: datetime,
    title: str | None = None,
    body: str | None = None,
    icon: str | None = None,
    download_url: str | None = None,
) -> NotificationPayload:
    name = _text(app_name)
    return NotificationPayload(
        title=title or name or "App Update Available",
        body=body or f"Update available for {name or 'your app'}",
        icon=icon or settings.default_notification_icon,
        badge=settings.default_notification_badge,
        link=settings.notification_click_link or None,
        data={
            "appId": app_id,
            "appName": name,
            "type": message_type,
            "downloadUrl": _text(download_url),
            "timestamp": iso_timestamp(now),
        },
        priority="high",
    )


def build_progress_notification(
    *,
    app_id: str,
    app_name: str | None,
    progress: int | float,
    now: datetime,
) -> NotificationPayload:
    # Data-only: the client updates its own progress UI.
    return NotificationPayload(
        data={
            "type": DOWNLOAD_PROGRESS,
            "appId": app_id,
            "appName": _text(app_name),
            "progress": str(progress),
            "timestamp": iso_timestamp(now),
        },
        priority="high",
    )


def build_update_notification(
    settings: Settings,
    *,
    app_id: str,
    record: dict,
    now: datetime,
) -> NotificationPayload:
    name = _text(record.get("name"))
    version = _text(record.get("version"))
    icon = _text(record.get("icon"))
    return NotificationPayload(
        title=f"{name} Updated",
        body=f"Version {version} is now available",
        icon=icon or settings.default_notification_icon,
        badge=settings.default_notification_badge,
        link=settings.notification_click_link or None,
        data={
            "type": APP_DOWNLOAD_AVAILABLE,
            "appId": app_id,
            "appName": name,
            "appIcon": icon,
            "version": version,
            "timestamp": iso_timestamp(now),
        },
        priority="high",
    )


def build_test_notification(settings: Settings, *, app_name: str | None, now: datetime) -> NotificationPayload:
    return NotificationPayload(
        title="Test Notification",
        body=f"Testing notifications for {app_name or 'Test App'}",
        icon=settings.default_notification_icon,
        badge=settings.default_notification_badge,
        data={"type": TEST, "timestamp": iso_timestamp(now)},
        priority="high",
    )
