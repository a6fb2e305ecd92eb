from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from push_fanout.models.db import get_db_session
from push_fanout.models.notification import DeliveryOutcome
from push_fanout.models.schemas import (
    AppUpdateRequest,
    AppUpdateResponse,
    BroadcastCountsResponse,
    CleanupResponse,
    MessageResponse,
    NotificationStatsResponse,
    RegisterTokenRequest,
    RegisterTokenResponse,
    SendNotificationRequest,
    SendNotificationResponse,
    SendProgressRequest,
    SendTestNotificationRequest,
    StatsWindow,
)
from push_fanout.notifications.engine import BroadcastEngine
from push_fanout.notifications.errors import DeliveryError
from push_fanout.notifications.providers import BaseNotificationProvider, get_notification_provider
from push_fanout.notifications.service import NotificationService
from push_fanout.services.stats_service import NotificationStatsService
from push_fanout.services.token_cleanup import TokenCleanupJob
from push_fanout.services.update_trigger import AppChange, AppUpdateTrigger
from push_fanout.storage.repository import AppUpdateLogRepository, BroadcastLogRepository, TokenRepository
from push_fanout.utils.time import Clock, get_clock

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["push-fanout"])


def get_notification_service(
    db: Session = Depends(get_db_session),
    provider: BaseNotificationProvider = Depends(get_notification_provider),
    clock: Clock = Depends(get_clock),
) -> NotificationService:
    return NotificationService(db=db, provider=provider, clock=clock)


def _require_delivered(outcome: DeliveryOutcome) -> None:
    if not outcome.success:
        raise DeliveryError(outcome.error_message or f"Delivery failed ({outcome.error_kind})")


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.post("/register-token", response_model=RegisterTokenResponse)
def register_token(payload: RegisterTokenRequest, service: NotificationService = Depends(get_notification_service)):
    token = service.register_device(payload.token, platform=payload.platform)
    return RegisterTokenResponse(token=token.value, platform=token.platform, registered_at=token.registered_at)


@router.post("/send-notification", response_model=SendNotificationResponse)
def send_notification(
    payload: SendNotificationRequest,
    service: NotificationService = Depends(get_notification_service),
):
    report = service.send_app_notification(
        app_id=payload.app_id,
        app_name=payload.app_name,
        message_type=payload.type,
        title=payload.title,
        body=payload.body,
        icon=payload.icon,
        download_url=payload.download_url,
    )
    return SendNotificationResponse(
        success_count=report.success_count,
        failure_count=report.failure_count,
        total_sent=report.total_attempted,
        message=f"Notification sent to {report.success_count} devices",
    )


@router.post("/send-progress", response_model=MessageResponse | BroadcastCountsResponse)
def send_progress(
    payload: SendProgressRequest,
    service: NotificationService = Depends(get_notification_service),
):
    if payload.device_token:
        outcome = service.send_progress_to_device(
            device_token=payload.device_token,
            app_id=payload.app_id,
            app_name=payload.app_name,
            progress=payload.progress,
        )
        _require_delivered(outcome)
        return MessageResponse(message="Progress notification sent")

    report = service.broadcast_progress(app_id=payload.app_id, app_name=payload.app_name, progress=payload.progress)
    return BroadcastCountsResponse(success_count=report.success_count, failure_count=report.failure_count)


@router.post("/test-notification", response_model=MessageResponse)
def test_notification(
    payload: SendTestNotificationRequest,
    service: NotificationService = Depends(get_notification_service),
):
    outcome = service.send_test(token=payload.token, app_name=payload.app_name)
    _require_delivered(outcome)
    return MessageResponse(message="Test notification sent")


@router.post("/app-updates", response_model=AppUpdateResponse)
def app_updated(
    payload: AppUpdateRequest,
    db: Session = Depends(get_db_session),
    provider: BaseNotificationProvider = Depends(get_notification_provider),
    clock: Clock = Depends(get_clock),
):
    engine = BroadcastEngine(
        tokens=TokenRepository(db),
        provider=provider,
        broadcast_log=BroadcastLogRepository(db),
        clock=clock,
    )
    trigger = AppUpdateTrigger(engine=engine, update_log=AppUpdateLogRepository(db), clock=clock)
    report = trigger.handle(AppChange(app_id=payload.app_id, before=payload.before, after=payload.after))
    if report is None:
        return AppUpdateResponse(notified=False)
    return AppUpdateResponse(
        notified=True,
        success_count=report.success_count,
        failure_count=report.failure_count,
        total_sent=report.total_attempted,
    )


@router.post("/cleanup-tokens", response_model=CleanupResponse)
def cleanup_tokens(db: Session = Depends(get_db_session), clock: Clock = Depends(get_clock)):
    result = TokenCleanupJob(TokenRepository(db), clock).run()
    return CleanupResponse(**result.as_dict())


@router.get("/notification-stats", response_model=NotificationStatsResponse)
def notification_stats(db: Session = Depends(get_db_session), clock: Clock = Depends(get_clock)):
    stats = NotificationStatsService(TokenRepository(db), BroadcastLogRepository(db), clock).get_stats()
    return NotificationStatsResponse(
        total_tokens=stats["total_tokens"],
        success_rate=stats["success_rate"],
        last_30_days=StatsWindow(**stats["window"]),
    )
