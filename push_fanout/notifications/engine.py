from __future__ import annotations

import logging
from enum import Enum

from push_fanout.models.notification import BroadcastReport, DeliveryOutcome, DeviceToken, NotificationPayload
from push_fanout.notifications.errors import NoTargetsError, PushPipelineError, StoreUnavailableError
from push_fanout.notifications.providers import BaseNotificationProvider
from push_fanout.storage.repository import BroadcastLogRepository, TokenRepository
from push_fanout.utils.time import Clock

logger = logging.getLogger(__name__)


class BroadcastState(str, Enum):
    FETCHING = "FETCHING"
    SENDING = "SENDING"
    RECONCILING = "RECONCILING"
    REPORTED = "REPORTED"
    FAILED = "FAILED"


def dedupe_tokens(tokens: list[DeviceToken]) -> list[str]:
    seen: set[str] = set()
    values: list[str] = []
    for token in tokens:
        if token.value in seen:
            continue
        seen.add(token.value)
        values.append(token.value)
    return values


class BroadcastEngine:
    """Sends one payload to every live token and reconciles the token set.

    Each call runs fetch, send, reconcile, report in order and keeps no state
    between calls. Tokens the provider rejects as invalid are deleted after
    the send; transient and quota failures are left in place.
    """

    def __init__(
        self,
        tokens: TokenRepository,
        provider: BaseNotificationProvider,
        broadcast_log: BroadcastLogRepository | None,
        clock: Clock,
    ) -> None:
        self.tokens = tokens
        self.provider = provider
        self.broadcast_log = broadcast_log
        self.clock = clock

    def broadcast(self, payload: NotificationPayload) -> BroadcastReport:
        state = BroadcastState.FETCHING
        try:
            targets = dedupe_tokens(self.tokens.list_all())
            if not targets:
                raise NoTargetsError("No notification tokens found")

            state = BroadcastState.SENDING
            outcomes = self.provider.send_to_many(targets, payload)
        except PushPipelineError as exc:
            exc.failed_state = state.value
            logger.warning(
                "Broadcast failed",
                extra={"state": state.value, "kind": payload.message_type, "error": exc.message},
            )
            raise

        pruned = self._reconcile(outcomes)

        success_count = sum(1 for outcome in outcomes if outcome.success)
        report = BroadcastReport(
            kind=payload.message_type,
            success_count=success_count,
            failure_count=len(outcomes) - success_count,
            total_attempted=len(targets),
            pruned_count=pruned,
            timestamp=self.clock.now(),
        )
        logger.info(
            "Notification sent",
            extra={
                "kind": report.kind,
                "success_count": report.success_count,
                "failure_count": report.failure_count,
                "pruned_count": report.pruned_count,
            },
        )
        return self._record(report)

    def _reconcile(self, outcomes: list[DeliveryOutcome]) -> int:
        pruned = 0
        for outcome in outcomes:
            if not outcome.should_prune:
                continue
            try:
                self.tokens.delete_by_value(outcome.token)
            except StoreUnavailableError:
                logger.exception("Failed to prune invalid token", extra={"token": outcome.token[:10]})
                continue
            pruned += 1
        return pruned

    def _record(self, report: BroadcastReport) -> BroadcastReport:
        if self.broadcast_log is None:
            return report
        try:
            self.broadcast_log.append(report)
        except StoreUnavailableError:
            logger.exception("Failed to append broadcast log entry", extra={"kind": report.kind})
            return report
        return report.model_copy(update={"log_recorded": True})
