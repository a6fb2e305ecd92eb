from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

import firebase_admin
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging

from push_fanout.config import Settings, get_settings
from push_fanout.models.notification import DeliveryErrorKind, DeliveryOutcome, NotificationPayload
from push_fanout.notifications.errors import DeliveryError, NoTargetsError

logger = logging.getLogger(__name__)

FCM_MULTICAST_LIMIT = 500
MOCK_HISTORY_LIMIT = 100


class BaseNotificationProvider(ABC):
    name: str = "base"

    def send_to_many(self, tokens: Sequence[str], payload: NotificationPayload) -> list[DeliveryOutcome]:
        """Send one message to every token.

        Returns exactly one outcome per input token, in input order. Raises
        ``NoTargetsError`` for an empty token list and ``DeliveryError`` when
        the provider call fails as a whole.
        """
        token_list = list(tokens)
        if not token_list:
            raise NoTargetsError("No notification tokens found")
        outcomes = self._send_batch(token_list, payload)
        if len(outcomes) != len(token_list):
            raise DeliveryError(
                f"{self.name} returned {len(outcomes)} outcomes for {len(token_list)} tokens"
            )
        return outcomes

    @abstractmethod
    def _send_batch(self, tokens: list[str], payload: NotificationPayload) -> list[DeliveryOutcome]:
        raise NotImplementedError

    @abstractmethod
    def send_to_one(self, token: str, payload: NotificationPayload) -> DeliveryOutcome:
        raise NotImplementedError


class MockNotificationProvider(BaseNotificationProvider):
    """Accepts every token unless told otherwise through ``failures``.

    ``sent`` keeps the most recent ``history_limit`` calls, oldest first.
    """

    name = "mock"

    def __init__(
        self,
        failures: Mapping[str, DeliveryErrorKind] | None = None,
        history_limit: int = MOCK_HISTORY_LIMIT,
    ) -> None:
        self.failures = dict(failures or {})
        self.history_limit = history_limit
        self.sent: list[tuple[list[str], NotificationPayload]] = []
        self.calls = 0

    def _record(self, tokens: list[str], payload: NotificationPayload) -> None:
        self.calls += 1
        self.sent.append((tokens, payload))
        del self.sent[: -self.history_limit]

    def _outcome(self, token: str) -> DeliveryOutcome:
        kind = self.failures.get(token)
        if kind is None:
            return DeliveryOutcome(token=token, success=True, message_id=f"mock-{self.calls}")
        return DeliveryOutcome(token=token, success=False, error_kind=kind, error_message=f"mock {kind.value}")

    def _send_batch(self, tokens: list[str], payload: NotificationPayload) -> list[DeliveryOutcome]:
        self._record(list(tokens), payload)
        return [self._outcome(token) for token in tokens]

    def send_to_one(self, token: str, payload: NotificationPayload) -> DeliveryOutcome:
        self._record([token], payload)
        return self._outcome(token)


def initialize_firebase(settings: Settings) -> None:
    if firebase_admin._apps:
        return

    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    if settings.firebase_credentials_path:
        cred = credentials.Certificate(settings.firebase_credentials_path)
        firebase_admin.initialize_app(cred, options)
    else:
        # Application Default Credentials, e.g. on Cloud Run.
        firebase_admin.initialize_app(options=options)
    logger.info("Firebase Admin SDK initialized", extra={"project_id": settings.firebase_project_id or None})


def classify_firebase_error(exc: Exception) -> DeliveryErrorKind:
    if isinstance(exc, (messaging.UnregisteredError, messaging.SenderIdMismatchError)):
        return DeliveryErrorKind.INVALID_HANDLE
    if isinstance(exc, firebase_exceptions.InvalidArgumentError) and "registration token" in str(exc).lower():
        return DeliveryErrorKind.INVALID_HANDLE
    if isinstance(exc, messaging.QuotaExceededError):
        return DeliveryErrorKind.QUOTA_EXCEEDED
    return DeliveryErrorKind.TRANSIENT_FAILURE


class FCMNotificationProvider(BaseNotificationProvider):
    name = "fcm"

    def __init__(self, settings: Settings | None = None, app: firebase_admin.App | None = None) -> None:
        self.settings = settings or get_settings()
        self.app = app

    def _notification(self, payload: NotificationPayload) -> messaging.Notification | None:
        if payload.is_data_only:
            return None
        return messaging.Notification(title=payload.title, body=payload.body)

    def _android(self, payload: NotificationPayload) -> messaging.AndroidConfig:
        if payload.is_data_only:
            return messaging.AndroidConfig(priority=payload.priority)
        return messaging.AndroidConfig(
            priority=payload.priority,
            notification=messaging.AndroidNotification(
                sound="default",
                default_sound=True,
                click_action="FLUTTER_NOTIFICATION_CLICK",
            ),
        )

    def _webpush(self, payload: NotificationPayload) -> messaging.WebpushConfig | None:
        if payload.is_data_only:
            return None
        return messaging.WebpushConfig(
            notification=messaging.WebpushNotification(
                icon=payload.icon or self.settings.default_notification_icon,
                badge=payload.badge or self.settings.default_notification_badge,
            ),
            fcm_options=self._fcm_options(payload),
        )

    @staticmethod
    def _fcm_options(payload: NotificationPayload) -> messaging.WebpushFCMOptions | None:
        # FCM only accepts absolute HTTPS click links.
        if payload.link and payload.link.startswith("https://"):
            return messaging.WebpushFCMOptions(link=payload.link)
        return None

    def _send_batch(self, tokens: list[str], payload: NotificationPayload) -> list[DeliveryOutcome]:
        outcomes: list[DeliveryOutcome] = []
        for start in range(0, len(tokens), FCM_MULTICAST_LIMIT):
            chunk = tokens[start : start + FCM_MULTICAST_LIMIT]
            message = messaging.MulticastMessage(
                tokens=chunk,
                data=dict(payload.data),
                notification=self._notification(payload),
                android=self._android(payload),
                webpush=self._webpush(payload),
            )
            try:
                response = messaging.send_each_for_multicast(message, app=self.app)
            except Exception as exc:
                # Transport and credential errors abort the whole batch.
                raise DeliveryError(f"FCM multicast failed: {exc}") from exc

            for token, item in zip(chunk, response.responses):
                if item.success:
                    outcomes.append(DeliveryOutcome(token=token, success=True, message_id=item.message_id))
                    continue
                outcomes.append(
                    DeliveryOutcome(
                        token=token,
                        success=False,
                        error_kind=classify_firebase_error(item.exception),
                        error_message=str(item.exception),
                    )
                )

            logger.info(
                "FCM multicast chunk sent",
                extra={"success_count": response.success_count, "failure_count": response.failure_count},
            )
        return outcomes

    def send_to_one(self, token: str, payload: NotificationPayload) -> DeliveryOutcome:
        message = messaging.Message(
            token=token,
            data=dict(payload.data),
            notification=self._notification(payload),
            android=self._android(payload),
            webpush=self._webpush(payload),
        )
        try:
            message_id = messaging.send(message, app=self.app)
        except firebase_exceptions.FirebaseError as exc:
            kind = classify_firebase_error(exc)
            logger.warning("FCM single send failed", extra={"error_kind": kind.value, "error": str(exc)})
            return DeliveryOutcome(token=token, success=False, error_kind=kind, error_message=str(exc))
        except Exception as exc:
            raise DeliveryError(f"FCM send failed: {exc}") from exc
        return DeliveryOutcome(token=token, success=True, message_id=message_id)


_provider: BaseNotificationProvider | None = None


def get_notification_provider() -> BaseNotificationProvider:
    global _provider
    if _provider is None:
        settings = get_settings()
        if settings.notification_provider == "fcm":
            initialize_firebase(settings)
            _provider = FCMNotificationProvider(settings)
        else:
            _provider = MockNotificationProvider()
    return _provider
