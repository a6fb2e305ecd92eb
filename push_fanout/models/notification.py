from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DeliveryErrorKind(str, Enum):
    INVALID_HANDLE = "INVALID_HANDLE"
    TRANSIENT_FAILURE = "TRANSIENT_FAILURE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"


class DeviceToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    registered_at: datetime
    platform: str = "web"


class NotificationPayload(BaseModel):
    """One message, built fresh per send.

    ``data`` is passed to the provider verbatim, which only accepts a flat
    mapping of strings; anything else is rejected here.
    """

    model_config = ConfigDict(frozen=True, strict=True)

    title: str | None = None
    body: str | None = None
    icon: str | None = None
    badge: str | None = None
    link: str | None = None
    data: dict[str, str] = Field(default_factory=dict)
    priority: Literal["high", "normal"] = "high"

    @property
    def is_data_only(self) -> bool:
        return self.title is None and self.body is None

    @property
    def message_type(self) -> str:
        return self.data.get("type", "UNKNOWN")


class DeliveryOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    success: bool
    error_kind: DeliveryErrorKind | None = None
    error_message: str | None = None
    message_id: str | None = None

    @property
    def should_prune(self) -> bool:
        return not self.success and self.error_kind == DeliveryErrorKind.INVALID_HANDLE


class BroadcastReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str
    success_count: int
    failure_count: int
    total_attempted: int
    pruned_count: int = 0
    timestamp: datetime
    log_recorded: bool = False
