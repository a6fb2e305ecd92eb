from __future__ import annotations

import datetime as dt
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel


Platform = Literal["web", "android", "ios"]
DeviceTokenValue = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendNotificationRequest(CamelModel):
    app_id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    app_name: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    icon: Optional[str] = None
    download_url: Optional[str] = None


class SendNotificationResponse(CamelModel):
    success: bool = True
    success_count: int
    failure_count: int
    total_sent: int
    message: str


class SendProgressRequest(CamelModel):
    app_id: str = Field(min_length=1)
    progress: int | float
    app_name: Optional[str] = None
    device_token: Optional[str] = None


class BroadcastCountsResponse(CamelModel):
    success: bool = True
    success_count: int
    failure_count: int


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class SendTestNotificationRequest(CamelModel):
    token: DeviceTokenValue
    app_name: Optional[str] = None


class RegisterTokenRequest(CamelModel):
    token: DeviceTokenValue
    platform: Platform = "web"


class RegisterTokenResponse(CamelModel):
    status: str = "registered"
    token: str
    platform: Platform
    registered_at: dt.datetime


class AppUpdateRequest(CamelModel):
    app_id: str = Field(min_length=1)
    before: dict = Field(default_factory=dict)
    after: dict = Field(default_factory=dict)


class AppUpdateResponse(CamelModel):
    notified: bool
    success_count: int = 0
    failure_count: int = 0
    total_sent: int = 0


class CleanupResponse(CamelModel):
    message: str
    timestamp: str


class StatsWindow(CamelModel):
    sent: int
    failed: int
    total: int


class NotificationStatsResponse(CamelModel):
    total_tokens: int
    success_rate: str
    last_30_days: StatsWindow = Field(alias="last30Days")
