"""Push delivery domain models."""
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from pushhub.domain.common.errors import InvalidGateway
from pushhub.domain.common.types import utc_now


class Gateway(str, Enum):
    """Supported push delivery providers."""

    XIAOMI = "xiaomi"
    HUAWEI = "huawei"
    OPPO = "oppo"
    VIVO = "vivo"
    APNS = "apns"

    @property
    def platform(self) -> str:
        return "ios" if self is Gateway.APNS else "android"

    @classmethod
    def parse(cls, value: "str | Gateway") -> "Gateway":
        """Return the Gateway for `value` or raise InvalidGateway."""
        try:
            return cls(value)
        except ValueError:
            raise InvalidGateway(str(value)) from None


class DeviceToken(BaseModel):
    """One device's addressable endpoint on one gateway.

    Serialized by alias (`deviceId`, `updatedAt`) in the store.
    """

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    device_id: str = Field(min_length=1, alias="deviceId")
    gateway: Gateway
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")


class ProviderCredential(BaseModel):
    """Short-lived authentication material for one gateway."""

    gateway: Gateway
    token: str
    expires_at: datetime

    def is_live(self, buffer_seconds: int, now: Optional[datetime] = None) -> bool:
        """True while now is before expires_at minus the safety buffer."""
        now = now or utc_now()
        return (self.expires_at - now).total_seconds() > buffer_seconds


class NotificationDescriptor(BaseModel):
    """Gateway-agnostic notification content."""

    title: str = Field(min_length=1, max_length=100)
    body: str = Field(min_length=1, max_length=500)
    data: dict[str, Any] = Field(default_factory=dict)
    badge: Optional[int] = Field(default=None, ge=0)
    sound: Optional[str] = None


class TokenResult(BaseModel):
    """Outcome for one token on a gateway addressed per device."""

    token: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class GatewayResult(BaseModel):
    """Normalized outcome of one gateway invocation."""

    gateway: Gateway
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    results: Optional[list[TokenResult]] = None
    response: Optional[dict[str, Any]] = None

    @classmethod
    def failure(cls, gateway: Gateway, error: str, error_code: str) -> "GatewayResult":
        return cls(gateway=gateway, success=False, error=error, error_code=error_code)


class DeliverySummary(BaseModel):
    total_gateways: int = 0
    succeeded: int = 0
    failed: int = 0
    platforms_invoked: list[Gateway] = Field(default_factory=list)
    skipped: list[Gateway] = Field(default_factory=list)


class DeliveryReport(BaseModel):
    """Aggregate of every gateway invoked for one fan-out."""

    success: bool
    error: Optional[str] = None
    results: list[GatewayResult] = Field(default_factory=list)
    summary: DeliverySummary = Field(default_factory=DeliverySummary)

    @computed_field
    @property
    def partial(self) -> bool:
        return self.success and self.summary.failed > 0

    @classmethod
    def empty(cls, error: str) -> "DeliveryReport":
        """Report with zero invocations (no tokens, no gateways, store down)."""
        return cls(success=False, error=error)

    @classmethod
    def aggregate(
        cls, results: list[GatewayResult], skipped: Optional[list[Gateway]] = None
    ) -> "DeliveryReport":
        succeeded = sum(1 for r in results if r.success)
        failed = len(results) - succeeded
        error = None
        if not results:
            error = "no_gateways_invoked"
        elif failed and succeeded:
            error = "partial_failure"
        elif failed:
            error = "all_gateways_failed"
        return cls(
            success=succeeded > 0,
            error=error,
            results=results,
            summary=DeliverySummary(
                total_gateways=len(results),
                succeeded=succeeded,
                failed=failed,
                platforms_invoked=[r.gateway for r in results],
                skipped=skipped or [],
            ),
        )


class BulkNotification(BaseModel):
    user_id: str = Field(alias="userId")
    notification: NotificationDescriptor

    model_config = ConfigDict(populate_by_name=True)


class UserDeliveryReport(BaseModel):
    user_id: str
    report: DeliveryReport


class BulkSummary(BaseModel):
    total: int
    succeeded: int
    failed: int


class BulkDeliveryReport(BaseModel):
    success: bool
    results: list[UserDeliveryReport]
    summary: BulkSummary


class ServiceStats(BaseModel):
    is_available: bool
    available_providers: list[Gateway]
    total_providers: int
    supported_platforms: dict[str, list[Gateway]]
