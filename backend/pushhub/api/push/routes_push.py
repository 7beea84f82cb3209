"""Push notification API routes."""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from pushhub.api.deps import CurrentUser, get_current_user, get_push_service, require_admin
from pushhub.domain.common.errors import NotFoundError
from pushhub.domain.common.types import preview, utc_now
from pushhub.domain.push.models import (
    BulkDeliveryReport,
    BulkNotification,
    DeliveryReport,
    NotificationDescriptor,
    ServiceStats,
)
from pushhub.services.push_service import PushService

logger = logging.getLogger(__name__)

router = APIRouter()


class DeviceInfo(BaseModel):
    """Optional client device details (logged only)."""
    platform: str = Field(pattern="^(android|ios)$")
    model: Optional[str] = None
    version: Optional[str] = None
    app_version: Optional[str] = Field(default=None, alias="appVersion")


class RegisterTokenRequest(BaseModel):
    """Register device token request."""
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    provider: str  # xiaomi, huawei, oppo, vivo, apns
    device_id: str = Field(min_length=1, alias="deviceId")
    device_info: Optional[DeviceInfo] = Field(default=None, alias="deviceInfo")


class RemoveTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(min_length=1, alias="deviceId")
    provider: Optional[str] = None


class SendNotificationRequest(NotificationDescriptor):
    """Admin send: a NotificationDescriptor plus the target user."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1, alias="userId")


class SendBulkRequest(BaseModel):
    notifications: list[BulkNotification] = Field(min_length=1, max_length=1000)


class TestNotificationRequest(BaseModel):
    token: str = Field(min_length=1)
    provider: str


@router.post("/register-token")
async def register_token(
    request: RegisterTokenRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: PushService = Depends(get_push_service),
):
    """Register (or replace) the push token of the caller's device."""
    await service.register_device_token(current_user.id, request.token, request.provider, request.device_id)
    logger.info(
        "Device token registered: user=%s provider=%s platform=%s model=%s",
        current_user.id,
        request.provider,
        request.device_info.platform if request.device_info else None,
        request.device_info.model if request.device_info else None,
    )
    return {
        "status": "success",
        "message": "Device token registered successfully",
        "data": {
            "provider": request.provider,
            "deviceId": request.device_id,
            "updatedAt": utc_now().isoformat(),
        },
    }


@router.delete("/remove-token")
async def remove_token(
    request: RemoveTokenRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: PushService = Depends(get_push_service),
):
    """Remove the caller's device from every gateway (or only `provider`)."""
    removed = await service.remove_device_token(current_user.id, request.device_id, request.provider)
    if not removed:
        raise NotFoundError("Device token", preview(request.device_id))
    return {"status": "success", "message": "Device token removed successfully"}


@router.get("/tokens")
async def list_tokens(
    current_user: CurrentUser = Depends(get_current_user),
    service: PushService = Depends(get_push_service),
):
    """List the caller's registered devices. Tokens are returned as previews only."""
    tokens = await service.list_device_tokens(current_user.id)
    formatted: dict[str, list[dict[str, Any]]] = {}
    for gateway, records in tokens.items():
        formatted[gateway.value] = [
            {
                "deviceId": r.device_id,
                "provider": gateway.value,
                "updatedAt": r.updated_at.isoformat(),
                "tokenPreview": preview(r.token),
            }
            for r in records
        ]
    return {
        "status": "success",
        "data": {
            "tokens": formatted,
            "totalDevices": sum(len(records) for records in tokens.values()),
        },
    }


@router.post("/send", response_model=DeliveryReport)
async def send_notification(
    request: SendNotificationRequest,
    admin: CurrentUser = Depends(require_admin),
    service: PushService = Depends(get_push_service),
):
    """Send a push notification to one user (admin only)."""
    descriptor = NotificationDescriptor(
        title=request.title,
        body=request.body,
        data=request.data,
        badge=request.badge,
        sound=request.sound,
    )
    report = await service.send_to_user(request.user_id, descriptor)
    logger.info(
        "Push notification sent by admin %s to %s: success=%s",
        admin.id,
        request.user_id,
        report.success,
    )
    if not report.success:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": report.error, "report": report.model_dump(mode="json")},
        )
    return report


@router.post("/send-bulk", response_model=BulkDeliveryReport)
async def send_bulk(
    request: SendBulkRequest,
    admin: CurrentUser = Depends(require_admin),
    service: PushService = Depends(get_push_service),
):
    """Send a list of per-user notifications (admin only)."""
    report = await service.send_bulk(request.notifications)
    logger.info("Bulk push by admin %s: %s", admin.id, report.summary.model_dump())
    return report


@router.post("/test")
async def test_notification(
    request: TestNotificationRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: PushService = Depends(get_push_service),
):
    """Send a test notification straight to one device token."""
    report = await service.test_push(request.token, request.provider)
    logger.info(
        "Test push notification requested by %s: provider=%s success=%s",
        current_user.id,
        request.provider,
        report.success,
    )
    first = report.results[0] if report.results else None
    return {
        "status": "success",
        "message": "Test notification sent",
        "data": {
            "provider": request.provider,
            "success": report.success,
            "error": (first.error if first else None) or report.error,
        },
    }


@router.get("/stats", response_model=ServiceStats)
async def push_stats(
    current_user: CurrentUser = Depends(get_current_user),
    service: PushService = Depends(get_push_service),
):
    """Configured gateways and per-platform availability."""
    return service.stats()
