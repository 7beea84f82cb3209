"""Per-gateway payload shapes.

Each function turns a NotificationDescriptor (plus the addressed tokens, for
batch gateways) into the body that gateway's send API expects. Nothing here
touches the network or credentials; provider configuration such as the
Xiaomi package name is added by the adapter.
"""
import json
from typing import Any, Callable, Optional

from pushhub.domain.common.types import generate_id
from pushhub.domain.push.models import Gateway, NotificationDescriptor

# OEM gateways keep undelivered messages for a day
OFFLINE_TTL_SECONDS = 86400


def _data_json(descriptor: NotificationDescriptor) -> str:
    return json.dumps(descriptor.data, separators=(",", ":"), default=str)


def format_xiaomi(descriptor: NotificationDescriptor, tokens: list[str]) -> dict[str, str]:
    """Form-encoded body for POST /v3/message/regid."""
    return {
        "registration_id": ",".join(tokens),
        "title": descriptor.title,
        "description": descriptor.body,
        "payload": _data_json(descriptor),
        "pass_through": "0",
        "notify_type": "1",
    }


def format_huawei(descriptor: NotificationDescriptor, tokens: list[str]) -> dict[str, Any]:
    """JSON body for POST /v1/{app_id}/messages:send."""
    return {
        "validate_only": False,
        "message": {
            "android": {
                "notification": {
                    "title": descriptor.title,
                    "body": descriptor.body,
                },
            },
            "data": _data_json(descriptor),
            "token": list(tokens),
        },
    }


def format_oppo(
    descriptor: NotificationDescriptor,
    tokens: list[str],
    message_id: Optional[str] = None,
) -> dict[str, Any]:
    """JSON body for POST /server/v1/message/notification/unicast."""
    return {
        "message": {
            "app_message_id": message_id or generate_id(),
            "title": descriptor.title,
            "content": descriptor.body,
            "click_action_type": 1,
            "click_action_activity": "",
            "click_action_url": "",
            "action_parameters": _data_json(descriptor),
            "show_ttl": OFFLINE_TTL_SECONDS,
            "off_line": True,
            "off_line_ttl": OFFLINE_TTL_SECONDS,
        },
        "target_type": 2,
        "target_value": ";".join(tokens),
    }


def format_vivo(
    descriptor: NotificationDescriptor,
    tokens: list[str],
    request_id: Optional[str] = None,
) -> dict[str, Any]:
    """JSON body for POST /message/send."""
    return {
        "regId": ",".join(tokens),
        "notifyType": 1,
        "title": descriptor.title,
        "content": descriptor.body,
        "timeToLive": OFFLINE_TTL_SECONDS,
        "skipType": 1,
        "skipContent": "",
        "networkType": -1,
        "classification": 1,
        "requestId": request_id or generate_id(),
        "extra": _data_json(descriptor),
    }


def format_apns(descriptor: NotificationDescriptor, tokens: Optional[list[str]] = None) -> dict[str, Any]:
    """APNs JSON body. Sent once per device token, so tokens are not part of it.

    Custom data keys sit next to `aps` at the top level; a data key named
    `aps` is ignored.
    """
    payload: dict[str, Any] = {k: v for k, v in descriptor.data.items() if k != "aps"}
    payload["aps"] = {
        "alert": {
            "title": descriptor.title,
            "body": descriptor.body,
        },
        "badge": descriptor.badge if descriptor.badge is not None else 1,
        "sound": descriptor.sound or "default",
    }
    return payload


FORMATTERS: dict[Gateway, Callable[..., dict[str, Any]]] = {
    Gateway.XIAOMI: format_xiaomi,
    Gateway.HUAWEI: format_huawei,
    Gateway.OPPO: format_oppo,
    Gateway.VIVO: format_vivo,
    Gateway.APNS: format_apns,
}


def format_payload(
    gateway: Gateway, descriptor: NotificationDescriptor, tokens: Optional[list[str]] = None
) -> dict[str, Any]:
    """Build the wire body for `gateway`."""
    return FORMATTERS[Gateway.parse(gateway)](descriptor, tokens or [])
