"""Vivo Push (Android) adapter."""
import hashlib
import time
from datetime import timedelta

from pushhub.domain.common.errors import AuthFailure, GatewayRejected
from pushhub.domain.common.types import utc_now
from pushhub.domain.push.formatter import format_vivo
from pushhub.domain.push.models import Gateway, GatewayResult, NotificationDescriptor, ProviderCredential
from pushhub.infra.push.gateways.base import GatewayAdapter

TOKEN_LIFETIME = timedelta(hours=24)


def vivo_sign(app_id: str, app_key: str, timestamp_ms: int, app_secret: str) -> str:
    return hashlib.md5(f"{app_id}{app_key}{timestamp_ms}{app_secret}".encode()).hexdigest()


class VivoAdapter(GatewayAdapter):
    """MD5 signed timestamp challenge for a session token, batch send."""

    gateway = Gateway.VIVO
    uses_credential_cache = True
    # Cached for 23 hours of the 24 hour lifetime
    credential_buffer_seconds = 3600

    def __init__(self, client, credentials, app_id: str, app_key: str, app_secret: str, base_url: str):
        super().__init__(client, credentials)
        self.app_id = app_id
        self.app_key = app_key
        self.app_secret = app_secret
        self.base_url = base_url.rstrip("/")

    async def acquire_credential(self) -> ProviderCredential:
        timestamp = int(time.time() * 1000)
        body = await self._post_json(
            f"{self.base_url}/message/auth",
            json={
                "appId": self.app_id,
                "appKey": self.app_key,
                "timestamp": timestamp,
                "sign": vivo_sign(self.app_id, self.app_key, timestamp, self.app_secret),
            },
        )
        if body.get("result") != 0:
            raise AuthFailure(self.gateway.value, body.get("desc") or str(body))
        return ProviderCredential(
            gateway=self.gateway,
            token=body["authToken"],
            expires_at=utc_now() + TOKEN_LIFETIME,
        )

    async def _send(self, tokens: list[str], descriptor: NotificationDescriptor) -> GatewayResult:
        auth_token = await self.credential()
        body = await self._post_json(
            f"{self.base_url}/message/send",
            json=format_vivo(descriptor, tokens),
            headers={"authToken": auth_token},
        )
        if body.get("result") != 0:
            raise GatewayRejected(self.gateway.value, body.get("desc") or str(body))
        return GatewayResult(
            gateway=self.gateway,
            success=True,
            message_id=body.get("taskId"),
            response=body,
        )
