"""OPPO Push (Android) adapter."""
import hashlib
import time
from datetime import timedelta

from pushhub.domain.common.errors import AuthFailure, GatewayRejected
from pushhub.domain.common.types import utc_now
from pushhub.domain.push.formatter import format_oppo
from pushhub.domain.push.models import Gateway, GatewayResult, NotificationDescriptor, ProviderCredential
from pushhub.infra.push.gateways.base import GatewayAdapter

# auth_token lives a flat 24 hours
TOKEN_LIFETIME = timedelta(hours=24)


def oppo_sign(app_key: str, timestamp_ms: int, master_secret: str) -> str:
    return hashlib.sha256(f"{app_key}{timestamp_ms}{master_secret}".encode()).hexdigest()


class OppoAdapter(GatewayAdapter):
    """SHA-256 signed timestamp challenge for a session token, batch send."""

    gateway = Gateway.OPPO
    uses_credential_cache = True

    def __init__(self, client, credentials, app_key: str, master_secret: str, base_url: str):
        super().__init__(client, credentials)
        self.app_key = app_key
        self.master_secret = master_secret
        self.base_url = base_url.rstrip("/")

    async def acquire_credential(self) -> ProviderCredential:
        timestamp = int(time.time() * 1000)
        body = await self._post_json(
            f"{self.base_url}/server/v1/auth",
            json={
                "app_key": self.app_key,
                "timestamp": timestamp,
                "sign": oppo_sign(self.app_key, timestamp, self.master_secret),
            },
        )
        if body.get("code") != 0:
            raise AuthFailure(self.gateway.value, body.get("message") or str(body))
        return ProviderCredential(
            gateway=self.gateway,
            token=body["data"]["auth_token"],
            expires_at=utc_now() + TOKEN_LIFETIME,
        )

    async def _send(self, tokens: list[str], descriptor: NotificationDescriptor) -> GatewayResult:
        auth_token = await self.credential()
        body = await self._post_json(
            f"{self.base_url}/server/v1/message/notification/unicast",
            json=format_oppo(descriptor, tokens),
            headers={"auth_token": auth_token},
        )
        if body.get("code") != 0:
            raise GatewayRejected(self.gateway.value, body.get("message") or str(body))
        return GatewayResult(
            gateway=self.gateway,
            success=True,
            message_id=(body.get("data") or {}).get("message_id"),
            response=body,
        )
