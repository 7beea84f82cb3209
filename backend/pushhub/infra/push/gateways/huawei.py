"""Huawei Push Kit (Android) adapter."""
from datetime import timedelta

from pushhub.domain.common.errors import AuthFailure, GatewayRejected
from pushhub.domain.common.types import utc_now
from pushhub.domain.push.formatter import format_huawei
from pushhub.domain.push.models import Gateway, GatewayResult, NotificationDescriptor, ProviderCredential
from pushhub.infra.push.gateways.base import GatewayAdapter

# 80000000 = success, 80100000 = accepted with some invalid tokens
SUCCESS_CODES = {"80000000", "80100000"}


class HuaweiAdapter(GatewayAdapter):
    """OAuth2 client-credentials bearer token, batch send."""

    gateway = Gateway.HUAWEI
    uses_credential_cache = True

    def __init__(self, client, credentials, app_id: str, app_secret: str, base_url: str, oauth_url: str):
        super().__init__(client, credentials)
        self.app_id = app_id
        self.app_secret = app_secret
        self.base_url = base_url.rstrip("/")
        self.oauth_url = oauth_url

    async def acquire_credential(self) -> ProviderCredential:
        body = await self._post_json(
            self.oauth_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.app_id,
                "client_secret": self.app_secret,
            },
        )
        token = body.get("access_token")
        if not token:
            raise AuthFailure(self.gateway.value, body.get("error_description") or body.get("error") or "no access_token")
        expires_in = int(body.get("expires_in", 3600))
        return ProviderCredential(
            gateway=self.gateway,
            token=token,
            expires_at=utc_now() + timedelta(seconds=expires_in),
        )

    async def _send(self, tokens: list[str], descriptor: NotificationDescriptor) -> GatewayResult:
        access_token = await self.credential()
        body = await self._post_json(
            f"{self.base_url}/v1/{self.app_id}/messages:send",
            json=format_huawei(descriptor, tokens),
            headers={"Authorization": f"Bearer {access_token}"},
        )
        code = str(body.get("code", "80000000"))
        if code not in SUCCESS_CODES:
            raise GatewayRejected(self.gateway.value, f"{code} {body.get('msg', '')}".strip())
        return GatewayResult(
            gateway=self.gateway,
            success=True,
            message_id=body.get("msg_id") or body.get("requestId"),
            response=body,
        )
