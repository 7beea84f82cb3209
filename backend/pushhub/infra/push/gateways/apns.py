"""Apple Push Notification service (iOS) adapter.

APNs addresses one device per request over HTTP/2, so tokens are sent
individually and reported per token. Authentication is a provider JWT signed
locally with the team's ES256 key; Apple accepts it for an hour and rejects
refreshes more often than every 20 minutes, so it is reused for 50 minutes.
"""
import logging
from datetime import timedelta

import httpx
import jwt

from pushhub.domain.common.errors import AuthFailure
from pushhub.domain.common.types import preview, utc_now
from pushhub.domain.push.formatter import format_apns
from pushhub.domain.push.models import (
    Gateway,
    GatewayResult,
    NotificationDescriptor,
    ProviderCredential,
    TokenResult,
)
from pushhub.infra.push.gateways.base import GatewayAdapter

logger = logging.getLogger(__name__)

TOKEN_LIFETIME = timedelta(hours=1)

ERROR_REASONS = {
    400: "Bad request",
    403: "Authentication error",
    405: "Wrong HTTP method",
    410: "Device token is no longer active",
    413: "Notification payload too large",
    429: "Too many requests",
    500: "Internal server error",
    503: "Service unavailable",
}


def parse_apns_error(response: httpx.Response) -> str:
    base = ERROR_REASONS.get(response.status_code, f"HTTP {response.status_code}")
    try:
        body = response.json()
    except ValueError:
        body = None
    reason = body.get("reason") if isinstance(body, dict) else None
    return f"{base}: {reason}" if reason else base


class ApnsAdapter(GatewayAdapter):
    """Per-token sends with a cached provider JWT."""

    gateway = Gateway.APNS
    uses_credential_cache = True
    batch = False
    credential_buffer_seconds = 600

    def __init__(
        self,
        client,
        credentials,
        signing_key: str,
        key_id: str,
        team_id: str,
        bundle_id: str,
        base_url: str,
    ):
        super().__init__(client, credentials)
        self.signing_key = signing_key
        self.key_id = key_id
        self.team_id = team_id
        self.bundle_id = bundle_id
        self.base_url = base_url.rstrip("/")

    async def acquire_credential(self) -> ProviderCredential:
        issued_at = utc_now()
        try:
            token = jwt.encode(
                {"iss": self.team_id, "iat": int(issued_at.timestamp())},
                self.signing_key,
                algorithm="ES256",
                headers={"kid": self.key_id},
            )
        except (jwt.PyJWTError, ValueError) as e:
            raise AuthFailure(self.gateway.value, f"could not sign provider token: {e}") from e
        return ProviderCredential(gateway=self.gateway, token=token, expires_at=issued_at + TOKEN_LIFETIME)

    async def _send(self, tokens: list[str], descriptor: NotificationDescriptor) -> GatewayResult:
        provider_token = await self.credential()
        payload = format_apns(descriptor)
        headers = {
            "authorization": f"bearer {provider_token}",
            "apns-topic": self.bundle_id,
            "apns-push-type": "alert",
            "apns-priority": "10",
        }

        results = []
        for token in tokens:
            results.append(await self._send_one(token, payload, headers))

        succeeded = sum(1 for r in results if r.success)
        failed = len(results) - succeeded
        logger.info("APNs push sent: total=%d success=%d failed=%d", len(tokens), succeeded, failed)
        return GatewayResult(
            gateway=self.gateway,
            success=succeeded > 0,
            error=None if succeeded else (results[0].error if results else "no tokens"),
            error_code=None if succeeded else "gateway_rejected",
            results=results,
            response={"total": len(tokens), "success": succeeded, "failed": failed},
        )

    async def _send_one(self, token: str, payload: dict, headers: dict) -> TokenResult:
        # A failure here is confined to this token's result
        try:
            response = await self._request(
                "POST", f"{self.base_url}/3/device/{token}", json=payload, headers=headers
            )
            if response.status_code == 200:
                return TokenResult(token=token, success=True, message_id=response.headers.get("apns-id"))
            error = parse_apns_error(response)
            logger.warning("APNs rejected token %s: %s", preview(token), error)
            if response.status_code == 403 and self.credentials is not None:
                await self.credentials.invalidate(self.gateway)
        except Exception as e:
            logger.warning("APNs send failed for token %s: %s", preview(token), e)
            return TokenResult(token=token, success=False, error=str(e) or type(e).__name__)
        return TokenResult(token=token, success=False, error=error)
