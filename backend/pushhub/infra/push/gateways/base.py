"""Gateway adapter base class."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from pushhub.domain.common.errors import AuthFailure, GatewayRejected, NetworkError, PushError
from pushhub.domain.push.models import Gateway, GatewayResult, NotificationDescriptor, ProviderCredential
from pushhub.infra.push.credentials import CredentialCache

logger = logging.getLogger(__name__)


class GatewayAdapter(ABC):
    """Sends one notification to a list of tokens on a single gateway.

    `send` never raises: every failure comes back as a GatewayResult with
    success=False, so the dispatcher always gets a well-formed result.
    """

    gateway: Gateway
    # Batch gateways take the whole token list in one request
    batch: bool = True
    # Gateways with short-lived auth set this and implement acquire_credential
    uses_credential_cache: bool = False
    # Seconds before expiry at which this gateway's credential is refreshed (None = cache default)
    credential_buffer_seconds: Optional[int] = None

    def __init__(self, client: httpx.AsyncClient, credentials: Optional[CredentialCache] = None):
        self.client = client
        self.credentials = credentials

    @property
    def platform(self) -> str:
        return self.gateway.platform

    async def acquire_credential(self) -> ProviderCredential:
        """Run the gateway's credential exchange."""
        raise AuthFailure(self.gateway.value, "gateway has no credential exchange")

    async def credential(self) -> str:
        """Current credential token from the cache."""
        if self.credentials is None:
            raise AuthFailure(self.gateway.value, "credential cache not configured")
        cred = await self.credentials.get(self.gateway)
        return cred.token

    async def send(self, tokens: list[str], descriptor: NotificationDescriptor) -> GatewayResult:
        """Deliver to `tokens`, converting every error into a failed result."""
        try:
            result = await self._send(tokens, descriptor)
        except PushError as e:
            logger.error("%s push failed: %s", self.gateway.value, e.message)
            return GatewayResult.failure(self.gateway, e.message, e.code)
        except Exception as e:
            logger.exception("%s push failed unexpectedly", self.gateway.value)
            return GatewayResult.failure(self.gateway, str(e) or type(e).__name__, "unexpected_error")
        if result.success:
            logger.info(
                "%s push sent: tokens=%d message_id=%s",
                self.gateway.value,
                len(tokens),
                result.message_id,
            )
        else:
            logger.warning("%s push not delivered: %s", self.gateway.value, result.error)
        return result

    @abstractmethod
    async def _send(self, tokens: list[str], descriptor: NotificationDescriptor) -> GatewayResult:
        """Gateway-specific delivery. May raise PushError subclasses."""
        raise NotImplementedError

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Issue a request, mapping transport failures to NetworkError."""
        try:
            return await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(self.gateway.value, f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(self.gateway.value, str(e) or type(e).__name__) from e

    async def _post_json(self, url: str, **kwargs) -> dict[str, Any]:
        """POST and decode a JSON object body; non-2xx raises NetworkError."""
        response = await self._request("POST", url, **kwargs)
        if response.status_code in (401, 403) and self.credentials is not None:
            await self.credentials.invalidate(self.gateway)
        if response.is_error:
            raise NetworkError(
                self.gateway.value,
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return self._decode(response)

    def _decode(self, response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise GatewayRejected(self.gateway.value, f"invalid JSON response: {e}") from e
        if not isinstance(body, dict):
            raise GatewayRejected(self.gateway.value, f"unexpected response: {body!r}")
        return body
