"""Credential cache for gateway authentication material.

Each gateway registers an acquirer: a coroutine function performing that
gateway's exchange (OAuth client credentials, signed timestamp challenge,
locally minted JWT) and returning a ProviderCredential. Results are stored
under ``<gateway>_access_token`` with a TTL of remaining lifetime minus the
safety buffer.

Concurrent misses for one gateway are not serialized: both callers acquire,
the last write wins. Acquisition is idempotent and cheap next to sends.
"""
import logging
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from pushhub.domain.common.errors import AuthFailure
from pushhub.domain.common.types import utc_now
from pushhub.domain.push.models import Gateway, ProviderCredential
from pushhub.domain.push.repositories import KeyValueStore

logger = logging.getLogger(__name__)

CredentialAcquirer = Callable[[], Awaitable[ProviderCredential]]

DEFAULT_BUFFER_SECONDS = 300


def credential_key(gateway: Gateway) -> str:
    return f"{gateway.value}_access_token"


class CredentialCache:
    """Caches one live credential per gateway."""

    def __init__(self, store: KeyValueStore, buffer_seconds: int = DEFAULT_BUFFER_SECONDS):
        self.store = store
        self.buffer_seconds = buffer_seconds
        self._acquirers: dict[Gateway, CredentialAcquirer] = {}
        self._buffers: dict[Gateway, int] = {}

    def register(
        self,
        gateway: Gateway,
        acquirer: CredentialAcquirer,
        buffer_seconds: Optional[int] = None,
    ) -> None:
        """Register the acquisition exchange for a gateway (optionally with its own buffer)."""
        self._acquirers[gateway] = acquirer
        if buffer_seconds is not None:
            self._buffers[gateway] = buffer_seconds

    def buffer_for(self, gateway: Gateway) -> int:
        return self._buffers.get(gateway, self.buffer_seconds)

    async def get(self, gateway: Gateway) -> ProviderCredential:
        """Return a live credential, acquiring a fresh one on miss or staleness."""
        buffer = self.buffer_for(gateway)
        cached = await self._load(gateway)
        if cached and cached.is_live(buffer):
            return cached

        acquirer = self._acquirers.get(gateway)
        if acquirer is None:
            raise AuthFailure(gateway.value, "no credential acquirer configured")
        try:
            credential = await acquirer()
        except AuthFailure:
            raise
        except Exception as e:
            logger.error("Failed to get %s access token: %s", gateway.value, e)
            raise AuthFailure(gateway.value, str(e)) from e

        ttl = int((credential.expires_at - utc_now()).total_seconds()) - buffer
        if ttl > 0:
            await self.store.set(credential_key(gateway), credential.model_dump_json(), ttl)
        else:
            logger.warning(
                "%s credential lifetime is inside the %ss safety buffer; not caching",
                gateway.value,
                buffer,
            )
        logger.debug("Acquired %s credential (cache ttl %ss)", gateway.value, max(ttl, 0))
        return credential

    async def invalidate(self, gateway: Gateway) -> None:
        """Drop the cached credential so the next get() re-acquires."""
        await self.store.delete(credential_key(gateway))

    async def _load(self, gateway: Gateway) -> Optional[ProviderCredential]:
        raw = await self.store.get(credential_key(gateway))
        if not raw:
            return None
        try:
            return ProviderCredential.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning("Discarding malformed cached %s credential: %s", gateway.value, e)
            return None
