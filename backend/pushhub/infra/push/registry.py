"""Device token registry backed by one Redis hash per user.

Layout: ``user_device_tokens:<user_id>`` is a hash whose fields are
``<gateway>:<device_id>`` and whose values are JSON DeviceToken records.
Writes touch a single field, so concurrent registrations for different
devices of the same user never overwrite each other. The hash TTL is
refreshed on every write.
"""
import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from pushhub.domain.common.errors import ValidationError
from pushhub.domain.common.types import preview, utc_now
from pushhub.domain.push.models import DeviceToken, Gateway
from pushhub.domain.push.repositories import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "user_device_tokens"
DEFAULT_TTL_DAYS = 30


def registry_key(user_id: str) -> str:
    return f"{KEY_PREFIX}:{user_id}"


def device_field(gateway: Gateway, device_id: str) -> str:
    return f"{gateway.value}:{device_id}"


class DeviceTokenRegistry:
    """Per-user, per-gateway, per-device token registry."""

    def __init__(self, store: KeyValueStore, ttl_days: int = DEFAULT_TTL_DAYS):
        self.store = store
        self.ttl_seconds = ttl_days * 86400

    async def register(self, user_id: str, gateway: "str | Gateway", device_id: str, token: str) -> bool:
        """Register (or replace) the token for one device on one gateway."""
        gw = Gateway.parse(gateway)
        if not device_id or not token:
            raise ValidationError("device_id and token are required")
        record = DeviceToken(token=token, device_id=device_id, gateway=gw, updated_at=utc_now())
        key = registry_key(user_id)
        await self.store.hset(key, device_field(gw, device_id), record.model_dump_json(by_alias=True))
        await self.store.expire(key, self.ttl_seconds)
        logger.info(
            "Device token stored: user=%s gateway=%s device=%s",
            user_id,
            gw.value,
            preview(device_id),
        )
        return True

    async def remove(self, user_id: str, device_id: str, gateway: "Optional[str | Gateway]" = None) -> bool:
        """Remove a device from every gateway (or only `gateway`). False when nothing matched."""
        gateways = [Gateway.parse(gateway)] if gateway is not None else list(Gateway)
        key = registry_key(user_id)
        removed = await self.store.hdel(key, *(device_field(gw, device_id) for gw in gateways))
        if not removed:
            return False
        await self.store.expire(key, self.ttl_seconds)
        logger.info("Device token removed: user=%s device=%s", user_id, preview(device_id))
        return True

    async def list_tokens(self, user_id: str) -> dict[Gateway, list[DeviceToken]]:
        """Registered tokens grouped by gateway. Gateways without tokens are omitted."""
        raw = await self.store.hgetall(registry_key(user_id))
        grouped: dict[Gateway, list[DeviceToken]] = {}
        for field, value in raw.items():
            try:
                record = DeviceToken.model_validate_json(value)
            except PydanticValidationError as e:
                logger.warning("Skipping malformed device token %s for user %s: %s", field, user_id, e)
                continue
            grouped.setdefault(record.gateway, []).append(record)
        for records in grouped.values():
            records.sort(key=lambda r: r.updated_at)
        return {gw: grouped[gw] for gw in Gateway if gw in grouped}

    async def tokens_by_gateway(self, user_id: str) -> dict[Gateway, list[str]]:
        """Token strings grouped by gateway, as the dispatcher consumes them."""
        listed = await self.list_tokens(user_id)
        return {gw: [r.token for r in records] for gw, records in listed.items()}
