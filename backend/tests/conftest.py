"""Pytest configuration and shared fixtures for the push backend tests."""
import time
from typing import Callable, Optional

import httpx
import pytest

from pushhub.domain.push.models import NotificationDescriptor
from pushhub.infra.push.credentials import CredentialCache
from pushhub.infra.push.registry import DeviceTokenRegistry


class InMemoryStore:
    """KeyValueStore double with Redis TTL semantics (strings and hashes)."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.expiry: dict[str, float] = {}
        self.calls: list[tuple] = []

    def _expired(self, key: str) -> bool:
        deadline = self.expiry.get(key)
        if deadline is not None and time.monotonic() >= deadline:
            self.values.pop(key, None)
            self.hashes.pop(key, None)
            self.expiry.pop(key, None)
            return True
        return False

    def ttl(self, key: str) -> Optional[float]:
        deadline = self.expiry.get(key)
        return None if deadline is None else deadline - time.monotonic()

    async def get(self, key):
        self.calls.append(("get", key))
        self._expired(key)
        return self.values.get(key)

    async def set(self, key, value, ttl):
        self.calls.append(("set", key))
        self.values[key] = value
        self.expiry[key] = time.monotonic() + ttl

    async def delete(self, key):
        self.calls.append(("delete", key))
        existed = key in self.values or key in self.hashes
        self.values.pop(key, None)
        self.hashes.pop(key, None)
        self.expiry.pop(key, None)
        return int(existed)

    async def hset(self, key, field, value):
        self.calls.append(("hset", key, field))
        self._expired(key)
        self.hashes.setdefault(key, {})[field] = value

    async def hgetall(self, key):
        self.calls.append(("hgetall", key))
        self._expired(key)
        return dict(self.hashes.get(key, {}))

    async def hdel(self, key, *fields):
        self.calls.append(("hdel", key, *fields))
        self._expired(key)
        current = self.hashes.get(key, {})
        removed = 0
        for field in fields:
            if current.pop(field, None) is not None:
                removed += 1
        if key in self.hashes and not current:
            # Redis drops a hash once its last field is gone
            del self.hashes[key]
            self.expiry.pop(key, None)
        return removed

    async def expire(self, key, ttl):
        self.calls.append(("expire", key))
        if key in self.values or key in self.hashes:
            self.expiry[key] = time.monotonic() + ttl

    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("set", "delete", "hset", "hdel", "expire")]


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def registry(store) -> DeviceTokenRegistry:
    return DeviceTokenRegistry(store)


@pytest.fixture
def credentials(store) -> CredentialCache:
    return CredentialCache(store)


@pytest.fixture
def descriptor() -> NotificationDescriptor:
    return NotificationDescriptor(
        title="New message",
        body="Alice sent you a photo",
        data={"type": "message", "messageId": "m-1"},
    )


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an httpx.AsyncClient whose requests are answered by `handler`."""

    def build(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return build
