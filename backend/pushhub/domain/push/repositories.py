"""Storage protocol used by the token registry and the credential cache."""
from typing import Optional, Protocol


class KeyValueStore(Protocol):
    """Key-value store with TTL and per-field hash operations (Redis semantics)."""

    async def get(self, key: str) -> Optional[str]:
        """Return the string value of key, or None."""
        ...

    async def set(self, key: str, value: str, ttl: int) -> None:
        """Set key to value, expiring after ttl seconds."""
        ...

    async def delete(self, key: str) -> int:
        """Delete key. Returns number of keys removed."""
        ...

    async def hset(self, key: str, field: str, value: str) -> None:
        """Set one hash field."""
        ...

    async def hgetall(self, key: str) -> dict[str, str]:
        """Return every field of a hash ({} when absent)."""
        ...

    async def hdel(self, key: str, *fields: str) -> int:
        """Delete hash fields. Returns number of fields removed."""
        ...

    async def expire(self, key: str, ttl: int) -> None:
        """Reset the key's TTL to ttl seconds."""
        ...
