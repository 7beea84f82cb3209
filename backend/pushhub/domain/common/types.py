"""Common domain types."""
from datetime import datetime, timezone
from uuid import uuid4


def generate_id() -> str:
    """Generate a new UUID string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def preview(value: str, length: int = 8) -> str:
    """Shorten a device id or token for logs and API responses."""
    return f"{value[:length]}..."
