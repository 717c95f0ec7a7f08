"""DateTime utilities for the project."""

from datetime import datetime, timezone
import time


def utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Get current timestamp in ISO format."""
    return utc_now().isoformat()


def now_ms() -> int:
    """Current time as integer milliseconds since epoch (record timestamps)."""
    return int(time.time() * 1000)


def ms_to_iso(ms: int) -> str:
    """Convert epoch milliseconds to an ISO timestamp."""
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.isoformat()
