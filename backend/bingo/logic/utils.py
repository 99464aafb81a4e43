"""Clock and identifier helpers shared by the reducers."""

import time
import uuid


def now_ms() -> int:
    """Wall-clock time in integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex[:16]}"
