"""Task id generation."""
from __future__ import annotations

import secrets
import time
from typing import Optional

from app.config import settings


def generate_task_id(prefix: Optional[str] = None) -> str:
    """Millisecond timestamp plus a random suffix, e.g. ``t-1760781234567-042913``."""
    prefix = prefix or settings.TASK_ID_PREFIX
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.randbelow(1_000_000):06d}"
