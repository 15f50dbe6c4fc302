"""API usage reported by the Sforce-Limit-Info response header.

Passive only: the counter records what the server says, it never throttles.
"""
from __future__ import annotations

import threading
from typing import Dict, Optional

LIMIT_HEADER = "Sforce-Limit-Info"


def parse_limit_info(value: str | None) -> Optional[tuple[int, int]]:
    """
    Parse "api-usage=123/15000" (or bare "123/15000") into (used, limit).
    Only the first two fields after the '=' matter. Returns None if unparsable.
    """
    if not value:
        return None
    raw = value.split("=", 1)[1] if "=" in value else value
    # Multiple entries are comma-separated; api-usage comes first.
    raw = raw.split(",", 1)[0]
    parts = raw.strip().split("/")
    if len(parts) < 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


class UsageCounter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.used: Optional[int] = None
        self.limit: Optional[int] = None

    def record(self, header_value: str | None) -> bool:
        """Overwrite both values from a header. Missing or bad headers leave the counter as is."""
        parsed = parse_limit_info(header_value)
        if parsed is None:
            return False
        with self._lock:
            self.used, self.limit = parsed
        return True

    def snapshot(self) -> Dict[str, Optional[int]]:
        with self._lock:
            return {"used": self.used, "limit": self.limit}
