"""
In-process TTL cache for list queries, invalidated by key prefix on writes.
"""
import time
from typing import Any, Dict, Iterable, Optional, Tuple

from assetdesk.config import settings

APPROVAL_CACHE_PREFIX = "approvals:list"


def make_approval_cache_key(
    status: Optional[str] = None,
    department: Optional[str] = None,
    requested_by: Optional[str] = None,
    asset_ids: Optional[Iterable[str]] = None,
) -> str:
    """Normalized key, so equivalent filters ("Ops" vs " ops") share an entry."""
    ids = sorted(str(a).lower() for a in asset_ids or [])
    parts = [
        status or "all",
        (department or "").strip().lower() or "all",
        (requested_by or "").strip().lower() or "all",
        ",".join(ids) or "all",
    ]
    return f"{APPROVAL_CACHE_PREFIX}:{'|'.join(parts)}"


class ListCache:
    def __init__(self, ttl_seconds: Optional[float] = None, clock=time.monotonic):
        self.ttl_seconds = settings.approval_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[key] = (self._clock(), value)

    def invalidate_prefix(self, prefix: str) -> int:
        stale = [key for key in self._entries if key.startswith(prefix)]
        for key in stale:
            del self._entries[key]
        return len(stale)
