from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

BUSY_WINDOWS_TTL_SECONDS = 5 * 60
FREE_SLOTS_TTL_SECONDS = 60


@dataclass
class CacheEntry:
    key: str
    data: Any
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


class CalendarCache:
    """In-process TTL cache for calendar query results.

    Entries expire lazily: a stale entry is evicted the next time it is read.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @staticmethod
    def key(kind: str, params: Mapping[str, Any]) -> str:
        return f"{kind}:{json.dumps(params, sort_keys=True, separators=(',', ':'), default=str)}"

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry.data

    def set(self, key: str, data: Any, ttl: float) -> None:
        self._entries[key] = CacheEntry(key=key, data=data, timestamp=self._clock(), ttl=ttl)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        return {"size": len(self._entries), "entries": list(self._entries)}

    def __len__(self) -> int:
        return len(self._entries)
