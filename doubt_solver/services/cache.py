"""In-memory response cache with time-to-live checked on read.

Keys are a prefix fingerprint: the lowercased query truncated to its first
50 characters, joined with the subject. Two long questions that share that
prefix under one subject map to the same entry and the second is answered
from the first one's solution. This is a known approximation that keeps the
hit rate high for near-duplicate submissions.

Nothing is ever swept. An expired entry reads as a miss and stays in the
table until the next ``put`` for that key overwrites it.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("doubts.cache")

KEY_PREFIX_CHARS = 50
DEFAULT_TTL_SECONDS = 30 * 60


def cache_key(query: str, subject: str) -> str:
    return f"{subject}_{query.lower()[:KEY_PREFIX_CHARS]}"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    stored_at: float


class ResponseCache:
    # TODO: bound the table with an LRU cap once traffic makes memory growth visible.

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.ttl_seconds:
            logger.debug("Cache entry expired: %s", key)
            return None
        return entry.payload

    def put(self, key: str, payload: Any) -> None:
        self._entries[key] = CacheEntry(key=key, payload=payload, stored_at=self._clock())

    def __len__(self) -> int:
        return len(self._entries)
