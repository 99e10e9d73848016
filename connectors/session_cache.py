"""
In-memory cache for OAuth handshake sessions.

Entries expire a fixed time after insertion regardless of access, and the
cache is capacity-bounded: when full, the least recently used live entry is
evicted.  Expired and never-inserted keys look identical to callers.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Tuple

from cachetools import TLRUCache

from connectors.schemas import HandshakeSession

logger = logging.getLogger(__name__)

# Default session TTL in seconds (15 minutes)
DEFAULT_SESSION_TTL = 900

# Default cache size (number of concurrent handshakes)
DEFAULT_MAX_SESSIONS = 1000


def _time_to_use(_key: str, entry: Tuple[HandshakeSession, float], now: float) -> float:
    return now + entry[1]


class SessionCache:
    """
    TTL + LRU bounded store for ``HandshakeSession`` objects.

    All operations are atomic per key; ``pop`` is the single way to claim a
    session so two concurrent callbacks can never both obtain it.
    """

    def __init__(
        self,
        maxsize: int = DEFAULT_MAX_SESSIONS,
        ttl: float = DEFAULT_SESSION_TTL,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._cache: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_time_to_use, timer=timer)
        self._lock = threading.Lock()
        self._timer = timer
        self._ttl = ttl
        self._maxsize = maxsize

        logger.info("Initialized OAuth session cache: maxsize=%d, ttl=%ss", maxsize, ttl)

    @property
    def default_ttl(self) -> float:
        return self._ttl

    def clock(self) -> float:
        """Current time on the cache timer (expiry times use this clock)."""
        return self._timer()

    def put(self, key: str, session: HandshakeSession, ttl: Optional[float] = None) -> None:
        """Insert or overwrite ``key``; it expires ``ttl`` seconds from now."""
        ttl = self._ttl if ttl is None else ttl
        if ttl <= 0:
            return
        with self._lock:
            self._cache[key] = (session, ttl)

    def get(self, key: str) -> Optional[HandshakeSession]:
        with self._lock:
            entry = self._cache.get(key)
        return entry[0] if entry is not None else None

    def pop(self, key: str) -> Optional[HandshakeSession]:
        """Atomically remove and return the session for ``key``."""
        with self._lock:
            entry = self._cache.pop(key, None)
        return entry[0] if entry is not None else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)
