"""
Thread-safe in-memory cache with per-entry expiry.
"""

import threading
import time
from typing import Any, Dict, Optional


class TTLCache:
    """Thread-safe in-memory cache with TTL."""

    def __init__(self, default_ttl: float = 3600, clock=time.monotonic):
        self._store: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.default_ttl = default_ttl

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._store.get(key)
            if item and item['expires'] > self._clock():
                return item['value']
            if item:
                del self._store[key]
            return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._store[key] = {'value': value, 'expires': self._clock() + (ttl or self.default_ttl)}

    def invalidate(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._store.clear()
            else:
                self._store.pop(key, None)

    def stats(self) -> dict:
        with self._lock:
            now = self._clock()
            alive = sum(1 for v in self._store.values() if v['expires'] > now)
            return {'total_keys': len(self._store), 'alive': alive}

    def __len__(self) -> int:
        return self.stats()['alive']
