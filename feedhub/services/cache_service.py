import logging
import threading
import time
from collections import OrderedDict

logger = logging.getLogger(__name__)

_MISSING = object()


class TTLCache:
    """
    Bounded in-memory cache with per-entry TTL and LRU eviction.

    Entries past their TTL read as misses and are dropped on access.
    Callers must treat it purely as an optimization.
    """

    def __init__(self, max_size=2000, default_ttl=1800, clock=time.monotonic):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries = OrderedDict()  # key -> (value, stored_at, ttl)
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key, default=None):
        with self._lock:
            entry = self._entries.get(key, _MISSING)
            if entry is _MISSING:
                self._misses += 1
                return default

            value, stored_at, ttl = entry
            if self._clock() - stored_at > ttl:
                del self._entries[key]
                self._misses += 1
                return default

            self._entries.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key, value, ttl=None):
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            self._entries[key] = (value, self._clock(), ttl)
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Cache evicted {evicted}")

    def delete(self, key):
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def invalidate_by_pattern(self, pattern):
        """Drop every key containing `pattern`. Returns how many were dropped."""
        with self._lock:
            doomed = [k for k in self._entries if pattern in k]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug(f"Cache invalidated {len(doomed)} keys matching '{pattern}'")
        return len(doomed)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def stats(self):
        with self._lock:
            return {
                'size': len(self._entries),
                'max_size': self.max_size,
                'default_ttl': self.default_ttl,
                'hits': self._hits,
                'misses': self._misses,
                'evictions': self._evictions,
            }

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, key):
        return self.get(key, _MISSING) is not _MISSING
