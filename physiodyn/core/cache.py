"""
Kernel cache owned by a simulation session.

Pharmacology kernels only depend on the drug, the dose and the subject's
physiology, so they are generated once per distinct key and reused across
runs. The cache is bounded; overflow evicts silently through an injectable
policy (least recently used by default).
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, Hashable, Optional

from .constants import KERNEL_CACHE_SIZE

LOGGER = logging.getLogger(__name__)


class EvictionPolicy:
    """Decides the order entries are kept in and which one goes on overflow."""

    def on_access(self, entries: OrderedDict, key: Hashable):
        pass

    def victim(self, entries: OrderedDict) -> Hashable:
        return next(iter(entries))


class LRUPolicy(EvictionPolicy):
    """Evict the least recently used entry."""

    def on_access(self, entries: OrderedDict, key: Hashable):
        entries.move_to_end(key)


class FIFOPolicy(EvictionPolicy):
    """Evict the oldest insertion, ignoring reads."""


class KernelCache:
    """Thread-safe bounded cache for generated kernels."""

    def __init__(self, max_size: int = KERNEL_CACHE_SIZE, policy: Optional[EvictionPolicy] = None):
        """
        Args:
            max_size: Maximum number of entries (>= 1)
            policy: Eviction policy (default LRUPolicy)
        """
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self.max_size = max_size
        self.policy = policy or LRUPolicy()
        self._entries: OrderedDict = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: Hashable) -> Optional[Any]:
        """Cached value or None."""
        with self._lock:
            if key not in self._entries:
                self._misses += 1
                return None
            self.policy.on_access(self._entries, key)
            self._hits += 1
            return self._entries[key]

    def put(self, key: Hashable, value: Any):
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            self._entries[key] = value
            while len(self._entries) > self.max_size:
                victim = self.policy.victim(self._entries)
                del self._entries[victim]
                self._evictions += 1
                LOGGER.debug("Kernel cache evicted %r", victim)

    def get_or_create(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        """Return the cached value for key, building and storing it on a miss."""
        with self._lock:
            value = self.get(key)
            if value is not None:
                LOGGER.debug("Kernel cache hit %r", key)
                return value
            LOGGER.debug("Kernel cache miss %r", key)
            value = factory()
            self.put(key, value)
            return value

    def invalidate(self, key: Hashable):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": self._hits / total if total > 0 else 0.0,
            }
