"""
In-memory entry store with pluggable eviction.

Holds the key -> :class:`CacheEntry` map plus the bookkeeping each
policy needs:

* **LRU** -- a recency list (``OrderedDict``), most recently used last.
* **FIFO** -- the entry dict's own insertion order.  Overwriting a key
  keeps its original position.
* **LFU** -- per-entry ``hit_count``; the victim is the first entry with
  the minimum count in insertion order (full linear scan).

The store is not thread-safe on its own; the owning cache serialises
every call under a single lock.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from tiercache.cache.expiry import is_expired
from tiercache.cache.models import CacheEntry, CachePolicy

logger = logging.getLogger(__name__)


class EntryStore:
    """Bounded key -> entry map.

    Args:
        max_entries: Capacity bound.  ``0`` disables eviction.
        policy: Eviction policy.
    """

    def __init__(self, max_entries: int, policy: CachePolicy = CachePolicy.LRU) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must not be negative")
        self._max_entries = max_entries
        self._policy = CachePolicy(policy)
        self._entries: Dict[str, CacheEntry] = {}
        self._recency: "OrderedDict[str, None]" = OrderedDict()
        self._memory_bytes: int = 0

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert(self, entry: CacheEntry) -> Optional[str]:
        """Add or replace *entry*, evicting at most one victim if over capacity.

        Args:
            entry: The entry to store under ``entry.key``.

        Returns:
            The evicted key, or ``None`` if nothing was evicted.
        """
        previous = self._entries.get(entry.key)
        if previous is not None:
            self._memory_bytes -= previous.approx_size_bytes
        self._entries[entry.key] = entry
        self._memory_bytes += entry.approx_size_bytes
        self._touch(entry.key)

        if self._max_entries and len(self._entries) > self._max_entries:
            return self.evict_one()
        return None

    def lookup(self, key: str, now: float) -> Optional[CacheEntry]:
        """Return the live entry for *key*, recording the read.

        An entry that has expired at *now* is removed and ``None`` is
        returned; expiry is not an eviction.

        Args:
            key: Cache key.
            now: Current epoch seconds.

        Returns:
            The entry (with ``hit_count`` incremented), or ``None``.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if is_expired(entry, now):
            self.remove(key)
            logger.debug("Cache entry expired", extra={"cache_key": key})
            return None
        entry.hit_count += 1
        self._touch(key)
        return entry

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for *key* without touching any bookkeeping."""
        return self._entries.get(key)

    def remove(self, key: str) -> bool:
        """Remove *key*.  Returns ``True`` if it was present."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._recency.pop(key, None)
        self._memory_bytes -= entry.approx_size_bytes
        return True

    def evict_one(self) -> Optional[str]:
        """Remove one victim chosen by the policy.

        Returns:
            The evicted key, or ``None`` when the store is empty or
            eviction is disabled (``max_entries == 0``).
        """
        if not self._max_entries or not self._entries:
            return None
        victim = self._select_victim()
        if victim is None:
            return None
        self.remove(victim)
        logger.debug(
            "Cache entry evicted",
            extra={"cache_key": victim, "policy": self._policy.value},
        )
        return victim

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        self._recency.clear()
        self._memory_bytes = 0

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def keys(self) -> List[str]:
        """Keys in insertion order."""
        return list(self._entries)

    def recency_order(self) -> List[str]:
        """Keys from least to most recently used (LRU only, else empty)."""
        return list(self._recency)

    @property
    def policy(self) -> CachePolicy:
        return self._policy

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def memory_bytes(self) -> int:
        """Sum of ``approx_size_bytes`` over all entries."""
        return self._memory_bytes

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _touch(self, key: str) -> None:
        if self._policy is CachePolicy.LRU:
            self._recency[key] = None
            self._recency.move_to_end(key)

    def _select_victim(self) -> Optional[str]:
        if self._policy is CachePolicy.LRU:
            return next(iter(self._recency), None)
        if self._policy is CachePolicy.FIFO:
            return next(iter(self._entries), None)

        victim: Optional[str] = None
        min_hits: Optional[int] = None
        for key, entry in self._entries.items():
            if min_hits is None or entry.hit_count < min_hits:
                min_hits = entry.hit_count
                victim = key
        return victim
