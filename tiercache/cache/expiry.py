"""Lazy TTL expiry check for memory-tier entries."""

from tiercache.cache.models import CacheEntry


def is_expired(entry: CacheEntry, now: float) -> bool:
    """Return ``True`` once *entry* has outlived its TTL at time *now*."""
    return now - entry.created_at > entry.ttl_seconds
