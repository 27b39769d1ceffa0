"""Tiered result cache (memory tier + optional remote tier)."""

from tiercache.cache.keys import derive_key
from tiercache.cache.memoize import memoize
from tiercache.cache.models import (
    CacheConfig,
    CacheEntry,
    CachePolicy,
    CacheStats,
    HealthReport,
    HealthStatus,
    RemoteConfig,
)
from tiercache.cache.remote import RedisRemoteStore, RemoteStore
from tiercache.cache.store import EntryStore
from tiercache.cache.tiered import TieredCache, WarmupItem, WarmupResult

__all__ = [
    "CacheConfig",
    "CacheEntry",
    "CachePolicy",
    "CacheStats",
    "EntryStore",
    "HealthReport",
    "HealthStatus",
    "RedisRemoteStore",
    "RemoteConfig",
    "RemoteStore",
    "TieredCache",
    "WarmupItem",
    "WarmupResult",
    "derive_key",
    "memoize",
]
