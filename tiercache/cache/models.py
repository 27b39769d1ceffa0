"""
Data model for the tiered cache.

Pydantic models for cache entries, configuration, statistics and the
health report, plus the eviction policy enum.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class CachePolicy(str, Enum):
    """Eviction policy applied when the memory tier is over capacity."""

    LRU = "lru"
    FIFO = "fifo"
    LFU = "lfu"


class CacheEntry(BaseModel):
    """A single entry held in the memory tier.

    Attributes:
        key: Cache key (unique within the store).
        value: JSON-serialized payload.
        created_at: Epoch seconds when the entry was written.
        ttl_seconds: Lifetime in seconds, already resolved against the
            configured default.
        hit_count: Number of successful reads served from this entry.
        approx_size_bytes: UTF-8 length of ``value``.
    """

    key: str
    value: str
    created_at: float = Field(default_factory=time.time)
    ttl_seconds: int = Field(default=0, ge=0)
    hit_count: int = Field(default=0, ge=0)
    approx_size_bytes: int = Field(default=0, ge=0)


class RemoteConfig(BaseModel):
    """Connection descriptor for the remote (Redis) tier.

    Attributes:
        host: Redis host name.
        port: Redis port.
        password: Optional credentials.
        db: Logical database index.
        socket_timeout_seconds: Upper bound for any single remote call.
    """

    host: str = "localhost"
    port: int = Field(default=6379, ge=1, le=65535)
    password: Optional[str] = None
    db: int = Field(default=0, ge=0)
    socket_timeout_seconds: float = Field(default=0.5, gt=0)


class CacheConfig(BaseModel):
    """Configuration for a :class:`~tiercache.cache.tiered.TieredCache`.

    Attributes:
        enabled: When ``False`` reads always miss and writes are dropped.
        default_ttl_seconds: TTL used when ``set`` gets none (or 0).
        max_entries: Hard capacity of the memory tier.
        policy: Eviction policy for the memory tier.
        remote: Optional remote tier; ``None`` means memory only.
        warmup_workers: Maximum concurrent loaders during warmup.
    """

    enabled: bool = True
    default_ttl_seconds: int = Field(default=300, ge=0)
    max_entries: int = Field(default=1000, ge=1)
    policy: CachePolicy = CachePolicy.LRU
    remote: Optional[RemoteConfig] = None
    warmup_workers: int = Field(default=8, ge=1)


class CacheStats(BaseModel):
    """Point-in-time cache statistics.

    Attributes:
        hits: Reads answered from either tier.
        misses: Reads answered by neither tier (expired entries included).
        evictions: Entries removed to satisfy ``max_entries``.
        size: Current number of entries in the memory tier.
        approx_memory_bytes: Sum of entry sizes in the memory tier.
        hit_rate: ``hits / (hits + misses)``, 0.0 if no reads yet.
    """

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    approx_memory_bytes: int = 0
    hit_rate: float = 0.0


class HealthStatus(str, Enum):
    """Health classification, ordered from best to worst."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthReport(BaseModel):
    """Result of :meth:`TieredCache.health_check`.

    Attributes:
        status: Most severe status across all checks.
        details: ``memory``, ``performance`` and ``remote`` sections.
    """

    status: HealthStatus
    details: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
