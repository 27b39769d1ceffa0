"""
Two-tier result cache.

Orchestrates reads and writes across an optional remote tier (Redis)
and the bounded in-memory :class:`EntryStore`.  The remote tier is
consulted first on reads; any remote failure is logged and the cache
falls back to memory (fail-open).  The memory tier is always written so
its eviction policy bounds the local footprint.

Also provides bulk invalidation by substring and concurrent warmup.
"""

import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, Field

from tiercache.cache.health import classify_health
from tiercache.cache.models import CacheConfig, CacheEntry, CacheStats, HealthReport
from tiercache.cache.remote import RedisRemoteStore, RemoteStore, escape_glob
from tiercache.cache.store import EntryStore
from tiercache.exceptions import RemoteUnavailableError, SerializationError

logger = logging.getLogger(__name__)

# Errors from a remote tier that are absorbed by the fail-open path.
_REMOTE_ERRORS = (RemoteUnavailableError, OSError, UnicodeDecodeError)


def _check_round_trip(key: str, value: Any) -> None:
    """Reject containers that JSON would silently reshape on the way back.

    Raises:
        SerializationError: For tuples, sets or mappings with non-``str`` keys.
    """
    if isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, str):
                raise SerializationError(
                    f"Value for cache key '{key}' has a non-string mapping key: {k!r}"
                )
            _check_round_trip(key, v)
    elif isinstance(value, list):
        for item in value:
            _check_round_trip(key, item)
    elif isinstance(value, (tuple, set, frozenset)):
        raise SerializationError(
            f"Value for cache key '{key}' contains a {type(value).__name__}; use a list"
        )


class WarmupItem(BaseModel):
    """One key to preload during :meth:`TieredCache.warmup`.

    Attributes:
        key: Cache key to populate.
        loader: Zero-argument callable producing the value.
        ttl_seconds: Optional TTL; the configured default if omitted.
    """

    key: str
    loader: Callable[[], Any]
    ttl_seconds: Optional[int] = Field(default=None, ge=0)


class WarmupResult(BaseModel):
    """Outcome of a warmup run.

    Attributes:
        loaded: Keys whose loader succeeded and were stored.
        failed: Key -> error message for loaders (or writes) that failed.
    """

    loaded: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)


class TieredCache:
    """Bounded in-memory cache with an optional fail-open remote tier.

    Thread-safe: the entry store and counters are guarded by one lock
    that is never held across remote I/O.

    Args:
        config: Cache configuration.  Built from settings if omitted.
        remote: Remote store to use instead of one built from
            ``config.remote``.
        clock: Source of epoch seconds (testing).
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        remote: Optional[RemoteStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if config is None:
            from tiercache.config import cache_config_from_settings

            config = cache_config_from_settings()
        self._config = config
        self._clock = clock
        self._lock = threading.Lock()
        self._store = EntryStore(config.max_entries, config.policy)

        if remote is None and config.remote is not None:
            remote = RedisRemoteStore(config.remote)
        self._remote = remote
        self._remote_available = remote is not None

        self._hits: int = 0
        self._misses: int = 0
        self._evictions: int = 0

        logger.info(
            "TieredCache initialised",
            extra={
                "enabled": config.enabled,
                "policy": config.policy.value,
                "max_entries": config.max_entries,
                "remote": remote is not None,
            },
        )

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Look up *key*, remote tier first.

        Args:
            key: Cache key.
            default: Returned on a miss.

        Returns:
            The cached value, or *default* on a miss.
        """
        if not self._config.enabled:
            return default

        if self._remote is not None:
            payload = self._remote_get(key)
            if payload is not None:
                try:
                    value = json.loads(payload)
                except ValueError:
                    logger.warning(
                        "Remote cache payload is not valid JSON",
                        extra={"cache_key": key},
                    )
                else:
                    with self._lock:
                        self._hits += 1
                    logger.debug("Remote cache hit", extra={"cache_key": key})
                    return value

        now = self._clock()
        with self._lock:
            entry = self._store.lookup(key, now)
            if entry is None:
                self._misses += 1
                return default
            self._hits += 1
            payload = entry.value
            hit_count = entry.hit_count

        logger.debug(
            "Cache hit",
            extra={"cache_key": key, "hit_count": hit_count},
        )
        return json.loads(payload)

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store *value* under *key* in both tiers.

        Args:
            key: Cache key (must not be empty).
            value: JSON-serializable value.
            ttl_seconds: Lifetime; ``None`` or 0 uses the configured default.

        Raises:
            ValueError: If the key is empty or the TTL negative.
            SerializationError: If *value* cannot be serialized; nothing
                is stored in either tier.
        """
        if not key:
            raise ValueError("Cache key must not be empty")
        if ttl_seconds is not None and ttl_seconds < 0:
            raise ValueError("ttl_seconds must not be negative")

        payload = self._serialize(key, value)
        if not self._config.enabled:
            return

        ttl = ttl_seconds or self._config.default_ttl_seconds
        entry = CacheEntry(
            key=key,
            value=payload,
            created_at=self._clock(),
            ttl_seconds=ttl,
            approx_size_bytes=len(payload.encode("utf-8")),
        )
        with self._lock:
            evicted = self._store.insert(entry)
            if evicted is not None:
                self._evictions += 1
        logger.debug("Cache set", extra={"cache_key": key, "ttl_seconds": ttl})

        if self._remote is not None:
            try:
                self._remote.set_with_expiry(key, payload, max(ttl, 1))
                self._remote_available = True
            except _REMOTE_ERRORS as exc:
                self._remote_failed("set", exc, key)

    def delete(self, key: str) -> bool:
        """Remove *key* from both tiers.

        Returns:
            ``True`` if either tier held the key.
        """
        with self._lock:
            removed = self._store.remove(key)

        if self._remote is not None:
            try:
                removed = self._remote.delete(key) > 0 or removed
                self._remote_available = True
            except _REMOTE_ERRORS as exc:
                self._remote_failed("delete", exc, key)

        if removed:
            logger.debug("Cache entry deleted", extra={"cache_key": key})
        return removed

    def clear(self) -> None:
        """Drop every entry in both tiers and reset the counters."""
        with self._lock:
            count = len(self._store)
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

        if self._remote is not None:
            try:
                self._remote.flush()
                self._remote_available = True
            except _REMOTE_ERRORS as exc:
                self._remote_failed("flush", exc)

        logger.info("Cache cleared", extra={"entries_removed": count})

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate_by_pattern(self, pattern: str) -> int:
        """Remove every key containing *pattern* from both tiers.

        Args:
            pattern: Substring to match (literal, not a glob).

        Returns:
            Number of distinct keys removed.

        Raises:
            ValueError: If *pattern* is empty.
        """
        if not pattern:
            raise ValueError("Invalidation pattern must not be empty")

        with self._lock:
            matched = [k for k in self._store.keys() if pattern in k]
            for key in matched:
                self._store.remove(key)
        removed = set(matched)

        if self._remote is not None:
            try:
                remote_keys = self._remote.keys_matching(f"*{escape_glob(pattern)}*")
                self._remote.delete(*remote_keys)
                removed.update(remote_keys)
                self._remote_available = True
            except _REMOTE_ERRORS as exc:
                self._remote_failed("invalidate", exc)

        logger.info(
            "Cache entries invalidated by pattern",
            extra={"pattern": pattern, "count": len(removed)},
        )
        return len(removed)

    def invalidate_by_user(self, user_id: str) -> int:
        """Remove every key scoped to *user_id* (``user:<id>``)."""
        return self.invalidate_by_pattern(f"user:{user_id}")

    def invalidate_by_type(self, type_name: str) -> int:
        """Remove every key scoped to *type_name* (``type:<name>``)."""
        return self.invalidate_by_pattern(f"type:{type_name}")

    # ------------------------------------------------------------------
    # Warmup
    # ------------------------------------------------------------------

    def warmup(
        self, items: Iterable[Union[WarmupItem, Dict[str, Any]]]
    ) -> WarmupResult:
        """Run every loader concurrently and cache the successes.

        A failing loader is logged and recorded; it never cancels its
        siblings or fails the call.  Returns once every loader finished.

        Args:
            items: :class:`WarmupItem` objects or equivalent dicts.

        Returns:
            A :class:`WarmupResult` listing loaded and failed keys.
        """
        batch = [
            item if isinstance(item, WarmupItem) else WarmupItem.model_validate(item)
            for item in items
        ]
        result = WarmupResult()
        if not batch:
            return result

        workers = min(self._config.warmup_workers, len(batch))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="tiercache-warmup"
        ) as executor:
            futures = {executor.submit(self._warm_one, item): item.key for item in batch}
            for future in as_completed(futures):
                key = futures[future]
                try:
                    future.result()
                    result.loaded.append(key)
                except Exception as exc:
                    result.failed[key] = str(exc)
                    logger.warning(
                        "Cache warmup failed for key",
                        extra={"cache_key": key, "error": str(exc)},
                    )

        logger.info(
            "Cache warmup finished",
            extra={"loaded": len(result.loaded), "failed": len(result.failed)},
        )
        return result

    # ------------------------------------------------------------------
    # Statistics & health
    # ------------------------------------------------------------------

    def get_statistics(self) -> CacheStats:
        """Return a consistent snapshot of the cache counters."""
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._store),
                approx_memory_bytes=self._store.memory_bytes,
                hit_rate=self._hits / total if total > 0 else 0.0,
            )

    def health_check(self) -> HealthReport:
        """Classify cache health; pings the remote tier if configured."""
        if self._remote is not None:
            try:
                self._remote_available = bool(self._remote.ping())
            except _REMOTE_ERRORS as exc:
                self._remote_failed("ping", exc)
        report = classify_health(
            self.get_statistics(),
            max_entries=self._config.max_entries,
            remote_configured=self._remote is not None,
            remote_connected=self._remote_available,
        )
        logger.debug("Cache health checked", extra={"status": report.status.value})
        return report

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def remote_available(self) -> bool:
        """Whether the last remote call (or ping) succeeded."""
        return self._remote_available

    def keys(self) -> List[str]:
        """Memory-tier keys in insertion order."""
        with self._lock:
            return self._store.keys()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the remote connection and drop the memory tier."""
        try:
            if self._remote is not None:
                self._remote.close()
        except _REMOTE_ERRORS as exc:
            self._remote_failed("close", exc)
        finally:
            with self._lock:
                self._store.clear()
        logger.info("TieredCache closed")

    def __enter__(self) -> "TieredCache":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _serialize(key: str, value: Any) -> str:
        _check_round_trip(key, value)
        try:
            return json.dumps(value, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise SerializationError(
                f"Value for cache key '{key}' is not serializable: {exc}"
            ) from exc

    def _remote_get(self, key: str) -> Optional[str]:
        try:
            payload = self._remote.get(key)  # type: ignore[union-attr]
        except _REMOTE_ERRORS as exc:
            self._remote_failed("get", exc, key)
            return None
        self._remote_available = True
        return payload

    def _remote_failed(self, operation: str, exc: Exception, key: Optional[str] = None) -> None:
        self._remote_available = False
        logger.warning(
            "Remote cache %s failed; continuing with memory tier",
            operation,
            extra={"cache_key": key, "error": str(exc)},
        )

    def _warm_one(self, item: WarmupItem) -> None:
        value = item.loader()
        self.set(item.key, value, item.ttl_seconds)
