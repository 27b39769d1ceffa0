"""
Remote (second) tier for the tiered cache.

Defines the :class:`RemoteStore` protocol the cache consumes and a
Redis-backed implementation.  Every call is bounded by the client's
socket timeout; connectivity problems surface as
:class:`~tiercache.exceptions.RemoteUnavailableError` so the cache can
fail open.
"""

import logging
from typing import Any, List, Optional, Protocol, runtime_checkable

import redis

from tiercache.cache.models import RemoteConfig
from tiercache.exceptions import RemoteUnavailableError

logger = logging.getLogger(__name__)


@runtime_checkable
class RemoteStore(Protocol):
    """Protocol for remote key-value backends.

    Implementations raise :class:`RemoteUnavailableError` when the
    backend cannot be reached or a call times out.
    """

    def get(self, key: str) -> Optional[str]:
        """Return the payload stored under *key*, or ``None``."""
        ...

    def set_with_expiry(self, key: str, payload: str, ttl_seconds: int) -> None:
        """Store *payload* under *key* for *ttl_seconds*."""
        ...

    def delete(self, *keys: str) -> int:
        """Delete *keys*; return how many existed."""
        ...

    def keys_matching(self, pattern: str) -> List[str]:
        """Return all keys matching a glob *pattern*."""
        ...

    def flush(self) -> None:
        """Remove every key in the backend's logical database."""
        ...

    def ping(self) -> bool:
        """Return ``True`` if the backend is reachable."""
        ...

    def close(self) -> None:
        """Release connections."""
        ...


def escape_glob(text: str) -> str:
    """Escape Redis glob metacharacters so *text* matches literally."""
    return "".join("\\" + ch if ch in "*?[]\\" else ch for ch in text)


class RedisRemoteStore:
    """Redis implementation of :class:`RemoteStore`.

    Args:
        config: Connection descriptor (host, port, credentials, db,
            socket timeout).
        _redis_client: Pre-built client (testing, e.g. fakeredis).
    """

    def __init__(
        self,
        config: Optional[RemoteConfig] = None,
        _redis_client: Optional[Any] = None,
    ) -> None:
        self._config = config or RemoteConfig()
        if _redis_client is not None:
            self._client = _redis_client
        else:
            self._client = redis.Redis(
                host=self._config.host,
                port=self._config.port,
                password=self._config.password,
                db=self._config.db,
                socket_timeout=self._config.socket_timeout_seconds,
                socket_connect_timeout=self._config.socket_timeout_seconds,
                decode_responses=True,
            )
        logger.info(
            "RedisRemoteStore initialised",
            extra={
                "host": self._config.host,
                "port": self._config.port,
                "db": self._config.db,
            },
        )

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except (redis.RedisError, UnicodeDecodeError) as exc:
            raise RemoteUnavailableError(f"Redis get failed: {exc}") from exc

    def set_with_expiry(self, key: str, payload: str, ttl_seconds: int) -> None:
        try:
            self._client.setex(key, ttl_seconds, payload)
        except redis.RedisError as exc:
            raise RemoteUnavailableError(f"Redis setex failed: {exc}") from exc

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(self._client.delete(*keys))
        except redis.RedisError as exc:
            raise RemoteUnavailableError(f"Redis delete failed: {exc}") from exc

    def keys_matching(self, pattern: str) -> List[str]:
        try:
            return list(self._client.scan_iter(match=pattern))
        except (redis.RedisError, UnicodeDecodeError) as exc:
            raise RemoteUnavailableError(f"Redis scan failed: {exc}") from exc

    def flush(self) -> None:
        try:
            self._client.flushdb()
        except redis.RedisError as exc:
            raise RemoteUnavailableError(f"Redis flushdb failed: {exc}") from exc

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as exc:
            logger.debug("Redis ping failed", extra={"error": str(exc)})
            return False

    def close(self) -> None:
        self._client.close()
