"""
Explicit memoization wrapper around a :class:`TieredCache`.

``memoize(cache, func)`` returns a callable that consults the cache
before calling *func* and stores non-``None`` results afterwards.  The
cache instance is passed in explicitly; there is no hidden module-level
cache.
"""

import functools
import logging
from typing import Any, Callable, Optional, TypeVar

from tiercache.cache.keys import derive_key
from tiercache.cache.tiered import TieredCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


def memoize(
    cache: TieredCache,
    func: Callable[..., T],
    *,
    ttl_seconds: Optional[int] = None,
    key_prefix: Optional[str] = None,
    key_builder: Optional[Callable[..., str]] = None,
    condition: Optional[Callable[..., bool]] = None,
) -> Callable[..., T]:
    """Wrap *func* so its results are served from *cache*.

    Args:
        cache: Cache to read from and write to.
        func: The computation to memoize.
        ttl_seconds: TTL for stored results (configured default if ``None``).
        key_prefix: Operation name used for key derivation; defaults to
            ``func.__qualname__``.
        key_builder: Custom ``(*args, **kwargs) -> key`` function.
        condition: ``(*args, **kwargs) -> bool``; when it returns
            ``False`` the call bypasses the cache entirely.

    Returns:
        The wrapped callable.
    """
    operation = key_prefix or func.__qualname__

    def build_key(*args: Any, **kwargs: Any) -> str:
        if key_builder is not None:
            return key_builder(*args, **kwargs)
        return derive_key(operation, kwargs, func.__name__, {"args": list(args)})

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        if condition is not None and not condition(*args, **kwargs):
            return func(*args, **kwargs)

        key = build_key(*args, **kwargs)
        cached = cache.get(key, default=_MISSING)
        if cached is not _MISSING:
            return cached

        result = func(*args, **kwargs)
        if result is not None:
            cache.set(key, result, ttl_seconds)
        else:
            logger.debug("Memoized call returned None; not cached", extra={"cache_key": key})
        return result

    wrapper.cache_key = build_key  # type: ignore[attr-defined]
    return wrapper
