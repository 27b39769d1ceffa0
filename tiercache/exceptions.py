"""
tiercache exception hierarchy.

All custom exceptions inherit from TierCacheException so callers can
catch a single base type when they want a broad safety net.
"""


class TierCacheException(Exception):
    """Base exception for all tiercache errors."""


class ConfigurationError(TierCacheException, ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


class SerializationError(TierCacheException, TypeError):
    """Raised when a value cannot be serialized for storage."""


class RemoteUnavailableError(TierCacheException):
    """Raised by a remote store when it cannot be reached or times out.

    The tiered cache always recovers from this locally; it never
    propagates to callers of :class:`~tiercache.cache.tiered.TieredCache`.
    """
