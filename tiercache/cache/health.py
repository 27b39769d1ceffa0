"""
Health classification for the tiered cache.

Three independent checks -- capacity usage, hit rate and remote
reachability -- each yield a status; the report carries the most severe.
"""

from typing import Any, Dict, List

from tiercache.cache.models import CacheStats, HealthReport, HealthStatus

USAGE_UNHEALTHY = 0.9
USAGE_DEGRADED = 0.8
HIT_RATE_UNHEALTHY = 0.3
HIT_RATE_DEGRADED = 0.5

_SEVERITY: List[HealthStatus] = [
    HealthStatus.HEALTHY,
    HealthStatus.DEGRADED,
    HealthStatus.UNHEALTHY,
]


def _worst(*statuses: HealthStatus) -> HealthStatus:
    return max(statuses, key=_SEVERITY.index)


def usage_status(usage: float) -> HealthStatus:
    """Classify memory-tier capacity usage (``size / max_entries``)."""
    if usage > USAGE_UNHEALTHY:
        return HealthStatus.UNHEALTHY
    if usage > USAGE_DEGRADED:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def hit_rate_status(hit_rate: float) -> HealthStatus:
    """Classify the hit rate."""
    if hit_rate < HIT_RATE_UNHEALTHY:
        return HealthStatus.UNHEALTHY
    if hit_rate < HIT_RATE_DEGRADED:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def classify_health(
    stats: CacheStats,
    max_entries: int,
    remote_configured: bool,
    remote_connected: bool,
) -> HealthReport:
    """Build a :class:`HealthReport` from a statistics snapshot.

    Args:
        stats: Statistics snapshot.
        max_entries: Memory-tier capacity.
        remote_configured: Whether a remote tier is attached.
        remote_connected: Result of the latest reachability check.

    Returns:
        The report; a configured but unreachable remote tier forces
        ``unhealthy``.
    """
    usage = stats.size / max_entries if max_entries > 0 else 0.0
    details: Dict[str, Dict[str, Any]] = {
        "memory": {
            "size": stats.size,
            "max_entries": max_entries,
            "usage": usage,
            "approx_memory_bytes": stats.approx_memory_bytes,
        },
        "performance": {
            "hit_rate": stats.hit_rate,
            "hits": stats.hits,
            "misses": stats.misses,
            "evictions": stats.evictions,
        },
        "remote": {
            "configured": remote_configured,
            "connected": remote_connected,
        },
    }

    remote = HealthStatus.HEALTHY
    if remote_configured and not remote_connected:
        remote = HealthStatus.UNHEALTHY

    status = _worst(usage_status(usage), hit_rate_status(stats.hit_rate), remote)
    return HealthReport(status=status, details=details)
