"""tiercache: a tiered result cache with pluggable eviction and fail-open remote tier."""

__version__ = "1.0.0"
