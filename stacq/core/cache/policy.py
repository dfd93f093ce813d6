"""Cache TTL presets (seconds) shared by feed, explore and profile reads."""

from __future__ import annotations


class CacheTTL:
    """Standard cache TTL values."""

    # Public, read-heavy data
    FEED = 60
    EXPLORE = 120
    COLLECTIONS = 120
    CARDS = 120
    SEARCH = 300

    # User-specific data
    USER_PROFILE = 30
    USER_SAVES = 30

    # Static/semi-static data
    METADATA = 3600
    RANKING = 60


__all__ = ["CacheTTL"]
