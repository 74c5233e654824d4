# adslots/services/capacity/invalidator.py
"""
Cache invalidation for city availability.

Triggers (call AFTER the commit, BEFORE answering the caller):
✓ Contract signed / cancelled / dates changed
✓ Placement created / (de)activated / dates changed
✓ Location activated / deactivated, ready_for_ads toggled
✓ Slot holds taken or released (invite, claim, grant consumed, expiry)

Does NOT trigger:
✗ Revenue share changes
✗ Waitlist entries created without holds
"""

from redis import Redis

from .cache_store import AvailabilityCache

CAPACITY_LOCATION_FIELDS = frozenset({"status", "ready_for_ads", "city", "region_code"})


def invalidate_availability_cache(redis: Redis) -> int:
    """
    Invalidate the city availability cache.

    Args:
        redis: Redis client

    Returns:
        Number of deleted cache keys
    """
    return AvailabilityCache(redis).invalidate()


def location_change_affects_capacity(changes: dict) -> bool:
    """Whether a location update touches any field capacity depends on."""
    return bool(CAPACITY_LOCATION_FIELDS & set(changes))
