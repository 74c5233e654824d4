# adslots/services/capacity/__init__.py
"""
Capacity module.

Ledger: live slot counts per sellable location (derived, never stored)
Availability: city aggregates (cached in Redis) and admission checks
"""

from .config import CapacityConfig, get_capacity_config
from .ledger import LocationCapacity, get_location_capacities
from .availability import (
    CapacityCheckResult,
    CityAvailability,
    check_capacity,
    get_city_availability,
)
from .cache_store import AvailabilityCache
from .invalidator import invalidate_availability_cache

__all__ = [
    "CapacityConfig",
    "get_capacity_config",
    "LocationCapacity",
    "get_location_capacities",
    "CapacityCheckResult",
    "CityAvailability",
    "check_capacity",
    "get_city_availability",
    "AvailabilityCache",
    "invalidate_availability_cache",
]
