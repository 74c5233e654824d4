# adslots/services/capacity/config.py
"""
Capacity configuration for admission control.
"""

from dataclasses import dataclass, field
from functools import lru_cache


PACKAGE_SCREENS: dict[str, int] = {
    "SINGLE": 1,
    "TRIPLE": 3,
    "TEN": 10,
    "CUSTOM": 1,
}


@dataclass(frozen=True)
class CapacityConfig:
    """
    Configuration for capacity and waitlist handling.

    Attributes:
        max_ads_per_location: Ceiling of LIVE placements per location,
                              pooled across all screens of the location
        cache_ttl_seconds: TTL of the city availability cache
        invite_expiry_hours: How long a claim invite stays valid
        claim_grant_ttl_minutes: Lifetime of the onboarding grant issued on claim
        sweep_lock_ttl_seconds: Expiry of the single-flight sweep lock
        package_screens: Package type → required number of locations
    """
    max_ads_per_location: int = 20
    cache_ttl_seconds: int = 45
    invite_expiry_hours: int = 48
    claim_grant_ttl_minutes: int = 30
    sweep_lock_ttl_seconds: int = 600
    package_screens: dict[str, int] = field(default_factory=lambda: dict(PACKAGE_SCREENS))

    def __post_init__(self):
        if self.max_ads_per_location < 1:
            raise ValueError(f"max_ads_per_location must be positive, got {self.max_ads_per_location}")

    def required_screens(self, package_type: str) -> int:
        """Number of locations a package needs. Raises KeyError for unknown packages."""
        return self.package_screens[package_type]


@lru_cache
def get_capacity_config() -> CapacityConfig:
    """Get capacity configuration (singleton)."""
    return CapacityConfig()
