# adslots/services/capacity/availability.py
"""
Admission control over the capacity ledger.

- City availability: per-city aggregate of sellable locations (cached in Redis)
- Capacity check: does a package fit into the requested cities right now?

A location counts as "with space" when it still has a bookable slot:
live placements plus other requests' active holds stay below the ceiling.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from redis import Redis
from sqlalchemy.orm import Session

from ...errors import ValidationError
from ...utils.clock import utcnow
from .cache_store import AvailabilityCache
from .config import CapacityConfig, get_capacity_config
from .ledger import LocationCapacity, get_location_capacities, normalize_city

logger = logging.getLogger(__name__)

NEXT_CHECK_MINUTES = 30

REASON_INSUFFICIENT_REGION = "insufficient_locations_in_region"
REASON_CAPACITY_FULL = "capacity_full"
REASON_NO_SELLABLE = "no_sellable_locations"


@dataclass(frozen=True)
class CityAvailability:
    code: str
    label: str
    screens_total: int
    screens_with_space: int
    screens_full: int


@dataclass
class CapacityCheckResult:
    is_available: bool
    available_screens: int
    required_screens: int
    top_reasons: list[str]
    next_check_at: datetime
    locations: list[LocationCapacity] = field(default_factory=list)

    def bookable_locations(self) -> list[LocationCapacity]:
        return [loc for loc in self.locations if loc.is_bookable]


def normalize_admission_input(
    package_type: str,
    target_region_codes: Optional[Iterable[str]],
    config: Optional[CapacityConfig] = None,
) -> tuple[str, list[str]]:
    """
    Validate package type and target cities.

    Returns:
        (PACKAGE_TYPE, [normalized city codes]), duplicates removed, order kept

    Raises:
        ValidationError: unknown package or blank city code
    """
    config = config or get_capacity_config()
    package = (package_type or "").strip().upper()
    if package not in config.package_screens:
        allowed = ", ".join(sorted(config.package_screens))
        raise ValidationError(f"Onbekend pakket '{package_type}'. Kies uit: {allowed}.")

    codes: list[str] = []
    for raw in target_region_codes or []:
        if not isinstance(raw, str) or not raw.strip():
            raise ValidationError("Regiocodes mogen niet leeg zijn.")
        code = normalize_city(raw)
        if code not in codes:
            codes.append(code)
    return package, codes


def check_capacity(
    db: Session,
    package_type: str,
    target_region_codes: Optional[Iterable[str]] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    lock: bool = False,
    exclude_request_id: Optional[int] = None,
    config: Optional[CapacityConfig] = None,
) -> CapacityCheckResult:
    """
    Check whether a package fits into the requested cities.

    Reads straight from the ledger, never from the cache: admission decisions
    must see the latest committed state.

    Args:
        db: Database session
        package_type: SINGLE | TRIPLE | TEN | CUSTOM
        target_region_codes: City codes; empty means "anywhere"
        today: Date for the LIVE window
        now: Timestamp for hold expiry
        lock: Lock the matching location rows (claim confirmation)
        exclude_request_id: Ignore holds owned by this waitlist request
        config: Capacity configuration

    Returns:
        CapacityCheckResult
    """
    config = config or get_capacity_config()
    now = now or utcnow()
    package, cities = normalize_admission_input(package_type, target_region_codes, config)
    required = config.required_screens(package)

    matching = get_location_capacities(
        db,
        cities=cities or None,
        today=today,
        now=now,
        lock=lock,
        exclude_request_id=exclude_request_id,
        config=config,
    )
    available = sum(1 for loc in matching if loc.is_bookable)
    is_available = available >= required

    top_reasons: list[str] = []
    if not is_available:
        if not matching:
            top_reasons.append(REASON_NO_SELLABLE)
        if cities and available < required:
            top_reasons.append(REASON_INSUFFICIENT_REGION)
        if any(not loc.is_bookable for loc in matching):
            top_reasons.append(REASON_CAPACITY_FULL)

    logger.info(
        f"Capacity check: package={package} cities={cities} required={required} "
        f"available={available} matching={len(matching)} "
        f"decision={'PROCEED' if is_available else 'WAITLIST'}"
    )

    return CapacityCheckResult(
        is_available=is_available,
        available_screens=available,
        required_screens=required,
        top_reasons=top_reasons,
        next_check_at=now + timedelta(minutes=NEXT_CHECK_MINUTES),
        locations=matching,
    )


def pick_locations(
    candidates: list[LocationCapacity],
    count: int,
    preferred_ids: Iterable[int] = (),
) -> list[LocationCapacity]:
    """
    Choose `count` bookable locations.

    Locations already held by the requester come first, then the emptiest
    ones (most available slots), ties broken by id.
    """
    preferred = set(preferred_ids)
    bookable = [loc for loc in candidates if loc.is_bookable]
    bookable.sort(key=lambda loc: (loc.location_id not in preferred, -loc.available_slots, loc.location_id))
    return bookable[:count]


def aggregate_cities(capacities: list[LocationCapacity]) -> list[CityAvailability]:
    """Aggregate location capacity per city, most space first."""
    by_city: dict[str, dict] = {}
    for loc in capacities:
        if not loc.city_code:
            continue
        entry = by_city.setdefault(loc.city_code, {
            "code": loc.city_code,
            "label": loc.city_label,
            "screens_total": 0,
            "screens_with_space": 0,
            "screens_full": 0,
        })
        entry["screens_total"] += 1
        if loc.is_bookable:
            entry["screens_with_space"] += 1
        else:
            entry["screens_full"] += 1
        if len(entry["label"]) < len(loc.city_label):
            entry["label"] = loc.city_label

    cities = [CityAvailability(**entry) for entry in by_city.values()]
    cities.sort(key=lambda c: (-c.screens_with_space, c.label.lower()))
    return cities


def get_city_availability(
    db: Session,
    redis: Redis,
    config: Optional[CapacityConfig] = None,
) -> list[CityAvailability]:
    """
    City availability, served from cache when fresh.

    The cache is bounded-stale (TTL) and dropped synchronously on every
    capacity-changing commit.
    """
    config = config or get_capacity_config()
    cache = AvailabilityCache(redis, config)

    cached = cache.get()
    if cached is not None:
        return [CityAvailability(**entry) for entry in cached]

    cities = aggregate_cities(get_location_capacities(db, config=config))
    cache.store([asdict(c) for c in cities])
    return cities


def get_availability_stats(db: Session, redis: Redis) -> dict:
    """Network-wide totals for monitoring."""
    cities = get_city_availability(db, redis)
    return {
        "total_sellable_screens": sum(c.screens_total for c in cities),
        "total_screens_with_space": sum(c.screens_with_space for c in cities),
        "total_screens_full": sum(c.screens_full for c in cities),
        "cities_with_zero_space": [c.label for c in cities if c.screens_with_space == 0],
    }
