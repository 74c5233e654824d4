# adslots/services/capacity/ledger.py
"""
Capacity ledger: live slot counts per sellable location.

Nothing is persisted as a counter. Every read derives the count from
placement and contract state, so it can never drift.

SELLABLE location:
    status = 'active' AND ready_for_ads = true AND (city OR region_code set)

LIVE placement:
    is_active
    AND (start_date IS NULL OR start_date <= today)
    AND (end_date IS NULL OR end_date >= today)
    AND contract signed (signed_at set OR status IN ('signed', 'active'))
    AND contract not cancelled

Capacity is pooled per location across all of its screens.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from ...errors import CapacityExceeded
from ...models.tables import (
    CapacityReservations,
    Contracts,
    Locations,
    Placements,
    Screens,
)
from ...utils.clock import utcnow
from .config import CapacityConfig, get_capacity_config


@dataclass(frozen=True)
class LocationCapacity:
    location_id: int
    name: str
    city_code: str
    city_label: str
    region_code: Optional[str]
    active_count: int
    reserved_count: int
    has_space: bool
    available_slots: int

    @property
    def is_bookable(self) -> bool:
        """Has a slot left after live placements and other requests' holds."""
        return self.available_slots > 0


def normalize_city(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def effective_city(location: Locations) -> str:
    """City label, falling back to the region code."""
    return (location.city or "").strip() or (location.region_code or "").strip()


def live_placement_conditions(today: date) -> list:
    return [
        Placements.is_active.is_(True),
        or_(Placements.start_date.is_(None), Placements.start_date <= today),
        or_(Placements.end_date.is_(None), Placements.end_date >= today),
        Contracts.status != "cancelled",
        or_(
            Contracts.signed_at.is_not(None),
            Contracts.status.in_(["signed", "active"]),
        ),
    ]


def count_live_placements(db: Session, today: Optional[date] = None) -> dict[int, int]:
    """LIVE placement count per location id."""
    today = today or utcnow().date()
    rows = (
        db.query(Screens.location_id, func.count(Placements.id))
        .join(Placements, Placements.screen_id == Screens.id)
        .join(Contracts, Placements.contract_id == Contracts.id)
        .filter(*live_placement_conditions(today))
        .group_by(Screens.location_id)
        .all()
    )
    return {location_id: count for location_id, count in rows}


def count_active_reservations(
    db: Session,
    now: Optional[datetime] = None,
    exclude_request_id: Optional[int] = None,
) -> dict[int, int]:
    """Active, unexpired slot holds per location id."""
    now = now or utcnow()
    query = (
        db.query(CapacityReservations.location_id, func.count(CapacityReservations.id))
        .filter(
            CapacityReservations.status == "active",
            CapacityReservations.expires_at > now,
        )
    )
    if exclude_request_id is not None:
        query = query.filter(CapacityReservations.waitlist_request_id != exclude_request_id)
    rows = query.group_by(CapacityReservations.location_id).all()
    return {location_id: count for location_id, count in rows}


def sellable_locations(
    db: Session,
    cities: Optional[Iterable[str]] = None,
    lock: bool = False,
) -> list[Locations]:
    """
    Sellable locations, optionally limited to city codes.

    With lock=True the rows are selected FOR UPDATE (ordered by id, so
    concurrent lockers always take them in the same order).
    """
    query = (
        db.query(Locations)
        .filter(
            Locations.status == "active",
            Locations.ready_for_ads.is_(True),
            or_(
                and_(Locations.city.is_not(None), Locations.city != ""),
                and_(Locations.region_code.is_not(None), Locations.region_code != ""),
            ),
        )
        .order_by(Locations.id)
    )
    if cities:
        wanted = sorted({normalize_city(c) for c in cities})
        query = query.filter(city_key_expression().in_(wanted))
    if lock:
        query = query.with_for_update()
    return query.all()


def city_key_expression():
    """SQL counterpart of normalize_city(effective_city(location))."""
    return func.lower(func.coalesce(
        func.nullif(func.trim(Locations.city), ""),
        func.trim(Locations.region_code),
    ))


def get_location_capacities(
    db: Session,
    cities: Optional[Iterable[str]] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    lock: bool = False,
    exclude_request_id: Optional[int] = None,
    config: Optional[CapacityConfig] = None,
) -> list[LocationCapacity]:
    """
    Capacity view of every sellable location.

    Args:
        db: Database session
        cities: Limit to these city codes (lower-cased city names)
        today: Date used for the LIVE window (default: today)
        now: Timestamp used for reservation expiry (default: utcnow)
        lock: Lock the location rows FOR UPDATE for the rest of the transaction
        exclude_request_id: Ignore holds owned by this waitlist request
        config: Capacity configuration

    Returns:
        One LocationCapacity per sellable location, ordered by location id
    """
    config = config or get_capacity_config()
    now = now or utcnow()
    locations = sellable_locations(db, cities=cities, lock=lock)
    if not locations:
        return []

    live_counts = count_live_placements(db, today or now.date())
    reserved_counts = count_active_reservations(db, now, exclude_request_id)
    ceiling = config.max_ads_per_location

    result = []
    for loc in locations:
        active = live_counts.get(loc.id, 0)
        reserved = reserved_counts.get(loc.id, 0)
        label = effective_city(loc)
        result.append(LocationCapacity(
            location_id=loc.id,
            name=loc.name,
            city_code=normalize_city(label),
            city_label=label,
            region_code=loc.region_code,
            active_count=active,
            reserved_count=reserved,
            has_space=active < ceiling,
            available_slots=max(0, ceiling - active - reserved),
        ))
    return result


def ensure_room(
    db: Session,
    additions: dict[int, int],
    today: Optional[date] = None,
    config: Optional[CapacityConfig] = None,
) -> None:
    """
    Check that adding LIVE placements keeps every location under the ceiling.

    Locks the affected location rows for the rest of the transaction.

    Raises:
        CapacityExceeded
    """
    config = config or get_capacity_config()
    wanted = {location_id: n for location_id, n in additions.items() if n > 0}
    if not wanted:
        return
    db.query(Locations.id).filter(Locations.id.in_(list(wanted))).order_by(Locations.id).with_for_update().all()
    live = count_live_placements(db, today or utcnow().date())
    for location_id in sorted(wanted):
        if live.get(location_id, 0) + wanted[location_id] > config.max_ads_per_location:
            raise CapacityExceeded(
                location_id=location_id,
                active_count=live.get(location_id, 0),
                ceiling=config.max_ads_per_location,
            )
