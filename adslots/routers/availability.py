# adslots/routers/availability.py
"""
Availability API endpoints.

GET  /availability/cities      - city aggregates (cached, bounded-stale)
GET  /availability/stats       - network totals
POST /capacity/check           - admission check for a package (never cached)
POST /availability/invalidate  - drop the cache (admin endpoint)
"""

from fastapi import APIRouter, Depends
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import get_redis
from ..schemas.availability import (
    AvailabilityStats,
    CacheInvalidateResponse,
    CapacityCheckRequest,
    CapacityCheckResponse,
    CityAvailabilityRead,
)
from ..services.capacity import check_capacity, get_city_availability, invalidate_availability_cache
from ..services.capacity.availability import get_availability_stats

router = APIRouter(tags=["availability"])


@router.get("/availability/cities", response_model=list[CityAvailabilityRead])
def list_city_availability(
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    return get_city_availability(db, redis)


@router.get("/availability/stats", response_model=AvailabilityStats)
def availability_stats(
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    return get_availability_stats(db, redis)


@router.post("/capacity/check", response_model=CapacityCheckResponse)
def capacity_check(data: CapacityCheckRequest, db: Session = Depends(get_db)):
    """Does the package fit into the requested cities right now?"""
    return check_capacity(db, data.package_type, data.target_region_codes)


@router.post("/availability/invalidate", response_model=CacheInvalidateResponse)
def invalidate_cache(redis: Redis = Depends(get_redis)):
    return CacheInvalidateResponse(deleted_keys=invalidate_availability_cache(redis))
