# adslots/routers/inventory.py
# Capacity-changing commands from provider sync.
# Every command commits first, then drops the availability cache before answering.

from fastapi import APIRouter, Depends, HTTPException, status
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.tables import Contracts as DBContracts
from ..models.tables import Locations as DBLocations
from ..models.tables import Placements as DBPlacements
from ..models.tables import Screens as DBScreens
from ..redis_client import get_redis
from ..schemas.inventory import (
    ContractRead,
    ContractUpdate,
    LocationRead,
    LocationUpdate,
    PlacementCreate,
    PlacementRead,
    PlacementUpdate,
    ScreenRead,
    ScreenUpdate,
)
from ..services.capacity.invalidator import invalidate_availability_cache, location_change_affects_capacity
from ..services.capacity.ledger import ensure_room
from ..services.settlement.guards import ensure_contract_editable
from ..utils.clock import utcnow

router = APIRouter(tags=["inventory"])


def _in_window(start, end, today) -> bool:
    return (start is None or start <= today) and (end is None or end >= today)


def _contract_counts(contract: DBContracts) -> bool:
    """Signed (or active) and not cancelled."""
    return contract.status != "cancelled" and (
        contract.signed_at is not None or contract.status in ("signed", "active")
    )


def _is_live(is_active, start, end, contract: DBContracts, today) -> bool:
    return bool(is_active) and _contract_counts(contract) and _in_window(start, end, today)


# ──────────────────────────────────────────────────────────────────────────────
# Locations
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/locations/{id}", response_model=LocationRead)
def get_location(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBLocations, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.patch("/locations/{id}", response_model=LocationRead)
def update_location(
    id: int,
    data: LocationUpdate,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    obj = db.get(DBLocations, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")

    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(obj, field, value)

    db.commit()
    db.refresh(obj)

    # Revenue share and name do not change capacity
    if location_change_affects_capacity(changes):
        invalidate_availability_cache(redis)

    return obj


@router.patch("/screens/{id}", response_model=ScreenRead)
def update_screen(id: int, data: ScreenUpdate, db: Session = Depends(get_db)):
    # Name and allocation weight only; capacity is counted per location
    obj = db.get(DBScreens, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(obj, field, value)

    db.commit()
    db.refresh(obj)
    return obj


# ──────────────────────────────────────────────────────────────────────────────
# Contracts
# ──────────────────────────────────────────────────────────────────────────────

def _get_contract(db: Session, id: int) -> DBContracts:
    obj = db.query(DBContracts).filter(DBContracts.id == id).with_for_update().first()
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("/contracts/{id}/sign", response_model=ContractRead)
def sign_contract(
    id: int,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    obj = _get_contract(db, id)
    if obj.status == "cancelled":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Contract is cancelled")

    if obj.status == "draft" and obj.signed_at is None:
        # Placements of a draft contract go LIVE on signing
        today = utcnow().date()
        additions: dict[int, int] = {}
        rows = (
            db.query(DBPlacements, DBScreens.location_id)
            .join(DBScreens, DBPlacements.screen_id == DBScreens.id)
            .filter(DBPlacements.contract_id == obj.id, DBPlacements.is_active.is_(True))
            .all()
        )
        for placement, location_id in rows:
            if _in_window(placement.start_date, placement.end_date, today):
                additions[location_id] = additions.get(location_id, 0) + 1
        try:
            ensure_room(db, additions, today)
        except Exception:
            db.rollback()
            raise
        obj.status = "signed"
    obj.signed_at = obj.signed_at or utcnow()
    db.commit()
    db.refresh(obj)

    invalidate_availability_cache(redis)
    return obj


@router.post("/contracts/{id}/cancel", response_model=ContractRead)
def cancel_contract(
    id: int,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    obj = _get_contract(db, id)
    try:
        ensure_contract_editable(db, obj, {"status": "cancelled"})
    except Exception:
        db.rollback()
        raise

    obj.status = "cancelled"
    db.commit()
    db.refresh(obj)

    invalidate_availability_cache(redis)
    return obj


@router.patch("/contracts/{id}", response_model=ContractRead)
def update_contract(
    id: int,
    data: ContractUpdate,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    obj = _get_contract(db, id)
    changes = data.model_dump(exclude_unset=True)
    try:
        ensure_contract_editable(db, obj, changes)
    except Exception:
        db.rollback()
        raise

    for field, value in changes.items():
        setattr(obj, field, value)

    db.commit()
    db.refresh(obj)

    if {"start_date", "end_date"} & set(changes):
        invalidate_availability_cache(redis)
    return obj


# ──────────────────────────────────────────────────────────────────────────────
# Placements
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/placements", response_model=PlacementRead, status_code=status.HTTP_201_CREATED)
def create_placement(
    data: PlacementCreate,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    contract = db.get(DBContracts, data.contract_id)
    screen = db.get(DBScreens, data.screen_id)
    if not contract or not screen:
        raise HTTPException(status_code=404, detail="Contract or screen not found")

    today = utcnow().date()
    if _is_live(data.is_active, data.start_date, data.end_date, contract, today):
        try:
            ensure_room(db, {screen.location_id: 1}, today)
        except Exception:
            db.rollback()
            raise

    obj = DBPlacements(**data.model_dump())
    db.add(obj)
    db.commit()
    db.refresh(obj)

    invalidate_availability_cache(redis)
    return obj


@router.patch("/placements/{id}", response_model=PlacementRead)
def update_placement(
    id: int,
    data: PlacementUpdate,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    obj = db.get(DBPlacements, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")

    changes = data.model_dump(exclude_unset=True)

    # Reactivating or moving a placement into today is a new LIVE placement
    today = utcnow().date()
    after = {f: changes.get(f, getattr(obj, f)) for f in ("is_active", "start_date", "end_date")}
    was_live = _is_live(obj.is_active, obj.start_date, obj.end_date, obj.contract, today)
    if not was_live and _is_live(after["is_active"], after["start_date"], after["end_date"], obj.contract, today):
        try:
            ensure_room(db, {obj.screen.location_id: 1}, today)
        except Exception:
            db.rollback()
            raise

    for field, value in changes.items():
        setattr(obj, field, value)

    db.commit()
    db.refresh(obj)

    if {"start_date", "end_date", "is_active"} & set(changes):
        invalidate_availability_cache(redis)
    return obj
