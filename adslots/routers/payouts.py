# adslots/routers/payouts.py

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.snapshots import CarryOverBalance, CarryOverRead
from ..services.settlement import carry_over_ledger, pending_carry_over_balance

router = APIRouter(prefix="/payouts", tags=["payouts"])


@router.get("/carry-overs", response_model=list[CarryOverRead])
def list_carry_overs(location_id: Optional[int] = None, db: Session = Depends(get_db)):
    """Carry-over ledger for audit, optionally for one location."""
    return carry_over_ledger(db, location_id)


@router.get("/carry-overs/balance", response_model=CarryOverBalance)
def carry_over_balance(location_id: int, db: Session = Depends(get_db)):
    """Amount still owed to a location from under-threshold payouts."""
    return CarryOverBalance(
        location_id=location_id,
        pending_balance=pending_carry_over_balance(db, location_id),
    )
