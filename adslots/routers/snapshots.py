# adslots/routers/snapshots.py
"""
Month-close endpoints.

POST /snapshots                          - freeze a period (idempotent)
POST /snapshots/{id}/generate-invoices   - one invoice per advertiser
POST /snapshots/{id}/generate-payouts    - allocation + location payouts
POST /snapshots/{id}/lock                - seal the period

Repeated generation answers 200 with generated=false; anything on a locked
snapshot answers 409.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.snapshots import (
    AllocationRead,
    InvoiceGenerationResponse,
    InvoiceRead,
    PayoutGenerationResponse,
    PayoutRead,
    SnapshotCreate,
    SnapshotCreateResponse,
    SnapshotDetail,
    SnapshotRead,
)
from ..services.settlement import (
    create_snapshot,
    generate_invoices,
    generate_payouts,
    get_snapshot,
    list_snapshots,
    load_frozen_state,
    lock_snapshot,
)
from ..services.settlement.invoices import existing_invoices
from ..services.settlement.payouts import existing_allocations, existing_payouts

router = APIRouter(prefix="/snapshots", tags=["snapshots"])


@router.get("", response_model=list[SnapshotRead])
def list_all(db: Session = Depends(get_db)):
    return list_snapshots(db)


@router.post("", response_model=SnapshotCreateResponse)
def create(data: SnapshotCreate, db: Session = Depends(get_db)):
    """201 for a new snapshot, 200 when the period already had one."""
    snapshot, created = create_snapshot(db, data.year, data.month)
    response = SnapshotCreateResponse(created=created, snapshot=SnapshotRead.model_validate(snapshot))
    if not created:
        return response
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=response.model_dump(mode="json"))


@router.get("/{id}", response_model=SnapshotDetail)
def get_detail(id: int, db: Session = Depends(get_db)):
    snapshot = get_snapshot(db, id)
    state = load_frozen_state(snapshot)
    return SnapshotDetail(
        **SnapshotRead.model_validate(snapshot).model_dump(),
        period_start=state.period_start,
        period_end=state.period_end,
        contracts_count=len(state.contracts),
        placements_count=len(state.placements),
        locations_count=len(state.locations),
        carry_overs_count=len(state.carry_overs),
    )


@router.post("/{id}/generate-invoices", response_model=InvoiceGenerationResponse)
def post_generate_invoices(id: int, db: Session = Depends(get_db)):
    result = generate_invoices(db, id)
    return InvoiceGenerationResponse(
        generated=result.generated,
        snapshot=SnapshotRead.model_validate(result.snapshot),
        invoices=[InvoiceRead.model_validate(inv) for inv in result.invoices],
    )


@router.post("/{id}/generate-payouts", response_model=PayoutGenerationResponse)
def post_generate_payouts(id: int, db: Session = Depends(get_db)):
    result = generate_payouts(db, id)
    return PayoutGenerationResponse(
        generated=result.generated,
        snapshot=SnapshotRead.model_validate(result.snapshot),
        payouts=[PayoutRead.model_validate(p) for p in result.payouts],
        allocations=[AllocationRead.model_validate(a) for a in result.allocations],
    )


@router.post("/{id}/lock", response_model=SnapshotRead)
def post_lock(id: int, db: Session = Depends(get_db)):
    return lock_snapshot(db, id)


@router.get("/{id}/invoices", response_model=list[InvoiceRead])
def list_invoices(id: int, db: Session = Depends(get_db)):
    get_snapshot(db, id)
    return existing_invoices(db, id)


@router.get("/{id}/allocations", response_model=list[AllocationRead])
def list_allocations(id: int, db: Session = Depends(get_db)):
    get_snapshot(db, id)
    return existing_allocations(db, id)


@router.get("/{id}/payouts", response_model=list[PayoutRead])
def list_payouts(id: int, db: Session = Depends(get_db)):
    get_snapshot(db, id)
    return existing_payouts(db, id)
