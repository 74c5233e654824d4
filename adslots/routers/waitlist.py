# adslots/routers/waitlist.py

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db, get_session_factory
from ..redis_client import get_redis
from ..schemas.availability import CapacityCheckResponse
from ..schemas.waitlist import (
    SweepResponse,
    WaitlistCreate,
    WaitlistCreateResponse,
    WaitlistRequestRead,
)
from ..services.waitlist import (
    cancel_request,
    list_requests,
    reset_request,
    run_sweep,
    submit_request,
)

router = APIRouter(tags=["waitlist"])

ADMITTED_MESSAGE = "Er is plek! Je kunt direct doorgaan met je aanmelding."
QUEUED_MESSAGE = (
    "Er is op dit moment onvoldoende plek in de gekozen regio. Je staat op de wachtlijst "
    "en krijgt automatisch een e-mail zodra er plek vrijkomt."
)


@router.post("/waitlist", response_model=WaitlistCreateResponse)
def create_waitlist_request(
    data: WaitlistCreate,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    """Admit immediately when capacity allows, otherwise queue (201)."""
    result = submit_request(
        db,
        redis,
        company_name=data.company_name,
        contact_name=data.contact_name,
        email=data.email,
        package_type=data.package_type,
        target_region_codes=data.target_region_codes,
        form_data=data.form_data,
    )
    response = WaitlistCreateResponse(
        admitted=result.admitted,
        waitlist_request_id=result.request.id if result.request else None,
        status=result.request.status if result.request else None,
        message=ADMITTED_MESSAGE if result.admitted else QUEUED_MESSAGE,
        capacity=CapacityCheckResponse.model_validate(result.capacity),
    )
    if result.admitted:
        return response
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=response.model_dump(mode="json", by_alias=True),
    )


@router.get("/admin/waitlist", response_model=list[WaitlistRequestRead])
def list_waitlist(status: Optional[str] = None, db: Session = Depends(get_db)):
    return list_requests(db, status)


@router.post("/admin/waitlist/trigger-check", response_model=SweepResponse)
def trigger_waitlist_check(
    redis: Redis = Depends(get_redis),
    session_factory=Depends(get_session_factory),
):
    """Run one sweep cycle now (409 when a cycle is already running)."""
    return run_sweep(redis, session_factory=session_factory)


@router.post("/admin/waitlist/{id}/cancel", response_model=WaitlistRequestRead)
def cancel_waitlist_request(
    id: int,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    return cancel_request(db, redis, id)


@router.post("/admin/waitlist/{id}/reset", response_model=WaitlistRequestRead)
def reset_waitlist_request(id: int, db: Session = Depends(get_db)):
    return reset_request(db, id)
