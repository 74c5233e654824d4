# adslots/services/waitlist/manager.py
"""
Waitlist manager: admission decision and admin actions.

Signup flow:
1. Check capacity for the package in the requested cities
2. Enough bookable locations → admit immediately (no waitlist entry,
   caller proceeds to contract)
3. Otherwise → create a WAITING entry and send a confirmation e-mail

Admin actions: cancel (WAITING/INVITED → CANCELLED) and reset
(EXPIRED/CANCELLED → WAITING).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from redis import Redis
from sqlalchemy.orm import Session

from ...errors import NotFound
from ...models.tables import WaitlistRequests
from ...utils.clock import utcnow
from ..capacity.availability import CapacityCheckResult, check_capacity, normalize_admission_input
from ..capacity.config import CapacityConfig, get_capacity_config
from ..capacity.invalidator import invalidate_availability_cache
from ..events import emit_event
from . import state
from .reservations import release_holds

logger = logging.getLogger(__name__)


@dataclass
class AdmissionResult:
    admitted: bool
    capacity: CapacityCheckResult
    request: Optional[WaitlistRequests] = None


def submit_request(
    db: Session,
    redis: Redis,
    company_name: str,
    contact_name: str,
    email: str,
    package_type: str,
    target_region_codes: Optional[list[str]] = None,
    form_data: Optional[dict] = None,
    now: Optional[datetime] = None,
    config: Optional[CapacityConfig] = None,
) -> AdmissionResult:
    """
    Admit immediately or queue on the waitlist.

    Returns:
        AdmissionResult; `request` is set only when the signup was queued
    """
    config = config or get_capacity_config()
    now = now or utcnow()
    package, cities = normalize_admission_input(package_type, target_region_codes, config)

    capacity = check_capacity(db, package, cities, now=now, config=config)
    if capacity.is_available:
        logger.info(f"Signup for {email} admitted directly ({package}, cities={cities})")
        return AdmissionResult(admitted=True, capacity=capacity)

    request = WaitlistRequests(
        company_name=company_name,
        contact_name=contact_name,
        email=email,
        package_type=package,
        required_count=capacity.required_screens,
        target_region_codes=cities,
        form_data=form_data or {},
        status=state.WAITING,
        last_checked_at=now,
        created_at=now,
        updated_at=now,
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info(
        f"Signup for {email} queued as waitlist request {request.id} "
        f"(reasons={capacity.top_reasons})"
    )
    emit_event("waitlist_confirmation", {
        "waitlist_request_id": request.id,
        "email": request.email,
        "contact_name": request.contact_name,
        "company_name": request.company_name,
        "package_type": request.package_type,
        "target_region_codes": request.target_region_codes,
    }, redis=redis)

    return AdmissionResult(admitted=False, capacity=capacity, request=request)


def list_requests(db: Session, status: Optional[str] = None) -> list[WaitlistRequests]:
    query = db.query(WaitlistRequests)
    if status:
        query = query.filter(WaitlistRequests.status == status.upper())
    return query.order_by(WaitlistRequests.created_at, WaitlistRequests.id).all()


def get_request(db: Session, request_id: int, lock: bool = False) -> WaitlistRequests:
    query = db.query(WaitlistRequests).filter(WaitlistRequests.id == request_id)
    if lock:
        query = query.with_for_update()
    request = query.first()
    if not request:
        raise NotFound(f"Wachtlijstaanvraag {request_id} niet gevonden.")
    return request


def clear_invite(request: WaitlistRequests) -> None:
    request.invite_token_hash = None
    request.invite_sent_at = None
    request.invite_expires_at = None


def cancel_request(
    db: Session,
    redis: Redis,
    request_id: int,
    now: Optional[datetime] = None,
) -> WaitlistRequests:
    """WAITING/INVITED → CANCELLED, releasing any held slots."""
    now = now or utcnow()
    try:
        request = get_request(db, request_id, lock=True)
        state.transition(request, state.CANCELLED, "cancel")
        request.cancelled_at = now
        released = release_holds(db, request.id, now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    if released:
        invalidate_availability_cache(redis)
    return request


def reset_request(
    db: Session,
    request_id: int,
    now: Optional[datetime] = None,
) -> WaitlistRequests:
    """Admin reset: EXPIRED/CANCELLED → WAITING with a clean invite state."""
    now = now or utcnow()
    try:
        request = get_request(db, request_id, lock=True)
        state.transition(request, state.WAITING, "admin_reset")
        clear_invite(request)
        request.cancelled_at = None
        request.last_checked_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    return request
