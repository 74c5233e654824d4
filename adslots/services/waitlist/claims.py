# adslots/services/waitlist/claims.py
"""
Claim confirmation.

GET  claim/{token}          → inspect_claim: is the invite still valid?
POST claim/{token}/confirm  → confirm_claim: take the slot for real

Confirmation re-runs the capacity check inside one transaction with the
request row and the contended location rows locked FOR UPDATE. With N
concurrent confirmations against one free slot exactly one wins; the others
go back to WAITING. Losing that race is an expected outcome, not an error.

The winner receives a short-lived grant. The grant only references
server-side state: onboarding redeems it for the stored form data and
never has to trust data the client carried across.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from redis import Redis
from sqlalchemy.orm import Session

from ...errors import TokenAlreadyClaimed, TokenExpired, TokenInvalid
from ...models.tables import ClaimGrants, WaitlistRequests
from ...utils.clock import utcnow
from ...utils.hashing import hash_value, new_token
from ..capacity.availability import check_capacity, pick_locations
from ..capacity.config import CapacityConfig, get_capacity_config
from ..capacity.invalidator import invalidate_availability_cache
from . import state
from .manager import clear_invite
from .reservations import active_holds, consume_holds, hold_locations, release_holds

logger = logging.getLogger(__name__)

RACE_LOST_MESSAGE = (
    "Helaas is de vrijgekomen plek net door iemand anders geclaimd. "
    "Je staat weer op de wachtlijst en krijgt automatisch een nieuwe uitnodiging "
    "zodra er opnieuw plek is."
)
CLAIMED_MESSAGE = "Je plek is vastgelegd. Rond je aanmelding af om je advertentie te starten."

# Fields the server owns; client-sent form data can never override them
SERVER_OWNED_FIELDS = ("company_name", "contact_name", "email", "package_type", "target_region_codes")


@dataclass
class ClaimView:
    request_id: int
    company_name: str
    contact_name: str
    package_type: str
    required_count: int
    target_region_codes: list[str]
    invite_expires_at: datetime


@dataclass
class ClaimOutcome:
    claimed: bool
    request_id: int
    status: str
    message: str
    grant_token: Optional[str] = None
    grant_expires_at: Optional[datetime] = None


def _find_by_token(db: Session, token: str, lock: bool = False) -> Optional[WaitlistRequests]:
    if not token:
        return None
    query = db.query(WaitlistRequests).filter(WaitlistRequests.invite_token_hash == hash_value(token))
    if lock:
        query = query.with_for_update()
    return query.first()


def _check_token_state(db: Session, redis: Redis, request: Optional[WaitlistRequests], now: datetime) -> WaitlistRequests:
    """
    Validate an invite; commits the EXPIRED transition before raising.

    Raises:
        TokenInvalid, TokenAlreadyClaimed, TokenExpired
    """
    if request is None:
        raise TokenInvalid()
    if request.status == state.CLAIMED:
        raise TokenAlreadyClaimed()
    if request.status == state.EXPIRED:
        raise TokenExpired()
    if request.status != state.INVITED:
        raise TokenInvalid()

    if request.invite_expires_at is None or now >= request.invite_expires_at:
        state.transition(request, state.EXPIRED, "expiry")
        released = release_holds(db, request.id, now)
        db.commit()
        if released:
            invalidate_availability_cache(redis)
        raise TokenExpired()
    return request


def inspect_claim(
    db: Session,
    redis: Redis,
    token: str,
    now: Optional[datetime] = None,
) -> ClaimView:
    """Validate a claim link without taking the slot."""
    now = now or utcnow()
    try:
        request = _check_token_state(db, redis, _find_by_token(db, token, lock=True), now)
        view = ClaimView(
            request_id=request.id,
            company_name=request.company_name,
            contact_name=request.contact_name,
            package_type=request.package_type,
            required_count=request.required_count,
            target_region_codes=list(request.target_region_codes or []),
            invite_expires_at=request.invite_expires_at,
        )
        db.rollback()
    except Exception:
        db.rollback()
        raise
    return view


def confirm_claim(
    db: Session,
    redis: Redis,
    token: str,
    form_data: Optional[dict] = None,
    now: Optional[datetime] = None,
    config: Optional[CapacityConfig] = None,
) -> ClaimOutcome:
    """
    Atomically take the slot behind a claim invite.

    Returns:
        ClaimOutcome: claimed=True with a grant token, or claimed=False
        when capacity was lost to a concurrent claim (request back to WAITING)

    Raises:
        TokenInvalid, TokenAlreadyClaimed, TokenExpired
    """
    config = config or get_capacity_config()
    now = now or utcnow()

    try:
        request = _check_token_state(db, redis, _find_by_token(db, token, lock=True), now)

        held_ids = [hold.location_id for hold in active_holds(db, request.id, now)]
        capacity = check_capacity(
            db,
            request.package_type,
            request.target_region_codes,
            now=now,
            lock=True,
            exclude_request_id=request.id,
            config=config,
        )

        if not capacity.is_available:
            state.transition(request, state.WAITING, "revert")
            clear_invite(request)
            request.last_checked_at = now
            release_holds(db, request.id, now)
            db.commit()
            invalidate_availability_cache(redis)
            logger.info(
                f"Claim for waitlist request {request.id} lost the race "
                f"(available={capacity.available_screens}, required={capacity.required_screens})"
            )
            return ClaimOutcome(
                claimed=False,
                request_id=request.id,
                status=state.WAITING,
                message=RACE_LOST_MESSAGE,
            )

        chosen = pick_locations(capacity.locations, capacity.required_screens, preferred_ids=held_ids)
        grant_token, grant_hash = new_token()
        grant_expires_at = now + timedelta(minutes=config.claim_grant_ttl_minutes)

        release_holds(db, request.id, now)
        hold_locations(db, request.id, [loc.location_id for loc in chosen], "claim", grant_expires_at)

        state.transition(request, state.CLAIMED, "claim")
        request.claimed_at = now

        captured = {**(request.form_data or {}), **(form_data or {})}
        for name in SERVER_OWNED_FIELDS:
            captured[name] = getattr(request, name)
        captured["waitlist_request_id"] = request.id
        captured["location_ids"] = [loc.location_id for loc in chosen]

        db.add(ClaimGrants(
            waitlist_request_id=request.id,
            token_hash=grant_hash,
            form_data=captured,
            expires_at=grant_expires_at,
        ))
        request_id = request.id
        db.commit()
    except Exception:
        db.rollback()
        raise

    invalidate_availability_cache(redis)
    logger.info(f"Waitlist request {request_id} claimed {len(chosen)} location(s)")
    return ClaimOutcome(
        claimed=True,
        request_id=request_id,
        status=state.CLAIMED,
        message=CLAIMED_MESSAGE,
        grant_token=grant_token,
        grant_expires_at=grant_expires_at,
    )


def consume_grant(
    db: Session,
    redis: Redis,
    grant_token: str,
    now: Optional[datetime] = None,
) -> dict:
    """
    Redeem a claim grant for onboarding (one time).

    Returns:
        The form data captured at claim time

    Raises:
        TokenInvalid, TokenAlreadyClaimed, TokenExpired
    """
    now = now or utcnow()
    try:
        grant = (
            db.query(ClaimGrants)
            .filter(ClaimGrants.token_hash == hash_value(grant_token or ""))
            .with_for_update()
            .first()
        )
        if grant is None:
            raise TokenInvalid()
        if grant.consumed_at is not None:
            raise TokenAlreadyClaimed("Deze aanmelding is al verwerkt.")
        if now >= grant.expires_at:
            raise TokenExpired("Deze sessie is verlopen. Neem contact met ons op om je aanmelding af te ronden.")

        grant.consumed_at = now
        consume_holds(db, grant.waitlist_request_id, now)
        form_data = dict(grant.form_data or {})
        db.commit()
    except Exception:
        db.rollback()
        raise

    invalidate_availability_cache(redis)
    return form_data
