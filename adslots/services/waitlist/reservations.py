# adslots/services/waitlist/reservations.py
"""
Soft slot holds per waitlist request.

An invite holds `required_count` locations for the length of the claim
window so the next sweep does not hand the same slots to someone else.
A confirmed claim converts them into claim holds that live until onboarding
consumes the grant. Holds never replace the locked re-check at claim time.
"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models.tables import CapacityReservations
from ...utils.clock import utcnow


def hold_locations(
    db: Session,
    request_id: int,
    location_ids: Iterable[int],
    kind: str,
    expires_at: datetime,
) -> list[CapacityReservations]:
    holds = [
        CapacityReservations(
            waitlist_request_id=request_id,
            location_id=location_id,
            kind=kind,
            status="active",
            expires_at=expires_at,
        )
        for location_id in location_ids
    ]
    db.add_all(holds)
    return holds


def active_holds(
    db: Session,
    request_id: int,
    now: Optional[datetime] = None,
) -> list[CapacityReservations]:
    now = now or utcnow()
    return (
        db.query(CapacityReservations)
        .filter(
            CapacityReservations.waitlist_request_id == request_id,
            CapacityReservations.status == "active",
            CapacityReservations.expires_at > now,
        )
        .order_by(CapacityReservations.location_id)
        .all()
    )


def _close_holds(db: Session, request_id: int, status: str, now: Optional[datetime]) -> int:
    now = now or utcnow()
    holds = (
        db.query(CapacityReservations)
        .filter(
            CapacityReservations.waitlist_request_id == request_id,
            CapacityReservations.status == "active",
        )
        .all()
    )
    for hold in holds:
        hold.status = status
        hold.released_at = now
    return len(holds)


def release_holds(db: Session, request_id: int, now: Optional[datetime] = None) -> int:
    """Give the request's active holds back. Returns number released."""
    return _close_holds(db, request_id, "released", now)


def consume_holds(db: Session, request_id: int, now: Optional[datetime] = None) -> int:
    """Mark the request's holds as turned into a contract."""
    return _close_holds(db, request_id, "consumed", now)
