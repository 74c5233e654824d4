"""
Waitlist sweep.

Periodically re-evaluates the waitlist:
1. INVITED requests past their invite expiry → EXPIRED (holds released)
2. WAITING requests, oldest first → if capacity now suffices:
   - hold the slots for the claim window
   - WAITING → INVITED with a fresh claim token (48h)
   - enqueue the claim invite e-mail
   - if the e-mail cannot be enqueued, revert to WAITING and release holds

Single-flight: a Redis lock with expiry guards the whole cycle, so two
instances (or the loop and an admin trigger) never invite twice.

Runs as an asyncio task in the application lifespan.
Uses synchronous DB and Redis (via asyncio.to_thread).
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from redis import Redis
from redis.exceptions import LockError
from sqlalchemy.orm import Session

from ...config import settings
from ...database import SessionLocal
from ...errors import SweepAlreadyRunning
from ...models.tables import WaitlistRequests
from ...utils.clock import utcnow
from ...utils.hashing import new_token
from ..capacity.availability import check_capacity, pick_locations
from ..capacity.config import CapacityConfig, get_capacity_config
from ..capacity.invalidator import invalidate_availability_cache
from ..events import emit_event
from . import state
from .manager import clear_invite
from .reservations import hold_locations, release_holds

logger = logging.getLogger(__name__)

SWEEP_LOCK_KEY = "lock:waitlist:sweep"


@dataclass
class SweepStats:
    expired: int = 0
    checked: int = 0
    invited: int = 0
    errors: int = 0


def run_sweep(
    redis: Redis,
    session_factory: Callable[[], Session] = SessionLocal,
    now: Optional[datetime] = None,
    config: Optional[CapacityConfig] = None,
) -> SweepStats:
    """
    Run one sweep cycle under the single-flight lock.

    Raises:
        SweepAlreadyRunning: another cycle holds the lock
    """
    config = config or get_capacity_config()
    lock = redis.lock(SWEEP_LOCK_KEY, timeout=config.sweep_lock_ttl_seconds, blocking=False)
    if not lock.acquire():
        logger.info("Waitlist sweep already running, skipping")
        raise SweepAlreadyRunning()

    now = now or utcnow()
    stats = SweepStats()
    db = session_factory()
    try:
        logger.info("Waitlist sweep started")
        stats.expired = expire_invites(db, redis, now)
        _invite_waiting(db, redis, now, config, stats)
    finally:
        db.close()
        try:
            lock.release()
        except LockError:
            logger.warning("Waitlist sweep lock expired before the cycle finished")

    logger.info(
        f"Waitlist sweep complete: {stats.expired} expired, {stats.checked} checked, "
        f"{stats.invited} invited, {stats.errors} errors"
    )
    return stats


def expire_invites(db: Session, redis: Redis, now: Optional[datetime] = None) -> int:
    """INVITED requests past their expiry → EXPIRED. Returns count."""
    now = now or utcnow()
    try:
        overdue = (
            db.query(WaitlistRequests)
            .filter(
                WaitlistRequests.status == state.INVITED,
                WaitlistRequests.invite_expires_at <= now,
            )
            .with_for_update()
            .all()
        )
        for request in overdue:
            state.transition(request, state.EXPIRED, "expiry")
            release_holds(db, request.id, now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if overdue:
        invalidate_availability_cache(redis)
    return len(overdue)


def _invite_waiting(
    db: Session,
    redis: Redis,
    now: datetime,
    config: CapacityConfig,
    stats: SweepStats,
) -> None:
    waiting_ids = [
        row.id for row in (
            db.query(WaitlistRequests.id)
            .filter(WaitlistRequests.status == state.WAITING)
            .order_by(WaitlistRequests.created_at, WaitlistRequests.id)
            .all()
        )
    ]
    logger.info(f"Checking {len(waiting_ids)} waiting requests")

    for request_id in waiting_ids:
        stats.checked += 1
        try:
            if invite_if_capacity(db, redis, request_id, now, config):
                stats.invited += 1
        except Exception:
            db.rollback()
            stats.errors += 1
            logger.exception(f"Error checking waitlist request {request_id}")


def invite_if_capacity(
    db: Session,
    redis: Redis,
    request_id: int,
    now: Optional[datetime] = None,
    config: Optional[CapacityConfig] = None,
) -> bool:
    """
    Invite one WAITING request if its package fits now.

    Returns:
        True when an invite was committed and enqueued
    """
    config = config or get_capacity_config()
    now = now or utcnow()

    request = (
        db.query(WaitlistRequests)
        .filter(WaitlistRequests.id == request_id)
        .with_for_update()
        .first()
    )
    if not request or request.status != state.WAITING:
        db.rollback()
        return False

    capacity = check_capacity(
        db,
        request.package_type,
        request.target_region_codes,
        now=now,
        lock=True,
        config=config,
    )
    request.last_checked_at = now
    if not capacity.is_available:
        db.commit()
        return False

    chosen = pick_locations(capacity.locations, capacity.required_screens)
    token, token_hash = new_token()
    expires_at = now + timedelta(hours=config.invite_expiry_hours)

    state.transition(request, state.INVITED, "sweep")
    request.invite_token_hash = token_hash
    request.invite_sent_at = now
    request.invite_expires_at = expires_at
    hold_locations(db, request.id, [loc.location_id for loc in chosen], "invite", expires_at)
    db.commit()
    invalidate_availability_cache(redis)

    logger.info(f"Capacity available for waitlist request {request.id} ({request.package_type}), inviting")

    sent = emit_event("waitlist_claim_invite", {
        "waitlist_request_id": request.id,
        "email": request.email,
        "contact_name": request.contact_name,
        "company_name": request.company_name,
        "package_type": request.package_type,
        "target_region_codes": request.target_region_codes,
        "claim_url": f"{settings.public_base_url.rstrip('/')}/claim/{token}",
        "expires_at": expires_at.isoformat(),
    }, redis=redis)
    if sent:
        return True

    _revert_invite(db, redis, request.id, now)
    raise RuntimeError(f"Claim invite for waitlist request {request.id} could not be enqueued")


def _revert_invite(db: Session, redis: Redis, request_id: int, now: datetime) -> None:
    """Undo an invite whose e-mail never left: INVITED → WAITING."""
    try:
        request = (
            db.query(WaitlistRequests)
            .filter(WaitlistRequests.id == request_id)
            .with_for_update()
            .one()
        )
        if request.status == state.INVITED:
            state.transition(request, state.WAITING, "revert")
            clear_invite(request)
            release_holds(db, request.id, now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    invalidate_availability_cache(redis)


async def waitlist_sweep_loop(redis: Redis) -> None:
    """
    Periodic loop running the sweep.

    First run is delayed to keep startup light; afterwards it runs every
    `waitlist_sweep_interval_seconds`.
    """
    logger.info("waitlist_sweep_loop started")

    try:
        await asyncio.sleep(settings.waitlist_sweep_initial_delay_seconds)
        while True:
            try:
                await asyncio.to_thread(run_sweep, redis)
            except asyncio.CancelledError:
                logger.info("waitlist_sweep_loop cancelled")
                raise
            except SweepAlreadyRunning:
                pass
            except Exception:
                logger.exception("waitlist_sweep_loop error")

            await asyncio.sleep(settings.waitlist_sweep_interval_seconds)
    except asyncio.CancelledError:
        pass
