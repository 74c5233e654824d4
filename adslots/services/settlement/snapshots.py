# adslots/services/settlement/snapshots.py
"""
Monthly snapshots.

Status flow:
    open ──generate-invoices──▶ invoiced ──generate-payouts──▶ payouts_generated ──lock──▶ locked

create_snapshot freezes every contract effective in the period together with
its placements, the locations they run on and the carry-overs still pending
from earlier periods. Creation is idempotent per (year, month): a second call
returns the existing snapshot.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import NotFound
from ...models.tables import CarryOvers, Contracts, Locations, MonthlySnapshots, Placements, Screens
from ...utils.clock import utcnow
from .allocation import total_weight, visitor_weight
from .config import SettlementConfig, get_settlement_config
from .frozen import (
    FrozenCarryOver,
    FrozenContract,
    FrozenLocation,
    FrozenPeriodState,
    FrozenPlacement,
    dump_frozen_state,
)
from .periods import days_covered, period_bounds, prorate

logger = logging.getLogger(__name__)

OPEN = "open"
INVOICED = "invoiced"
PAYOUTS_GENERATED = "payouts_generated"
LOCKED = "locked"


def _effective_contracts(db: Session, period_start, period_end) -> list[Contracts]:
    return (
        db.query(Contracts)
        .filter(
            Contracts.start_date <= period_end,
            or_(Contracts.end_date.is_(None), Contracts.end_date >= period_start),
            Contracts.status != "cancelled",
            or_(
                Contracts.signed_at.is_not(None),
                Contracts.status.in_(["signed", "active"]),
            ),
        )
        .order_by(Contracts.id)
        .all()
    )


def capture_period_state(
    db: Session,
    year: int,
    month: int,
    now: Optional[datetime] = None,
    config: Optional[SettlementConfig] = None,
) -> FrozenPeriodState:
    """Build the frozen state of a period from the live tables."""
    config = config or get_settlement_config()
    now = now or utcnow()
    period_start, period_end = period_bounds(year, month)

    contracts = _effective_contracts(db, period_start, period_end)
    frozen_contracts = [
        FrozenContract(
            id=c.id,
            advertiser_id=c.advertiser_id,
            monthly_price_ex_vat=Decimal(c.monthly_price_ex_vat),
            vat_percent=Decimal(c.vat_percent if c.vat_percent is not None else config.default_vat_percent),
            status=c.status,
            start_date=c.start_date,
            end_date=c.end_date,
        )
        for c in contracts
    ]
    contract_windows = {c.id: (c.start_date, c.end_date) for c in contracts}

    frozen_placements = []
    if contract_windows:
        rows = (
            db.query(Placements, Screens.location_id, Screens.weight_override, Locations.visitors_per_week)
            .join(Screens, Placements.screen_id == Screens.id)
            .join(Locations, Screens.location_id == Locations.id)
            .filter(
                Placements.contract_id.in_(list(contract_windows)),
                Placements.is_active.is_(True),
            )
            .order_by(Placements.id)
            .all()
        )
        for placement, location_id, weight_override, visitors_per_week in rows:
            contract_start, contract_end = contract_windows[placement.contract_id]
            start = max(filter(None, [placement.start_date, contract_start]))
            ends = [d for d in (placement.end_date, contract_end) if d is not None]
            days = days_covered(start, min(ends) if ends else None, period_start, period_end)
            if days == 0:
                continue
            frozen_placements.append(FrozenPlacement(
                id=placement.id,
                contract_id=placement.contract_id,
                screen_id=placement.screen_id,
                location_id=location_id,
                start_date=placement.start_date,
                end_date=placement.end_date,
                seconds_per_loop=placement.seconds_per_loop or config.default_seconds_per_loop,
                plays_per_hour=placement.plays_per_hour or config.default_plays_per_hour,
                days_active=days,
                visitor_weight=visitor_weight(visitors_per_week, weight_override, config),
            ))

    pending = pending_carry_overs_before(db, year, month)
    frozen_carry_overs = [
        FrozenCarryOver(
            id=entry.id,
            location_id=entry.location_id,
            period_year=entry.period_year,
            period_month=entry.period_month,
            amount=Decimal(entry.amount),
        )
        for entry in pending
    ]

    location_ids = {p.location_id for p in frozen_placements} | {e.location_id for e in frozen_carry_overs}
    locations = (
        db.query(Locations).filter(Locations.id.in_(location_ids)).order_by(Locations.id).all()
        if location_ids else []
    )
    frozen_locations = [
        FrozenLocation(
            id=loc.id,
            name=loc.name,
            city=loc.city,
            revenue_share_percent=Decimal(loc.revenue_share_percent),
            payout_type=loc.payout_type or "revshare",
            fixed_payout_amount=Decimal(loc.fixed_payout_amount) if loc.fixed_payout_amount is not None else None,
            visitors_per_week=loc.visitors_per_week,
        )
        for loc in locations
    ]

    return FrozenPeriodState(
        schema_version=config.frozen_schema_version,
        year=year,
        month=month,
        period_start=period_start,
        period_end=period_end,
        captured_at=now,
        contracts=tuple(frozen_contracts),
        placements=tuple(frozen_placements),
        locations=tuple(frozen_locations),
        carry_overs=tuple(frozen_carry_overs),
    )


def pending_carry_overs_before(db: Session, year: int, month: int) -> list[CarryOvers]:
    """Carry-over entries not yet applied, from periods before (year, month)."""
    return (
        db.query(CarryOvers)
        .filter(
            CarryOvers.status == "pending",
            or_(
                CarryOvers.period_year < year,
                and_(CarryOvers.period_year == year, CarryOvers.period_month < month),
            ),
        )
        .order_by(CarryOvers.id)
        .all()
    )


def billed_amount(contract: FrozenContract, state: FrozenPeriodState) -> tuple[int, int, Decimal]:
    """(days_billed, days_in_period, amount_ex_vat) of a frozen contract."""
    days_in_period = (state.period_end - state.period_start).days + 1
    days = days_covered(contract.start_date, contract.end_date, state.period_start, state.period_end)
    return days, days_in_period, prorate(contract.monthly_price_ex_vat, days, days_in_period)


def expected_revenue(state: FrozenPeriodState) -> Decimal:
    return sum((billed_amount(c, state)[2] for c in state.contracts), Decimal("0.00"))


def get_snapshot(db: Session, snapshot_id: int, lock: bool = False) -> MonthlySnapshots:
    query = db.query(MonthlySnapshots).filter(MonthlySnapshots.id == snapshot_id)
    if lock:
        query = query.with_for_update()
    snapshot = query.first()
    if not snapshot:
        raise NotFound(f"Snapshot {snapshot_id} niet gevonden.")
    return snapshot


def find_snapshot(db: Session, year: int, month: int) -> Optional[MonthlySnapshots]:
    return (
        db.query(MonthlySnapshots)
        .filter(MonthlySnapshots.year == year, MonthlySnapshots.month == month)
        .first()
    )


def list_snapshots(db: Session) -> list[MonthlySnapshots]:
    return db.query(MonthlySnapshots).order_by(MonthlySnapshots.year.desc(), MonthlySnapshots.month.desc()).all()


def create_snapshot(
    db: Session,
    year: int,
    month: int,
    now: Optional[datetime] = None,
    config: Optional[SettlementConfig] = None,
) -> tuple[MonthlySnapshots, bool]:
    """
    Freeze a billing period.

    Returns:
        (snapshot, created); created is False when the period already had one
    """
    period_bounds(year, month)
    existing = find_snapshot(db, year, month)
    if existing:
        logger.info(f"Snapshot {year}-{month:02d} already exists (id={existing.id}), returning it")
        return existing, False

    now = now or utcnow()
    try:
        state = capture_period_state(db, year, month, now=now, config=config)
        raw, checksum = dump_frozen_state(state)
        snapshot = MonthlySnapshots(
            year=year,
            month=month,
            status=OPEN,
            schema_version=state.schema_version,
            frozen_state=raw,
            frozen_checksum=checksum,
            total_revenue=expected_revenue(state),
            total_weight=total_weight(state),
            created_at=now,
        )
        db.add(snapshot)
        db.commit()
    except IntegrityError:
        # Concurrent creation for the same period won the unique constraint
        db.rollback()
        existing = find_snapshot(db, year, month)
        if existing is None:
            raise
        logger.info(f"Snapshot {year}-{month:02d} created concurrently (id={existing.id}), returning it")
        return existing, False
    except Exception:
        db.rollback()
        raise

    db.refresh(snapshot)
    logger.info(
        f"Snapshot {year}-{month:02d} created (id={snapshot.id}): "
        f"{len(state.contracts)} contracts, {len(state.placements)} placements, "
        f"{len(state.carry_overs)} pending carry-overs"
    )
    return snapshot, True
