# adslots/services/settlement/payouts.py
"""
Revenue allocation and location payouts.

generate_payouts, in one transaction:
1. Split each advertiser's invoiced revenue over its screens (see allocation.py)
2. Per location: base = allocated total × revenue share %, or the location's
   fixed monthly amount when it is paid a fixed fee
3. Add carry-overs frozen into the snapshot that are still pending
4. payout < minimum → carried_over=True, stays pending, new carry-over entry
   payout ≥ minimum → regular payout, approved at lock
5. Applied carry-overs are marked applied against this snapshot

Carry-over ledger: one entry per under-threshold payout, pending until a later
period absorbs it, so no amount is ever dropped.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import InvalidSnapshotState
from ...models.tables import CarryOvers, Invoices, LocationPayouts, MonthlySnapshots, RevenueAllocations
from ...utils.clock import utcnow
from .allocation import allocate_revenue, location_totals
from .config import SettlementConfig, get_settlement_config
from .frozen import FrozenLocation, load_frozen_state
from .guards import ensure_not_locked
from .periods import to_cents
from .snapshots import INVOICED, OPEN, PAYOUTS_GENERATED, get_snapshot

logger = logging.getLogger(__name__)


@dataclass
class PayoutGenerationResult:
    snapshot: MonthlySnapshots
    generated: bool
    payouts: list[LocationPayouts] = field(default_factory=list)
    allocations: list[RevenueAllocations] = field(default_factory=list)


def existing_payouts(db: Session, snapshot_id: int) -> list[LocationPayouts]:
    return (
        db.query(LocationPayouts)
        .filter(LocationPayouts.snapshot_id == snapshot_id)
        .order_by(LocationPayouts.location_id)
        .all()
    )


def existing_allocations(db: Session, snapshot_id: int) -> list[RevenueAllocations]:
    return (
        db.query(RevenueAllocations)
        .filter(RevenueAllocations.snapshot_id == snapshot_id)
        .order_by(RevenueAllocations.location_id, RevenueAllocations.screen_id, RevenueAllocations.advertiser_id)
        .all()
    )


def invoiced_revenue_by_advertiser(db: Session, snapshot_id: int) -> dict[int, Decimal]:
    rows = (
        db.query(Invoices.advertiser_id, func.sum(Invoices.amount_ex_vat))
        .filter(Invoices.snapshot_id == snapshot_id)
        .group_by(Invoices.advertiser_id)
        .all()
    )
    return {advertiser_id: to_cents(total or 0) for advertiser_id, total in rows}


def payout_base(location: Optional[FrozenLocation], allocated: Decimal, has_activity: bool) -> Decimal:
    """Location's share of its allocated revenue, before carry-ins."""
    if location is None:
        return Decimal("0.00")
    if location.payout_type == "fixed" and location.fixed_payout_amount is not None:
        return to_cents(location.fixed_payout_amount) if has_activity else Decimal("0.00")
    return to_cents(allocated * location.revenue_share_percent / 100)


def _claim_carry_overs(db: Session, ids: list[int]) -> list[CarryOvers]:
    """Lock the frozen carry-overs that no other period has applied yet."""
    if not ids:
        return []
    return (
        db.query(CarryOvers)
        .filter(CarryOvers.id.in_(ids), CarryOvers.status == "pending")
        .order_by(CarryOvers.id)
        .with_for_update()
        .all()
    )


def generate_payouts(
    db: Session,
    snapshot_id: int,
    now: Optional[datetime] = None,
    config: Optional[SettlementConfig] = None,
) -> PayoutGenerationResult:
    """
    Allocate revenue and create location payouts in one transaction.

    Re-running once payouts exist is a no-op (generated=False).

    Raises:
        NotFound, SnapshotLocked, InvalidSnapshotState, SnapshotCorrupted
    """
    config = config or get_settlement_config()
    now = now or utcnow()

    try:
        snapshot = get_snapshot(db, snapshot_id, lock=True)
        ensure_not_locked(snapshot, "generate-payouts")
        if snapshot.status == OPEN:
            raise InvalidSnapshotState(
                "Genereer eerst de facturen voor deze maand.",
                snapshot_id=snapshot.id,
                status=snapshot.status,
            )

        current = existing_payouts(db, snapshot.id)
        if snapshot.status != INVOICED or current:
            logger.warning(
                f"Duplicate payout generation for snapshot {snapshot.id} "
                f"(status={snapshot.status}, payouts={len(current)}), skipping"
            )
            allocations = existing_allocations(db, snapshot.id)
            db.rollback()
            return PayoutGenerationResult(snapshot=snapshot, generated=False, payouts=current, allocations=allocations)

        state = load_frozen_state(snapshot)
        revenue_by_advertiser = invoiced_revenue_by_advertiser(db, snapshot.id)
        revenue = sum(revenue_by_advertiser.values(), Decimal("0.00"))

        screen_rows = allocate_revenue(revenue_by_advertiser, state)
        allocations = [
            RevenueAllocations(
                snapshot_id=snapshot.id,
                period_year=snapshot.year,
                period_month=snapshot.month,
                advertiser_id=row.advertiser_id,
                screen_id=row.screen_id,
                location_id=row.location_id,
                visitor_weight=row.visitor_weight,
                allocation_score=row.allocation_score,
                allocated_revenue=row.allocated_revenue,
                created_at=now,
            )
            for row in screen_rows
        ]
        db.add_all(allocations)
        allocated = location_totals(screen_rows)

        carry_ins = _claim_carry_overs(db, [entry.id for entry in state.carry_overs])
        skipped = len(state.carry_overs) - len(carry_ins)
        if skipped:
            logger.warning(f"Snapshot {snapshot.id}: {skipped} frozen carry-overs were already applied elsewhere")
        carried_in: dict[int, Decimal] = {}
        for entry in carry_ins:
            carried_in[entry.location_id] = carried_in.get(entry.location_id, Decimal("0.00")) + Decimal(entry.amount)

        payouts = []
        for location_id in sorted(set(allocated) | set(carried_in)):
            location = state.location(location_id)
            share = location.revenue_share_percent if location else Decimal(0)
            total_allocated = allocated.get(location_id, Decimal("0.00"))
            carry_in = carried_in.get(location_id, Decimal("0.00"))
            amount = payout_base(location, total_allocated, location_id in allocated) + carry_in
            carried_over = amount < config.minimum_payout

            payout = LocationPayouts(
                snapshot_id=snapshot.id,
                period_year=snapshot.year,
                period_month=snapshot.month,
                location_id=location_id,
                allocated_revenue_total=total_allocated,
                payout_type=location.payout_type if location else "revshare",
                fixed_amount=location.fixed_payout_amount if location else None,
                revenue_share_percent=share,
                carried_in_amount=carry_in,
                payout_amount=amount,
                minimum_threshold=config.minimum_payout,
                carried_over=carried_over,
                status="pending",
                created_at=now,
            )
            db.add(payout)
            payouts.append(payout)

        db.flush()
        for payout in payouts:
            if payout.carried_over and payout.payout_amount > 0:
                db.add(CarryOvers(
                    location_id=payout.location_id,
                    period_year=snapshot.year,
                    period_month=snapshot.month,
                    amount=payout.payout_amount,
                    status="pending",
                    source_payout_id=payout.id,
                    created_at=now,
                ))
                logger.info(
                    f"Payout for location {payout.location_id} ({payout.payout_amount}) below "
                    f"minimum {config.minimum_payout}, carried to next period"
                )

        for entry in carry_ins:
            entry.status = "applied"
            entry.applied_snapshot_id = snapshot.id
            entry.applied_at = now

        snapshot.status = PAYOUTS_GENERATED
        snapshot.payouts_generated_at = now
        db.commit()
    except IntegrityError:
        db.rollback()
        snapshot = get_snapshot(db, snapshot_id)
        logger.warning(f"Payouts for snapshot {snapshot_id} were generated concurrently, skipping")
        return PayoutGenerationResult(
            snapshot=snapshot,
            generated=False,
            payouts=existing_payouts(db, snapshot_id),
            allocations=existing_allocations(db, snapshot_id),
        )
    except Exception:
        db.rollback()
        raise

    db.refresh(snapshot)
    logger.info(
        f"Generated {len(payouts)} payouts and {len(allocations)} screen allocations "
        f"for snapshot {snapshot.id}, revenue {revenue}"
    )
    return PayoutGenerationResult(snapshot=snapshot, generated=True, payouts=payouts, allocations=allocations)


def carry_over_ledger(db: Session, location_id: Optional[int] = None) -> list[CarryOvers]:
    """Carry-over entries for audit, oldest first."""
    query = db.query(CarryOvers)
    if location_id is not None:
        query = query.filter(CarryOvers.location_id == location_id)
    return query.order_by(CarryOvers.period_year, CarryOvers.period_month, CarryOvers.id).all()


def pending_carry_over_balance(db: Session, location_id: int) -> Decimal:
    """Sum of the location's carry-overs not yet absorbed by a later payout."""
    total = (
        db.query(func.coalesce(func.sum(CarryOvers.amount), 0))
        .filter(CarryOvers.location_id == location_id, CarryOvers.status == "pending")
        .scalar()
    )
    return to_cents(total)
