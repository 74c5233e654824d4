# adslots/services/settlement/invoices.py
"""
Invoice generation from a frozen snapshot.

One invoice per advertiser, one line per effective contract. Amounts come
from the frozen state only, so edits to live contracts after snapshot
creation never reach the invoices.

Numbering: INV-YYYY-MM-NNNN, sequential per period in advertiser order.
Due date: the configured day of the month after the period.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models.tables import InvoiceLines, Invoices, MonthlySnapshots
from ...utils.clock import utcnow
from .config import SettlementConfig, get_settlement_config
from .frozen import FrozenContract, load_frozen_state
from .guards import ensure_not_locked
from .periods import next_period, to_cents
from .snapshots import INVOICED, OPEN, billed_amount, get_snapshot

logger = logging.getLogger(__name__)


@dataclass
class InvoiceGenerationResult:
    snapshot: MonthlySnapshots
    generated: bool
    invoices: list[Invoices] = field(default_factory=list)


def invoice_number(year: int, month: int, sequence: int) -> str:
    return f"INV-{year}-{month:02d}-{sequence:04d}"


def existing_invoices(db: Session, snapshot_id: int) -> list[Invoices]:
    return (
        db.query(Invoices)
        .filter(Invoices.snapshot_id == snapshot_id)
        .order_by(Invoices.invoice_number)
        .all()
    )


def generate_invoices(
    db: Session,
    snapshot_id: int,
    now: Optional[datetime] = None,
    config: Optional[SettlementConfig] = None,
) -> InvoiceGenerationResult:
    """
    Create the period's invoices in one transaction.

    Re-running against a snapshot that already has invoices is a no-op
    (generated=False).

    Raises:
        NotFound, SnapshotLocked, SnapshotCorrupted
    """
    config = config or get_settlement_config()
    now = now or utcnow()

    try:
        snapshot = get_snapshot(db, snapshot_id, lock=True)
        ensure_not_locked(snapshot, "generate-invoices")

        current = existing_invoices(db, snapshot.id)
        if snapshot.status != OPEN or current:
            logger.warning(
                f"Duplicate invoice generation for snapshot {snapshot.id} "
                f"(status={snapshot.status}, invoices={len(current)}), skipping"
            )
            db.rollback()
            return InvoiceGenerationResult(snapshot=snapshot, generated=False, invoices=current)

        state = load_frozen_state(snapshot)
        by_advertiser: dict[int, list[FrozenContract]] = {}
        for contract in state.contracts:
            by_advertiser.setdefault(contract.advertiser_id, []).append(contract)

        due_year, due_month = next_period(state.year, state.month)
        due_date = date(due_year, due_month, config.invoice_due_day)

        invoices = []
        total = Decimal("0.00")
        for sequence, advertiser_id in enumerate(sorted(by_advertiser), start=1):
            lines = []
            amount_ex_vat = Decimal("0.00")
            vat_amount = Decimal("0.00")
            for contract in by_advertiser[advertiser_id]:
                days, days_in_period, amount = billed_amount(contract, state)
                if days == 0:
                    continue
                lines.append(InvoiceLines(
                    contract_id=contract.id,
                    days_billed=days,
                    days_in_period=days_in_period,
                    monthly_price_ex_vat=contract.monthly_price_ex_vat,
                    amount_ex_vat=amount,
                ))
                amount_ex_vat += amount
                vat_amount += to_cents(amount * contract.vat_percent / 100)
            if not lines:
                continue

            invoice = Invoices(
                snapshot_id=snapshot.id,
                advertiser_id=advertiser_id,
                invoice_number=invoice_number(state.year, state.month, sequence),
                period_start=state.period_start,
                period_end=state.period_end,
                amount_ex_vat=amount_ex_vat,
                vat_amount=vat_amount,
                amount_inc_vat=amount_ex_vat + vat_amount,
                due_date=due_date,
                status="draft",
                created_at=now,
                lines=lines,
            )
            db.add(invoice)
            invoices.append(invoice)
            total += amount_ex_vat

        snapshot.status = INVOICED
        snapshot.invoices_generated_at = now
        snapshot.total_revenue = total
        db.commit()
    except IntegrityError:
        db.rollback()
        snapshot = get_snapshot(db, snapshot_id)
        logger.warning(f"Invoices for snapshot {snapshot_id} were generated concurrently, skipping")
        return InvoiceGenerationResult(snapshot=snapshot, generated=False, invoices=existing_invoices(db, snapshot_id))
    except Exception:
        db.rollback()
        raise

    db.refresh(snapshot)
    logger.info(
        f"Generated {len(invoices)} invoices for snapshot {snapshot.id} "
        f"({snapshot.year}-{snapshot.month:02d}), total ex VAT {total}"
    )
    return InvoiceGenerationResult(snapshot=snapshot, generated=True, invoices=invoices)
