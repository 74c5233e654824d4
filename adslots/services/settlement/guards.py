# adslots/services/settlement/guards.py
"""
Lock boundary checks.

A locked period is immutable: its generation steps fail fast, and the
contracts frozen into it may not be edited in ways that would change its
figures (price, VAT, start date, or an end date inside the locked period)
and may not be cancelled, only ended after the locked period.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import SnapshotLocked
from ...models.tables import Contracts, MonthlySnapshots
from .frozen import load_frozen_state

logger = logging.getLogger(__name__)

FROZEN_CONTRACT_FIELDS = ("monthly_price_ex_vat", "vat_percent", "start_date", "advertiser_id")


def ensure_not_locked(snapshot: MonthlySnapshots, action: str) -> None:
    """Raises SnapshotLocked when the snapshot is locked."""
    if snapshot.status == "locked":
        logger.warning(f"Rejected {action} on locked snapshot {snapshot.id} ({snapshot.year}-{snapshot.month:02d})")
        raise SnapshotLocked(snapshot_id=snapshot.id, action=action)


def latest_locked_period_end(db: Session, contract_id: int) -> Optional[date]:
    """End of the last locked period that froze this contract, if any."""
    latest = None
    locked = db.query(MonthlySnapshots).filter(MonthlySnapshots.status == "locked").all()
    for snapshot in locked:
        state = load_frozen_state(snapshot)
        if contract_id in state.contract_ids():
            if latest is None or state.period_end > latest:
                latest = state.period_end
    return latest


def _differs(current, new) -> bool:
    if isinstance(current, Decimal) or isinstance(new, Decimal):
        return Decimal(str(current)) != Decimal(str(new))
    return current != new


def ensure_contract_editable(db: Session, contract: Contracts, changes: dict) -> None:
    """
    Reject contract edits that would rewrite a locked period.

    Raises:
        SnapshotLocked
    """
    locked_until = latest_locked_period_end(db, contract.id)
    if locked_until is None:
        return

    for name in FROZEN_CONTRACT_FIELDS:
        if name in changes and _differs(getattr(contract, name), changes[name]):
            logger.warning(f"Rejected edit of {name} on contract {contract.id}: frozen in a locked period")
            raise SnapshotLocked(
                "Dit contract is onderdeel van een afgesloten maand; prijs en startdatum liggen vast.",
                contract_id=contract.id,
                field=name,
            )

    if changes.get("status") == "cancelled" and contract.status != "cancelled":
        logger.warning(f"Rejected cancellation of contract {contract.id}: locked until {locked_until}")
        raise SnapshotLocked(
            "Dit contract is onderdeel van een afgesloten maand en kan niet worden geannuleerd; "
            f"beëindig het met een einddatum op of na {locked_until.isoformat()}.",
            contract_id=contract.id,
            field="status",
        )

    if "end_date" in changes:
        new_end = changes["end_date"]
        if new_end is not None and new_end < locked_until:
            logger.warning(f"Rejected end date {new_end} on contract {contract.id}: locked until {locked_until}")
            raise SnapshotLocked(
                f"De einddatum kan niet vóór {locked_until.isoformat()} liggen; die maand is afgesloten.",
                contract_id=contract.id,
                field="end_date",
            )
