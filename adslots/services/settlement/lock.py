# adslots/services/settlement/lock.py
"""
Period lock: payouts_generated → locked (terminal).

Locking approves every payout that is not carried over and finalizes the
period's invoices. Afterwards every generation step and the lock itself fail
with SnapshotLocked.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import InvalidSnapshotState
from ...models.tables import Invoices, LocationPayouts, MonthlySnapshots
from ...utils.clock import utcnow
from .frozen import load_frozen_state
from .guards import ensure_not_locked
from .snapshots import LOCKED, PAYOUTS_GENERATED, get_snapshot

logger = logging.getLogger(__name__)


def lock_snapshot(db: Session, snapshot_id: int, now: Optional[datetime] = None) -> MonthlySnapshots:
    """
    Raises:
        NotFound, SnapshotLocked, InvalidSnapshotState, SnapshotCorrupted
    """
    now = now or utcnow()
    try:
        snapshot = get_snapshot(db, snapshot_id, lock=True)
        ensure_not_locked(snapshot, "lock")
        if snapshot.status != PAYOUTS_GENERATED:
            raise InvalidSnapshotState(
                "Een maand kan pas worden afgesloten nadat de uitbetalingen zijn berekend.",
                snapshot_id=snapshot.id,
                status=snapshot.status,
            )
        # Refuse to seal a period whose frozen state no longer verifies
        load_frozen_state(snapshot)

        approved = (
            db.query(LocationPayouts)
            .filter(
                LocationPayouts.snapshot_id == snapshot.id,
                LocationPayouts.carried_over.is_(False),
                LocationPayouts.status == "pending",
            )
            .all()
        )
        for payout in approved:
            payout.status = "approved"
            payout.approved_at = now

        db.query(Invoices).filter(
            Invoices.snapshot_id == snapshot.id,
            Invoices.status == "draft",
        ).update({Invoices.status: "final"}, synchronize_session=False)

        snapshot.status = LOCKED
        snapshot.locked_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(snapshot)
    logger.info(
        f"Snapshot {snapshot.id} ({snapshot.year}-{snapshot.month:02d}) locked, "
        f"{len(approved)} payouts approved"
    )
    return snapshot
