# adslots/services/settlement/frozen.py
"""
Frozen period state.

The contract/placement state of a billing period is captured once, at
snapshot creation, as a versioned pydantic value object. It is stored as
JSON text next to its sha256 checksum; every later step reads the period
from here, never from the live tables.

Loading verifies the checksum and validates the schema. Either failure
means the stored state can no longer be trusted (SnapshotCorrupted).
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from ...errors import SnapshotCorrupted
from ...utils.hashing import hash_value

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMA_VERSIONS = (1,)


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class FrozenContract(FrozenModel):
    id: int
    advertiser_id: int
    monthly_price_ex_vat: Decimal
    vat_percent: Decimal
    status: str
    start_date: date
    end_date: Optional[date] = None


class FrozenPlacement(FrozenModel):
    id: int
    contract_id: int
    screen_id: int
    location_id: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    seconds_per_loop: int
    plays_per_hour: int
    days_active: int
    visitor_weight: Decimal = Decimal("1.0")


class FrozenLocation(FrozenModel):
    id: int
    name: str
    city: Optional[str] = None
    revenue_share_percent: Decimal
    payout_type: Literal["revshare", "fixed"] = "revshare"
    fixed_payout_amount: Optional[Decimal] = None
    visitors_per_week: Optional[int] = None


class FrozenCarryOver(FrozenModel):
    id: int
    location_id: int
    period_year: int
    period_month: int
    amount: Decimal


class FrozenPeriodState(FrozenModel):
    schema_version: Literal[1] = 1
    year: int
    month: int
    period_start: date
    period_end: date
    captured_at: datetime
    contracts: tuple[FrozenContract, ...] = ()
    placements: tuple[FrozenPlacement, ...] = ()
    locations: tuple[FrozenLocation, ...] = ()
    carry_overs: tuple[FrozenCarryOver, ...] = ()

    def contract_ids(self) -> set[int]:
        return {c.id for c in self.contracts}

    def location(self, location_id: int) -> Optional[FrozenLocation]:
        for loc in self.locations:
            if loc.id == location_id:
                return loc
        return None


def dump_frozen_state(state: FrozenPeriodState) -> tuple[str, str]:
    """Return (json_text, sha256 checksum)."""
    raw = state.model_dump_json()
    return raw, hash_value(raw)


def load_frozen_state(snapshot) -> FrozenPeriodState:
    """
    Read and verify a snapshot's frozen state.

    Raises:
        SnapshotCorrupted: checksum mismatch, unsupported version or invalid data
    """
    raw = snapshot.frozen_state or ""
    if hash_value(raw) != snapshot.frozen_checksum:
        logger.error(f"Snapshot {snapshot.id}: frozen state checksum mismatch")
        raise SnapshotCorrupted(snapshot_id=snapshot.id)
    if snapshot.schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        logger.error(f"Snapshot {snapshot.id}: unsupported schema version {snapshot.schema_version}")
        raise SnapshotCorrupted(snapshot_id=snapshot.id)
    try:
        return FrozenPeriodState.model_validate_json(raw)
    except PydanticValidationError as e:
        logger.error(f"Snapshot {snapshot.id}: frozen state failed validation: {e}")
        raise SnapshotCorrupted(snapshot_id=snapshot.id) from e
