# adslots/schemas/snapshots.py
"""
Pydantic schemas for the settlement API.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


# ──────────────────────────────────────────────────────────────────────────────
# Snapshots
# ──────────────────────────────────────────────────────────────────────────────

class SnapshotCreate(BaseModel):
    """Request body for POST /snapshots"""
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)


class SnapshotRead(BaseModel):
    id: int
    year: int
    month: int
    status: str  # open, invoiced, payouts_generated, locked
    schema_version: int
    total_revenue: Optional[Decimal] = None
    total_weight: Optional[Decimal] = None
    created_at: datetime
    invoices_generated_at: Optional[datetime] = None
    payouts_generated_at: Optional[datetime] = None
    locked_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SnapshotCreateResponse(BaseModel):
    created: bool
    snapshot: SnapshotRead


class SnapshotDetail(SnapshotRead):
    """Snapshot with a summary of its frozen state."""
    period_start: date
    period_end: date
    contracts_count: int
    placements_count: int
    locations_count: int
    carry_overs_count: int


# ──────────────────────────────────────────────────────────────────────────────
# Invoices
# ──────────────────────────────────────────────────────────────────────────────

class InvoiceLineRead(BaseModel):
    contract_id: int
    days_billed: int
    days_in_period: int
    monthly_price_ex_vat: Decimal
    amount_ex_vat: Decimal

    model_config = {"from_attributes": True}


class InvoiceRead(BaseModel):
    id: int
    snapshot_id: int
    advertiser_id: int
    invoice_number: str
    period_start: date
    period_end: date
    amount_ex_vat: Decimal
    vat_amount: Decimal
    amount_inc_vat: Decimal
    due_date: date
    status: str
    lines: list[InvoiceLineRead] = []

    model_config = {"from_attributes": True}


class InvoiceGenerationResponse(BaseModel):
    generated: bool
    snapshot: SnapshotRead
    invoices: list[InvoiceRead]


# ──────────────────────────────────────────────────────────────────────────────
# Allocations & payouts
# ──────────────────────────────────────────────────────────────────────────────

class AllocationRead(BaseModel):
    advertiser_id: int
    screen_id: int
    location_id: int
    period_year: int
    period_month: int
    visitor_weight: Decimal
    allocation_score: Decimal
    allocated_revenue: Decimal

    model_config = {"from_attributes": True}


class PayoutRead(BaseModel):
    id: int
    snapshot_id: int
    location_id: int
    period_year: int
    period_month: int
    allocated_revenue_total: Decimal
    payout_type: str  # revshare, fixed
    fixed_amount: Optional[Decimal] = None
    revenue_share_percent: Decimal
    carried_in_amount: Decimal
    payout_amount: Decimal
    minimum_threshold: Decimal
    carried_over: bool
    status: str  # pending, approved
    approved_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PayoutGenerationResponse(BaseModel):
    generated: bool
    snapshot: SnapshotRead
    payouts: list[PayoutRead]
    allocations: list[AllocationRead]


class CarryOverRead(BaseModel):
    id: int
    location_id: int
    period_year: int
    period_month: int
    amount: Decimal
    status: str  # pending, applied
    source_payout_id: int
    applied_snapshot_id: Optional[int] = None
    applied_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CarryOverBalance(BaseModel):
    location_id: int
    pending_balance: Decimal
