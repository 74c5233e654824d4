# adslots/models/tables.py
"""
ORM tables.

Inventory (locations, screens, contracts, placements) is owned by provider sync;
the admission and settlement core only derives from it. Waitlist, reservation,
snapshot, invoice, allocation, payout and carry-over tables are owned here.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Index,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

from ..utils.clock import utcnow

Base = declarative_base()
metadata = Base.metadata


# ──────────────────────────────────────────────────────────────────────────────
# Inventory
# ──────────────────────────────────────────────────────────────────────────────

class Locations(Base):
    __tablename__ = 'locations'

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    city = Column(Text)
    region_code = Column(Text)
    status = Column(Text, nullable=False, default='active', server_default=text("'active'"))  # active | inactive
    ready_for_ads = Column(Boolean, nullable=False, default=False, server_default=text('false'))
    revenue_share_percent = Column(Numeric(5, 2), nullable=False, default=20, server_default=text('20'))
    payout_type = Column(Text, nullable=False, default='revshare', server_default=text("'revshare'"))  # revshare | fixed
    fixed_payout_amount = Column(Numeric(10, 2))
    visitors_per_week = Column(Integer)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    screens = relationship('Screens', back_populates='location')


class Screens(Base):
    __tablename__ = 'screens'

    id = Column(Integer, primary_key=True)
    location_id = Column(ForeignKey('locations.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(Text)
    provider_device_ref = Column(Text)
    status = Column(Text, nullable=False, default='online', server_default=text("'online'"))
    weight_override = Column(Numeric(4, 2))

    location = relationship('Locations', back_populates='screens')
    placements = relationship('Placements', back_populates='screen')


class Contracts(Base):
    __tablename__ = 'contracts'

    id = Column(Integer, primary_key=True)
    advertiser_id = Column(Integer, nullable=False, index=True)
    monthly_price_ex_vat = Column(Numeric(12, 2), nullable=False)
    vat_percent = Column(Numeric(5, 2), nullable=False, default=21, server_default=text('21'))
    status = Column(Text, nullable=False, default='draft', server_default=text("'draft'"))  # draft | signed | active | cancelled
    signed_at = Column(DateTime)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date)

    placements = relationship('Placements', back_populates='contract')


class Placements(Base):
    __tablename__ = 'placements'

    id = Column(Integer, primary_key=True)
    contract_id = Column(ForeignKey('contracts.id', ondelete='CASCADE'), nullable=False, index=True)
    screen_id = Column(ForeignKey('screens.id', ondelete='CASCADE'), nullable=False, index=True)
    start_date = Column(Date)
    end_date = Column(Date)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text('true'))
    seconds_per_loop = Column(Integer, nullable=False, default=10, server_default=text('10'))
    plays_per_hour = Column(Integer, nullable=False, default=6, server_default=text('6'))

    contract = relationship('Contracts', back_populates='placements')
    screen = relationship('Screens', back_populates='placements')


# ──────────────────────────────────────────────────────────────────────────────
# Admission control
# ──────────────────────────────────────────────────────────────────────────────

class WaitlistRequests(Base):
    __tablename__ = 'waitlist_requests'

    id = Column(Integer, primary_key=True)
    company_name = Column(Text, nullable=False)
    contact_name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    package_type = Column(Text, nullable=False)  # SINGLE | TRIPLE | TEN | CUSTOM
    required_count = Column(Integer, nullable=False)
    target_region_codes = Column(JSON, nullable=False, default=list)
    form_data = Column(JSON, nullable=False, default=dict)
    status = Column(Text, nullable=False, default='WAITING', server_default=text("'WAITING'"), index=True)
    last_checked_at = Column(DateTime)
    invite_token_hash = Column(Text, unique=True)
    invite_sent_at = Column(DateTime)
    invite_expires_at = Column(DateTime)
    claimed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    reservations = relationship('CapacityReservations', back_populates='waitlist_request')
    grants = relationship('ClaimGrants', back_populates='waitlist_request')


class CapacityReservations(Base):
    __tablename__ = 'capacity_reservations'
    __table_args__ = (
        Index('ix_capacity_reservations_location_status', 'location_id', 'status'),
    )

    id = Column(Integer, primary_key=True)
    waitlist_request_id = Column(ForeignKey('waitlist_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    location_id = Column(ForeignKey('locations.id', ondelete='CASCADE'), nullable=False)
    kind = Column(Text, nullable=False)  # invite | claim
    status = Column(Text, nullable=False, default='active', server_default=text("'active'"))  # active | consumed | released
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    released_at = Column(DateTime)

    waitlist_request = relationship('WaitlistRequests', back_populates='reservations')


class ClaimGrants(Base):
    __tablename__ = 'claim_grants'

    id = Column(Integer, primary_key=True)
    waitlist_request_id = Column(ForeignKey('waitlist_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    token_hash = Column(Text, nullable=False, unique=True)
    form_data = Column(JSON, nullable=False, default=dict)
    expires_at = Column(DateTime, nullable=False)
    consumed_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    waitlist_request = relationship('WaitlistRequests', back_populates='grants')


# ──────────────────────────────────────────────────────────────────────────────
# Month-close settlement
# ──────────────────────────────────────────────────────────────────────────────

class MonthlySnapshots(Base):
    __tablename__ = 'monthly_snapshots'
    __table_args__ = (
        UniqueConstraint('year', 'month', name='uq_monthly_snapshots_period'),
    )

    id = Column(Integer, primary_key=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, default='open', server_default=text("'open'"))  # open | invoiced | payouts_generated | locked
    schema_version = Column(Integer, nullable=False)
    frozen_state = Column(Text, nullable=False)
    frozen_checksum = Column(Text, nullable=False)
    total_revenue = Column(Numeric(12, 2))
    total_weight = Column(Numeric(14, 2))
    created_at = Column(DateTime, nullable=False, default=utcnow)
    invoices_generated_at = Column(DateTime)
    payouts_generated_at = Column(DateTime)
    locked_at = Column(DateTime)

    invoices = relationship('Invoices', back_populates='snapshot')
    allocations = relationship('RevenueAllocations', back_populates='snapshot')
    payouts = relationship('LocationPayouts', back_populates='snapshot')


class Invoices(Base):
    __tablename__ = 'invoices'
    __table_args__ = (
        UniqueConstraint('snapshot_id', 'advertiser_id', name='uq_invoices_snapshot_advertiser'),
    )

    id = Column(Integer, primary_key=True)
    snapshot_id = Column(ForeignKey('monthly_snapshots.id'), nullable=False, index=True)
    advertiser_id = Column(Integer, nullable=False)
    invoice_number = Column(Text, nullable=False, unique=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    amount_ex_vat = Column(Numeric(12, 2), nullable=False)
    vat_amount = Column(Numeric(12, 2), nullable=False)
    amount_inc_vat = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default='draft', server_default=text("'draft'"))
    created_at = Column(DateTime, nullable=False, default=utcnow)

    snapshot = relationship('MonthlySnapshots', back_populates='invoices')
    lines = relationship('InvoiceLines', back_populates='invoice', cascade='all, delete-orphan')


class InvoiceLines(Base):
    __tablename__ = 'invoice_lines'

    id = Column(Integer, primary_key=True)
    invoice_id = Column(ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True)
    contract_id = Column(Integer, nullable=False)
    days_billed = Column(Integer, nullable=False)
    days_in_period = Column(Integer, nullable=False)
    monthly_price_ex_vat = Column(Numeric(12, 2), nullable=False)
    amount_ex_vat = Column(Numeric(12, 2), nullable=False)

    invoice = relationship('Invoices', back_populates='lines')


class RevenueAllocations(Base):
    __tablename__ = 'revenue_allocations'
    __table_args__ = (
        UniqueConstraint('snapshot_id', 'advertiser_id', 'screen_id', name='uq_revenue_allocations_snapshot_advertiser_screen'),
    )

    id = Column(Integer, primary_key=True)
    snapshot_id = Column(ForeignKey('monthly_snapshots.id'), nullable=False, index=True)
    period_year = Column(Integer, nullable=False)
    period_month = Column(Integer, nullable=False)
    advertiser_id = Column(Integer, nullable=False)
    screen_id = Column(Integer, nullable=False)
    location_id = Column(Integer, nullable=False, index=True)
    visitor_weight = Column(Numeric(4, 2), nullable=False)
    allocation_score = Column(Numeric(14, 2), nullable=False)
    allocated_revenue = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    snapshot = relationship('MonthlySnapshots', back_populates='allocations')


class LocationPayouts(Base):
    __tablename__ = 'location_payouts'
    __table_args__ = (
        UniqueConstraint('snapshot_id', 'location_id', name='uq_location_payouts_snapshot_location'),
    )

    id = Column(Integer, primary_key=True)
    snapshot_id = Column(ForeignKey('monthly_snapshots.id'), nullable=False, index=True)
    period_year = Column(Integer, nullable=False)
    period_month = Column(Integer, nullable=False)
    location_id = Column(Integer, nullable=False, index=True)
    allocated_revenue_total = Column(Numeric(12, 2), nullable=False)
    payout_type = Column(Text, nullable=False, default='revshare', server_default=text("'revshare'"))
    fixed_amount = Column(Numeric(10, 2))
    revenue_share_percent = Column(Numeric(5, 2), nullable=False)
    carried_in_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default=text('0'))
    payout_amount = Column(Numeric(12, 2), nullable=False)
    minimum_threshold = Column(Numeric(10, 2), nullable=False)
    carried_over = Column(Boolean, nullable=False, default=False, server_default=text('false'))
    status = Column(Text, nullable=False, default='pending', server_default=text("'pending'"))  # pending | approved
    approved_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    snapshot = relationship('MonthlySnapshots', back_populates='payouts')


class CarryOvers(Base):
    __tablename__ = 'carry_overs'

    id = Column(Integer, primary_key=True)
    location_id = Column(Integer, nullable=False, index=True)
    period_year = Column(Integer, nullable=False)
    period_month = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Text, nullable=False, default='pending', server_default=text("'pending'"))  # pending | applied
    source_payout_id = Column(ForeignKey('location_payouts.id'), nullable=False, unique=True)
    applied_snapshot_id = Column(ForeignKey('monthly_snapshots.id'))
    applied_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)
