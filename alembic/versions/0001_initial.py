"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-01 09:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'locations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('city', sa.Text()),
        sa.Column('region_code', sa.Text()),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'active'")),
        sa.Column('ready_for_ads', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('revenue_share_percent', sa.Numeric(5, 2), nullable=False, server_default=sa.text('20')),
        sa.Column('payout_type', sa.Text(), nullable=False, server_default=sa.text("'revshare'")),
        sa.Column('fixed_payout_amount', sa.Numeric(10, 2)),
        sa.Column('visitors_per_week', sa.Integer()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'screens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.Text()),
        sa.Column('provider_device_ref', sa.Text()),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'online'")),
        sa.Column('weight_override', sa.Numeric(4, 2)),
    )
    op.create_index('ix_screens_location_id', 'screens', ['location_id'])

    op.create_table(
        'contracts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('advertiser_id', sa.Integer(), nullable=False),
        sa.Column('monthly_price_ex_vat', sa.Numeric(12, 2), nullable=False),
        sa.Column('vat_percent', sa.Numeric(5, 2), nullable=False, server_default=sa.text('21')),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'draft'")),
        sa.Column('signed_at', sa.DateTime()),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date()),
    )
    op.create_index('ix_contracts_advertiser_id', 'contracts', ['advertiser_id'])

    op.create_table(
        'placements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('contract_id', sa.Integer(), sa.ForeignKey('contracts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('screen_id', sa.Integer(), sa.ForeignKey('screens.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.Date()),
        sa.Column('end_date', sa.Date()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('seconds_per_loop', sa.Integer(), nullable=False, server_default=sa.text('10')),
        sa.Column('plays_per_hour', sa.Integer(), nullable=False, server_default=sa.text('6')),
    )
    op.create_index('ix_placements_contract_id', 'placements', ['contract_id'])
    op.create_index('ix_placements_screen_id', 'placements', ['screen_id'])

    op.create_table(
        'waitlist_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_name', sa.Text(), nullable=False),
        sa.Column('contact_name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('package_type', sa.Text(), nullable=False),
        sa.Column('required_count', sa.Integer(), nullable=False),
        sa.Column('target_region_codes', sa.JSON(), nullable=False),
        sa.Column('form_data', sa.JSON(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'WAITING'")),
        sa.Column('last_checked_at', sa.DateTime()),
        sa.Column('invite_token_hash', sa.Text(), unique=True),
        sa.Column('invite_sent_at', sa.DateTime()),
        sa.Column('invite_expires_at', sa.DateTime()),
        sa.Column('claimed_at', sa.DateTime()),
        sa.Column('cancelled_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_waitlist_requests_status', 'waitlist_requests', ['status'])

    op.create_table(
        'capacity_reservations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('waitlist_request_id', sa.Integer(), sa.ForeignKey('waitlist_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('kind', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'active'")),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('released_at', sa.DateTime()),
    )
    op.create_index('ix_capacity_reservations_waitlist_request_id', 'capacity_reservations', ['waitlist_request_id'])
    op.create_index('ix_capacity_reservations_location_status', 'capacity_reservations', ['location_id', 'status'])

    op.create_table(
        'claim_grants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('waitlist_request_id', sa.Integer(), sa.ForeignKey('waitlist_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_hash', sa.Text(), nullable=False, unique=True),
        sa.Column('form_data', sa.JSON(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('consumed_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_claim_grants_waitlist_request_id', 'claim_grants', ['waitlist_request_id'])

    op.create_table(
        'monthly_snapshots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'open'")),
        sa.Column('schema_version', sa.Integer(), nullable=False),
        sa.Column('frozen_state', sa.Text(), nullable=False),
        sa.Column('frozen_checksum', sa.Text(), nullable=False),
        sa.Column('total_revenue', sa.Numeric(12, 2)),
        sa.Column('total_weight', sa.Numeric(14, 2)),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('invoices_generated_at', sa.DateTime()),
        sa.Column('payouts_generated_at', sa.DateTime()),
        sa.Column('locked_at', sa.DateTime()),
        sa.UniqueConstraint('year', 'month', name='uq_monthly_snapshots_period'),
    )

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('snapshot_id', sa.Integer(), sa.ForeignKey('monthly_snapshots.id'), nullable=False),
        sa.Column('advertiser_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.Text(), nullable=False, unique=True),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('amount_ex_vat', sa.Numeric(12, 2), nullable=False),
        sa.Column('vat_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('amount_inc_vat', sa.Numeric(12, 2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'draft'")),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('snapshot_id', 'advertiser_id', name='uq_invoices_snapshot_advertiser'),
    )
    op.create_index('ix_invoices_snapshot_id', 'invoices', ['snapshot_id'])

    op.create_table(
        'invoice_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('contract_id', sa.Integer(), nullable=False),
        sa.Column('days_billed', sa.Integer(), nullable=False),
        sa.Column('days_in_period', sa.Integer(), nullable=False),
        sa.Column('monthly_price_ex_vat', sa.Numeric(12, 2), nullable=False),
        sa.Column('amount_ex_vat', sa.Numeric(12, 2), nullable=False),
    )
    op.create_index('ix_invoice_lines_invoice_id', 'invoice_lines', ['invoice_id'])

    op.create_table(
        'revenue_allocations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('snapshot_id', sa.Integer(), sa.ForeignKey('monthly_snapshots.id'), nullable=False),
        sa.Column('period_year', sa.Integer(), nullable=False),
        sa.Column('period_month', sa.Integer(), nullable=False),
        sa.Column('advertiser_id', sa.Integer(), nullable=False),
        sa.Column('screen_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('visitor_weight', sa.Numeric(4, 2), nullable=False),
        sa.Column('allocation_score', sa.Numeric(14, 2), nullable=False),
        sa.Column('allocated_revenue', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('snapshot_id', 'advertiser_id', 'screen_id', name='uq_revenue_allocations_snapshot_advertiser_screen'),
    )
    op.create_index('ix_revenue_allocations_snapshot_id', 'revenue_allocations', ['snapshot_id'])
    op.create_index('ix_revenue_allocations_location_id', 'revenue_allocations', ['location_id'])

    op.create_table(
        'location_payouts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('snapshot_id', sa.Integer(), sa.ForeignKey('monthly_snapshots.id'), nullable=False),
        sa.Column('period_year', sa.Integer(), nullable=False),
        sa.Column('period_month', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('allocated_revenue_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('payout_type', sa.Text(), nullable=False, server_default=sa.text("'revshare'")),
        sa.Column('fixed_amount', sa.Numeric(10, 2)),
        sa.Column('revenue_share_percent', sa.Numeric(5, 2), nullable=False),
        sa.Column('carried_in_amount', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('payout_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('minimum_threshold', sa.Numeric(10, 2), nullable=False),
        sa.Column('carried_over', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column('approved_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('snapshot_id', 'location_id', name='uq_location_payouts_snapshot_location'),
    )
    op.create_index('ix_location_payouts_snapshot_id', 'location_payouts', ['snapshot_id'])
    op.create_index('ix_location_payouts_location_id', 'location_payouts', ['location_id'])

    op.create_table(
        'carry_overs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('period_year', sa.Integer(), nullable=False),
        sa.Column('period_month', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column('source_payout_id', sa.Integer(), sa.ForeignKey('location_payouts.id'), nullable=False, unique=True),
        sa.Column('applied_snapshot_id', sa.Integer(), sa.ForeignKey('monthly_snapshots.id')),
        sa.Column('applied_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_carry_overs_location_id', 'carry_overs', ['location_id'])


def downgrade():
    op.drop_table('carry_overs')
    op.drop_table('location_payouts')
    op.drop_table('revenue_allocations')
    op.drop_table('invoice_lines')
    op.drop_table('invoices')
    op.drop_table('monthly_snapshots')
    op.drop_table('claim_grants')
    op.drop_table('capacity_reservations')
    op.drop_table('waitlist_requests')
    op.drop_table('placements')
    op.drop_table('contracts')
    op.drop_table('screens')
    op.drop_table('locations')
