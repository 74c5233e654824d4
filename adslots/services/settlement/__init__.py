# adslots/services/settlement/__init__.py
"""
Settlement module (month close).

Snapshots: freeze a period's contract/placement state
Invoices: one invoice per advertiser from the frozen state
Payouts: weighted revenue allocation, location payouts, carry-over ledger
Lock: seal the period
"""

from .config import SettlementConfig, get_settlement_config
from .frozen import FrozenPeriodState, load_frozen_state
from .snapshots import create_snapshot, get_snapshot, list_snapshots
from .invoices import InvoiceGenerationResult, generate_invoices
from .payouts import PayoutGenerationResult, carry_over_ledger, generate_payouts, pending_carry_over_balance
from .lock import lock_snapshot
from .guards import ensure_contract_editable

__all__ = [
    "SettlementConfig",
    "get_settlement_config",
    "FrozenPeriodState",
    "load_frozen_state",
    "create_snapshot",
    "get_snapshot",
    "list_snapshots",
    "InvoiceGenerationResult",
    "generate_invoices",
    "PayoutGenerationResult",
    "generate_payouts",
    "carry_over_ledger",
    "pending_carry_over_balance",
    "lock_snapshot",
    "ensure_contract_editable",
]
