# adslots/services/settlement/config.py
"""
Settlement configuration for month close.
"""

from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache


@dataclass(frozen=True)
class SettlementConfig:
    """
    Configuration for invoicing, allocation and payouts.

    Attributes:
        minimum_payout: Payouts below this amount are carried to the next period
        default_vat_percent: VAT used when a contract has none
        invoice_due_day: Day of the following month invoices are due
        default_seconds_per_loop: Allocation weight for placements without loop data
        default_plays_per_hour: Allocation weight for placements without play data
        default_visitors_per_week: Assumed footfall for locations without a count
        visitor_weight_bands: (upper bound of visitors per week, weight); None is open-ended
        frozen_schema_version: Version written into new frozen snapshot state
    """
    minimum_payout: Decimal = Decimal("25.00")
    default_vat_percent: Decimal = Decimal("21")
    invoice_due_day: int = 15
    default_seconds_per_loop: int = 10
    default_plays_per_hour: int = 6
    default_visitors_per_week: int = 500
    visitor_weight_bands: tuple = (
        (300, Decimal("0.8")),
        (700, Decimal("1.0")),
        (1500, Decimal("1.2")),
        (None, Decimal("1.5")),
    )
    frozen_schema_version: int = 1


@lru_cache
def get_settlement_config() -> SettlementConfig:
    """Get settlement configuration (singleton)."""
    return SettlementConfig()
