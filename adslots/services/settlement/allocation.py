# adslots/services/settlement/allocation.py
"""
Weighted revenue allocation.

Score per placement = seconds_per_loop × plays_per_hour × days active in the
period × visitor weight. The visitor weight is the screen's override when one
is set, otherwise the band of its location's weekly visitors:

    0-300 → 0.8    301-700 → 1.0    701-1500 → 1.2    1501+ → 1.5

Each advertiser's invoiced revenue is split only over the screens that
advertiser's placements ran on, with largest-remainder cent rounding. A
location's total is the sum of its screen rows, so rows and totals always
agree.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .config import SettlementConfig, get_settlement_config
from .frozen import FrozenPeriodState, FrozenPlacement
from .periods import distribute

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScreenAllocation:
    advertiser_id: int
    screen_id: int
    location_id: int
    visitor_weight: Decimal
    allocation_score: Decimal
    allocated_revenue: Decimal


def visitor_weight(
    visitors_per_week: Optional[int],
    weight_override: Optional[Decimal] = None,
    config: Optional[SettlementConfig] = None,
) -> Decimal:
    if weight_override:
        return Decimal(weight_override)
    config = config or get_settlement_config()
    if visitors_per_week is None:
        visitors_per_week = config.default_visitors_per_week
    for upper, weight in config.visitor_weight_bands:
        if upper is None or visitors_per_week <= upper:
            return weight
    return Decimal("1.0")


def placement_score(placement: FrozenPlacement) -> Decimal:
    return Decimal(placement.seconds_per_loop * placement.plays_per_hour * placement.days_active) * placement.visitor_weight


def total_weight(state: FrozenPeriodState) -> Decimal:
    return sum((placement_score(p) for p in state.placements), Decimal(0))


def advertiser_screen_scores(state: FrozenPeriodState) -> dict[int, dict[int, tuple[FrozenPlacement, Decimal]]]:
    """advertiser_id → {screen_id → (a placement on the screen, summed score)}"""
    advertiser_of = {c.id: c.advertiser_id for c in state.contracts}
    scores: dict[int, dict[int, tuple[FrozenPlacement, Decimal]]] = {}
    for placement in state.placements:
        advertiser_id = advertiser_of.get(placement.contract_id)
        if advertiser_id is None:
            continue
        screens = scores.setdefault(advertiser_id, {})
        first, score = screens.get(placement.screen_id, (placement, Decimal(0)))
        screens[placement.screen_id] = (first, score + placement_score(placement))
    return scores


def allocate_revenue(revenue_by_advertiser: dict[int, Decimal], state: FrozenPeriodState) -> list[ScreenAllocation]:
    """
    Split each advertiser's invoiced revenue over that advertiser's screens.

    Returns:
        One ScreenAllocation per (advertiser, scored screen), ordered by
        (location_id, screen_id, advertiser_id)
    """
    scores = advertiser_screen_scores(state)

    result = []
    for advertiser_id in sorted(revenue_by_advertiser):
        revenue = revenue_by_advertiser[advertiser_id]
        screens = scores.get(advertiser_id, {})
        weights = {screen_id: score for screen_id, (_, score) in screens.items()}
        if revenue > 0 and not any(weights.values()):
            logger.warning(f"Advertiser {advertiser_id}: revenue {revenue} has no scored screens, not allocated")
            continue

        shares = distribute(revenue, weights)
        for screen_id, (placement, score) in screens.items():
            result.append(ScreenAllocation(
                advertiser_id=advertiser_id,
                screen_id=screen_id,
                location_id=placement.location_id,
                visitor_weight=placement.visitor_weight,
                allocation_score=score,
                allocated_revenue=shares[screen_id],
            ))

    result.sort(key=lambda row: (row.location_id, row.screen_id, row.advertiser_id))
    return result


def location_totals(allocations: list[ScreenAllocation]) -> dict[int, Decimal]:
    totals: dict[int, Decimal] = {}
    for row in allocations:
        totals[row.location_id] = totals.get(row.location_id, Decimal("0.00")) + row.allocated_revenue
    return totals
