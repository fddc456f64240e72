"""
Qota Compensation - Commission Calculator

Rate-based commission on individual deals:
- gross = deal value x rate / 100
- rules are defined per commission type on the plan
- a rule may carry a minimum deal value below which the deal does not qualify
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from qota.services.calculators.payout_split import (
    PayoutSplitCalculator,
    PayoutSplitConfig,
    PayoutTranches,
)
from qota.utils.money import ZERO, Number, percent_of, round_money, to_decimal

logger = logging.getLogger(__name__)


# Commission types seen on plans; plans may define their own
PERPETUAL_LICENSE = "Perpetual License"
MANAGED_SERVICES = "Managed Services"
IMPLEMENTATION = "Implementation"
CR_ER = "CR/ER"

STANDARD_COMMISSION_TYPES = (PERPETUAL_LICENSE, MANAGED_SERVICES, IMPLEMENTATION, CR_ER)


@dataclass(frozen=True)
class CommissionRule:
    commission_type: str
    rate_pct: Decimal
    min_threshold: Optional[Decimal] = None
    is_active: bool = True
    payout_split: PayoutSplitConfig = field(default_factory=PayoutSplitConfig.default)


@dataclass(frozen=True)
class CommissionDeal:
    deal_id: str
    commission_type: str
    deal_value: Decimal


@dataclass(frozen=True)
class CommissionResult:
    deal_id: str
    commission_type: str
    deal_value: Decimal
    rate_pct: Decimal
    min_threshold: Optional[Decimal]
    qualifies: bool
    tranches: PayoutTranches

    @property
    def gross_payout(self) -> Decimal:
        return self.tranches.eligible


class CommissionCalculator:
    """Computes deal commissions from a plan's commission rules."""

    def __init__(self, rules: Iterable[CommissionRule] = ()):
        self.rules: Dict[str, CommissionRule] = {
            rule.commission_type: rule for rule in rules if rule.is_active
        }

    @staticmethod
    def calculate_gross(deal_value: Number, rate_pct: Number) -> Decimal:
        """gross = value x rate / 100, rounded to cents."""
        value = to_decimal(deal_value)
        if value <= 0:
            return round_money(ZERO)
        return round_money(percent_of(value, rate_pct))

    def rule_for(self, commission_type: str) -> Optional[CommissionRule]:
        return self.rules.get(commission_type)

    def calculate(self, deal: CommissionDeal) -> Optional[CommissionResult]:
        """
        Calculate commission for one deal.

        Returns None when the plan has no active rule for the deal's type.
        """
        rule = self.rule_for(deal.commission_type)
        if rule is None:
            logger.debug(f"No active commission rule for type '{deal.commission_type}' (deal {deal.deal_id})")
            return None

        value = to_decimal(deal.deal_value)
        qualifies = rule.min_threshold is None or value >= rule.min_threshold
        gross = self.calculate_gross(value, rule.rate_pct) if qualifies else round_money(ZERO)

        return CommissionResult(
            deal_id=deal.deal_id,
            commission_type=deal.commission_type,
            deal_value=value,
            rate_pct=rule.rate_pct,
            min_threshold=rule.min_threshold,
            qualifies=qualifies,
            tranches=PayoutSplitCalculator(rule.payout_split).split(gross),
        )

    def calculate_all(self, deals: Sequence[CommissionDeal]) -> List[CommissionResult]:
        results = []
        for deal in deals:
            result = self.calculate(deal)
            if result is not None:
                results.append(result)
        return results
