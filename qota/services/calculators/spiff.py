"""
Qota Compensation - SPIFF Aggregator

Large-deal SPIFF: every deal strictly above the qualifying threshold
contributes its value to the eligible actuals, and the bonus is a flat
rate on that total. SPIFFs are paid in full unless the plan configures
a payout split.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence

from qota.services.calculators.payout_split import (
    PayoutSplitCalculator,
    PayoutSplitConfig,
    PayoutTranches,
)
from qota.utils.money import ZERO, percent_of, round_money, sum_money, to_decimal


@dataclass(frozen=True)
class SpiffConfig:
    spiff_name: str
    rate_pct: Decimal
    min_deal_value: Decimal = ZERO
    payout_split: Optional[PayoutSplitConfig] = None


@dataclass(frozen=True)
class SpiffDeal:
    deal_id: str
    deal_value: Decimal
    customer_name: Optional[str] = None


@dataclass(frozen=True)
class SpiffDealBreakdown:
    deal_id: str
    deal_value: Decimal
    is_eligible: bool
    spiff_payout: Decimal
    exclusion_reason: Optional[str]
    customer_name: Optional[str] = None


@dataclass(frozen=True)
class SpiffResult:
    spiff_name: str
    rate_pct: Decimal
    min_deal_value: Decimal
    eligible_actuals: Decimal
    tranches: PayoutTranches
    deal_breakdown: List[SpiffDealBreakdown] = field(default_factory=list)

    @property
    def total_spiff(self) -> Decimal:
        return self.tranches.eligible

    @property
    def eligible_deal_count(self) -> int:
        return sum(1 for d in self.deal_breakdown if d.is_eligible)


class SpiffCalculator:
    """Aggregates qualifying deals into a SPIFF bonus."""

    def __init__(self, config: SpiffConfig):
        self.config = config

    def is_eligible(self, deal_value: Decimal) -> bool:
        return deal_value > self.config.min_deal_value

    def calculate(self, deals: Sequence[SpiffDeal]) -> SpiffResult:
        breakdown: List[SpiffDealBreakdown] = []
        for deal in deals:
            value = to_decimal(deal.deal_value)
            eligible = self.is_eligible(value)
            breakdown.append(
                SpiffDealBreakdown(
                    deal_id=deal.deal_id,
                    deal_value=value,
                    is_eligible=eligible,
                    spiff_payout=round_money(percent_of(value, self.config.rate_pct)) if eligible else ZERO,
                    exclusion_reason=None if eligible else (
                        f"Deal value {value:,.2f} does not exceed threshold {self.config.min_deal_value:,.2f}"
                    ),
                    customer_name=deal.customer_name,
                )
            )

        eligible_actuals = sum_money(d.deal_value for d in breakdown if d.is_eligible)
        total = round_money(percent_of(eligible_actuals, self.config.rate_pct))
        split = self.config.payout_split or PayoutSplitConfig.paid_in_full()

        return SpiffResult(
            spiff_name=self.config.spiff_name,
            rate_pct=self.config.rate_pct,
            min_deal_value=self.config.min_deal_value,
            eligible_actuals=eligible_actuals,
            tranches=PayoutSplitCalculator(split).split(total),
            deal_breakdown=breakdown,
        )
