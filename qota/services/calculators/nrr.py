"""
Qota Compensation - NRR Bonus Calculator

Net Revenue Retention bonus, paid on CR/ER (change request / enhancement
request) and implementation revenue:

    NRR actuals  = eligible CR/ER + eligible implementation
    achievement  = NRR actuals / NRR target x 100
    pool         = variable OTE x NRR-OTE % / 100
    payout       = pool x achievement / 100, floored at 0 and capped at the
                   plan's ceiling when one is configured

A deal's CR/ER or implementation value only counts toward NRR when the
deal's gross-profit margin meets that component's minimum.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence

from qota.services.calculators.payout_split import (
    PayoutSplitCalculator,
    PayoutSplitConfig,
    PayoutTranches,
)
from qota.utils.money import ZERO, Number, percent_of, ratio_pct, round_money, sum_money, to_decimal


@dataclass(frozen=True)
class NRRSettings:
    """Plan-level NRR configuration."""
    nrr_ote_pct: Decimal
    cr_er_min_gp_margin_pct: Decimal = ZERO
    impl_min_gp_margin_pct: Decimal = ZERO
    payout_ceiling: Optional[Decimal] = None
    payout_split: PayoutSplitConfig = field(default_factory=PayoutSplitConfig.nrr_default)


@dataclass(frozen=True)
class NRRDeal:
    deal_id: str
    cr_usd: Decimal = ZERO
    er_usd: Decimal = ZERO
    implementation_usd: Decimal = ZERO
    gp_margin_pct: Optional[Decimal] = None
    project_name: Optional[str] = None
    customer_name: Optional[str] = None

    @property
    def cr_er_usd(self) -> Decimal:
        return self.cr_usd + self.er_usd


@dataclass(frozen=True)
class NRRDealBreakdown:
    deal_id: str
    cr_er_usd: Decimal
    implementation_usd: Decimal
    gp_margin_pct: Optional[Decimal]
    is_cr_er_eligible: bool
    is_impl_eligible: bool
    cr_er_exclusion_reason: Optional[str]
    impl_exclusion_reason: Optional[str]


@dataclass(frozen=True)
class NRRAmounts:
    eligible_cr_er: Decimal
    total_cr_er: Decimal
    eligible_implementation: Decimal
    total_implementation: Decimal
    deal_breakdown: List[NRRDealBreakdown] = field(default_factory=list)


@dataclass(frozen=True)
class NRRResult:
    eligible_cr_er: Decimal
    total_cr_er: Decimal
    eligible_implementation: Decimal
    total_implementation: Decimal
    nrr_actuals: Decimal
    nrr_target: Decimal
    achievement_pct: Decimal
    nrr_ote_pct: Decimal
    payout_pool: Decimal
    capped: bool
    tranches: PayoutTranches
    deal_breakdown: List[NRRDealBreakdown] = field(default_factory=list)

    @property
    def payout(self) -> Decimal:
        return self.tranches.eligible


def _margin_exclusion(component: str, gp_margin: Optional[Decimal], minimum: Decimal) -> Optional[str]:
    if minimum <= 0:
        return None
    if gp_margin is None:
        return f"{component}: GP margin not recorded (minimum {minimum}%)"
    if gp_margin < minimum:
        return f"{component}: GP margin {gp_margin}% below minimum {minimum}%"
    return None


class NRRCalculator:
    """Computes the NRR bonus for an employee and period."""

    def __init__(self, settings: NRRSettings):
        self.settings = settings

    def classify_deals(self, deals: Sequence[NRRDeal]) -> NRRAmounts:
        """
        Split deal CR/ER and implementation values into eligible and total
        amounts using the plan's GP-margin minimums.
        """
        breakdown: List[NRRDealBreakdown] = []
        for deal in deals:
            cr_er_reason = _margin_exclusion("CR/ER", deal.gp_margin_pct, self.settings.cr_er_min_gp_margin_pct)
            impl_reason = _margin_exclusion(
                "Implementation", deal.gp_margin_pct, self.settings.impl_min_gp_margin_pct
            )
            breakdown.append(
                NRRDealBreakdown(
                    deal_id=deal.deal_id,
                    cr_er_usd=deal.cr_er_usd,
                    implementation_usd=deal.implementation_usd,
                    gp_margin_pct=deal.gp_margin_pct,
                    is_cr_er_eligible=cr_er_reason is None,
                    is_impl_eligible=impl_reason is None,
                    cr_er_exclusion_reason=cr_er_reason,
                    impl_exclusion_reason=impl_reason,
                )
            )

        return NRRAmounts(
            eligible_cr_er=sum_money(d.cr_er_usd for d in breakdown if d.is_cr_er_eligible),
            total_cr_er=sum_money(d.cr_er_usd for d in breakdown),
            eligible_implementation=sum_money(d.implementation_usd for d in breakdown if d.is_impl_eligible),
            total_implementation=sum_money(d.implementation_usd for d in breakdown),
            deal_breakdown=breakdown,
        )

    def calculate(
        self,
        amounts: NRRAmounts,
        nrr_target: Number,
        variable_ote: Number,
    ) -> NRRResult:
        """
        Calculate the NRR payout.

        Args:
            amounts: Eligible and total CR/ER and implementation amounts
            nrr_target: CR/ER target + implementation target
            variable_ote: The employee's target bonus pool

        Returns:
            NRRResult; a zero target or zero NRR-OTE % yields a zero payout
        """
        target = to_decimal(nrr_target)
        nrr_actuals = amounts.eligible_cr_er + amounts.eligible_implementation
        achievement = ratio_pct(nrr_actuals, target)
        pool = round_money(percent_of(variable_ote, self.settings.nrr_ote_pct))

        payout = max(ZERO, percent_of(pool, achievement))
        capped = False
        ceiling = self.settings.payout_ceiling
        if ceiling is not None and payout > ceiling:
            payout = ceiling
            capped = True

        return NRRResult(
            eligible_cr_er=amounts.eligible_cr_er,
            total_cr_er=amounts.total_cr_er,
            eligible_implementation=amounts.eligible_implementation,
            total_implementation=amounts.total_implementation,
            nrr_actuals=nrr_actuals,
            nrr_target=target,
            achievement_pct=achievement,
            nrr_ote_pct=self.settings.nrr_ote_pct,
            payout_pool=pool,
            capped=capped,
            tranches=PayoutSplitCalculator(self.settings.payout_split).split(payout),
            deal_breakdown=list(amounts.deal_breakdown),
        )

    def calculate_from_deals(
        self,
        deals: Sequence[NRRDeal],
        nrr_target: Number,
        variable_ote: Number,
    ) -> NRRResult:
        return self.calculate(self.classify_deals(deals), nrr_target, variable_ote)
