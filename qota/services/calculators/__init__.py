"""
Qota Compensation - Calculators Package

Pure compensation calculators. No I/O, safe to share across threads.

Modules:
- renewal_multiplier: multi-year renewal uplift bands
- metric_evaluator: achievement %, linear/tiered/gated multipliers, projections
- commission: rate-based deal commissions
- nrr: CR/ER + implementation (NRR) bonus
- spiff: large-deal SPIFF bonus
- payout_split: booking / collection / year-end tranches
- attribution: deal crediting and per-deal variable-pay attribution
- plan: plan definition and configuration validation
- aggregator: per-employee and team composition
- monthly_payout: incremental monthly payout runs
- settlement: two-tranche full & final settlement
"""

from decimal import Decimal
from typing import Sequence

from qota.services.calculators.aggregator import (
    ArrContribution,
    BlockedCompensation,
    CompensationAggregator,
    CompensationInput,
    CompensationResult,
    ComputedCompensation,
    CurrencyContext,
    MetricActual,
    NRRInput,
    TeamMemberOutcome,
)
from qota.services.calculators.attribution import (
    AttributableDeal,
    DealAttribution,
    DealAttributionCalculator,
    DealParticipant,
    IndividualParticipant,
    SupportTeamParticipant,
    credited_value,
)
from qota.services.calculators.commission import (
    CommissionCalculator,
    CommissionDeal,
    CommissionResult,
    CommissionRule,
)
from qota.services.calculators.monthly_payout import (
    MonthlyPayout,
    MonthlyPayoutCalculator,
    MonthlyPayoutInput,
    MonthlyPayoutLine,
    PayoutRunResult,
)
from qota.services.calculators.metric_evaluator import (
    LogicType,
    MetricDefinition,
    MetricEvaluator,
    MetricResult,
    MetricStatus,
    MultiplierTier,
    PayoutProjection,
)
from qota.services.calculators.nrr import NRRAmounts, NRRCalculator, NRRDeal, NRRResult, NRRSettings
from qota.services.calculators.payout_split import (
    PayoutSplitCalculator,
    PayoutSplitConfig,
    PayoutTranches,
    split_payout,
)
from qota.services.calculators.plan import CompensationPlan, PlanValidator, validate_plan
from qota.services.calculators.renewal_multiplier import (
    RenewalAdjustment,
    RenewalMultiplierResolver,
    RenewalMultiplierTier,
)
from qota.services.calculators.settlement import (
    CollectionHoldback,
    FullAndFinalCalculator,
    FullAndFinalSettlement,
    OutstandingClawback,
    SettlementInput,
    SettlementLine,
    SettlementLineType,
    YearEndReserve,
    settle_full_and_final,
)
from qota.services.calculators.spiff import SpiffCalculator, SpiffConfig, SpiffDeal, SpiffResult


# ===========================================
# CONVENIENCE FUNCTIONS
# ===========================================

def resolve_renewal_multiplier(
    renewal_years: int,
    is_multi_year: bool,
    tiers: Sequence[RenewalMultiplierTier],
) -> Decimal:
    """
    Get the renewal uplift for a deal.

    Returns 1.0 for single-year deals or when no band matches.
    """
    return RenewalMultiplierResolver(tiers).resolve(renewal_years, is_multi_year)


def calculate_commission(deal_value: Decimal, rate_pct: Decimal) -> Decimal:
    """Gross commission: value x rate / 100, in cents."""
    return CommissionCalculator.calculate_gross(deal_value, rate_pct)


def calculate_spiff(
    deals: Sequence[SpiffDeal],
    min_deal_value: Decimal,
    rate_pct: Decimal,
    spiff_name: str = "Large Deal SPIFF",
) -> SpiffResult:
    """
    Aggregate a SPIFF over deals.

    Deals strictly above min_deal_value qualify.
    """
    return SpiffCalculator(SpiffConfig(spiff_name, rate_pct, min_deal_value)).calculate(deals)


def compute_compensation(data: CompensationInput) -> CompensationResult:
    return CompensationAggregator().compute(data)


__all__ = [
    # Renewal
    "RenewalMultiplierTier",
    "RenewalMultiplierResolver",
    "RenewalAdjustment",
    # Metrics
    "LogicType",
    "MetricStatus",
    "MultiplierTier",
    "MetricDefinition",
    "MetricEvaluator",
    "MetricResult",
    "PayoutProjection",
    # Commission
    "CommissionRule",
    "CommissionDeal",
    "CommissionCalculator",
    "CommissionResult",
    # NRR
    "NRRSettings",
    "NRRDeal",
    "NRRAmounts",
    "NRRCalculator",
    "NRRResult",
    # SPIFF
    "SpiffConfig",
    "SpiffDeal",
    "SpiffCalculator",
    "SpiffResult",
    # Split
    "PayoutSplitConfig",
    "PayoutSplitCalculator",
    "PayoutTranches",
    "split_payout",
    # Attribution
    "IndividualParticipant",
    "SupportTeamParticipant",
    "DealParticipant",
    "credited_value",
    "AttributableDeal",
    "DealAttribution",
    "DealAttributionCalculator",
    # Plan
    "CompensationPlan",
    "PlanValidator",
    "validate_plan",
    # Aggregation
    "ArrContribution",
    "MetricActual",
    "NRRInput",
    "CurrencyContext",
    "CompensationInput",
    "CompensationResult",
    "CompensationAggregator",
    "ComputedCompensation",
    "BlockedCompensation",
    "TeamMemberOutcome",
    # Payout runs
    "MonthlyPayoutInput",
    "MonthlyPayoutLine",
    "MonthlyPayout",
    "MonthlyPayoutCalculator",
    "PayoutRunResult",
    # Settlement
    "YearEndReserve",
    "CollectionHoldback",
    "OutstandingClawback",
    "SettlementInput",
    "SettlementLineType",
    "SettlementLine",
    "FullAndFinalSettlement",
    "FullAndFinalCalculator",
    "settle_full_and_final",
    # Convenience functions
    "resolve_renewal_multiplier",
    "calculate_commission",
    "calculate_spiff",
    "compute_compensation",
]
