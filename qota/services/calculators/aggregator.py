"""
Qota Compensation - Compensation Aggregator

Composes the per-source calculators into one result per employee and
period:

    total eligible = metrics + commissions + NRR + SPIFFs
    gross paid     = sum of paid-at-booking tranches
    total paid     = gross paid - outstanding clawback balance

Metrics fed by deal contributions also carry a per-deal attribution of
their payout, so each deal's clawback-eligible booking tranche is known.

Everything here is pure: inputs in, result out. The clawback balance is
supplied by the caller (see CompensationService).
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Literal, Optional, Sequence, Tuple, Union

from qota.services.calculators.attribution import AttributableDeal, DealAttribution, DealAttributionCalculator
from qota.services.calculators.commission import CommissionCalculator, CommissionDeal, CommissionResult
from qota.services.calculators.metric_evaluator import MetricEvaluator, MetricResult
from qota.services.calculators.nrr import NRRAmounts, NRRCalculator, NRRDeal, NRRResult
from qota.services.calculators.payout_split import PayoutTranches, combine_tranches
from qota.services.calculators.plan import CompensationPlan, PlanValidator
from qota.services.calculators.renewal_multiplier import RenewalAdjustment, RenewalMultiplierResolver
from qota.services.calculators.spiff import SpiffCalculator, SpiffDeal, SpiffResult
from qota.utils.error_handling import PlanConfigurationException
from qota.utils.money import ZERO, round_money, sum_money, to_decimal

logger = logging.getLogger(__name__)


# ===========================================
# INPUTS
# ===========================================

@dataclass(frozen=True)
class ArrContribution:
    """A deal's contribution to an ARR metric, before renewal uplift."""
    deal_id: str
    value: Decimal
    renewal_years: int = 1
    is_multi_year: bool = False


@dataclass(frozen=True)
class MetricActual:
    """
    Period target and actual for one metric.

    Either `actual` or `contributions` supplies the actual; contributions
    are renewal-adjusted and summed. A None target or actual means no data.
    """
    metric_name: str
    target: Optional[Decimal]
    actual: Optional[Decimal] = None
    contributions: Tuple[ArrContribution, ...] = ()


@dataclass(frozen=True)
class NRRInput:
    nrr_target: Decimal
    amounts: Optional[NRRAmounts] = None
    deals: Tuple[NRRDeal, ...] = ()


@dataclass(frozen=True)
class CurrencyContext:
    """
    Local-currency conversion rates.

    Variable pay converts at the employee's compensation rate,
    commissions at the month's market rate.
    """
    local_currency: str
    compensation_rate: Decimal
    market_rate: Decimal


@dataclass(frozen=True)
class CompensationInput:
    employee_id: str
    plan: CompensationPlan
    target_bonus: Decimal
    fiscal_year: int
    metric_actuals: Tuple[MetricActual, ...] = ()
    commission_deals: Tuple[CommissionDeal, ...] = ()
    nrr: Optional[NRRInput] = None
    spiff_deals: Tuple[SpiffDeal, ...] = ()
    clawback_balance: Decimal = ZERO
    currency: Optional[CurrencyContext] = None


# ===========================================
# OUTPUTS
# ===========================================

@dataclass(frozen=True)
class LocalCurrencyTotals:
    local_currency: str
    variable_pay_local: Decimal
    commission_local: Decimal
    total_local: Decimal


@dataclass(frozen=True)
class CompensationResult:
    employee_id: str
    plan_name: str
    fiscal_year: int
    target_bonus: Decimal
    metric_results: List[MetricResult]
    commission_results: List[CommissionResult]
    nrr_result: Optional[NRRResult]
    spiff_results: List[SpiffResult]
    renewal_adjustments: List[RenewalAdjustment]
    totals: PayoutTranches
    clawback_balance: Decimal
    local_totals: Optional[LocalCurrencyTotals] = None
    deal_attributions: List[DealAttribution] = field(default_factory=list)

    @property
    def total_eligible(self) -> Decimal:
        return self.totals.eligible

    @property
    def gross_paid(self) -> Decimal:
        return self.totals.paid

    @property
    def total_paid(self) -> Decimal:
        return self.totals.paid - self.clawback_balance

    @property
    def total_holdback(self) -> Decimal:
        return self.totals.holdback

    @property
    def total_year_end_holdback(self) -> Decimal:
        return self.totals.year_end_holdback


@dataclass(frozen=True)
class ComputedCompensation:
    employee_id: str
    result: CompensationResult
    kind: Literal["computed"] = "computed"


@dataclass(frozen=True)
class BlockedCompensation:
    """An employee whose plan could not be evaluated."""
    employee_id: str
    plan_name: str
    faults: List[str] = field(default_factory=list)
    kind: Literal["blocked"] = "blocked"


TeamMemberOutcome = Union[ComputedCompensation, BlockedCompensation]


# ===========================================
# AGGREGATOR
# ===========================================

class CompensationAggregator:
    """Computes CompensationResult for one or many employees."""

    def resolve_actual(
        self,
        actual: MetricActual,
        resolver: RenewalMultiplierResolver,
        adjustments: List[RenewalAdjustment],
    ) -> Tuple[Optional[Decimal], List[AttributableDeal]]:
        """Metric actual plus the renewal-adjusted deals it is made of."""
        if not actual.contributions:
            return (None if actual.actual is None else to_decimal(actual.actual)), []

        adjusted = [
            resolver.adjust(c.value, c.renewal_years, c.is_multi_year) for c in actual.contributions
        ]
        adjustments.extend(adjusted)
        deals = [
            AttributableDeal(deal_id=c.deal_id, value=a.adjusted_value)
            for c, a in zip(actual.contributions, adjusted)
        ]
        return sum_money(a.adjusted_value for a in adjusted), deals

    def compute(self, data: CompensationInput) -> CompensationResult:
        """
        Compute compensation for one employee and period.

        Raises:
            PlanConfigurationException: the plan has configuration faults
        """
        plan = PlanValidator(data.plan).ensure_valid()
        resolver = RenewalMultiplierResolver(plan.renewal_tiers)
        evaluator = MetricEvaluator(data.target_bonus)

        actuals = {a.metric_name: a for a in data.metric_actuals}
        unknown = sorted(set(actuals) - {m.name for m in plan.metrics})
        if unknown:
            logger.warning(f"Ignoring actuals for metrics not on plan '{plan.name}': {', '.join(unknown)}")

        # Metrics
        adjustments: List[RenewalAdjustment] = []
        metric_results: List[MetricResult] = []
        attributions: List[DealAttribution] = []
        for metric in plan.metrics:
            actual = actuals.get(metric.name)
            if actual is None:
                metric_results.append(evaluator.evaluate(metric, None, None))
                continue
            value, deals = self.resolve_actual(actual, resolver, adjustments)
            metric_result = evaluator.evaluate(metric, actual.target, value)
            metric_results.append(metric_result)
            # Per-deal share of the payout; each booking tranche is clawback-eligible
            attributions.extend(
                DealAttributionCalculator(metric.payout_split).attribute(
                    metric.name, metric_result.eligible_payout, deals
                )
            )

        # Commissions
        commission_results = CommissionCalculator(plan.commission_rules).calculate_all(data.commission_deals)

        # NRR
        nrr_result: Optional[NRRResult] = None
        if plan.nrr is not None and data.nrr is not None:
            calculator = NRRCalculator(plan.nrr)
            amounts = data.nrr.amounts or calculator.classify_deals(data.nrr.deals)
            nrr_result = calculator.calculate(amounts, data.nrr.nrr_target, data.target_bonus)

        # SPIFFs
        spiff_results = [SpiffCalculator(spiff).calculate(data.spiff_deals) for spiff in plan.spiffs]

        variable_tranches = combine_tranches(
            [r.tranches for r in metric_results]
            + ([nrr_result.tranches] if nrr_result else [])
            + [s.tranches for s in spiff_results]
        )
        commission_tranches = combine_tranches(r.tranches for r in commission_results)
        totals = variable_tranches + commission_tranches

        local_totals = None
        if data.currency is not None:
            variable_local = round_money(variable_tranches.eligible * data.currency.compensation_rate)
            commission_local = round_money(commission_tranches.eligible * data.currency.market_rate)
            local_totals = LocalCurrencyTotals(
                local_currency=data.currency.local_currency,
                variable_pay_local=variable_local,
                commission_local=commission_local,
                total_local=variable_local + commission_local,
            )

        result = CompensationResult(
            employee_id=data.employee_id,
            plan_name=plan.name,
            fiscal_year=data.fiscal_year,
            target_bonus=to_decimal(data.target_bonus),
            metric_results=metric_results,
            commission_results=commission_results,
            nrr_result=nrr_result,
            spiff_results=spiff_results,
            renewal_adjustments=adjustments,
            totals=totals,
            clawback_balance=round_money(data.clawback_balance),
            local_totals=local_totals,
            deal_attributions=attributions,
        )
        logger.info(
            f"Computed compensation for {data.employee_id} FY{data.fiscal_year}: "
            f"eligible={result.total_eligible} paid={result.total_paid} clawback={result.clawback_balance}"
        )
        return result

    def compute_team(self, inputs: Sequence[CompensationInput]) -> List[TeamMemberOutcome]:
        """
        Compute a team. Employees with misconfigured plans are reported as
        blocked with their faults rather than left out.
        """
        outcomes: List[TeamMemberOutcome] = []
        for data in inputs:
            try:
                outcomes.append(ComputedCompensation(employee_id=data.employee_id, result=self.compute(data)))
            except PlanConfigurationException as exc:
                logger.warning(f"Compensation blocked for {data.employee_id}: {exc.message}")
                outcomes.append(
                    BlockedCompensation(
                        employee_id=data.employee_id,
                        plan_name=data.plan.name,
                        faults=exc.faults,
                    )
                )
        return outcomes
