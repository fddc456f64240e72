"""
Qota Compensation - Monthly Payout Run

Each month the year-to-date compensation is recomputed and only the
increment over what earlier runs already disbursed is paid:

    increment      = YTD tranches - prior tranches   (per payout type)
    gross payable  = sum of increment booking tranches
    clawbacks due  = YTD clawback balance - clawbacks already deducted
    net payable    = gross payable - clawbacks due, floored at 0

Whatever the month cannot absorb is carried forward to the next run.
Variable pay (metrics, NRR, SPIFF) converts to local currency at the
employee's compensation rate, commissions at the month's market rate.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Literal, Mapping, Optional, Sequence, Union

from qota.services.calculators.aggregator import (
    BlockedCompensation,
    CompensationAggregator,
    CompensationInput,
    CompensationResult,
)
from qota.services.calculators.payout_split import PayoutTranches, combine_tranches
from qota.utils.error_handling import PlanConfigurationException
from qota.utils.money import ZERO, round_money, sum_money

logger = logging.getLogger(__name__)


VARIABLE_PAY = "Variable Pay"
NRR_ADDITIONAL_PAY = "NRR Additional Pay"
SPIFF = "SPIFF"

VARIABLE_PAY_TYPES = (VARIABLE_PAY, NRR_ADDITIONAL_PAY, SPIFF)


def ytd_tranches_by_type(result: CompensationResult) -> Dict[str, PayoutTranches]:
    """YTD tranches keyed by payout type; commissions keep their own type names."""
    by_type: Dict[str, PayoutTranches] = {}
    if result.metric_results:
        by_type[VARIABLE_PAY] = combine_tranches(r.tranches for r in result.metric_results)
    if result.nrr_result is not None:
        by_type[NRR_ADDITIONAL_PAY] = result.nrr_result.tranches
    if result.spiff_results:
        by_type[SPIFF] = combine_tranches(s.tranches for s in result.spiff_results)
    for commission in result.commission_results:
        if not commission.qualifies:
            continue
        current = by_type.get(commission.commission_type, PayoutTranches.zero())
        by_type[commission.commission_type] = current + commission.tranches
    return by_type


@dataclass(frozen=True)
class MonthlyPayoutLine:
    payout_type: str
    ytd: PayoutTranches
    prior: PayoutTranches
    exchange_rate: Decimal = Decimal("1")

    @property
    def is_commission(self) -> bool:
        return self.payout_type not in VARIABLE_PAY_TYPES

    @property
    def increment(self) -> PayoutTranches:
        return self.ytd - self.prior

    @property
    def payable(self) -> Decimal:
        """Booking tranche released this month; negative when YTD fell below what was paid."""
        return self.increment.paid

    @property
    def payable_local(self) -> Decimal:
        return round_money(self.payable * self.exchange_rate)


@dataclass(frozen=True)
class MonthlyPayoutInput:
    """YTD inputs through the payout month plus what earlier runs disbursed."""
    compensation: CompensationInput
    prior_payouts: Mapping[str, PayoutTranches] = field(default_factory=dict)
    prior_clawbacks_deducted: Decimal = ZERO

    @property
    def employee_id(self) -> str:
        return self.compensation.employee_id


@dataclass(frozen=True)
class MonthlyPayout:
    employee_id: str
    month: date
    plan_name: str
    lines: List[MonthlyPayoutLine]
    gross_payable: Decimal
    clawback_due: Decimal
    clawback_recovered: Decimal
    clawback_carryforward: Decimal
    net_payable: Decimal
    local_currency: Optional[str] = None
    net_payable_local: Optional[Decimal] = None
    kind: Literal["computed"] = "computed"

    @property
    def variable_pay(self) -> Decimal:
        return sum_money(line.payable for line in self.lines if not line.is_commission)

    @property
    def commissions(self) -> Decimal:
        return sum_money(line.payable for line in self.lines if line.is_commission)


MonthlyPayoutOutcome = Union[MonthlyPayout, BlockedCompensation]


@dataclass(frozen=True)
class PayoutRunResult:
    month: date
    payouts: List[MonthlyPayoutOutcome]

    @property
    def computed(self) -> List[MonthlyPayout]:
        return [p for p in self.payouts if p.kind == "computed"]

    @property
    def blocked_count(self) -> int:
        return len(self.payouts) - len(self.computed)

    @property
    def total_payable(self) -> Decimal:
        return sum_money(p.net_payable for p in self.computed)

    @property
    def total_variable_pay(self) -> Decimal:
        return sum_money(p.variable_pay for p in self.computed)

    @property
    def total_commissions(self) -> Decimal:
        return sum_money(p.commissions for p in self.computed)

    @property
    def total_clawbacks(self) -> Decimal:
        return sum_money(p.clawback_recovered for p in self.computed)


class MonthlyPayoutCalculator:
    """Computes incremental monthly payouts from YTD compensation."""

    def __init__(self, aggregator: Optional[CompensationAggregator] = None):
        self.aggregator = aggregator or CompensationAggregator()

    def calculate(self, month: date, data: MonthlyPayoutInput) -> MonthlyPayout:
        """
        Compute one employee's payout for a month.

        Raises:
            PlanConfigurationException: the plan has configuration faults
        """
        result = self.aggregator.compute(data.compensation)
        currency = data.compensation.currency

        ytd = ytd_tranches_by_type(result)
        lines = []
        for payout_type in list(ytd) + [t for t in data.prior_payouts if t not in ytd]:
            rate = Decimal("1")
            if currency is not None:
                is_variable = payout_type in VARIABLE_PAY_TYPES
                rate = currency.compensation_rate if is_variable else currency.market_rate
            lines.append(
                MonthlyPayoutLine(
                    payout_type=payout_type,
                    ytd=ytd.get(payout_type, PayoutTranches.zero()),
                    prior=data.prior_payouts.get(payout_type, PayoutTranches.zero()),
                    exchange_rate=rate,
                )
            )

        gross = sum_money(line.payable for line in lines)
        clawback_due = max(result.clawback_balance - round_money(data.prior_clawbacks_deducted), ZERO)
        recovered = min(clawback_due, max(gross, ZERO))
        net = max(gross - clawback_due, ZERO)

        net_local = None
        if currency is not None:
            # clawbacks convert at the compensation rate
            net_local = max(
                sum_money(line.payable_local for line in lines)
                - round_money(recovered * currency.compensation_rate),
                ZERO,
            )

        payout = MonthlyPayout(
            employee_id=data.employee_id,
            month=month.replace(day=1),
            plan_name=result.plan_name,
            lines=lines,
            gross_payable=gross,
            clawback_due=clawback_due,
            clawback_recovered=recovered,
            clawback_carryforward=clawback_due - recovered,
            net_payable=net,
            local_currency=currency.local_currency if currency else None,
            net_payable_local=net_local,
        )
        logger.info(
            f"Monthly payout for {data.employee_id} {payout.month:%Y-%m}: "
            f"gross={gross} clawback={recovered} net={net}"
        )
        return payout

    def run(self, month: date, inputs: Sequence[MonthlyPayoutInput]) -> PayoutRunResult:
        """Payout run for many employees; misconfigured plans are reported as blocked."""
        payouts: List[MonthlyPayoutOutcome] = []
        for data in inputs:
            try:
                payouts.append(self.calculate(month, data))
            except PlanConfigurationException as exc:
                logger.warning(f"Monthly payout blocked for {data.employee_id}: {exc.message}")
                payouts.append(
                    BlockedCompensation(
                        employee_id=data.employee_id,
                        plan_name=data.compensation.plan.name,
                        faults=exc.faults,
                    )
                )
        return PayoutRunResult(month=month.replace(day=1), payouts=payouts)
