"""
Qota Compensation - Full & Final Settlement

Two-tranche settlement for an employee who leaves mid-year.

Tranche 1 (at departure):
- releases every year-end reserve held for the fiscal year
- settles variable pay, NRR and SPIFF pro-rated by days worked
  (days from Jan 1 to departure, inclusive, / 365) less what was
  already paid
- deducts outstanding clawbacks; any shortfall carries to tranche 2

Tranche 2 (after the collection grace period):
- releases collection holdbacks for deals collected on or before
  departure + grace days, forfeits the rest
- recovers the carried-forward clawback from the releases and writes
  off whatever cannot be recovered
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from qota.config import settings
from qota.services.calculators.aggregator import CompensationResult
from qota.services.calculators.monthly_payout import NRR_ADDITIONAL_PAY, SPIFF, VARIABLE_PAY
from qota.utils.money import ZERO, round_money, sum_money, to_decimal

logger = logging.getLogger(__name__)


DAYS_IN_YEAR = Decimal("365")


class SettlementLineType(str, Enum):
    YEAR_END_RELEASE = "year_end_release"
    VP_SETTLEMENT = "vp_settlement"
    NRR_SETTLEMENT = "nrr_settlement"
    SPIFF_SETTLEMENT = "spiff_settlement"
    CLAWBACK_DEDUCTION = "clawback_deduction"
    CLAWBACK_CARRYFORWARD = "clawback_carryforward"
    COLLECTION_RELEASE = "collection_release"
    COLLECTION_FORFEIT = "collection_forfeit"
    CLAWBACK_WRITEOFF = "clawback_writeoff"


ENTITLEMENT_LINE_TYPES = {
    VARIABLE_PAY: SettlementLineType.VP_SETTLEMENT,
    NRR_ADDITIONAL_PAY: SettlementLineType.NRR_SETTLEMENT,
    SPIFF: SettlementLineType.SPIFF_SETTLEMENT,
}


# ===========================================
# INPUTS
# ===========================================

@dataclass(frozen=True)
class YearEndReserve:
    """A year-end holdback withheld by an earlier payout."""
    payout_type: str
    amount: Decimal
    month: Optional[date] = None
    deal_id: Optional[str] = None


@dataclass(frozen=True)
class CollectionHoldback:
    """A holdback waiting on a deal's collection."""
    deal_id: str
    payout_type: str
    amount: Decimal


@dataclass(frozen=True)
class OutstandingClawback:
    deal_id: str
    amount: Decimal


@dataclass(frozen=True)
class SettlementInput:
    """
    Everything a settlement needs.

    `ytd_entitlements` are full-year-basis amounts by payout type
    (Variable Pay, NRR Additional Pay, SPIFF) computed from actuals
    through the departure date; `prior_payouts` are what payout runs
    already disbursed for those types in the fiscal year.
    """
    employee_id: str
    fiscal_year: int
    departure_date: date
    ytd_entitlements: Mapping[str, Decimal] = field(default_factory=dict)
    prior_payouts: Mapping[str, Decimal] = field(default_factory=dict)
    year_end_reserves: Sequence[YearEndReserve] = ()
    outstanding_clawbacks: Sequence[OutstandingClawback] = ()
    collection_holdbacks: Sequence[CollectionHoldback] = ()
    collection_dates: Mapping[str, Optional[date]] = field(default_factory=dict)
    grace_days: Optional[int] = None
    compensation_rate: Decimal = Decimal("1")
    local_currency: str = "USD"


# ===========================================
# OUTPUTS
# ===========================================

@dataclass(frozen=True)
class SettlementLine:
    tranche: int
    line_type: SettlementLineType
    amount: Decimal
    amount_local: Decimal
    payout_type: Optional[str] = None
    deal_id: Optional[str] = None
    notes: str = ""


@dataclass(frozen=True)
class TrancheResult:
    lines: List[SettlementLine]
    total: Decimal
    clawback_carryforward: Decimal = ZERO
    clawback_written_off: Decimal = ZERO


@dataclass(frozen=True)
class FullAndFinalSettlement:
    employee_id: str
    fiscal_year: int
    departure_date: date
    proration_factor: Decimal
    grace_days: int
    tranche_2_eligible_date: date
    local_currency: str
    tranche_1: TrancheResult
    tranche_2: TrancheResult

    @property
    def total(self) -> Decimal:
        return self.tranche_1.total + self.tranche_2.total


# ===========================================
# CALCULATOR
# ===========================================

def ytd_entitlements(result: CompensationResult) -> Dict[str, Decimal]:
    """Earned variable pay, NRR and SPIFF amounts from a YTD compensation result."""
    return {
        VARIABLE_PAY: sum_money(r.eligible_payout for r in result.metric_results),
        NRR_ADDITIONAL_PAY: result.nrr_result.payout if result.nrr_result else ZERO,
        SPIFF: sum_money(s.total_spiff for s in result.spiff_results),
    }


def proration_factor(fiscal_year: int, departure_date: date) -> Decimal:
    """Share of the calendar year worked, clamped to [0, 1]."""
    days = (departure_date - date(fiscal_year, 1, 1)).days + 1
    return min(max(Decimal(days) / DAYS_IN_YEAR, ZERO), Decimal("1"))


class FullAndFinalCalculator:
    """Computes both settlement tranches for a departed employee."""

    def __init__(self, data: SettlementInput):
        self.data = data
        self.grace_days = settings.fnf_collection_grace_days if data.grace_days is None else data.grace_days
        self.rate = to_decimal(data.compensation_rate)

    @property
    def grace_deadline(self) -> date:
        return self.data.departure_date + timedelta(days=self.grace_days)

    def _line(self, tranche: int, line_type: SettlementLineType, amount: Decimal, **kwargs) -> SettlementLine:
        return SettlementLine(
            tranche=tranche,
            line_type=line_type,
            amount=amount,
            amount_local=round_money(amount * self.rate),
            **kwargs,
        )

    def entitlement_lines(self, factor: Decimal) -> List[SettlementLine]:
        lines = []
        for payout_type, line_type in ENTITLEMENT_LINE_TYPES.items():
            ytd = to_decimal(self.data.ytd_entitlements.get(payout_type, ZERO))
            prior = to_decimal(self.data.prior_payouts.get(payout_type, ZERO))
            settled = max(round_money(ytd * factor) - round_money(prior), ZERO)
            if settled <= 0:
                continue
            lines.append(
                self._line(
                    1,
                    line_type,
                    settled,
                    payout_type=payout_type,
                    notes=f"Pro-rated {payout_type} ({factor * 100:.1f}% of year, YTD {ytd}, prior paid {prior})",
                )
            )
        return lines

    def tranche_1(self) -> TrancheResult:
        data = self.data
        factor = proration_factor(data.fiscal_year, data.departure_date)
        lines: List[SettlementLine] = []

        for reserve in data.year_end_reserves:
            amount = round_money(reserve.amount)
            if amount <= 0:
                continue
            month = f" for {reserve.month:%Y-%m}" if reserve.month else ""
            lines.append(
                self._line(
                    1,
                    SettlementLineType.YEAR_END_RELEASE,
                    amount,
                    payout_type=reserve.payout_type,
                    deal_id=reserve.deal_id,
                    notes=f"Year-end release{month} ({reserve.payout_type})",
                )
            )

        lines.extend(self.entitlement_lines(factor))
        positive = sum_money(line.amount for line in lines)

        clawback_total = ZERO
        for clawback in data.outstanding_clawbacks:
            amount = round_money(clawback.amount)
            if amount <= 0:
                continue
            clawback_total += amount
            lines.append(
                self._line(
                    1,
                    SettlementLineType.CLAWBACK_DEDUCTION,
                    -amount,
                    deal_id=clawback.deal_id,
                    notes=f"Clawback deduction for deal {clawback.deal_id}",
                )
            )

        net = positive - clawback_total
        carryforward = ZERO
        if net < 0:
            carryforward = -net
            lines.append(
                self._line(
                    1,
                    SettlementLineType.CLAWBACK_CARRYFORWARD,
                    ZERO,
                    notes=f"Clawback carry-forward of {carryforward} to tranche 2",
                )
            )

        return TrancheResult(lines=lines, total=max(net, ZERO), clawback_carryforward=carryforward)

    def tranche_2(self, clawback_carryforward: Decimal) -> TrancheResult:
        data = self.data
        deadline = self.grace_deadline
        lines: List[SettlementLine] = []
        released = ZERO

        for holdback in data.collection_holdbacks:
            amount = round_money(holdback.amount)
            if amount <= 0:
                continue
            collected_on = data.collection_dates.get(holdback.deal_id)
            if collected_on is not None and collected_on <= deadline:
                released += amount
                lines.append(
                    self._line(
                        2,
                        SettlementLineType.COLLECTION_RELEASE,
                        amount,
                        payout_type=holdback.payout_type,
                        deal_id=holdback.deal_id,
                        notes=f"Collection released, collected on {collected_on}",
                    )
                )
            else:
                lines.append(
                    self._line(
                        2,
                        SettlementLineType.COLLECTION_FORFEIT,
                        ZERO,
                        payout_type=holdback.payout_type,
                        deal_id=holdback.deal_id,
                        notes=f"Holdback of {amount} forfeited, not collected within {self.grace_days} days",
                    )
                )

        written_off = ZERO
        if clawback_carryforward > 0:
            recovered = min(clawback_carryforward, released)
            if recovered > 0:
                released -= recovered
                lines.append(
                    self._line(
                        2,
                        SettlementLineType.CLAWBACK_DEDUCTION,
                        -recovered,
                        notes=f"Clawback carry-forward recovered: {recovered} of {clawback_carryforward}",
                    )
                )
            written_off = clawback_carryforward - recovered
            if written_off > 0:
                lines.append(
                    self._line(
                        2,
                        SettlementLineType.CLAWBACK_WRITEOFF,
                        ZERO,
                        notes=f"Unrecovered clawback written off: {written_off}",
                    )
                )

        return TrancheResult(lines=lines, total=released, clawback_written_off=written_off)

    def settle(self) -> FullAndFinalSettlement:
        data = self.data
        first = self.tranche_1()
        second = self.tranche_2(first.clawback_carryforward)

        settlement = FullAndFinalSettlement(
            employee_id=data.employee_id,
            fiscal_year=data.fiscal_year,
            departure_date=data.departure_date,
            proration_factor=proration_factor(data.fiscal_year, data.departure_date),
            grace_days=self.grace_days,
            tranche_2_eligible_date=self.grace_deadline,
            local_currency=data.local_currency,
            tranche_1=first,
            tranche_2=second,
        )
        logger.info(
            f"F&F settlement for {data.employee_id} (departed {data.departure_date}): "
            f"tranche 1={first.total} tranche 2={second.total} carry-forward={first.clawback_carryforward}"
        )
        return settlement


def settle_full_and_final(data: SettlementInput) -> FullAndFinalSettlement:
    return FullAndFinalCalculator(data).settle()
