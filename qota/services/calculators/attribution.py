"""
Qota Compensation - Deal Attribution

Two deal-level helpers:

- Crediting: how much of a deal's value an employee is credited with,
  given the deal's participants (individuals or support teams).
- Variable-pay attribution: distributing a metric's eligible payout
  across the deals that produced it, pro-rata by deal value. Each deal's
  booking tranche is the amount that can be clawed back if the deal is
  never collected.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Literal, Optional, Sequence, Union

from qota.services.calculators.payout_split import (
    PayoutSplitCalculator,
    PayoutSplitConfig,
    PayoutTranches,
)
from qota.utils.money import HUNDRED, ZERO, Number, percent_of, round_money, sum_money, to_decimal


# ===========================================
# DEAL PARTICIPANTS
# ===========================================

@dataclass(frozen=True)
class IndividualParticipant:
    employee_id: str
    split_pct: Decimal = HUNDRED
    role: Optional[str] = None
    kind: Literal["individual"] = "individual"


@dataclass(frozen=True)
class SupportTeamParticipant:
    team_id: str
    split_pct: Decimal = HUNDRED
    role: Optional[str] = None
    kind: Literal["support_team"] = "support_team"


DealParticipant = Union[IndividualParticipant, SupportTeamParticipant]


def credited_share_pct(
    participants: Sequence[DealParticipant],
    employee_id: str,
    team_ids: Iterable[str] = (),
) -> Decimal:
    """Total split % of a deal credited to an employee."""
    teams = set(team_ids)
    share = ZERO
    for participant in participants:
        if isinstance(participant, IndividualParticipant):
            if participant.employee_id == employee_id:
                share += participant.split_pct
        elif participant.team_id in teams:
            share += participant.split_pct
    return min(share, HUNDRED)


def credited_value(
    deal_value: Number,
    participants: Sequence[DealParticipant],
    employee_id: str,
    team_ids: Iterable[str] = (),
) -> Decimal:
    """Share of a deal's value credited to an employee, in cents."""
    return round_money(percent_of(deal_value, credited_share_pct(participants, employee_id, team_ids)))


# ===========================================
# VARIABLE-PAY ATTRIBUTION
# ===========================================

@dataclass(frozen=True)
class AttributableDeal:
    deal_id: str
    value: Decimal
    customer_name: Optional[str] = None


@dataclass(frozen=True)
class DealAttribution:
    deal_id: str
    metric_name: str
    deal_value: Decimal
    proportion_pct: Decimal
    tranches: PayoutTranches

    @property
    def variable_pay(self) -> Decimal:
        return self.tranches.eligible

    @property
    def clawback_eligible_amount(self) -> Decimal:
        return self.tranches.paid


class DealAttributionCalculator:
    """Distributes a metric's eligible payout across its deals."""

    def __init__(self, payout_split: Optional[PayoutSplitConfig] = None):
        self.splitter = PayoutSplitCalculator(payout_split)

    def attribute(
        self,
        metric_name: str,
        eligible_payout: Number,
        deals: Sequence[AttributableDeal],
    ) -> List[DealAttribution]:
        """
        Pro-rata attribution by deal value.

        Deals without positive value receive nothing. The largest deal
        absorbs the rounding residue so the attributions sum exactly to
        the eligible payout.
        """
        total_vp = round_money(eligible_payout)
        contributing = [d for d in deals if to_decimal(d.value) > 0]
        total_value = sum_money(to_decimal(d.value) for d in contributing)
        if total_value == 0 or total_vp == 0:
            return []

        shares = [round_money(total_vp * to_decimal(d.value) / total_value) for d in contributing]
        largest = max(range(len(contributing)), key=lambda i: to_decimal(contributing[i].value))
        shares[largest] += total_vp - sum_money(shares)

        attributions: List[DealAttribution] = []
        for deal, deal_vp in zip(contributing, shares):
            value = to_decimal(deal.value)
            attributions.append(
                DealAttribution(
                    deal_id=deal.deal_id,
                    metric_name=metric_name,
                    deal_value=value,
                    proportion_pct=value / total_value * HUNDRED,
                    tranches=self.splitter.split(deal_vp),
                )
            )
        return attributions
