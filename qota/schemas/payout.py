"""
Qota Compensation - Payout Schemas

Request and response schemas for monthly payout runs and full & final
settlements.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from qota.schemas.compensation import BlockedCompensationResponse, CompensationRequest
from qota.services.calculators.monthly_payout import MonthlyPayoutInput
from qota.services.calculators.payout_split import PayoutTranches
from qota.services.calculators.settlement import (
    CollectionHoldback,
    OutstandingClawback,
    SettlementLineType,
    YearEndReserve,
)


# ===========================================
# MONTHLY PAYOUT RUN
# ===========================================

class PriorPayoutSchema(BaseModel):
    """What earlier runs in the fiscal year disbursed for one payout type."""
    payout_type: str = Field(..., min_length=1)
    eligible: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
    holdback: Decimal = Decimal("0")
    year_end_holdback: Decimal = Decimal("0")

    def to_domain(self) -> PayoutTranches:
        return PayoutTranches(
            eligible=self.eligible,
            paid=self.paid,
            holdback=self.holdback,
            year_end_holdback=self.year_end_holdback,
        )


class MonthlyPayoutMemberRequest(BaseModel):
    compensation: CompensationRequest
    prior_payouts: List[PriorPayoutSchema] = []
    prior_clawbacks_deducted: Decimal = Field(Decimal("0"), ge=0)

    def to_domain(self) -> MonthlyPayoutInput:
        prior: Dict[str, PayoutTranches] = {}
        for p in self.prior_payouts:
            prior[p.payout_type] = prior.get(p.payout_type, PayoutTranches.zero()) + p.to_domain()
        return MonthlyPayoutInput(
            compensation=self.compensation.to_domain(),
            prior_payouts=prior,
            prior_clawbacks_deducted=self.prior_clawbacks_deducted,
        )


class MonthlyPayoutRunRequest(BaseModel):
    month: date
    members: List[MonthlyPayoutMemberRequest] = Field(..., min_length=1)


class MonthlyPayoutLineResponse(BaseModel):
    payout_type: str
    is_commission: bool
    payable: Decimal
    payable_local: Decimal
    exchange_rate: Decimal

    class Config:
        from_attributes = True


class MonthlyPayoutResponse(BaseModel):
    kind: Literal["computed"] = "computed"
    employee_id: str
    month: date
    plan_name: str
    lines: List[MonthlyPayoutLineResponse]
    variable_pay: Decimal
    commissions: Decimal
    gross_payable: Decimal
    clawback_due: Decimal
    clawback_recovered: Decimal
    clawback_carryforward: Decimal
    net_payable: Decimal
    local_currency: Optional[str]
    net_payable_local: Optional[Decimal]

    class Config:
        from_attributes = True


MonthlyPayoutOutcomeResponse = Annotated[
    Union[MonthlyPayoutResponse, BlockedCompensationResponse],
    Field(discriminator="kind"),
]


class MonthlyPayoutRunResponse(BaseModel):
    month: date
    payouts: List[MonthlyPayoutOutcomeResponse]
    computed_count: int
    blocked_count: int
    total_payable: Decimal
    total_variable_pay: Decimal
    total_commissions: Decimal
    total_clawbacks: Decimal


# ===========================================
# FULL & FINAL SETTLEMENT
# ===========================================

class YearEndReserveSchema(BaseModel):
    payout_type: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    month: Optional[date] = None
    deal_id: Optional[str] = None

    def to_domain(self) -> YearEndReserve:
        return YearEndReserve(**self.model_dump())


class CollectionHoldbackSchema(BaseModel):
    deal_id: str = Field(..., min_length=1)
    payout_type: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)

    def to_domain(self) -> CollectionHoldback:
        return CollectionHoldback(**self.model_dump())


class OutstandingClawbackSchema(BaseModel):
    deal_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)

    def to_domain(self) -> OutstandingClawback:
        return OutstandingClawback(**self.model_dump())


class SettlementRequest(BaseModel):
    """YTD compensation through the departure date plus what the year already disbursed."""
    compensation: CompensationRequest
    departure_date: date
    grace_days: Optional[int] = Field(None, ge=0, description="Defaults to the configured grace period")
    prior_payouts: Dict[str, Decimal] = Field(
        default_factory=dict, description="Paid so far by payout type: Variable Pay, NRR Additional Pay, SPIFF"
    )
    year_end_reserves: List[YearEndReserveSchema] = []
    collection_holdbacks: List[CollectionHoldbackSchema] = []
    outstanding_clawbacks: Optional[List[OutstandingClawbackSchema]] = Field(
        None, description="Omit to read clawed-back deals from collection records"
    )


class SettlementLineResponse(BaseModel):
    tranche: int
    line_type: SettlementLineType
    amount: Decimal
    amount_local: Decimal
    payout_type: Optional[str]
    deal_id: Optional[str]
    notes: str

    class Config:
        from_attributes = True


class TrancheResponse(BaseModel):
    lines: List[SettlementLineResponse]
    total: Decimal
    clawback_carryforward: Decimal
    clawback_written_off: Decimal

    class Config:
        from_attributes = True


class SettlementResponse(BaseModel):
    employee_id: str
    fiscal_year: int
    departure_date: date
    proration_factor: Decimal
    grace_days: int
    tranche_2_eligible_date: date
    local_currency: str
    tranche_1: TrancheResponse
    tranche_2: TrancheResponse
    total: Decimal

    class Config:
        from_attributes = True
