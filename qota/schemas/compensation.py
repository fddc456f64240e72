"""
Qota Compensation - Compensation Schemas

Request schemas for compensation, projection and renewal endpoints, and
response schemas read straight from the calculator results.
"""

from decimal import Decimal
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from qota.schemas.plan import CompensationPlanSchema, MetricDefinitionSchema, RenewalMultiplierTierSchema
from qota.services.calculators.aggregator import (
    ArrContribution,
    CompensationInput,
    CurrencyContext,
    MetricActual,
    NRRInput,
)
from qota.services.calculators.attribution import (
    IndividualParticipant,
    SupportTeamParticipant,
    credited_value,
)
from qota.services.calculators.commission import CommissionDeal
from qota.services.calculators.metric_evaluator import MetricStatus
from qota.services.calculators.nrr import NRRAmounts, NRRDeal
from qota.services.calculators.spiff import SpiffDeal


# ===========================================
# DEAL PARTICIPANTS
# ===========================================

class IndividualParticipantSchema(BaseModel):
    kind: Literal["individual"] = "individual"
    employee_id: str = Field(..., min_length=1)
    split_pct: Decimal = Field(Decimal("100"), gt=0, le=100)
    role: Optional[str] = None

    def to_domain(self) -> IndividualParticipant:
        return IndividualParticipant(employee_id=self.employee_id, split_pct=self.split_pct, role=self.role)


class SupportTeamParticipantSchema(BaseModel):
    kind: Literal["support_team"] = "support_team"
    team_id: str = Field(..., min_length=1)
    split_pct: Decimal = Field(Decimal("100"), gt=0, le=100)
    role: Optional[str] = None

    def to_domain(self) -> SupportTeamParticipant:
        return SupportTeamParticipant(team_id=self.team_id, split_pct=self.split_pct, role=self.role)


ParticipantSchema = Annotated[
    Union[IndividualParticipantSchema, SupportTeamParticipantSchema],
    Field(discriminator="kind"),
]


# ===========================================
# INPUTS
# ===========================================

class ArrContributionSchema(BaseModel):
    """A deal's contribution to a metric; credited by participants when listed."""
    deal_id: str
    value: Decimal = Field(..., ge=0)
    renewal_years: int = Field(1, ge=1)
    is_multi_year: bool = False
    participants: List[ParticipantSchema] = []

    def to_domain(self, employee_id: str, team_ids: List[str]) -> ArrContribution:
        value = self.value
        if self.participants:
            value = credited_value(
                self.value, [p.to_domain() for p in self.participants], employee_id, team_ids
            )
        return ArrContribution(
            deal_id=self.deal_id,
            value=value,
            renewal_years=self.renewal_years,
            is_multi_year=self.is_multi_year,
        )


class MetricActualSchema(BaseModel):
    metric_name: str
    target: Optional[Decimal] = Field(None, ge=0)
    actual: Optional[Decimal] = Field(None, ge=0)
    contributions: List[ArrContributionSchema] = []

    @model_validator(mode="after")
    def check_single_source(self):
        if self.actual is not None and self.contributions:
            raise ValueError("Provide either actual or contributions, not both")
        return self

    def to_domain(self, employee_id: str, team_ids: List[str]) -> MetricActual:
        return MetricActual(
            metric_name=self.metric_name,
            target=self.target,
            actual=self.actual,
            contributions=tuple(c.to_domain(employee_id, team_ids) for c in self.contributions),
        )


class CommissionDealSchema(BaseModel):
    deal_id: str
    commission_type: str
    deal_value: Decimal = Field(..., ge=0)

    def to_domain(self) -> CommissionDeal:
        return CommissionDeal(deal_id=self.deal_id, commission_type=self.commission_type, deal_value=self.deal_value)


class NRRDealSchema(BaseModel):
    deal_id: str
    cr_usd: Decimal = Field(Decimal("0"), ge=0)
    er_usd: Decimal = Field(Decimal("0"), ge=0)
    implementation_usd: Decimal = Field(Decimal("0"), ge=0)
    gp_margin_pct: Optional[Decimal] = None
    project_name: Optional[str] = None
    customer_name: Optional[str] = None

    def to_domain(self) -> NRRDeal:
        return NRRDeal(**self.model_dump())


class NRRAmountsSchema(BaseModel):
    eligible_cr_er: Decimal = Field(..., ge=0)
    total_cr_er: Decimal = Field(..., ge=0)
    eligible_implementation: Decimal = Field(..., ge=0)
    total_implementation: Decimal = Field(..., ge=0)

    def to_domain(self) -> NRRAmounts:
        return NRRAmounts(**self.model_dump())


class NRRInputSchema(BaseModel):
    """NRR target plus either pre-classified amounts or raw deals."""
    nrr_target: Decimal = Field(..., ge=0)
    amounts: Optional[NRRAmountsSchema] = None
    deals: List[NRRDealSchema] = []

    def to_domain(self) -> NRRInput:
        return NRRInput(
            nrr_target=self.nrr_target,
            amounts=self.amounts.to_domain() if self.amounts else None,
            deals=tuple(d.to_domain() for d in self.deals),
        )


class SpiffDealSchema(BaseModel):
    deal_id: str
    deal_value: Decimal = Field(..., ge=0)
    customer_name: Optional[str] = None

    def to_domain(self) -> SpiffDeal:
        return SpiffDeal(deal_id=self.deal_id, deal_value=self.deal_value, customer_name=self.customer_name)


class CurrencyContextSchema(BaseModel):
    local_currency: str = Field(..., min_length=3, max_length=3)
    compensation_rate: Decimal = Field(..., gt=0)
    market_rate: Decimal = Field(..., gt=0)

    def to_domain(self) -> CurrencyContext:
        return CurrencyContext(**self.model_dump())


class CompensationRequest(BaseModel):
    """Everything needed to compute one employee's compensation for a fiscal year."""
    employee_id: str = Field(..., min_length=1, max_length=100)
    team_ids: List[str] = []
    fiscal_year: int = Field(..., ge=2000, le=2100)
    target_bonus: Decimal = Field(..., ge=0, description="Variable OTE in USD")
    plan: CompensationPlanSchema
    metric_actuals: List[MetricActualSchema] = []
    commission_deals: List[CommissionDealSchema] = []
    nrr: Optional[NRRInputSchema] = None
    spiff_deals: List[SpiffDealSchema] = []
    currency: Optional[CurrencyContextSchema] = None
    clawback_balance: Optional[Decimal] = Field(
        None, ge=0, description="Omit to read the balance from collection records"
    )

    def to_domain(self) -> CompensationInput:
        return CompensationInput(
            employee_id=self.employee_id,
            plan=self.plan.to_domain(),
            target_bonus=self.target_bonus,
            fiscal_year=self.fiscal_year,
            metric_actuals=tuple(a.to_domain(self.employee_id, self.team_ids) for a in self.metric_actuals),
            commission_deals=tuple(d.to_domain() for d in self.commission_deals),
            nrr=self.nrr.to_domain() if self.nrr else None,
            spiff_deals=tuple(d.to_domain() for d in self.spiff_deals),
            currency=self.currency.to_domain() if self.currency else None,
        )


class TeamCompensationRequest(BaseModel):
    members: List[CompensationRequest] = Field(..., min_length=1)


class ProjectionRequest(BaseModel):
    target_bonus: Decimal = Field(..., ge=0)
    metrics: List[MetricDefinitionSchema] = Field(..., min_length=1)
    levels: List[Decimal] = [Decimal("100"), Decimal("120"), Decimal("150")]


class RenewalMultiplierRequest(BaseModel):
    value: Decimal = Field(..., ge=0)
    renewal_years: int = Field(..., ge=1)
    is_multi_year: bool = True
    tiers: List[RenewalMultiplierTierSchema] = []


# ===========================================
# RESPONSES
# ===========================================

class PayoutTranchesResponse(BaseModel):
    eligible: Decimal
    paid: Decimal
    holdback: Decimal
    year_end_holdback: Decimal

    class Config:
        from_attributes = True


class MetricResultResponse(BaseModel):
    metric_name: str
    status: MetricStatus
    target: Optional[Decimal]
    actual: Optional[Decimal]
    achievement_pct: Decimal
    multiplier: Decimal
    weightage_pct: Decimal
    bonus_allocation: Decimal
    eligible_payout: Decimal
    amount_paid: Decimal
    holdback_amount: Decimal
    year_end_amount: Decimal

    class Config:
        from_attributes = True


class CommissionResultResponse(BaseModel):
    deal_id: str
    commission_type: str
    deal_value: Decimal
    rate_pct: Decimal
    min_threshold: Optional[Decimal]
    qualifies: bool
    gross_payout: Decimal
    tranches: PayoutTranchesResponse

    class Config:
        from_attributes = True


class NRRDealBreakdownResponse(BaseModel):
    deal_id: str
    cr_er_usd: Decimal
    implementation_usd: Decimal
    gp_margin_pct: Optional[Decimal]
    is_cr_er_eligible: bool
    is_impl_eligible: bool
    cr_er_exclusion_reason: Optional[str]
    impl_exclusion_reason: Optional[str]

    class Config:
        from_attributes = True


class NRRResultResponse(BaseModel):
    eligible_cr_er: Decimal
    total_cr_er: Decimal
    eligible_implementation: Decimal
    total_implementation: Decimal
    nrr_actuals: Decimal
    nrr_target: Decimal
    achievement_pct: Decimal
    nrr_ote_pct: Decimal
    payout_pool: Decimal
    payout: Decimal
    capped: bool
    tranches: PayoutTranchesResponse
    deal_breakdown: List[NRRDealBreakdownResponse]

    class Config:
        from_attributes = True


class SpiffDealBreakdownResponse(BaseModel):
    deal_id: str
    deal_value: Decimal
    is_eligible: bool
    spiff_payout: Decimal
    exclusion_reason: Optional[str]
    customer_name: Optional[str]

    class Config:
        from_attributes = True


class SpiffResultResponse(BaseModel):
    spiff_name: str
    rate_pct: Decimal
    min_deal_value: Decimal
    eligible_actuals: Decimal
    eligible_deal_count: int
    total_spiff: Decimal
    tranches: PayoutTranchesResponse
    deal_breakdown: List[SpiffDealBreakdownResponse]

    class Config:
        from_attributes = True


class RenewalAdjustmentResponse(BaseModel):
    value: Decimal
    renewal_years: int
    is_multi_year: bool
    multiplier: Decimal
    adjusted_value: Decimal

    class Config:
        from_attributes = True


class DealAttributionResponse(BaseModel):
    """A deal's share of a metric payout; the booking tranche is what a clawback recovers."""
    deal_id: str
    metric_name: str
    deal_value: Decimal
    proportion_pct: Decimal
    variable_pay: Decimal
    clawback_eligible_amount: Decimal
    tranches: PayoutTranchesResponse

    class Config:
        from_attributes = True


class LocalCurrencyTotalsResponse(BaseModel):
    local_currency: str
    variable_pay_local: Decimal
    commission_local: Decimal
    total_local: Decimal

    class Config:
        from_attributes = True


class CompensationResultResponse(BaseModel):
    employee_id: str
    plan_name: str
    fiscal_year: int
    target_bonus: Decimal
    metric_results: List[MetricResultResponse]
    commission_results: List[CommissionResultResponse]
    nrr_result: Optional[NRRResultResponse]
    spiff_results: List[SpiffResultResponse]
    renewal_adjustments: List[RenewalAdjustmentResponse]
    total_eligible: Decimal
    gross_paid: Decimal
    total_paid: Decimal
    total_holdback: Decimal
    total_year_end_holdback: Decimal
    clawback_balance: Decimal
    local_totals: Optional[LocalCurrencyTotalsResponse]
    deal_attributions: List[DealAttributionResponse] = []

    class Config:
        from_attributes = True


class ComputedCompensationResponse(BaseModel):
    kind: Literal["computed"] = "computed"
    employee_id: str
    result: CompensationResultResponse


class BlockedCompensationResponse(BaseModel):
    kind: Literal["blocked"] = "blocked"
    employee_id: str
    plan_name: str
    faults: List[str]


TeamMemberResponse = Annotated[
    Union[ComputedCompensationResponse, BlockedCompensationResponse],
    Field(discriminator="kind"),
]


class TeamCompensationResponse(BaseModel):
    members: List[TeamMemberResponse]
    computed_count: int
    blocked_count: int


class PayoutProjectionResponse(BaseModel):
    achievement_pct: Decimal
    multiplier: Decimal
    total_payout: Decimal
    by_metric: Dict[str, Decimal]

    class Config:
        from_attributes = True
