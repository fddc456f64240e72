"""
Qota Compensation - Plan Schemas

Pydantic schemas describing a compensation plan on the wire.
Each request schema converts to its calculator dataclass with to_domain().
Percentages are whole-number percents (40 means 40%).
"""

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from qota.config import settings
from qota.services.calculators.commission import CommissionRule
from qota.services.calculators.metric_evaluator import LogicType, MetricDefinition, MultiplierTier
from qota.services.calculators.nrr import NRRSettings
from qota.services.calculators.payout_split import PayoutSplitConfig
from qota.services.calculators.plan import CompensationPlan
from qota.services.calculators.renewal_multiplier import RenewalMultiplierTier
from qota.services.calculators.spiff import SpiffConfig


# ===========================================
# ENUMS AS LITERALS
# ===========================================

LogicTypeEnum = Literal["linear", "tiered", "gated"]


# ===========================================
# PAYOUT SPLIT
# ===========================================

class PayoutSplitSchema(BaseModel):
    """
    Booking / year-end split; the collection share is the remainder.

    Ranges are checked by the plan validator so that a bad split blocks
    only the employee whose plan carries it.
    """
    booking_pct: Decimal = Field(default_factory=lambda: settings.default_booking_payout_pct)
    year_end_pct: Decimal = Field(default_factory=lambda: settings.default_year_end_holdback_pct)

    def to_domain(self) -> PayoutSplitConfig:
        return PayoutSplitConfig(booking_pct=self.booking_pct, year_end_pct=self.year_end_pct)


# ===========================================
# METRICS
# ===========================================

class MultiplierTierSchema(BaseModel):
    min_pct: Decimal
    max_pct: Optional[Decimal] = Field(None, description="Exclusive upper bound; null for the open-ended top band")
    multiplier: Decimal

    def to_domain(self) -> MultiplierTier:
        return MultiplierTier(min_pct=self.min_pct, max_pct=self.max_pct, multiplier=self.multiplier)


class MetricDefinitionSchema(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    weightage_pct: Decimal
    logic_type: LogicTypeEnum = "linear"
    gate_threshold_pct: Optional[Decimal] = None
    min_pct: Decimal = Decimal("0")
    max_pct: Optional[Decimal] = None
    tiers: List[MultiplierTierSchema] = []
    payout_split: PayoutSplitSchema = Field(default_factory=PayoutSplitSchema)

    def to_domain(self) -> MetricDefinition:
        return MetricDefinition(
            name=self.name,
            weightage_pct=self.weightage_pct,
            logic_type=LogicType(self.logic_type),
            gate_threshold_pct=self.gate_threshold_pct,
            min_pct=self.min_pct,
            max_pct=self.max_pct,
            tiers=tuple(t.to_domain() for t in self.tiers),
            payout_split=self.payout_split.to_domain(),
        )


# ===========================================
# COMMISSIONS, NRR, SPIFF, RENEWAL
# ===========================================

class CommissionRuleSchema(BaseModel):
    commission_type: str = Field(..., min_length=1, max_length=100)
    rate_pct: Decimal
    min_threshold: Optional[Decimal] = None
    is_active: bool = True
    payout_split: PayoutSplitSchema = Field(default_factory=PayoutSplitSchema)

    def to_domain(self) -> CommissionRule:
        return CommissionRule(
            commission_type=self.commission_type,
            rate_pct=self.rate_pct,
            min_threshold=self.min_threshold,
            is_active=self.is_active,
            payout_split=self.payout_split.to_domain(),
        )


class NRRSettingsSchema(BaseModel):
    nrr_ote_pct: Decimal
    cr_er_min_gp_margin_pct: Decimal = Decimal("0")
    impl_min_gp_margin_pct: Decimal = Decimal("0")
    payout_ceiling: Optional[Decimal] = None
    payout_split: Optional[PayoutSplitSchema] = None

    def to_domain(self) -> NRRSettings:
        split = self.payout_split.to_domain() if self.payout_split else PayoutSplitConfig.nrr_default()
        return NRRSettings(
            nrr_ote_pct=self.nrr_ote_pct,
            cr_er_min_gp_margin_pct=self.cr_er_min_gp_margin_pct,
            impl_min_gp_margin_pct=self.impl_min_gp_margin_pct,
            payout_ceiling=self.payout_ceiling,
            payout_split=split,
        )


class SpiffConfigSchema(BaseModel):
    spiff_name: str = Field(..., min_length=1, max_length=200)
    rate_pct: Decimal
    min_deal_value: Decimal = Decimal("0")
    payout_split: Optional[PayoutSplitSchema] = Field(
        None, description="Omit to pay the SPIFF in full"
    )

    def to_domain(self) -> SpiffConfig:
        return SpiffConfig(
            spiff_name=self.spiff_name,
            rate_pct=self.rate_pct,
            min_deal_value=self.min_deal_value,
            payout_split=self.payout_split.to_domain() if self.payout_split else None,
        )


class RenewalMultiplierTierSchema(BaseModel):
    min_years: int
    max_years: Optional[int] = Field(None, description="Inclusive; null for open-ended")
    multiplier: Decimal

    def to_domain(self) -> RenewalMultiplierTier:
        return RenewalMultiplierTier(
            min_years=self.min_years, max_years=self.max_years, multiplier=self.multiplier
        )


# ===========================================
# PLAN
# ===========================================

class CompensationPlanSchema(BaseModel):
    """A complete compensation plan."""
    name: str = Field(..., min_length=1, max_length=200)
    metrics: List[MetricDefinitionSchema] = []
    commission_rules: List[CommissionRuleSchema] = []
    nrr: Optional[NRRSettingsSchema] = None
    spiffs: List[SpiffConfigSchema] = []
    renewal_tiers: List[RenewalMultiplierTierSchema] = []
    is_clawback_exempt: bool = False

    def to_domain(self) -> CompensationPlan:
        return CompensationPlan(
            name=self.name,
            metrics=tuple(m.to_domain() for m in self.metrics),
            commission_rules=tuple(r.to_domain() for r in self.commission_rules),
            nrr=self.nrr.to_domain() if self.nrr else None,
            spiffs=tuple(s.to_domain() for s in self.spiffs),
            renewal_tiers=tuple(t.to_domain() for t in self.renewal_tiers),
            is_clawback_exempt=self.is_clawback_exempt,
        )
