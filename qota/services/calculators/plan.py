"""
Qota Compensation - Compensation Plan & Configuration Validator

A plan bundles the metric definitions, commission rules, NRR settings,
SPIFFs and renewal multiplier bands that apply to its assigned employees.

The validator reports every fault it finds so that misconfigured plans
can be fixed in one pass. Computation is blocked for any plan with faults.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from qota.services.calculators.commission import CommissionRule
from qota.services.calculators.metric_evaluator import LogicType, MetricDefinition, MultiplierTier
from qota.services.calculators.nrr import NRRSettings
from qota.services.calculators.renewal_multiplier import RenewalMultiplierTier, renewal_tier_faults
from qota.services.calculators.spiff import SpiffConfig
from qota.utils.error_handling import PlanConfigurationException
from qota.utils.money import HUNDRED, sum_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompensationPlan:
    name: str
    metrics: Tuple[MetricDefinition, ...] = ()
    commission_rules: Tuple[CommissionRule, ...] = ()
    nrr: Optional[NRRSettings] = None
    spiffs: Tuple[SpiffConfig, ...] = ()
    renewal_tiers: Tuple[RenewalMultiplierTier, ...] = ()
    is_clawback_exempt: bool = False

    def metric(self, name: str) -> Optional[MetricDefinition]:
        for metric in self.metrics:
            if metric.name == name:
                return metric
        return None


def multiplier_tier_faults(metric_name: str, tiers: Sequence[MultiplierTier]) -> List[str]:
    """Bands must be non-empty ranges, contiguous, non-overlapping and non-decreasing."""
    faults: List[str] = []
    ordered = sorted(tiers, key=lambda t: t.min_pct)

    for tier in ordered:
        if tier.min_pct < 0:
            faults.append(f"Metric '{metric_name}': band {tier.label} starts below 0%")
        if tier.max_pct is not None and tier.max_pct <= tier.min_pct:
            faults.append(f"Metric '{metric_name}': band {tier.label} is empty (max must exceed min)")
        if tier.multiplier < 0:
            faults.append(f"Metric '{metric_name}': band {tier.label} has a negative multiplier")

    for previous, current in zip(ordered, ordered[1:]):
        if previous.max_pct is None:
            faults.append(f"Metric '{metric_name}': open-ended band {previous.label} must be the last band")
            continue
        if current.min_pct < previous.max_pct:
            faults.append(f"Metric '{metric_name}': bands {previous.label} and {current.label} overlap")
        elif current.min_pct > previous.max_pct:
            faults.append(f"Metric '{metric_name}': gap between bands {previous.label} and {current.label}")
        if current.multiplier < previous.multiplier:
            faults.append(
                f"Metric '{metric_name}': multiplier decreases from {previous.multiplier} "
                f"to {current.multiplier} at band {current.label}"
            )

    return faults


class PlanValidator:
    """Checks a CompensationPlan for configuration faults."""

    def __init__(self, plan: CompensationPlan):
        self.plan = plan

    def metric_faults(self) -> List[str]:
        faults: List[str] = []
        metrics = self.plan.metrics
        if not metrics:
            return faults

        names = [m.name for m in metrics]
        for name in sorted({n for n in names if names.count(n) > 1}):
            faults.append(f"Metric '{name}' is defined more than once")

        total_weight = sum_money(m.weightage_pct for m in metrics)
        if total_weight != HUNDRED:
            faults.append(f"Metric weightages sum to {total_weight}%, expected 100%")

        for metric in metrics:
            if metric.weightage_pct < 0:
                faults.append(f"Metric '{metric.name}': weightage cannot be negative")
            if metric.logic_type == LogicType.TIERED and not metric.tiers:
                faults.append(f"Metric '{metric.name}': tiered logic requires at least one multiplier band")
            if metric.logic_type == LogicType.GATED and metric.gate_threshold_pct is None:
                faults.append(f"Metric '{metric.name}': gated logic requires a gate threshold")
            if metric.gate_threshold_pct is not None and metric.gate_threshold_pct < 0:
                faults.append(f"Metric '{metric.name}': gate threshold cannot be negative")
            if metric.min_pct < 0 or (metric.max_pct is not None and metric.max_pct < 0):
                faults.append(f"Metric '{metric.name}': achievement floor and cap cannot be negative")
            if metric.max_pct is not None and metric.min_pct > metric.max_pct:
                faults.append(
                    f"Metric '{metric.name}': min achievement {metric.min_pct}% exceeds max {metric.max_pct}%"
                )
            faults.extend(multiplier_tier_faults(metric.name, metric.tiers))
            faults.extend(metric.payout_split.faults(f"Metric '{metric.name}'"))

        return faults

    def commission_faults(self) -> List[str]:
        faults: List[str] = []
        seen = set()
        for rule in self.plan.commission_rules:
            if rule.is_active and rule.commission_type in seen:
                faults.append(f"Commission type '{rule.commission_type}' has more than one active rule")
            if rule.is_active:
                seen.add(rule.commission_type)
            if rule.rate_pct < 0:
                faults.append(f"Commission '{rule.commission_type}': rate cannot be negative")
            if rule.min_threshold is not None and rule.min_threshold < 0:
                faults.append(f"Commission '{rule.commission_type}': minimum threshold cannot be negative")
            faults.extend(rule.payout_split.faults(f"Commission '{rule.commission_type}'"))
        return faults

    def nrr_faults(self) -> List[str]:
        nrr = self.plan.nrr
        if nrr is None:
            return []
        faults: List[str] = []
        if nrr.nrr_ote_pct < 0 or nrr.nrr_ote_pct > HUNDRED:
            faults.append(f"NRR: OTE % must be between 0 and 100 (got {nrr.nrr_ote_pct})")
        for label, margin in (
            ("CR/ER", nrr.cr_er_min_gp_margin_pct),
            ("Implementation", nrr.impl_min_gp_margin_pct),
        ):
            if margin < 0 or margin > HUNDRED:
                faults.append(f"NRR: {label} minimum GP margin must be between 0 and 100 (got {margin})")
        if nrr.payout_ceiling is not None and nrr.payout_ceiling < 0:
            faults.append("NRR: payout ceiling cannot be negative")
        faults.extend(nrr.payout_split.faults("NRR"))
        return faults

    def spiff_faults(self) -> List[str]:
        faults: List[str] = []
        for spiff in self.plan.spiffs:
            if spiff.rate_pct < 0:
                faults.append(f"SPIFF '{spiff.spiff_name}': rate cannot be negative")
            if spiff.min_deal_value < 0:
                faults.append(f"SPIFF '{spiff.spiff_name}': threshold cannot be negative")
            if spiff.payout_split is not None:
                faults.extend(spiff.payout_split.faults(f"SPIFF '{spiff.spiff_name}'"))
        return faults

    def faults(self) -> List[str]:
        return (
            self.metric_faults()
            + self.commission_faults()
            + self.nrr_faults()
            + self.spiff_faults()
            + renewal_tier_faults(self.plan.renewal_tiers)
        )

    def ensure_valid(self) -> CompensationPlan:
        """Raise PlanConfigurationException if the plan has any fault."""
        faults = self.faults()
        if faults:
            logger.warning(f"Plan '{self.plan.name}' has {len(faults)} configuration fault(s)")
            raise PlanConfigurationException(faults, plan_name=self.plan.name)
        return self.plan


def validate_plan(plan: CompensationPlan) -> List[str]:
    return PlanValidator(plan).faults()


def ensure_valid_metrics(
    metrics: Sequence[MetricDefinition],
    plan_name: Optional[str] = None,
) -> Tuple[MetricDefinition, ...]:
    """
    Validate metric definitions on their own, as used for payout projections.

    Raises:
        PlanConfigurationException: weightages, bands, gates or splits are malformed
    """
    metrics = tuple(metrics)
    faults = PlanValidator(CompensationPlan(name=plan_name or "projection", metrics=metrics)).metric_faults()
    if faults:
        logger.warning(f"Rejected {len(metrics)} metric definition(s) with {len(faults)} fault(s)")
        raise PlanConfigurationException(faults, plan_name=plan_name)
    return metrics
