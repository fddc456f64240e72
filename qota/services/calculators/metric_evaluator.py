"""
Qota Compensation - Metric Achievement Evaluator

Evaluates one compensable KPI (e.g. New Software Booking ARR, Closing ARR)
for an employee and period:

1. achievement % = actual / target x 100 (0 when the target is 0)
2. multiplier from the metric's logic type:
   - linear: achievement / 100, clamped to [min %, max %] / 100
   - tiered: first band with min <= achievement < max
   - gated: 0 below the gate threshold, otherwise tiered (or linear
     when no bands are configured)
3. bonus allocation = target bonus x weightage %
4. eligible payout = allocation x multiplier, split into tranches
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from qota.services.calculators.payout_split import (
    PayoutSplitCalculator,
    PayoutSplitConfig,
    PayoutTranches,
)
from qota.utils.error_handling import PlanConfigurationException
from qota.utils.money import HUNDRED, ZERO, Number, percent_of, ratio_pct, round_money, to_decimal


class LogicType(str, Enum):
    """How achievement maps to a payout multiplier."""
    LINEAR = "linear"
    TIERED = "tiered"
    GATED = "gated"


class MetricStatus(str, Enum):
    """Why a metric produced the payout it did."""
    EVALUATED = "evaluated"
    ZERO_TARGET = "zero_target"
    BELOW_GATE = "below_gate"
    NO_DATA = "no_data"


@dataclass(frozen=True)
class MultiplierTier:
    """Achievement band [min_pct, max_pct). max_pct of None is open-ended."""
    min_pct: Decimal
    max_pct: Optional[Decimal]
    multiplier: Decimal

    def contains(self, achievement_pct: Decimal) -> bool:
        if achievement_pct < self.min_pct:
            return False
        return self.max_pct is None or achievement_pct < self.max_pct

    @property
    def label(self) -> str:
        upper = "+" if self.max_pct is None else f"-{self.max_pct}"
        return f"{self.min_pct}{upper}%"


@dataclass(frozen=True)
class MetricDefinition:
    """One compensable KPI in a plan."""
    name: str
    weightage_pct: Decimal
    logic_type: LogicType = LogicType.LINEAR
    gate_threshold_pct: Optional[Decimal] = None
    min_pct: Decimal = ZERO
    max_pct: Optional[Decimal] = None
    tiers: Tuple[MultiplierTier, ...] = ()
    payout_split: PayoutSplitConfig = field(default_factory=PayoutSplitConfig.default)


@dataclass(frozen=True)
class MetricResult:
    """Evaluated metric for one employee and period."""
    metric_name: str
    status: MetricStatus
    target: Optional[Decimal]
    actual: Optional[Decimal]
    achievement_pct: Decimal
    multiplier: Decimal
    weightage_pct: Decimal
    bonus_allocation: Decimal
    tranches: PayoutTranches

    @property
    def eligible_payout(self) -> Decimal:
        return self.tranches.eligible

    @property
    def amount_paid(self) -> Decimal:
        return self.tranches.paid

    @property
    def holdback_amount(self) -> Decimal:
        return self.tranches.holdback

    @property
    def year_end_amount(self) -> Decimal:
        return self.tranches.year_end_holdback


@dataclass(frozen=True)
class PayoutProjection:
    """Estimated payout if every metric hit the same achievement level."""
    achievement_pct: Decimal
    multiplier: Decimal
    total_payout: Decimal
    by_metric: Dict[str, Decimal]


DEFAULT_PROJECTION_LEVELS = (Decimal("100"), Decimal("120"), Decimal("150"))


class MetricEvaluator:
    """Evaluates metric definitions against targets and actuals."""

    def __init__(self, target_bonus: Number):
        self.target_bonus = to_decimal(target_bonus)

    # ------------------------------------------------------------------
    # Multipliers
    # ------------------------------------------------------------------

    @staticmethod
    def linear_multiplier(metric: MetricDefinition, achievement_pct: Decimal) -> Decimal:
        pct = max(achievement_pct, metric.min_pct)
        if metric.max_pct is not None:
            pct = min(pct, metric.max_pct)
        return pct / HUNDRED

    @staticmethod
    def tiered_multiplier(metric: MetricDefinition, achievement_pct: Decimal) -> Decimal:
        if not metric.tiers:
            raise PlanConfigurationException(
                [f"Metric '{metric.name}': tiered logic requires at least one multiplier band"]
            )

        bands = sorted(metric.tiers, key=lambda t: t.min_pct)
        for band in bands:
            if band.contains(achievement_pct):
                return band.multiplier

        # Outside all bands: clamp to the nearest end of the grid
        if achievement_pct < bands[0].min_pct:
            return bands[0].multiplier
        return bands[-1].multiplier

    def resolve_multiplier(self, metric: MetricDefinition, achievement_pct: Decimal) -> Tuple[Decimal, MetricStatus]:
        """Multiplier and status for an achievement level."""
        if metric.logic_type == LogicType.GATED:
            if metric.gate_threshold_pct is None:
                raise PlanConfigurationException(
                    [f"Metric '{metric.name}': gated logic requires a gate threshold"]
                )
            if achievement_pct < metric.gate_threshold_pct:
                return ZERO, MetricStatus.BELOW_GATE
            if metric.tiers:
                return self.tiered_multiplier(metric, achievement_pct), MetricStatus.EVALUATED
            return self.linear_multiplier(metric, achievement_pct), MetricStatus.EVALUATED

        if metric.logic_type == LogicType.TIERED:
            return self.tiered_multiplier(metric, achievement_pct), MetricStatus.EVALUATED

        return self.linear_multiplier(metric, achievement_pct), MetricStatus.EVALUATED

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def bonus_allocation(self, metric: MetricDefinition) -> Decimal:
        return round_money(percent_of(self.target_bonus, metric.weightage_pct))

    def evaluate(
        self,
        metric: MetricDefinition,
        target: Optional[Number],
        actual: Optional[Number],
    ) -> MetricResult:
        """
        Evaluate one metric.

        Args:
            metric: The metric definition
            target: Period target, None when no target was supplied
            actual: Period actual, None when no actuals were supplied

        Returns:
            MetricResult with tranches summing exactly to the eligible payout
        """
        allocation = self.bonus_allocation(metric)
        splitter = PayoutSplitCalculator(metric.payout_split)

        if target is None or actual is None:
            return MetricResult(
                metric_name=metric.name,
                status=MetricStatus.NO_DATA,
                target=None if target is None else to_decimal(target),
                actual=None if actual is None else to_decimal(actual),
                achievement_pct=ZERO,
                multiplier=ZERO,
                weightage_pct=metric.weightage_pct,
                bonus_allocation=allocation,
                tranches=PayoutTranches.zero(),
            )

        target_value = to_decimal(target)
        actual_value = to_decimal(actual)

        if target_value == 0:
            return MetricResult(
                metric_name=metric.name,
                status=MetricStatus.ZERO_TARGET,
                target=target_value,
                actual=actual_value,
                achievement_pct=ZERO,
                multiplier=ZERO,
                weightage_pct=metric.weightage_pct,
                bonus_allocation=allocation,
                tranches=PayoutTranches.zero(),
            )

        achievement = ratio_pct(actual_value, target_value)
        multiplier, status = self.resolve_multiplier(metric, achievement)
        eligible = round_money(percent_of(self.target_bonus, metric.weightage_pct) * multiplier)

        return MetricResult(
            metric_name=metric.name,
            status=status,
            target=target_value,
            actual=actual_value,
            achievement_pct=achievement,
            multiplier=multiplier,
            weightage_pct=metric.weightage_pct,
            bonus_allocation=allocation,
            tranches=splitter.split(eligible),
        )

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def project(
        self,
        metrics: Sequence[MetricDefinition],
        levels: Sequence[Number] = DEFAULT_PROJECTION_LEVELS,
    ) -> List[PayoutProjection]:
        """
        Project total payout at hypothetical achievement levels.

        The projected multiplier is the weightage-weighted average of
        the per-metric multipliers at that level.
        """
        projections = []
        for level in levels:
            pct = to_decimal(level)
            by_metric: Dict[str, Decimal] = {}
            weighted = ZERO
            for metric in metrics:
                multiplier, _ = self.resolve_multiplier(metric, pct)
                by_metric[metric.name] = round_money(
                    percent_of(self.target_bonus, metric.weightage_pct) * multiplier
                )
                weighted += multiplier * metric.weightage_pct / HUNDRED
            projections.append(
                PayoutProjection(
                    achievement_pct=pct,
                    multiplier=weighted,
                    total_payout=sum(by_metric.values(), ZERO),
                    by_metric=by_metric,
                )
            )
        return projections
