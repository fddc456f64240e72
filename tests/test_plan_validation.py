"""
Qota Compensation - Plan Configuration Validation Tests
"""

import pytest
from dataclasses import replace
from decimal import Decimal

from qota.services.calculators.commission import CommissionRule
from qota.services.calculators.metric_evaluator import LogicType, MetricDefinition, MultiplierTier
from qota.services.calculators.nrr import NRRSettings
from qota.services.calculators.payout_split import PayoutSplitConfig
from qota.services.calculators.plan import (
    PlanValidator,
    ensure_valid_metrics,
    multiplier_tier_faults,
    validate_plan,
)
from qota.services.calculators.renewal_multiplier import RenewalMultiplierTier
from qota.services.calculators.spiff import SpiffConfig
from qota.utils.error_handling import ErrorCode, PlanConfigurationException


class TestPlanValidator:
    """Test whole-plan checks."""

    def test_valid_plan(self, sales_plan):
        assert validate_plan(sales_plan) == []
        assert PlanValidator(sales_plan).ensure_valid() is sales_plan

    def test_weightages_must_sum_to_100(self, sales_plan):
        first, second = sales_plan.metrics
        plan = replace(sales_plan, metrics=(first, replace(second, weightage_pct=Decimal("50"))))

        faults = validate_plan(plan)

        assert "Metric weightages sum to 90%, expected 100%" in faults

    def test_duplicate_metric_names(self, sales_plan):
        first, _ = sales_plan.metrics
        plan = replace(sales_plan, metrics=(first, replace(first, weightage_pct=Decimal("60"))))

        assert any("defined more than once" in f for f in validate_plan(plan))

    def test_tiered_metric_without_bands(self, sales_plan):
        first, second = sales_plan.metrics
        plan = replace(sales_plan, metrics=(replace(first, logic_type=LogicType.TIERED), second))

        assert any("requires at least one multiplier band" in f for f in validate_plan(plan))

    def test_gated_metric_without_threshold(self, sales_plan):
        first, second = sales_plan.metrics
        plan = replace(sales_plan, metrics=(first, replace(second, gate_threshold_pct=None)))

        assert any("requires a gate threshold" in f for f in validate_plan(plan))

    def test_min_above_max(self, sales_plan):
        first, second = sales_plan.metrics
        plan = replace(sales_plan, metrics=(replace(first, min_pct=Decimal("160")), second))

        assert any("exceeds max" in f for f in validate_plan(plan))

    def test_over_allocated_split(self, sales_plan):
        first, second = sales_plan.metrics
        bad_split = PayoutSplitConfig(Decimal("90"), Decimal("20"))
        plan = replace(sales_plan, metrics=(replace(first, payout_split=bad_split), second))

        assert any("exceeds 100" in f for f in validate_plan(plan))

    def test_duplicate_active_commission_rules(self, sales_plan):
        plan = replace(
            sales_plan,
            commission_rules=(
                CommissionRule("Perpetual License", Decimal("3")),
                CommissionRule("Perpetual License", Decimal("4")),
                CommissionRule("Perpetual License", Decimal("5"), is_active=False),
            ),
        )

        faults = validate_plan(plan)

        assert faults == ["Commission type 'Perpetual License' has more than one active rule"]

    def test_nrr_ote_out_of_range(self, sales_plan):
        plan = replace(sales_plan, nrr=NRRSettings(nrr_ote_pct=Decimal("120")))

        assert any(f.startswith("NRR: OTE %") for f in validate_plan(plan))

    def test_negative_spiff_rate(self, sales_plan):
        plan = replace(sales_plan, spiffs=(SpiffConfig("Large Deal", Decimal("-1"), Decimal("100000")),))

        assert any("rate cannot be negative" in f for f in validate_plan(plan))

    def test_renewal_band_faults_included(self, sales_plan):
        plan = replace(sales_plan, renewal_tiers=(RenewalMultiplierTier(2, None, Decimal("1.1")),))

        assert any("start at 1 year" in f for f in validate_plan(plan))

    def test_all_faults_reported_together(self, sales_plan):
        first, second = sales_plan.metrics
        plan = replace(
            sales_plan,
            metrics=(replace(first, weightage_pct=Decimal("10")), replace(second, gate_threshold_pct=None)),
            nrr=NRRSettings(nrr_ote_pct=Decimal("150")),
        )

        with pytest.raises(PlanConfigurationException) as exc_info:
            PlanValidator(plan).ensure_valid()

        exc = exc_info.value
        assert len(exc.faults) == 3
        assert exc.code == ErrorCode.CONFIGURATION_ERROR
        assert exc.status_code == 422
        assert exc.details["plan_name"] == "FY2025 Account Executive"

    def test_negative_gate_and_floor(self, sales_plan):
        first, second = sales_plan.metrics
        plan = replace(
            sales_plan,
            metrics=(replace(first, min_pct=Decimal("-10")), replace(second, gate_threshold_pct=Decimal("-5"))),
        )

        faults = validate_plan(plan)

        assert "Metric 'Closing ARR': gate threshold cannot be negative" in faults
        assert "Metric 'New Software Booking ARR': achievement floor and cap cannot be negative" in faults

    def test_split_percentages_out_of_range(self, sales_plan):
        first, second = sales_plan.metrics
        bad_split = PayoutSplitConfig(Decimal("-5"), Decimal("0"))
        plan = replace(sales_plan, metrics=(replace(first, payout_split=bad_split), second))

        assert any("booking payout % must be between 0 and 100" in f for f in validate_plan(plan))

    def test_nrr_margin_out_of_range(self, sales_plan):
        plan = replace(
            sales_plan,
            nrr=NRRSettings(nrr_ote_pct=Decimal("20"), impl_min_gp_margin_pct=Decimal("110")),
        )

        assert validate_plan(plan) == [
            "NRR: Implementation minimum GP margin must be between 0 and 100 (got 110)"
        ]

    def test_plan_without_metrics_is_valid(self, sales_plan):
        plan = replace(sales_plan, metrics=())

        assert validate_plan(plan) == []


class TestMultiplierBands:
    """Test achievement band checks."""

    def test_contiguous_bands(self):
        tiers = [
            MultiplierTier(Decimal("0"), Decimal("100"), Decimal("0.5")),
            MultiplierTier(Decimal("100"), None, Decimal("1.2")),
        ]

        assert multiplier_tier_faults("ARR", tiers) == []

    def test_gap(self):
        tiers = [
            MultiplierTier(Decimal("0"), Decimal("90"), Decimal("0.5")),
            MultiplierTier(Decimal("100"), None, Decimal("1.2")),
        ]

        assert any("gap between bands" in f for f in multiplier_tier_faults("ARR", tiers))

    def test_overlap(self):
        tiers = [
            MultiplierTier(Decimal("0"), Decimal("110"), Decimal("0.5")),
            MultiplierTier(Decimal("100"), None, Decimal("1.2")),
        ]

        assert any("overlap" in f for f in multiplier_tier_faults("ARR", tiers))

    def test_decreasing_multiplier(self):
        tiers = [
            MultiplierTier(Decimal("0"), Decimal("100"), Decimal("1.5")),
            MultiplierTier(Decimal("100"), None, Decimal("1.2")),
        ]

        assert any("multiplier decreases" in f for f in multiplier_tier_faults("ARR", tiers))

    def test_band_below_zero(self):
        tiers = [MultiplierTier(Decimal("-10"), None, Decimal("1"))]

        assert any("starts below 0%" in f for f in multiplier_tier_faults("ARR", tiers))

    def test_empty_band(self):
        tiers = [MultiplierTier(Decimal("100"), Decimal("100"), Decimal("1"))]

        assert any("is empty" in f for f in multiplier_tier_faults("ARR", tiers))

    def test_metric_band_faults_surface_in_plan(self, sales_plan):
        first, second = sales_plan.metrics
        bad = replace(
            second,
            tiers=(
                MultiplierTier(Decimal("85"), None, Decimal("1.0")),
                MultiplierTier(Decimal("120"), None, Decimal("1.4")),
            ),
        )
        plan = replace(sales_plan, metrics=(first, bad))

        assert any("must be the last band" in f for f in validate_plan(plan))


def test_metric_definition_defaults_to_configured_split():
    metric = MetricDefinition(name="ARR", weightage_pct=Decimal("100"))

    assert metric.payout_split == PayoutSplitConfig.default()


class TestStandaloneMetrics:
    """Test validation of metric definitions outside a plan."""

    def test_valid_metrics_pass_through(self, sales_plan):
        assert ensure_valid_metrics(sales_plan.metrics) == sales_plan.metrics

    def test_overlapping_bands_rejected(self):
        metric = MetricDefinition(
            name="Closing ARR",
            weightage_pct=Decimal("100"),
            logic_type=LogicType.TIERED,
            tiers=(
                MultiplierTier(Decimal("0"), Decimal("130"), Decimal("1.0")),
                MultiplierTier(Decimal("90"), None, Decimal("0.5")),
            ),
        )

        with pytest.raises(PlanConfigurationException) as exc_info:
            ensure_valid_metrics([metric])

        faults = exc_info.value.faults
        assert any("overlap" in f for f in faults)
        assert any("multiplier decreases" in f for f in faults)
