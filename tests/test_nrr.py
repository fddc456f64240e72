"""
Qota Compensation - NRR Bonus Tests

GP-margin eligibility, achievement, payout pool and ceiling.
"""

import pytest
from decimal import Decimal

from qota.services.calculators.nrr import NRRAmounts, NRRCalculator, NRRDeal, NRRSettings


@pytest.fixture
def nrr_settings():
    return NRRSettings(
        nrr_ote_pct=Decimal("10"),
        cr_er_min_gp_margin_pct=Decimal("20"),
        impl_min_gp_margin_pct=Decimal("25"),
    )


@pytest.fixture
def nrr_deals():
    return [
        NRRDeal(
            "P-1",
            cr_usd=Decimal("50000"),
            er_usd=Decimal("10000"),
            implementation_usd=Decimal("40000"),
            gp_margin_pct=Decimal("30"),
        ),
        NRRDeal(
            "P-2",
            cr_usd=Decimal("20000"),
            implementation_usd=Decimal("30000"),
            gp_margin_pct=Decimal("22"),
        ),
        NRRDeal("P-3", cr_usd=Decimal("10000")),
    ]


class TestNRRClassification:
    """Test GP-margin gating of CR/ER and implementation amounts."""

    def test_eligible_and_total_amounts(self, nrr_settings, nrr_deals):
        amounts = NRRCalculator(nrr_settings).classify_deals(nrr_deals)

        assert amounts.eligible_cr_er == Decimal("80000")
        assert amounts.total_cr_er == Decimal("90000")
        assert amounts.eligible_implementation == Decimal("40000")
        assert amounts.total_implementation == Decimal("70000")

    def test_exclusion_reasons(self, nrr_settings, nrr_deals):
        breakdown = NRRCalculator(nrr_settings).classify_deals(nrr_deals).deal_breakdown
        by_deal = {d.deal_id: d for d in breakdown}

        assert by_deal["P-1"].cr_er_exclusion_reason is None
        assert by_deal["P-2"].is_cr_er_eligible is True
        assert by_deal["P-2"].is_impl_eligible is False
        assert "below minimum" in by_deal["P-2"].impl_exclusion_reason
        assert "not recorded" in by_deal["P-3"].cr_er_exclusion_reason

    def test_zero_minimum_accepts_missing_margin(self):
        amounts = NRRCalculator(NRRSettings(nrr_ote_pct=Decimal("10"))).classify_deals(
            [NRRDeal("P-9", cr_usd=Decimal("1000"))]
        )

        assert amounts.eligible_cr_er == Decimal("1000")


class TestNRRPayout:
    """Test payout = pool x achievement / 100."""

    def test_payout_from_deals(self, nrr_settings, nrr_deals):
        result = NRRCalculator(nrr_settings).calculate_from_deals(
            nrr_deals, nrr_target=Decimal("100000"), variable_ote=Decimal("200000")
        )

        assert result.nrr_actuals == Decimal("120000")
        assert result.achievement_pct == Decimal("120")
        assert result.payout_pool == Decimal("20000.00")
        assert result.payout == Decimal("24000.00")
        assert result.capped is False

    def test_default_split_pays_on_collection(self, nrr_settings, nrr_deals):
        result = NRRCalculator(nrr_settings).calculate_from_deals(
            nrr_deals, nrr_target=Decimal("100000"), variable_ote=Decimal("200000")
        )

        assert result.tranches.paid == Decimal("0.00")
        assert result.tranches.holdback == Decimal("24000.00")

    def test_ceiling_caps_payout(self, nrr_deals):
        settings = NRRSettings(
            nrr_ote_pct=Decimal("10"),
            cr_er_min_gp_margin_pct=Decimal("20"),
            impl_min_gp_margin_pct=Decimal("25"),
            payout_ceiling=Decimal("22000"),
        )
        result = NRRCalculator(settings).calculate_from_deals(
            nrr_deals, nrr_target=Decimal("100000"), variable_ote=Decimal("200000")
        )

        assert result.capped is True
        assert result.payout == Decimal("22000.00")

    def test_zero_target_pays_nothing(self, nrr_settings):
        amounts = NRRAmounts(Decimal("5000"), Decimal("5000"), Decimal("0"), Decimal("0"))
        result = NRRCalculator(nrr_settings).calculate(amounts, Decimal("0"), Decimal("100000"))

        assert result.achievement_pct == Decimal("0")
        assert result.payout == Decimal("0.00")

    def test_zero_nrr_ote_pct_pays_nothing(self):
        amounts = NRRAmounts(Decimal("50000"), Decimal("50000"), Decimal("0"), Decimal("0"))
        result = NRRCalculator(NRRSettings(nrr_ote_pct=Decimal("0"))).calculate(
            amounts, Decimal("40000"), Decimal("100000")
        )

        assert result.payout_pool == Decimal("0.00")
        assert result.payout == Decimal("0.00")
