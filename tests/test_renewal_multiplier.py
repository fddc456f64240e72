"""
Qota Compensation - Renewal Multiplier Tests
"""

import pytest
from decimal import Decimal

from qota.services.calculators import resolve_renewal_multiplier
from qota.services.calculators.renewal_multiplier import (
    RenewalMultiplierResolver,
    RenewalMultiplierTier,
    renewal_tier_faults,
)


class TestRenewalMultiplierResolver:
    """Test renewal-year band lookup."""

    def test_three_year_renewal_uplift(self, renewal_tiers):
        """250,000 over 3 years at 1.15x is 287,500."""
        adjustment = RenewalMultiplierResolver(renewal_tiers).adjust(Decimal("250000"), 3, True)

        assert adjustment.multiplier == Decimal("1.15")
        assert adjustment.adjusted_value == Decimal("287500.00")

    def test_single_year_deal_is_neutral(self, renewal_tiers):
        assert resolve_renewal_multiplier(6, False, renewal_tiers) == Decimal("1")

    @pytest.mark.parametrize("years,expected", [
        (1, Decimal("1.0")),
        (2, Decimal("1.0")),
        (3, Decimal("1.15")),
        (5, Decimal("1.15")),
        (6, Decimal("1.3")),
        (99, Decimal("1.3")),
    ])
    def test_band_boundaries_inclusive(self, renewal_tiers, years, expected):
        assert resolve_renewal_multiplier(years, True, renewal_tiers) == expected

    def test_no_matching_band_falls_back_to_one(self, renewal_tiers):
        assert resolve_renewal_multiplier(150, True, renewal_tiers) == Decimal("1")

    def test_no_tiers_configured(self):
        assert resolve_renewal_multiplier(4, True, []) == Decimal("1")

    def test_open_ended_top_band(self):
        tiers = [
            RenewalMultiplierTier(1, 2, Decimal("1.0")),
            RenewalMultiplierTier(3, None, Decimal("1.2")),
        ]

        assert resolve_renewal_multiplier(40, True, tiers) == Decimal("1.2")

    def test_tiers_scanned_in_ascending_order(self):
        """Unordered input resolves the same as ordered input."""
        tiers = [
            RenewalMultiplierTier(6, None, Decimal("1.3")),
            RenewalMultiplierTier(1, 2, Decimal("1.0")),
            RenewalMultiplierTier(3, 5, Decimal("1.15")),
        ]

        assert resolve_renewal_multiplier(4, True, tiers) == Decimal("1.15")

    def test_multiplier_non_decreasing_across_years(self, renewal_tiers):
        resolver = RenewalMultiplierResolver(renewal_tiers)
        multipliers = [resolver.resolve(years, True) for years in range(1, 100)]

        assert multipliers == sorted(multipliers)


class TestRenewalTierValidation:
    """Test configuration-time checks on renewal bands."""

    def test_valid_bands(self, renewal_tiers):
        assert renewal_tier_faults(renewal_tiers) == []

    def test_empty_bands_are_valid(self):
        assert renewal_tier_faults([]) == []

    def test_must_start_at_one_year(self):
        faults = renewal_tier_faults([RenewalMultiplierTier(2, None, Decimal("1.1"))])

        assert any("start at 1 year" in f for f in faults)

    def test_gap_detected(self):
        faults = renewal_tier_faults([
            RenewalMultiplierTier(1, 2, Decimal("1.0")),
            RenewalMultiplierTier(4, None, Decimal("1.2")),
        ])

        assert any("Gap" in f for f in faults)

    def test_overlap_detected(self):
        faults = renewal_tier_faults([
            RenewalMultiplierTier(1, 3, Decimal("1.0")),
            RenewalMultiplierTier(3, None, Decimal("1.2")),
        ])

        assert any("overlap" in f for f in faults)

    def test_decreasing_multiplier_detected(self):
        faults = renewal_tier_faults([
            RenewalMultiplierTier(1, 2, Decimal("1.2")),
            RenewalMultiplierTier(3, None, Decimal("1.0")),
        ])

        assert any("decreases" in f for f in faults)

    def test_open_ended_band_must_be_last(self):
        faults = renewal_tier_faults([
            RenewalMultiplierTier(1, None, Decimal("1.0")),
            RenewalMultiplierTier(3, 5, Decimal("1.2")),
        ])

        assert any("must be the last band" in f for f in faults)
