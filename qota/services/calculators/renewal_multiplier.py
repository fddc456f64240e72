"""
Qota Compensation - Renewal Multiplier Resolver

Multi-year renewals earn an uplift on their closing ARR. The uplift is
banded by renewal years, e.g.:
- 1-2 years: 1.0x
- 3-5 years: 1.15x
- 6+ years: 1.3x

Tiers are scanned in ascending order of min_years and the first band
containing the renewal years wins. Single-year deals and renewals that
fall outside every band use 1.0x. Band validation happens when the plan
is configured (see plan.PlanValidator).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from qota.utils.money import Number, round_money, to_decimal

logger = logging.getLogger(__name__)

NEUTRAL_MULTIPLIER = Decimal("1")


@dataclass(frozen=True)
class RenewalMultiplierTier:
    """Renewal-year band. max_years of None means open-ended."""
    min_years: int
    max_years: Optional[int]
    multiplier: Decimal

    def contains(self, renewal_years: int) -> bool:
        if renewal_years < self.min_years:
            return False
        return self.max_years is None or renewal_years <= self.max_years

    @property
    def label(self) -> str:
        upper = "+" if self.max_years is None else f"-{self.max_years}"
        return f"{self.min_years}{upper} years"


@dataclass(frozen=True)
class RenewalAdjustment:
    value: Decimal
    renewal_years: int
    is_multi_year: bool
    multiplier: Decimal
    adjusted_value: Decimal


class RenewalMultiplierResolver:
    """Looks up the renewal uplift for a deal."""

    def __init__(self, tiers: Iterable[RenewalMultiplierTier] = ()):
        self.tiers: List[RenewalMultiplierTier] = sorted(tiers, key=lambda t: t.min_years)

    def resolve(self, renewal_years: int, is_multi_year: bool) -> Decimal:
        """
        Get the multiplier for a deal.

        Args:
            renewal_years: Contract length in years (>= 1)
            is_multi_year: Whether the deal is flagged as a multi-year renewal

        Returns:
            Multiplier of the first matching band, or 1.0
        """
        if not is_multi_year:
            return NEUTRAL_MULTIPLIER

        for tier in self.tiers:
            if tier.contains(renewal_years):
                return tier.multiplier

        logger.warning(
            f"No renewal multiplier band covers {renewal_years} years; using {NEUTRAL_MULTIPLIER}x"
        )
        return NEUTRAL_MULTIPLIER

    def adjust(self, value: Number, renewal_years: int, is_multi_year: bool) -> RenewalAdjustment:
        """Apply the renewal uplift to a deal value."""
        amount = to_decimal(value)
        multiplier = self.resolve(renewal_years, is_multi_year)
        return RenewalAdjustment(
            value=amount,
            renewal_years=renewal_years,
            is_multi_year=is_multi_year,
            multiplier=multiplier,
            adjusted_value=round_money(amount * multiplier),
        )


def renewal_tier_faults(tiers: Sequence[RenewalMultiplierTier]) -> List[str]:
    """
    Check that renewal bands cover [1, ...) without gaps or overlaps
    and never lower the multiplier as years increase.
    """
    faults: List[str] = []
    if not tiers:
        return faults

    ordered = sorted(tiers, key=lambda t: t.min_years)
    if ordered[0].min_years != 1:
        faults.append(f"Renewal multiplier bands must start at 1 year (first band starts at {ordered[0].min_years})")

    for tier in ordered:
        if tier.max_years is not None and tier.max_years < tier.min_years:
            faults.append(f"Renewal band {tier.label}: max years is below min years")
        if tier.multiplier < 0:
            faults.append(f"Renewal band {tier.label}: multiplier cannot be negative")

    for previous, current in zip(ordered, ordered[1:]):
        if previous.max_years is None:
            faults.append(f"Open-ended renewal band {previous.label} must be the last band")
            continue
        if current.min_years <= previous.max_years:
            faults.append(f"Renewal bands {previous.label} and {current.label} overlap")
        elif current.min_years != previous.max_years + 1:
            faults.append(f"Gap between renewal bands {previous.label} and {current.label}")
        if current.multiplier < previous.multiplier:
            faults.append(
                f"Renewal multiplier decreases from {previous.multiplier} to {current.multiplier} "
                f"at {current.label}"
            )

    return faults
