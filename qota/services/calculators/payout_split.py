"""
Qota Compensation - Payout Split & Holdback Engine

Splits a gross eligible amount into three disbursement tranches:
- paid at booking
- holdback, released on collection
- year-end holdback, released at fiscal year close

Rounding:
- The eligible amount is rounded to cents first
- Booking and year-end tranches are rounded half-up
- The holdback is computed last as the remainder, so the three
  tranches always sum exactly to the eligible amount
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from qota.config import settings
from qota.utils.money import HUNDRED, ZERO, Number, percent_of, round_money, sum_money, to_decimal


@dataclass(frozen=True)
class PayoutSplitConfig:
    """Disbursement timing for one payout source (metric, commission, NRR, SPIFF)."""
    booking_pct: Decimal
    year_end_pct: Decimal = ZERO

    @property
    def collection_pct(self) -> Decimal:
        return HUNDRED - self.booking_pct - self.year_end_pct

    def faults(self, label: str) -> List[str]:
        problems = []
        if self.booking_pct < 0 or self.booking_pct > HUNDRED:
            problems.append(f"{label}: booking payout % must be between 0 and 100 (got {self.booking_pct})")
        if self.year_end_pct < 0 or self.year_end_pct > HUNDRED:
            problems.append(f"{label}: year-end holdback % must be between 0 and 100 (got {self.year_end_pct})")
        if self.booking_pct + self.year_end_pct > HUNDRED:
            problems.append(
                f"{label}: booking % + year-end % exceeds 100 "
                f"({self.booking_pct} + {self.year_end_pct})"
            )
        return problems

    @classmethod
    def default(cls) -> "PayoutSplitConfig":
        return cls(
            booking_pct=settings.default_booking_payout_pct,
            year_end_pct=settings.default_year_end_holdback_pct,
        )

    @classmethod
    def nrr_default(cls) -> "PayoutSplitConfig":
        return cls(
            booking_pct=settings.nrr_default_booking_pct,
            year_end_pct=settings.nrr_default_year_end_pct,
        )

    @classmethod
    def paid_in_full(cls) -> "PayoutSplitConfig":
        return cls(booking_pct=HUNDRED, year_end_pct=ZERO)


@dataclass(frozen=True)
class PayoutTranches:
    """One gross amount split into its disbursement tranches."""
    eligible: Decimal
    paid: Decimal
    holdback: Decimal
    year_end_holdback: Decimal

    @classmethod
    def zero(cls) -> "PayoutTranches":
        return cls(eligible=ZERO, paid=ZERO, holdback=ZERO, year_end_holdback=ZERO)

    def __add__(self, other: "PayoutTranches") -> "PayoutTranches":
        return PayoutTranches(
            eligible=self.eligible + other.eligible,
            paid=self.paid + other.paid,
            holdback=self.holdback + other.holdback,
            year_end_holdback=self.year_end_holdback + other.year_end_holdback,
        )

    def __sub__(self, other: "PayoutTranches") -> "PayoutTranches":
        return PayoutTranches(
            eligible=self.eligible - other.eligible,
            paid=self.paid - other.paid,
            holdback=self.holdback - other.holdback,
            year_end_holdback=self.year_end_holdback - other.year_end_holdback,
        )


class PayoutSplitCalculator:
    """Splits eligible payouts according to a PayoutSplitConfig."""

    def __init__(self, config: Optional[PayoutSplitConfig] = None):
        self.config = config or PayoutSplitConfig.default()

    def split(self, eligible: Number) -> PayoutTranches:
        """
        Split an eligible amount into paid / holdback / year-end tranches.

        Args:
            eligible: Gross eligible amount (rounded to cents before splitting)

        Returns:
            PayoutTranches whose parts sum exactly to the rounded eligible amount
        """
        total = round_money(eligible)
        if total < 0:
            raise ValueError(f"Eligible payout cannot be negative: {total}")

        paid = round_money(percent_of(total, self.config.booking_pct))
        # half-up on both tranches can overshoot by a cent when they cover 100%
        year_end = min(round_money(percent_of(total, self.config.year_end_pct)), total - paid)
        holdback = total - paid - year_end

        return PayoutTranches(
            eligible=total,
            paid=paid,
            holdback=holdback,
            year_end_holdback=year_end,
        )


def split_payout(
    eligible: Number,
    booking_pct: Number,
    year_end_pct: Number = ZERO,
) -> PayoutTranches:
    config = PayoutSplitConfig(to_decimal(booking_pct), to_decimal(year_end_pct))
    return PayoutSplitCalculator(config).split(eligible)


def combine_tranches(tranches: Iterable[PayoutTranches]) -> PayoutTranches:
    items = list(tranches)
    return PayoutTranches(
        eligible=sum_money(t.eligible for t in items),
        paid=sum_money(t.paid for t in items),
        holdback=sum_money(t.holdback for t in items),
        year_end_holdback=sum_money(t.year_end_holdback for t in items),
    )
