"""
Qota Compensation - Deal Collection Model

One receivables record per booked deal. The record starts pending and
resolves exactly once:
- collected: the customer paid, the holdback is released
- clawed_back: the due date passed unpaid, the booking payout is recovered

Overdue is not stored; it is derived from the due date at read time.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint, Date, DateTime, Index, Numeric, String, Text,
    Enum as SQLEnum, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from qota.models.base import AuditMixin, BaseModel
from qota.utils.money import percent_of, round_money


class CollectionStatus(str, Enum):
    """Collection lifecycle state."""
    PENDING = "pending"
    COLLECTED = "collected"
    CLAWED_BACK = "clawed_back"


class DealCollection(BaseModel, AuditMixin):
    """Collection tracking for a single deal."""

    __tablename__ = "deal_collections"

    deal_id: Mapped[str] = mapped_column(String(100), nullable=False)
    employee_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    project_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    booking_month: Mapped[date] = mapped_column(Date, nullable=False)
    deal_value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    # Share of the deal's variable pay disbursed at booking, whole-number percent
    booking_payout_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[CollectionStatus] = mapped_column(
        SQLEnum(CollectionStatus),
        default=CollectionStatus.PENDING,
        nullable=False,
    )

    collection_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    collection_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), nullable=True)

    clawback_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), default=Decimal("0"), nullable=False
    )
    clawback_triggered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('deal_id', name='uq_deal_collections_deal_id'),
        CheckConstraint('clawback_amount >= 0', name='clawback_non_negative'),
        CheckConstraint('deal_value >= 0', name='deal_value_non_negative'),
        CheckConstraint(
            'NOT (collection_date IS NOT NULL AND clawback_triggered_at IS NOT NULL)',
            name='collected_xor_clawed_back',
        ),
        Index('ix_deal_collections_status_due_date', 'status', 'due_date'),
    )

    @property
    def is_collected(self) -> bool:
        return self.status == CollectionStatus.COLLECTED

    @property
    def is_clawback_triggered(self) -> bool:
        return self.status == CollectionStatus.CLAWED_BACK

    @property
    def is_resolved(self) -> bool:
        return self.status != CollectionStatus.PENDING

    @property
    def booking_disbursement(self) -> Decimal:
        """Amount paid out at booking, the most that can be clawed back."""
        return round_money(percent_of(self.deal_value, self.booking_payout_pct))

    def is_overdue(self, as_of: date) -> bool:
        return self.status == CollectionStatus.PENDING and as_of > self.due_date

    def days_overdue(self, as_of: date) -> int:
        if not self.is_overdue(as_of):
            return 0
        return (as_of - self.due_date).days

    def __repr__(self) -> str:
        return f"<DealCollection(deal_id={self.deal_id}, status={self.status}, due={self.due_date})>"
