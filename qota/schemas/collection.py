"""
Qota Compensation - Collection Schemas

Pydantic schemas for deal collection records and clawback actions.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from qota.models.collection import CollectionStatus


# ===========================================
# ENUMS AS LITERALS
# ===========================================

CollectionStatusEnum = Literal["pending", "collected", "clawed_back"]
TransitionResultEnum = Literal["applied", "already_resolved"]


# ===========================================
# REQUESTS
# ===========================================

class CollectionCreate(BaseModel):
    """Open a collection record for a booked deal."""
    deal_id: str = Field(..., min_length=1, max_length=100)
    employee_id: str = Field(..., min_length=1, max_length=100)
    booking_month: date
    deal_value: Decimal = Field(..., ge=0)
    booking_payout_pct: Optional[Decimal] = Field(None, ge=0, le=100)
    clawback_period_days: Optional[int] = Field(None, ge=0)
    due_date: Optional[date] = Field(None, description="Overrides the computed due date")
    customer_name: Optional[str] = Field(None, max_length=255)
    project_id: Optional[str] = Field(None, max_length=100)
    created_by: Optional[str] = None


class MarkCollectedRequest(BaseModel):
    collection_date: date
    collection_amount: Optional[Decimal] = Field(None, ge=0)
    updated_by: Optional[str] = None
    notes: Optional[str] = None


class TriggerClawbackRequest(BaseModel):
    as_of: date = Field(default_factory=date.today)
    clawback_amount: Optional[Decimal] = Field(
        None, ge=0, description="Defaults to the full booking disbursement"
    )
    updated_by: Optional[str] = None
    notes: Optional[str] = None


class ClawbackSweepRequest(BaseModel):
    as_of: date = Field(default_factory=date.today)
    employee_id: Optional[str] = None
    updated_by: Optional[str] = None


# ===========================================
# RESPONSES
# ===========================================

class CollectionResponse(BaseModel):
    id: UUID
    deal_id: str
    employee_id: str
    customer_name: Optional[str]
    project_id: Optional[str]
    booking_month: date
    deal_value: Decimal
    booking_payout_pct: Decimal
    booking_disbursement: Decimal
    due_date: date
    status: CollectionStatus
    is_collected: bool
    is_clawback_triggered: bool
    collection_date: Optional[date]
    collection_amount: Optional[Decimal]
    clawback_amount: Decimal
    clawback_triggered_at: Optional[datetime]
    notes: Optional[str]
    overdue: bool = False
    overdue_days: int = 0

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, record, as_of: Optional[date] = None) -> "CollectionResponse":
        """Build the response with overdue flags evaluated as of the given day."""
        as_of = as_of or date.today()
        response = cls.model_validate(record)
        response.overdue = record.is_overdue(as_of)
        response.overdue_days = record.days_overdue(as_of)
        return response


class TransitionResponse(BaseModel):
    result: TransitionResultEnum
    collection: CollectionResponse


class ClawbackSweepResponse(BaseModel):
    as_of: date
    overdue_count: int
    clawed_back_count: int
    total_clawback_amount: Decimal
    outcomes: List[TransitionResponse]


class ClawbackBalanceResponse(BaseModel):
    employee_id: str
    clawback_balance: Decimal
    since: Optional[date] = None
    until: Optional[date] = None
