"""
Qota Compensation - Collections Router

API endpoints for deal collection tracking and clawbacks:
- Open and list collection records
- Mark a deal collected
- Trigger a clawback on an overdue deal, singly or as a sweep
- Outstanding clawback balance per employee

Transitions on a record that is already collected or clawed back return
result "already_resolved" with the current record.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from qota.database import get_db
from qota.models.collection import CollectionStatus
from qota.schemas.collection import (
    ClawbackBalanceResponse,
    ClawbackSweepRequest,
    ClawbackSweepResponse,
    CollectionCreate,
    CollectionResponse,
    CollectionStatusEnum,
    MarkCollectedRequest,
    TransitionResponse,
    TriggerClawbackRequest,
)
from qota.services.collection_service import CollectionService, TransitionOutcome
from qota.utils.money import sum_money

router = APIRouter(
    prefix="/api/v1/collections",
    tags=["Collections & Clawbacks"],
)


def _transition_response(outcome: TransitionOutcome, as_of: Optional[date] = None) -> TransitionResponse:
    return TransitionResponse(
        result=outcome.result.value,
        collection=CollectionResponse.from_record(outcome.collection, as_of),
    )


@router.post("", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
async def create_collection(
    request: CollectionCreate,
    db: AsyncSession = Depends(get_db),
):
    """Open a pending collection record for a booked deal."""
    service = CollectionService(db)
    collection = await service.create_collection(**request.model_dump())
    return CollectionResponse.from_record(collection)


@router.get("", response_model=List[CollectionResponse])
async def list_collections(
    employee_id: Optional[str] = Query(None, description="Filter by employee"),
    collection_status: Optional[CollectionStatusEnum] = Query(None, alias="status"),
    overdue_only: bool = Query(False, description="Only pending records past their due date"),
    as_of: Optional[date] = Query(None, description="Business date for overdue evaluation"),
    db: AsyncSession = Depends(get_db),
):
    """List collection records with derived overdue flags."""
    as_of = as_of or date.today()
    service = CollectionService(db)
    records = await service.list_collections(
        employee_id=employee_id,
        status=CollectionStatus(collection_status) if collection_status else None,
        overdue_as_of=as_of if overdue_only else None,
    )
    return [CollectionResponse.from_record(r, as_of) for r in records]


@router.post("/clawback-sweep", response_model=ClawbackSweepResponse)
async def sweep_overdue_clawbacks(
    request: ClawbackSweepRequest,
    db: AsyncSession = Depends(get_db),
):
    """Trigger clawback on every pending deal past its due date."""
    service = CollectionService(db)
    outcomes = await service.sweep_overdue(
        as_of=request.as_of,
        employee_id=request.employee_id,
        updated_by=request.updated_by,
    )
    applied = [o for o in outcomes if o.applied]
    return ClawbackSweepResponse(
        as_of=request.as_of,
        overdue_count=len(outcomes),
        clawed_back_count=len(applied),
        total_clawback_amount=sum_money(o.collection.clawback_amount for o in applied),
        outcomes=[_transition_response(o, request.as_of) for o in outcomes],
    )


@router.get("/clawback-balance/{employee_id}", response_model=ClawbackBalanceResponse)
async def get_clawback_balance(
    employee_id: str = Path(..., description="Employee ID"),
    since: Optional[date] = Query(None, description="Earliest booking month"),
    until: Optional[date] = Query(None, description="Latest booking month"),
    db: AsyncSession = Depends(get_db),
):
    """Outstanding clawback balance for an employee."""
    service = CollectionService(db)
    balance = await service.outstanding_clawback_balance(employee_id, since=since, until=until)
    return ClawbackBalanceResponse(employee_id=employee_id, clawback_balance=balance, since=since, until=until)


@router.get("/{collection_id}", response_model=CollectionResponse)
async def get_collection(
    collection_id: uuid.UUID = Path(..., description="Collection record ID"),
    as_of: Optional[date] = Query(None, description="Business date for overdue evaluation"),
    db: AsyncSession = Depends(get_db),
):
    service = CollectionService(db)
    return CollectionResponse.from_record(await service.get_collection(collection_id), as_of)


@router.post("/{collection_id}/collect", response_model=TransitionResponse)
async def mark_collected(
    request: MarkCollectedRequest,
    collection_id: uuid.UUID = Path(..., description="Collection record ID"),
    db: AsyncSession = Depends(get_db),
):
    """Record customer payment and release the holdback."""
    service = CollectionService(db)
    outcome = await service.mark_collected(
        collection_id,
        collection_date=request.collection_date,
        collection_amount=request.collection_amount,
        updated_by=request.updated_by,
        notes=request.notes,
    )
    return _transition_response(outcome, request.collection_date)


@router.post("/{collection_id}/clawback", response_model=TransitionResponse)
async def trigger_clawback(
    request: TriggerClawbackRequest,
    collection_id: uuid.UUID = Path(..., description="Collection record ID"),
    db: AsyncSession = Depends(get_db),
):
    """
    Claw back the booking payout of an uncollected deal.

    Only allowed after the due date. Returns 422 when the due date has not
    passed or the requested amount exceeds what was disbursed at booking.
    """
    service = CollectionService(db)
    outcome = await service.trigger_clawback(
        collection_id,
        as_of=request.as_of,
        clawback_amount=request.clawback_amount,
        updated_by=request.updated_by,
        notes=request.notes,
    )
    return _transition_response(outcome, request.as_of)
