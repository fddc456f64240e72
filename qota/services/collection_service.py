"""
Qota Compensation - Collection & Clawback Service

Lifecycle of a deal's collection record:

    pending -> collected      (customer paid; holdback released)
    pending -> clawed_back    (due date passed unpaid; booking payout recovered)

Both transitions are terminal. Writes are compare-and-set on the pending
status, so when two callers race only one transition lands and the other
gets ALREADY_RESOLVED back. Calling a transition on a resolved record is a
no-op, never an error.

Due date = last day of the booking month + clawback period (default 180 days).
"""

import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from qota.config import settings
from qota.models.collection import CollectionStatus, DealCollection
from qota.utils.error_handling import (
    ClawbackExceedsDisbursementException,
    ClawbackNotDueException,
    CollectionDateRequiredException,
    CollectionNotFoundException,
    DuplicateEntryException,
    validate_amount,
    validate_percentage,
)
from qota.utils.money import ZERO, round_money

logger = logging.getLogger(__name__)


class TransitionResult(str, Enum):
    APPLIED = "applied"
    ALREADY_RESOLVED = "already_resolved"


@dataclass
class TransitionOutcome:
    result: TransitionResult
    collection: DealCollection

    @property
    def applied(self) -> bool:
        return self.result == TransitionResult.APPLIED


def end_of_month(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def calculate_due_date(booking_month: date, clawback_period_days: Optional[int] = None) -> date:
    """Last day of the booking month plus the clawback period."""
    period = settings.default_clawback_period_days if clawback_period_days is None else clawback_period_days
    return end_of_month(booking_month) + timedelta(days=period)


class CollectionService:
    """Service for deal collection records and clawbacks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # READ
    # ===========================================

    async def get_collection(self, collection_id: uuid.UUID) -> DealCollection:
        collection = await self.db.get(DealCollection, collection_id)
        if collection is None:
            raise CollectionNotFoundException(collection_id)
        return collection

    async def get_by_deal(self, deal_id: str) -> Optional[DealCollection]:
        result = await self.db.execute(
            select(DealCollection).where(DealCollection.deal_id == deal_id)
        )
        return result.scalar_one_or_none()

    async def _reload(self, collection_id: uuid.UUID) -> DealCollection:
        result = await self.db.execute(
            select(DealCollection)
            .where(DealCollection.id == collection_id)
            .execution_options(populate_existing=True)
        )
        collection = result.scalar_one_or_none()
        if collection is None:
            raise CollectionNotFoundException(collection_id)
        return collection

    async def list_collections(
        self,
        employee_id: Optional[str] = None,
        status: Optional[CollectionStatus] = None,
        overdue_as_of: Optional[date] = None,
    ) -> List[DealCollection]:
        """
        List collection records.

        Args:
            employee_id: Only this employee's deals
            status: Only records in this state
            overdue_as_of: Only pending records whose due date is before this day
        """
        query = select(DealCollection)
        conditions = []
        if employee_id:
            conditions.append(DealCollection.employee_id == employee_id)
        if status:
            conditions.append(DealCollection.status == status)
        if overdue_as_of:
            conditions.append(DealCollection.status == CollectionStatus.PENDING)
            conditions.append(DealCollection.due_date < overdue_as_of)
        if conditions:
            query = query.where(and_(*conditions))

        result = await self.db.execute(query.order_by(DealCollection.due_date, DealCollection.deal_id))
        return list(result.scalars().all())

    async def outstanding_clawback_balance(
        self,
        employee_id: str,
        since: Optional[date] = None,
        until: Optional[date] = None,
    ) -> Decimal:
        """Sum of clawed-back amounts for an employee, optionally by booking month range."""
        conditions = [
            DealCollection.employee_id == employee_id,
            DealCollection.status == CollectionStatus.CLAWED_BACK,
        ]
        if since:
            conditions.append(DealCollection.booking_month >= since)
        if until:
            conditions.append(DealCollection.booking_month <= until)

        result = await self.db.execute(
            select(func.coalesce(func.sum(DealCollection.clawback_amount), 0)).where(and_(*conditions))
        )
        return round_money(result.scalar_one())

    async def clawed_back_deals(
        self,
        employee_id: str,
        since: Optional[date] = None,
        until: Optional[date] = None,
    ) -> List[DealCollection]:
        """Clawed-back records for an employee, optionally by booking month range."""
        conditions = [
            DealCollection.employee_id == employee_id,
            DealCollection.status == CollectionStatus.CLAWED_BACK,
        ]
        if since:
            conditions.append(DealCollection.booking_month >= since)
        if until:
            conditions.append(DealCollection.booking_month <= until)

        result = await self.db.execute(
            select(DealCollection).where(and_(*conditions)).order_by(DealCollection.deal_id)
        )
        return list(result.scalars().all())

    async def collection_dates(self, deal_ids: Sequence[str]) -> Dict[str, Optional[date]]:
        """Collection date per deal; None when the deal is not collected or has no record."""
        dates: Dict[str, Optional[date]] = {deal_id: None for deal_id in deal_ids}
        if not dates:
            return dates

        result = await self.db.execute(
            select(DealCollection.deal_id, DealCollection.collection_date).where(
                and_(
                    DealCollection.deal_id.in_(list(dates)),
                    DealCollection.status == CollectionStatus.COLLECTED,
                )
            )
        )
        for deal_id, collected_on in result.all():
            dates[deal_id] = collected_on
        return dates

    # ===========================================
    # CREATE
    # ===========================================

    async def create_collection(
        self,
        deal_id: str,
        employee_id: str,
        booking_month: date,
        deal_value: Decimal,
        booking_payout_pct: Optional[Decimal] = None,
        clawback_period_days: Optional[int] = None,
        due_date: Optional[date] = None,
        customer_name: Optional[str] = None,
        project_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> DealCollection:
        """Open a pending collection record for a booked deal."""
        value = validate_amount(deal_value, field="deal_value")
        pct = validate_percentage(
            settings.default_booking_payout_pct if booking_payout_pct is None else booking_payout_pct,
            field="booking_payout_pct",
        )

        if await self.get_by_deal(deal_id) is not None:
            raise DuplicateEntryException("DealCollection", "deal_id", deal_id)

        collection = DealCollection(
            deal_id=deal_id,
            employee_id=employee_id,
            booking_month=booking_month.replace(day=1),
            deal_value=round_money(value),
            booking_payout_pct=pct,
            due_date=due_date or calculate_due_date(booking_month, clawback_period_days),
            status=CollectionStatus.PENDING,
            clawback_amount=ZERO,
            customer_name=customer_name,
            project_id=project_id,
            created_by=created_by,
            updated_by=created_by,
        )
        self.db.add(collection)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateEntryException("DealCollection", "deal_id", deal_id)
        await self.db.refresh(collection)

        logger.info(f"Opened collection for deal {deal_id} ({employee_id}), due {collection.due_date}")
        return collection

    # ===========================================
    # TRANSITIONS
    # ===========================================

    async def _compare_and_set(self, collection_id: uuid.UUID, **values) -> bool:
        """Apply values only if the record is still pending."""
        result = await self.db.execute(
            update(DealCollection)
            .where(
                and_(
                    DealCollection.id == collection_id,
                    DealCollection.status == CollectionStatus.PENDING,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def mark_collected(
        self,
        collection_id: uuid.UUID,
        collection_date: Optional[date],
        collection_amount: Optional[Decimal] = None,
        updated_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> TransitionOutcome:
        """Record customer payment: pending -> collected."""
        collection = await self.get_collection(collection_id)
        if collection.is_resolved:
            return TransitionOutcome(TransitionResult.ALREADY_RESOLVED, collection)
        if collection_date is None:
            raise CollectionDateRequiredException(collection.deal_id)

        amount = collection.deal_value if collection_amount is None else validate_amount(
            collection_amount, field="collection_amount"
        )
        values = dict(
            status=CollectionStatus.COLLECTED,
            collection_date=collection_date,
            collection_amount=round_money(amount),
            updated_by=updated_by,
        )
        if notes is not None:
            values["notes"] = notes

        applied = await self._compare_and_set(collection_id, **values)
        collection = await self._reload(collection_id)
        if not applied:
            logger.info(f"Collection for deal {collection.deal_id} already resolved as {collection.status.value}")
            return TransitionOutcome(TransitionResult.ALREADY_RESOLVED, collection)

        logger.info(f"Deal {collection.deal_id} collected on {collection_date}")
        return TransitionOutcome(TransitionResult.APPLIED, collection)

    async def trigger_clawback(
        self,
        collection_id: uuid.UUID,
        as_of: date,
        clawback_amount: Optional[Decimal] = None,
        updated_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> TransitionOutcome:
        """
        Recover the booking payout for an uncollected deal: pending -> clawed_back.

        Args:
            collection_id: The collection record
            as_of: Business date of the action; must be after the due date
            clawback_amount: Override for the recovered amount, capped at the
                booking disbursement. Defaults to the full booking disbursement.

        Raises:
            ClawbackNotDueException: the due date has not passed
            ClawbackExceedsDisbursementException: override above the disbursement
        """
        collection = await self.get_collection(collection_id)
        if collection.is_resolved:
            return TransitionOutcome(TransitionResult.ALREADY_RESOLVED, collection)
        if not as_of > collection.due_date:
            raise ClawbackNotDueException(collection.deal_id, collection.due_date, as_of)

        disbursed = collection.booking_disbursement
        if clawback_amount is None:
            amount = disbursed
        else:
            amount = round_money(validate_amount(clawback_amount, field="clawback_amount"))
            if amount > disbursed:
                raise ClawbackExceedsDisbursementException(collection.deal_id, amount, disbursed)

        values = dict(
            status=CollectionStatus.CLAWED_BACK,
            clawback_amount=amount,
            clawback_triggered_at=datetime.now(timezone.utc),
            updated_by=updated_by,
        )
        if notes is not None:
            values["notes"] = notes

        applied = await self._compare_and_set(collection_id, **values)
        collection = await self._reload(collection_id)
        if not applied:
            logger.info(f"Clawback for deal {collection.deal_id} skipped; already {collection.status.value}")
            return TransitionOutcome(TransitionResult.ALREADY_RESOLVED, collection)

        logger.warning(
            f"Clawback triggered for deal {collection.deal_id} ({collection.employee_id}): {amount}"
        )
        return TransitionOutcome(TransitionResult.APPLIED, collection)

    async def sweep_overdue(
        self,
        as_of: date,
        employee_id: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> List[TransitionOutcome]:
        """Trigger clawback on every pending record past its due date."""
        overdue = await self.list_collections(employee_id=employee_id, overdue_as_of=as_of)
        outcomes = []
        for collection in overdue:
            outcomes.append(
                await self.trigger_clawback(collection.id, as_of=as_of, updated_by=updated_by)
            )

        applied = sum(1 for o in outcomes if o.applied)
        if applied:
            logger.warning(f"Clawback sweep as of {as_of}: {applied} of {len(outcomes)} overdue deals clawed back")
        return outcomes
