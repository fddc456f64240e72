"""
Qota Compensation - Compensation Service

Runs the pure aggregator with the employee's outstanding clawback balance
read from the collection records.
"""

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from qota.services.calculators.aggregator import (
    CompensationAggregator,
    CompensationInput,
    CompensationResult,
    TeamMemberOutcome,
)
from qota.services.collection_service import CollectionService
from qota.utils.money import ZERO

logger = logging.getLogger(__name__)


class CompensationService:
    """Service for computing employee and team compensation."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.collections = CollectionService(db)
        self.aggregator = CompensationAggregator()

    async def clawback_balance_for(self, data: CompensationInput) -> Decimal:
        if data.plan.is_clawback_exempt:
            return ZERO
        return await self.collections.outstanding_clawback_balance(
            data.employee_id,
            since=date(data.fiscal_year, 1, 1),
            until=date(data.fiscal_year, 12, 31),
        )

    async def with_clawback_balance(
        self,
        data: CompensationInput,
        clawback_balance: Optional[Decimal] = None,
    ) -> CompensationInput:
        balance = clawback_balance if clawback_balance is not None else await self.clawback_balance_for(data)
        return replace(data, clawback_balance=balance)

    async def calculate(
        self,
        data: CompensationInput,
        clawback_balance: Optional[Decimal] = None,
    ) -> CompensationResult:
        """
        Compute one employee's compensation.

        Args:
            data: Plan, targets and actuals for the period
            clawback_balance: Use this balance instead of reading it from
                the collection records

        Raises:
            PlanConfigurationException: the plan has configuration faults
        """
        return self.aggregator.compute(await self.with_clawback_balance(data, clawback_balance))

    async def calculate_team(
        self,
        inputs: Sequence[CompensationInput],
        clawback_balances: Optional[Sequence[Optional[Decimal]]] = None,
    ) -> List[TeamMemberOutcome]:
        """
        Compute every team member; misconfigured plans come back as blocked entries.

        Args:
            inputs: One input per team member
            clawback_balances: Per-member balances aligned with inputs; a None
                entry reads that member's balance from the collection records
        """
        balances = list(clawback_balances) if clawback_balances is not None else [None] * len(inputs)
        if len(balances) != len(inputs):
            raise ValueError("clawback_balances must align with inputs")

        prepared = [
            await self.with_clawback_balance(data, balance) for data, balance in zip(inputs, balances)
        ]
        outcomes = self.aggregator.compute_team(prepared)
        blocked = sum(1 for o in outcomes if o.kind == "blocked")
        if blocked:
            logger.warning(f"Team computation: {blocked} of {len(outcomes)} employees blocked by plan faults")
        return outcomes
