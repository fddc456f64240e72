"""
Qota Compensation - Payout Service

Monthly payout runs and full & final settlements, with clawback balances,
clawed-back deals and collection dates read from the collection records.
"""

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import List, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from qota.services.calculators.aggregator import CompensationInput
from qota.services.calculators.monthly_payout import (
    MonthlyPayoutCalculator,
    MonthlyPayoutInput,
    PayoutRunResult,
)
from qota.services.calculators.settlement import (
    CollectionHoldback,
    FullAndFinalSettlement,
    OutstandingClawback,
    SettlementInput,
    YearEndReserve,
    settle_full_and_final,
    ytd_entitlements,
)
from qota.services.collection_service import CollectionService
from qota.services.compensation_service import CompensationService

logger = logging.getLogger(__name__)


class PayoutService:
    """Service for monthly payout runs and departure settlements."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.collections = CollectionService(db)
        self.compensation = CompensationService(db)
        self.calculator = MonthlyPayoutCalculator(self.compensation.aggregator)

    async def run_monthly(
        self,
        month: date,
        inputs: Sequence[MonthlyPayoutInput],
        clawback_balances: Optional[Sequence[Optional[Decimal]]] = None,
    ) -> PayoutRunResult:
        """
        Monthly payout run for many employees.

        Args:
            month: The payout month
            inputs: YTD compensation inputs plus prior disbursements
            clawback_balances: Per-employee YTD clawback balances aligned with
                inputs; a None entry reads the balance from the collection records
        """
        balances = list(clawback_balances) if clawback_balances is not None else [None] * len(inputs)
        if len(balances) != len(inputs):
            raise ValueError("clawback_balances must align with inputs")

        prepared = []
        for data, balance in zip(inputs, balances):
            compensation = await self.compensation.with_clawback_balance(data.compensation, balance)
            prepared.append(replace(data, compensation=compensation))

        run = self.calculator.run(month, prepared)
        logger.info(
            f"Payout run {run.month:%Y-%m}: {len(run.computed)} paid, {run.blocked_count} blocked, "
            f"total {run.total_payable}"
        )
        return run

    async def outstanding_clawbacks_for(self, data: CompensationInput) -> List[OutstandingClawback]:
        if data.plan.is_clawback_exempt:
            return []
        records = await self.collections.clawed_back_deals(
            data.employee_id,
            since=date(data.fiscal_year, 1, 1),
            until=date(data.fiscal_year, 12, 31),
        )
        return [OutstandingClawback(deal_id=r.deal_id, amount=r.clawback_amount) for r in records]

    async def settle(
        self,
        data: CompensationInput,
        departure_date: date,
        prior_payouts: Optional[Mapping[str, Decimal]] = None,
        year_end_reserves: Sequence[YearEndReserve] = (),
        collection_holdbacks: Sequence[CollectionHoldback] = (),
        outstanding_clawbacks: Optional[Sequence[OutstandingClawback]] = None,
        grace_days: Optional[int] = None,
    ) -> FullAndFinalSettlement:
        """
        Full & final settlement for an employee leaving mid-year.

        Args:
            data: YTD plan, targets and actuals through the departure date
            departure_date: Last working day
            prior_payouts: Variable pay, NRR and SPIFF already disbursed this year
            year_end_reserves: Year-end holdbacks to release in tranche 1
            collection_holdbacks: Holdbacks released in tranche 2 once collected
            outstanding_clawbacks: Clawbacks to deduct; read from the collection
                records when omitted
            grace_days: Collection grace period; defaults to the configured value

        Raises:
            PlanConfigurationException: the plan has configuration faults
        """
        result = self.compensation.aggregator.compute(data)

        if outstanding_clawbacks is None:
            outstanding_clawbacks = await self.outstanding_clawbacks_for(data)
        collection_dates = await self.collections.collection_dates(
            [h.deal_id for h in collection_holdbacks]
        )

        currency = data.currency
        settlement_input = SettlementInput(
            employee_id=data.employee_id,
            fiscal_year=data.fiscal_year,
            departure_date=departure_date,
            ytd_entitlements=ytd_entitlements(result),
            prior_payouts=dict(prior_payouts or {}),
            year_end_reserves=tuple(year_end_reserves),
            outstanding_clawbacks=tuple(outstanding_clawbacks),
            collection_holdbacks=tuple(collection_holdbacks),
            collection_dates=collection_dates,
            grace_days=grace_days,
            compensation_rate=currency.compensation_rate if currency else Decimal("1"),
            local_currency=currency.local_currency if currency else "USD",
        )
        return settle_full_and_final(settlement_input)
