"""
Qota Compensation - Payout Service Tests

Monthly runs and settlements with clawbacks and collection dates read
from collection records.
"""

import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from qota.services.calculators.aggregator import CompensationInput, MetricActual
from qota.services.calculators.monthly_payout import VARIABLE_PAY, MonthlyPayoutInput
from qota.services.calculators.settlement import CollectionHoldback, OutstandingClawback, SettlementLineType
from qota.services.collection_service import CollectionService
from qota.services.payout_service import PayoutService


@pytest.fixture
def compensation_input(sales_plan) -> CompensationInput:
    return CompensationInput(
        employee_id="E-1001",
        plan=sales_plan,
        target_bonus=Decimal("50000"),
        fiscal_year=2025,
        metric_actuals=(
            MetricActual("New Software Booking ARR", target=Decimal("100000"), actual=Decimal("120000")),
            MetricActual("Closing ARR", target=Decimal("200000"), actual=Decimal("210000")),
        ),
    )


async def open_deal(db: AsyncSession, deal_id: str, deal_value: str, booking_month: date = date(2025, 1, 1)):
    return await CollectionService(db).create_collection(
        deal_id=deal_id,
        employee_id="E-1001",
        booking_month=booking_month,
        deal_value=Decimal(deal_value),
        booking_payout_pct=Decimal("75"),
        due_date=date(2025, 6, 30),
    )


async def clawed_back_deal(db: AsyncSession, deal_id: str, deal_value: str, booking_month: date = date(2025, 1, 1)):
    record = await open_deal(db, deal_id, deal_value, booking_month)
    await CollectionService(db).trigger_clawback(record.id, as_of=date(2025, 7, 15))


class TestMonthlyRun:
    """Test payout runs against collection records."""

    @pytest.mark.asyncio
    async def test_recorded_clawbacks_deducted(self, db_session: AsyncSession, compensation_input):
        await clawed_back_deal(db_session, "D-1", "10000")

        run = await PayoutService(db_session).run_monthly(date(2025, 7, 1), [MonthlyPayoutInput(compensation_input)])
        payout = run.payouts[0]

        assert payout.gross_payable == Decimal("40500.00")
        assert payout.clawback_recovered == Decimal("7500.00")
        assert payout.net_payable == Decimal("33000.00")

    @pytest.mark.asyncio
    async def test_supplied_balance_wins(self, db_session: AsyncSession, compensation_input):
        await clawed_back_deal(db_session, "D-1", "10000")

        run = await PayoutService(db_session).run_monthly(
            date(2025, 7, 1),
            [MonthlyPayoutInput(compensation_input)],
            clawback_balances=[Decimal("0")],
        )

        assert run.total_payable == Decimal("40500.00")

    @pytest.mark.asyncio
    async def test_balances_must_align(self, db_session: AsyncSession, compensation_input):
        with pytest.raises(ValueError):
            await PayoutService(db_session).run_monthly(
                date(2025, 7, 1), [MonthlyPayoutInput(compensation_input)], clawback_balances=[]
            )


class TestSettlement:
    """Test full & final settlement against collection records."""

    @pytest.mark.asyncio
    async def test_recorded_clawbacks_and_collections(self, db_session: AsyncSession, compensation_input):
        await clawed_back_deal(db_session, "D-1", "10000")
        await clawed_back_deal(db_session, "D-0", "10000", booking_month=date(2024, 11, 1))
        collected = await open_deal(db_session, "D-5", "4000")
        await CollectionService(db_session).mark_collected(collected.id, collection_date=date(2025, 7, 20))

        settlement = await PayoutService(db_session).settle(
            compensation_input,
            departure_date=date(2025, 6, 30),
            prior_payouts={VARIABLE_PAY: Decimal("20000")},
            collection_holdbacks=[
                CollectionHoldback("D-5", VARIABLE_PAY, Decimal("3000")),
                CollectionHoldback("D-6", VARIABLE_PAY, Decimal("1000")),
            ],
        )

        vp = settlement.tranche_1.lines[0]
        assert vp.line_type == SettlementLineType.VP_SETTLEMENT
        assert vp.amount == Decimal("6778.08")
        deductions = [
            line for line in settlement.tranche_1.lines if line.line_type == SettlementLineType.CLAWBACK_DEDUCTION
        ]
        assert [d.deal_id for d in deductions] == ["D-1"]
        assert settlement.tranche_1.clawback_carryforward == Decimal("721.92")
        assert settlement.tranche_2.total == Decimal("2278.08")
        assert settlement.tranche_2.clawback_written_off == Decimal("0")

    @pytest.mark.asyncio
    async def test_supplied_clawbacks_skip_records(self, db_session: AsyncSession, compensation_input):
        await clawed_back_deal(db_session, "D-1", "10000")

        settlement = await PayoutService(db_session).settle(
            compensation_input,
            departure_date=date(2025, 6, 30),
            prior_payouts={VARIABLE_PAY: Decimal("20000")},
            outstanding_clawbacks=[OutstandingClawback("D-1", Decimal("500"))],
        )

        assert settlement.tranche_1.total == Decimal("6278.08")
