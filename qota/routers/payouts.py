"""
Qota Compensation - Payouts Router

API endpoints for disbursement:
- Monthly payout run (YTD increment over prior disbursements, net of clawbacks)
- Full & final settlement for a departing employee
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from qota.database import get_db
from qota.schemas.compensation import BlockedCompensationResponse
from qota.schemas.payout import (
    MonthlyPayoutResponse,
    MonthlyPayoutRunRequest,
    MonthlyPayoutRunResponse,
    SettlementRequest,
    SettlementResponse,
)
from qota.services.payout_service import PayoutService

router = APIRouter(
    prefix="/api/v1/payouts",
    tags=["Payouts"],
)


@router.post("/monthly-run", response_model=MonthlyPayoutRunResponse)
async def run_monthly_payouts(
    request: MonthlyPayoutRunRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Compute the month's payouts for a set of employees.

    Each employee is paid the increase in YTD booking tranches over what
    earlier runs disbursed, less clawbacks not yet deducted. Employees
    whose plan has faults come back as blocked.
    """
    service = PayoutService(db)
    run = await service.run_monthly(
        request.month,
        [member.to_domain() for member in request.members],
        clawback_balances=[member.compensation.clawback_balance for member in request.members],
    )

    payouts = []
    for outcome in run.payouts:
        if outcome.kind == "computed":
            payouts.append(MonthlyPayoutResponse.model_validate(outcome))
        else:
            payouts.append(
                BlockedCompensationResponse(
                    employee_id=outcome.employee_id,
                    plan_name=outcome.plan_name,
                    faults=outcome.faults,
                )
            )

    return MonthlyPayoutRunResponse(
        month=run.month,
        payouts=payouts,
        computed_count=len(run.computed),
        blocked_count=run.blocked_count,
        total_payable=run.total_payable,
        total_variable_pay=run.total_variable_pay,
        total_commissions=run.total_commissions,
        total_clawbacks=run.total_clawbacks,
    )


@router.post("/settlements/full-and-final", response_model=SettlementResponse)
async def settle_full_and_final(
    request: SettlementRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Two-tranche settlement for an employee leaving mid-year.

    Outstanding clawbacks are read from the employee's clawed-back
    collection records unless the request lists them. A misconfigured
    plan returns 422 with every configuration fault listed.
    """
    service = PayoutService(db)
    outstanding = None
    if request.outstanding_clawbacks is not None:
        outstanding = [c.to_domain() for c in request.outstanding_clawbacks]

    settlement = await service.settle(
        request.compensation.to_domain(),
        departure_date=request.departure_date,
        prior_payouts=request.prior_payouts,
        year_end_reserves=[r.to_domain() for r in request.year_end_reserves],
        collection_holdbacks=[h.to_domain() for h in request.collection_holdbacks],
        outstanding_clawbacks=outstanding,
        grace_days=request.grace_days,
    )
    return SettlementResponse.model_validate(settlement)
