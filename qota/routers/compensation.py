"""
Qota Compensation - Compensation Router

API endpoints for variable-pay computation:
- Per-employee compensation for a fiscal year
- Team computation with misconfigured plans flagged as blocked
- Payout projections at hypothetical achievement levels
- Renewal multiplier lookup
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from qota.database import get_db
from qota.schemas.compensation import (
    BlockedCompensationResponse,
    CompensationRequest,
    CompensationResultResponse,
    ComputedCompensationResponse,
    PayoutProjectionResponse,
    ProjectionRequest,
    RenewalAdjustmentResponse,
    RenewalMultiplierRequest,
    TeamCompensationRequest,
    TeamCompensationResponse,
)
from qota.services.calculators.metric_evaluator import MetricEvaluator
from qota.services.calculators.plan import ensure_valid_metrics
from qota.services.calculators.renewal_multiplier import RenewalMultiplierResolver
from qota.services.compensation_service import CompensationService

router = APIRouter(
    prefix="/api/v1/compensation",
    tags=["Compensation"],
)


@router.post("/calculate", response_model=CompensationResultResponse)
async def calculate_compensation(
    request: CompensationRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Compute one employee's compensation.

    The outstanding clawback balance is read from the employee's collection
    records unless the request supplies one. A misconfigured plan returns
    422 with every configuration fault listed.
    """
    service = CompensationService(db)
    result = await service.calculate(request.to_domain(), clawback_balance=request.clawback_balance)
    return CompensationResultResponse.model_validate(result)


@router.post("/team", response_model=TeamCompensationResponse)
async def calculate_team_compensation(
    request: TeamCompensationRequest,
    db: AsyncSession = Depends(get_db),
):
    """Compute a team; employees whose plan has faults come back as blocked."""
    service = CompensationService(db)
    outcomes = await service.calculate_team(
        [member.to_domain() for member in request.members],
        clawback_balances=[member.clawback_balance for member in request.members],
    )

    members = []
    for outcome in outcomes:
        if outcome.kind == "computed":
            members.append(
                ComputedCompensationResponse(
                    employee_id=outcome.employee_id,
                    result=CompensationResultResponse.model_validate(outcome.result),
                )
            )
        else:
            members.append(
                BlockedCompensationResponse(
                    employee_id=outcome.employee_id,
                    plan_name=outcome.plan_name,
                    faults=outcome.faults,
                )
            )

    blocked = sum(1 for m in members if m.kind == "blocked")
    return TeamCompensationResponse(
        members=members,
        computed_count=len(members) - blocked,
        blocked_count=blocked,
    )


@router.post("/projections", response_model=List[PayoutProjectionResponse])
async def project_payouts(request: ProjectionRequest):
    """
    Estimated payout if every metric reached each achievement level.

    Malformed metric definitions (weightages, bands, gates) return 422
    with every configuration fault listed.
    """
    metrics = ensure_valid_metrics([m.to_domain() for m in request.metrics])
    evaluator = MetricEvaluator(request.target_bonus)
    projections = evaluator.project(metrics, request.levels)
    return [PayoutProjectionResponse.model_validate(p) for p in projections]


@router.post("/renewal-multiplier", response_model=RenewalAdjustmentResponse)
async def resolve_renewal_multiplier(request: RenewalMultiplierRequest):
    """Apply the renewal uplift bands to a deal value."""
    resolver = RenewalMultiplierResolver(t.to_domain() for t in request.tiers)
    adjustment = resolver.adjust(request.value, request.renewal_years, request.is_multi_year)
    return RenewalAdjustmentResponse.model_validate(adjustment)
