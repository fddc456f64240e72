"""
Qota Compensation - API Integration Tests

Integration tests for REST API endpoints.
"""

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient


SPLIT = {"booking_pct": 75, "year_end_pct": 0}

PLAN = {
    "name": "FY2025 Account Executive",
    "metrics": [
        {
            "name": "New Software Booking ARR",
            "weightage_pct": 40,
            "logic_type": "linear",
            "min_pct": 0,
            "max_pct": 150,
            "payout_split": SPLIT,
        },
        {
            "name": "Closing ARR",
            "weightage_pct": 60,
            "logic_type": "gated",
            "gate_threshold_pct": 85,
            "tiers": [
                {"min_pct": 85, "max_pct": 100, "multiplier": "0.8"},
                {"min_pct": 100, "max_pct": 120, "multiplier": "1.0"},
                {"min_pct": 120, "max_pct": None, "multiplier": "1.4"},
            ],
            "payout_split": SPLIT,
        },
    ],
    "renewal_tiers": [
        {"min_years": 1, "max_years": 2, "multiplier": "1.0"},
        {"min_years": 3, "max_years": 5, "multiplier": "1.15"},
        {"min_years": 6, "max_years": None, "multiplier": "1.3"},
    ],
}


def compensation_payload(**overrides):
    payload = {
        "employee_id": "E-1001",
        "fiscal_year": 2025,
        "target_bonus": 50000,
        "plan": PLAN,
        "metric_actuals": [
            {"metric_name": "New Software Booking ARR", "target": 100000, "actual": 120000},
            {"metric_name": "Closing ARR", "target": 200000, "actual": 210000},
        ],
    }
    payload.update(overrides)
    return payload


def collection_payload(**overrides):
    payload = {
        "deal_id": "D-100",
        "employee_id": "E-1001",
        "booking_month": "2025-01-01",
        "deal_value": 100000,
        "booking_payout_pct": 75,
        "due_date": "2025-06-30",
        "customer_name": "Acme Bank",
    }
    payload.update(overrides)
    return payload


class TestHealthEndpoint:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        """Test health check returns 200."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"


class TestCompensationAPI:
    """Test compensation endpoints."""

    @pytest.mark.asyncio
    async def test_calculate(self, client: AsyncClient):
        response = await client.post("/api/v1/compensation/calculate", json=compensation_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["plan_name"] == "FY2025 Account Executive"
        assert Decimal(data["metric_results"][0]["eligible_payout"]) == Decimal("24000.00")
        assert Decimal(data["total_eligible"]) == Decimal("54000.00")
        assert Decimal(data["gross_paid"]) == Decimal("40500.00")
        assert Decimal(data["total_holdback"]) == Decimal("13500.00")
        assert Decimal(data["clawback_balance"]) == Decimal("0")
        assert data["nrr_result"] is None
        assert data["spiff_results"] == []

    @pytest.mark.asyncio
    async def test_calculate_with_credited_renewal_contributions(self, client: AsyncClient):
        contribution = {
            "deal_id": "D-7",
            "value": 250000,
            "renewal_years": 3,
            "is_multi_year": True,
            "participants": [
                {"kind": "individual", "employee_id": "E-1001", "split_pct": 60},
                {"kind": "support_team", "team_id": "T-PRESALES", "split_pct": 40},
            ],
        }
        payload = compensation_payload(
            team_ids=["T-PRESALES"],
            metric_actuals=[
                {"metric_name": "New Software Booking ARR", "target": 100000, "actual": 120000},
                {"metric_name": "Closing ARR", "target": 250000, "contributions": [contribution]},
            ],
        )

        response = await client.post("/api/v1/compensation/calculate", json=payload)

        assert response.status_code == 200
        data = response.json()
        closing = data["metric_results"][1]
        assert Decimal(closing["actual"]) == Decimal("287500.00")
        assert Decimal(closing["achievement_pct"]) == Decimal("115")
        assert Decimal(closing["eligible_payout"]) == Decimal("30000.00")
        assert Decimal(data["renewal_adjustments"][0]["multiplier"]) == Decimal("1.15")
        [attribution] = data["deal_attributions"]
        assert attribution["deal_id"] == "D-7"
        assert Decimal(attribution["variable_pay"]) == Decimal("30000.00")
        assert Decimal(attribution["clawback_eligible_amount"]) == Decimal("22500.00")

    @pytest.mark.asyncio
    async def test_partial_credit_below_gate(self, client: AsyncClient):
        contribution = {
            "deal_id": "D-7",
            "value": 250000,
            "renewal_years": 3,
            "is_multi_year": True,
            "participants": [
                {"kind": "individual", "employee_id": "E-1001", "split_pct": 60},
                {"kind": "support_team", "team_id": "T-PRESALES", "split_pct": 40},
            ],
        }
        payload = compensation_payload(
            metric_actuals=[{"metric_name": "Closing ARR", "target": 250000, "contributions": [contribution]}],
        )

        response = await client.post("/api/v1/compensation/calculate", json=payload)

        closing = response.json()["metric_results"][1]
        assert closing["status"] == "below_gate"
        assert Decimal(closing["eligible_payout"]) == Decimal("0")

    @pytest.mark.asyncio
    async def test_misconfigured_plan_returns_faults(self, client: AsyncClient):
        plan = dict(PLAN, metrics=[dict(PLAN["metrics"][0], weightage_pct=30), PLAN["metrics"][1]])

        response = await client.post("/api/v1/compensation/calculate", json=compensation_payload(plan=plan))

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "CONFIGURATION_ERROR"
        assert "Metric weightages sum to 90%, expected 100%" in detail["details"]["faults"]

    @pytest.mark.asyncio
    async def test_actual_and_contributions_conflict(self, client: AsyncClient):
        payload = compensation_payload(
            metric_actuals=[{
                "metric_name": "Closing ARR",
                "target": 1000,
                "actual": 1000,
                "contributions": [{"deal_id": "D-1", "value": 1000}],
            }],
        )

        response = await client.post("/api/v1/compensation/calculate", json=payload)

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_team(self, client: AsyncClient):
        broken = dict(PLAN, name="Broken Plan", metrics=[PLAN["metrics"][0]])
        payload = {
            "members": [
                compensation_payload(),
                compensation_payload(employee_id="E-2002", plan=broken),
            ]
        }

        response = await client.post("/api/v1/compensation/team", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["computed_count"] == 1
        assert data["blocked_count"] == 1
        computed, blocked = data["members"]
        assert computed["kind"] == "computed"
        assert Decimal(computed["result"]["total_eligible"]) == Decimal("54000.00")
        assert blocked["kind"] == "blocked"
        assert blocked["plan_name"] == "Broken Plan"
        assert blocked["faults"]

    @pytest.mark.asyncio
    async def test_team_matches_single_calculation_with_supplied_balance(self, client: AsyncClient):
        member = compensation_payload(clawback_balance=1000)

        single = await client.post("/api/v1/compensation/calculate", json=member)
        team = await client.post("/api/v1/compensation/team", json={"members": [member]})

        assert single.status_code == 200
        assert team.status_code == 200
        expected = single.json()
        result = team.json()["members"][0]["result"]
        assert Decimal(result["clawback_balance"]) == Decimal("1000.00")
        assert Decimal(result["total_paid"]) == Decimal("39500.00")
        assert result["total_paid"] == expected["total_paid"]

    @pytest.mark.asyncio
    async def test_projections(self, client: AsyncClient):
        payload = {"target_bonus": 50000, "metrics": PLAN["metrics"]}

        response = await client.post("/api/v1/compensation/projections", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert [Decimal(p["achievement_pct"]) for p in data] == [Decimal("100"), Decimal("120"), Decimal("150")]
        assert Decimal(data[0]["total_payout"]) == Decimal("50000.00")
        assert Decimal(data[1]["by_metric"]["Closing ARR"]) == Decimal("42000.00")

    @pytest.mark.asyncio
    async def test_projections_reject_overlapping_bands(self, client: AsyncClient):
        metric = {
            "name": "Closing ARR",
            "weightage_pct": 100,
            "logic_type": "tiered",
            "tiers": [
                {"min_pct": 0, "max_pct": 130, "multiplier": "1.0"},
                {"min_pct": 90, "max_pct": None, "multiplier": "0.5"},
            ],
        }

        response = await client.post(
            "/api/v1/compensation/projections", json={"target_bonus": 50000, "metrics": [metric]}
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "CONFIGURATION_ERROR"
        assert any("overlap" in f for f in detail["details"]["faults"])

    @pytest.mark.asyncio
    async def test_team_blocks_only_member_with_bad_split(self, client: AsyncClient):
        bad_metric = dict(PLAN["metrics"][0], payout_split={"booking_pct": 80, "year_end_pct": 30})
        bad_plan = dict(PLAN, name="Over-allocated Plan", metrics=[bad_metric, PLAN["metrics"][1]])
        payload = {
            "members": [
                compensation_payload(),
                compensation_payload(employee_id="E-2002", plan=bad_plan),
            ]
        }

        response = await client.post("/api/v1/compensation/team", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["computed_count"] == 1
        assert data["blocked_count"] == 1
        blocked = data["members"][1]
        assert blocked["kind"] == "blocked"
        assert blocked["employee_id"] == "E-2002"
        assert any("exceeds 100" in f for f in blocked["faults"])

    @pytest.mark.asyncio
    async def test_calculate_reports_bad_split_as_configuration_fault(self, client: AsyncClient):
        bad_metric = dict(PLAN["metrics"][0], payout_split={"booking_pct": 120, "year_end_pct": 0})
        plan = dict(PLAN, metrics=[bad_metric, PLAN["metrics"][1]])

        response = await client.post("/api/v1/compensation/calculate", json=compensation_payload(plan=plan))

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "CONFIGURATION_ERROR"
        assert any("booking payout % must be between 0 and 100" in f for f in detail["details"]["faults"])

    @pytest.mark.asyncio
    async def test_renewal_multiplier(self, client: AsyncClient):
        payload = {"value": 250000, "renewal_years": 3, "tiers": PLAN["renewal_tiers"]}

        response = await client.post("/api/v1/compensation/renewal-multiplier", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["multiplier"]) == Decimal("1.15")
        assert Decimal(data["adjusted_value"]) == Decimal("287500.00")


class TestCollectionsAPI:
    """Test collection and clawback endpoints."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, client: AsyncClient):
        response = await client.post("/api/v1/collections", json=collection_payload())

        assert response.status_code == 201
        created = response.json()
        assert created["status"] == "pending"
        assert Decimal(created["booking_disbursement"]) == Decimal("75000.00")

        response = await client.get(f"/api/v1/collections/{created['id']}", params={"as_of": "2025-07-15"})

        assert response.status_code == 200
        data = response.json()
        assert data["overdue"] is True
        assert data["overdue_days"] == 15

    @pytest.mark.asyncio
    async def test_duplicate_deal(self, client: AsyncClient):
        await client.post("/api/v1/collections", json=collection_payload())
        response = await client.post("/api/v1/collections", json=collection_payload())

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "DUPLICATE_ENTRY"

    @pytest.mark.asyncio
    async def test_unknown_collection(self, client: AsyncClient):
        response = await client.get(f"/api/v1/collections/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "COLLECTION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_clawback_lifecycle(self, client: AsyncClient):
        created = (await client.post("/api/v1/collections", json=collection_payload())).json()
        url = f"/api/v1/collections/{created['id']}/clawback"

        early = await client.post(url, json={"as_of": "2025-06-30"})
        assert early.status_code == 422
        assert early.json()["detail"]["code"] == "CLAWBACK_NOT_DUE"

        too_much = await client.post(url, json={"as_of": "2025-07-15", "clawback_amount": "80000"})
        assert too_much.status_code == 422
        assert too_much.json()["detail"]["code"] == "CLAWBACK_EXCEEDS_DISBURSEMENT"

        applied = await client.post(url, json={"as_of": "2025-07-15"})
        assert applied.status_code == 200
        assert applied.json()["result"] == "applied"
        assert applied.json()["collection"]["status"] == "clawed_back"
        assert Decimal(applied.json()["collection"]["clawback_amount"]) == Decimal("75000.00")

        repeat = await client.post(url, json={"as_of": "2025-07-20"})
        assert repeat.status_code == 200
        assert repeat.json()["result"] == "already_resolved"

        balance = await client.get("/api/v1/collections/clawback-balance/E-1001")
        assert Decimal(balance.json()["clawback_balance"]) == Decimal("75000.00")

    @pytest.mark.asyncio
    async def test_mark_collected_requires_date(self, client: AsyncClient):
        created = (await client.post("/api/v1/collections", json=collection_payload())).json()

        response = await client.post(f"/api/v1/collections/{created['id']}/collect", json={})
        assert response.status_code == 422

        response = await client.post(
            f"/api/v1/collections/{created['id']}/collect", json={"collection_date": "2025-05-02"}
        )
        assert response.status_code == 200
        assert response.json()["collection"]["status"] == "collected"
        assert response.json()["collection"]["is_collected"] is True

    @pytest.mark.asyncio
    async def test_sweep_and_list(self, client: AsyncClient):
        await client.post("/api/v1/collections", json=collection_payload(deal_id="D-1"))
        await client.post("/api/v1/collections", json=collection_payload(deal_id="D-2", due_date="2025-09-30"))

        overdue = await client.get(
            "/api/v1/collections", params={"overdue_only": "true", "as_of": "2025-07-15"}
        )
        assert [c["deal_id"] for c in overdue.json()] == ["D-1"]

        response = await client.post("/api/v1/collections/clawback-sweep", json={"as_of": "2025-07-15"})

        assert response.status_code == 200
        data = response.json()
        assert data["overdue_count"] == 1
        assert data["clawed_back_count"] == 1
        assert Decimal(data["total_clawback_amount"]) == Decimal("75000.00")

        pending = await client.get("/api/v1/collections", params={"status": "pending"})
        assert [c["deal_id"] for c in pending.json()] == ["D-2"]


class TestPayoutsAPI:
    """Test monthly payout run and settlement endpoints."""

    @pytest.mark.asyncio
    async def test_monthly_run_pays_increment(self, client: AsyncClient):
        broken_plan = {**PLAN, "name": "Broken Plan", "metrics": PLAN["metrics"][:1]}
        response = await client.post(
            "/api/v1/payouts/monthly-run",
            json={
                "month": "2025-03-15",
                "members": [
                    {
                        "compensation": compensation_payload(clawback_balance=2000),
                        "prior_payouts": [{"payout_type": "Variable Pay", "eligible": 40000, "paid": 30000}],
                        "prior_clawbacks_deducted": 500,
                    },
                    {"compensation": compensation_payload(employee_id="E-2002", plan=broken_plan)},
                ],
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["month"] == "2025-03-01"
        assert data["computed_count"] == 1
        assert data["blocked_count"] == 1
        paid, blocked = data["payouts"]
        assert paid["kind"] == "computed"
        assert Decimal(paid["gross_payable"]) == Decimal("10500.00")
        assert Decimal(paid["clawback_recovered"]) == Decimal("1500.00")
        assert Decimal(paid["net_payable"]) == Decimal("9000.00")
        assert paid["lines"][0]["payout_type"] == "Variable Pay"
        assert blocked["kind"] == "blocked"
        assert blocked["plan_name"] == "Broken Plan"
        assert Decimal(data["total_payable"]) == Decimal("9000.00")

    @pytest.mark.asyncio
    async def test_full_and_final_settlement(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/payouts/settlements/full-and-final",
            json={
                "compensation": compensation_payload(),
                "departure_date": "2025-06-30",
                "prior_payouts": {"Variable Pay": 20000},
                "year_end_reserves": [{"payout_type": "Variable Pay", "amount": 1000}],
                "collection_holdbacks": [{"deal_id": "D-5", "payout_type": "Variable Pay", "amount": 3000}],
                "outstanding_clawbacks": [{"deal_id": "D-1", "amount": 500}],
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["grace_days"] == 90
        assert data["tranche_2_eligible_date"] == "2025-09-28"
        assert [line["line_type"] for line in data["tranche_1"]["lines"]] == [
            "year_end_release",
            "vp_settlement",
            "clawback_deduction",
        ]
        assert Decimal(data["tranche_1"]["total"]) == Decimal("7278.08")
        assert data["tranche_2"]["lines"][0]["line_type"] == "collection_forfeit"
        assert Decimal(data["total"]) == Decimal("7278.08")

    @pytest.mark.asyncio
    async def test_settlement_rejects_misconfigured_plan(self, client: AsyncClient):
        broken_plan = {**PLAN, "metrics": PLAN["metrics"][:1]}
        response = await client.post(
            "/api/v1/payouts/settlements/full-and-final",
            json={"compensation": compensation_payload(plan=broken_plan), "departure_date": "2025-06-30"},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "CONFIGURATION_ERROR"
