"""API endpoint tests.

Drives the FastAPI app over ASGI against the per-test SQLite database.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import TODAY, clock, entry, set_recap_state
from overtime_workflow.api import create_app

pytestmark = pytest.mark.asyncio

YESTERDAY = TODAY - timedelta(days=1)


@pytest_asyncio.fixture
async def client(settings, session_factory):
    app = create_app(settings=settings, session_factory=session_factory, clock=clock)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def as_actor(actor_id) -> dict[str, str]:
    return {"X-Actor-ID": str(actor_id)}


async def _submit(client: AsyncClient, employee_id, hours="3"):
    response = await client.post(
        "/api/v1/overtime",
        headers=as_actor(employee_id),
        json={"entries": [entry(YESTERDAY, hours)]},
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    async def test_health_check(self, client):
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert "timestamp" in data

    async def test_readiness_and_liveness(self, client):
        assert (await client.get("/ready")).json()["status"] == "ready"
        assert (await client.get("/live")).json()["status"] == "alive"

    async def test_metrics(self, client, org):
        await _submit(client, org.employee_id)

        response = await client.get("/metrics")
        assert response.status_code == 200
        body = response.text
        assert 'overtime_transitions_total{action="SUBMITTED"} 1' in body
        assert "overtime_requests_pending 1" in body
        assert "# TYPE overtime_balance_hours_total gauge" in body


class TestOvertimeEndpoints:
    async def test_submit_and_approve(self, client, org):
        submitted = await _submit(client, org.employee_id, hours="2.5")
        request = submitted["request"]
        assert request["status"] == "PENDING"
        assert Decimal(request["total_hours"]) == Decimal("2.5")
        assert request["current_approver_id"] == str(org.supervisor_id)
        assert request["entries"][0]["work_date"] == YESTERDAY.isoformat()
        assert submitted["revision"]["action"] == "SUBMITTED"

        pending = await client.get(
            "/api/v1/overtime/pending-approvals", headers=as_actor(org.supervisor_id)
        )
        assert [r["id"] for r in pending.json()] == [request["id"]]

        response = await client.post(
            f"/api/v1/overtime/{request['id']}/supervisor/approve",
            headers=as_actor(org.supervisor_id),
            json={"comment": "Thanks"},
        )
        assert response.status_code == 200, response.text
        approved = response.json()
        assert approved["request"]["status"] == "APPROVED"
        assert approved["request"]["supervisor_comment"] == "Thanks"

        balance = await client.get(
            f"/api/v1/balances/{org.employee_id}/overtime", headers=as_actor(org.employee_id)
        )
        assert Decimal(balance.json()["current_balance"]) == Decimal("2.5")
        assert Decimal(balance.json()["pending_hours"]) == Decimal("0")

        history = await client.get(
            f"/api/v1/overtime/{request['id']}/history", headers=as_actor(org.employee_id)
        )
        assert [r["action"] for r in history.json()] == ["SUBMITTED", "APPROVED_SUPERVISOR"]

    async def test_edit_and_list(self, client, org):
        submitted = await _submit(client, org.employee_id)
        request_id = submitted["request"]["id"]

        response = await client.put(
            f"/api/v1/overtime/{request_id}",
            headers=as_actor(org.employee_id),
            json={"entries": [entry(YESTERDAY, "1")]},
        )
        assert response.status_code == 200, response.text
        assert Decimal(response.json()["request"]["total_hours"]) == Decimal("1")

        mine = await client.get("/api/v1/overtime", headers=as_actor(org.employee_id))
        assert [r["id"] for r in mine.json()] == [request_id]

    async def test_delete(self, client, org):
        submitted = await _submit(client, org.employee_id)
        request_id = submitted["request"]["id"]

        response = await client.delete(
            f"/api/v1/overtime/{request_id}",
            headers=as_actor(org.employee_id),
            params={"reason": "Duplicate"},
        )
        assert response.status_code == 200, response.text
        assert response.json()["request"]["status"] == "DELETED"
        assert response.json()["revision"]["comment"] == "Duplicate"


class TestErrorMapping:
    async def test_missing_actor_header(self, client):
        response = await client.get("/api/v1/overtime")
        assert response.status_code == 401

    async def test_malformed_actor_header(self, client):
        response = await client.get("/api/v1/overtime", headers={"X-Actor-ID": "not-a-uuid"})
        assert response.status_code == 400

    async def test_validation_error(self, client, org):
        response = await client.post(
            "/api/v1/overtime",
            headers=as_actor(org.employee_id),
            json={"entries": [entry(TODAY + timedelta(days=1))]},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_permission_denied(self, client, org):
        submitted = await _submit(client, org.employee_id)
        response = await client.post(
            f"/api/v1/overtime/{submitted['request']['id']}/supervisor/approve",
            headers=as_actor(org.employee_id),
            json={},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    async def test_not_found(self, client, org):
        response = await client.get(f"/api/v1/overtime/{uuid4()}", headers=as_actor(org.admin_id))
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_unknown_employee_balance(self, client, org):
        response = await client.get(
            f"/api/v1/balances/{uuid4()}/overtime", headers=as_actor(org.admin_id)
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_conflict_carries_status(self, client, org):
        submitted = await _submit(client, org.employee_id)
        request_id = submitted["request"]["id"]
        await client.post(
            f"/api/v1/overtime/{request_id}/supervisor/approve",
            headers=as_actor(org.supervisor_id),
            json={},
        )

        response = await client.post(
            f"/api/v1/overtime/{request_id}/supervisor/reject",
            headers=as_actor(org.supervisor_id),
            json={"comment": "Changed my mind"},
        )
        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "CONFLICT"
        assert body["current_status"] == "APPROVED"
        assert body["action"] == "REJECTED_SUPERVISOR"

    async def test_locked_approvals(self, client, session, org):
        submitted = await _submit(client, org.employee_id)
        await set_recap_state(session, locked=True)

        response = await client.post(
            f"/api/v1/overtime/{submitted['request']['id']}/supervisor/approve",
            headers=as_actor(org.supervisor_id),
            json={},
        )
        assert response.status_code == 423
        assert response.json()["code"] == "APPROVAL_LOCKED"


class TestBalanceAndAccrualEndpoints:
    async def test_adjust_and_mark_paid(self, client, org):
        response = await client.post(
            f"/api/v1/balances/{org.employee_id}/adjust",
            headers=as_actor(org.hr_id),
            json={"reason": "Carried over", "overtime_delta": "6"},
        )
        assert response.status_code == 200, response.text
        assert Decimal(response.json()["current_balance"]) == Decimal("6")

        response = await client.post(
            f"/api/v1/balances/{org.employee_id}/mark-paid", headers=as_actor(org.admin_id)
        )
        assert response.status_code == 200, response.text
        assert Decimal(response.json()["hours_paid"]) == Decimal("6")
        assert Decimal(response.json()["balance"]["total_paid"]) == Decimal("6")

    async def test_adjust_requires_admin(self, client, org):
        response = await client.post(
            f"/api/v1/balances/{org.employee_id}/adjust",
            headers=as_actor(org.supervisor_id),
            json={"reason": "Bonus", "overtime_delta": "1"},
        )
        assert response.status_code == 403

    async def test_accrual_then_leave_balance(self, client, org):
        response = await client.post("/api/v1/accrual/2025", headers=as_actor(org.admin_id))
        assert response.status_code == 200, response.text
        report = response.json()
        assert report["created"] == 6
        assert report["skipped"] == 1
        assert report["errors"] == 0

        balance = await client.get(
            f"/api/v1/balances/{org.contract_id}/leave/2025", headers=as_actor(org.contract_id)
        )
        assert balance.status_code == 200
        assert Decimal(balance.json()["annual_quota"]) == Decimal("10")

        missing = await client.get(
            f"/api/v1/balances/{org.contract_id}/leave/2030", headers=as_actor(org.contract_id)
        )
        assert missing.status_code == 404

    async def test_accrual_requires_admin(self, client, org):
        response = await client.post("/api/v1/accrual/2025", headers=as_actor(org.employee_id))
        assert response.status_code == 403

    async def test_toil_credit_and_expiry(self, client, org):
        await client.post("/api/v1/accrual/2024", headers=as_actor(org.admin_id))

        response = await client.post(
            f"/api/v1/balances/{org.employee_id}/toil",
            headers=as_actor(org.admin_id),
            json={"year": 2024, "month": 1, "hours": "16"},
        )
        assert response.status_code == 201, response.text
        grant = response.json()
        assert grant["days"] == 2
        assert (grant["expiry_year"], grant["expiry_month"]) == (2024, 4)

        again = await client.post(
            f"/api/v1/balances/{org.employee_id}/toil",
            headers=as_actor(org.admin_id),
            json={"year": 2024, "month": 1, "hours": "16"},
        )
        assert again.status_code == 409

        summary = await client.get(
            f"/api/v1/balances/{org.employee_id}/toil", headers=as_actor(org.employee_id)
        )
        assert summary.json()["total_days"] == 2

        # The clock reads 2024-05-03, past the April expiry month
        expired = await client.post("/api/v1/accrual/toil/expire", headers=as_actor(org.admin_id))
        assert expired.status_code == 200, expired.text
        assert [g["status"] for g in expired.json()] == ["EXPIRED"]

        balance = await client.get(
            f"/api/v1/balances/{org.employee_id}/leave/2024", headers=as_actor(org.employee_id)
        )
        assert Decimal(balance.json()["toil_balance"]) == Decimal("0")
        assert Decimal(balance.json()["toil_expired"]) == Decimal("2")

    async def test_toil_admin_only(self, client, org):
        response = await client.post(
            f"/api/v1/balances/{org.employee_id}/toil",
            headers=as_actor(org.supervisor_id),
            json={"year": 2024, "month": 1, "hours": "8"},
        )
        assert response.status_code == 403

        response = await client.post(
            "/api/v1/accrual/toil/expire", headers=as_actor(org.employee_id)
        )
        assert response.status_code == 403


class TestLeaveEndpoints:
    async def test_submit_and_cancel(self, client, org):
        response = await client.post(
            "/api/v1/leave",
            headers=as_actor(org.employee_id),
            json={
                "leave_type": "SICK",
                "start_date": "2024-06-03",
                "end_date": "2024-06-04",
                "total_days": "2",
                "reason": "Dentist",
            },
        )
        assert response.status_code == 201, response.text
        leave_id = response.json()["id"]
        assert response.json()["status"] == "PENDING"

        response = await client.delete(f"/api/v1/leave/{leave_id}", headers=as_actor(org.employee_id))
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
