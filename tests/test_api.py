"""
API endpoint tests for the admin console
"""
import pytest
from decimal import Decimal

from sqlalchemy import text


def _money(value) -> Decimal:
    return Decimal(str(value))


class TestHealthEndpoints:
    """Tests for health check endpoints"""

    @pytest.mark.unit
    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "version" in data

    @pytest.mark.unit
    async def test_root_endpoint(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert "Lending Core" in response.json()["message"]


class TestAuthRequired:
    """Tests that verify an operator credential is required"""

    @pytest.mark.integration
    @pytest.mark.parametrize("path", ["/admin/loans", "/admin/accounts", "/admin/treasury/balance", "/admin/audit-logs"])
    async def test_requires_auth(self, client, path):
        response = await client.get(path)

        assert response.status_code == 401
        data = response.json()
        assert data["error"] == "unauthorized"
        assert data["retryable"] is False

    @pytest.mark.integration
    async def test_auditor_cannot_fund_treasury(self, client, auditor_token, treasury_account):
        response = await client.post(
            "/admin/treasury/fund",
            json={"amount": "100.00"},
            headers={"Authorization": f"Bearer {auditor_token}"}
        )

        assert response.status_code == 401
        assert response.json()["details"] == {"permission": "fund_treasury"}


class TestLoginFlow:

    @pytest.mark.integration
    async def test_login_then_logout(self, client, test_admin, treasury_account):
        response = await client.post(
            "/admin/auth/login",
            json={"email": test_admin.email, "password": "AdminPassword123!"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert "approve_loans" in data["permissions"]
        headers = {"Authorization": f"Bearer {data['access_token']}"}

        response = await client.get("/admin/treasury/balance", headers=headers)
        assert response.status_code == 200
        assert _money(response.json()["balance"]) == Decimal("10000.00")

        response = await client.post("/admin/auth/logout", headers=headers)
        assert response.status_code == 200

        response = await client.get("/admin/treasury/balance", headers=headers)
        assert response.status_code == 401

    @pytest.mark.integration
    async def test_bad_password(self, client, test_admin):
        response = await client.post(
            "/admin/auth/login",
            json={"email": test_admin.email, "password": "wrong-password"}
        )

        assert response.status_code == 401


class TestLoanEndpoints:

    @pytest.fixture
    def loan_payload(self, test_user, test_account):
        return {
            "user_id": test_user.id,
            "account_id": test_account.id,
            "loan_type": "personal",
            "principal": "1000.00",
            "interest_rate": "12.00",
            "term_months": 12,
            "monthly_payment": "100.00"
        }

    @pytest.mark.integration
    async def test_full_lifecycle(self, client, auth_headers, loan_payload):
        response = await client.post("/admin/loans", json=loan_payload, headers=auth_headers)
        assert response.status_code == 201
        loan_id = response.json()["loan_id"]
        assert response.json()["status"] == "pending"

        response = await client.post(f"/admin/loans/{loan_id}/approve", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "approved"

        response = await client.post(f"/admin/loans/{loan_id}/disburse", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "active"
        assert data["disbursed_at"] is not None
        assert _money(data["treasury_balance"]) == Decimal("9000.00")

        response = await client.post(
            f"/admin/loans/{loan_id}/payments",
            json={"amount": "300.00", "note": "Three months"},
            headers=auth_headers
        )
        assert response.status_code == 201
        data = response.json()
        assert _money(data["new_balance"]) == Decimal("710.00")
        assert data["months_covered"] == 3
        assert data["warnings"] == ["This payment covers 3 months."]
        assert data["status"] == "active"

        response = await client.get(f"/admin/loans/{loan_id}", headers=auth_headers)
        data = response.json()
        assert data["payments_made"] == 3
        assert data["is_late"] is False

        response = await client.get(f"/admin/loans/{loan_id}/schedule-status", headers=auth_headers)
        assert response.json()["status"] == "ahead"

        response = await client.get(f"/admin/loans/{loan_id}/payments", headers=auth_headers)
        assert len(response.json()) == 1

        response = await client.get("/admin/loans", params={"status": "active"}, headers=auth_headers)
        assert response.json()["total"] == 1

    @pytest.mark.integration
    async def test_unfunded_approval_reports_treasury_first(self, client, auth_headers, loan_payload):
        loan_payload["principal"] = "50000.00"
        response = await client.post("/admin/loans", json=loan_payload, headers=auth_headers)
        loan_id = response.json()["loan_id"]

        # No credential: the treasury shortfall still wins
        response = await client.post(f"/admin/loans/{loan_id}/approve")

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "insufficient_treasury"
        assert _money(data["details"]["available"]) == Decimal("10000.00")

    @pytest.mark.integration
    async def test_approve_without_credential(self, client, auth_headers, loan_payload):
        response = await client.post("/admin/loans", json=loan_payload, headers=auth_headers)
        loan_id = response.json()["loan_id"]

        response = await client.post(f"/admin/loans/{loan_id}/approve")

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    @pytest.mark.integration
    async def test_second_disbursement_rejected(self, client, auth_headers, approved_loan):
        first = await client.post(f"/admin/loans/{approved_loan.id}/disburse", headers=auth_headers)
        second = await client.post(f"/admin/loans/{approved_loan.id}/disburse", headers=auth_headers)

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["error"] == "invalid_transition"

        response = await client.get("/admin/treasury/balance", headers=auth_headers)
        assert _money(response.json()["balance"]) == Decimal("9000.00")

    @pytest.mark.integration
    async def test_overpayment(self, client, auth_headers, active_loan):
        response = await client.post(
            f"/admin/loans/{active_loan.id}/payments",
            json={"amount": "1200.00"},
            headers=auth_headers
        )

        assert response.status_code == 422
        assert response.json()["error"] == "exceeds_balance"

    @pytest.mark.integration
    async def test_reject(self, client, auth_headers, pending_loan):
        response = await client.post(
            f"/admin/loans/{pending_loan.id}/reject",
            json={"reason": "Debt ratio too high"},
            headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "rejected"

    @pytest.mark.integration
    async def test_unknown_loan(self, client, auth_headers):
        response = await client.get("/admin/loans/9999", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestAccountEndpoints:

    @pytest.mark.integration
    async def test_deposit_gated_activation(self, client, auth_headers, test_user):
        response = await client.post(
            "/admin/accounts",
            json={"user_id": test_user.id, "account_type": "savings", "min_deposit": "500.00"},
            headers=auth_headers
        )
        assert response.status_code == 201
        account_id = response.json()["id"]
        assert response.json()["status"] == "pending_funding"

        response = await client.post(
            "/admin/deposits",
            json={"parent_type": "account", "parent_id": account_id, "amount": "200.00"},
            headers=auth_headers
        )
        deposit_id = response.json()["id"]
        await client.post(f"/admin/deposits/{deposit_id}/approve", headers=auth_headers)

        response = await client.post(f"/admin/accounts/{account_id}/activate", headers=auth_headers)
        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "deposit_not_met"
        assert _money(data["details"]["remaining"]) == Decimal("300.00")

        response = await client.post(
            "/admin/deposits",
            json={"parent_type": "account", "parent_id": account_id, "amount": "300.00"},
            headers=auth_headers
        )
        await client.post(f"/admin/deposits/{response.json()['id']}/complete", headers=auth_headers)

        response = await client.get(f"/admin/accounts/{account_id}/deposits", headers=auth_headers)
        assert response.json()["met"] is True

        response = await client.post(f"/admin/accounts/{account_id}/activate", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "active"

        response = await client.get(
            f"/admin/deposits/account/{account_id}", headers=auth_headers
        )
        assert len(response.json()["deposits"]) == 2


class TestAuditEndpoints:

    @pytest.mark.integration
    async def test_auditor_reads_trail(self, client, auditor_token, active_loan):
        response = await client.get(
            "/admin/audit-logs",
            params={"resource_type": "loan"},
            headers={"Authorization": f"Bearer {auditor_token}"}
        )

        assert response.status_code == 200
        actions = [log["action"] for log in response.json()["logs"]]
        assert set(actions) == {"loan_created", "loan_approved", "loan_disbursed"}


class TestTransactionEndpoints:

    @pytest.mark.integration
    async def test_disbursement_ledger_lines(self, client, auth_headers, active_loan):
        response = await client.get(
            "/admin/transactions", params={"loan_id": active_loan.id}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {t["transaction_type"] for t in data["transactions"]} == {"treasury_debit", "loan_disbursement"}


class TestAdminManagement:

    @pytest.mark.integration
    async def test_super_admin_creates_operator(self, client, auth_headers):
        payload = {
            "email": "officer@lendingcore.io",
            "password": "OfficerPass123!",
            "first_name": "Loan",
            "last_name": "Officer",
            "role": "loan_officer"
        }
        response = await client.post("/admin/auth/admins", json=payload, headers=auth_headers)
        assert response.status_code == 201
        assert response.json()["role"] == "loan_officer"

        duplicate = await client.post("/admin/auth/admins", json=payload, headers=auth_headers)
        assert duplicate.status_code == 400

        response = await client.get("/admin/auth/admins", headers=auth_headers)
        assert "officer@lendingcore.io" in [a["email"] for a in response.json()]

    @pytest.mark.integration
    async def test_auditor_cannot_create_operator(self, client, auditor_token):
        response = await client.post(
            "/admin/auth/admins",
            json={
                "email": "x@lendingcore.io", "password": "Password123!",
                "first_name": "X", "last_name": "Y"
            },
            headers={"Authorization": f"Bearer {auditor_token}"}
        )

        assert response.status_code == 401


class TestNotificationFailure:

    @pytest.mark.integration
    async def test_lifecycle_survives_notification_store_failure(
        self, client, auth_headers, db_session, test_user, test_account
    ):
        await db_session.execute(text("DROP TABLE notifications"))
        await db_session.commit()

        response = await client.post(
            "/admin/loans",
            json={
                "user_id": test_user.id,
                "account_id": test_account.id,
                "principal": "1000.00",
                "interest_rate": "12.00",
                "term_months": 12,
                "monthly_payment": "100.00"
            },
            headers=auth_headers
        )
        loan_id = response.json()["loan_id"]

        response = await client.post(f"/admin/loans/{loan_id}/approve", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "approved"

        response = await client.post(f"/admin/loans/{loan_id}/disburse", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "active"
        assert _money(response.json()["treasury_balance"]) == Decimal("9000.00")

        response = await client.post(
            f"/admin/loans/{loan_id}/payments", json={"amount": "100.00"}, headers=auth_headers
        )
        assert response.status_code == 201
        assert _money(response.json()["new_balance"]) == Decimal("910.00")

        response = await client.get(f"/admin/loans/{loan_id}", headers=auth_headers)
        assert response.json()["payments_made"] == 1
