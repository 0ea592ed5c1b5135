"""
Tests for operator credentials, login and the audit trail
"""
import pytest
from datetime import timedelta

from app.core.config import settings
from app.core.exceptions import Unauthorized
from app.core.security import create_access_token, mask_email
from app.modules.admin.models import AdminPermission
from app.modules.admin.services import AdminService

ADMIN_PASSWORD = "AdminPassword123!"


class TestResolveOperator:

    @pytest.mark.integration
    async def test_valid_token(self, db_session, test_admin, admin_token):
        admin = await AdminService(db_session).resolve_operator(admin_token, AdminPermission.APPROVE_LOANS)

        assert admin.id == test_admin.id

    @pytest.mark.integration
    async def test_expired_token(self, db_session, test_admin):
        token = create_access_token(
            data={"sub": test_admin.email, "admin_id": test_admin.id},
            expires_delta=timedelta(minutes=-1)
        )

        with pytest.raises(Unauthorized):
            await AdminService(db_session).resolve_operator(token)

    @pytest.mark.integration
    async def test_customer_token_rejected(self, db_session, test_admin):
        token = create_access_token(data={"sub": test_admin.email, "type": "customer", "admin_id": test_admin.id})

        with pytest.raises(Unauthorized):
            await AdminService(db_session).resolve_operator(token)

    @pytest.mark.integration
    async def test_disabled_admin(self, db_session, test_admin, admin_token):
        test_admin.is_active = False
        await db_session.commit()

        with pytest.raises(Unauthorized):
            await AdminService(db_session).resolve_operator(admin_token)

    @pytest.mark.integration
    async def test_missing_permission(self, db_session, auditor_token):
        service = AdminService(db_session)

        assert await service.resolve_operator(auditor_token, AdminPermission.VIEW_LOANS)
        with pytest.raises(Unauthorized) as exc_info:
            await service.resolve_operator(auditor_token, AdminPermission.DISBURSE_LOANS)

        assert exc_info.value.details == {"permission": "disburse_loans"}

    @pytest.mark.integration
    async def test_revoked_token(self, db_session, admin_token, fake_redis):
        service = AdminService(db_session)
        await service.revoke_token(admin_token)

        assert await fake_redis.ttl(f"blacklist:{admin_token}") > 0
        with pytest.raises(Unauthorized):
            await service.resolve_operator(admin_token)


class TestAuthenticate:

    @pytest.mark.integration
    async def test_login_resets_attempts(self, db_session, test_admin):
        service = AdminService(db_session)

        assert await service.authenticate_admin(test_admin.email, "wrong-password") is None
        assert test_admin.login_attempts == 1

        admin = await service.authenticate_admin(test_admin.email, ADMIN_PASSWORD)
        assert admin.id == test_admin.id
        assert admin.login_attempts == 0
        assert admin.last_login_at is not None

    @pytest.mark.integration
    async def test_lockout(self, db_session, test_admin):
        service = AdminService(db_session)

        for _ in range(settings.MAX_LOGIN_ATTEMPTS):
            await service.authenticate_admin(test_admin.email, "wrong-password")

        assert test_admin.locked_until is not None
        with pytest.raises(ValueError):
            await service.authenticate_admin(test_admin.email, ADMIN_PASSWORD)

    @pytest.mark.integration
    async def test_unknown_email(self, db_session):
        assert await AdminService(db_session).authenticate_admin("nobody@lendingcore.io", "x") is None


class TestAuditLogs:

    @pytest.mark.integration
    async def test_filter_by_resource(self, db_session, test_admin, active_loan):
        from app.modules.admin.schemas import AuditLogFilter

        logs, total = await AdminService(db_session).get_audit_logs(
            AuditLogFilter(resource_type="loan", resource_id=active_loan.id)
        )

        assert total == 3
        # Newest first
        assert logs[0].action == "loan_disbursed"
        assert all(log.admin_id == test_admin.id for log in logs)


class TestPermissions:

    @pytest.mark.unit
    def test_mask_email(self):
        assert mask_email("operator@lendingcore.io") == "o******r@lendingcore.io"
