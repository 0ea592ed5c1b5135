from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, timedelta
from typing import Optional, List, Tuple
import json
import logging

from app.core.config import settings
from app.core.database import get_redis
from app.core.exceptions import Unauthorized
from app.core.security import (
    decode_token, get_password_hash, verify_password, token_ttl_seconds, mask_email
)
from app.modules.admin.models import (
    AdminUser, AuditLog, AdminPermission, ROLE_PERMISSIONS
)
from app.modules.admin.schemas import AdminUserCreate, AuditLogFilter

logger = logging.getLogger(__name__)


def _blacklist_key(token: str) -> str:
    return f"blacklist:{token}"


class AdminService:
    """Service for admin operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============================================================
    # Admin User Management
    # ============================================================

    async def create_admin_user(self, data: AdminUserCreate) -> AdminUser:
        """Create a new admin user"""
        result = await self.db.execute(
            select(AdminUser).where(AdminUser.email == data.email)
        )
        if result.scalar_one_or_none():
            raise ValueError("Email already registered")

        admin = AdminUser(
            email=data.email,
            hashed_password=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role
        )

        self.db.add(admin)
        await self.db.commit()
        await self.db.refresh(admin)

        return admin

    async def get_admin_user(self, admin_id: int) -> Optional[AdminUser]:
        """Get admin user by ID"""
        result = await self.db.execute(
            select(AdminUser).where(AdminUser.id == admin_id)
        )
        return result.scalar_one_or_none()

    async def get_admin_by_email(self, email: str) -> Optional[AdminUser]:
        """Get admin user by email"""
        result = await self.db.execute(
            select(AdminUser).where(AdminUser.email == email)
        )
        return result.scalar_one_or_none()

    async def authenticate_admin(self, email: str, password: str) -> Optional[AdminUser]:
        """Authenticate admin user"""
        admin = await self.get_admin_by_email(email)

        if not admin:
            return None

        if not admin.is_active:
            raise ValueError("Account is disabled")

        if admin.locked_until and admin.locked_until > datetime.utcnow():
            raise ValueError("Account is locked")

        if not verify_password(password, admin.hashed_password):
            admin.login_attempts += 1
            if admin.login_attempts >= settings.MAX_LOGIN_ATTEMPTS:
                admin.locked_until = datetime.utcnow() + timedelta(
                    minutes=settings.ACCOUNT_LOCK_DURATION_MINUTES
                )
                logger.warning(f"Admin {mask_email(email)} locked after {admin.login_attempts} failed logins")
            await self.db.commit()
            return None

        # Successful login
        admin.login_attempts = 0
        admin.locked_until = None
        admin.last_login_at = datetime.utcnow()
        await self.db.commit()

        return admin

    def get_admin_permissions(self, admin: AdminUser) -> List[str]:
        """Get all permissions for an admin user"""
        default_perms = ROLE_PERMISSIONS.get(admin.role, [])
        perms = [p.value for p in default_perms]

        if admin.custom_permissions:
            custom = admin.custom_permissions.split(",")
            perms.extend(p.strip() for p in custom if p.strip())

        return sorted(set(perms))

    def has_permission(self, admin: AdminUser, permission: AdminPermission) -> bool:
        """Check if admin has a specific permission"""
        return permission.value in self.get_admin_permissions(admin)

    # ============================================================
    # Operator credentials
    # ============================================================

    async def resolve_operator(
        self,
        token: Optional[str],
        permission: Optional[AdminPermission] = None
    ) -> AdminUser:
        """
        Turn a bearer token into an active admin holding ``permission``.

        Raises Unauthorized for a missing, malformed, expired or revoked token,
        for an unknown or disabled admin, and for a missing permission.
        """
        if not token:
            raise Unauthorized("Operator credential required")

        payload = decode_token(token)
        admin_id = payload.get("admin_id")
        if payload.get("type") != "admin" or admin_id is None:
            raise Unauthorized("Could not validate operator credentials")

        redis = await get_redis()
        if await redis.get(_blacklist_key(token)):
            raise Unauthorized("Operator credential has been revoked")

        admin = await self.get_admin_user(int(admin_id))
        if admin is None or not admin.is_active:
            raise Unauthorized("Operator is unknown or disabled")

        if permission is not None and not self.has_permission(admin, permission):
            raise Unauthorized(
                f"Operator lacks the '{permission.value}' permission",
                details={"permission": permission.value}
            )

        return admin

    async def revoke_token(self, token: str) -> None:
        """Blacklist a token until it would have expired anyway"""
        payload = decode_token(token)
        redis = await get_redis()
        await redis.set(_blacklist_key(token), "1", ex=token_ttl_seconds(payload))

    # ============================================================
    # Audit Logging
    # ============================================================

    async def log_action(
        self,
        admin_id: Optional[int],
        action: str,
        resource_type: str,
        resource_id: Optional[int] = None,
        description: Optional[str] = None,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        admin_email: Optional[str] = None
    ) -> AuditLog:
        """
        Stage an audit entry in the current transaction.

        The entry is flushed, not committed, so it lands together with the
        mutation it describes or not at all.
        """
        log = AuditLog(
            admin_id=admin_id,
            admin_email=admin_email,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            description=description,
            old_values=json.dumps(old_values, default=str) if old_values else None,
            new_values=json.dumps(new_values, default=str) if new_values else None
        )

        self.db.add(log)
        await self.db.flush()

        return log

    async def get_audit_logs(
        self,
        filters: Optional[AuditLogFilter] = None,
        page: int = 1,
        page_size: int = 50
    ) -> Tuple[List[AuditLog], int]:
        """Get audit logs with filtering"""
        query = select(AuditLog)

        if filters:
            if filters.admin_id:
                query = query.where(AuditLog.admin_id == filters.admin_id)
            if filters.action:
                query = query.where(AuditLog.action == filters.action)
            if filters.resource_type:
                query = query.where(AuditLog.resource_type == filters.resource_type)
            if filters.resource_id:
                query = query.where(AuditLog.resource_id == filters.resource_id)
            if filters.start_date:
                query = query.where(AuditLog.created_at >= filters.start_date)
            if filters.end_date:
                query = query.where(AuditLog.created_at <= filters.end_date)

        # Count
        count_query = select(func.count()).select_from(query.subquery())
        total_result = await self.db.execute(count_query)
        total = total_result.scalar()

        # Paginate
        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await self.db.execute(query)
        logs = list(result.scalars().all())

        return logs, total
