"""
Admin authentication endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional

from app.core.database import get_db
from app.core.dependencies import get_operator_token, require_permission
from app.core.security import create_access_token
from app.modules.admin.schemas import (
    AdminUserCreate, AdminUserResponse, AdminLoginRequest, AdminLoginResponse
)
from app.modules.admin.services import AdminService
from app.modules.admin.models import AdminUser, AdminPermission

router = APIRouter(prefix="/auth", tags=["admin-auth"])


@router.post("/login", response_model=AdminLoginResponse)
async def admin_login(
    request: AdminLoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Admin login"""
    service = AdminService(db)

    try:
        admin = await service.authenticate_admin(request.email, request.password)

        if not admin:
            raise HTTPException(status_code=401, detail="Invalid credentials")

        token = create_access_token(
            data={"sub": admin.email, "type": "admin", "admin_id": admin.id}
        )

        await service.log_action(
            admin_id=admin.id,
            admin_email=admin.email,
            action="login",
            resource_type="admin",
            resource_id=admin.id,
            description="Admin login successful"
        )
        await db.commit()

        permissions = service.get_admin_permissions(admin)

        return AdminLoginResponse(
            access_token=token,
            admin=AdminUserResponse.model_validate(admin),
            permissions=permissions
        )
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e))


@router.post("/logout")
async def admin_logout(
    token: Optional[str] = Depends(get_operator_token),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the caller's token"""
    service = AdminService(db)
    admin = await service.resolve_operator(token)
    await service.revoke_token(token)

    await service.log_action(
        admin_id=admin.id,
        admin_email=admin.email,
        action="logout",
        resource_type="admin",
        resource_id=admin.id
    )
    await db.commit()
    return {"message": "Logged out"}


@router.post("/admins", response_model=AdminUserResponse, status_code=201)
async def create_admin_user(
    data: AdminUserCreate,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.MANAGE_ADMINS))
):
    """Create a new admin user"""
    service = AdminService(db)
    try:
        return await service.create_admin_user(data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/admins", response_model=list[AdminUserResponse])
async def list_admin_users(
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.MANAGE_ADMINS))
):
    """List all admin users"""
    result = await db.execute(select(AdminUser).order_by(AdminUser.id))
    return result.scalars().all()
