"""
Audit log endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime

from app.core.database import get_db
from app.core.dependencies import require_permission
from app.modules.admin.models import AdminPermission, AdminUser
from app.modules.admin.schemas import AuditLogFilter, AuditLogListResponse
from app.modules.admin.services import AdminService

router = APIRouter(prefix="/audit-logs", tags=["admin-audit"])


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    admin_id: Optional[int] = None,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_AUDIT_LOGS))
):
    """Audit trail of operator actions, newest first"""
    filters = AuditLogFilter(
        admin_id=admin_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        start_date=start_date,
        end_date=end_date
    )
    logs, total = await AdminService(db).get_audit_logs(filters, page, page_size)
    return {
        "logs": logs,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size
    }
