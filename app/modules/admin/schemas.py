from pydantic import BaseModel, Field, EmailStr
from datetime import datetime
from typing import Optional, List

from app.modules.admin.models import AdminRole


# ============================================================
# Admin User Schemas
# ============================================================

class AdminUserBase(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: AdminRole = AdminRole.SUPPORT


class AdminUserCreate(AdminUserBase):
    password: str = Field(..., min_length=8)


class AdminUserResponse(AdminUserBase):
    id: int
    is_active: bool
    last_login_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class AdminLoginRequest(BaseModel):
    email: EmailStr
    password: str


class AdminLoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    admin: AdminUserResponse
    permissions: List[str]


# ============================================================
# Audit Log Schemas
# ============================================================

class AuditLogResponse(BaseModel):
    id: int
    admin_id: Optional[int]
    admin_email: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[int]
    description: Optional[str]
    old_values: Optional[str]
    new_values: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class AuditLogFilter(BaseModel):
    admin_id: Optional[int] = None
    action: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
