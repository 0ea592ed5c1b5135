# Admin module
from app.modules.admin.models import (
    AdminUser, AuditLog, AdminRole, AdminPermission, ROLE_PERMISSIONS
)

__all__ = ["AdminUser", "AuditLog", "AdminRole", "AdminPermission", "ROLE_PERMISSIONS"]
