from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from app.core.config import settings
from app.core.database import get_db
from app.modules.admin.models import AdminUser, AdminPermission
from app.modules.admin.services import AdminService
from app.modules.treasury.services import SqlTreasuryLedger, TreasuryLedger

# Missing credentials surface as a typed Unauthorized from the services;
# loan approval checks them only after its funding preconditions.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/admin/auth/login", auto_error=False)


async def get_operator_token(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[str]:
    """Raw bearer token of the calling operator, if any"""
    return token


def require_permission(permission: Optional[AdminPermission] = None):
    """Dependency factory resolving the calling operator and checking ``permission``"""

    async def _current_operator(
        token: Optional[str] = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db)
    ) -> AdminUser:
        return await AdminService(db).resolve_operator(token, permission)

    return _current_operator


async def get_treasury_ledger(db: AsyncSession = Depends(get_db)) -> TreasuryLedger:
    """Treasury pool backing every disbursement"""
    return SqlTreasuryLedger(db, settings.TREASURY_ACCOUNT_ID)
