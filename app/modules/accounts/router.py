"""
Admin account endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.core.dependencies import require_permission
from app.modules.accounts import schemas
from app.modules.accounts.models import AccountStatus
from app.modules.accounts.services import AccountService
from app.modules.admin.models import AdminPermission, AdminUser
from app.modules.deposits.schemas import DepositSummaryResponse

router = APIRouter(prefix="/accounts", tags=["admin-accounts"])


@router.post("", response_model=schemas.AccountResponse, status_code=201)
async def open_account(
    request: schemas.AccountCreateRequest,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.OPEN_ACCOUNTS))
):
    """Open an account for a customer"""
    return await AccountService.open_account(db, request, operator)


@router.get("", response_model=schemas.AccountListResponse)
async def list_accounts(
    status: Optional[AccountStatus] = None,
    user_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_ACCOUNTS))
):
    accounts, total = await AccountService.list_accounts(db, status, user_id, page, page_size)
    return {
        "accounts": accounts,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size
    }


@router.get("/{account_id}", response_model=schemas.AccountResponse)
async def get_account(
    account_id: int,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_ACCOUNTS))
):
    return await AccountService.get_account(db, account_id)


@router.get("/{account_id}/deposits", response_model=DepositSummaryResponse)
async def get_account_deposit_summary(
    account_id: int,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_DEPOSITS))
):
    """Minimum deposit coverage, recomputed from the deposit records"""
    summary = await AccountService.deposit_summary(db, account_id)
    return summary.to_dict()


@router.post("/{account_id}/activate", response_model=schemas.AccountActionResponse)
async def activate_account(
    account_id: int,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.ACTIVATE_ACCOUNTS))
):
    account = await AccountService.activate_account(db, account_id, operator)
    return {"account_id": account.id, "status": account.status, "message": "Account activated"}


@router.post("/{account_id}/suspend", response_model=schemas.AccountActionResponse)
async def suspend_account(
    account_id: int,
    request: schemas.AccountStatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.SUSPEND_ACCOUNTS))
):
    account = await AccountService.suspend_account(db, account_id, operator, request.reason)
    return {"account_id": account.id, "status": account.status, "message": "Account suspended"}


@router.post("/{account_id}/close", response_model=schemas.AccountActionResponse)
async def close_account(
    account_id: int,
    request: schemas.AccountStatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.CLOSE_ACCOUNTS))
):
    account = await AccountService.close_account(db, account_id, operator, request.reason)
    return {"account_id": account.id, "status": account.status, "message": "Account closed"}


@router.post("/{account_id}/reject", response_model=schemas.AccountActionResponse)
async def reject_account(
    account_id: int,
    request: schemas.AccountStatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.CLOSE_ACCOUNTS))
):
    """Decline an account application"""
    account = await AccountService.reject_account(db, account_id, operator, request.reason)
    return {"account_id": account.id, "status": account.status, "message": "Account rejected"}
