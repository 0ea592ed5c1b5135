from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.dependencies import require_permission
from app.modules.admin.models import AdminPermission, AdminUser
from app.modules.deposits.models import DepositParent
from app.modules.deposits.schemas import (
    DepositCreate, DepositReject, DepositResponse, DepositListResponse
)
from app.modules.deposits.services import DepositService

router = APIRouter(prefix="/deposits", tags=["admin-deposits"])


@router.post("", response_model=DepositResponse, status_code=201)
async def record_deposit(
    request: DepositCreate,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.REVIEW_DEPOSITS))
):
    """Record an incoming deposit for a loan or account"""
    return await DepositService(db).record_deposit(request, operator)


@router.get("/{parent_type}/{parent_id}", response_model=DepositListResponse)
async def list_deposits(
    parent_type: DepositParent,
    parent_id: int,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_DEPOSITS))
):
    """Deposit records and the recomputed requirement summary"""
    service = DepositService(db)
    summary = await service.deposit_summary(parent_type, parent_id)
    deposits = await service.read_deposit_records(parent_type, parent_id)
    return {"deposits": deposits, "summary": summary.to_dict()}


@router.post("/{deposit_id}/approve", response_model=DepositResponse)
async def approve_deposit(
    deposit_id: int,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.REVIEW_DEPOSITS))
):
    """Approve a pending deposit"""
    return await DepositService(db).approve_deposit(deposit_id, operator)


@router.post("/{deposit_id}/complete", response_model=DepositResponse)
async def complete_deposit(
    deposit_id: int,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.REVIEW_DEPOSITS))
):
    """Mark a deposit as settled"""
    return await DepositService(db).complete_deposit(deposit_id, operator)


@router.post("/{deposit_id}/reject", response_model=DepositResponse)
async def reject_deposit(
    deposit_id: int,
    request: DepositReject,
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.REVIEW_DEPOSITS))
):
    """Reject a pending or approved deposit"""
    return await DepositService(db).reject_deposit(deposit_id, request.reason, operator)
