from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.core.dependencies import require_permission
from app.modules.admin.models import AdminPermission, AdminUser
from app.modules.transactions.schemas import TransactionListResponse
from app.modules.transactions.services import TransactionService

router = APIRouter(prefix="/transactions", tags=["admin-transactions"])


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    account_id: Optional[int] = None,
    loan_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_TREASURY))
):
    """List ledger lines written by disbursements and treasury funding"""
    service = TransactionService(db)
    transactions, total = await service.list_transactions(account_id, loan_id, page, page_size)
    return {"transactions": transactions, "total": total, "page": page, "page_size": page_size}
