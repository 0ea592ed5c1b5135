from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.dependencies import get_treasury_ledger, require_permission
from app.modules.admin.models import AdminPermission, AdminUser
from app.modules.treasury.schemas import TreasuryBalanceResponse, TreasuryFundRequest
from app.modules.treasury.services import TreasuryLedger, TreasuryService

router = APIRouter(prefix="/treasury", tags=["admin-treasury"])


@router.get("/balance", response_model=TreasuryBalanceResponse)
async def get_treasury_balance(
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_TREASURY))
):
    """Current treasury pool balance, read fresh"""
    return await TreasuryService(db, ledger).get_balance()


@router.post("/fund", response_model=TreasuryBalanceResponse)
async def fund_treasury(
    request: TreasuryFundRequest,
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.FUND_TREASURY))
):
    """Add funds to the treasury pool"""
    balance = await TreasuryService(db, ledger).fund(request.amount, operator, request.note)
    return {"account_id": ledger.account_id, "balance": balance}
