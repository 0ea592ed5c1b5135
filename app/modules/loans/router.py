"""
Admin loan lifecycle endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.database import get_db
from app.core.dependencies import get_operator_token, get_treasury_ledger, require_permission
from app.modules.admin.models import AdminPermission, AdminUser
from app.modules.loans.models import LoanStatus
from app.modules.loans.schemas import (
    LoanCreate, LoanReject, LoanPaymentCreate, LoanResponse, LoanListResponse,
    LoanPaymentResponse, LoanActionResponse, LoanCreatedResponse,
    DisbursementResponse, PaymentRecordedResponse, ScheduleStatusResponse
)
from app.modules.loans.services import LoanService
from app.modules.treasury.services import TreasuryLedger

router = APIRouter(prefix="/loans", tags=["admin-loans"])


@router.post("", response_model=LoanCreatedResponse, status_code=201)
async def create_loan(
    request: LoanCreate,
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.CREATE_LOANS))
):
    """Open a pending loan application"""
    loan = await LoanService(db, ledger).create_loan(request, operator)
    return {"loan_id": loan.id, "reference_number": loan.reference_number, "status": loan.status}


@router.get("", response_model=LoanListResponse)
async def list_loans(
    status: Optional[LoanStatus] = None,
    user_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_LOANS))
):
    """List loans with filtering"""
    loans, total = await LoanService(db, ledger).list_loans(status, user_id, page, page_size)
    return {
        "loans": loans,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size
    }


@router.get("/{loan_id}", response_model=LoanResponse)
async def get_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_LOANS))
):
    return await LoanService(db, ledger).get_loan(loan_id)


@router.get("/{loan_id}/payments", response_model=List[LoanPaymentResponse])
async def get_loan_payments(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_LOANS))
):
    return await LoanService(db, ledger).get_payments(loan_id)


@router.get("/{loan_id}/schedule-status", response_model=ScheduleStatusResponse)
async def get_schedule_status(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.VIEW_LOANS))
):
    """Whether the borrower is ahead of, on, or behind schedule"""
    return await LoanService(db, ledger).schedule_status(loan_id)


@router.post("/{loan_id}/approve", response_model=LoanActionResponse)
async def approve_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    token: Optional[str] = Depends(get_operator_token)
):
    """
    Approve a pending loan.

    The operator credential is verified by the service after the deposit and
    treasury checks, so an unfunded loan reports its funding problem first.
    """
    loan = await LoanService(db, ledger).approve_loan(loan_id, token)
    return {"loan_id": loan.id, "status": loan.status, "message": "Loan approved"}


@router.post("/{loan_id}/disburse", response_model=DisbursementResponse)
async def disburse_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.DISBURSE_LOANS))
):
    """Credit the principal to the borrower from the treasury pool"""
    loan, reference, treasury_balance = await LoanService(db, ledger).disburse_loan(loan_id, operator)
    return {
        "loan_id": loan.id,
        "status": loan.status,
        "message": "Loan disbursed successfully",
        "reference_number": reference,
        "disbursed_amount": loan.principal,
        "disbursed_at": loan.disbursed_at,
        "treasury_balance": treasury_balance
    }


@router.post("/{loan_id}/reject", response_model=LoanActionResponse)
async def reject_loan(
    loan_id: int,
    request: LoanReject,
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.REJECT_LOANS))
):
    loan = await LoanService(db, ledger).reject_loan(loan_id, request.reason, operator)
    return {"loan_id": loan.id, "status": loan.status, "message": "Loan rejected"}


@router.post("/{loan_id}/payments", response_model=PaymentRecordedResponse, status_code=201)
async def record_payment(
    loan_id: int,
    request: LoanPaymentCreate,
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.RECORD_PAYMENTS))
):
    """Apply a borrower payment to interest and principal"""
    loan, payment, validation = await LoanService(db, ledger).record_payment(
        loan_id, request.amount, request.note, operator
    )
    return {
        "loan_id": loan.id,
        "status": loan.status,
        "new_balance": loan.remaining_balance,
        "months_covered": validation.months_covered,
        "warnings": validation.warnings,
        "payment": payment
    }


@router.post("/{loan_id}/close", response_model=LoanActionResponse)
async def close_loan(
    loan_id: int,
    db: AsyncSession = Depends(get_db),
    ledger: TreasuryLedger = Depends(get_treasury_ledger),
    operator: AdminUser = Depends(require_permission(AdminPermission.APPROVE_LOANS))
):
    loan = await LoanService(db, ledger).close_loan(loan_id, operator)
    return {"loan_id": loan.id, "status": loan.status, "message": "Loan closed"}
