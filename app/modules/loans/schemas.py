from pydantic import BaseModel, Field, computed_field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List

from app.modules.loans.calculations import payment_status
from app.modules.loans.models import LoanType, LoanStatus


class LoanCreate(BaseModel):
    user_id: int
    account_id: int
    loan_type: LoanType = LoanType.PERSONAL
    principal: Decimal = Field(..., gt=0, decimal_places=2)
    interest_rate: Decimal = Field(..., ge=0, le=100, decimal_places=2)
    term_months: int = Field(..., gt=0, le=600)
    monthly_payment: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    deposit_required: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    purpose: Optional[str] = Field(None, max_length=500)


class LoanReject(BaseModel):
    reason: str = Field(..., min_length=3, max_length=1000)


class LoanPaymentCreate(BaseModel):
    amount: Decimal = Field(..., decimal_places=2)
    note: Optional[str] = Field(None, max_length=500)


class LoanResponse(BaseModel):
    id: int
    user_id: int
    account_id: int
    reference_number: str
    loan_type: LoanType
    principal: Decimal
    interest_rate: Decimal
    term_months: int
    monthly_payment: Decimal
    total_amount: Optional[Decimal]
    purpose: Optional[str]
    deposit_required: Decimal
    status: LoanStatus
    remaining_balance: Decimal
    payments_made: int
    start_date: Optional[date]
    next_payment_date: Optional[date]
    last_payment_date: Optional[datetime]
    approved_at: Optional[datetime]
    approved_by: Optional[int]
    rejected_at: Optional[datetime]
    rejection_reason: Optional[str]
    disbursed_at: Optional[datetime]
    closed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True

    @computed_field
    @property
    def is_late(self) -> bool:
        """Active and behind schedule, derived from payments made since disbursement"""
        if self.status != LoanStatus.ACTIVE:
            return False
        return payment_status(self.payments_made, self.disbursed_at).is_behind


class LoanListResponse(BaseModel):
    loans: List[LoanResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class LoanPaymentResponse(BaseModel):
    id: int
    loan_id: int
    amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    balance_after: Decimal
    months_covered: int
    note: Optional[str]
    recorded_by: Optional[int]
    payment_date: datetime

    class Config:
        from_attributes = True


class LoanActionResponse(BaseModel):
    loan_id: int
    status: LoanStatus
    message: str


class LoanCreatedResponse(BaseModel):
    loan_id: int
    reference_number: str
    status: LoanStatus


class DisbursementResponse(LoanActionResponse):
    reference_number: str
    disbursed_amount: Decimal
    disbursed_at: datetime
    treasury_balance: Decimal


class PaymentRecordedResponse(BaseModel):
    loan_id: int
    status: LoanStatus
    new_balance: Decimal
    months_covered: int
    warnings: List[str]
    payment: LoanPaymentResponse


class ScheduleStatusResponse(BaseModel):
    loan_id: int
    payments_made: int
    months_ahead: int
    status: str
    is_late: bool
    next_payment_date: Optional[date]
