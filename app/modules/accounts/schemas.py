from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from app.modules.accounts.models import AccountType, AccountStatus


# Account Creation
class AccountCreateRequest(BaseModel):
    """Request to open an account for a customer"""
    user_id: int
    account_type: AccountType = AccountType.CHECKING
    min_deposit: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    initial_balance: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)


class AccountStatusChangeRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class AccountResponse(BaseModel):
    """Complete account details"""
    id: int
    user_id: int
    account_number: str
    account_type: AccountType
    balance: Decimal
    min_deposit: Decimal
    status: AccountStatus
    status_reason: Optional[str]
    funding_confirmed_by: Optional[int]
    activated_at: Optional[datetime]
    suspended_at: Optional[datetime]
    closed_at: Optional[datetime]
    rejected_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class AccountListResponse(BaseModel):
    accounts: List[AccountResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class AccountActionResponse(BaseModel):
    account_id: int
    status: AccountStatus
    message: str
