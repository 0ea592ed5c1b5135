from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from app.modules.transactions.models import TransactionType


class TransactionResponse(BaseModel):
    id: int
    account_id: int
    loan_id: Optional[int]
    amount: Decimal
    balance_before: Optional[Decimal] = None
    balance_after: Optional[Decimal] = None
    transaction_type: TransactionType
    description: Optional[str]
    status: str
    reference_code: str
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]
    total: int
    page: int
    page_size: int
