from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional


class TreasuryBalanceResponse(BaseModel):
    account_id: int
    balance: Decimal


class TreasuryFundRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    note: Optional[str] = Field(None, max_length=500)
