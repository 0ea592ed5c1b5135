from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from app.modules.deposits.models import DepositParent, DepositStatus


class DepositCreate(BaseModel):
    parent_type: DepositParent
    parent_id: int
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    reference: Optional[str] = Field(None, max_length=100)
    note: Optional[str] = None


class DepositReject(BaseModel):
    reason: str = Field(..., min_length=3)


class DepositResponse(BaseModel):
    id: int
    parent_type: DepositParent
    parent_id: int
    amount: Decimal
    status: DepositStatus
    reference: Optional[str]
    note: Optional[str]
    reviewed_by: Optional[int]
    reviewed_at: Optional[datetime]
    rejection_reason: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class DepositSummaryResponse(BaseModel):
    required: Decimal
    deposited: Decimal
    remaining: Decimal
    met: bool


class DepositListResponse(BaseModel):
    deposits: List[DepositResponse]
    summary: DepositSummaryResponse
