from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class TransactionType(str, enum.Enum):
    """Money movements written by the lending core"""
    TREASURY_DEBIT = "treasury_debit"
    TREASURY_CREDIT = "treasury_credit"
    LOAN_DISBURSEMENT = "loan_disbursement"


class Transaction(Base):
    """Ledger line recorded next to every balance change"""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=True, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    balance_before = Column(Numeric(15, 2), nullable=True)
    balance_after = Column(Numeric(15, 2), nullable=True)
    transaction_type = Column(SQLEnum(TransactionType), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default="completed", nullable=False)
    reference_code = Column(String(40), unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
