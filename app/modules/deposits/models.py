from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Text, Enum as SQLEnum, Index
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class DepositParent(str, enum.Enum):
    """Entity a deposit counts towards"""
    LOAN = "loan"
    ACCOUNT = "account"


class DepositStatus(str, enum.Enum):
    """Review status of a deposit"""
    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    REJECTED = "rejected"


# Statuses whose amounts count towards a deposit requirement
COUNTED_DEPOSIT_STATUSES = (DepositStatus.APPROVED, DepositStatus.COMPLETED)


class DepositRecord(Base):
    """Verified or pending deposit towards a loan or account opening requirement"""
    __tablename__ = "deposit_records"
    __table_args__ = (
        Index("ix_deposit_records_parent", "parent_type", "parent_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    parent_type = Column(SQLEnum(DepositParent), nullable=False)
    parent_id = Column(Integer, nullable=False)

    amount = Column(Numeric(15, 2), nullable=False)
    status = Column(SQLEnum(DepositStatus), default=DepositStatus.PENDING, nullable=False)
    reference = Column(String(100), nullable=True)
    note = Column(Text, nullable=True)

    reviewed_by = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<DepositRecord(id={self.id}, {self.parent_type}={self.parent_id}, amount={self.amount}, status={self.status})>"
