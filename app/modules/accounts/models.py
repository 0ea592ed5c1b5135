from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base
import enum


class AccountType(str, enum.Enum):
    """Account type enumeration"""
    CHECKING = "checking"
    SAVINGS = "savings"
    BUSINESS = "business"
    TREASURY = "treasury"


class AccountStatus(str, enum.Enum):
    """Account lifecycle status"""
    PENDING_FUNDING = "pending_funding"
    APPROVED = "approved"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CLOSED = "closed"
    REJECTED = "rejected"


TERMINAL_ACCOUNT_STATUSES = frozenset({AccountStatus.CLOSED, AccountStatus.REJECTED})
ACTIVATABLE_ACCOUNT_STATUSES = frozenset({AccountStatus.APPROVED, AccountStatus.PENDING_FUNDING})


class Account(Base):
    """Deposit account; the treasury pool is one distinguished row of this table"""
    __tablename__ = "accounts"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True)

    # Foreign Key
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Account Identifiers
    account_number = Column(String(12), unique=True, nullable=False, index=True)
    account_type = Column(SQLEnum(AccountType), default=AccountType.CHECKING, nullable=False)

    # Balances (using Numeric for precision with money)
    balance = Column(Numeric(15, 2), default=0, nullable=False)
    min_deposit = Column(Numeric(15, 2), default=0, nullable=False)

    # Status
    status = Column(SQLEnum(AccountStatus), default=AccountStatus.PENDING_FUNDING, nullable=False, index=True)
    status_reason = Column(Text, nullable=True)
    funding_confirmed_by = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    suspended_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="accounts")

    def __repr__(self):
        return f"<Account(id={self.id}, account_number={self.account_number}, status={self.status})>"
