from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Date, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base
import enum


class LoanType(str, enum.Enum):
    """Loan product family"""
    PERSONAL = "personal"
    HOME = "home"
    AUTO = "auto"
    BUSINESS = "business"
    STUDENT = "student"


class LoanStatus(str, enum.Enum):
    """
    Loan lifecycle status.

    pending -> approved -> active -> closed
    pending -> rejected
    """
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    CLOSED = "closed"


TERMINAL_LOAN_STATUSES = frozenset({LoanStatus.REJECTED, LoanStatus.CLOSED})


class Loan(Base):
    """Loan funded from the treasury pool and repaid against principal and interest"""
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    reference_number = Column(String(30), unique=True, nullable=False, index=True)

    # Terms
    loan_type = Column(SQLEnum(LoanType), default=LoanType.PERSONAL, nullable=False)
    principal = Column(Numeric(15, 2), nullable=False)
    interest_rate = Column(Numeric(5, 2), default=0, nullable=False)  # Annual percentage
    term_months = Column(Integer, nullable=False)
    monthly_payment = Column(Numeric(15, 2), nullable=False)
    total_amount = Column(Numeric(15, 2), nullable=True)
    purpose = Column(Text, nullable=True)
    deposit_required = Column(Numeric(15, 2), default=0, nullable=False)

    # Runtime state
    status = Column(SQLEnum(LoanStatus), default=LoanStatus.PENDING, nullable=False, index=True)
    remaining_balance = Column(Numeric(15, 2), nullable=False)
    payments_made = Column(Integer, default=0, nullable=False)
    start_date = Column(Date, nullable=True)
    next_payment_date = Column(Date, nullable=True)
    last_payment_date = Column(DateTime(timezone=True), nullable=True)

    # Decisions
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="loans")
    payments = relationship("LoanPayment", back_populates="loan", order_by="LoanPayment.id")

    def __repr__(self):
        return f"<Loan(id={self.id}, reference={self.reference_number}, status={self.status})>"


class LoanPayment(Base):
    """Payment applied against a loan's interest and principal"""
    __tablename__ = "loan_payments"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)

    amount = Column(Numeric(15, 2), nullable=False)
    principal_amount = Column(Numeric(15, 2), nullable=False)
    interest_amount = Column(Numeric(15, 2), nullable=False)
    balance_after = Column(Numeric(15, 2), nullable=False)
    months_covered = Column(Integer, nullable=False)
    note = Column(Text, nullable=True)

    recorded_by = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    payment_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    loan = relationship("Loan", back_populates="payments")

    def __repr__(self):
        return f"<LoanPayment(id={self.id}, loan_id={self.loan_id}, amount={self.amount})>"
