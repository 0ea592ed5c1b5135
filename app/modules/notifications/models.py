from sqlalchemy import Column, Integer, String, DateTime, Text, Enum as SQLEnum, ForeignKey, JSON
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class NotificationType(str, enum.Enum):
    """Type of notification"""
    LOAN = "loan"                    # Loan approval, rejection, disbursement, payment, closure
    ACCOUNT = "account"              # Activation, suspension, closure


class NotificationStatus(str, enum.Enum):
    """Status of notification delivery"""
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
    READ = "read"


class Notification(Base):
    """
    In-app notification emitted by a committed lifecycle transition.
    Email and broadcast delivery happen outside this service.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    type = Column(SQLEnum(NotificationType), nullable=False, index=True)
    event = Column(String(50), nullable=False, index=True)  # e.g. loan_approved, account_activated

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    status = Column(SQLEnum(NotificationStatus), default=NotificationStatus.PENDING, nullable=False)

    related_entity_type = Column(String(50), nullable=True)  # 'loan', 'account'
    related_entity_id = Column(Integer, nullable=True)

    extra_data = Column(JSON, nullable=True)  # e.g. {"amount": "1000.00"}

    delivered_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, event={self.event}, status={self.status})>"
