from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base
import enum


class AdminRole(str, enum.Enum):
    """Admin role levels"""
    SUPER_ADMIN = "super_admin"         # Full access
    ADMIN = "admin"                      # Most operations
    LOAN_OFFICER = "loan_officer"        # Loan approvals
    TREASURER = "treasurer"              # Treasury funding
    SUPPORT = "support"                  # Customer support
    AUDITOR = "auditor"                  # Read-only access


class AdminPermission(str, enum.Enum):
    """Granular permissions"""
    # Accounts
    VIEW_ACCOUNTS = "view_accounts"
    OPEN_ACCOUNTS = "open_accounts"
    ACTIVATE_ACCOUNTS = "activate_accounts"
    SUSPEND_ACCOUNTS = "suspend_accounts"
    CLOSE_ACCOUNTS = "close_accounts"

    # Deposits
    VIEW_DEPOSITS = "view_deposits"
    REVIEW_DEPOSITS = "review_deposits"

    # Loans
    VIEW_LOANS = "view_loans"
    CREATE_LOANS = "create_loans"
    APPROVE_LOANS = "approve_loans"
    REJECT_LOANS = "reject_loans"
    DISBURSE_LOANS = "disburse_loans"
    RECORD_PAYMENTS = "record_payments"

    # Treasury
    VIEW_TREASURY = "view_treasury"
    FUND_TREASURY = "fund_treasury"

    # Audit
    VIEW_AUDIT_LOGS = "view_audit_logs"

    # Administration
    MANAGE_ADMINS = "manage_admins"


class AdminUser(Base):
    """Admin users with role-based access"""
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)

    # Credentials
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)

    # Profile
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    # Role
    role = Column(SQLEnum(AdminRole), nullable=False, default=AdminRole.SUPPORT)

    # Custom permissions (comma-separated)
    custom_permissions = Column(Text, nullable=True)

    # Status
    is_active = Column(Boolean, default=True, nullable=False)

    # Security
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<AdminUser(id={self.id}, email={self.email}, role={self.role})>"


class AuditLog(Base):
    """Audit log for all admin actions"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # Who
    admin_id = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    admin_email = Column(String(255), nullable=True)

    # What
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False, index=True)  # loan, account, deposit, treasury
    resource_id = Column(Integer, nullable=True)

    # Details
    description = Column(Text, nullable=True)
    old_values = Column(Text, nullable=True)  # JSON
    new_values = Column(Text, nullable=True)  # JSON

    # When
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    admin = relationship("AdminUser", foreign_keys=[admin_id])

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action={self.action}, resource={self.resource_type})>"


# Role to default permissions mapping
ROLE_PERMISSIONS = {
    AdminRole.SUPER_ADMIN: list(AdminPermission),  # All permissions
    AdminRole.ADMIN: [
        AdminPermission.VIEW_ACCOUNTS, AdminPermission.OPEN_ACCOUNTS, AdminPermission.ACTIVATE_ACCOUNTS,
        AdminPermission.SUSPEND_ACCOUNTS, AdminPermission.CLOSE_ACCOUNTS,
        AdminPermission.VIEW_DEPOSITS, AdminPermission.REVIEW_DEPOSITS,
        AdminPermission.VIEW_LOANS, AdminPermission.CREATE_LOANS, AdminPermission.APPROVE_LOANS,
        AdminPermission.REJECT_LOANS, AdminPermission.DISBURSE_LOANS, AdminPermission.RECORD_PAYMENTS,
        AdminPermission.VIEW_TREASURY,
        AdminPermission.VIEW_AUDIT_LOGS
    ],
    AdminRole.LOAN_OFFICER: [
        AdminPermission.VIEW_ACCOUNTS,
        AdminPermission.VIEW_DEPOSITS,
        AdminPermission.VIEW_LOANS, AdminPermission.CREATE_LOANS, AdminPermission.APPROVE_LOANS,
        AdminPermission.REJECT_LOANS, AdminPermission.DISBURSE_LOANS, AdminPermission.RECORD_PAYMENTS,
        AdminPermission.VIEW_TREASURY
    ],
    AdminRole.TREASURER: [
        AdminPermission.VIEW_ACCOUNTS,
        AdminPermission.VIEW_LOANS,
        AdminPermission.VIEW_TREASURY, AdminPermission.FUND_TREASURY,
        AdminPermission.VIEW_AUDIT_LOGS
    ],
    AdminRole.SUPPORT: [
        AdminPermission.VIEW_ACCOUNTS, AdminPermission.OPEN_ACCOUNTS,
        AdminPermission.VIEW_DEPOSITS, AdminPermission.REVIEW_DEPOSITS,
        AdminPermission.VIEW_LOANS
    ],
    AdminRole.AUDITOR: [
        AdminPermission.VIEW_ACCOUNTS,
        AdminPermission.VIEW_DEPOSITS,
        AdminPermission.VIEW_LOANS,
        AdminPermission.VIEW_TREASURY,
        AdminPermission.VIEW_AUDIT_LOGS
    ]
}
