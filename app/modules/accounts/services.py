from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from datetime import datetime
from typing import Iterable, List, Optional, Tuple
import logging
import random
import string

from app.core.config import settings
from app.core.exceptions import DepositNotMet, InvalidTransition, NotFound
from app.modules.accounts.models import (
    Account, AccountStatus, ACTIVATABLE_ACCOUNT_STATUSES, TERMINAL_ACCOUNT_STATUSES
)
from app.modules.accounts import schemas
from app.modules.admin.models import AdminUser
from app.modules.admin.services import AdminService
from app.modules.deposits.models import DepositParent
from app.modules.deposits.services import DepositService, DepositSummary
from app.modules.notifications.services import NotificationService
from app.modules.users.models import User

logger = logging.getLogger(__name__)

# target status -> (timestamp column, audit action and notification event)
_STATUS_CHANGES = {
    AccountStatus.SUSPENDED: ("suspended_at", "account_suspended"),
    AccountStatus.CLOSED: ("closed_at", "account_closed"),
    AccountStatus.REJECTED: ("rejected_at", "account_rejected"),
}


class AccountService:
    """Service layer for account opening and activation"""

    @staticmethod
    def generate_account_number() -> str:
        """Generate unique 12-digit account number"""
        return ''.join(random.choices(string.digits, k=12))

    @staticmethod
    async def open_account(
        db: AsyncSession,
        account_data: schemas.AccountCreateRequest,
        operator: AdminUser
    ) -> Account:
        """Open an account; it needs funding first unless its minimum deposit is zero"""
        result = await db.execute(select(User).where(User.id == account_data.user_id))
        if not result.scalar_one_or_none():
            raise NotFound("User not found", details={"user_id": account_data.user_id})

        # Generate unique account number
        account_number = AccountService.generate_account_number()
        while True:
            result = await db.execute(
                select(Account).where(Account.account_number == account_number)
            )
            if not result.scalar_one_or_none():
                break
            account_number = AccountService.generate_account_number()

        status = AccountStatus.APPROVED if account_data.min_deposit == 0 else AccountStatus.PENDING_FUNDING
        account = Account(
            user_id=account_data.user_id,
            account_number=account_number,
            account_type=account_data.account_type,
            min_deposit=account_data.min_deposit,
            balance=account_data.initial_balance,
            status=status
        )
        db.add(account)
        await db.flush()

        await AdminService(db).log_action(
            admin_id=operator.id,
            admin_email=operator.email,
            action="account_opened",
            resource_type="account",
            resource_id=account.id,
            new_values={"status": status.value, "min_deposit": account.min_deposit}
        )
        await db.commit()
        await db.refresh(account)

        logger.info(f"Account {account.account_number} opened for user {account.user_id} ({status.value})")
        return account

    @staticmethod
    async def get_account(db: AsyncSession, account_id: int) -> Account:
        """Get account by id"""
        result = await db.execute(select(Account).where(Account.id == account_id))
        account = result.scalar_one_or_none()
        if not account:
            raise NotFound("Account not found", details={"account_id": account_id})
        return account

    @staticmethod
    async def list_accounts(
        db: AsyncSession,
        status: Optional[AccountStatus] = None,
        user_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Account], int]:
        query = select(Account)
        if status:
            query = query.where(Account.status == status)
        if user_id:
            query = query.where(Account.user_id == user_id)

        count_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar()

        query = query.order_by(Account.created_at.desc(), Account.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    @staticmethod
    async def deposit_summary(db: AsyncSession, account_id: int) -> DepositSummary:
        account = await AccountService.get_account(db, account_id)
        return await DepositService(db).deposit_summary(
            DepositParent.ACCOUNT, account.id, account.min_deposit
        )

    @staticmethod
    async def activate_account(db: AsyncSession, account_id: int, operator: AdminUser) -> Account:
        """
        Activate an account once its minimum deposit is covered.

        Coverage is recomputed from the deposit records on every call, so a
        deposit rejected after it was approved stops counting immediately.
        """
        account = await AccountService.get_account(db, account_id)
        AccountService._require_status(account, ACTIVATABLE_ACCOUNT_STATUSES, "activate")

        summary = await DepositService(db).deposit_summary(
            DepositParent.ACCOUNT, account.id, account.min_deposit
        )
        if not summary.met:
            logger.warning(
                f"Account {account.id} activation blocked: deposit {summary.deposited}/{summary.required}"
            )
            raise DepositNotMet(
                "Minimum deposit has not been met",
                details=summary.to_dict()
            )

        old_status = account.status.value
        await AccountService._transition(
            db, account.id, ACTIVATABLE_ACCOUNT_STATUSES,
            {
                "status": AccountStatus.ACTIVE,
                "activated_at": datetime.utcnow(),
                "funding_confirmed_by": operator.id,
                "status_reason": None
            },
            "activate"
        )
        await AdminService(db).log_action(
            admin_id=operator.id,
            admin_email=operator.email,
            action="account_activated",
            resource_type="account",
            resource_id=account.id,
            old_values={"status": old_status},
            new_values={"status": AccountStatus.ACTIVE.value, "deposited": summary.deposited}
        )
        await db.commit()
        await db.refresh(account)

        logger.info(f"Account {account.id} activated by admin {operator.id}")
        await NotificationService.notify_user(
            db, account.user_id, "account_activated",
            {"account_number": account.account_number},
            related_entity_type="account", related_entity_id=account.id
        )
        return account

    @staticmethod
    async def suspend_account(
        db: AsyncSession, account_id: int, operator: AdminUser, reason: Optional[str] = None
    ) -> Account:
        return await AccountService._change_status(db, account_id, AccountStatus.SUSPENDED, operator, reason)

    @staticmethod
    async def close_account(
        db: AsyncSession, account_id: int, operator: AdminUser, reason: Optional[str] = None
    ) -> Account:
        return await AccountService._change_status(db, account_id, AccountStatus.CLOSED, operator, reason)

    @staticmethod
    async def reject_account(
        db: AsyncSession, account_id: int, operator: AdminUser, reason: Optional[str] = None
    ) -> Account:
        return await AccountService._change_status(db, account_id, AccountStatus.REJECTED, operator, reason)

    @staticmethod
    async def _change_status(
        db: AsyncSession,
        account_id: int,
        target: AccountStatus,
        operator: AdminUser,
        reason: Optional[str]
    ) -> Account:
        account = await AccountService.get_account(db, account_id)
        timestamp_field, action = _STATUS_CHANGES[target]
        verb = target.value
        if account.id == settings.TREASURY_ACCOUNT_ID:
            raise InvalidTransition(
                f"The treasury account cannot be marked as {verb}",
                details={"account_id": account.id, "status": account.status.value}
            )

        allowed = [s for s in AccountStatus if s not in TERMINAL_ACCOUNT_STATUSES and s != target]
        AccountService._require_status(account, allowed, f"mark as {verb}")

        old_status = account.status.value
        await AccountService._transition(
            db, account.id, allowed,
            {"status": target, timestamp_field: datetime.utcnow(), "status_reason": reason},
            f"mark as {verb}"
        )
        await AdminService(db).log_action(
            admin_id=operator.id,
            admin_email=operator.email,
            action=action,
            resource_type="account",
            resource_id=account.id,
            description=reason,
            old_values={"status": old_status},
            new_values={"status": target.value}
        )
        await db.commit()
        await db.refresh(account)

        logger.info(f"Account {account.id} {old_status} -> {target.value} by admin {operator.id}")
        await NotificationService.notify_user(
            db, account.user_id, action,
            {"account_number": account.account_number, "reason": reason},
            related_entity_type="account", related_entity_id=account.id
        )
        return account

    @staticmethod
    def _require_status(account: Account, allowed: Iterable[AccountStatus], action: str) -> None:
        if account.status not in allowed:
            raise InvalidTransition(
                f"Cannot {action} an account that is {account.status.value}",
                details={"account_id": account.id, "status": account.status.value}
            )

    @staticmethod
    async def _transition(
        db: AsyncSession,
        account_id: int,
        from_statuses: Iterable[AccountStatus],
        values: dict,
        action: str
    ) -> None:
        result = await db.execute(
            update(Account)
            .where(Account.id == account_id, Account.status.in_(list(from_statuses)))
            .values(updated_at=func.now(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise InvalidTransition(
                f"Cannot {action} account {account_id}: its status changed concurrently",
                details={"account_id": account_id}
            )
