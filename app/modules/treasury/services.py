"""
Treasury balance guard.

The treasury pool is a single account row. Reads always go to the datastore;
the only decrement is a conditional UPDATE that matches nothing when the pool
cannot cover the amount, so concurrent disbursements can never overdraw it.
``can_afford`` is an early pre-check only and serialises nothing.
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
import logging

from app.core.exceptions import InvalidAmount, NotFound
from app.modules.accounts.models import Account
from app.modules.admin.models import AdminUser
from app.modules.admin.services import AdminService
from app.modules.transactions.models import TransactionType
from app.modules.transactions.services import TransactionService

logger = logging.getLogger(__name__)


class TreasuryLedger(ABC):
    """Pool from which all loan principal is disbursed"""

    account_id: int

    @abstractmethod
    async def current_balance(self) -> Decimal:
        """Balance as currently stored, never cached"""

    @abstractmethod
    async def debit(self, amount: Decimal) -> bool:
        """Atomically take ``amount`` if the pool covers it; False when it matched nothing"""

    @abstractmethod
    async def credit(self, amount: Decimal) -> bool:
        """Atomically add ``amount`` to the pool"""

    async def can_afford(self, amount: Decimal) -> bool:
        return Decimal(amount) <= await self.current_balance()


class SqlTreasuryLedger(TreasuryLedger):
    """Treasury backed by a row of the ``accounts`` table"""

    def __init__(self, db: AsyncSession, account_id: int):
        self.db = db
        self.account_id = account_id

    async def current_balance(self) -> Decimal:
        result = await self.db.execute(
            select(Account.balance).where(Account.id == self.account_id)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise NotFound("Treasury account not found", details={"account_id": self.account_id})
        return Decimal(balance)

    async def debit(self, amount: Decimal) -> bool:
        result = await self.db.execute(
            update(Account)
            .where(Account.id == self.account_id, Account.balance >= amount)
            .values(balance=Account.balance - amount, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def credit(self, amount: Decimal) -> bool:
        result = await self.db.execute(
            update(Account)
            .where(Account.id == self.account_id)
            .values(balance=Account.balance + amount, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class TreasuryService:
    """Operator-facing treasury reads and funding"""

    def __init__(self, db: AsyncSession, ledger: TreasuryLedger):
        self.db = db
        self.ledger = ledger

    async def get_balance(self) -> dict:
        return {
            "account_id": self.ledger.account_id,
            "balance": await self.ledger.current_balance()
        }

    async def fund(self, amount: Decimal, operator: AdminUser, note: str = None) -> Decimal:
        """Top up the pool and record a treasury_credit ledger line"""
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmount("Funding amount must be greater than zero")

        before = await self.ledger.current_balance()
        try:
            if not await self.ledger.credit(amount):
                raise NotFound("Treasury account not found", details={"account_id": self.ledger.account_id})

            after = await self.ledger.current_balance()
            await TransactionService(self.db).record(
                account_id=self.ledger.account_id,
                amount=amount,
                transaction_type=TransactionType.TREASURY_CREDIT,
                description=note or "Treasury funding",
                reference_code=TransactionService.generate_reference("TRSRY"),
                balance_before=after - amount,
                balance_after=after
            )
            await AdminService(self.db).log_action(
                admin_id=operator.id,
                admin_email=operator.email,
                action="treasury_funded",
                resource_type="treasury",
                resource_id=self.ledger.account_id,
                old_values={"balance": before},
                new_values={"amount": amount}
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        balance = await self.ledger.current_balance()
        logger.info(f"Treasury {self.ledger.account_id} funded with {amount} by admin {operator.id}; balance {balance}")
        return balance
