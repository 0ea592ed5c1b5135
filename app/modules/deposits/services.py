from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import logging

from app.core.exceptions import InvalidAmount, InvalidTransition, NotFound
from app.modules.accounts.models import Account
from app.modules.admin.models import AdminUser
from app.modules.admin.services import AdminService
from app.modules.deposits.models import (
    DepositRecord, DepositParent, DepositStatus, COUNTED_DEPOSIT_STATUSES
)
from app.modules.deposits.schemas import DepositCreate
from app.modules.loans.models import Loan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DepositSummary:
    required: Decimal
    deposited: Decimal

    @property
    def remaining(self) -> Decimal:
        return max(Decimal("0"), self.required - self.deposited)

    @property
    def met(self) -> bool:
        return self.required == 0 or self.deposited >= self.required

    def to_dict(self) -> dict:
        return {
            "required": self.required,
            "deposited": self.deposited,
            "remaining": self.remaining,
            "met": self.met
        }


class DepositService:
    """
    Deposit ledger for loans and account openings.

    Whether a requirement is met is always derived from the stored records at
    the moment of the check; nothing here caches a "deposit paid" flag.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def read_deposit_records(
        self,
        parent_type: DepositParent,
        parent_id: int
    ) -> List[DepositRecord]:
        result = await self.db.execute(
            select(DepositRecord)
            .where(
                DepositRecord.parent_type == parent_type,
                DepositRecord.parent_id == parent_id
            )
            .order_by(DepositRecord.created_at, DepositRecord.id)
        )
        return list(result.scalars().all())

    async def total_deposited(self, parent_type: DepositParent, parent_id: int) -> Decimal:
        """Sum of approved and completed deposits"""
        result = await self.db.execute(
            select(func.coalesce(func.sum(DepositRecord.amount), 0))
            .where(
                DepositRecord.parent_type == parent_type,
                DepositRecord.parent_id == parent_id,
                DepositRecord.status.in_(COUNTED_DEPOSIT_STATUSES)
            )
        )
        return Decimal(str(result.scalar())).quantize(Decimal("0.01"))

    async def deposit_summary(
        self,
        parent_type: DepositParent,
        parent_id: int,
        required: Optional[Decimal] = None
    ) -> DepositSummary:
        if required is None:
            required = await self.required_for(parent_type, parent_id)
        deposited = await self.total_deposited(parent_type, parent_id)
        return DepositSummary(required=Decimal(required or 0), deposited=deposited)

    async def required_for(self, parent_type: DepositParent, parent_id: int) -> Decimal:
        """Configured minimum for the parent loan or account"""
        if parent_type == DepositParent.LOAN:
            column = Loan.deposit_required
            model_id = Loan.id
        else:
            column = Account.min_deposit
            model_id = Account.id

        result = await self.db.execute(select(column).where(model_id == parent_id))
        row = result.first()
        if row is None:
            raise NotFound(f"{parent_type.value.capitalize()} not found", details={"id": parent_id})
        return Decimal(row[0] or 0)

    async def get_deposit(self, deposit_id: int) -> DepositRecord:
        result = await self.db.execute(
            select(DepositRecord).where(DepositRecord.id == deposit_id)
        )
        deposit = result.scalar_one_or_none()
        if not deposit:
            raise NotFound("Deposit not found", details={"deposit_id": deposit_id})
        return deposit

    async def record_deposit(self, data: DepositCreate, operator: AdminUser) -> DepositRecord:
        """Register an incoming deposit awaiting review"""
        if data.amount <= 0:
            raise InvalidAmount("Deposit amount must be greater than zero")

        # Raises NotFound for an unknown parent
        await self.required_for(data.parent_type, data.parent_id)

        deposit = DepositRecord(
            parent_type=data.parent_type,
            parent_id=data.parent_id,
            amount=data.amount,
            reference=data.reference,
            note=data.note,
            status=DepositStatus.PENDING
        )
        self.db.add(deposit)
        await self.db.flush()

        await AdminService(self.db).log_action(
            admin_id=operator.id,
            admin_email=operator.email,
            action="deposit_recorded",
            resource_type="deposit",
            resource_id=deposit.id,
            new_values={"parent_type": data.parent_type.value, "parent_id": data.parent_id, "amount": data.amount}
        )
        await self.db.commit()
        await self.db.refresh(deposit)

        logger.info(f"Deposit {deposit.id} of {deposit.amount} recorded for {data.parent_type.value} {data.parent_id}")
        return deposit

    async def approve_deposit(self, deposit_id: int, operator: AdminUser) -> DepositRecord:
        return await self._review(
            deposit_id, operator, DepositStatus.APPROVED,
            allowed_from=(DepositStatus.PENDING,)
        )

    async def complete_deposit(self, deposit_id: int, operator: AdminUser) -> DepositRecord:
        return await self._review(
            deposit_id, operator, DepositStatus.COMPLETED,
            allowed_from=(DepositStatus.PENDING, DepositStatus.APPROVED)
        )

    async def reject_deposit(self, deposit_id: int, reason: str, operator: AdminUser) -> DepositRecord:
        return await self._review(
            deposit_id, operator, DepositStatus.REJECTED,
            allowed_from=(DepositStatus.PENDING, DepositStatus.APPROVED),
            reason=reason
        )

    async def _review(
        self,
        deposit_id: int,
        operator: AdminUser,
        new_status: DepositStatus,
        allowed_from: tuple,
        reason: Optional[str] = None
    ) -> DepositRecord:
        deposit = await self.get_deposit(deposit_id)
        old_status = deposit.status

        if old_status not in allowed_from:
            raise InvalidTransition(
                f"Deposit is {old_status.value}; cannot mark it {new_status.value}",
                details={"deposit_id": deposit_id, "status": old_status.value}
            )

        deposit.status = new_status
        deposit.reviewed_by = operator.id
        deposit.reviewed_at = datetime.utcnow()
        if reason:
            deposit.rejection_reason = reason

        await AdminService(self.db).log_action(
            admin_id=operator.id,
            admin_email=operator.email,
            action=f"deposit_{new_status.value}",
            resource_type="deposit",
            resource_id=deposit.id,
            old_values={"status": old_status.value},
            new_values={"status": new_status.value, "reason": reason}
        )
        await self.db.commit()
        await self.db.refresh(deposit)

        logger.info(f"Deposit {deposit.id} {old_status.value} -> {new_status.value} by admin {operator.id}")
        return deposit
