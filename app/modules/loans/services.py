"""
Loan lifecycle engine.

pending -> approved -> active -> closed, or pending -> rejected. Every
transition is applied with a conditional UPDATE on the loan's current state,
so a transition that lost a race matches no row and fails instead of moving
the loan backwards or applying twice.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, update, func
from datetime import datetime, date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple
import logging
import uuid

from app.core.exceptions import (
    DepositNotMet, InsufficientTreasury, InvalidTransition, LendingError,
    NotFound, PartialDisbursement, TreasuryRace
)
from app.modules.accounts.models import Account, TERMINAL_ACCOUNT_STATUSES
from app.modules.admin.models import AdminUser, AdminPermission
from app.modules.admin.services import AdminService
from app.modules.deposits.models import DepositParent
from app.modules.deposits.services import DepositService
from app.modules.loans import calculations
from app.modules.loans.models import Loan, LoanPayment, LoanStatus
from app.modules.loans.schemas import LoanCreate
from app.modules.notifications.services import NotificationService
from app.modules.transactions.models import TransactionType
from app.modules.transactions.services import TransactionService
from app.modules.treasury.services import TreasuryLedger

logger = logging.getLogger(__name__)


def _snapshot(loan: Loan) -> dict:
    return {
        "status": loan.status.value if loan.status else None,
        "remaining_balance": loan.remaining_balance,
        "payments_made": loan.payments_made,
        "next_payment_date": loan.next_payment_date,
        "disbursed_at": loan.disbursed_at,
    }


class LoanService:
    def __init__(self, db: AsyncSession, treasury: TreasuryLedger):
        self.db = db
        self.treasury = treasury
        self.deposits = DepositService(db)
        self.admin = AdminService(db)

    @staticmethod
    def generate_reference_number() -> str:
        return f"LN-{datetime.utcnow():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"

    # ============================================================
    # Reads
    # ============================================================

    async def get_loan(self, loan_id: int) -> Loan:
        result = await self.db.execute(select(Loan).where(Loan.id == loan_id))
        loan = result.scalar_one_or_none()
        if not loan:
            raise NotFound("Loan not found", details={"loan_id": loan_id})
        return loan

    async def list_loans(
        self,
        status: Optional[LoanStatus] = None,
        user_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Loan], int]:
        query = select(Loan)
        if status:
            query = query.where(Loan.status == status)
        if user_id:
            query = query.where(Loan.user_id == user_id)

        count_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar()

        query = query.order_by(Loan.created_at.desc(), Loan.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def get_payments(self, loan_id: int) -> List[LoanPayment]:
        await self.get_loan(loan_id)
        result = await self.db.execute(
            select(LoanPayment).where(LoanPayment.loan_id == loan_id).order_by(LoanPayment.id)
        )
        return list(result.scalars().all())

    async def schedule_status(self, loan_id: int) -> dict:
        loan = await self.get_loan(loan_id)
        schedule = calculations.payment_status(loan.payments_made, loan.disbursed_at)
        return {
            "loan_id": loan.id,
            "payments_made": loan.payments_made,
            "months_ahead": schedule.months_ahead,
            "status": schedule.status,
            "is_late": loan.status == LoanStatus.ACTIVE and schedule.is_behind,
            "next_payment_date": loan.next_payment_date,
        }

    # ============================================================
    # Creation
    # ============================================================

    async def create_loan(self, data: LoanCreate, operator: AdminUser) -> Loan:
        """Open a pending loan against one of the borrower's accounts"""
        result = await self.db.execute(
            select(Account).where(Account.id == data.account_id, Account.user_id == data.user_id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFound(
                "Account not found for borrower",
                details={"account_id": data.account_id, "user_id": data.user_id}
            )
        if data.account_id == self.treasury.account_id:
            raise InvalidTransition(
                "The treasury account cannot receive loan disbursements",
                details={"account_id": data.account_id}
            )

        monthly_payment = data.monthly_payment or calculations.calculate_monthly_payment(
            data.principal, data.interest_rate, data.term_months
        )
        today = date.today()

        loan = Loan(
            user_id=data.user_id,
            account_id=data.account_id,
            reference_number=self.generate_reference_number(),
            loan_type=data.loan_type,
            principal=data.principal,
            interest_rate=data.interest_rate,
            term_months=data.term_months,
            monthly_payment=monthly_payment,
            total_amount=calculations.calculate_total_amount(
                data.principal, data.interest_rate, data.term_months
            ),
            purpose=data.purpose,
            deposit_required=data.deposit_required,
            status=LoanStatus.PENDING,
            remaining_balance=data.principal,
            payments_made=0,
            start_date=today,
            next_payment_date=calculations.next_payment_date(today, 1)
        )
        self.db.add(loan)
        await self.db.flush()

        await self.admin.log_action(
            admin_id=operator.id,
            admin_email=operator.email,
            action="loan_created",
            resource_type="loan",
            resource_id=loan.id,
            new_values=_snapshot(loan)
        )
        await self.db.commit()
        await self.db.refresh(loan)

        logger.info(f"Loan {loan.reference_number} created for user {loan.user_id}: {loan.principal}")
        return loan

    # ============================================================
    # Transitions
    # ============================================================

    async def approve_loan(self, loan_id: int, operator_token: Optional[str]) -> Loan:
        """
        Approve a pending loan.

        Preconditions are checked in order and the first failure wins: the
        deposit requirement, then treasury coverage, then the operator
        credential. Approval moves no money.
        """
        loan = await self.get_loan(loan_id)
        self._require_status(loan, (LoanStatus.PENDING,), "approve")

        if loan.deposit_required > 0:
            summary = await self.deposits.deposit_summary(
                DepositParent.LOAN, loan.id, loan.deposit_required
            )
            if not summary.met:
                logger.warning(f"Loan {loan.id} approval blocked: deposit {summary.deposited}/{summary.required}")
                raise DepositNotMet(
                    "Required deposit has not been met",
                    details=summary.to_dict()
                )

        await self._require_treasury_coverage(loan)

        operator = await self.admin.resolve_operator(operator_token, AdminPermission.APPROVE_LOANS)

        before = _snapshot(loan)
        now = datetime.utcnow()
        await self._transition(
            loan.id,
            from_statuses=(LoanStatus.PENDING,),
            values={"status": LoanStatus.APPROVED, "approved_at": now, "approved_by": operator.id},
            action="approve"
        )
        await self.admin.log_action(
            admin_id=operator.id,
            admin_email=operator.email,
            action="loan_approved",
            resource_type="loan",
            resource_id=loan.id,
            old_values=before,
            new_values={"status": LoanStatus.APPROVED.value}
        )
        await self.db.commit()
        await self.db.refresh(loan)

        logger.info(f"Loan {loan.id} approved by admin {operator.id}")
        await self._notify(loan, "loan_approved", {"principal": loan.principal})
        return loan

    async def disburse_loan(self, loan_id: int, operator: AdminUser) -> Tuple[Loan, str, Decimal]:
        """
        Move the principal from the treasury pool to the borrower's account.

        The loan claim, treasury debit and account credit commit together or
        not at all. A non-null ``disbursed_at`` is the only guard against a
        second credit, so retries after any failure are safe.
        """
        loan = await self.get_loan(loan_id)
        if loan.disbursed_at is not None:
            raise InvalidTransition(
                "Loan has already been disbursed",
                details={"loan_id": loan_id, "status": loan.status.value}
            )
        self._require_status(loan, (LoanStatus.APPROVED,), "disburse")

        principal = Decimal(loan.principal)
        await self._require_treasury_coverage(loan)

        before = _snapshot(loan)
        reference = self.generate_reference_number().replace("LN-", "LND-", 1)
        now = datetime.utcnow()
        transactions = TransactionService(self.db)

        try:
            claimed = await self.db.execute(
                update(Loan)
                .where(
                    Loan.id == loan_id,
                    Loan.status == LoanStatus.APPROVED,
                    Loan.disbursed_at.is_(None)
                )
                .values(
                    status=LoanStatus.ACTIVE,
                    disbursed_at=now,
                    remaining_balance=principal,
                    next_payment_date=calculations.next_payment_date(now.date(), 1),
                    updated_at=func.now()
                )
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                raise InvalidTransition("Loan has already been disbursed", details={"loan_id": loan_id})

            if not await self.treasury.debit(principal):
                raise TreasuryRace(
                    "Treasury balance changed before the debit could be applied; the loan remains approved",
                    details={"loan_id": loan_id, "principal": principal}
                )

            credited = await self.db.execute(
                update(Account)
                .where(
                    Account.id == loan.account_id,
                    Account.id != self.treasury.account_id,
                    Account.status.notin_(list(TERMINAL_ACCOUNT_STATUSES))
                )
                .values(balance=Account.balance + principal, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            if credited.rowcount != 1:
                raise PartialDisbursement(
                    "Borrower account could not be credited; the treasury debit was not applied",
                    details={"loan_id": loan_id, "account_id": loan.account_id}
                )

            # Both rows are already written in this transaction
            treasury_after = await self.treasury.current_balance()
            account_after = (await self.db.execute(
                select(Account.balance).where(Account.id == loan.account_id)
            )).scalar_one()

            await transactions.record(
                account_id=self.treasury.account_id,
                amount=principal,
                transaction_type=TransactionType.TREASURY_DEBIT,
                description=f"Loan disbursement to user ({reference})",
                loan_id=loan_id,
                reference_code=TransactionService.generate_reference("TRSRY"),
                balance_before=treasury_after + principal,
                balance_after=treasury_after
            )
            await transactions.record(
                account_id=loan.account_id,
                amount=principal,
                transaction_type=TransactionType.LOAN_DISBURSEMENT,
                description=f"Loan disbursement - {loan.loan_type.value} ({reference})",
                loan_id=loan_id,
                reference_code=reference,
                balance_before=Decimal(account_after) - principal,
                balance_after=Decimal(account_after)
            )
            await self.admin.log_action(
                admin_id=operator.id,
                admin_email=operator.email,
                action="loan_disbursed",
                resource_type="loan",
                resource_id=loan_id,
                old_values=before,
                new_values={"status": LoanStatus.ACTIVE.value, "disbursed_at": now, "reference": reference}
            )
            await self.db.commit()
        except LendingError as e:
            await self.db.rollback()
            logger.error(f"Disbursement of loan {loan_id} rolled back: {e.code}")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Disbursement of loan {loan_id} rolled back: {str(e)}")
            raise PartialDisbursement(
                "Disbursement could not be committed; nothing was applied",
                details={"loan_id": loan_id}
            ) from e

        await self.db.refresh(loan)
        treasury_balance = await self.treasury.current_balance()

        logger.info(f"Loan {loan_id} disbursed: {principal} to account {loan.account_id}, treasury now {treasury_balance}")
        await self._notify(loan, "loan_disbursed", {"principal": principal, "reference": reference})
        return loan, reference, treasury_balance

    async def reject_loan(self, loan_id: int, reason: str, operator: AdminUser) -> Loan:
        loan = await self.get_loan(loan_id)
        self._require_status(loan, (LoanStatus.PENDING,), "reject")

        before = _snapshot(loan)
        await self._transition(
            loan_id,
            from_statuses=(LoanStatus.PENDING,),
            values={
                "status": LoanStatus.REJECTED,
                "rejection_reason": reason,
                "rejected_at": datetime.utcnow()
            },
            action="reject"
        )
        await self.admin.log_action(
            admin_id=operator.id,
            admin_email=operator.email,
            action="loan_rejected",
            resource_type="loan",
            resource_id=loan_id,
            description=reason,
            old_values=before,
            new_values={"status": LoanStatus.REJECTED.value}
        )
        await self.db.commit()
        await self.db.refresh(loan)

        logger.info(f"Loan {loan_id} rejected by admin {operator.id}")
        await self._notify(loan, "loan_rejected", {"reason": reason})
        return loan

    async def record_payment(
        self,
        loan_id: int,
        amount: Decimal,
        note: Optional[str],
        operator: AdminUser
    ) -> Tuple[Loan, LoanPayment, calculations.PaymentValidation]:
        """Apply a payment to an active loan's interest and principal"""
        loan = await self.get_loan(loan_id)
        self._require_status(loan, (LoanStatus.ACTIVE,), "record a payment on")

        validation = calculations.validate_payment(amount, loan.monthly_payment, loan.remaining_balance)
        breakdown = calculations.payment_breakdown(amount, loan.remaining_balance, loan.interest_rate)

        before = _snapshot(loan)
        now = datetime.utcnow()
        values = {
            "remaining_balance": breakdown.new_balance,
            "payments_made": loan.payments_made + validation.months_covered,
            "next_payment_date": calculations.next_payment_date(
                loan.next_payment_date, validation.months_covered
            ),
            "last_payment_date": now,
        }
        if breakdown.is_full_payoff:
            values.update(status=LoanStatus.CLOSED, closed_at=now)

        try:
            # Every applied payment advances payments_made, so it doubles as a row version
            applied = await self.db.execute(
                update(Loan)
                .where(
                    Loan.id == loan_id,
                    Loan.status == LoanStatus.ACTIVE,
                    Loan.payments_made == loan.payments_made
                )
                .values(updated_at=func.now(), **values)
                .execution_options(synchronize_session=False)
            )
            if applied.rowcount != 1:
                raise InvalidTransition(
                    "Loan changed while the payment was being applied; retry with the current balance",
                    details={"loan_id": loan_id}
                )

            payment = LoanPayment(
                loan_id=loan_id,
                amount=calculations.to_money(amount),
                principal_amount=breakdown.principal_amount,
                interest_amount=breakdown.interest_amount,
                balance_after=breakdown.new_balance,
                months_covered=validation.months_covered,
                note=note,
                recorded_by=operator.id
            )
            self.db.add(payment)
            await self.db.flush()

            await self.admin.log_action(
                admin_id=operator.id,
                admin_email=operator.email,
                action="loan_payment_recorded",
                resource_type="loan",
                resource_id=loan_id,
                description=note,
                old_values=before,
                new_values=values
            )
            await self.db.commit()
        except LendingError:
            await self.db.rollback()
            raise

        await self.db.refresh(loan)
        await self.db.refresh(payment)

        logger.info(
            f"Payment of {amount} on loan {loan_id}: interest {breakdown.interest_amount}, "
            f"principal {breakdown.principal_amount}, balance {breakdown.new_balance}"
        )
        await self._notify(loan, "loan_payment_recorded", {"amount": amount, "new_balance": breakdown.new_balance})
        if breakdown.is_full_payoff:
            await self._notify(loan, "loan_closed", {})
        return loan, payment, validation

    async def close_loan(self, loan_id: int, operator: AdminUser) -> Loan:
        """Close an active loan whose balance has already reached zero"""
        loan = await self.get_loan(loan_id)
        self._require_status(loan, (LoanStatus.ACTIVE,), "close")
        if loan.remaining_balance > 0:
            raise InvalidTransition(
                f"Cannot close loan with remaining balance of {calculations.format_currency(loan.remaining_balance)}. "
                "Please ensure all payments are processed first.",
                details={"loan_id": loan_id, "remaining_balance": loan.remaining_balance}
            )

        before = _snapshot(loan)
        await self._transition(
            loan_id,
            from_statuses=(LoanStatus.ACTIVE,),
            values={"status": LoanStatus.CLOSED, "closed_at": datetime.utcnow()},
            action="close",
            extra_criteria=(Loan.remaining_balance == 0,)
        )
        await self.admin.log_action(
            admin_id=operator.id,
            admin_email=operator.email,
            action="loan_closed",
            resource_type="loan",
            resource_id=loan_id,
            old_values=before,
            new_values={"status": LoanStatus.CLOSED.value}
        )
        await self.db.commit()
        await self.db.refresh(loan)

        logger.info(f"Loan {loan_id} closed by admin {operator.id}")
        await self._notify(loan, "loan_closed", {})
        return loan

    # ============================================================
    # Helpers
    # ============================================================

    @staticmethod
    def _require_status(loan: Loan, allowed: Iterable[LoanStatus], action: str) -> None:
        if loan.status not in allowed:
            raise InvalidTransition(
                f"Cannot {action} a loan that is {loan.status.value}",
                details={"loan_id": loan.id, "status": loan.status.value}
            )

    async def _require_treasury_coverage(self, loan: Loan) -> None:
        balance = await self.treasury.current_balance()
        if Decimal(loan.principal) > balance:
            logger.warning(f"Loan {loan.id} blocked: treasury {balance} < principal {loan.principal}")
            raise InsufficientTreasury(
                f"Treasury balance insufficient. Available: {calculations.format_currency(balance)}, "
                f"Required: {calculations.format_currency(loan.principal)}. "
                "Please fund the treasury account first.",
                details={"available": balance, "required": loan.principal}
            )

    async def _transition(
        self,
        loan_id: int,
        from_statuses: Iterable[LoanStatus],
        values: dict,
        action: str,
        extra_criteria: tuple = ()
    ) -> None:
        result = await self.db.execute(
            update(Loan)
            .where(Loan.id == loan_id, Loan.status.in_(list(from_statuses)), *extra_criteria)
            .values(updated_at=func.now(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise InvalidTransition(
                f"Cannot {action} loan {loan_id}: its status changed concurrently",
                details={"loan_id": loan_id}
            )

    async def _notify(self, loan: Loan, event: str, payload: dict) -> None:
        payload = {
            "loan_id": loan.id,
            "loan_type": loan.loan_type.value,
            "reference_number": loan.reference_number,
            **payload
        }
        for key in ("principal", "amount", "new_balance"):
            if key in payload:
                payload[key] = calculations.to_money(payload[key])
        await NotificationService.notify_user(
            self.db, loan.user_id, event, payload,
            related_entity_type="loan", related_entity_id=loan.id
        )
