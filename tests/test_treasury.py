"""
Integration tests for the treasury balance guard
"""
import pytest
from decimal import Decimal

from sqlalchemy import select

from app.core.exceptions import InvalidAmount, NotFound
from app.modules.transactions.models import Transaction, TransactionType
from app.modules.treasury.services import SqlTreasuryLedger, TreasuryService


class TestSqlTreasuryLedger:

    @pytest.mark.integration
    async def test_balance_is_read_fresh(self, ledger, treasury_account, db_session):
        assert await ledger.current_balance() == Decimal("10000.00")

        treasury_account.balance = Decimal("2500.00")
        await db_session.commit()

        assert await ledger.current_balance() == Decimal("2500.00")

    @pytest.mark.integration
    async def test_conditional_debit(self, ledger, treasury_account):
        assert await ledger.debit(Decimal("4000.00")) is True
        assert await ledger.current_balance() == Decimal("6000.00")

        # A debit larger than the pool matches no row and changes nothing
        assert await ledger.debit(Decimal("6000.01")) is False
        assert await ledger.current_balance() == Decimal("6000.00")

        assert await ledger.debit(Decimal("6000.00")) is True
        assert await ledger.current_balance() == Decimal("0.00")

    @pytest.mark.integration
    async def test_can_afford(self, ledger, treasury_account):
        assert await ledger.can_afford(Decimal("10000.00"))
        assert not await ledger.can_afford(Decimal("10000.01"))

    @pytest.mark.integration
    async def test_missing_treasury_row(self, db_session):
        ledger = SqlTreasuryLedger(db_session, 424242)

        with pytest.raises(NotFound):
            await ledger.current_balance()


class TestTreasuryFunding:

    @pytest.mark.integration
    async def test_fund_records_credit(self, db_session, ledger, treasury_account, test_admin):
        balance = await TreasuryService(db_session, ledger).fund(Decimal("2500.00"), test_admin, "Capital injection")

        assert balance == Decimal("12500.00")
        result = await db_session.execute(
            select(Transaction).where(Transaction.transaction_type == TransactionType.TREASURY_CREDIT)
        )
        txn = result.scalar_one()
        assert txn.amount == Decimal("2500.00")
        assert txn.description == "Capital injection"
        assert txn.reference_code.startswith("TRSRY-")
        assert (txn.balance_before, txn.balance_after) == (Decimal("10000.00"), Decimal("12500.00"))

    @pytest.mark.integration
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10.00")])
    async def test_fund_rejects_non_positive(self, db_session, ledger, treasury_account, test_admin, amount):
        with pytest.raises(InvalidAmount):
            await TreasuryService(db_session, ledger).fund(amount, test_admin)

        assert await ledger.current_balance() == Decimal("10000.00")
