"""
Integration tests for deposit record review
"""
import pytest
from decimal import Decimal

from app.core.exceptions import InvalidAmount, InvalidTransition, NotFound
from app.modules.deposits.models import DepositParent, DepositStatus
from app.modules.deposits.schemas import DepositCreate
from app.modules.deposits.services import DepositService, DepositSummary


class TestDepositSummary:

    @pytest.mark.unit
    def test_zero_requirement_is_always_met(self):
        assert DepositSummary(required=Decimal("0"), deposited=Decimal("0")).met

    @pytest.mark.unit
    def test_remaining_never_negative(self):
        summary = DepositSummary(required=Decimal("500.00"), deposited=Decimal("650.00"))

        assert summary.met
        assert summary.remaining == Decimal("0")


class TestDepositReview:

    @pytest.mark.integration
    async def test_record_and_approve(self, db_session, pending_loan, test_admin):
        service = DepositService(db_session)
        deposit = await service.record_deposit(
            DepositCreate(
                parent_type=DepositParent.LOAN, parent_id=pending_loan.id,
                amount=Decimal("150.00"), reference="WIRE-001"
            ),
            test_admin
        )
        assert deposit.status == DepositStatus.PENDING
        assert await service.total_deposited(DepositParent.LOAN, pending_loan.id) == Decimal("0.00")

        deposit = await service.approve_deposit(deposit.id, test_admin)

        assert deposit.status == DepositStatus.APPROVED
        assert deposit.reviewed_by == test_admin.id
        assert await service.total_deposited(DepositParent.LOAN, pending_loan.id) == Decimal("150.00")

        records = await service.read_deposit_records(DepositParent.LOAN, pending_loan.id)
        assert [r.id for r in records] == [deposit.id]

    @pytest.mark.integration
    async def test_rejected_deposit_cannot_be_approved(self, db_session, pending_loan, test_admin):
        service = DepositService(db_session)
        deposit = await service.record_deposit(
            DepositCreate(parent_type=DepositParent.LOAN, parent_id=pending_loan.id, amount=Decimal("150.00")),
            test_admin
        )
        deposit = await service.reject_deposit(deposit.id, "Bounced", test_admin)
        assert deposit.rejection_reason == "Bounced"

        with pytest.raises(InvalidTransition):
            await service.approve_deposit(deposit.id, test_admin)

    @pytest.mark.integration
    async def test_completed_deposit_is_final(self, db_session, pending_loan, test_admin):
        service = DepositService(db_session)
        deposit = await service.record_deposit(
            DepositCreate(parent_type=DepositParent.LOAN, parent_id=pending_loan.id, amount=Decimal("150.00")),
            test_admin
        )
        await service.complete_deposit(deposit.id, test_admin)

        with pytest.raises(InvalidTransition):
            await service.reject_deposit(deposit.id, "Too late", test_admin)

    @pytest.mark.integration
    async def test_unknown_parent(self, db_session, test_admin):
        with pytest.raises(NotFound):
            await DepositService(db_session).record_deposit(
                DepositCreate(parent_type=DepositParent.LOAN, parent_id=9999, amount=Decimal("10.00")),
                test_admin
            )

    @pytest.mark.integration
    async def test_non_positive_amount(self, db_session, pending_loan, test_admin):
        data = DepositCreate.model_construct(
            parent_type=DepositParent.LOAN, parent_id=pending_loan.id, amount=Decimal("0"),
            reference=None, note=None
        )

        with pytest.raises(InvalidAmount):
            await DepositService(db_session).record_deposit(data, test_admin)
