from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from decimal import Decimal
from typing import List, Optional, Tuple
import uuid

from app.modules.transactions.models import Transaction, TransactionType


class TransactionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def generate_reference(prefix: str = "TXN") -> str:
        return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"

    async def record(
        self,
        account_id: int,
        amount: Decimal,
        transaction_type: TransactionType,
        description: Optional[str] = None,
        loan_id: Optional[int] = None,
        reference_code: Optional[str] = None,
        balance_before: Optional[Decimal] = None,
        balance_after: Optional[Decimal] = None
    ) -> Transaction:
        """Stage a ledger line inside the caller's transaction"""
        txn = Transaction(
            account_id=account_id,
            loan_id=loan_id,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            transaction_type=transaction_type,
            description=description,
            status="completed",
            reference_code=reference_code or self.generate_reference()
        )
        self.db.add(txn)
        await self.db.flush()
        return txn

    async def list_transactions(
        self,
        account_id: Optional[int] = None,
        loan_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 50
    ) -> Tuple[List[Transaction], int]:
        query = select(Transaction)
        if account_id:
            query = query.where(Transaction.account_id == account_id)
        if loan_id:
            query = query.where(Transaction.loan_id == loan_id)

        count_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar()

        query = query.order_by(Transaction.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total
