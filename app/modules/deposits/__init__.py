# Deposits module
from app.modules.deposits.models import DepositRecord, DepositParent, DepositStatus

__all__ = ["DepositRecord", "DepositParent", "DepositStatus"]
