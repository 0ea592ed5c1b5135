# Treasury module
from app.modules.treasury.services import TreasuryLedger, SqlTreasuryLedger, TreasuryService

__all__ = ["TreasuryLedger", "SqlTreasuryLedger", "TreasuryService"]
