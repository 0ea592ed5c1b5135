"""
Admin console router: every operator endpoint is mounted under /admin.
"""
from fastapi import APIRouter

from app.modules.admin.routers.auth import router as auth_router
from app.modules.admin.routers.audit import router as audit_router
from app.modules.accounts.router import router as accounts_router
from app.modules.deposits.router import router as deposits_router
from app.modules.loans.router import router as loans_router
from app.modules.transactions.router import router as transactions_router
from app.modules.treasury.router import router as treasury_router

# Main admin router
router = APIRouter(prefix="/admin", tags=["admin"])

# Include all sub-routers
router.include_router(auth_router)
router.include_router(audit_router)
router.include_router(accounts_router)
router.include_router(deposits_router)
router.include_router(loans_router)
router.include_router(treasury_router)
router.include_router(transactions_router)
