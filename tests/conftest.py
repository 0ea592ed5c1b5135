"""
Test configuration and fixtures for the lending core tests.
"""
import pytest
from typing import AsyncGenerator
from decimal import Decimal

import fakeredis
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from app.core import database
from app.core.database import Base, get_db
from app.core.config import settings
from main import app


# ============================================================
# Database Fixtures
# ============================================================

# Use SQLite for testing (in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for each test"""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
async def fake_redis():
    """In-process redis standing in for the token blacklist server"""
    redis = fakeredis.FakeAsyncRedis(decode_responses=True)
    database.redis_pool = redis
    yield redis
    await redis.flushall()
    database.redis_pool = None


@pytest.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================
# Operator Fixtures
# ============================================================

ADMIN_PASSWORD = "AdminPassword123!"


async def _make_admin(db_session, email, role):
    from app.core.security import get_password_hash
    from app.modules.admin.models import AdminUser

    admin = AdminUser(
        email=email,
        hashed_password=get_password_hash(ADMIN_PASSWORD),
        first_name="Test",
        last_name="Operator",
        role=role,
        is_active=True,
        login_attempts=0
    )
    db_session.add(admin)
    await db_session.commit()
    await db_session.refresh(admin)
    return admin


def _token_for(admin) -> str:
    from app.core.security import create_access_token

    return create_access_token(data={"sub": admin.email, "type": "admin", "admin_id": admin.id})


@pytest.fixture
async def test_admin(db_session):
    """Super admin holding every permission"""
    from app.modules.admin.models import AdminRole

    return await _make_admin(db_session, "admin@lendingcore.io", AdminRole.SUPER_ADMIN)


@pytest.fixture
async def test_auditor(db_session):
    """Read-only operator"""
    from app.modules.admin.models import AdminRole

    return await _make_admin(db_session, "auditor@lendingcore.io", AdminRole.AUDITOR)


@pytest.fixture
def admin_token(test_admin) -> str:
    return _token_for(test_admin)


@pytest.fixture
def auditor_token(test_auditor) -> str:
    return _token_for(test_auditor)


@pytest.fixture
def auth_headers(admin_token):
    """Bearer headers for the super admin"""
    return {"Authorization": f"Bearer {admin_token}"}


# ============================================================
# Customer and Account Fixtures
# ============================================================

@pytest.fixture
async def test_user(db_session):
    """Create a test customer"""
    from app.modules.users.models import User

    user = User(email="borrower@lendingcore.io", first_name="Test", last_name="Borrower")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def treasury_account(db_session):
    """Treasury pool row holding 10,000.00"""
    from app.modules.accounts.models import Account, AccountType, AccountStatus
    from app.modules.users.models import User

    bank = User(email="treasury@lendingcore.io", first_name="Bank", last_name="Treasury")
    db_session.add(bank)
    await db_session.flush()

    account = Account(
        id=settings.TREASURY_ACCOUNT_ID,
        user_id=bank.id,
        account_number="900000000001",
        account_type=AccountType.TREASURY,
        balance=Decimal("10000.00"),
        status=AccountStatus.ACTIVE
    )
    db_session.add(account)
    await db_session.commit()
    await db_session.refresh(account)
    return account


@pytest.fixture
async def test_account(db_session, treasury_account, test_user):
    """Active borrower checking account with a zero balance"""
    from app.modules.accounts.models import Account, AccountType, AccountStatus

    account = Account(
        user_id=test_user.id,
        account_number="100000000001",
        account_type=AccountType.CHECKING,
        balance=Decimal("0.00"),
        status=AccountStatus.ACTIVE
    )
    db_session.add(account)
    await db_session.commit()
    await db_session.refresh(account)
    return account


# ============================================================
# Loan Fixtures
# ============================================================

@pytest.fixture
def ledger(db_session):
    from app.modules.treasury.services import SqlTreasuryLedger

    return SqlTreasuryLedger(db_session, settings.TREASURY_ACCOUNT_ID)


@pytest.fixture
def loan_service(db_session, ledger):
    from app.modules.loans.services import LoanService

    return LoanService(db_session, ledger)


@pytest.fixture
def loan_request(test_user, test_account):
    """1,000.00 at 12% over 12 months with a 100.00 installment"""
    from app.modules.loans.schemas import LoanCreate

    return LoanCreate(
        user_id=test_user.id,
        account_id=test_account.id,
        principal=Decimal("1000.00"),
        interest_rate=Decimal("12.00"),
        term_months=12,
        monthly_payment=Decimal("100.00"),
        purpose="Home repairs"
    )


@pytest.fixture
async def pending_loan(loan_service, loan_request, test_admin):
    return await loan_service.create_loan(loan_request, test_admin)


@pytest.fixture
async def approved_loan(loan_service, pending_loan, admin_token):
    return await loan_service.approve_loan(pending_loan.id, admin_token)


@pytest.fixture
async def active_loan(loan_service, approved_loan, test_admin):
    loan, _, _ = await loan_service.disburse_loan(approved_loan.id, test_admin)
    return loan
