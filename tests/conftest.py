import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tokenguard.core.clock import ManualClock
from tokenguard.core.config import AccountsConfig
from tokenguard.core.passwords import BcryptPasswordHasher
from tokenguard.models import Account, Base
from tokenguard.services.account_service import AccountService
from tokenguard.services.token_lifecycle import TokenLifecycle

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_SECRET_KEY = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

TEST_EMAIL = "owner@example.com"
TEST_PASSWORD = "password_1"  # nosec B105

# Deliberately not on a whole second: expires_at is truncated to seconds.
T0 = datetime(2026, 1, 1, 12, 0, 0, 250000, tzinfo=UTC)

# Lowest bcrypt cost; production default is 12
TEST_BCRYPT_ROUNDS = 4


def _test_database_url(tmp_path) -> str:
    """PostgreSQL when TEST_DATABASE_URL is set, else a per-test SQLite file."""
    url = os.environ.get("TEST_DATABASE_URL")
    if url:
        return url
    return f"sqlite+aiosqlite:///{tmp_path / 'tokenguard_test.db'}"


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with all tables."""
    url = _test_database_url(tmp_path)
    connect_args = {"timeout": 30} if url.startswith("sqlite") else {}
    engine = create_async_engine(url, echo=False, connect_args=connect_args)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="session")
def hasher() -> BcryptPasswordHasher:
    return BcryptPasswordHasher(rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def accounts_config(
    session_factory: async_sessionmaker[AsyncSession],
    hasher: BcryptPasswordHasher,
    clock: ManualClock,
) -> AccountsConfig:
    return AccountsConfig(
        session_factory=session_factory,
        secret_key=TEST_SECRET_KEY,
        hasher=hasher,
        clock=clock,
    )


@pytest.fixture
def token_lifecycle(accounts_config: AccountsConfig) -> TokenLifecycle:
    return TokenLifecycle(accounts_config)


@pytest.fixture
def account_service(
    accounts_config: AccountsConfig, token_lifecycle: TokenLifecycle
) -> AccountService:
    return AccountService(accounts_config, token_lifecycle)


@pytest_asyncio.fixture
async def test_account(account_service: AccountService) -> Account:
    """Account registered with TEST_EMAIL / TEST_PASSWORD."""
    result = await account_service.create(TEST_EMAIL, TEST_PASSWORD)
    return result.value


@pytest_asyncio.fixture
async def other_account(account_service: AccountService) -> Account:
    """Second account for cross-account token checks."""
    result = await account_service.create("other@example.com", "other_password")
    return result.value
