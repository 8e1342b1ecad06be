from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.database.base import Base
from src.core.database import get_db
from src.core.school_settings.models import School
from src.main import app

# In-memory SQLite; StaticPool keeps one connection so every session sees the same database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Fresh database per test: create tables, drop them afterwards."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Get test database session."""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def school(db_session: AsyncSession) -> School:
    """School with prefixed fee receipts (REC) and installment receipts (INST)."""
    school = School(
        name="Al Noor School",
        receipt_number_prefix="REC",
        receipt_number_format="auto",
        receipt_number_counter=0,
        installment_receipt_number_prefix="INST",
        installment_receipt_number_format="auto",
        installment_receipt_number_counter=0,
    )
    db_session.add(school)
    await db_session.commit()
    await db_session.refresh(school)
    return school
