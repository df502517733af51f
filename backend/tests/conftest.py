"""
Pytest configuration and shared test fixtures.

Tests run against a throwaway SQLite database (aiosqlite) created per test
from the model metadata. The API client talks to the real FastAPI app over
ASGI with ``get_db`` pointed at the same database.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")

from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from garment_orders.core.security import CallerIdentity, UserRole
from garment_orders.database.connection import get_db
from garment_orders.database.models import Base, Product, ProductCategory
from garment_orders.main import app
from garment_orders.services.orders.service import OrderService

ProductFactory = Callable[..., Awaitable[Product]]


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a file-backed SQLite engine with the full schema.

    A file (rather than ``:memory:``) lets several sessions see the same
    data, which the concurrency tests rely on.
    """
    db_path = tmp_path / "garment_orders_test.db"
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        poolclass=NullPool,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory configured like the application's."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def order_service(db_session: AsyncSession) -> OrderService:
    return OrderService(db_session)


@pytest.fixture
def product_factory(
    session_factory: async_sessionmaker[AsyncSession],
) -> ProductFactory:
    """
    Insert and commit a product.

    Returns:
        Async callable accepting ``quantity``, ``min_order`` and ``price``
    """

    async def _create(
        quantity: int = 10,
        min_order: int = 1,
        price: Decimal = Decimal("10.00"),
        title: str = "Oxford Shirt",
    ) -> Product:
        async with session_factory() as session:
            product = Product(
                title=title,
                description="Cotton oxford shirt",
                category=ProductCategory.SHIRT,
                price=price,
                quantity=quantity,
                min_order=min_order,
            )
            session.add(product)
            await session.commit()
            return product

    return _create


@pytest.fixture
async def product(product_factory: ProductFactory) -> Product:
    """A product with 10 units in stock and no minimum above 1."""
    return await product_factory()


@pytest.fixture
def stock_of(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[UUID], Awaitable[int]]:
    """Read a product's committed quantity through a fresh session."""

    async def _read(product_id: UUID) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(Product.quantity).where(Product.id == product_id)
            )
            return result.scalar_one()

    return _read


# ============================================================================
# Caller Fixtures
# ============================================================================


@pytest.fixture
def buyer() -> CallerIdentity:
    return CallerIdentity(user_id=uuid4(), role=UserRole.BUYER)


@pytest.fixture
def other_buyer() -> CallerIdentity:
    return CallerIdentity(user_id=uuid4(), role=UserRole.BUYER)


@pytest.fixture
def manager() -> CallerIdentity:
    return CallerIdentity(user_id=uuid4(), role=UserRole.MANAGER)


@pytest.fixture
def admin() -> CallerIdentity:
    return CallerIdentity(user_id=uuid4(), role=UserRole.ADMIN)


@pytest.fixture
def auth_headers() -> Callable[[CallerIdentity], dict[str, str]]:
    """Build the gateway headers carrying a caller identity."""

    def _headers(caller: CallerIdentity) -> dict[str, str]:
        return {"X-User-Id": str(caller.user_id), "X-User-Role": caller.role.value}

    return _headers


# ============================================================================
# API Client Fixtures
# ============================================================================


@pytest.fixture
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an asynchronous test client for the FastAPI application.

    ``get_db`` is overridden so every request gets a session on the test
    database, committed on success and rolled back on error.

    Example:
        async def test_health_endpoint_async(async_client):
            response = await async_client.get("/health")
            assert response.status_code == 200
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
