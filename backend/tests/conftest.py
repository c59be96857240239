"""
Pytest configuration and shared fixtures for EcoProducts tests.

Provides an in-memory SQLite session, an httpx client bound to the FastAPI
app, admin credentials and a seeded catalog.
"""
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import settings
from database import Base, get_db
from deps import get_session_registry
from domain.cart import CatalogProduct
from main import app
from middleware.auth import issue_access_token
from middleware.rate_limit import get_limiter
from services.checkout_service import SessionRegistry

# ── Test Configuration ───────────────────────────────────────────────
# Set test-only values for settings that would normally come from .env
if not settings.jwt_secret:
    settings.jwt_secret = "test-jwt-secret-for-pytest-only"
if not settings.admin_api_key:
    settings.admin_api_key = "test-admin-key"


# ── Database Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    import db_models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry(ttl_minutes=30)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, registry: SessionRegistry):
    """
    httpx client bound to the app.

    Overrides get_db with the test session and gives every test a fresh
    checkout session registry and rate limiter.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_registry] = lambda: registry
    get_limiter().reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    get_limiter().reset()


# ── Auth Fixtures ────────────────────────────────────────────────────


@pytest.fixture
def admin_headers() -> dict[str, str]:
    token = issue_access_token(subject="admin")
    return {"Authorization": f"Bearer {token}"}


# ── Test Data Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture
async def sample_products(db_session: AsyncSession):
    """Seed the six sample products and return them ordered by id."""
    from services import catalog_service

    products = await catalog_service.seed_products(db_session)
    await db_session.commit()
    return sorted(products, key=lambda p: p.id)


@pytest.fixture
def quinoa() -> CatalogProduct:
    return CatalogProduct(id=1, name="Organic Quinoa", price=Decimal("299.00"))


@pytest.fixture
def nuts() -> CatalogProduct:
    return CatalogProduct(id=2, name="Mixed Organic Nuts", price=Decimal("550.00"))


@pytest.fixture
def resident_form() -> dict[str, str]:
    return {
        "name": "Asha Rao",
        "phone": "9876543210",
        "address": "12 Lake View Road",
        "pincode": "517646",
    }


@pytest.fixture
def club_form() -> dict[str, str]:
    return {
        "clubName": "Green Earth Club",
        "collegeName": "IIIT Sri City",
        "contactPerson": "Ravi Kumar",
        "clubPhone": "8123456789",
        "clubAddress": "630 Gnan Marg, Sri City",
    }
