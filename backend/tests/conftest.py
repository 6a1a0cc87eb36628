"""
Test fixtures and configuration for pytest.
"""

import os
import sys
from decimal import Decimal
from typing import AsyncGenerator, List, Tuple

# Cheap bcrypt and a dev configuration for every test; must precede config import
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("APP_MODE", "dev")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.database import Base, Database, get_db
from models.order import Order, OrderStatus
from models.user import User, UserType
from services.passwords import hash_password

# Test database URL (SQLite file for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test_storefront.db"

DEFAULT_PASSWORD = "correct-horse-battery"


@pytest_asyncio.fixture(scope="function")
async def test_database() -> AsyncGenerator[Database, None]:
    """A fresh schema on its own engine for each test."""
    # NullPool: every test runs on its own event loop
    database = Database(TEST_DATABASE_URL, poolclass=NullPool)
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await database.init()
    yield database
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await database.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with test_database.sessionmaker() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    """Factory: insert a user and return it."""

    async def _make_user(
        email: str = "a@x.com",
        password: str = DEFAULT_PASSWORD,
        user_type: UserType = UserType.CUSTOMER,
        is_active: bool = True,
        first_name: str = "Ann",
        last_name: str = "Example",
        phone: str = None,
    ) -> User:
        user = User(
            email=email.lower(),
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            user_type=user_type,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest_asyncio.fixture
async def make_order(db_session: AsyncSession):
    async def _make_order(user: User, total: str = "49.90", status: OrderStatus = OrderStatus.PENDING) -> Order:
        order = Order(user_id=user.id, total_amount=Decimal(total), status=status)
        db_session.add(order)
        await db_session.commit()
        await db_session.refresh(order)
        return order

    return _make_order


class RecordingNotifier:
    """Captures outbound messages instead of delivering them."""

    def __init__(self):
        self.password_resets: List[Tuple[str, str]] = []
        self.phone_codes: List[Tuple[str, str]] = []

    async def send_password_reset(self, email: str, reset_url: str) -> None:
        self.password_resets.append((email, reset_url))

    async def send_phone_code(self, phone: str, code: str) -> None:
        self.phone_codes.append((phone, code))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, notifier: RecordingNotifier) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client sharing the test database session."""
    from main import app
    from services.notifications import get_notifier

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def login(client: AsyncClient, email: str = "a@x.com", password: str = DEFAULT_PASSWORD):
    return await client.post("/api/v1/auth/login", json={"email": email, "password": password})


def set_cookie_headers(response) -> List[str]:
    return response.headers.get_list("set-cookie")


def cookie_header(response, name: str) -> str:
    for header in set_cookie_headers(response):
        if header.startswith(f"{name}="):
            return header
    raise AssertionError(f"no Set-Cookie for {name}: {set_cookie_headers(response)}")
