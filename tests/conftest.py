import json
import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import httpx
import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Settings are read at import time; these must be in place first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./scheduling_test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test-razorpay-key-secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "test-razorpay-webhook-secret")
load_dotenv()

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

from app.config import settings  # noqa: E402
from app.core.locks import DoctorLockRegistry  # noqa: E402
from app.core.payment_gateway import RazorpayClient  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.database import Database, get_db  # noqa: E402
from app.dependencies import (  # noqa: E402
    get_cache_manager,
    get_doctor_locks,
    get_payment_gateway,
)
from app.main import app  # noqa: E402
from app.models import availability_rules, doctor_profiles, metadata, users  # noqa: E402
from app.services.availability_service import AvailabilityService  # noqa: E402
from app.services.booking_service import BookingService  # noqa: E402
from app.services.slot_resolver import SlotResolver  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine; every session gets its own connection."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'scheduling.db'}",
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def doctor_locks() -> DoctorLockRegistry:
    return DoctorLockRegistry()


@pytest_asyncio.fixture
async def payment_gateway() -> AsyncGenerator[RazorpayClient, None]:
    """Razorpay client wired to an in-memory orders API."""
    created_orders: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        order = {
            "id": f"order_{uuid4().hex[:14]}",
            "entity": "order",
            "amount": body["amount"],
            "currency": body["currency"],
            "receipt": body["receipt"],
            "status": "created",
        }
        created_orders.append(order)
        return httpx.Response(200, json=order)

    http_client = httpx.AsyncClient(
        base_url="https://api.razorpay.test/v1",
        transport=httpx.MockTransport(handler),
    )
    gateway = RazorpayClient(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        http_client=http_client,
    )
    gateway.created_orders = created_orders  # type: ignore[attr-defined]

    yield gateway

    await gateway.aclose()


@pytest_asyncio.fixture
async def client(
    engine: AsyncEngine,
    session_factory,
    doctor_locks: DoctorLockRegistry,
    payment_gateway: RazorpayClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: None
    app.dependency_overrides[get_doctor_locks] = lambda: doctor_locks
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.state.db = Database(engine)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth_headers_for(user_id: UUID, role: str) -> dict:
    """Bearer header for a token carrying ``sub`` and ``role``."""
    token = create_access_token(
        data={"sub": str(user_id), "role": role},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for() -> Callable[[UUID, str], dict]:
    return auth_headers_for


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[UUID]]:
    """Factory inserting a user account."""

    async def _make(role: str = "patient", full_name: str | None = None, is_active: bool = True):
        user_id = uuid4()
        await db_session.execute(
            insert(users).values(
                id=user_id,
                email=f"{role}-{user_id.hex[:8]}@example.com",
                full_name=full_name or f"Test {role.title()}",
                role=role,
                is_active=is_active,
            )
        )
        await db_session.commit()
        return user_id

    return _make


@pytest.fixture
def make_doctor(db_session: AsyncSession, make_user) -> Callable[..., Awaitable[UUID]]:
    """Factory inserting a doctor account with a profile."""

    async def _make(
        approved: bool = True,
        fee: Decimal = Decimal("500.00"),
        duration: int = 30,
        timezone: str | None = None,
        with_profile: bool = True,
        full_name: str = "Asha Rao",
    ) -> UUID:
        doctor_id = await make_user("doctor", full_name)
        if with_profile:
            await db_session.execute(
                insert(doctor_profiles).values(
                    user_id=doctor_id,
                    specialization="General Medicine",
                    consultation_fee=fee,
                    consultation_duration_minutes=duration,
                    timezone=timezone,
                    is_approved=approved,
                )
            )
            await db_session.commit()
        return doctor_id

    return _make


@pytest.fixture
def add_rule(db_session: AsyncSession) -> Callable[..., Awaitable[None]]:
    """Factory inserting an availability rule (ISO day)."""

    async def _add(
        doctor_id: UUID,
        day_of_week: int,
        start: time,
        end: time,
        is_available: bool = True,
    ) -> None:
        await db_session.execute(
            insert(availability_rules).values(
                doctor_id=doctor_id,
                day_of_week=day_of_week,
                start_time=start,
                end_time=end,
                is_available=is_available,
            )
        )
        await db_session.commit()

    return _add


@pytest.fixture
def next_monday() -> date:
    """A Monday at least one day ahead."""
    today = datetime.now(UTC).date()
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


@pytest.fixture
def build_booking_service(doctor_locks: DoctorLockRegistry) -> Callable[[AsyncSession], BookingService]:
    """Booking service over a session, sharing one lock registry."""

    def _build(session: AsyncSession) -> BookingService:
        resolver = SlotResolver(session, AvailabilityService(session))
        return BookingService(session, resolver, doctor_locks)

    return _build


@pytest_asyncio.fixture
async def bookable_doctor(make_doctor, add_rule) -> UUID:
    """Approved doctor open Monday 09:00-17:00 UTC, 30 minute consultations."""
    doctor_id = await make_doctor()
    await add_rule(doctor_id, 1, time(9, 0), time(17, 0))
    return doctor_id
