import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"

import datetime
import itertools

import httpx
import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine

from tripdesk import models
from tripdesk.auth import action_rate_limiter
from tripdesk.config import settings
from tripdesk.database import Base, get_session_factory, make_session_factory
from tripdesk.kinds import kind_of
from tripdesk.main import app


def create_test_token(user_id: int) -> str:
    """Creates a bearer token the way the identity service would."""
    token = jwt.encode({"sub": str(user_id)}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return f"Bearer {token}"


class Seeder:
    """Inserts rows through its own session and hands back detached objects."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._sequence = itertools.count(1)

    async def add(self, *entities):
        async with self.session_factory() as db:
            db.add_all(entities)
            await db.commit()
        return entities[0] if len(entities) == 1 else entities

    async def user(self, role=models.UserRole.CUSTOMER, **overrides):
        n = next(self._sequence)
        fields = dict(name=f"User {n}", email=f"user{n}@example.com", role=role)
        fields.update(overrides)
        return await self.add(models.User(**fields))

    async def admin(self, **overrides):
        return await self.user(role=models.UserRole.ADMIN, **overrides)

    async def property(self, owner, **overrides):
        fields = dict(
            name="Harbour View Apartment",
            description="Two bedrooms by the sea",
            city="Karachi",
            base_price=1500.0,
            owner_id=owner.id,
            approval_status=models.ApprovalStatus.APPROVED,
        )
        fields.update(overrides)
        return await self.add(models.Property(**fields))

    async def vehicle(self, owner, **overrides):
        fields = dict(
            brand="Toyota",
            model="Corolla",
            description="Automatic, air conditioned",
            city="Lahore",
            base_price=4000.0,
            owner_id=owner.id,
            approval_status=models.ApprovalStatus.APPROVED,
        )
        fields.update(overrides)
        return await self.add(models.Vehicle(**fields))

    async def tour(self, guide, **overrides):
        fields = dict(
            title="Hunza Valley Trek",
            description="Five days in the north",
            city="Hunza",
            price_per_person=25000.0,
            guide_id=guide.id,
            approval_status=models.ApprovalStatus.APPROVED,
        )
        fields.update(overrides)
        return await self.add(models.Tour(**fields))

    def booking_for(self, customer, listing, **overrides):
        """Unsaved booking of the right subclass for ``listing``."""
        kind = kind_of(listing)
        start = datetime.date(2026, 3, 1)
        fields = dict(
            customer_id=customer.id,
            status=models.BookingStatus.PENDING,
            total_price=1000.0,
            start_date=start,
            end_date=start + datetime.timedelta(days=3),
            **{f"{kind.booking_type}_id": listing.id},
        )
        fields.update(overrides)
        return kind.booking_model(**fields)

    async def booking(self, customer, listing, **overrides):
        return await self.add(self.booking_for(customer, listing, **overrides))

    async def review(self, user, listing, **overrides):
        kind = kind_of(listing)
        fields = dict(
            user_id=user.id,
            service_type=kind.service_type,
            rating=5,
            content="Lovely stay, would book again",
            **{f"{kind.booking_type}_id": listing.id},
        )
        fields.update(overrides)
        return await self.add(models.Review(**fields))

    async def ticket(self, user, **overrides):
        fields = dict(user_id=user.id, subject="Refund not received", description="Paid twice for one booking")
        fields.update(overrides)
        return await self.add(models.SupportTicket(**fields))


# --- Database Management Fixtures ---
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite file per test; concurrent reads get real separate connections."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tripdesk_test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
async def admin(seed):
    return await seed.admin(name="Ayesha Admin", email="ayesha@tripdesk.test")


@pytest.fixture
def auth_headers(admin):
    """Authorization headers for the seeded admin."""
    return {"Authorization": create_test_token(admin.id)}


# --- API Test Client Fixture ---
@pytest.fixture
async def client(session_factory):
    """An httpx client bound to the app, with the store and rate limiter swapped out."""

    async def no_rate_limit():
        return None

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[action_rate_limiter] = no_rate_limit

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture
def token_for():
    """Builds Authorization headers for any seeded user."""

    def _headers(user):
        return {"Authorization": create_test_token(user.id)}

    return _headers
