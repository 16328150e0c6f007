import pytest
from sqlalchemy import func

from tripdesk import models
from tripdesk.crud import Collection, unit_of_work
from tripdesk.exceptions import StoreError

pytestmark = pytest.mark.anyio


# --- Test Cases ---
async def test_create_update_delete(session_factory):
    users = Collection(models.User, session_factory)

    created = await users.create({"name": "Nadia", "email": "nadia@example.com"})
    assert created.id is not None
    assert created.role == models.UserRole.CUSTOMER

    updated = await users.update(created.id, {"verified": True, "phone": "+92 300 0000000"})
    assert updated.verified is True
    assert updated.phone == "+92 300 0000000"

    assert await users.delete(created.id) is True
    assert await users.get(created.id) is None

    # Missing rows are reported, not raised
    assert await users.update(created.id, {"verified": False}) is None
    assert await users.delete(created.id) is False


async def test_aggregate_returns_none_on_empty_sum(session_factory):
    bookings = Collection(models.Booking, session_factory)
    assert await bookings.aggregate(None, models.Booking.total_price, "sum") is None
    assert await bookings.aggregate(None, None, "count") == 0


async def test_grouped_and_distinct(seed, session_factory):
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    await seed.property(owner, city="Karachi")
    await seed.property(owner, city="Karachi")
    await seed.property(owner, city="Lahore")
    listings = Collection(models.Property, session_factory)

    grouped = await listings.grouped(models.Property.city, {"listings": func.count(models.Property.id)})
    assert grouped == {"Karachi": {"listings": 2}, "Lahore": {"listings": 1}}
    assert await listings.distinct(models.Property.city) == ["Karachi", "Lahore"]


async def test_store_failures_become_store_errors(session_factory):
    users = Collection(models.User, session_factory)
    await users.create({"name": "Omar", "email": "omar@example.com"})

    # Duplicate email violates the unique index
    with pytest.raises(StoreError) as exc_info:
        await users.create({"name": "Omar Again", "email": "omar@example.com"})
    assert exc_info.value.public_message == "Failed to process request"


async def test_unit_of_work_rolls_back_on_error(session_factory):
    with pytest.raises(RuntimeError):
        async with unit_of_work(session_factory) as db:
            db.add(models.User(name="Temp", email="temp@example.com"))
            await db.flush()
            raise RuntimeError("boom")

    assert await Collection(models.User, session_factory).count() == 0
