import pytest
import pytest_asyncio

from splitsmart.models import Expense, Trip
from splitsmart.services.storage import MemoryKeyValueStore
from splitsmart.services.trips import TripStore


@pytest.fixture
def sample_members():
    """Three test members."""
    return ["Alice", "Bob", "Carol"]


@pytest.fixture
def sample_expense():
    """Alice pays $90 for all three."""
    return Expense(
        id="e1",
        title="Dinner",
        payer="Alice",
        amount=90.0,
        split_among=["Alice", "Bob", "Carol"],
        timestamp=1700000000000,
    )


@pytest.fixture
def sample_trip(sample_members, sample_expense):
    """Trip with three members and one expense."""
    return Trip(
        id="trip1",
        name="Goa",
        members=sample_members,
        expenses=[sample_expense],
        created_at=1700000000000,
    )


@pytest.fixture
def memory_storage():
    """Empty in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest_asyncio.fixture
async def trip_store(memory_storage):
    """Loaded TripStore over empty in-memory storage."""
    store = TripStore(memory_storage)
    await store.load()
    return store
