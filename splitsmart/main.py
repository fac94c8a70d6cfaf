from typing import Optional

from .config import Settings, get_settings
from .logging_config import setup_logging
from .services.storage import get_storage
from .services.trips import TripStore


async def create_trip_store(settings: Optional[Settings] = None) -> TripStore:
    """
    Build a ready-to-use TripStore from settings.

    Sets up logging, selects the storage backend and waits for the initial
    load, so the returned store is no longer loading.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    store = TripStore(get_storage(settings), storage_key=settings.storage_key)
    await store.load()
    return store
