"""
Backend selection.

The storage backend is chosen once, from `Settings.storage.backend`, when the API
or CLI builds its ledger. A backend that fails later reports `PersistenceFailure`;
it is never swapped for another backend mid-flight.
"""

from __future__ import annotations

import logging

from farepass.config.settings import Settings
from farepass.core.env import resolve_project_path
from farepass.storage.base import TripStore
from farepass.storage.file import JsonFileTripStore
from farepass.storage.memory import InMemoryTripStore
from farepass.storage.mongo import MongoTripStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> TripStore:
    storage = settings.storage
    if storage.backend == "memory":
        logger.info("Using in-memory trip store (state is lost on restart).")
        return InMemoryTripStore(settings.users)

    if storage.backend == "file":
        base_dir = resolve_project_path(storage.dir)
        logger.info("Using JSON file trip store at %s", base_dir)
        return JsonFileTripStore(base_dir, settings.users)

    if storage.backend == "mongo":
        if not storage.mongo_uri:
            raise ValueError("storage.backend is 'mongo' but no MongoDB URI is configured (set MONGODB_URI).")
        logger.info("Using MongoDB trip store (database=%s)", storage.mongo_database)
        return MongoTripStore.from_uri(
            storage.mongo_uri,
            database_name=storage.mongo_database,
            timeout_ms=storage.mongo_timeout_ms,
            users=settings.users,
        )

    raise ValueError(f"Unknown storage backend: {storage.backend!r}")
