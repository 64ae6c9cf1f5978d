"""
MongoDB-backed trip store (pymongo).

Documents are the JSON form of `Trip` / `User` (ISO-8601 timestamps), keyed by
our own `id` field; Mongo's `_id` never leaves this module. Every driver error is
re-raised as `PersistenceFailure`: there is no silent fallback to memory here,
backend choice happens once at startup (`farepass.storage.factory`).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from pymongo import MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from farepass.config.settings import UsersSettings
from farepass.domain.errors import PersistenceFailure
from farepass.domain.models import Trip, User
from farepass.storage.base import merge_trip, merge_user, new_user, select_history

logger = logging.getLogger(__name__)

_NO_ID = {"_id": 0}


@contextmanager
def _driver_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as exc:
        logger.error("MongoDB %s failed: %s", operation, exc)
        raise PersistenceFailure(f"MongoDB {operation} failed: {exc}") from exc


class MongoTripStore:
    backend = "mongo"

    def __init__(self, database: Database, users: UsersSettings | None = None):
        self._db = database
        self._trips = database["trips"]
        self._users = database["users"]
        self._users_settings = users or UsersSettings()

    @classmethod
    def from_uri(
        cls,
        uri: str,
        *,
        database_name: str = "smart_bus_fare",
        timeout_ms: int = 5000,
        users: UsersSettings | None = None,
    ) -> "MongoTripStore":
        client: MongoClient = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
        return cls(client[database_name], users=users)

    def create_trip(self, trip: Trip) -> Trip:
        with _driver_errors("insert trip"):
            self._trips.insert_one(trip.model_dump(mode="json"))
        logger.info("Trip created in MongoDB: %s", trip.id)
        return trip

    def get_trip(self, trip_id: str) -> Trip | None:
        with _driver_errors("find trip"):
            doc = self._trips.find_one({"id": trip_id}, _NO_ID)
        return Trip.model_validate(doc) if doc else None

    def update_trip(self, trip_id: str, fields: Mapping[str, Any]) -> Trip | None:
        current = self.get_trip(trip_id)
        if current is None:
            logger.warning("Trip not found for update: %s", trip_id)
            return None
        merged = merge_trip(current, fields)
        changes = merged.model_dump(mode="json", include=set(fields))
        with _driver_errors("update trip"):
            doc = self._trips.find_one_and_update(
                {"id": trip_id},
                {"$set": changes},
                projection=_NO_ID,
                return_document=ReturnDocument.AFTER,
            )
        return Trip.model_validate(doc) if doc else None

    def get_current_trip(self, user_id: str) -> Trip | None:
        with _driver_errors("find current trip"):
            doc = self._trips.find_one({"user_id": user_id, "status": "started"}, _NO_ID)
        return Trip.model_validate(doc) if doc else None

    def get_user(self, user_id: str) -> User | None:
        with _driver_errors("find user"):
            doc = self._users.find_one({"id": user_id}, _NO_ID)
            if doc:
                return User.model_validate(doc)
            user = new_user(user_id, self._users_settings)
            self._users.insert_one(user.model_dump(mode="json"))
        logger.info("Created new user in MongoDB: %s", user_id)
        return user

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> User | None:
        with _driver_errors("find user"):
            doc = self._users.find_one({"id": user_id}, _NO_ID)
        if not doc:
            return None
        merged = merge_user(User.model_validate(doc), fields)
        changes = merged.model_dump(mode="json", include=set(fields))
        with _driver_errors("update user"):
            doc = self._users.find_one_and_update(
                {"id": user_id},
                {"$set": changes},
                projection=_NO_ID,
                return_document=ReturnDocument.AFTER,
            )
        return User.model_validate(doc) if doc else None

    def get_trip_history(self, user_id: str, limit: int | None = None) -> list[Trip]:
        # ISO strings drop zero microseconds, so ordering happens on parsed datetimes, not in Mongo.
        with _driver_errors("find trip history"):
            docs = list(self._trips.find({"user_id": user_id, "status": "completed"}, _NO_ID))
        trips = [Trip.model_validate(d) for d in docs]
        return select_history(trips, user_id, int(limit or self._users_settings.history_limit))

    def describe(self) -> dict[str, Any]:
        with _driver_errors("count documents"):
            return {
                "backend": self.backend,
                "database": self._db.name,
                "trip_count": self._trips.count_documents({}),
                "user_count": self._users.count_documents({}),
            }
