"""
In-process trip store.

Used for development, tests, and deployments that accept losing state on restart.
Records are held as validated models behind a lock; every read hands out a deep
copy so callers can never mutate stored state by accident.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

from farepass.config.settings import UsersSettings
from farepass.domain.models import Trip, User
from farepass.storage.base import merge_trip, merge_user, new_user, select_history

logger = logging.getLogger(__name__)


class InMemoryTripStore:
    backend = "memory"

    def __init__(self, users: UsersSettings | None = None):
        self._users_settings = users or UsersSettings()
        self._trips: dict[str, Trip] = {}
        self._users: dict[str, User] = {}
        self._lock = threading.Lock()

    def create_trip(self, trip: Trip) -> Trip:
        with self._lock:
            self._trips[trip.id] = trip.model_copy(deep=True)
        logger.info("Trip created in memory: %s", trip.id)
        return trip.model_copy(deep=True)

    def get_trip(self, trip_id: str) -> Trip | None:
        with self._lock:
            trip = self._trips.get(trip_id)
            return trip.model_copy(deep=True) if trip else None

    def update_trip(self, trip_id: str, fields: Mapping[str, Any]) -> Trip | None:
        with self._lock:
            current = self._trips.get(trip_id)
            if current is None:
                logger.warning("Trip not found for update: %s", trip_id)
                return None
            updated = merge_trip(current, fields)
            self._trips[trip_id] = updated
            return updated.model_copy(deep=True)

    def get_current_trip(self, user_id: str) -> Trip | None:
        with self._lock:
            for trip in self._trips.values():
                if trip.user_id == user_id and trip.status == "started":
                    return trip.model_copy(deep=True)
        return None

    def get_user(self, user_id: str) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                user = new_user(user_id, self._users_settings)
                self._users[user_id] = user
                logger.info("Created new user in memory: %s", user_id)
            return user.model_copy(deep=True)

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> User | None:
        with self._lock:
            current = self._users.get(user_id)
            if current is None:
                return None
            updated = merge_user(current, fields)
            self._users[user_id] = updated
            return updated.model_copy(deep=True)

    def get_trip_history(self, user_id: str, limit: int | None = None) -> list[Trip]:
        with self._lock:
            trips = list(self._trips.values())
        history = select_history(trips, user_id, limit or self._users_settings.history_limit)
        return [t.model_copy(deep=True) for t in history]

    def describe(self) -> dict[str, Any]:
        with self._lock:
            return {"backend": self.backend, "trip_count": len(self._trips), "user_count": len(self._users)}
