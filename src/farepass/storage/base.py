"""
Persistence gateway contract.

The ledger only talks to storage through `TripStore`. Backends return fresh
snapshots (never live references), and report any backend failure as
`PersistenceFailure` so the ledger never has to know which engine is behind it.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from farepass.config.settings import UsersSettings
from farepass.domain.models import Trip, User


class TripStore(Protocol):
    backend: str

    def create_trip(self, trip: Trip) -> Trip: ...

    def get_trip(self, trip_id: str) -> Trip | None: ...

    def update_trip(self, trip_id: str, fields: Mapping[str, Any]) -> Trip | None: ...

    def get_current_trip(self, user_id: str) -> Trip | None: ...

    def get_user(self, user_id: str) -> User | None: ...

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> User | None: ...

    def get_trip_history(self, user_id: str, limit: int | None = None) -> list[Trip]: ...

    def describe(self) -> dict[str, Any]: ...


def new_user(user_id: str, users: UsersSettings) -> User:
    """Default record for a user seen for the first time."""
    return User(id=user_id, name=f"{users.name_prefix} {user_id[:8]}", balance=users.default_balance)


def merge_trip(current: Trip, fields: Mapping[str, Any]) -> Trip:
    """Apply a partial update and re-validate so stored documents stay well-formed."""
    payload = current.model_dump(mode="python")
    payload.update(fields)
    return Trip.model_validate(payload)


def merge_user(current: User, fields: Mapping[str, Any]) -> User:
    payload = current.model_dump(mode="python")
    payload.update(fields)
    return User.model_validate(payload)


def history_sort_key(trip: Trip) -> float:
    return trip.end_time.timestamp() if trip.end_time else float("-inf")


def select_history(trips: list[Trip], user_id: str, limit: int) -> list[Trip]:
    """Completed trips for `user_id`, most recently ended first."""
    done = [t for t in trips if t.user_id == user_id and t.status == "completed"]
    done.sort(key=history_sort_key, reverse=True)
    return done[:limit]
