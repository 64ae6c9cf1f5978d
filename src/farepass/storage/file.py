from __future__ import annotations

import json
import logging
import threading
from hashlib import sha256
from pathlib import Path
from typing import Any, Iterator, Mapping

from pydantic import ValidationError

from farepass.config.settings import UsersSettings
from farepass.domain.errors import PersistenceFailure
from farepass.domain.models import Trip, User
from farepass.storage.base import merge_trip, merge_user, new_user, select_history

"""
On-disk JSON document store.

Layout:
- one JSON document per record under `<base_dir>/trips/` and `<base_dir>/users/`,
- file names are SHA-256 digests of the record id (ids are client-supplied and
  may contain anything),
- writes go through a temporary file + atomic replace so a crash never leaves a
  half-written document.

Lookups by user (current trip, history) scan the trips directory; that is fine for
a single-node deployment where trips are counted in thousands.
"""

logger = logging.getLogger(__name__)


class JsonFileTripStore:
    backend = "file"

    def __init__(self, base_dir: Path, users: UsersSettings | None = None):
        self._base_dir = Path(base_dir)
        self._users_settings = users or UsersSettings()
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _doc_path(self, namespace: str, record_id: str) -> Path:
        digest = sha256(f"{namespace}:{record_id}".encode("utf-8")).hexdigest()
        return self._base_dir / namespace / f"{digest}.json"

    def _read(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceFailure(f"Could not read {path.name}: {exc}") from exc
        if not isinstance(raw, dict):
            raise PersistenceFailure(f"Invalid document shape in {path.name}; expected an object.")
        return raw

    def _write(self, path: Path, payload: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise PersistenceFailure(f"Could not write {path.name}: {exc}") from exc

    def _load_trip(self, path: Path) -> Trip | None:
        raw = self._read(path)
        if raw is None:
            return None
        try:
            return Trip.model_validate(raw)
        except ValidationError as exc:
            raise PersistenceFailure(f"Corrupt trip document {path.name}") from exc

    def _load_user(self, path: Path) -> User | None:
        raw = self._read(path)
        if raw is None:
            return None
        try:
            return User.model_validate(raw)
        except ValidationError as exc:
            raise PersistenceFailure(f"Corrupt user document {path.name}") from exc

    def _iter_trips(self) -> Iterator[Trip]:
        trips_dir = self._base_dir / "trips"
        if not trips_dir.is_dir():
            return
        for path in sorted(trips_dir.glob("*.json")):
            trip = self._load_trip(path)
            if trip is not None:
                yield trip

    def create_trip(self, trip: Trip) -> Trip:
        with self._lock:
            self._write(self._doc_path("trips", trip.id), trip.model_dump(mode="json"))
        logger.info("Trip created on disk: %s", trip.id)
        return trip

    def get_trip(self, trip_id: str) -> Trip | None:
        with self._lock:
            return self._load_trip(self._doc_path("trips", trip_id))

    def update_trip(self, trip_id: str, fields: Mapping[str, Any]) -> Trip | None:
        path = self._doc_path("trips", trip_id)
        with self._lock:
            current = self._load_trip(path)
            if current is None:
                logger.warning("Trip not found for update: %s", trip_id)
                return None
            updated = merge_trip(current, fields)
            self._write(path, updated.model_dump(mode="json"))
            return updated

    def get_current_trip(self, user_id: str) -> Trip | None:
        with self._lock:
            for trip in self._iter_trips():
                if trip.user_id == user_id and trip.status == "started":
                    return trip
        return None

    def get_user(self, user_id: str) -> User | None:
        path = self._doc_path("users", user_id)
        with self._lock:
            user = self._load_user(path)
            if user is None:
                user = new_user(user_id, self._users_settings)
                self._write(path, user.model_dump(mode="json"))
                logger.info("Created new user on disk: %s", user_id)
            return user

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> User | None:
        path = self._doc_path("users", user_id)
        with self._lock:
            current = self._load_user(path)
            if current is None:
                return None
            updated = merge_user(current, fields)
            self._write(path, updated.model_dump(mode="json"))
            return updated

    def get_trip_history(self, user_id: str, limit: int | None = None) -> list[Trip]:
        with self._lock:
            trips = list(self._iter_trips())
        return select_history(trips, user_id, limit or self._users_settings.history_limit)

    def describe(self) -> dict[str, Any]:
        def count(namespace: str) -> int:
            d = self._base_dir / namespace
            return len(list(d.glob("*.json"))) if d.is_dir() else 0

        with self._lock:
            return {
                "backend": self.backend,
                "dir": str(self._base_dir),
                "trip_count": count("trips"),
                "user_count": count("users"),
            }
