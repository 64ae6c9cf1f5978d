from __future__ import annotations

# Trip lifecycle + settlement.
#
#   NONE --start_trip--> STARTED --append_gps--> STARTED --end_trip--> COMPLETED
#
# Every operation reads a fresh snapshot from the store, checks all preconditions,
# and only then writes. The ledger holds no trip or user state between calls.
#
# end_trip commits in two writes (mark completed, then debit). They are not atomic:
# if the debit write fails the trip stays completed and charged, and the result
# says so (`balance_updated=False`) instead of rolling back.

import logging
import uuid
from datetime import datetime
from typing import Any, Callable

from farepass.config.settings import Settings, get_settings
from farepass.core.geo import distance_between, path_distance_km
from farepass.core.path_filter import filter_gps_points
from farepass.core.time import utc_now
from farepass.domain.errors import (
    InsufficientBalance,
    PersistenceFailure,
    TripAlreadyActive,
    TripNotActive,
    TripNotFound,
    UserNotFound,
)
from farepass.domain.models import (
    EndTripResult,
    GpsPoint,
    GpsUpdateResult,
    Trip,
    User,
    UserLocation,
    UserOverview,
    coerce_gps_point,
    coerce_location,
)
from farepass.pricing.fare import fare_for
from farepass.storage.base import TripStore

logger = logging.getLogger(__name__)


def _new_trip_id() -> str:
    return str(uuid.uuid4())


class TripLedger:
    """Start, track and settle bus trips against a `TripStore`."""

    def __init__(
        self,
        store: TripStore,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_trip_id,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock
        self._id_factory = id_factory

    @property
    def store(self) -> TripStore:
        return self._store

    @property
    def settings(self) -> Settings:
        return self._settings

    def _user_location(self, value: Any, *, now: datetime) -> UserLocation | None:
        if value is None:
            return None
        point = coerce_gps_point(value, now=now, timezone=self._settings.app.timezone, field="user_gps_location")
        return UserLocation(lat=point.lat, lng=point.lng, timestamp=point.timestamp)

    def _active_trip(self, trip_id: str) -> Trip:
        trip = self._store.get_trip(trip_id)
        if trip is None:
            logger.info("Trip not found: %s", trip_id)
            raise TripNotFound(trip_id)
        if trip.status != "started":
            logger.info("Trip %s is not active (status=%s)", trip_id, trip.status)
            raise TripNotActive(trip_id, trip.status)
        return trip

    def start_trip(self, user_id: str, start_location: Any, user_gps_location: Any = None) -> Trip:
        """Open a trip at the scanned stop; at most one open trip per user."""
        existing = self._store.get_current_trip(user_id)
        if existing is not None:
            logger.info("Trip already in progress for user %s: %s", user_id, existing.id)
            raise TripAlreadyActive(existing.id, existing.status)

        location = coerce_location(start_location, field="location")
        now = self._clock()
        user_start = self._user_location(user_gps_location, now=now)

        trip = Trip(
            id=self._id_factory(),
            user_id=user_id,
            status="started",
            start_location=location,
            user_start_location=user_start,
            start_time=now,
            gps_path=[],
            total_gps_distance=0.0,
        )
        created = self._store.create_trip(trip)
        logger.info("Trip %s started for user %s at (%.4f, %.4f)", created.id, user_id, location.lat, location.lng)
        return created

    def append_gps(self, trip_id: str, point: Any) -> GpsUpdateResult:
        """Add a GPS sample, re-filter the whole path and refresh the running distance."""
        trip = self._active_trip(trip_id)
        now = self._clock()
        sample = coerce_gps_point(point, now=now, timezone=self._settings.app.timezone)

        path = [*trip.gps_path, sample]
        filtered = filter_gps_points(path, self._settings.tracking.min_point_separation_m)
        total = path_distance_km(filtered)

        updated = self._store.update_trip(
            trip_id,
            {"gps_path": filtered, "total_gps_distance": total, "last_gps_update": now},
        )
        if updated is None:
            raise PersistenceFailure(f"Failed to update GPS path for trip {trip_id}")

        logger.info("GPS updated for trip %s: total distance %.3f km (%d points)", trip_id, total, len(filtered))
        return GpsUpdateResult(total_distance=total, path_points=len(filtered))

    def end_trip(self, trip_id: str, end_location: Any, user_gps_location: Any = None) -> EndTripResult:
        """Close a trip, charge the fare and debit the rider's balance."""
        trip = self._active_trip(trip_id)
        end = coerce_location(end_location, field="location")
        now = self._clock()
        user_end = self._user_location(user_gps_location, now=now)

        straight = distance_between(trip.start_location, end)
        final_path = list(trip.gps_path)
        actual = straight
        # Path distance needs both a recorded path and a final GPS fix; otherwise charge the straight line.
        if user_end is not None and final_path:
            final_path.append(GpsPoint(lat=user_end.lat, lng=user_end.lng, timestamp=user_end.timestamp))
            actual = path_distance_km(final_path)

        fare = fare_for(actual, self._settings.fare)
        logger.info(
            "Trip %s distance: straight=%.3f km path=%.3f km (%d points) fare=%.2f",
            trip_id,
            straight,
            actual,
            len(final_path),
            fare,
        )

        user = self._store.get_user(trip.user_id)
        if user is None:
            raise UserNotFound(trip.user_id)
        if user.balance < fare:
            logger.info("Insufficient balance for user %s: balance=%.2f fare=%.2f", user.id, user.balance, fare)
            raise InsufficientBalance(user.balance, fare)

        completed = self._store.update_trip(
            trip_id,
            {
                "status": "completed",
                "end_location": end,
                "user_end_location": user_end,
                "end_time": now,
                "distance": actual,
                "straight_line_distance": straight,
                "fare": fare,
                "gps_path": final_path,
                "total_gps_distance": actual,
            },
        )
        if completed is None:
            raise PersistenceFailure(f"Failed to update trip {trip_id}")
        logger.info("Trip %s completed: %.3f km, fare %.2f", trip_id, actual, fare)

        new_balance = user.balance - fare
        try:
            debited = self._store.update_user(user.id, {"balance": new_balance})
        except PersistenceFailure as exc:
            logger.warning("Failed to update balance for user %s after completing trip %s: %s", user.id, trip_id, exc)
            debited = None
        else:
            if debited is None:
                logger.warning("Failed to update balance for user %s, but trip %s was completed", user.id, trip_id)

        if debited is None:
            return EndTripResult(trip=completed, user_balance=user.balance, balance_updated=False)
        return EndTripResult(trip=completed, user_balance=debited.balance, balance_updated=True)

    def get_trip(self, trip_id: str) -> Trip:
        trip = self._store.get_trip(trip_id)
        if trip is None:
            raise TripNotFound(trip_id)
        return trip

    def get_current_trip(self, user_id: str) -> Trip | None:
        return self._store.get_current_trip(user_id)

    def get_trip_history(self, user_id: str, limit: int | None = None) -> list[Trip]:
        return self._store.get_trip_history(user_id, limit or self._settings.users.history_limit)

    def get_user(self, user_id: str) -> User:
        user = self._store.get_user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    def get_user_overview(self, user_id: str) -> UserOverview:
        """User record plus their open trip and recent history."""
        user = self.get_user(user_id)
        return UserOverview(
            id=user.id,
            name=user.name,
            balance=user.balance,
            current_trip=self.get_current_trip(user_id),
            trip_history=self.get_trip_history(user_id),
        )
