"""
Domain models (Pydantic).

These types are the contract between the ledger, the storage backends and the
API/CLI:
- `User` and `Trip` are the persisted records,
- `Location` / `GpsPoint` are the location readings a client reports,
- `GpsUpdateResult` / `EndTripResult` / `UserOverview` are ledger outputs.

Coordinates are only checked for being finite numbers; ranges are not enforced
because QR payloads and device GPS are trusted as-is.
"""

from __future__ import annotations

import json
import math
from datetime import datetime
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field

from farepass.core.time import to_aware
from farepass.domain.errors import InvalidLocation

TripStatus = Literal["started", "completed"]


class Location(BaseModel):
    """A lat/lng reading in decimal degrees (QR payload or device GPS)."""

    lat: float
    lng: float


class GpsPoint(BaseModel):
    """One timestamped sample on a trip's GPS path."""

    lat: float
    lng: float
    timestamp: datetime
    accuracy: float | None = None


class UserLocation(BaseModel):
    """Device GPS captured at trip start/end, kept for audit only."""

    lat: float
    lng: float
    timestamp: datetime


class User(BaseModel):
    id: str
    name: str
    balance: float


class Trip(BaseModel):
    id: str
    user_id: str
    status: TripStatus = "started"

    start_location: Location
    user_start_location: UserLocation | None = None
    start_time: datetime

    gps_path: list[GpsPoint] = Field(default_factory=list)
    total_gps_distance: float = 0.0
    last_gps_update: datetime | None = None

    end_location: Location | None = None
    user_end_location: UserLocation | None = None
    end_time: datetime | None = None
    distance: float | None = None
    straight_line_distance: float | None = None
    fare: float | None = None


class GpsUpdateResult(BaseModel):
    success: bool = True
    total_distance: float
    path_points: int


class EndTripResult(BaseModel):
    """A completed trip plus the balance the rider is left with.

    `balance_updated` is False when the trip was committed but the debit write
    failed; `user_balance` then reports the balance as known before the debit.
    """

    trip: Trip
    user_balance: float
    balance_updated: bool = True


class UserOverview(BaseModel):
    id: str
    name: str
    balance: float
    current_trip: Trip | None = None
    trip_history: list[Trip] = Field(default_factory=list)


def _coerce_coordinate(value: Any, *, field: str, axis: str) -> float:
    if isinstance(value, bool) or value is None:
        raise InvalidLocation(f"{field}.{axis} must be a number", field=field)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise InvalidLocation(f"{field}.{axis} must be a number", field=field) from None
    else:
        raise InvalidLocation(f"{field}.{axis} must be a number", field=field)
    if not math.isfinite(number):
        raise InvalidLocation(f"{field}.{axis} must be finite", field=field)
    return number


def _lookup(value: Any, key: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(key)
    return getattr(value, key, None)


def parse_location_text(text: str | None, *, field: str = "location") -> Location:
    """Decode scanned stop text: a JSON `{"lat", "lng"}` object or a manual `"lat,lng"`."""
    raw = (text or "").strip()
    if not raw:
        raise InvalidLocation(f"Missing {field}", field=field)

    if raw.startswith("{"):
        try:
            payload = json.loads(raw)
        except ValueError:
            raise InvalidLocation(f"{field} is not valid JSON", field=field) from None
        if not isinstance(payload, dict):
            raise InvalidLocation(f"{field} must be a JSON object", field=field)
        return coerce_location(payload, field=field)

    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 2:
        raise InvalidLocation(f"{field} must be JSON or 'lat,lng'", field=field)
    return coerce_location({"lat": parts[0], "lng": parts[1]}, field=field)


def coerce_location(value: Any, *, field: str = "location") -> Location:
    """Turn a `{lat, lng}` mapping, model or scanned text into a `Location`, else raise `InvalidLocation`."""
    if value is None:
        raise InvalidLocation(f"Missing {field}", field=field)
    if isinstance(value, Location):
        return value
    if isinstance(value, str):
        return parse_location_text(value, field=field)
    if not isinstance(value, Mapping) and not hasattr(value, "lat"):
        raise InvalidLocation(f"{field} must have lat and lng properties", field=field)
    lat = _coerce_coordinate(_lookup(value, "lat"), field=field, axis="lat")
    lng = _coerce_coordinate(_lookup(value, "lng"), field=field, axis="lng")
    return Location(lat=lat, lng=lng)


def coerce_gps_point(value: Any, *, now: datetime, timezone: str, field: str = "gps_location") -> GpsPoint:
    """Build a path sample from a GPS reading; capture time defaults to `now`."""
    location = coerce_location(value, field=field)

    raw_ts = _lookup(value, "timestamp")
    if isinstance(raw_ts, datetime) or (isinstance(raw_ts, str) and raw_ts.strip()):
        try:
            timestamp = to_aware(raw_ts, timezone)
        except ValueError:
            raise InvalidLocation(f"{field}.timestamp must be an ISO-8601 datetime", field=field) from None
    else:
        timestamp = now

    raw_accuracy = _lookup(value, "accuracy")
    accuracy = None
    if raw_accuracy is not None:
        accuracy = _coerce_coordinate(raw_accuracy, field=field, axis="accuracy")

    return GpsPoint(lat=location.lat, lng=location.lng, timestamp=timestamp, accuracy=accuracy)
