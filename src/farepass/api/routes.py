"""
API routes.

Endpoints:
- POST `/api/trips/start`, `/api/trips/update-gps`, `/api/trips/end`: trip lifecycle.
- GET  `/api/trips/{trip_id}`, `/api/trips/history/{user_id}`: trip lookups.
- GET  `/api/users/{user_id}`, `/api/users/{user_id}/current-trip`: rider state.
- GET  `/api/stops`, `/api/fare/quote`, `/api/health`: reference data + diagnostics.

Ledger errors are reported as `{"detail": {"code", "message", ...}}` with the
status carried by the error type.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Iterator

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from farepass.config.settings import get_settings
from farepass.domain.errors import FareError
from farepass.domain.models import GpsUpdateResult, Trip
from farepass.identity import ClientSuppliedIdentity, IdentityResolver
from farepass.ledger.trips import TripLedger
from farepass.pricing.fare import fare_for, minimum_fare_distance_km
from farepass.stops.qr import stops_with_payloads
from farepass.storage.factory import build_store

logger = logging.getLogger(__name__)

router = APIRouter()


class StartTripRequest(BaseModel):
    user_id: str | None = None
    location: dict[str, Any] | None = None
    qr_payload: str | None = None
    user_gps_location: dict[str, Any] | None = None


class GpsUpdateRequest(BaseModel):
    trip_id: str
    gps_location: dict[str, Any] | None = None


class EndTripRequest(BaseModel):
    trip_id: str
    location: dict[str, Any] | None = None
    qr_payload: str | None = None
    user_gps_location: dict[str, Any] | None = None


@lru_cache
def _ledger() -> TripLedger:
    settings = get_settings()
    return TripLedger(build_store(settings), settings=settings)


@lru_cache
def _identity() -> IdentityResolver:
    return ClientSuppliedIdentity()


@contextmanager
def _as_http_errors(action: str) -> Iterator[None]:
    try:
        yield
    except FareError as e:
        raise HTTPException(status_code=e.status_code, detail=e.details()) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to %s", action)
        raise HTTPException(
            status_code=500,
            detail={"code": "INTERNAL_ERROR", "message": f"Failed to {action}: {e}"},
        ) from e


def _scanned_location(location: dict[str, Any] | None, qr_text: str | None) -> Any:
    # Raw QR text goes to the ledger as-is; it is decoded after the trip checks.
    if location is None and qr_text is not None:
        return qr_text
    return location


@router.get("/api/health")
def get_health() -> dict:
    """Report app name and storage backend record counts."""
    settings = get_settings()
    with _as_http_errors("describe storage"):
        storage = _ledger().store.describe()
    return {"status": "ok", "app": settings.app.name, "storage": storage}


@router.get("/api/stops")
def get_stops() -> dict:
    """Return configured bus stops with the QR payload text printed at each."""
    return {"stops": stops_with_payloads(get_settings())}


@router.get("/api/fare/quote")
def get_fare_quote(distance_km: float = Query(..., ge=0)) -> dict:
    """Quote the fare for a distance using the configured rate and minimum."""
    fare_settings = get_settings().fare
    return {
        "distance_km": distance_km,
        "fare": fare_for(distance_km, fare_settings),
        "rate_per_km": fare_settings.rate_per_km,
        "minimum_fare": fare_settings.minimum_fare,
        "minimum_applies": distance_km <= minimum_fare_distance_km(fare_settings),
        "currency": fare_settings.currency,
    }


@router.post("/api/trips/start", response_model=Trip)
def post_start_trip(req: StartTripRequest) -> Trip:
    """Start a trip for the rider at the scanned stop."""
    with _as_http_errors("start trip"):
        user_id = _identity().resolve(req.user_id)
        location = _scanned_location(req.location, req.qr_payload)
        return _ledger().start_trip(user_id, location, req.user_gps_location)


@router.post("/api/trips/update-gps", response_model=GpsUpdateResult)
def post_update_gps(req: GpsUpdateRequest) -> GpsUpdateResult:
    """Append one GPS sample to an active trip."""
    with _as_http_errors("update GPS"):
        return _ledger().append_gps(req.trip_id, req.gps_location)


@router.post("/api/trips/end")
def post_end_trip(req: EndTripRequest) -> dict:
    """End a trip, charge the fare and return the trip plus the rider's balance."""
    with _as_http_errors("end trip"):
        location = _scanned_location(req.location, req.qr_payload)
        result = _ledger().end_trip(req.trip_id, location, req.user_gps_location)
    return {
        **result.trip.model_dump(mode="json"),
        "user_balance": result.user_balance,
        "balance_updated": result.balance_updated,
    }


@router.get("/api/trips/history/{user_id}")
def get_trip_history(user_id: str, limit: int | None = Query(default=None, ge=1, le=100)) -> dict:
    """Return the rider's most recent completed trips (newest first)."""
    with _as_http_errors("fetch trip history"):
        resolved = _identity().resolve(user_id)
        trips = _ledger().get_trip_history(resolved, limit)
    return {"trips": [t.model_dump(mode="json") for t in trips], "total": len(trips)}


@router.get("/api/trips/{trip_id}", response_model=Trip)
def get_trip(trip_id: str) -> Trip:
    with _as_http_errors("fetch trip"):
        return _ledger().get_trip(trip_id)


@router.get("/api/users/{user_id}")
def get_user(user_id: str) -> dict:
    """Return the rider's balance, open trip and history (creating the rider on first sight)."""
    with _as_http_errors("get user data"):
        resolved = _identity().resolve(user_id)
        overview = _ledger().get_user_overview(resolved)
    return overview.model_dump(mode="json")


@router.get("/api/users/{user_id}/current-trip")
def get_current_trip(user_id: str) -> dict:
    with _as_http_errors("fetch current trip"):
        resolved = _identity().resolve(user_id)
        trip = _ledger().get_current_trip(resolved)
    return {"trip": trip.model_dump(mode="json") if trip else None}
