"""
Caller-visible error kinds.

Every ledger/store failure is one of these. Each carries a stable `code` and the
HTTP status the API layer reports it with, so CLI and API render the same payload.
"""

from __future__ import annotations

from typing import Any


class FareError(Exception):
    code = "FARE_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def extra(self) -> dict[str, Any]:
        return {}

    def details(self) -> dict[str, Any]:
        """JSON-safe payload for API `detail` / CLI output."""
        return {"code": self.code, "message": self.message, **self.extra()}


class InvalidLocation(FareError):
    code = "INVALID_LOCATION"
    status_code = 400

    def __init__(self, message: str, *, field: str = "location"):
        super().__init__(message)
        self.field = field

    def extra(self) -> dict[str, Any]:
        return {"field": self.field}


class InvalidUserId(FareError):
    code = "INVALID_USER_ID"
    status_code = 400


class TripAlreadyActive(FareError):
    code = "TRIP_ALREADY_ACTIVE"
    status_code = 400

    def __init__(self, trip_id: str, trip_status: str):
        super().__init__("Trip already in progress")
        self.trip_id = trip_id
        self.trip_status = trip_status

    def extra(self) -> dict[str, Any]:
        return {"trip_id": self.trip_id, "trip_status": self.trip_status}


class TripNotFound(FareError):
    code = "TRIP_NOT_FOUND"
    status_code = 404

    def __init__(self, trip_id: str):
        super().__init__("Trip not found")
        self.trip_id = trip_id

    def extra(self) -> dict[str, Any]:
        return {"trip_id": self.trip_id}


class UserNotFound(FareError):
    code = "USER_NOT_FOUND"
    status_code = 404

    def __init__(self, user_id: str):
        super().__init__("User not found")
        self.user_id = user_id

    def extra(self) -> dict[str, Any]:
        return {"user_id": self.user_id}


class TripNotActive(FareError):
    code = "TRIP_NOT_ACTIVE"
    status_code = 400

    def __init__(self, trip_id: str, current_status: str):
        super().__init__("Trip is not active")
        self.trip_id = trip_id
        self.current_status = current_status

    def extra(self) -> dict[str, Any]:
        return {"trip_id": self.trip_id, "current_status": self.current_status}


class InsufficientBalance(FareError):
    code = "INSUFFICIENT_BALANCE"
    status_code = 400

    def __init__(self, balance: float, fare_required: float):
        super().__init__("Insufficient balance")
        self.balance = balance
        self.fare_required = fare_required

    def extra(self) -> dict[str, Any]:
        return {"balance": self.balance, "fare_required": self.fare_required}


class PersistenceFailure(FareError):
    """The storage backend could not complete an operation (never retried by the ledger)."""

    code = "PERSISTENCE_FAILURE"
    status_code = 500
