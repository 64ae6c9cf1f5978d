"""
Bus-stop QR payloads.

Each stop's QR code encodes a small JSON object, e.g. `{"lat": 15.2993, "lng": 74.124}`.
Decoding the *image* happens on the rider's device; this module only deals with the
decoded text, plus the manual `"lat,lng"` form riders can type when the camera fails.
"""

from __future__ import annotations

import json
from typing import Any

from farepass.config.settings import BusStop, Settings
from farepass.domain.models import Location, parse_location_text


def qr_payload(location: Location | BusStop) -> str:
    """Text to encode into a stop's QR image."""
    return json.dumps({"lat": location.lat, "lng": location.lng})


def parse_qr_payload(text: str | None, *, field: str = "qr_payload") -> Location:
    """Decode QR text (JSON object or `"lat,lng"`) into a `Location`."""
    return parse_location_text(text, field=field)


def stops_with_payloads(settings: Settings) -> list[dict[str, Any]]:
    """Configured stops plus the QR text for each (used by API, CLI and scripts)."""
    return [{**stop.model_dump(mode="json"), "qr_payload": qr_payload(stop)} for stop in settings.stops]
