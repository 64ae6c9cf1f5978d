"""
FarePass CLI entrypoint.

Useful for demos and support work without the rider web app. Trip commands run
against the configured local store (set `FAREPASS_STORAGE_BACKEND=file` so trips
survive between invocations), or against a running API with `--api-url`.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any
from urllib.parse import quote

import httpx

from farepass.config.settings import get_settings
from farepass.core.geo import distance_km
from farepass.core.http import error_detail, get_json, post_json
from farepass.core.logging import configure_logging
from farepass.core.time import to_aware
from farepass.domain.errors import FareError
from farepass.identity import ClientSuppliedIdentity, generate_user_id
from farepass.ledger.trips import TripLedger
from farepass.pricing.fare import fare_for
from farepass.stops.qr import stops_with_payloads
from farepass.storage.factory import build_store


class LocalBackend:
    """Drives a `TripLedger` built on the configured store."""

    def __init__(self, ledger: TripLedger):
        self._ledger = ledger

    def start(self, user_id: str, location: dict[str, Any] | None, qr: str | None, gps: dict[str, Any] | None) -> dict:
        loc = qr if qr is not None else location
        return self._ledger.start_trip(user_id, loc, gps).model_dump(mode="json")

    def gps(self, trip_id: str, point: dict[str, Any]) -> dict:
        return self._ledger.append_gps(trip_id, point).model_dump(mode="json")

    def end(self, trip_id: str, location: dict[str, Any] | None, qr: str | None, gps: dict[str, Any] | None) -> dict:
        loc = qr if qr is not None else location
        result = self._ledger.end_trip(trip_id, loc, gps)
        return {
            **result.trip.model_dump(mode="json"),
            "user_balance": result.user_balance,
            "balance_updated": result.balance_updated,
        }

    def history(self, user_id: str, limit: int | None) -> dict:
        trips = self._ledger.get_trip_history(user_id, limit)
        return {"trips": [t.model_dump(mode="json") for t in trips], "total": len(trips)}

    def user(self, user_id: str) -> dict:
        return self._ledger.get_user_overview(user_id).model_dump(mode="json")


class RemoteBackend:
    """Same operations over HTTP against a running FarePass API."""

    def __init__(self, base_url: str, *, timeout_seconds: float = 15):
        self._base = base_url.rstrip("/")
        self._timeout = timeout_seconds

    def _post(self, path: str, payload: dict[str, Any]) -> dict:
        body = {k: v for k, v in payload.items() if v is not None}
        return post_json(f"{self._base}{path}", payload=body, timeout_seconds=self._timeout)

    def _get(self, path: str, params: dict[str, Any] | None = None) -> dict:
        return get_json(f"{self._base}{path}", params=params, timeout_seconds=self._timeout)

    def start(self, user_id: str, location: dict[str, Any] | None, qr: str | None, gps: dict[str, Any] | None) -> dict:
        return self._post(
            "/api/trips/start",
            {"user_id": user_id, "location": location, "qr_payload": qr, "user_gps_location": gps},
        )

    def gps(self, trip_id: str, point: dict[str, Any]) -> dict:
        return self._post("/api/trips/update-gps", {"trip_id": trip_id, "gps_location": point})

    def end(self, trip_id: str, location: dict[str, Any] | None, qr: str | None, gps: dict[str, Any] | None) -> dict:
        return self._post(
            "/api/trips/end",
            {"trip_id": trip_id, "location": location, "qr_payload": qr, "user_gps_location": gps},
        )

    def history(self, user_id: str, limit: int | None) -> dict:
        return self._get(f"/api/trips/history/{quote(user_id, safe='')}", {"limit": limit} if limit else None)

    def user(self, user_id: str) -> dict:
        return self._get(f"/api/users/{quote(user_id, safe='')}")


def _backend(args: argparse.Namespace) -> LocalBackend | RemoteBackend:
    settings = get_settings()
    if args.api_url:
        return RemoteBackend(args.api_url, timeout_seconds=settings.app.http_timeout_seconds)
    return LocalBackend(TripLedger(build_store(settings), settings=settings))


def _location(lat: float | None, lng: float | None) -> dict[str, Any] | None:
    if lat is None and lng is None:
        return None
    return {"lat": lat, "lng": lng}


def _emit(args: argparse.Namespace, payload: dict, summary: str) -> None:
    if args.json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(summary)


def _cmd_distance(args: argparse.Namespace) -> int:
    km = distance_km(args.from_lat, args.from_lng, args.to_lat, args.to_lng)
    _emit(args, {"distance_km": km}, f"{km:.3f} km")
    return 0


def _cmd_fare(args: argparse.Namespace) -> int:
    fare_settings = get_settings().fare
    fare = fare_for(args.distance_km, fare_settings)
    _emit(
        args,
        {"distance_km": args.distance_km, "fare": fare, "currency": fare_settings.currency},
        f"{args.distance_km:.3f} km -> {fare:.2f} {fare_settings.currency}",
    )
    return 0


def _cmd_stops(args: argparse.Namespace) -> int:
    stops = stops_with_payloads(get_settings())
    if args.json:
        print(json.dumps({"stops": stops}, ensure_ascii=False, indent=2))
        return 0
    for stop in stops:
        print(f"{stop['name']}: {stop['qr_payload']}")
    return 0


def _cmd_new_user(args: argparse.Namespace) -> int:
    user_id = generate_user_id()
    _emit(args, {"user_id": user_id}, user_id)
    return 0


def _cmd_start(args: argparse.Namespace) -> int:
    user_id = ClientSuppliedIdentity().resolve(args.user)
    trip = _backend(args).start(
        user_id, _location(args.lat, args.lng), args.qr, _location(args.gps_lat, args.gps_lng)
    )
    _emit(args, trip, f"Trip {trip['id']} started at {trip['start_location']['lat']}, {trip['start_location']['lng']}")
    return 0


def _cmd_gps(args: argparse.Namespace) -> int:
    point: dict[str, Any] = {"lat": args.lat, "lng": args.lng}
    if args.accuracy is not None:
        point["accuracy"] = args.accuracy
    if args.timestamp:
        point["timestamp"] = to_aware(args.timestamp, get_settings().app.timezone).isoformat()
    result = _backend(args).gps(args.trip, point)
    _emit(args, result, f"{result['total_distance']:.3f} km over {result['path_points']} points")
    return 0


def _cmd_end(args: argparse.Namespace) -> int:
    result = _backend(args).end(args.trip, _location(args.lat, args.lng), args.qr, _location(args.gps_lat, args.gps_lng))
    summary = (
        f"Trip {result['id']} completed: {result['distance']:.3f} km "
        f"(straight line {result['straight_line_distance']:.3f} km), fare {result['fare']:.2f}, "
        f"balance {result['user_balance']:.2f}"
    )
    if not result.get("balance_updated", True):
        summary += " (balance update failed)"
    _emit(args, result, summary)
    return 0


def _cmd_history(args: argparse.Namespace) -> int:
    user_id = ClientSuppliedIdentity().resolve(args.user)
    data = _backend(args).history(user_id, args.limit)
    if args.json:
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return 0
    print(f"{data['total']} completed trip(s)")
    for trip in data["trips"]:
        print(f"  {trip['end_time']}  {trip['id']}  {trip['distance']:.3f} km  fare={trip['fare']:.2f}")
    return 0


def _cmd_user(args: argparse.Namespace) -> int:
    user_id = ClientSuppliedIdentity().resolve(args.user)
    data = _backend(args).user(user_id)
    current = data.get("current_trip")
    summary = f"{data['name']} ({data['id']}): balance {data['balance']:.2f}"
    if current:
        summary += f", trip {current['id']} in progress"
    _emit(args, data, summary)
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("farepass.api.app:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _add_location_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--lat", type=float, default=None, help="Stop latitude (from the QR code)")
    p.add_argument("--lng", type=float, default=None, help="Stop longitude (from the QR code)")
    p.add_argument("--qr", type=str, default=None, help='Decoded QR text, e.g. \'{"lat": 15.2993, "lng": 74.124}\'')
    p.add_argument("--gps-lat", type=float, default=None, help="Device GPS latitude")
    p.add_argument("--gps-lng", type=float, default=None, help="Device GPS longitude")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the FarePass CLI."""
    parser = argparse.ArgumentParser(prog="farepass")
    parser.add_argument("--api-url", type=str, default=None, help="Talk to a running API instead of the local store")
    parser.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override app.log_level",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    d = sub.add_parser("distance", help="Haversine distance between two points (km).")
    d.add_argument("from_lat", type=float)
    d.add_argument("from_lng", type=float)
    d.add_argument("to_lat", type=float)
    d.add_argument("to_lng", type=float)
    d.set_defaults(func=_cmd_distance)

    f = sub.add_parser("fare", help="Fare for a distance using configured rate/minimum.")
    f.add_argument("distance_km", type=float)
    f.set_defaults(func=_cmd_fare)

    s = sub.add_parser("stops", help="List configured bus stops and their QR payloads.")
    s.set_defaults(func=_cmd_stops)

    n = sub.add_parser("new-user", help="Generate a new rider id.")
    n.set_defaults(func=_cmd_new_user)

    st = sub.add_parser("start", help="Start a trip at a stop.")
    st.add_argument("--user", required=True)
    _add_location_args(st)
    st.set_defaults(func=_cmd_start)

    g = sub.add_parser("gps", help="Record a GPS sample for an active trip.")
    g.add_argument("--trip", required=True)
    g.add_argument("--lat", required=True, type=float)
    g.add_argument("--lng", required=True, type=float)
    g.add_argument("--accuracy", type=float, default=None)
    g.add_argument("--timestamp", type=str, default=None, help="ISO capture time (default: now)")
    g.set_defaults(func=_cmd_gps)

    e = sub.add_parser("end", help="End a trip at a stop and charge the fare.")
    e.add_argument("--trip", required=True)
    _add_location_args(e)
    e.set_defaults(func=_cmd_end)

    h = sub.add_parser("history", help="Completed trips for a rider (newest first).")
    h.add_argument("--user", required=True)
    h.add_argument("--limit", type=int, default=None)
    h.set_defaults(func=_cmd_history)

    u = sub.add_parser("user", help="Rider balance and open trip.")
    u.add_argument("--user", required=True)
    u.set_defaults(func=_cmd_user)

    sv = sub.add_parser("serve", help="Run the API with uvicorn.")
    sv.add_argument("--host", default="127.0.0.1")
    sv.add_argument("--port", type=int, default=8000)
    sv.add_argument("--reload", action="store_true")
    sv.set_defaults(func=_cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m farepass.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except FareError as e:
        print(f"error: {e.code}: {e.message}", file=sys.stderr)
        return 2
    except httpx.HTTPStatusError as e:
        detail = error_detail(e)
        print(f"error: {detail.get('code')}: {detail.get('message')}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
