import pytest
from starlette.testclient import TestClient

from farepass.api.app import app, create_app
from farepass.config.settings import ApiSettings, Settings
from farepass.ledger.trips import TripLedger
from farepass.storage.memory import InMemoryTripStore


@pytest.fixture
def client(monkeypatch):
    # Patch the cached ledger factory so every test gets a fresh in-memory store.
    import farepass.api.routes as routes

    ledger = TripLedger(InMemoryTripStore(), settings=Settings())
    monkeypatch.setattr(routes, "_ledger", lambda: ledger)
    with TestClient(app) as c:
        yield c


def test_full_trip_over_http(client):
    resp = client.post(
        "/api/trips/start",
        json={"user_id": "rider-1", "qr_payload": '{"lat": 15.2993, "lng": 74.124}'},
    )
    assert resp.status_code == 200
    trip = resp.json()
    assert trip["status"] == "started"
    assert trip["start_location"] == {"lat": 15.2993, "lng": 74.124}

    for lat in (15.2993, 15.3033, 15.3093):
        resp = client.post("/api/trips/update-gps", json={"trip_id": trip["id"], "gps_location": {"lat": lat, "lng": 74.124}})
        assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["path_points"] == 3
    assert body["total_distance"] > 1.0

    resp = client.post(
        "/api/trips/end",
        json={
            "trip_id": trip["id"],
            "location": {"lat": 15.3173, "lng": 74.124},
            "user_gps_location": {"lat": 15.3173, "lng": 74.124},
        },
    )
    assert resp.status_code == 200
    done = resp.json()
    assert done["status"] == "completed"
    assert done["fare"] == 5
    assert done["user_balance"] == 495
    assert done["balance_updated"] is True

    resp = client.get("/api/trips/history/rider-1")
    assert resp.json()["total"] == 1
    assert resp.json()["trips"][0]["id"] == trip["id"]

    resp = client.get(f"/api/trips/{trip['id']}")
    assert resp.json()["status"] == "completed"


def test_second_start_reports_the_active_trip(client):
    first = client.post("/api/trips/start", json={"user_id": "rider-1", "location": {"lat": 15.2993, "lng": 74.124}}).json()

    resp = client.post("/api/trips/start", json={"user_id": "rider-1", "location": {"lat": 15.3173, "lng": 74.124}})

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["code"] == "TRIP_ALREADY_ACTIVE"
    assert detail["trip_id"] == first["id"]
    assert detail["trip_status"] == "started"


@pytest.mark.parametrize(
    "payload,code",
    [
        ({"user_id": "rider-1"}, "INVALID_LOCATION"),
        ({"user_id": "rider-1", "location": {"lat": 15.2993}}, "INVALID_LOCATION"),
        ({"user_id": "rider-1", "qr_payload": "not a stop"}, "INVALID_LOCATION"),
        ({"user_id": "   ", "location": {"lat": 1, "lng": 2}}, "INVALID_USER_ID"),
    ],
)
def test_start_validation_errors(client, payload, code):
    resp = client.post("/api/trips/start", json=payload)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == code


def test_unknown_trip_is_404(client):
    resp = client.post("/api/trips/end", json={"trip_id": "missing", "location": {"lat": 1, "lng": 2}})
    assert resp.status_code == 404
    assert resp.json()["detail"] == {"code": "TRIP_NOT_FOUND", "message": "Trip not found", "trip_id": "missing"}

    resp = client.post("/api/trips/update-gps", json={"trip_id": "missing", "gps_location": {"lat": 1, "lng": 2}})
    assert resp.status_code == 404


def test_insufficient_balance_is_reported_with_amounts(client, monkeypatch):
    import farepass.api.routes as routes

    store = routes._ledger().store
    store.get_user("rider-1")
    store.update_user("rider-1", {"balance": 2})
    trip = client.post("/api/trips/start", json={"user_id": "rider-1", "location": {"lat": 15.2993, "lng": 74.124}}).json()

    resp = client.post("/api/trips/end", json={"trip_id": trip["id"], "location": {"lat": 15.3173, "lng": 74.124}})

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["code"] == "INSUFFICIENT_BALANCE"
    assert detail["balance"] == 2
    assert detail["fare_required"] == 5
    assert client.get("/api/users/rider-1/current-trip").json()["trip"]["id"] == trip["id"]


def test_user_overview_creates_rider_on_first_sight(client):
    resp = client.get("/api/users/abcdefghijklmnop")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "User abcdefgh"
    assert data["balance"] == 500
    assert data["current_trip"] is None
    assert data["trip_history"] == []


def test_reference_endpoints(client):
    stops = client.get("/api/stops").json()["stops"]
    assert stops[0]["name"] == "Bus Stop A - City Center"
    assert stops[0]["qr_payload"] == '{"lat": 15.2993, "lng": 74.124}'

    quote = client.get("/api/fare/quote", params={"distance_km": 10}).json()
    assert quote["fare"] == 20
    assert quote["minimum_applies"] is False
    assert client.get("/api/fare/quote", params={"distance_km": 1}).json()["minimum_applies"] is True

    health = client.get("/api/health").json()
    assert health["status"] == "ok"
    assert health["storage"]["backend"] == "memory"


def test_unexpected_errors_become_internal_error(client, monkeypatch):
    import farepass.api.routes as routes

    def boom(*_args, **_kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(routes._ledger(), "start_trip", boom)
    resp = client.post("/api/trips/start", json={"user_id": "rider-1", "location": {"lat": 1, "lng": 2}})
    assert resp.status_code == 500
    assert resp.json()["detail"]["code"] == "INTERNAL_ERROR"


def test_unknown_trip_wins_over_bad_qr_text(client):
    resp = client.post("/api/trips/end", json={"trip_id": "missing", "qr_payload": "garbage"})
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "TRIP_NOT_FOUND"


def test_active_trip_wins_over_bad_qr_text(client):
    first = client.post("/api/trips/start", json={"user_id": "rider-1", "qr_payload": "15.2993,74.124"}).json()

    resp = client.post("/api/trips/start", json={"user_id": "rider-1", "qr_payload": "garbage"})

    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "TRIP_ALREADY_ACTIVE"
    assert resp.json()["detail"]["trip_id"] == first["id"]


def test_cors_allows_local_origins_unless_origins_are_listed():
    local = TestClient(create_app(Settings()))
    resp = local.get("/api/stops", headers={"Origin": "http://localhost:3000"})
    assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"

    listed = TestClient(create_app(Settings(api=ApiSettings(cors_origins=["https://rider.example"]))))
    resp = listed.get("/api/stops", headers={"Origin": "http://localhost:3000"})
    assert "access-control-allow-origin" not in resp.headers
    resp = listed.get("/api/stops", headers={"Origin": "https://rider.example"})
    assert resp.headers["access-control-allow-origin"] == "https://rider.example"
