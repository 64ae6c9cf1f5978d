from datetime import datetime, timedelta, timezone

import pytest

from farepass.config.settings import Settings, UsersSettings
from farepass.domain.errors import PersistenceFailure
from farepass.domain.models import GpsPoint, Location, Trip
from farepass.storage.factory import build_store
from farepass.storage.file import JsonFileTripStore
from farepass.storage.memory import InMemoryTripStore

T0 = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)


def _trip(trip_id: str, user_id: str = "rider-1", **updates) -> Trip:
    trip = Trip(
        id=trip_id,
        user_id=user_id,
        start_location=Location(lat=15.2993, lng=74.124),
        start_time=T0,
    )
    return trip.model_copy(update=updates)


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryTripStore(UsersSettings(history_limit=3))
    return JsonFileTripStore(tmp_path / "store", UsersSettings(history_limit=3))


def test_trip_round_trip_and_partial_update(store):
    store.create_trip(_trip("t1"))

    point = GpsPoint(lat=15.3, lng=74.125, timestamp=T0 + timedelta(minutes=1), accuracy=5)
    updated = store.update_trip("t1", {"gps_path": [point], "total_gps_distance": 0.0})

    assert updated.gps_path == [point]
    again = store.get_trip("t1")
    assert again == updated
    assert again.start_time == T0


def test_update_of_unknown_ids_returns_none(store):
    assert store.update_trip("nope", {"status": "completed"}) is None
    assert store.update_user("nobody", {"balance": 1}) is None
    assert store.get_trip("nope") is None


def test_snapshots_are_not_live_references(store):
    store.create_trip(_trip("t1"))
    snapshot = store.get_trip("t1")
    snapshot.gps_path.append(GpsPoint(lat=1, lng=1, timestamp=T0))
    assert store.get_trip("t1").gps_path == []


def test_current_trip_is_the_started_one(store):
    store.create_trip(_trip("done", status="completed", end_time=T0))
    assert store.get_current_trip("rider-1") is None

    store.create_trip(_trip("open"))
    store.create_trip(_trip("other", user_id="rider-2"))
    assert store.get_current_trip("rider-1").id == "open"


def test_users_are_created_lazily_with_default_balance(store):
    user = store.get_user("0123456789abcdef")
    assert user.balance == 500
    assert user.name == "User 01234567"

    store.update_user(user.id, {"balance": 12.5})
    assert store.get_user(user.id).balance == 12.5


def test_history_is_completed_newest_first_and_bounded(store):
    for i in range(5):
        store.create_trip(_trip(f"t{i}", status="completed", end_time=T0 + timedelta(minutes=i)))
    store.create_trip(_trip("open"))
    store.create_trip(_trip("foreign", user_id="rider-2", status="completed", end_time=T0))

    history = store.get_trip_history("rider-1")
    assert [t.id for t in history] == ["t4", "t3", "t2"]
    assert [t.id for t in store.get_trip_history("rider-1", limit=1)] == ["t4"]


def test_describe_counts_records(store):
    store.create_trip(_trip("t1"))
    store.get_user("rider-1")
    info = store.describe()
    assert info["backend"] == store.backend
    assert info["trip_count"] == 1
    assert info["user_count"] == 1


def test_file_store_survives_a_new_instance(tmp_path):
    JsonFileTripStore(tmp_path).create_trip(_trip("t1"))
    assert JsonFileTripStore(tmp_path).get_trip("t1").id == "t1"


def test_file_store_reports_corrupt_documents(tmp_path):
    store = JsonFileTripStore(tmp_path)
    store.create_trip(_trip("t1"))
    (path,) = (tmp_path / "trips").glob("*.json")
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceFailure):
        store.get_trip("t1")


def test_build_store_selects_backend(tmp_path):
    assert isinstance(build_store(Settings()), InMemoryTripStore)

    settings = Settings.model_validate({"storage": {"backend": "file", "dir": str(tmp_path)}})
    file_store = build_store(settings)
    assert isinstance(file_store, JsonFileTripStore)
    assert file_store.base_dir == tmp_path


def test_build_store_requires_a_mongo_uri():
    settings = Settings.model_validate({"storage": {"backend": "mongo"}})
    with pytest.raises(ValueError, match="MONGODB_URI"):
        build_store(settings)
