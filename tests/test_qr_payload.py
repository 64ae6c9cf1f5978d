import pytest

from farepass.config.settings import BusStop, Settings
from farepass.domain.errors import InvalidLocation, InvalidUserId
from farepass.domain.models import Location
from farepass.identity import ClientSuppliedIdentity, generate_user_id
from farepass.stops.qr import parse_qr_payload, qr_payload, stops_with_payloads


def test_parse_json_payload():
    loc = parse_qr_payload('{"lat": 15.2993, "lng": 74.124}')
    assert loc == Location(lat=15.2993, lng=74.124)


def test_parse_manual_lat_lng_entry():
    assert parse_qr_payload(" 15.3173 , 74.124 ") == Location(lat=15.3173, lng=74.124)


@pytest.mark.parametrize(
    "text",
    ["", "   ", "{not json", "[15.2, 74.1]", '{"lat": 15.2}', "15.2", "a,b", "1,2,3", '{"lat": "x", "lng": 1}'],
)
def test_parse_rejects_garbage(text):
    with pytest.raises(InvalidLocation) as exc:
        parse_qr_payload(text)
    assert exc.value.field == "qr_payload"


def test_payload_text_parses_back_to_the_stop():
    stop = BusStop(name="Bus Stop C - Hospital", lat=15.3373, lng=74.124)
    assert qr_payload(stop) == '{"lat": 15.3373, "lng": 74.124}'
    assert parse_qr_payload(qr_payload(stop)) == Location(lat=stop.lat, lng=stop.lng)


def test_stops_with_payloads_keeps_order():
    settings = Settings(stops=[BusStop(name="A", lat=1, lng=2), BusStop(name="B", lat=3, lng=4)])
    out = stops_with_payloads(settings)
    assert [s["name"] for s in out] == ["A", "B"]
    assert out[1] == {"name": "B", "lat": 3.0, "lng": 4.0, "qr_payload": '{"lat": 3.0, "lng": 4.0}'}


def test_client_supplied_identity_trims_and_validates():
    resolver = ClientSuppliedIdentity()
    assert resolver.resolve("  rider-7 ") == "rider-7"
    with pytest.raises(InvalidUserId):
        resolver.resolve(None)
    with pytest.raises(InvalidUserId):
        resolver.resolve("   ")
    with pytest.raises(InvalidUserId):
        resolver.resolve("x" * 129)


def test_generated_ids_are_opaque_and_distinct():
    ids = {generate_user_id() for _ in range(50)}
    assert len(ids) == 50
    for user_id in ids:
        assert len(user_id) == 26
        assert user_id.isalnum() and user_id == user_id.lower()
