from __future__ import annotations

from typing import Any

from gpsfilter.ingestion.delta import (
    PositionUpdate,
    build_forward_delta,
    extract_position_updates,
    is_own_update,
    source_id_of,
    subscription_message,
)

_DELTA: dict[str, Any] = {
    "context": "vessels.urn:mrn:imo:mmsi:244000000",
    "updates": [
        {
            "$source": "n2k.177",
            "source": {"label": "n2k", "type": "NMEA2000", "src": "177"},
            "timestamp": "2026-01-01T00:00:00.000Z",
            "values": [
                {"path": "navigation.speedOverGround", "value": 3.2},
                {"path": "navigation.position", "value": {"latitude": 52.1, "longitude": 4.3}},
            ],
        }
    ],
}


def test_extract_position_updates() -> None:
    updates = extract_position_updates(_DELTA)
    assert len(updates) == 1
    update = updates[0]
    assert update.context == "vessels.urn:mrn:imo:mmsi:244000000"
    assert update.source_id == "n2k.177"
    assert update.timestamp == "2026-01-01T00:00:00.000Z"
    assert update.coordinates == {"latitude": 52.1, "longitude": 4.3}


def test_extract_skips_non_delta_messages() -> None:
    hello = {"name": "signalk-server", "version": "2.8.0", "self": "vessels.urn:mrn:imo:mmsi:244000000"}
    assert extract_position_updates(hello) == []
    assert extract_position_updates({"updates": "nope"}) == []


def test_extract_defaults_context_to_self() -> None:
    delta = {"updates": [{"$source": "a.b", "values": [{"path": "navigation.position", "value": {}}]}]}
    assert extract_position_updates(delta)[0].context == "vessels.self"


def test_broken_update_does_not_hide_its_siblings() -> None:
    delta = {
        "updates": [
            {"$source": "a.1", "values": [{"value": 1}]},
            {"$source": "a.2", "values": [{"path": "navigation.position", "value": {"latitude": 1, "longitude": 2}}]},
        ]
    }
    updates = extract_position_updates(delta)
    assert [u.source_id for u in updates] == ["a.2"]


def test_malformed_value_is_kept_for_the_engine() -> None:
    delta = {"updates": [{"$source": "a.1", "values": [{"path": "navigation.position", "value": "garbage"}]}]}
    update = extract_position_updates(delta)[0]
    assert update.value == "garbage"
    assert update.coordinates == {"latitude": None, "longitude": None}


def test_source_id_fallbacks() -> None:
    assert source_id_of("n2k.177", {"label": "x", "src": "1"}) == "n2k.177"
    assert source_id_of(None, {"label": "ttyUSB0", "talker": "GP"}) == "ttyUSB0"
    assert source_id_of(None, {"label": "n2k", "src": 177}) == "n2k.177"
    assert source_id_of(None, {"type": "NMEA0183"}) is None
    assert source_id_of(None, None) is None


def test_build_forward_delta_relabels_source_only() -> None:
    update = extract_position_updates(_DELTA)[0]
    forwarded = build_forward_delta(update, "gps-speed-filter")

    assert forwarded["context"] == _DELTA["context"]
    entry = forwarded["updates"][0]
    assert entry["$source"] == "gps-speed-filter.n2k.177"
    assert entry["timestamp"] == "2026-01-01T00:00:00.000Z"
    assert entry["source"] == {"label": "n2k", "type": "NMEA2000", "src": "177"}
    assert entry["values"] == [{"path": "navigation.position", "value": {"latitude": 52.1, "longitude": 4.3}}]


def test_build_forward_delta_without_source() -> None:
    forwarded = build_forward_delta(PositionUpdate(value={"latitude": 1, "longitude": 2}), "gps-speed-filter")
    entry = forwarded["updates"][0]
    assert entry["$source"] == "gps-speed-filter"
    assert "timestamp" not in entry
    assert "source" not in entry


def test_is_own_update() -> None:
    assert is_own_update("gps-speed-filter.n2k.177", "gps-speed-filter")
    assert is_own_update("gps-speed-filter", "gps-speed-filter")
    assert not is_own_update("gps-speed-filterX.1", "gps-speed-filter")
    assert not is_own_update("n2k.177", "gps-speed-filter")
    assert not is_own_update(None, "gps-speed-filter")


def test_subscription_message() -> None:
    assert subscription_message() == {
        "context": "vessels.self",
        "subscribe": [{"path": "navigation.position", "period": 1000, "minPeriod": 100}],
    }
