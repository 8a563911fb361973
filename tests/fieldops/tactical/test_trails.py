"""Unit tests for fieldops.tactical.trails — FIFO cap, summaries, status
colors and the flat export document.
"""
from __future__ import annotations

import pytest

from fieldops.comms.event_bus import EventBus
from fieldops.errors import NotFoundError
from fieldops.tactical.geodesy import total_distance
from fieldops.tactical.models import AssetStatus, Coordinate
from fieldops.tactical.trails import (
    STATUS_COLORS,
    TRAIL_CAPACITY,
    Trail,
    TrailBuffer,
    iso_ms,
    status_color,
)

pytestmark = pytest.mark.unit


def _c(i: int, ts: int | None = None) -> Coordinate:
    return Coordinate(latitude=40.70 + i * 0.0001, longitude=-74.0, timestamp=ts if ts is not None else i)


class TestRecord:
    def test_lazy_creation(self):
        buf = TrailBuffer()
        assert "a1" not in buf
        buf.record("a1", _c(0))
        assert "a1" in buf
        assert len(buf) == 1

    def test_cap_keeps_last_hundred_in_arrival_order(self):
        buf = TrailBuffer()
        for i in range(250):
            buf.record("a1", _c(i))
        points = buf.points("a1")
        assert len(points) == TRAIL_CAPACITY
        assert [p.timestamp for p in points] == list(range(150, 250))

    def test_exactly_101_evicts_first(self):
        buf = TrailBuffer()
        for i in range(101):
            buf.record("a1", _c(i))
        points = buf.points("a1")
        assert len(points) == 100
        assert points[0].timestamp == 1

    def test_never_resorted_by_timestamp(self):
        buf = TrailBuffer()
        for ts in (3000, 1000, 2000):
            buf.record("a1", _c(0, ts))
        assert [p.timestamp for p in buf.points("a1")] == [3000, 1000, 2000]

    def test_custom_capacity(self):
        buf = TrailBuffer(capacity=3)
        for i in range(5):
            buf.record("a1", _c(i))
        assert [p.timestamp for p in buf.points("a1")] == [2, 3, 4]

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            TrailBuffer(capacity=0)

    def test_points_of_unknown_asset_is_empty(self):
        assert TrailBuffer().points("nobody") == ()


class TestClear:
    def test_clear_keeps_identity_and_styling(self):
        buf = TrailBuffer()
        buf.record("a1", _c(0), status=AssetStatus.ALERT, callsign="HAWK")
        trail = buf.get("a1")
        buf.clear("a1")
        assert buf.get("a1") is trail
        assert buf.points("a1") == ()
        assert trail.callsign == "HAWK"
        assert trail.color == STATUS_COLORS[AssetStatus.ALERT]

    def test_clear_unknown_raises(self):
        with pytest.raises(NotFoundError):
            TrailBuffer().clear("ghost")


class TestEvents:
    def test_record_and_clear_publish(self):
        bus = EventBus()
        sub = bus.subscribe()
        buf = TrailBuffer(event_bus=bus)
        buf.record("a1", _c(0))
        buf.clear("a1")
        first, second = sub.get_nowait(), sub.get_nowait()
        assert first["type"] == "trail_recorded"
        assert first["data"]["coordinate"]["latitude"] == pytest.approx(40.70)
        assert second == {"type": "trail_cleared", "data": {"assetId": "a1"}}


class TestSummary:
    def test_five_positions_two_seconds_apart(self):
        buf = TrailBuffer()
        for i in range(5):
            buf.record("a1", _c(i, ts=i * 2000))
        s = buf.summary("a1")
        assert s.point_count == 5
        assert s.duration_ms == 8000
        assert s.total_distance == pytest.approx(total_distance(buf.points("a1")))

    def test_single_point_has_zero_duration(self):
        buf = TrailBuffer()
        buf.record("a1", _c(0, ts=5000))
        s = buf.summary("a1")
        assert s.point_count == 1
        assert s.duration_ms == 0
        assert s.total_distance == 0.0

    def test_unknown_asset_is_all_zero(self):
        s = TrailBuffer().summary("ghost")
        assert (s.point_count, s.total_distance, s.duration_ms) == (0, 0.0, 0)

    def test_to_dict_keys(self):
        buf = TrailBuffer()
        buf.record("a1", _c(0))
        assert set(buf.summary("a1").to_dict()) == {"pointCount", "totalDistance", "durationMs"}


class TestColor:
    def test_color_follows_latest_status(self):
        buf = TrailBuffer()
        buf.record("a1", _c(0), status=AssetStatus.ACTIVE)
        buf.record("a1", _c(1), status=AssetStatus.ALERT)
        assert buf.get("a1").color == status_color(AssetStatus.ALERT)

    def test_set_status_recolors(self):
        buf = TrailBuffer()
        buf.record("a1", _c(0))
        buf.set_status("a1", AssetStatus.INACTIVE)
        assert buf.get("a1").color == STATUS_COLORS[AssetStatus.INACTIVE]

    def test_every_status_has_a_color(self):
        for status in AssetStatus:
            assert status_color(status).startswith("oklch(")


class TestHeading:
    def test_heading_needs_two_points(self):
        buf = TrailBuffer()
        buf.record("a1", _c(0))
        assert buf.get("a1").heading() is None

    def test_heading_of_last_leg(self):
        buf = TrailBuffer()
        buf.record("a1", Coordinate(0.0, 0.0))
        buf.record("a1", Coordinate(1.0, 0.0))
        assert buf.get("a1").heading() == pytest.approx(0.0)


class TestExport:
    def test_export_document(self):
        buf = TrailBuffer()
        buf.record("a1", _c(0, ts=0), callsign="HAWK")
        buf.record("a1", _c(1, ts=2000))
        doc = buf.export("a1", now=0)
        assert doc["assetId"] == "a1"
        assert doc["callsign"] == "HAWK"
        assert doc["exportedAt"] == "1970-01-01T00:00:00.000Z"
        assert doc["totalCoordinates"] == 2
        assert doc["totalDistance"] > 0
        assert [c["index"] for c in doc["coordinates"]] == [0, 1]
        assert doc["coordinates"][1]["timestamp"] == 2000
        assert doc["coordinates"][1]["datetime"] == iso_ms(2000)

    def test_export_unknown_raises(self):
        with pytest.raises(NotFoundError):
            TrailBuffer().export("ghost")


class TestTrailSerialization:
    def test_from_dict_reapplies_capacity(self):
        trail = Trail(asset_id="a1", callsign="HAWK", status=AssetStatus.ENROUTE, capacity=10)
        for i in range(10):
            trail.coordinates.append(_c(i))
        restored = Trail.from_dict(trail.to_dict(), capacity=4)
        assert restored.status is AssetStatus.ENROUTE
        assert [c.timestamp for c in restored.coordinates] == [6, 7, 8, 9]

    def test_restore_into_buffer(self):
        buf = TrailBuffer(capacity=2)
        trail = Trail(asset_id="a1", callsign="HAWK", capacity=5)
        trail.coordinates.extend(_c(i) for i in range(5))
        buf.restore(trail)
        assert [c.timestamp for c in buf.points("a1")] == [3, 4]
