"""Unit tests for fieldops.annotations.geofence — containment per geometry
and edge-triggered violation detection.
"""
from __future__ import annotations

import pytest

from fieldops.alerts import AlertKind, RecordingAlertSink, Severity
from fieldops.annotations.geofence import (
    GeofenceMonitor,
    contains_point,
    has_area,
    point_in_polygon,
)
from fieldops.annotations.store import AnnotationStore
from fieldops.comms.event_bus import EventBus
from fieldops.errors import NotFoundError
from fieldops.tactical.geodesy import distance
from fieldops.tactical.models import Asset, AssetStatus, Coordinate

pytestmark = pytest.mark.unit


def _c(lat: float, lng: float) -> Coordinate:
    return Coordinate(latitude=lat, longitude=lng)


def _asset(lat: float, lng: float, status: AssetStatus = AssetStatus.ALERT, asset_id: str = "h1") -> Asset:
    return Asset(id=asset_id, agent_id=asset_id, callsign=asset_id.upper(), position=_c(lat, lng), status=status)


class TestContainment:
    def test_rectangle_scenario(self):
        store = AnnotationStore()
        rect = store.create(type="rectangle", label="R", points=[_c(40.00, -74.00), _c(40.01, -73.99)],
                            created_by="op")
        assert contains_point(rect, _c(40.005, -73.995)) is True
        assert contains_point(rect, _c(40.02, -73.99)) is False

    def test_rectangle_corner_order_irrelevant(self):
        store = AnnotationStore()
        rect = store.create(type="rectangle", label="R", points=[_c(40.01, -73.99), _c(40.00, -74.00)],
                            created_by="op")
        assert contains_point(rect, _c(40.005, -73.995)) is True

    def test_circle(self):
        store = AnnotationStore()
        center = _c(40.0, -74.0)
        circle = store.create(type="circle", label="C", points=[center], radius=500, created_by="op")
        inside = _c(40.003, -74.0)
        outside = _c(40.006, -74.0)
        assert distance(center, inside) < 500 < distance(center, outside)
        assert contains_point(circle, inside) is True
        assert contains_point(circle, outside) is False
        assert contains_point(circle, center) is True

    def test_square_polygon(self):
        store = AnnotationStore()
        square = store.create(type="polygon", label="Sq", points=[
            _c(0, 0), _c(0, 1), _c(1, 1), _c(1, 0),
        ], created_by="op")
        assert contains_point(square, _c(0.5, 0.5)) is True
        assert contains_point(square, _c(5, 5)) is False

    def test_concave_polygon_even_odd(self):
        # U shape opening north; the notch is outside
        ring = [_c(0, 0), _c(0, 3), _c(3, 3), _c(3, 2), _c(1, 2), _c(1, 1), _c(3, 1), _c(3, 0)]
        assert point_in_polygon(_c(0.5, 1.5), ring) is True
        assert point_in_polygon(_c(2, 1.5), ring) is False
        assert point_in_polygon(_c(2, 0.5), ring) is True

    def test_marker_and_freehand_have_no_area(self):
        store = AnnotationStore()
        marker = store.create(type="marker", label="M", points=[_c(0, 0)], created_by="op")
        path = store.create(type="freehand", label="F", points=[_c(0, 0), _c(1, 1)], created_by="op")
        assert contains_point(marker, _c(0, 0)) is False
        assert contains_point(path, _c(0, 0)) is False
        assert not has_area(marker)
        assert not has_area(path)


def _restricted(store: AnnotationStore):
    return store.create(type="rectangle", label="Restricted", requires_ack=True, created_by="op",
                        points=[_c(40.00, -74.00), _c(40.01, -73.99)])


class TestMonitor:
    def test_fires_once_on_entry(self):
        store = AnnotationStore()
        zone = _restricted(store)
        sink = RecordingAlertSink()
        monitor = GeofenceMonitor(alert_sink=sink)
        inside = _asset(40.005, -73.995)

        fresh = monitor.check([inside], store.all(), now=1)
        assert len(fresh) == 1
        assert fresh[0].annotation_id == zone.id
        assert monitor.check([inside], store.all(), now=2) == []
        assert len(sink.of_kind(AlertKind.GEOFENCE_VIOLATION)) == 1
        assert sink.events[0].severity is Severity.CRITICAL

    def test_refires_after_exit_and_reentry(self):
        store = AnnotationStore()
        _restricted(store)
        monitor = GeofenceMonitor()
        monitor.check([_asset(40.005, -73.995)], store.all())
        assert monitor.check([_asset(40.02, -73.995)], store.all()) == []
        assert len(monitor.check([_asset(40.005, -73.995)], store.all())) == 1
        assert len(monitor.violations) == 2

    def test_non_hostile_assets_ignored(self):
        store = AnnotationStore()
        _restricted(store)
        monitor = GeofenceMonitor()
        assert monitor.check([_asset(40.005, -73.995, AssetStatus.ACTIVE)], store.all()) == []

    def test_hostile_agent_list(self):
        store = AnnotationStore()
        _restricted(store)
        monitor = GeofenceMonitor()
        monitor.mark_hostile("h1")
        assert len(monitor.check([_asset(40.005, -73.995, AssetStatus.ACTIVE)], store.all())) == 1
        monitor.unmark_hostile("h1")
        assert not monitor.is_hostile(_asset(0, 0, AssetStatus.ACTIVE))

    def test_only_ack_required_zones_are_restricted(self):
        store = AnnotationStore()
        store.create(type="rectangle", label="Info", created_by="op",
                     points=[_c(40.00, -74.00), _c(40.01, -73.99)])
        assert GeofenceMonitor().check([_asset(40.005, -73.995)], store.all()) == []

    def test_deleted_zone_resets_inside_state(self):
        store = AnnotationStore()
        zone = _restricted(store)
        monitor = GeofenceMonitor()
        monitor.check([_asset(40.005, -73.995)], store.all())
        store.delete(zone.id)
        monitor.check([_asset(40.005, -73.995)], store.all())
        assert monitor.inside == frozenset()

    def test_publishes_event(self):
        bus = EventBus()
        sub = bus.subscribe()
        store = AnnotationStore()
        _restricted(store)
        GeofenceMonitor(event_bus=bus).check([_asset(40.005, -73.995)], store.all())
        assert sub.get(timeout=1.0)["type"] == "geofence_violation"

    def test_acknowledge_violation(self):
        store = AnnotationStore()
        _restricted(store)
        monitor = GeofenceMonitor()
        (violation,) = monitor.check([_asset(40.005, -73.995)], store.all())
        updated = monitor.acknowledge(violation.id, by="op", now=10)
        assert updated.acknowledged and updated.acknowledged_by == "op"
        assert monitor.unacknowledged() == []
        assert monitor.clear_acknowledged() == 1
        with pytest.raises(NotFoundError):
            monitor.acknowledge("violation-missing", by="op")
