"""Unit tests for fieldops.annotations.store — creation validation,
acknowledgment dedup, deletion and the command entry point.
"""
from __future__ import annotations

import pytest

from fieldops.acknowledgments import Acknowledgment, AckResponse
from fieldops.annotations.models import AnnotationType, CircleGeometry
from fieldops.annotations.store import (
    AcknowledgeAnnotation,
    AnnotationStore,
    CreateAnnotation,
    DeleteAnnotation,
)
from fieldops.comms.event_bus import EventBus
from fieldops.errors import ValidationError
from fieldops.result import Err, Ok
from fieldops.tactical.geodesy import distance
from fieldops.tactical.models import Coordinate, Priority

pytestmark = pytest.mark.unit

P1 = Coordinate(40.00, -74.00)
P2 = Coordinate(40.01, -73.99)
P3 = Coordinate(40.00, -73.99)


def _ack(agent: str, response: str = "acknowledged", target: str = "x") -> Acknowledgment:
    return Acknowledgment.create(target_id=target, agent_id=agent, response=response, now=1)


def _zone(store: AnnotationStore, **kw):
    defaults = dict(type="rectangle", label="Zone", points=[P1, P2], created_by="op", requires_ack=True)
    defaults.update(kw)
    return store.create(**defaults)


class TestCreate:
    @pytest.mark.parametrize("kind,points", [
        ("marker", [P1]),
        ("circle", [P1, P2]),
        ("rectangle", [P1, P2]),
        ("polygon", [P1, P2, P3]),
        ("freehand", [P1, P2]),
    ])
    def test_valid_point_counts(self, kind, points):
        ann = AnnotationStore().create(type=kind, label="L", points=points, created_by="op")
        assert ann.type is AnnotationType(kind)
        assert ann.points == tuple(points)

    @pytest.mark.parametrize("kind,points", [
        ("marker", []),
        ("marker", [P1, P2]),
        ("rectangle", [P1]),
        ("rectangle", [P1, P2, P3]),
        ("polygon", [P1, P2]),
        ("freehand", [P1]),
        ("circle", [P1, P2, P3]),
        ("circle", [P1]),
    ])
    def test_invalid_point_counts_commit_nothing(self, kind, points):
        store = AnnotationStore()
        with pytest.raises(ValidationError):
            store.create(type=kind, label="L", points=points, created_by="op")
        assert len(store) == 0

    def test_circle_radius_derived_from_edge(self):
        ann = AnnotationStore().create(type="circle", label="C", points=[P1, P2], created_by="op")
        assert isinstance(ann.geometry, CircleGeometry)
        assert ann.radius == pytest.approx(distance(P1, P2))

    def test_circle_centre_with_explicit_radius(self):
        ann = AnnotationStore().create(type="circle", label="C", points=[P1], radius=250, created_by="op")
        assert ann.radius == 250.0

    def test_circle_with_coincident_edge_rejected(self):
        with pytest.raises(ValidationError):
            AnnotationStore().create(type="circle", label="C", points=[P1, P1], created_by="op")

    @pytest.mark.parametrize("label", ["", "   "])
    def test_empty_label(self, label):
        with pytest.raises(ValidationError):
            AnnotationStore().create(type="marker", label=label, points=[P1], created_by="op")

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            AnnotationStore().create(type="hexagon", label="L", points=[P1], created_by="op")

    def test_bad_priority(self):
        with pytest.raises(ValidationError):
            _zone(AnnotationStore(), priority="urgent")

    def test_non_positive_expiry(self):
        with pytest.raises(ValidationError):
            _zone(AnnotationStore(), auto_expire_ms=0)

    def test_target_agents_deduplicated(self):
        ann = _zone(AnnotationStore(), target_agents=["a", "b", "a"], priority=Priority.HIGH)
        assert ann.target_agents == ("a", "b")
        assert ann.priority is Priority.HIGH

    def test_publishes_created(self):
        bus = EventBus()
        sub = bus.subscribe()
        ann = _zone(AnnotationStore(bus))
        msg = sub.get(timeout=1.0)
        assert msg["type"] == "annotation_created"
        assert msg["data"]["id"] == ann.id


class TestAcknowledge:
    def test_replace_by_agent(self):
        store = AnnotationStore()
        ann = _zone(store)
        store.acknowledge(ann.id, _ack("a", "unable"))
        store.acknowledge(ann.id, _ack("a", "acknowledged"))
        store.acknowledge(ann.id, _ack("b"))
        acks = store.get(ann.id).acknowledgments
        assert len(acks) == 2
        assert store.get(ann.id).acknowledgment_for("a").response is AckResponse.ACKNOWLEDGED

    def test_set_never_exceeds_distinct_agents(self):
        store = AnnotationStore()
        ann = _zone(store)
        agents = ["a", "b", "a", "c", "b", "a"]
        for agent in agents:
            store.acknowledge(ann.id, _ack(agent))
        assert len(store.get(ann.id).acknowledgments) == len(set(agents))

    def test_target_id_rewritten(self):
        store = AnnotationStore()
        ann = _zone(store)
        store.acknowledge(ann.id, _ack("a", target="something-else"))
        assert store.get(ann.id).acknowledgments[0].target_id == ann.id

    def test_missing_annotation_is_noop(self):
        store = AnnotationStore()
        assert store.acknowledge("ann-gone", _ack("a")) is None
        assert len(store) == 0

    def test_snapshot_isolated_from_later_acks(self):
        store = AnnotationStore()
        ann = _zone(store)
        before = store.get(ann.id)
        store.acknowledge(ann.id, _ack("a"))
        assert before.acknowledgments == ()


class TestDelete:
    def test_delete_removes_acks(self):
        store = AnnotationStore()
        ann = _zone(store)
        store.acknowledge(ann.id, _ack("a"))
        assert store.delete(ann.id) is True
        assert store.get(ann.id) is None
        assert store.delete(ann.id) is False

    def test_ack_after_delete_is_noop(self):
        store = AnnotationStore()
        ann = _zone(store)
        store.delete(ann.id)
        assert store.acknowledge(ann.id, _ack("a")) is None


class TestApply:
    def test_create_ok(self):
        result = AnnotationStore().apply(CreateAnnotation(
            type="marker", label="M", points=(P1,), created_by="op",
        ))
        assert isinstance(result, Ok)
        assert result.value.label == "M"

    def test_create_err(self):
        result = AnnotationStore().apply(CreateAnnotation(
            type="polygon", label="P", points=(P1,), created_by="op",
        ))
        assert isinstance(result, Err)
        assert not result.ok
        assert "polygon" in result.message

    def test_ack_missing_is_ok_none(self):
        result = AnnotationStore().apply(AcknowledgeAnnotation("ann-x", _ack("a")))
        assert result == Ok(None)

    def test_delete(self):
        store = AnnotationStore()
        ann = _zone(store)
        assert store.apply(DeleteAnnotation(ann.id)) == Ok(True)

    def test_unknown_command(self):
        with pytest.raises(TypeError):
            AnnotationStore().apply("delete everything")


class TestAckStats:
    def test_roster_targets(self):
        store = AnnotationStore()
        ann = _zone(store)
        store.acknowledge(ann.id, _ack("a"))
        store.acknowledge(ann.id, _ack("b", "unable"))
        stats = AnnotationStore.ack_stats(store.get(ann.id), ["a", "b", "c"])
        assert stats.total == 3
        assert stats.acknowledged == 1
        assert stats.unable == 1
        assert stats.pending_agents == ("c",)
        assert stats.rate == pytest.approx(200 / 3)

    def test_explicit_targets(self):
        store = AnnotationStore()
        ann = _zone(store, target_agents=["x"])
        assert AnnotationStore.pending_agents(ann, ["a", "b"]) == ["x"]

    def test_requiring_ack(self):
        store = AnnotationStore()
        zone = _zone(store)
        store.create(type="marker", label="M", points=[P1], created_by="op")
        assert store.requiring_ack() == [zone]
