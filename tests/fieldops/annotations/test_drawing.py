"""Unit tests for fieldops.annotations.drawing — in-progress drawings,
undo, cancel and commit.
"""
from __future__ import annotations

import pytest

from fieldops.annotations.drawing import DrawingSession
from fieldops.annotations.store import AnnotationStore
from fieldops.errors import ValidationError
from fieldops.tactical.models import Coordinate

pytestmark = pytest.mark.unit

A = Coordinate(40.00, -74.00)
B = Coordinate(40.01, -74.00)
C = Coordinate(40.01, -73.99)


class TestDrawingSession:
    def test_polygon_completes_at_three_points(self):
        s = DrawingSession("polygon")
        s.add_point(A)
        s.add_point(B)
        assert not s.complete
        s.add_point(C)
        assert s.complete

    def test_fixed_types_reject_extra_points(self):
        s = DrawingSession("rectangle")
        s.add_point(A)
        s.add_point(C)
        with pytest.raises(ValidationError):
            s.add_point(B)

    def test_undo(self):
        s = DrawingSession("freehand")
        s.add_point(A)
        s.add_point(B)
        assert s.undo() == B
        assert s.points == (A,)
        s.undo()
        assert s.undo() is None

    def test_cancel_leaves_no_state(self):
        store = AnnotationStore()
        s = DrawingSession("polygon")
        s.add_point(A)
        s.add_point(B)
        s.cancel()
        assert s.points == ()
        assert not s.active
        assert len(store) == 0
        with pytest.raises(ValidationError):
            s.add_point(C)

    def test_commit(self):
        store = AnnotationStore()
        s = DrawingSession("circle")
        s.add_point(A)
        s.add_point(B)
        ann = s.commit(store, label="Perimeter", created_by="op", requires_ack=True)
        assert store.get(ann.id) == ann
        assert not s.active

    def test_failed_commit_keeps_session_open(self):
        store = AnnotationStore()
        s = DrawingSession("polygon")
        s.add_point(A)
        with pytest.raises(ValidationError):
            s.commit(store, label="Bad", created_by="op")
        assert s.active
        assert len(store) == 0

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            DrawingSession("spline")
