# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""DrawingSession — an annotation being drawn, before it is committed.

Points accumulate locally; nothing touches the AnnotationStore until
``commit``.  Cancelling (at any vertex count) simply discards the session.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fieldops.errors import ValidationError
from fieldops.tactical.models import Coordinate

from .models import AnnotationType, build_geometry

if TYPE_CHECKING:
    from .models import Annotation
    from .store import AnnotationStore

# Types whose point count is fixed; the session closes itself when full.
_FIXED_POINTS = {
    AnnotationType.MARKER: 1,
    AnnotationType.CIRCLE: 2,
    AnnotationType.RECTANGLE: 2,
}


class DrawingSession:
    def __init__(self, kind: AnnotationType | str) -> None:
        try:
            self.kind = AnnotationType(kind)
        except ValueError:
            raise ValidationError(f"unknown annotation type: {kind}", field="type") from None
        self._points: list[Coordinate] = []
        self._active = True

    @property
    def points(self) -> tuple[Coordinate, ...]:
        return tuple(self._points)

    @property
    def active(self) -> bool:
        return self._active

    @property
    def complete(self) -> bool:
        """True once the points satisfy the type's geometry contract."""
        try:
            build_geometry(self.kind, self._points)
        except ValidationError:
            return False
        return True

    def add_point(self, point: Coordinate) -> None:
        self._require_active()
        limit = _FIXED_POINTS.get(self.kind)
        if limit is not None and len(self._points) >= limit:
            raise ValidationError(f"{self.kind.value} takes only {limit} point(s)", field="points")
        self._points.append(point)

    def undo(self) -> Coordinate | None:
        self._require_active()
        return self._points.pop() if self._points else None

    def cancel(self) -> None:
        self._points.clear()
        self._active = False

    def commit(self, store: AnnotationStore, label: str, created_by: str, **options) -> Annotation:
        """Create the annotation in *store*. The session stays open if validation fails."""
        self._require_active()
        annotation = store.create(
            type=self.kind, label=label, points=self._points, created_by=created_by, **options,
        )
        self._active = False
        return annotation

    def _require_active(self) -> None:
        if not self._active:
            raise ValidationError("drawing session is closed")
