# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Annotation data model — one geometry class per annotation type.

Point contracts:
    marker     exactly 1 point
    circle     centre + edge point (radius = geodesic distance between them),
               or centre alone with an explicit radius in meters
    rectangle  exactly 2 opposite corners
    polygon    3 or more vertices, taken as a closed ring
    freehand   2 or more points, an open path

Annotations are immutable; the store replaces them wholesale when their
acknowledgment set changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Sequence, Union

from fieldops.acknowledgments import Acknowledgment
from fieldops.errors import ValidationError
from fieldops.tactical.geodesy import distance
from fieldops.tactical.models import Coordinate, Priority


class AnnotationType(str, Enum):
    MARKER = "marker"
    CIRCLE = "circle"
    RECTANGLE = "rectangle"
    POLYGON = "polygon"
    FREEHAND = "freehand"


@dataclass(frozen=True)
class MarkerGeometry:
    kind: ClassVar[AnnotationType] = AnnotationType.MARKER
    position: Coordinate

    @property
    def points(self) -> tuple[Coordinate, ...]:
        return (self.position,)

    @property
    def anchor(self) -> Coordinate:
        return self.position


@dataclass(frozen=True)
class CircleGeometry:
    kind: ClassVar[AnnotationType] = AnnotationType.CIRCLE
    center: Coordinate
    radius: float
    edge: Coordinate | None = None

    @property
    def points(self) -> tuple[Coordinate, ...]:
        return (self.center,) if self.edge is None else (self.center, self.edge)

    @property
    def anchor(self) -> Coordinate:
        return self.center


@dataclass(frozen=True)
class RectangleGeometry:
    kind: ClassVar[AnnotationType] = AnnotationType.RECTANGLE
    corner_a: Coordinate
    corner_b: Coordinate

    @property
    def points(self) -> tuple[Coordinate, ...]:
        return (self.corner_a, self.corner_b)

    @property
    def min_lat(self) -> float:
        return min(self.corner_a.latitude, self.corner_b.latitude)

    @property
    def max_lat(self) -> float:
        return max(self.corner_a.latitude, self.corner_b.latitude)

    @property
    def min_lng(self) -> float:
        return min(self.corner_a.longitude, self.corner_b.longitude)

    @property
    def max_lng(self) -> float:
        return max(self.corner_a.longitude, self.corner_b.longitude)

    @property
    def anchor(self) -> Coordinate:
        return Coordinate(
            latitude=(self.min_lat + self.max_lat) / 2,
            longitude=(self.min_lng + self.max_lng) / 2,
        )


@dataclass(frozen=True)
class PolygonGeometry:
    kind: ClassVar[AnnotationType] = AnnotationType.POLYGON
    vertices: tuple[Coordinate, ...]

    @property
    def points(self) -> tuple[Coordinate, ...]:
        return self.vertices

    @property
    def anchor(self) -> Coordinate:
        """Vertex average; good enough for labels and distance readouts."""
        n = len(self.vertices)
        return Coordinate(
            latitude=sum(v.latitude for v in self.vertices) / n,
            longitude=sum(v.longitude for v in self.vertices) / n,
        )


@dataclass(frozen=True)
class FreehandGeometry:
    kind: ClassVar[AnnotationType] = AnnotationType.FREEHAND
    path: tuple[Coordinate, ...]

    @property
    def points(self) -> tuple[Coordinate, ...]:
        return self.path

    @property
    def anchor(self) -> Coordinate:
        return self.path[0]


Geometry = Union[MarkerGeometry, CircleGeometry, RectangleGeometry, PolygonGeometry, FreehandGeometry]


def _coerce_type(kind: AnnotationType | str) -> AnnotationType:
    try:
        return AnnotationType(kind)
    except ValueError:
        raise ValidationError(f"unknown annotation type: {kind}", field="type") from None


def build_geometry(
    kind: AnnotationType | str,
    points: Sequence[Coordinate],
    radius: float | None = None,
) -> Geometry:
    """Validate *points* against the type's contract and build its geometry."""
    kind = _coerce_type(kind)
    points = tuple(points)
    n = len(points)

    if kind is AnnotationType.MARKER:
        if n != 1:
            raise ValidationError(f"marker needs exactly 1 point, got {n}", field="points")
        return MarkerGeometry(position=points[0])

    if kind is AnnotationType.CIRCLE:
        if n == 2:
            derived = distance(points[0], points[1])
            if derived <= 0:
                raise ValidationError("circle edge point must differ from its centre", field="points")
            return CircleGeometry(center=points[0], radius=derived, edge=points[1])
        if n == 1:
            if radius is None or not radius > 0:
                raise ValidationError("circle with only a centre needs a positive radius", field="radius")
            return CircleGeometry(center=points[0], radius=float(radius))
        raise ValidationError(f"circle needs a centre and an edge point, got {n} points", field="points")

    if kind is AnnotationType.RECTANGLE:
        if n != 2:
            raise ValidationError(f"rectangle needs exactly 2 corners, got {n}", field="points")
        return RectangleGeometry(corner_a=points[0], corner_b=points[1])

    if kind is AnnotationType.POLYGON:
        if n < 3:
            raise ValidationError(f"polygon needs at least 3 points, got {n}", field="points")
        return PolygonGeometry(vertices=points)

    if kind is AnnotationType.FREEHAND:
        if n < 2:
            raise ValidationError(f"freehand needs at least 2 points, got {n}", field="points")
        return FreehandGeometry(path=points)

    raise ValidationError(f"unhandled annotation type: {kind}", field="type")


@dataclass(frozen=True)
class Annotation:
    id: str
    label: str
    geometry: Geometry
    created_by: str
    created_at: int
    color: str = "#05ffa1"
    requires_ack: bool = False
    priority: Priority = Priority.NORMAL
    description: str = ""
    target_agents: tuple[str, ...] = ()
    auto_expire_ms: int | None = None
    acknowledgments: tuple[Acknowledgment, ...] = field(default=())

    @property
    def type(self) -> AnnotationType:
        return self.geometry.kind

    @property
    def points(self) -> tuple[Coordinate, ...]:
        return self.geometry.points

    @property
    def radius(self) -> float | None:
        return self.geometry.radius if isinstance(self.geometry, CircleGeometry) else None

    def acknowledgment_for(self, agent_id: str) -> Acknowledgment | None:
        for ack in self.acknowledgments:
            if ack.agent_id == agent_id:
                return ack
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "color": self.color,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "points": [p.to_dict() for p in self.points],
            "radius": self.radius,
            "requiresAck": self.requires_ack,
            "priority": self.priority.value,
            "description": self.description,
            "targetAgents": list(self.target_agents),
            "autoExpireMs": self.auto_expire_ms,
            "acknowledgments": [a.to_dict() for a in self.acknowledgments],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Annotation:
        points = [Coordinate.from_dict(p) for p in data.get("points", [])]
        geometry = build_geometry(data.get("type", ""), points, data.get("radius"))
        ann_id = data["id"]
        return cls(
            id=ann_id,
            label=data.get("label", ""),
            geometry=geometry,
            created_by=data.get("createdBy", ""),
            created_at=int(data.get("createdAt") or 0),
            color=data.get("color") or "#05ffa1",
            requires_ack=bool(data.get("requiresAck", False)),
            priority=Priority(data.get("priority") or "normal"),
            description=data.get("description") or "",
            target_agents=tuple(data.get("targetAgents") or ()),
            auto_expire_ms=data.get("autoExpireMs"),
            acknowledgments=tuple(
                Acknowledgment.from_dict(a, target_id=ann_id) for a in data.get("acknowledgments", [])
            ),
        )
