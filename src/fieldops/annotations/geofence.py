# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Geofencing — containment tests and the zone-entry violation detector.

Containment by geometry:
    circle     geodesic distance to the centre <= radius
    rectangle  lat and lng both within the corners' min/max
    polygon    even-odd ray casting over the vertices as a closed ring
    marker     never contains anything
    freehand   never contains anything

GeofenceMonitor is edge-triggered: a violation fires once when a hostile
asset enters a restricted zone.  Staying inside does not fire again;
leaving and re-entering does.  "Currently inside" is tracked per
(asset, annotation) pair.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Iterable

from fieldops.alerts import AlertEvent, AlertKind, AlertSink, Severity
from fieldops.errors import NotFoundError
from fieldops.tactical.geodesy import LatLng, distance
from fieldops.tactical.models import Asset, AssetStatus, now_ms

from .models import (
    Annotation,
    CircleGeometry,
    FreehandGeometry,
    Geometry,
    MarkerGeometry,
    PolygonGeometry,
    RectangleGeometry,
)

if TYPE_CHECKING:
    from fieldops.comms.event_bus import EventBus

log = logging.getLogger(__name__)

_HISTORY_MAX = 200


def point_in_polygon(point: LatLng, ring: Iterable[LatLng]) -> bool:
    """Even-odd rule with longitude as x and latitude as y."""
    vertices = [(v.longitude, v.latitude) for v in ring]
    if len(vertices) < 3:
        return False
    x, y = point.longitude, point.latitude
    inside = False
    xj, yj = vertices[-1]
    for xi, yi in vertices:
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        xj, yj = xi, yi
    return inside


def geometry_contains(geometry: Geometry, point: LatLng) -> bool:
    if isinstance(geometry, CircleGeometry):
        return distance(geometry.center, point) <= geometry.radius
    if isinstance(geometry, RectangleGeometry):
        return (
            geometry.min_lat <= point.latitude <= geometry.max_lat
            and geometry.min_lng <= point.longitude <= geometry.max_lng
        )
    if isinstance(geometry, PolygonGeometry):
        return point_in_polygon(point, geometry.vertices)
    if isinstance(geometry, (MarkerGeometry, FreehandGeometry)):
        return False
    raise TypeError(f"unhandled geometry: {type(geometry).__name__}")


def contains_point(annotation: Annotation, point: LatLng) -> bool:
    """True if *point* lies inside the annotation's area."""
    return geometry_contains(annotation.geometry, point)


def has_area(annotation: Annotation) -> bool:
    return isinstance(annotation.geometry, (CircleGeometry, RectangleGeometry, PolygonGeometry))


@dataclass(frozen=True)
class GeofenceViolation:
    id: str
    asset_id: str
    agent_id: str
    callsign: str
    annotation_id: str
    annotation_label: str
    zone_type: str
    detected_at: int
    latitude: float
    longitude: float
    zone_lat: float
    zone_lng: float
    distance: float
    acknowledged: bool = False
    acknowledged_by: str | None = None
    acknowledged_at: int | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "assetId": self.asset_id,
            "agentId": self.agent_id,
            "callsign": self.callsign,
            "annotationId": self.annotation_id,
            "annotationLabel": self.annotation_label,
            "zoneType": self.zone_type,
            "detectedAt": self.detected_at,
            "currentLat": self.latitude,
            "currentLng": self.longitude,
            "zoneLat": self.zone_lat,
            "zoneLng": self.zone_lng,
            "distance": self.distance,
            "acknowledged": self.acknowledged,
            "acknowledgedBy": self.acknowledged_by,
            "acknowledgedAt": self.acknowledged_at,
        }


class GeofenceMonitor:
    """Detects hostile assets entering restricted zones.

    Hostile = status in ``hostile_statuses`` or agent id in ``hostile_agents``.
    Restricted zone = annotation with ``requires_ack`` and an area geometry.
    """

    def __init__(
        self,
        event_bus: EventBus | None = None,
        alert_sink: AlertSink | None = None,
        hostile_statuses: Iterable[AssetStatus] = (AssetStatus.ALERT,),
        hostile_agents: Iterable[str] = (),
    ) -> None:
        self._event_bus = event_bus
        self._alert_sink = alert_sink
        self._hostile_statuses = frozenset(AssetStatus(s) for s in hostile_statuses)
        self._hostile_agents = set(hostile_agents)
        self._inside: frozenset[tuple[str, str]] = frozenset()
        self._violations: list[GeofenceViolation] = []
        self._lock = threading.Lock()

    # -- Configuration -------------------------------------------------------

    def mark_hostile(self, agent_id: str) -> None:
        self._hostile_agents.add(agent_id)

    def unmark_hostile(self, agent_id: str) -> None:
        self._hostile_agents.discard(agent_id)

    def is_hostile(self, asset: Asset) -> bool:
        return asset.status in self._hostile_statuses or asset.agent_id in self._hostile_agents

    @staticmethod
    def is_restricted_zone(annotation: Annotation) -> bool:
        return annotation.requires_ack and has_area(annotation)

    # -- Read access ---------------------------------------------------------

    @property
    def inside(self) -> frozenset[tuple[str, str]]:
        """(asset_id, annotation_id) pairs currently inside a zone."""
        return self._inside

    @property
    def violations(self) -> list[GeofenceViolation]:
        """Newest first."""
        with self._lock:
            return list(self._violations)

    def unacknowledged(self) -> list[GeofenceViolation]:
        return [v for v in self.violations if not v.acknowledged]

    # -- Evaluation ----------------------------------------------------------

    def check(
        self,
        assets: Iterable[Asset],
        annotations: Iterable[Annotation],
        now: int | None = None,
    ) -> list[GeofenceViolation]:
        """Evaluate all hostile assets against all zones; return new violations."""
        now = now if now is not None else now_ms()
        zones = [a for a in annotations if self.is_restricted_zone(a)]
        hostiles = [a for a in assets if self.is_hostile(a)]

        inside_now: set[tuple[str, str]] = set()
        fresh: list[GeofenceViolation] = []
        previous = self._inside
        for asset in hostiles:
            for zone in zones:
                if not contains_point(zone, asset.position):
                    continue
                key = (asset.id, zone.id)
                inside_now.add(key)
                if key in previous:
                    continue
                anchor = zone.geometry.anchor
                fresh.append(GeofenceViolation(
                    id=f"violation-{uuid.uuid4().hex[:12]}",
                    asset_id=asset.id,
                    agent_id=asset.agent_id,
                    callsign=asset.callsign,
                    annotation_id=zone.id,
                    annotation_label=zone.label,
                    zone_type=zone.type.value,
                    detected_at=now,
                    latitude=asset.position.latitude,
                    longitude=asset.position.longitude,
                    zone_lat=anchor.latitude,
                    zone_lng=anchor.longitude,
                    distance=distance(asset.position, anchor),
                ))

        # Pairs for exited assets, non-hostile assets and deleted zones drop out here
        self._inside = frozenset(inside_now)

        if fresh:
            with self._lock:
                self._violations = list(reversed(fresh)) + self._violations
                if len(self._violations) > _HISTORY_MAX:
                    self._violations = self._violations[:_HISTORY_MAX]
            for violation in fresh:
                self._announce(violation)
        return fresh

    def acknowledge(self, violation_id: str, by: str, now: int | None = None) -> GeofenceViolation:
        with self._lock:
            for i, violation in enumerate(self._violations):
                if violation.id == violation_id:
                    updated = replace(
                        violation,
                        acknowledged=True,
                        acknowledged_by=by,
                        acknowledged_at=now if now is not None else now_ms(),
                    )
                    self._violations = self._violations[:i] + [updated] + self._violations[i + 1:]
                    return updated
        raise NotFoundError("violation", violation_id)

    def clear_acknowledged(self) -> int:
        with self._lock:
            before = len(self._violations)
            self._violations = [v for v in self._violations if not v.acknowledged]
            return before - len(self._violations)

    def _announce(self, violation: GeofenceViolation) -> None:
        log.warning(
            "Geofence violation: %s entered %s", violation.callsign, violation.annotation_label,
        )
        if self._event_bus is not None:
            self._event_bus.publish("geofence_violation", violation.to_dict())
        if self._alert_sink is not None:
            self._alert_sink.notify(AlertEvent(
                kind=AlertKind.GEOFENCE_VIOLATION,
                severity=Severity.CRITICAL,
                title=f"GEOFENCE BREACH: {violation.callsign}",
                detail=f"Entered restricted zone: {violation.annotation_label}",
                subject_id=violation.id,
                raised_at=violation.detected_at,
            ))
