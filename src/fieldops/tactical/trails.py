# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""TrailBuffer — bounded GPS breadcrumb history per asset.

Each asset gets one trail, created lazily the first time a position is
recorded for it.  Coordinates are kept in arrival order (never re-sorted by
timestamp) and capped at TRAIL_CAPACITY; when the cap is reached the oldest
point is dropped first (ring buffer behavior via deque).

A trail's color is not stored: it is derived from the asset status most
recently passed to ``record`` so the whole trail renders in the asset's
current status color.

Data access:
  - points(asset_id)   -> tuple snapshot of coordinates
  - summary(asset_id)  -> point count, total distance, duration
  - export(asset_id)   -> flat JSON-serializable document
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fieldops.errors import NotFoundError

from .geodesy import bearing, total_distance
from .models import AssetStatus, Coordinate, now_ms

if TYPE_CHECKING:
    from fieldops.comms.event_bus import EventBus

TRAIL_CAPACITY = 100

STATUS_COLORS: dict[AssetStatus, str] = {
    AssetStatus.ACTIVE: "oklch(0.75 0.18 145)",
    AssetStatus.INACTIVE: "oklch(0.45 0.02 240)",
    AssetStatus.ALERT: "oklch(0.65 0.25 25)",
    AssetStatus.ENROUTE: "oklch(0.75 0.16 75)",
}


def status_color(status: AssetStatus | str) -> str:
    """Render color for an asset status."""
    try:
        return STATUS_COLORS[AssetStatus(status)]
    except ValueError:
        return STATUS_COLORS[AssetStatus.INACTIVE]


def iso_ms(timestamp_ms: int) -> str:
    """Epoch milliseconds to an ISO-8601 UTC string."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class TrailSummary:
    point_count: int
    total_distance: float
    duration_ms: int

    def to_dict(self) -> dict:
        return {
            "pointCount": self.point_count,
            "totalDistance": self.total_distance,
            "durationMs": self.duration_ms,
        }


@dataclass
class Trail:
    asset_id: str
    callsign: str
    status: AssetStatus = AssetStatus.ACTIVE
    capacity: int = TRAIL_CAPACITY
    coordinates: deque = field(default=None, repr=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.coordinates is None:
            self.coordinates = deque(maxlen=self.capacity)

    @property
    def color(self) -> str:
        return status_color(self.status)

    def summary(self) -> TrailSummary:
        points = list(self.coordinates)
        duration = points[-1].timestamp - points[0].timestamp if len(points) >= 2 else 0
        return TrailSummary(
            point_count=len(points),
            total_distance=total_distance(points),
            duration_ms=duration,
        )

    def heading(self) -> float | None:
        """Bearing of the most recent leg, or None with fewer than two points."""
        if len(self.coordinates) < 2:
            return None
        return bearing(self.coordinates[-2], self.coordinates[-1])

    def to_dict(self) -> dict:
        return {
            "assetId": self.asset_id,
            "callsign": self.callsign,
            "status": self.status.value,
            "color": self.color,
            "coordinates": [c.to_dict() for c in self.coordinates],
        }

    @classmethod
    def from_dict(cls, data: dict, capacity: int = TRAIL_CAPACITY) -> Trail:
        trail = cls(
            asset_id=data["assetId"],
            callsign=data.get("callsign") or data["assetId"],
            status=AssetStatus(data.get("status", "active")),
            capacity=capacity,
        )
        trail.coordinates.extend(Coordinate.from_dict(c) for c in data.get("coordinates", []))
        return trail


class TrailBuffer:
    """All asset trails, keyed by asset id."""

    def __init__(self, capacity: int = TRAIL_CAPACITY, event_bus: EventBus | None = None) -> None:
        if capacity < 1:
            raise ValueError("trail capacity must be at least 1")
        self._capacity = capacity
        self._event_bus = event_bus
        self._trails: dict[str, Trail] = {}
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __contains__(self, asset_id: str) -> bool:
        return asset_id in self._trails

    def __len__(self) -> int:
        return len(self._trails)

    # -- Mutation ------------------------------------------------------------

    def record(
        self,
        asset_id: str,
        coord: Coordinate,
        status: AssetStatus | None = None,
        callsign: str | None = None,
    ) -> Trail:
        """Append *coord* to the asset's trail, evicting the oldest past capacity."""
        with self._lock:
            trail = self._trails.get(asset_id)
            if trail is None:
                trail = Trail(
                    asset_id=asset_id,
                    callsign=callsign or asset_id,
                    capacity=self._capacity,
                )
                self._trails[asset_id] = trail
            if status is not None:
                trail.status = AssetStatus(status)
            if callsign:
                trail.callsign = callsign
            trail.coordinates.append(coord)
        self._publish("trail_recorded", {"assetId": asset_id, "coordinate": coord.to_dict()})
        return trail

    def set_status(self, asset_id: str, status: AssetStatus) -> None:
        with self._lock:
            trail = self._trails.get(asset_id)
            if trail is not None:
                trail.status = AssetStatus(status)

    def clear(self, asset_id: str) -> None:
        """Drop every recorded point but keep the trail and its styling."""
        with self._lock:
            trail = self._trails.get(asset_id)
            if trail is None:
                raise NotFoundError("trail", asset_id)
            trail.coordinates.clear()
        self._publish("trail_cleared", {"assetId": asset_id})

    def restore(self, trail: Trail) -> None:
        """Install a trail loaded from persistence, re-applying the cap."""
        fresh = Trail(
            asset_id=trail.asset_id,
            callsign=trail.callsign,
            status=trail.status,
            capacity=self._capacity,
        )
        fresh.coordinates.extend(trail.coordinates)
        with self._lock:
            self._trails[trail.asset_id] = fresh

    # -- Read access ---------------------------------------------------------

    def get(self, asset_id: str) -> Trail | None:
        with self._lock:
            return self._trails.get(asset_id)

    def points(self, asset_id: str) -> tuple[Coordinate, ...]:
        with self._lock:
            trail = self._trails.get(asset_id)
            return tuple(trail.coordinates) if trail else ()

    def all(self) -> list[Trail]:
        with self._lock:
            return list(self._trails.values())

    def summary(self, asset_id: str) -> TrailSummary:
        with self._lock:
            trail = self._trails.get(asset_id)
            if trail is None:
                return TrailSummary(point_count=0, total_distance=0.0, duration_ms=0)
            return trail.summary()

    def export(self, asset_id: str, now: int | None = None) -> dict:
        """Flat export document for operator download."""
        with self._lock:
            trail = self._trails.get(asset_id)
            if trail is None:
                raise NotFoundError("trail", asset_id)
            points = list(trail.coordinates)
            callsign = trail.callsign
        return {
            "assetId": asset_id,
            "callsign": callsign,
            "exportedAt": iso_ms(now if now is not None else now_ms()),
            "totalCoordinates": len(points),
            "totalDistance": total_distance(points),
            "coordinates": [
                {
                    "index": idx,
                    "latitude": c.latitude,
                    "longitude": c.longitude,
                    "altitude": c.altitude,
                    "timestamp": c.timestamp,
                    "datetime": iso_ms(c.timestamp),
                }
                for idx, c in enumerate(points)
            ],
        }

    def _publish(self, event_type: str, data: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, data)
