# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Core tactical data model — coordinates, assets, grid cells, lanes.

Timestamps are epoch milliseconds throughout the engine.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from enum import Enum

from fieldops.errors import ValidationError

GRID_SIZE = 8


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class AssetStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ALERT = "alert"
    ENROUTE = "enroute"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class LaneStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    COMPROMISED = "compromised"


def _finite(value: float, name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number", field=name) from None
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite", field=name)
    return value


@dataclass(frozen=True)
class Coordinate:
    """A WGS-84 position fix. Out-of-range values are rejected, never clamped."""

    latitude: float
    longitude: float
    altitude: float | None = None
    timestamp: int = 0

    def __post_init__(self) -> None:
        lat = _finite(self.latitude, "latitude")
        lng = _finite(self.longitude, "longitude")
        if not -90.0 <= lat <= 90.0:
            raise ValidationError(f"latitude out of range: {lat}", field="latitude")
        if not -180.0 <= lng <= 180.0:
            raise ValidationError(f"longitude out of range: {lng}", field="longitude")
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lng)
        if self.altitude is not None:
            object.__setattr__(self, "altitude", _finite(self.altitude, "altitude"))

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Coordinate:
        if "latitude" not in data or "longitude" not in data:
            raise ValidationError("coordinate requires latitude and longitude")
        return cls(
            latitude=data["latitude"],
            longitude=data["longitude"],
            altitude=data.get("altitude"),
            timestamp=int(data.get("timestamp") or 0),
        )


@dataclass(frozen=True)
class GridCell:
    """A cell of the 8x8 tactical grid. (0, 0) is the north-west corner."""

    x: int
    y: int

    def __post_init__(self) -> None:
        for name, value in (("x", self.x), ("y", self.y)):
            if not isinstance(value, int) or not 0 <= value < GRID_SIZE:
                raise ValidationError(
                    f"grid {name} must be an integer in 0..{GRID_SIZE - 1}", field=name,
                )

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict) -> GridCell:
        return cls(x=data["x"], y=data["y"])


@dataclass
class Asset:
    """A tracked agent or player. Mutated only by the AssetTracker."""

    id: str
    agent_id: str
    callsign: str
    position: Coordinate
    status: AssetStatus = AssetStatus.ACTIVE
    grid_cell: GridCell | None = None
    speed: float | None = None
    heading: float | None = None
    last_update: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "callsign": self.callsign,
            "position": self.position.to_dict(),
            "status": self.status.value,
            "gridCell": self.grid_cell.to_dict() if self.grid_cell else None,
            "speed": self.speed,
            "heading": self.heading,
            "lastUpdate": self.last_update,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Asset:
        cell = data.get("gridCell")
        return cls(
            id=data["id"],
            agent_id=data["agentId"],
            callsign=data["callsign"],
            position=Coordinate.from_dict(data["position"]),
            status=AssetStatus(data.get("status", "active")),
            grid_cell=GridCell.from_dict(cell) if cell else None,
            speed=data.get("speed"),
            heading=data.get("heading"),
            last_update=int(data.get("lastUpdate") or 0),
        )


@dataclass(frozen=True)
class Lane:
    """A directed route between two grid cells. Only ``status`` ever changes,
    and that by replacement through the LaneBoard."""

    id: str
    name: str
    start: GridCell
    end: GridCell
    assigned_assets: tuple[str, ...] = ()
    priority: Priority = Priority.NORMAL
    status: LaneStatus = LaneStatus.ACTIVE
    created_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "startGrid": self.start.to_dict(),
            "endGrid": self.end.to_dict(),
            "assignedAssets": list(self.assigned_assets),
            "priority": self.priority.value,
            "status": self.status.value,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Lane:
        return cls(
            id=data["id"],
            name=data["name"],
            start=GridCell.from_dict(data["startGrid"]),
            end=GridCell.from_dict(data["endGrid"]),
            assigned_assets=tuple(data.get("assignedAssets", ())),
            priority=Priority(data.get("priority", "normal")),
            status=LaneStatus(data.get("status", "active")),
            created_at=int(data.get("createdAt") or 0),
        )
