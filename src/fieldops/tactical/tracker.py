# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""AssetTracker — last-known position and status for every tracked asset.

Position updates for one asset are applied in arrival order:
  - the trail records every fix as it arrives, regardless of clock skew
  - "current position" only moves forward in time; a fix older than the
    current one is kept in the trail but does not replace the position

After each update the map transform re-fits to all known positions and the
grid cell of every asset is recomputed.  Assets are never deleted, only
marked inactive.

The asset table is copy-on-write: every mutation installs a new dict of new
Asset values, so a reader holding the result of ``all()`` never observes a
half-applied update.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from fieldops.errors import NotFoundError, ValidationError

from .geodesy import bearing, distance, normalize_heading
from .models import Asset, AssetStatus, Coordinate, now_ms
from .trails import TrailBuffer
from .transform import CoordinateTransform

if TYPE_CHECKING:
    from fieldops.comms.event_bus import EventBus

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Telemetry:
    """One position report from a field client."""

    agent_id: str
    latitude: float
    longitude: float
    timestamp: int
    callsign: str = ""
    asset_id: str | None = None
    altitude: float | None = None
    speed: float | None = None
    heading: float | None = None
    status: AssetStatus | None = None

    @property
    def key(self) -> str:
        return self.asset_id or self.agent_id

    @classmethod
    def from_dict(cls, data: dict) -> Telemetry:
        """Accept both engine field names and the wire's camelCase names."""
        agent_id = data.get("agent_id") or data.get("agentId") or data.get("playerId")
        if not agent_id:
            raise ValidationError("telemetry requires an agent id", field="agentId")
        status = data.get("status")
        timestamp = data.get("timestamp")
        if timestamp is None:
            timestamp = data.get("lastUpdate")
        try:
            return cls(
                agent_id=str(agent_id),
                latitude=float(data["latitude"]),
                longitude=float(data["longitude"]),
                timestamp=int(timestamp) if timestamp is not None else now_ms(),
                callsign=str(data.get("callsign") or data.get("playerCallsign") or ""),
                asset_id=data.get("asset_id") or data.get("assetId"),
                altitude=data.get("altitude"),
                speed=data.get("speed"),
                heading=data.get("heading"),
                status=AssetStatus(status) if status else None,
            )
        except KeyError as exc:
            raise ValidationError(f"telemetry missing {exc.args[0]}", field=exc.args[0]) from None
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"malformed telemetry: {exc}") from None


class AssetTracker:
    """Owns the asset table and feeds trails and the map transform."""

    def __init__(
        self,
        trails: TrailBuffer,
        transform: CoordinateTransform,
        event_bus: EventBus | None = None,
    ) -> None:
        self._trails = trails
        self._transform = transform
        self._event_bus = event_bus
        self._assets: dict[str, Asset] = {}
        self._lock = threading.Lock()

    # -- Read access ---------------------------------------------------------

    def get(self, asset_id: str) -> Asset | None:
        return self._assets.get(asset_id)

    def all(self) -> list[Asset]:
        return list(self._assets.values())

    def roster(self) -> list[str]:
        """Agent ids of every known asset, in first-seen order."""
        seen: dict[str, None] = {}
        for asset in self._assets.values():
            seen.setdefault(asset.agent_id, None)
        return list(seen)

    def find_by_agent(self, agent_id: str) -> Asset | None:
        for asset in self._assets.values():
            if asset.agent_id == agent_id:
                return asset
        return None

    def __len__(self) -> int:
        return len(self._assets)

    # -- Mutation ------------------------------------------------------------

    def update_position(self, telemetry: Telemetry) -> Asset:
        """Apply one position report. Raises ValidationError for bad coordinates."""
        coord = Coordinate(
            latitude=telemetry.latitude,
            longitude=telemetry.longitude,
            altitude=telemetry.altitude,
            timestamp=telemetry.timestamp,
        )
        heading = normalize_heading(telemetry.heading) if telemetry.heading is not None else None

        with self._lock:
            current = self._assets.get(telemetry.key)
            if current is None:
                asset = Asset(
                    id=telemetry.key,
                    agent_id=telemetry.agent_id,
                    callsign=telemetry.callsign or telemetry.agent_id,
                    position=coord,
                    status=telemetry.status or AssetStatus.ACTIVE,
                    speed=telemetry.speed,
                    heading=heading,
                    last_update=coord.timestamp,
                )
            elif coord.timestamp >= current.position.timestamp:
                prev = current.position
                if heading is None and (prev.latitude, prev.longitude) != (coord.latitude, coord.longitude):
                    heading = bearing(prev, coord)
                speed = telemetry.speed
                elapsed_s = (coord.timestamp - prev.timestamp) / 1000.0
                if speed is None and elapsed_s > 0:
                    speed = distance(prev, coord) / elapsed_s
                asset = dataclasses.replace(
                    current,
                    callsign=telemetry.callsign or current.callsign,
                    position=coord,
                    status=telemetry.status or current.status,
                    speed=speed if speed is not None else current.speed,
                    heading=heading if heading is not None else current.heading,
                    last_update=coord.timestamp,
                )
            else:
                log.debug(
                    "Stale fix for %s (%d < %d); trail only",
                    telemetry.key, coord.timestamp, current.position.timestamp,
                )
                asset = dataclasses.replace(
                    current, status=telemetry.status or current.status,
                )

            assets = dict(self._assets)
            assets[asset.id] = asset
            self._refit(assets)
            self._assets = assets
            asset = assets[asset.id]

        self._trails.record(asset.id, coord, status=asset.status, callsign=asset.callsign)
        self._publish("asset_updated", asset.to_dict())
        return asset

    def set_status(self, asset_id: str, status: AssetStatus | str) -> Asset:
        try:
            status = AssetStatus(status)
        except ValueError:
            raise ValidationError(f"unknown asset status: {status}", field="status") from None
        with self._lock:
            current = self._assets.get(asset_id)
            if current is None:
                raise NotFoundError("asset", asset_id)
            asset = dataclasses.replace(current, status=status)
            assets = dict(self._assets)
            assets[asset_id] = asset
            self._assets = assets
        self._trails.set_status(asset_id, status)
        self._publish("asset_updated", asset.to_dict())
        return asset

    def mark_inactive(self, asset_id: str) -> Asset:
        return self.set_status(asset_id, AssetStatus.INACTIVE)

    def restore(self, assets: list[Asset]) -> None:
        """Install assets loaded from persistence."""
        with self._lock:
            table = {a.id: a for a in assets}
            self._refit(table)
            self._assets = table

    def refit(self) -> None:
        """Re-fit the transform and recompute grid cells (e.g. after a view reset)."""
        with self._lock:
            assets = dict(self._assets)
            self._refit(assets)
            self._assets = assets

    def _refit(self, assets: dict[str, Asset]) -> None:
        self._transform.fit(a.position for a in assets.values())
        for asset_id, asset in assets.items():
            cell = self._transform.to_grid_cell(asset.position)
            if cell != asset.grid_cell:
                assets[asset_id] = dataclasses.replace(asset, grid_cell=cell)

    def _publish(self, event_type: str, data: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, data)
