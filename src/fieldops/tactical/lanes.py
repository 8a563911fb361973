# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""LaneBoard — directed routes between tactical grid cells."""

from __future__ import annotations

import dataclasses
import threading
import uuid
from typing import TYPE_CHECKING, Iterable

from fieldops.errors import NotFoundError, ValidationError

from .models import Asset, GridCell, Lane, LaneStatus, Priority, now_ms

if TYPE_CHECKING:
    from fieldops.comms.event_bus import EventBus

# status -> statuses it may move to
_TRANSITIONS: dict[LaneStatus, frozenset[LaneStatus]] = {
    LaneStatus.ACTIVE: frozenset({LaneStatus.COMPLETED, LaneStatus.COMPROMISED}),
    LaneStatus.COMPROMISED: frozenset({LaneStatus.ACTIVE}),
    LaneStatus.COMPLETED: frozenset(),
}


class LaneBoard:
    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._event_bus = event_bus
        self._lanes: dict[str, Lane] = {}
        self._lock = threading.Lock()

    def get(self, lane_id: str) -> Lane | None:
        return self._lanes.get(lane_id)

    def all(self) -> list[Lane]:
        return list(self._lanes.values())

    def lanes_for_asset(self, asset_id: str) -> list[Lane]:
        return [lane for lane in self._lanes.values() if asset_id in lane.assigned_assets]

    def create_lane(
        self,
        name: str,
        start: GridCell,
        end: GridCell,
        assigned_assets: Iterable[str] = (),
        priority: Priority | str = Priority.NORMAL,
        now: int | None = None,
    ) -> Lane:
        if not name or not name.strip():
            raise ValidationError("lane name must not be empty", field="name")
        if not isinstance(start, GridCell) or not isinstance(end, GridCell):
            raise ValidationError("lane endpoints must be grid cells")
        try:
            priority = Priority(priority)
        except ValueError:
            raise ValidationError(f"unknown priority: {priority}", field="priority") from None

        lane = Lane(
            id=f"lane-{uuid.uuid4().hex[:8]}",
            name=name.strip(),
            start=start,
            end=end,
            assigned_assets=tuple(dict.fromkeys(assigned_assets)),
            priority=priority,
            created_at=now if now is not None else now_ms(),
        )
        with self._lock:
            self._lanes = {**self._lanes, lane.id: lane}
        self._publish("lane_created", lane.to_dict())
        return lane

    def transition(self, lane_id: str, status: LaneStatus | str) -> Lane:
        try:
            status = LaneStatus(status)
        except ValueError:
            raise ValidationError(f"unknown lane status: {status}", field="status") from None
        with self._lock:
            lane = self._lanes.get(lane_id)
            if lane is None:
                raise NotFoundError("lane", lane_id)
            if status == lane.status:
                return lane
            if status not in _TRANSITIONS[lane.status]:
                raise ValidationError(
                    f"lane cannot move from {lane.status.value} to {status.value}",
                    field="status",
                )
            lane = dataclasses.replace(lane, status=status)
            self._lanes = {**self._lanes, lane.id: lane}
        self._publish("lane_status_changed", lane.to_dict())
        return lane

    def restore(self, lanes: list[Lane]) -> None:
        with self._lock:
            self._lanes = {lane.id: lane for lane in lanes}

    @staticmethod
    def endpoints(lane: Lane, assets: Iterable[Asset]) -> tuple[Asset | None, Asset | None]:
        """Assets currently occupying the lane's start and end cells."""
        start = end = None
        for asset in assets:
            if start is None and asset.grid_cell == lane.start:
                start = asset
            if end is None and asset.grid_cell == lane.end:
                end = asset
        return start, end

    def _publish(self, event_type: str, data: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, data)
