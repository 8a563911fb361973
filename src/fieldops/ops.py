# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""OperationsContext — one wired instance of every engine component.

The web app builds a single context at startup and hangs it on
``app.state.ops``; routers and background tasks reach the stores only
through it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fieldops.alerts import AlertEvent, FanOutAlertSink, LoggingAlertSink, RecordingAlertSink
from fieldops.annotations.geofence import GeofenceMonitor, GeofenceViolation
from fieldops.annotations.store import AnnotationStore
from fieldops.broadcasts.reconciler import BroadcastReconciler
from fieldops.comms.event_bus import EventBus
from fieldops.overdue import DEFAULT_TIMEOUT_MS, OverdueMonitor
from fieldops.persistence import KeyValueStore, load_state, save_state
from fieldops.sync.collaborators import SyncClient
from fieldops.sync.coordinator import SyncCoordinator
from fieldops.sync.scheduler import PeriodicTask
from fieldops.tactical.lanes import LaneBoard
from fieldops.tactical.trails import TRAIL_CAPACITY, TrailBuffer
from fieldops.tactical.tracker import AssetTracker
from fieldops.tactical.transform import CoordinateTransform

log = logging.getLogger(__name__)


@dataclass
class OperationsContext:
    event_bus: EventBus
    trails: TrailBuffer
    transform: CoordinateTransform
    tracker: AssetTracker
    lanes: LaneBoard
    annotations: AnnotationStore
    broadcasts: BroadcastReconciler
    alerts: RecordingAlertSink
    geofence: GeofenceMonitor
    overdue: OverdueMonitor
    operator_id: str = "operator"
    sync: SyncCoordinator | None = None
    storage: KeyValueStore | None = None
    geofence_interval: float = 5.0
    overdue_interval: float = 30.0
    _tasks: list[PeriodicTask] = field(default_factory=list, repr=False)

    @classmethod
    def create(
        cls,
        transform: CoordinateTransform | None = None,
        trail_capacity: int = TRAIL_CAPACITY,
        ack_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        operator_id: str = "operator",
        sync_client: SyncClient | None = None,
        storage: KeyValueStore | None = None,
        broadcast_interval: float = 1.0,
        telemetry_interval: float = 1.0,
        geofence_interval: float = 5.0,
        overdue_interval: float = 30.0,
    ) -> OperationsContext:
        event_bus = EventBus()
        trails = TrailBuffer(capacity=trail_capacity, event_bus=event_bus)
        transform = transform or CoordinateTransform()
        tracker = AssetTracker(trails, transform, event_bus)
        annotations = AnnotationStore(event_bus)
        broadcasts = BroadcastReconciler(event_bus)
        recorder = RecordingAlertSink()
        sink = FanOutAlertSink(recorder, LoggingAlertSink())
        geofence = GeofenceMonitor(event_bus=event_bus, alert_sink=sink)
        overdue = OverdueMonitor(
            annotations,
            broadcasts,
            roster=tracker.roster,
            alert_sink=sink,
            local_agent_id=operator_id,
            timeout_ms=ack_timeout_ms,
        )
        sync = None
        if sync_client is not None:
            sync = SyncCoordinator(
                sync_client,
                tracker,
                annotations,
                broadcasts,
                alert_sink=sink,
                agent_id=operator_id,
                broadcast_interval=broadcast_interval,
                telemetry_interval=telemetry_interval,
            )
        return cls(
            event_bus=event_bus,
            trails=trails,
            transform=transform,
            tracker=tracker,
            lanes=LaneBoard(event_bus),
            annotations=annotations,
            broadcasts=broadcasts,
            alerts=recorder,
            geofence=geofence,
            overdue=overdue,
            operator_id=operator_id,
            sync=sync,
            storage=storage,
            geofence_interval=geofence_interval,
            overdue_interval=overdue_interval,
        )

    # -- Periodic checks -----------------------------------------------------

    def check_geofences(self, now: int | None = None) -> list[GeofenceViolation]:
        return self.geofence.check(self.tracker.all(), self.annotations.all(), now)

    def check_overdue(self, now: int | None = None) -> list[AlertEvent]:
        return self.overdue.check(now)

    def tasks(self) -> list[PeriodicTask]:
        """Background jobs for the app lifespan, built once."""
        if not self._tasks:
            self._tasks = [
                PeriodicTask("geofence-check", self.geofence_interval, self.check_geofences),
                PeriodicTask("overdue-check", self.overdue_interval, self.check_overdue),
            ]
            if self.sync is not None:
                self._tasks.extend(self.sync.tasks())
        return list(self._tasks)

    # -- Persistence ---------------------------------------------------------

    def save(self) -> dict[str, int]:
        if self.storage is None:
            return {}
        return save_state(self, self.storage)

    def load(self) -> dict[str, int]:
        if self.storage is None:
            return {}
        return load_state(self, self.storage)
