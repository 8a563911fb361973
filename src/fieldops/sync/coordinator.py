# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""SyncCoordinator — keeps local stores in step with the shared game state.

Acknowledgments are optimistic: they are applied to the local store first,
parked in an outbox, then pushed.  A failed push leaves the entry in the
outbox; it is retried on the next broadcast tick, and until it is confirmed
it is re-applied on top of every poll so a stale poll cannot erase it.
Confirmed acks are kept a little longer: any poll that started before an
ack was recorded gets it re-applied too, since the snapshot it returns
predates the push.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fieldops.acknowledgments import Acknowledgment, AckResponse
from fieldops.alerts import AlertEvent, AlertKind, AlertSink, Severity
from fieldops.annotations.models import Annotation
from fieldops.annotations.store import AnnotationStore
from fieldops.broadcasts.models import BroadcastType, TrackedBroadcast
from fieldops.broadcasts.reconciler import BroadcastReconciler, is_targeted
from fieldops.errors import SyncFailure, ValidationError
from fieldops.tactical.models import Priority, now_ms
from fieldops.tactical.tracker import AssetTracker

from .collaborators import SyncClient
from .scheduler import PeriodicTask

log = logging.getLogger(__name__)

ANNOTATION = "annotation"
BROADCAST = "broadcast"

_ALERT_SEVERITY = {
    Priority.CRITICAL: Severity.CRITICAL,
    Priority.HIGH: Severity.WARNING,
}


@dataclass(frozen=True)
class OutboxEntry:
    kind: str
    ack: Acknowledgment
    seq: int = 0


class SyncCoordinator:
    def __init__(
        self,
        client: SyncClient,
        tracker: AssetTracker,
        annotations: AnnotationStore,
        broadcasts: BroadcastReconciler,
        alert_sink: AlertSink | None = None,
        agent_id: str = "operator",
        callsign: str = "",
        broadcast_interval: float = 1.0,
        telemetry_interval: float = 1.0,
    ) -> None:
        self._client = client
        self._tracker = tracker
        self._annotations = annotations
        self._broadcasts = broadcasts
        self._alert_sink = alert_sink
        self.agent_id = agent_id
        self.callsign = callsign or agent_id
        self._outbox: list[OutboxEntry] = []
        self._confirmed: list[OutboxEntry] = []
        self._seq = 0
        self._broadcast_task = PeriodicTask("broadcast-poll", broadcast_interval, self.poll_broadcasts)
        self._telemetry_task = PeriodicTask("telemetry-poll", telemetry_interval, self.poll_telemetry)

    @property
    def client(self) -> SyncClient:
        return self._client

    @property
    def outbox(self) -> list[OutboxEntry]:
        return list(self._outbox)

    def tasks(self) -> list[PeriodicTask]:
        return [self._broadcast_task, self._telemetry_task]

    # -- Polling -------------------------------------------------------------

    async def poll_broadcasts(self) -> list[TrackedBroadcast]:
        """Retry the outbox, then fold the polled broadcasts into the reconciler."""
        await self.flush_outbox()
        started = self._seq
        polled = await self._client.poll_broadcasts()
        # Confirmed before this poll started: the snapshot already has them
        self._confirmed = [e for e in self._confirmed if e.seq > started]
        overlay = sorted(self._confirmed + self._outbox, key=lambda e: e.seq)
        new = self._broadcasts.ingest(polled, [e.ack for e in overlay if e.kind == BROADCAST])
        for broadcast in new:
            if broadcast.issued_by != self.agent_id and is_targeted(broadcast, self.agent_id):
                self._alert_new(broadcast)
        return new

    async def poll_telemetry(self) -> int:
        """Apply polled position reports. Returns how many were accepted."""
        accepted = 0
        for report in await self._client.poll_telemetry():
            try:
                self._tracker.update_position(report)
                accepted += 1
            except ValidationError as exc:
                log.warning("Dropped telemetry from %s: %s", report.agent_id, exc)
        return accepted

    # -- Acknowledgments -----------------------------------------------------

    async def record_acknowledgment(
        self,
        kind: str,
        target_id: str,
        response: AckResponse | str = AckResponse.ACKNOWLEDGED,
        message: str | None = None,
        now: int | None = None,
    ) -> Acknowledgment | None:
        """Apply locally, then push. Returns None when the target no longer exists."""
        ack = Acknowledgment.create(
            target_id=target_id,
            agent_id=self.agent_id,
            agent_callsign=self.callsign,
            response=response,
            message=message,
            now=now,
        )
        if kind == ANNOTATION:
            applied = self._annotations.acknowledge(target_id, ack)
        elif kind == BROADCAST:
            applied = self._broadcasts.acknowledge(target_id, ack)
        else:
            raise ValidationError(f"unknown acknowledgment kind: {kind}", field="kind")
        if applied is None:
            return None

        self._seq += 1
        entry = OutboxEntry(kind, ack, self._seq)
        # One outstanding ack per (kind, target, agent); the newest wins
        self._outbox = [
            e for e in self._outbox
            if not (e.kind == kind and e.ack.target_id == target_id and e.ack.agent_id == ack.agent_id)
        ] + [entry]
        await self._push(entry)
        return ack

    async def flush_outbox(self) -> int:
        """Retry every unconfirmed acknowledgment. Returns how many were confirmed."""
        confirmed = 0
        for entry in list(self._outbox):
            if await self._push(entry):
                confirmed += 1
        return confirmed

    async def _push(self, entry: OutboxEntry) -> bool:
        try:
            await self._client.push_acknowledgment(entry.kind, entry.ack)
        except SyncFailure as exc:
            log.warning("Ack push for %s %s deferred: %s", entry.kind, entry.ack.target_id, exc)
            return False
        if entry in self._outbox:
            self._outbox.remove(entry)
            self._confirmed.append(entry)
        return True

    # -- Outbound ------------------------------------------------------------

    async def broadcast_annotation(self, annotation: Annotation) -> TrackedBroadcast:
        """Announce *annotation* to the field as a general broadcast.

        Stored locally only once the sync collaborator has accepted it; a
        SyncFailure leaves the reconciler untouched.
        """
        text = f"{annotation.type.value.upper()}: {annotation.label}"
        if annotation.description:
            text = f"{text} - {annotation.description}"
        broadcast = self._broadcasts.build(
            message=text,
            issued_by=self.agent_id,
            type=BroadcastType.GENERAL,
            priority=annotation.priority,
            target_agents=annotation.target_agents,
            requires_ack=annotation.requires_ack,
            auto_expire_ms=annotation.auto_expire_ms,
        )
        await self._client.publish_broadcast(broadcast)
        # A poll may have picked it up while the publish was in flight
        if self._broadcasts.get(broadcast.id) is None:
            self._broadcasts.add(broadcast)
        return broadcast

    def _alert_new(self, broadcast: TrackedBroadcast) -> None:
        if self._alert_sink is None:
            return
        self._alert_sink.notify(AlertEvent(
            kind=AlertKind.BROADCAST,
            severity=_ALERT_SEVERITY.get(broadcast.priority, Severity.INFO),
            title=f"{broadcast.type.value.upper()} from {broadcast.issued_by}",
            detail=broadcast.message,
            subject_id=broadcast.id,
            raised_at=now_ms(),
        ))
