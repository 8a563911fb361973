# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""BroadcastReconciler — targeting, acknowledgment dedup and expiry.

Lifecycle per broadcast::

    issued -> (acknowledged by a subset) -> expired | fully acknowledged

Nothing past ``issued`` is stored.  Expiry and completion are derived on
read from ``now`` and the roster, so a late acknowledgment on an expired
broadcast is still accepted and kept: expiry only changes presentation.

The broadcast table is copy-on-write, like the other stores.  Deleted ids
are remembered (up to MAX_DELETED) so a later poll cannot bring a
broadcast back.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Iterable, Union

from fieldops.acknowledgments import (
    AckStats,
    Acknowledgment,
    merge,
    response_counts,
    targeted_agents,
    upsert,
)
from fieldops.errors import NotFoundError, ValidationError
from fieldops.result import Result, capture
from fieldops.tactical.models import Priority, now_ms

from .models import BroadcastStatus, BroadcastType, TrackedBroadcast

if TYPE_CHECKING:
    from fieldops.comms.event_bus import EventBus

log = logging.getLogger(__name__)

MAX_DELETED = 1000


# ---------------------------------------------------------------------------
# Pure protocol functions
# ---------------------------------------------------------------------------

def is_targeted(broadcast: TrackedBroadcast, agent_id: str) -> bool:
    """An empty target list means everyone."""
    return not broadcast.target_agents or agent_id in broadcast.target_agents


def is_expired(broadcast: TrackedBroadcast, now: int) -> bool:
    if not broadcast.auto_expire_ms:
        return False
    return now - broadcast.issued_at > broadcast.auto_expire_ms


def pending_agents(broadcast: TrackedBroadcast, roster: Iterable[str], now: int) -> list[str]:
    """Targeted roster members that still owe a response. Empty once expired."""
    if is_expired(broadcast, now):
        return []
    responded = {a.agent_id for a in broadcast.acknowledgments}
    return [
        agent for agent in dict.fromkeys(roster)
        if is_targeted(broadcast, agent) and agent not in responded
    ]


def ack_stats(broadcast: TrackedBroadcast, roster: Iterable[str]) -> AckStats:
    targets = targeted_agents(broadcast.target_agents, roster)
    responded = {a.agent_id for a in broadcast.acknowledgments}
    pending = [agent for agent in targets if agent not in responded]
    counts = response_counts(broadcast.acknowledgments)
    return AckStats(
        total=len(targets),
        acknowledged=counts["acknowledged"],
        unable=counts["unable"],
        noted=counts["noted"],
        negative=counts["negative"],
        pending=len(pending),
        pending_agents=tuple(pending),
    )


def status(broadcast: TrackedBroadcast, roster: Iterable[str], now: int) -> BroadcastStatus:
    if is_expired(broadcast, now):
        return BroadcastStatus.EXPIRED
    stats = ack_stats(broadcast, roster)
    if stats.pending == 0:
        return BroadcastStatus.COMPLETE
    if broadcast.acknowledgments:
        return BroadcastStatus.PARTIAL
    return BroadcastStatus.PENDING


def progress(broadcast: TrackedBroadcast, roster: Iterable[str]) -> float:
    return ack_stats(broadcast, roster).rate


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IssueBroadcast:
    message: str
    issued_by: str
    type: BroadcastType | str = BroadcastType.GENERAL
    priority: Priority | str = Priority.NORMAL
    target_agents: tuple[str, ...] = ()
    requires_ack: bool = False
    auto_expire_ms: int | None = None


@dataclass(frozen=True)
class AcknowledgeBroadcast:
    broadcast_id: str
    ack: Acknowledgment


@dataclass(frozen=True)
class DeleteBroadcast:
    broadcast_id: str


BroadcastCommand = Union[IssueBroadcast, AcknowledgeBroadcast, DeleteBroadcast]


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class BroadcastReconciler:
    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._event_bus = event_bus
        self._broadcasts: dict[str, TrackedBroadcast] = {}
        self._deleted: dict[str, None] = {}
        self._lock = threading.Lock()

    # -- Read access ---------------------------------------------------------

    def get(self, broadcast_id: str) -> TrackedBroadcast | None:
        return self._broadcasts.get(broadcast_id)

    def all(self) -> list[TrackedBroadcast]:
        """Newest first."""
        return sorted(self._broadcasts.values(), key=lambda b: b.issued_at, reverse=True)

    def __len__(self) -> int:
        return len(self._broadcasts)

    def active(self, now: int | None = None) -> list[TrackedBroadcast]:
        now = now if now is not None else now_ms()
        return [b for b in self.all() if not is_expired(b, now)]

    def requiring_attention(self, agent_id: str, now: int | None = None) -> list[TrackedBroadcast]:
        """Unexpired broadcasts that need *agent_id*'s acknowledgment."""
        now = now if now is not None else now_ms()
        return [
            b for b in self.all()
            if b.requires_ack and agent_id in pending_agents(b, [agent_id], now)
        ]

    # -- Commands ------------------------------------------------------------

    def apply(self, command: BroadcastCommand) -> Result:
        if isinstance(command, IssueBroadcast):
            return capture(lambda: self.issue(
                message=command.message,
                issued_by=command.issued_by,
                type=command.type,
                priority=command.priority,
                target_agents=command.target_agents,
                requires_ack=command.requires_ack,
                auto_expire_ms=command.auto_expire_ms,
            ))
        if isinstance(command, AcknowledgeBroadcast):
            return capture(lambda: self.acknowledge(command.broadcast_id, command.ack))
        if isinstance(command, DeleteBroadcast):
            return capture(lambda: self.delete(command.broadcast_id))
        raise TypeError(f"unknown broadcast command: {type(command).__name__}")

    def build(
        self,
        message: str,
        issued_by: str,
        type: BroadcastType | str = BroadcastType.GENERAL,
        priority: Priority | str = Priority.NORMAL,
        target_agents: Iterable[str] = (),
        requires_ack: bool = False,
        auto_expire_ms: int | None = None,
        now: int | None = None,
        broadcast_id: str | None = None,
    ) -> TrackedBroadcast:
        """Validate and construct a broadcast without storing it."""
        if not message or not message.strip():
            raise ValidationError("broadcast message must not be empty", field="message")
        if not issued_by:
            raise ValidationError("issuedBy must not be empty", field="issuedBy")
        try:
            kind = BroadcastType(type)
            priority = Priority(priority)
        except ValueError as exc:
            raise ValidationError(str(exc)) from None
        if auto_expire_ms is not None and auto_expire_ms <= 0:
            raise ValidationError("autoExpireMs must be positive", field="autoExpireMs")

        return TrackedBroadcast(
            id=broadcast_id or f"bc-{uuid.uuid4().hex[:12]}",
            message=message.strip(),
            issued_by=issued_by,
            issued_at=now if now is not None else now_ms(),
            type=kind,
            priority=priority,
            target_agents=tuple(dict.fromkeys(target_agents)),
            requires_ack=requires_ack,
            auto_expire_ms=auto_expire_ms,
        )

    def issue(self, message: str, issued_by: str, **kwargs) -> TrackedBroadcast:
        broadcast = self.build(message, issued_by, **kwargs)
        self.add(broadcast)
        return broadcast

    def add(self, broadcast: TrackedBroadcast) -> None:
        with self._lock:
            if broadcast.id in self._broadcasts:
                raise ValidationError(f"broadcast {broadcast.id} already exists", field="id")
            self._broadcasts = {**self._broadcasts, broadcast.id: broadcast}
        log.info("Broadcast %s issued by %s (%s)", broadcast.id, broadcast.issued_by, broadcast.type.value)
        self._publish("broadcast_issued", broadcast.to_dict())

    def acknowledge(self, broadcast_id: str, ack: Acknowledgment) -> TrackedBroadcast | None:
        """Record *ack*, replacing the agent's earlier one. Expired broadcasts accept acks too."""
        if ack.target_id != broadcast_id:
            ack = replace(ack, target_id=broadcast_id)
        with self._lock:
            current = self._broadcasts.get(broadcast_id)
            if current is None:
                log.debug("Ack for missing broadcast %s ignored", broadcast_id)
                return None
            updated = replace(current, acknowledgments=upsert(current.acknowledgments, ack))
            self._broadcasts = {**self._broadcasts, broadcast_id: updated}
        self._publish("broadcast_acknowledged", {
            "broadcastId": broadcast_id,
            "acknowledgment": ack.to_dict(),
        })
        return updated

    def delete(self, broadcast_id: str) -> bool:
        with self._lock:
            if broadcast_id not in self._broadcasts:
                return False
            table = dict(self._broadcasts)
            del table[broadcast_id]
            self._broadcasts = table
            self._tombstone(broadcast_id)
        self._publish("broadcast_deleted", {"broadcastId": broadcast_id})
        return True

    def require(self, broadcast_id: str) -> TrackedBroadcast:
        broadcast = self._broadcasts.get(broadcast_id)
        if broadcast is None:
            raise NotFoundError("broadcast", broadcast_id)
        return broadcast

    def ingest(
        self,
        polled: Iterable[TrackedBroadcast],
        local_acks: Iterable[Acknowledgment] = (),
    ) -> list[TrackedBroadcast]:
        """Merge broadcasts from a poll. Returns the ones not seen before.

        Known broadcasts keep their local fields.  Acknowledgments are folded
        per agent in application order: the local set, then the remote set,
        then *local_acks* on top.  Those are the acknowledgments the poll may
        not reflect yet (unconfirmed, or pushed while the poll was in flight),
        so a stale poll cannot erase them.  Deleted ids are skipped.
        """
        pending_by_target: dict[str, list[Acknowledgment]] = {}
        for ack in local_acks:
            pending_by_target.setdefault(ack.target_id, []).append(ack)

        new: list[TrackedBroadcast] = []
        changed: list[TrackedBroadcast] = []
        with self._lock:
            table = dict(self._broadcasts)
            for remote in polled:
                if remote.id in self._deleted:
                    continue
                local = table.get(remote.id)
                if local is None:
                    merged = replace(remote, acknowledgments=merge(
                        remote.acknowledgments, pending_by_target.get(remote.id, ()),
                    ))
                    table[remote.id] = merged
                    new.append(merged)
                    continue
                acks = merge(
                    local.acknowledgments + remote.acknowledgments,
                    pending_by_target.get(remote.id, ()),
                )
                if set(acks) != set(local.acknowledgments):
                    merged = replace(local, acknowledgments=acks)
                    table[remote.id] = merged
                    changed.append(merged)
            self._broadcasts = table

        for broadcast in new:
            self._publish("broadcast_issued", broadcast.to_dict())
        for broadcast in changed:
            self._publish("broadcast_updated", broadcast.to_dict())
        return new

    def restore(self, broadcasts: Iterable[TrackedBroadcast], deleted: Iterable[str] = ()) -> None:
        with self._lock:
            self._broadcasts = {b.id: b for b in broadcasts}
            self._deleted = {}
            for broadcast_id in deleted:
                self._tombstone(broadcast_id)

    def deleted_ids(self) -> list[str]:
        """Ids deleted locally, oldest first."""
        with self._lock:
            return list(self._deleted)

    def _tombstone(self, broadcast_id: str) -> None:
        # Caller holds the lock
        self._deleted.pop(broadcast_id, None)
        self._deleted[broadcast_id] = None
        while len(self._deleted) > MAX_DELETED:
            del self._deleted[next(iter(self._deleted))]

    def _publish(self, event_type: str, data: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, data)
