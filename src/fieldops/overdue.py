# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""OverdueMonitor — re-alerts on acknowledgments that are taking too long.

An annotation or broadcast that requires acknowledgment becomes overdue
once its timeout has elapsed with at least one targeted agent still
pending.  Annotations use their own ``auto_expire_ms`` as the timeout when
set; broadcasts use the monitor's default (their ``auto_expire_ms`` ends
the obligation instead, see broadcasts.reconciler.pending_agents).

Severity is ``critical`` once an item is more than five minutes overdue,
``warning`` before that.  Each (item, severity) alerts once; critical
items still waiting on the local agent re-alert every REALERT_INTERVAL_MS.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from fieldops.alerts import AlertEvent, AlertKind, AlertSink, Severity
from fieldops.annotations.store import AnnotationStore
from fieldops.broadcasts import reconciler as bc
from fieldops.broadcasts.reconciler import BroadcastReconciler
from fieldops.tactical.models import Priority, now_ms

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5 * 60 * 1000
CRITICAL_AFTER_MS = 5 * 60 * 1000
REALERT_INTERVAL_MS = 30_000


@dataclass(frozen=True)
class OverdueItem:
    kind: str  # "annotation" | "broadcast"
    item_id: str
    label: str
    priority: Priority
    overdue_ms: int
    total_targets: int
    pending_agents: tuple[str, ...]
    local_pending: bool

    @property
    def severity(self) -> Severity:
        return Severity.CRITICAL if self.overdue_ms > CRITICAL_AFTER_MS else Severity.WARNING

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "id": self.item_id,
            "label": self.label,
            "priority": self.priority.value,
            "overdueMs": self.overdue_ms,
            "totalTargets": self.total_targets,
            "pendingAgents": list(self.pending_agents),
            "localPending": self.local_pending,
            "severity": self.severity.value,
        }


class OverdueMonitor:
    def __init__(
        self,
        annotations: AnnotationStore,
        broadcasts: BroadcastReconciler,
        roster: Callable[[], Iterable[str]],
        alert_sink: AlertSink | None = None,
        local_agent_id: str | None = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._annotations = annotations
        self._broadcasts = broadcasts
        self._roster = roster
        self._alert_sink = alert_sink
        self._local_agent_id = local_agent_id
        self._timeout_ms = timeout_ms
        self._dismissed: set[str] = set()
        self._alerted: set[tuple[str, Severity]] = set()
        self._last_realert = 0

    def dismiss(self, item_id: str) -> None:
        self._dismissed.add(item_id)

    def evaluate(self, now: int | None = None) -> list[OverdueItem]:
        """Current overdue items: local agent's first, then critical, then most overdue."""
        now = now if now is not None else now_ms()
        roster = list(self._roster())
        items: list[OverdueItem] = []

        for ann in self._annotations.requiring_ack():
            if ann.id in self._dismissed:
                continue
            timeout = ann.auto_expire_ms or self._timeout_ms
            overdue = now - ann.created_at - timeout
            pending = AnnotationStore.pending_agents(ann, roster)
            if overdue <= 0 or not pending:
                continue
            items.append(self._item("annotation", ann.id, ann.label, ann.priority, overdue,
                                    len(ann.target_agents) or len(roster), pending))

        for b in self._broadcasts.all():
            if not b.requires_ack or b.id in self._dismissed:
                continue
            overdue = now - b.issued_at - self._timeout_ms
            pending = bc.pending_agents(b, roster, now)
            if overdue <= 0 or not pending:
                continue
            items.append(self._item("broadcast", b.id, b.message, b.priority, overdue,
                                    len(b.target_agents) or len(roster), pending))

        items.sort(key=lambda i: (
            not i.local_pending,
            i.severity is not Severity.CRITICAL,
            -i.overdue_ms,
        ))
        return items

    def check(self, now: int | None = None) -> list[AlertEvent]:
        """Evaluate and raise alerts for newly overdue items. Returns what was raised."""
        now = now if now is not None else now_ms()
        raised: list[AlertEvent] = []
        realert_due = now - self._last_realert >= REALERT_INTERVAL_MS
        items = self.evaluate(now)

        for item in items:
            key = (item.item_id, item.severity)
            if key in self._alerted:
                continue
            if item.severity is Severity.WARNING and self._local_agent_id and not item.local_pending:
                continue
            self._alerted.add(key)
            raised.append(self._alert(item, now))

        if realert_due and not raised:
            urgent = [i for i in items if i.severity is Severity.CRITICAL and i.local_pending]
            if urgent:
                raised.append(self._alert(urgent[0], now))

        if raised:
            self._last_realert = now
            if self._alert_sink is not None:
                for event in raised:
                    self._alert_sink.notify(event)

        # Forget alert keys for items that are no longer overdue
        live = {i.item_id for i in items}
        self._alerted = {k for k in self._alerted if k[0] in live}
        return raised

    def _item(self, kind, item_id, label, priority, overdue, total, pending) -> OverdueItem:
        return OverdueItem(
            kind=kind,
            item_id=item_id,
            label=label,
            priority=priority,
            overdue_ms=overdue,
            total_targets=total,
            pending_agents=tuple(pending),
            local_pending=self._local_agent_id is not None and self._local_agent_id in pending,
        )

    def _alert(self, item: OverdueItem, now: int) -> AlertEvent:
        detail = (
            "YOUR ACKNOWLEDGMENT REQUIRED" if item.local_pending
            else f"{len(item.pending_agents)} agent(s) pending"
        )
        log.info("Overdue %s %s (%s)", item.kind, item.item_id, item.severity.value)
        return AlertEvent(
            kind=AlertKind.OVERDUE_ACK,
            severity=item.severity,
            title=f"OVERDUE {item.kind.upper()}: {item.label}",
            detail=detail,
            subject_id=item.item_id,
            raised_at=now,
        )
