# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Alerting collaborator — the engine raises AlertEvents, a sink presents them.

The engine never decides how an alert sounds or looks; it only says what
happened and how bad it is.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from fieldops.tactical.models import now_ms

log = logging.getLogger(__name__)


class AlertKind(str, Enum):
    BROADCAST = "broadcast"
    GEOFENCE_VIOLATION = "geofence_violation"
    OVERDUE_ACK = "overdue_ack"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class AlertEvent:
    kind: AlertKind
    severity: Severity
    title: str
    detail: str = ""
    subject_id: str = ""
    raised_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "title": self.title,
            "detail": self.detail,
            "subjectId": self.subject_id,
            "raisedAt": self.raised_at,
        }


class AlertSink(Protocol):
    def notify(self, event: AlertEvent) -> None: ...


class LoggingAlertSink:
    """Writes alerts to the log. Default sink when no UI is attached."""

    _LEVELS = {
        Severity.INFO: logging.INFO,
        Severity.WARNING: logging.WARNING,
        Severity.CRITICAL: logging.ERROR,
    }

    def notify(self, event: AlertEvent) -> None:
        log.log(
            self._LEVELS[event.severity],
            "[%s] %s%s",
            event.kind.value,
            event.title,
            f" -- {event.detail}" if event.detail else "",
        )


class RecordingAlertSink:
    """Keeps the most recent alerts in memory for the dashboard to poll."""

    def __init__(self, max_events: int = 200) -> None:
        self._events: list[AlertEvent] = []
        self._max = max_events
        self._lock = threading.Lock()

    def notify(self, event: AlertEvent) -> None:
        with self._lock:
            self._events.append(event)
            if len(self._events) > self._max:
                self._events = self._events[-self._max:]

    @property
    def events(self) -> list[AlertEvent]:
        with self._lock:
            return list(self._events)

    def of_kind(self, kind: AlertKind) -> list[AlertEvent]:
        return [e for e in self.events if e.kind == kind]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class FanOutAlertSink:
    """Forwards each alert to several sinks; one failing sink doesn't stop the rest."""

    def __init__(self, *sinks: AlertSink) -> None:
        self._sinks = list(sinks)

    def notify(self, event: AlertEvent) -> None:
        for sink in self._sinks:
            try:
                sink.notify(event)
            except Exception:
                log.exception("Alert sink %r failed", sink)
