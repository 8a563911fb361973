# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""AnnotationStore — operator map markings and their acknowledgments.

All mutations go through the methods below (or ``apply`` for command
objects).  The annotation table is copy-on-write: a mutation builds a new
dict and swaps it in, so readers always see a complete snapshot.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Iterable, Sequence, Union

from fieldops.acknowledgments import (
    AckStats,
    Acknowledgment,
    response_counts,
    targeted_agents,
    upsert,
)
from fieldops.errors import NotFoundError, ValidationError
from fieldops.result import Result, capture
from fieldops.tactical.models import Coordinate, Priority, now_ms

from .models import Annotation, AnnotationType, build_geometry

if TYPE_CHECKING:
    from fieldops.comms.event_bus import EventBus

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreateAnnotation:
    type: AnnotationType | str
    label: str
    points: tuple[Coordinate, ...]
    created_by: str
    radius: float | None = None
    color: str = "#05ffa1"
    requires_ack: bool = False
    priority: Priority | str = Priority.NORMAL
    description: str = ""
    target_agents: tuple[str, ...] = ()
    auto_expire_ms: int | None = None


@dataclass(frozen=True)
class AcknowledgeAnnotation:
    annotation_id: str
    ack: Acknowledgment


@dataclass(frozen=True)
class DeleteAnnotation:
    annotation_id: str


AnnotationCommand = Union[CreateAnnotation, AcknowledgeAnnotation, DeleteAnnotation]


class AnnotationStore:
    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._event_bus = event_bus
        self._annotations: dict[str, Annotation] = {}
        self._lock = threading.Lock()

    # -- Read access ---------------------------------------------------------

    def get(self, annotation_id: str) -> Annotation | None:
        return self._annotations.get(annotation_id)

    def all(self) -> list[Annotation]:
        return list(self._annotations.values())

    def __len__(self) -> int:
        return len(self._annotations)

    def requiring_ack(self) -> list[Annotation]:
        return [a for a in self._annotations.values() if a.requires_ack]

    # -- Commands ------------------------------------------------------------

    def apply(self, command: AnnotationCommand) -> Result:
        """Single entry point for command objects; never raises engine errors."""
        if isinstance(command, CreateAnnotation):
            return capture(lambda: self.create(
                type=command.type,
                label=command.label,
                points=command.points,
                created_by=command.created_by,
                radius=command.radius,
                color=command.color,
                requires_ack=command.requires_ack,
                priority=command.priority,
                description=command.description,
                target_agents=command.target_agents,
                auto_expire_ms=command.auto_expire_ms,
            ))
        if isinstance(command, AcknowledgeAnnotation):
            return capture(lambda: self.acknowledge(command.annotation_id, command.ack))
        if isinstance(command, DeleteAnnotation):
            return capture(lambda: self.delete(command.annotation_id))
        raise TypeError(f"unknown annotation command: {type(command).__name__}")

    def create(
        self,
        type: AnnotationType | str,
        label: str,
        points: Sequence[Coordinate],
        created_by: str,
        radius: float | None = None,
        color: str = "#05ffa1",
        requires_ack: bool = False,
        priority: Priority | str = Priority.NORMAL,
        description: str = "",
        target_agents: Iterable[str] = (),
        auto_expire_ms: int | None = None,
        now: int | None = None,
    ) -> Annotation:
        """Validate and commit a new annotation. Raises ValidationError."""
        if not label or not label.strip():
            raise ValidationError("label must not be empty", field="label")
        if not created_by:
            raise ValidationError("createdBy must not be empty", field="createdBy")
        try:
            priority = Priority(priority)
        except ValueError:
            raise ValidationError(f"unknown priority: {priority}", field="priority") from None
        if auto_expire_ms is not None and auto_expire_ms <= 0:
            raise ValidationError("autoExpireMs must be positive", field="autoExpireMs")
        geometry = build_geometry(type, points, radius)

        annotation = Annotation(
            id=f"ann-{uuid.uuid4().hex[:12]}",
            label=label.strip(),
            geometry=geometry,
            created_by=created_by,
            created_at=now if now is not None else now_ms(),
            color=color or "#05ffa1",
            requires_ack=requires_ack,
            priority=priority,
            description=description,
            target_agents=tuple(dict.fromkeys(target_agents)),
            auto_expire_ms=auto_expire_ms,
        )
        with self._lock:
            self._annotations = {**self._annotations, annotation.id: annotation}
        log.info("Annotation %s (%s) created by %s", annotation.id, annotation.type.value, created_by)
        self._publish("annotation_created", annotation.to_dict())
        return annotation

    def acknowledge(self, annotation_id: str, ack: Acknowledgment) -> Annotation | None:
        """Insert or replace *ack*'s agent record. No-op if the annotation is gone."""
        if ack.target_id != annotation_id:
            ack = replace(ack, target_id=annotation_id)
        with self._lock:
            current = self._annotations.get(annotation_id)
            if current is None:
                log.debug("Ack for missing annotation %s ignored", annotation_id)
                return None
            updated = replace(current, acknowledgments=upsert(current.acknowledgments, ack))
            self._annotations = {**self._annotations, annotation_id: updated}
        self._publish("annotation_acknowledged", {
            "annotationId": annotation_id,
            "acknowledgment": ack.to_dict(),
        })
        return updated

    def delete(self, annotation_id: str) -> bool:
        """Remove an annotation together with its acknowledgments."""
        with self._lock:
            if annotation_id not in self._annotations:
                return False
            table = dict(self._annotations)
            del table[annotation_id]
            self._annotations = table
        self._publish("annotation_deleted", {"annotationId": annotation_id})
        return True

    def require(self, annotation_id: str) -> Annotation:
        annotation = self._annotations.get(annotation_id)
        if annotation is None:
            raise NotFoundError("annotation", annotation_id)
        return annotation

    def restore(self, annotations: Iterable[Annotation]) -> None:
        with self._lock:
            self._annotations = {a.id: a for a in annotations}

    # -- Acknowledgment tracking ---------------------------------------------

    @staticmethod
    def pending_agents(annotation: Annotation, roster: Iterable[str]) -> list[str]:
        responded = {a.agent_id for a in annotation.acknowledgments}
        return [agent for agent in targeted_agents(annotation.target_agents, roster)
                if agent not in responded]

    @staticmethod
    def ack_stats(annotation: Annotation, roster: Iterable[str]) -> AckStats:
        targets = targeted_agents(annotation.target_agents, roster)
        counts = response_counts(annotation.acknowledgments)
        pending = AnnotationStore.pending_agents(annotation, targets)
        return AckStats(
            total=len(targets),
            acknowledged=counts["acknowledged"],
            unable=counts["unable"],
            noted=counts["noted"],
            negative=counts["negative"],
            pending=len(pending),
            pending_agents=tuple(pending),
        )

    def _publish(self, event_type: str, data: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, data)
