# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Annotations API — operator map markings, acknowledgments, geofence hits."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request
from loguru import logger
from pydantic import BaseModel, Field

from fieldops.annotations.geofence import contains_point, has_area
from fieldops.annotations.store import AcknowledgeAnnotation, AnnotationStore, CreateAnnotation
from fieldops.errors import NotFoundError, SyncFailure, ValidationError
from fieldops.sync.coordinator import ANNOTATION
from fieldops.tactical.models import Coordinate

from ._acks import AckRequest, record_ack

router = APIRouter(prefix="/api/annotations", tags=["annotations"])


class PointModel(BaseModel):
    latitude: float
    longitude: float
    altitude: float | None = None
    timestamp: int = 0


class CreateAnnotationRequest(BaseModel):
    type: str
    label: str
    points: list[PointModel] = Field(default_factory=list)
    created_by: str | None = None
    radius: float | None = None
    color: str = "#05ffa1"
    requires_ack: bool = False
    priority: str = "normal"
    description: str = ""
    target_agents: list[str] = Field(default_factory=list)
    auto_expire_ms: int | None = None
    broadcast: bool = False


class ViolationAckRequest(BaseModel):
    acknowledged_by: str | None = None


def _get_ops(request: Request):
    ops = getattr(request.app.state, "ops", None)
    if ops is None:
        raise HTTPException(503, "Operations context not available")
    return ops


def _with_stats(ops, annotation) -> dict:
    result = annotation.to_dict()
    if annotation.requires_ack:
        result["ackStats"] = AnnotationStore.ack_stats(annotation, ops.tracker.roster()).to_dict()
    return result


@router.get("")
async def list_annotations(request: Request):
    ops = _get_ops(request)
    return [_with_stats(ops, a) for a in ops.annotations.all()]


@router.post("")
async def create_annotation(body: CreateAnnotationRequest, request: Request):
    ops = _get_ops(request)
    try:
        points = tuple(Coordinate(**p.model_dump()) for p in body.points)
    except ValidationError as e:
        raise HTTPException(400, e.message)
    result = ops.annotations.apply(CreateAnnotation(
        type=body.type,
        label=body.label,
        points=points,
        created_by=body.created_by or ops.operator_id,
        radius=body.radius,
        color=body.color,
        requires_ack=body.requires_ack,
        priority=body.priority,
        description=body.description,
        target_agents=tuple(body.target_agents),
        auto_expire_ms=body.auto_expire_ms,
    ))
    if not result.ok:
        raise HTTPException(400, result.message)
    annotation = result.value

    response = _with_stats(ops, annotation)
    if body.broadcast and ops.sync is not None:
        try:
            broadcast = await ops.sync.broadcast_annotation(annotation)
            response["broadcastId"] = broadcast.id
        except SyncFailure as e:
            logger.warning(f"Annotation {annotation.id} saved but not broadcast: {e}")
            response["broadcastId"] = None
    return response


@router.get("/violations")
async def list_violations(request: Request, unacknowledged: bool = Query(default=False)):
    ops = _get_ops(request)
    violations = ops.geofence.unacknowledged() if unacknowledged else ops.geofence.violations
    return [v.to_dict() for v in violations]


@router.post("/violations/{violation_id}/ack")
async def acknowledge_violation(violation_id: str, body: ViolationAckRequest, request: Request):
    ops = _get_ops(request)
    try:
        violation = ops.geofence.acknowledge(violation_id, body.acknowledged_by or ops.operator_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    return violation.to_dict()


@router.get("/{annotation_id}")
async def get_annotation(annotation_id: str, request: Request):
    ops = _get_ops(request)
    annotation = ops.annotations.get(annotation_id)
    if annotation is None:
        raise HTTPException(404, f"Annotation not found: {annotation_id}")
    return _with_stats(ops, annotation)


@router.delete("/{annotation_id}")
async def delete_annotation(annotation_id: str, request: Request):
    ops = _get_ops(request)
    if not ops.annotations.delete(annotation_id):
        raise HTTPException(404, f"Annotation not found: {annotation_id}")
    return {"status": "deleted", "id": annotation_id}


@router.post("/{annotation_id}/ack")
async def acknowledge_annotation(annotation_id: str, body: AckRequest, request: Request):
    """Record an acknowledgment. A vanished annotation yields ``applied: false``."""
    ops = _get_ops(request)
    applied = await record_ack(
        ops, ANNOTATION, annotation_id, body,
        lambda ack: ops.annotations.apply(AcknowledgeAnnotation(annotation_id, ack)),
    )
    annotation = ops.annotations.get(annotation_id)
    return {
        "applied": applied,
        "annotation": _with_stats(ops, annotation) if annotation else None,
    }


@router.get("/{annotation_id}/contains")
async def annotation_contains(
    annotation_id: str,
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
):
    ops = _get_ops(request)
    annotation = ops.annotations.get(annotation_id)
    if annotation is None:
        raise HTTPException(404, f"Annotation not found: {annotation_id}")
    point = Coordinate(latitude=lat, longitude=lng)
    return {
        "id": annotation_id,
        "hasArea": has_area(annotation),
        "inside": contains_point(annotation, point),
    }
