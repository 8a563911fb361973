# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Lanes API — grid-to-grid routes and their status."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from fieldops.errors import NotFoundError, ValidationError
from fieldops.tactical.lanes import LaneBoard
from fieldops.tactical.models import GridCell

router = APIRouter(prefix="/api/lanes", tags=["lanes"])


class GridModel(BaseModel):
    x: int
    y: int


class CreateLaneRequest(BaseModel):
    name: str
    start_grid: GridModel
    end_grid: GridModel
    assigned_assets: list[str] = Field(default_factory=list)
    priority: str = "normal"


class LaneStatusRequest(BaseModel):
    status: str


def _get_ops(request: Request):
    ops = getattr(request.app.state, "ops", None)
    if ops is None:
        raise HTTPException(503, "Operations context not available")
    return ops


def _describe(ops, lane) -> dict:
    result = lane.to_dict()
    start, end = LaneBoard.endpoints(lane, ops.tracker.all())
    result["startAsset"] = start.id if start else None
    result["endAsset"] = end.id if end else None
    return result


@router.get("")
async def list_lanes(request: Request):
    ops = _get_ops(request)
    return [_describe(ops, lane) for lane in ops.lanes.all()]


@router.post("")
async def create_lane(body: CreateLaneRequest, request: Request):
    ops = _get_ops(request)
    try:
        lane = ops.lanes.create_lane(
            name=body.name,
            start=GridCell(body.start_grid.x, body.start_grid.y),
            end=GridCell(body.end_grid.x, body.end_grid.y),
            assigned_assets=body.assigned_assets,
            priority=body.priority,
        )
    except ValidationError as e:
        raise HTTPException(400, e.message)
    return _describe(ops, lane)


@router.post("/{lane_id}/status")
async def set_lane_status(lane_id: str, body: LaneStatusRequest, request: Request):
    ops = _get_ops(request)
    try:
        lane = ops.lanes.transition(lane_id, body.status)
    except ValidationError as e:
        raise HTTPException(400, e.message)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    return _describe(ops, lane)
