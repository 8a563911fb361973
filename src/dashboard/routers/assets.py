# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Assets API — live asset table and position reports."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from loguru import logger
from pydantic import BaseModel

from fieldops.errors import NotFoundError, ValidationError
from fieldops.tactical.geodesy import compass_label
from fieldops.tactical.tracker import Telemetry

router = APIRouter(prefix="/api/assets", tags=["assets"])


class TelemetryRequest(BaseModel):
    agent_id: str
    latitude: float
    longitude: float
    timestamp: int | None = None
    callsign: str = ""
    asset_id: str | None = None
    altitude: float | None = None
    speed: float | None = None
    heading: float | None = None
    status: str | None = None


class StatusRequest(BaseModel):
    status: str


def _get_ops(request: Request):
    ops = getattr(request.app.state, "ops", None)
    if ops is None:
        raise HTTPException(503, "Operations context not available")
    return ops


@router.get("")
async def list_assets(request: Request):
    ops = _get_ops(request)
    assets = ops.tracker.all()
    return {
        "assets": [a.to_dict() for a in assets],
        "count": len(assets),
        "bounds": ops.transform.bounds.to_dict(),
    }


@router.get("/{asset_id}")
async def get_asset(asset_id: str, request: Request):
    ops = _get_ops(request)
    asset = ops.tracker.get(asset_id)
    if asset is None:
        raise HTTPException(404, f"Asset not found: {asset_id}")
    result = asset.to_dict()
    result["headingLabel"] = compass_label(asset.heading) if asset.heading is not None else None
    result["trail"] = ops.trails.summary(asset_id).to_dict()
    result["lanes"] = [lane.id for lane in ops.lanes.lanes_for_asset(asset_id)]
    return result


@router.post("/telemetry")
async def post_telemetry(body: TelemetryRequest, request: Request):
    """Apply one position report from a field client."""
    ops = _get_ops(request)
    try:
        report = Telemetry.from_dict(body.model_dump(exclude_none=True))
        asset = ops.tracker.update_position(report)
    except ValidationError as e:
        raise HTTPException(400, e.message)
    return asset.to_dict()


@router.post("/{asset_id}/status")
async def set_asset_status(asset_id: str, body: StatusRequest, request: Request):
    ops = _get_ops(request)
    try:
        asset = ops.tracker.set_status(asset_id, body.status)
    except ValidationError as e:
        raise HTTPException(400, e.message)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    logger.info(f"Asset {asset_id} status -> {asset.status.value}")
    return asset.to_dict()
