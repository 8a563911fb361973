# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Map API — viewport state, zoom/pan, and coordinate conversion."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from fieldops.errors import ValidationError
from fieldops.tactical.models import Coordinate
from fieldops.tactical.transform import PixelPoint, format_latitude, format_longitude

router = APIRouter(prefix="/api/map", tags=["map"])


class ZoomRequest(BaseModel):
    direction: Literal["in", "out"] | None = None
    zoom: float | None = None


class PanRequest(BaseModel):
    dx: float = 0.0
    dy: float = 0.0
    absolute: bool = False


class PointRequest(BaseModel):
    latitude: float
    longitude: float


class PixelRequest(BaseModel):
    x: float
    y: float


def _get_ops(request: Request):
    ops = getattr(request.app.state, "ops", None)
    if ops is None:
        raise HTTPException(503, "Operations context not available")
    return ops


@router.get("/viewport")
async def get_viewport(request: Request):
    ops = _get_ops(request)
    result = ops.transform.viewport()
    result["gridLines"] = ops.transform.grid_lines()
    return result


@router.post("/zoom")
async def zoom(body: ZoomRequest, request: Request):
    ops = _get_ops(request)
    t = ops.transform
    if body.zoom is not None:
        if body.zoom <= 0:
            raise HTTPException(400, "zoom must be positive")
        value = t.set_zoom(body.zoom)
    elif body.direction == "in":
        value = t.zoom_in()
    elif body.direction == "out":
        value = t.zoom_out()
    else:
        raise HTTPException(400, "Provide either direction or zoom")
    return {"zoom": value}


@router.post("/pan")
async def pan(body: PanRequest, request: Request):
    ops = _get_ops(request)
    if body.absolute:
        point = ops.transform.set_pan(body.dx, body.dy)
    else:
        point = ops.transform.pan_by(body.dx, body.dy)
    return {"pan": point.to_dict()}


@router.post("/reset")
async def reset(request: Request):
    """Reset zoom/pan and re-fit the bounds to the current assets."""
    ops = _get_ops(request)
    ops.transform.reset_view()
    ops.tracker.refit()
    return ops.transform.viewport()


@router.post("/to-pixel")
async def to_pixel(body: PointRequest, request: Request):
    ops = _get_ops(request)
    try:
        coord = Coordinate(latitude=body.latitude, longitude=body.longitude)
    except ValidationError as e:
        raise HTTPException(400, e.message)
    return ops.transform.to_pixel(coord).to_dict()


@router.post("/to-coordinate")
async def to_coordinate(body: PixelRequest, request: Request):
    ops = _get_ops(request)
    try:
        coord = ops.transform.to_coordinate(PixelPoint(body.x, body.y))
    except ValidationError as e:
        raise HTTPException(400, e.message)
    result = coord.to_dict()
    result["label"] = f"{format_latitude(coord.latitude)}, {format_longitude(coord.longitude)}"
    return result


@router.get("/grid-cell")
async def grid_cell(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
):
    ops = _get_ops(request)
    t = ops.transform
    cell = t.to_grid_cell(Coordinate(latitude=lat, longitude=lng))
    if cell is None:
        return {"cell": None}
    center = t.cell_center(cell)
    return {
        "cell": cell.to_dict(),
        "bounds": t.cell_bounds(cell).to_dict(),
        "center": center.to_dict(),
    }
