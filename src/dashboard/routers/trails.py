# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Trails API — GPS breadcrumb history per asset."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from loguru import logger

from fieldops.errors import NotFoundError
from fieldops.export import export_trail

router = APIRouter(prefix="/api/trails", tags=["trails"])


def _get_ops(request: Request):
    ops = getattr(request.app.state, "ops", None)
    if ops is None:
        raise HTTPException(503, "Operations context not available")
    return ops


@router.get("/{asset_id}")
async def get_trail(asset_id: str, request: Request):
    ops = _get_ops(request)
    trail = ops.trails.get(asset_id)
    if trail is None:
        raise HTTPException(404, f"No trail for asset: {asset_id}")
    result = trail.to_dict()
    result["summary"] = trail.summary().to_dict()
    result["heading"] = trail.heading()
    return result


@router.get("/{asset_id}/summary")
async def get_trail_summary(asset_id: str, request: Request):
    """Summary of an asset's trail. All zeros for an asset with no trail."""
    ops = _get_ops(request)
    return ops.trails.summary(asset_id).to_dict()


@router.delete("/{asset_id}")
async def clear_trail(asset_id: str, request: Request):
    ops = _get_ops(request)
    try:
        ops.trails.clear(asset_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    logger.info(f"Trail cleared for {asset_id}")
    return {"status": "cleared", "assetId": asset_id}


@router.get("/{asset_id}/export")
async def export_asset_trail(asset_id: str, request: Request):
    ops = _get_ops(request)
    try:
        return export_trail(ops.trails, asset_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
