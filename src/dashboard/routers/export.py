# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Export API — full operational snapshot and recent alerts."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from fieldops.export import export_snapshot

router = APIRouter(prefix="/api", tags=["export"])


def _get_ops(request: Request):
    ops = getattr(request.app.state, "ops", None)
    if ops is None:
        raise HTTPException(503, "Operations context not available")
    return ops


@router.get("/export")
async def export_all(request: Request):
    return export_snapshot(_get_ops(request))


@router.get("/alerts")
async def recent_alerts(request: Request, limit: int = Query(default=50, ge=1, le=200)):
    ops = _get_ops(request)
    return [e.to_dict() for e in ops.alerts.events[-limit:]]


@router.get("/overdue")
async def overdue_items(request: Request):
    ops = _get_ops(request)
    return [item.to_dict() for item in ops.overdue.evaluate()]
