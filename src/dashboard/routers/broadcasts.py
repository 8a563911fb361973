# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Broadcasts API — operator messages and acknowledgment progress."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request
from loguru import logger
from pydantic import BaseModel, Field

from fieldops.broadcasts import reconciler as bc
from fieldops.broadcasts.reconciler import AcknowledgeBroadcast, IssueBroadcast
from fieldops.errors import SyncFailure
from fieldops.sync.coordinator import BROADCAST
from fieldops.tactical.models import now_ms

from ._acks import AckRequest, record_ack

router = APIRouter(prefix="/api/broadcasts", tags=["broadcasts"])


class IssueBroadcastRequest(BaseModel):
    message: str
    issued_by: str | None = None
    type: str = "general"
    priority: str = "normal"
    target_agents: list[str] = Field(default_factory=list)
    requires_ack: bool = False
    auto_expire_ms: int | None = None


def _get_ops(request: Request):
    ops = getattr(request.app.state, "ops", None)
    if ops is None:
        raise HTTPException(503, "Operations context not available")
    return ops


def _describe(broadcast, roster: list[str], now: int) -> dict:
    result = broadcast.to_dict()
    result["status"] = bc.status(broadcast, roster, now).value
    result["expired"] = bc.is_expired(broadcast, now)
    result["ackStats"] = bc.ack_stats(broadcast, roster).to_dict()
    result["progress"] = bc.progress(broadcast, roster)
    return result


@router.get("")
async def list_broadcasts(request: Request, active: bool = Query(default=False)):
    """Newest first. ``active=true`` hides expired broadcasts."""
    ops = _get_ops(request)
    now = now_ms()
    roster = ops.tracker.roster()
    items = ops.broadcasts.active(now) if active else ops.broadcasts.all()
    return [_describe(b, roster, now) for b in items]


@router.post("")
async def issue_broadcast(body: IssueBroadcastRequest, request: Request):
    ops = _get_ops(request)
    result = ops.broadcasts.apply(IssueBroadcast(
        message=body.message,
        issued_by=body.issued_by or ops.operator_id,
        type=body.type,
        priority=body.priority,
        target_agents=tuple(body.target_agents),
        requires_ack=body.requires_ack,
        auto_expire_ms=body.auto_expire_ms,
    ))
    if not result.ok:
        raise HTTPException(400, result.message)
    broadcast = result.value
    if ops.sync is not None:
        try:
            await ops.sync.client.publish_broadcast(broadcast)
        except SyncFailure as e:
            logger.warning(f"Broadcast {broadcast.id} kept locally, publish failed: {e}")
    return _describe(broadcast, ops.tracker.roster(), now_ms())


@router.get("/{broadcast_id}")
async def get_broadcast(broadcast_id: str, request: Request):
    ops = _get_ops(request)
    broadcast = ops.broadcasts.get(broadcast_id)
    if broadcast is None:
        raise HTTPException(404, f"Broadcast not found: {broadcast_id}")
    return _describe(broadcast, ops.tracker.roster(), now_ms())


@router.delete("/{broadcast_id}")
async def delete_broadcast(broadcast_id: str, request: Request):
    ops = _get_ops(request)
    if not ops.broadcasts.delete(broadcast_id):
        raise HTTPException(404, f"Broadcast not found: {broadcast_id}")
    return {"status": "deleted", "id": broadcast_id}


@router.post("/{broadcast_id}/ack")
async def acknowledge_broadcast(broadcast_id: str, body: AckRequest, request: Request):
    """Record an acknowledgment. Expired broadcasts still accept one."""
    ops = _get_ops(request)
    applied = await record_ack(
        ops, BROADCAST, broadcast_id, body,
        lambda ack: ops.broadcasts.apply(AcknowledgeBroadcast(broadcast_id, ack)),
    )
    broadcast = ops.broadcasts.get(broadcast_id)
    return {
        "applied": applied,
        "broadcast": _describe(broadcast, ops.tracker.roster(), now_ms()) if broadcast else None,
    }


@router.get("/{broadcast_id}/pending")
async def pending_agents(broadcast_id: str, request: Request):
    ops = _get_ops(request)
    broadcast = ops.broadcasts.get(broadcast_id)
    if broadcast is None:
        raise HTTPException(404, f"Broadcast not found: {broadcast_id}")
    now = now_ms()
    return {
        "id": broadcast_id,
        "expired": bc.is_expired(broadcast, now),
        "pendingAgents": bc.pending_agents(broadcast, ops.tracker.roster(), now),
    }
