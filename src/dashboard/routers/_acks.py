# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Acknowledgment request handling shared by the annotation and broadcast routers."""

from __future__ import annotations

from fastapi import HTTPException
from pydantic import BaseModel

from fieldops.acknowledgments import Acknowledgment
from fieldops.errors import ValidationError


class AckRequest(BaseModel):
    agent_id: str | None = None
    agent_callsign: str = ""
    response: str = "acknowledged"
    message: str | None = None


async def record_ack(ops, kind: str, target_id: str, body: AckRequest, apply_local):
    """Route an ack through the sync outbox when it is the operator's own.

    *apply_local* takes an Acknowledgment and returns the engine Result.
    Returns True when the target existed and the ack was applied.
    """
    agent_id = body.agent_id or ops.operator_id
    try:
        if ops.sync is not None and agent_id == ops.sync.agent_id:
            ack = await ops.sync.record_acknowledgment(kind, target_id, body.response, body.message)
            return ack is not None
        ack = Acknowledgment.create(
            target_id=target_id,
            agent_id=agent_id,
            agent_callsign=body.agent_callsign,
            response=body.response,
            message=body.message,
        )
    except ValidationError as e:
        raise HTTPException(400, e.message)
    result = apply_local(ack)
    if not result.ok:
        raise HTTPException(400, result.message)
    return result.value is not None
