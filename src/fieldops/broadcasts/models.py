# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Operator broadcast model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fieldops.acknowledgments import Acknowledgment
from fieldops.tactical.models import Priority


class BroadcastType(str, Enum):
    SCENARIO_DEPLOY = "scenario-deploy"
    LANE_UPDATE = "lane-update"
    DISPATCH_COMMAND = "dispatch-command"
    M_PING = "m-ping"
    GENERAL = "general"


class BroadcastStatus(str, Enum):
    """Derived on read, never stored."""

    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETE = "complete"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TrackedBroadcast:
    id: str
    message: str
    issued_by: str
    issued_at: int
    type: BroadcastType = BroadcastType.GENERAL
    priority: Priority = Priority.NORMAL
    target_agents: tuple[str, ...] = ()
    requires_ack: bool = False
    auto_expire_ms: int | None = None
    acknowledgments: tuple[Acknowledgment, ...] = ()

    def acknowledgment_for(self, agent_id: str) -> Acknowledgment | None:
        for ack in self.acknowledgments:
            if ack.agent_id == agent_id:
                return ack
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "message": self.message,
            "priority": self.priority.value,
            "issuedBy": self.issued_by,
            "issuedAt": self.issued_at,
            "targetAgents": list(self.target_agents),
            "requiresAck": self.requires_ack,
            "autoExpireMs": self.auto_expire_ms,
            "acknowledgments": [a.to_dict() for a in self.acknowledgments],
        }

    @classmethod
    def from_dict(cls, data: dict) -> TrackedBroadcast:
        broadcast_id = data["id"]
        expire = data.get("autoExpireMs")
        return cls(
            id=broadcast_id,
            message=data.get("message", ""),
            issued_by=data.get("issuedBy", ""),
            issued_at=int(data.get("issuedAt") or 0),
            type=BroadcastType(data.get("type") or "general"),
            priority=Priority(data.get("priority") or "normal"),
            target_agents=tuple(data.get("targetAgents") or ()),
            requires_ack=bool(data.get("requiresAck", False)),
            auto_expire_ms=int(expire) if expire else None,
            acknowledgments=tuple(
                Acknowledgment.from_dict(a, target_id=broadcast_id)
                for a in data.get("acknowledgments", [])
            ),
        )
