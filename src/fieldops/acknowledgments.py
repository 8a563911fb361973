# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Acknowledgment records shared by annotations and broadcasts.

At most one acknowledgment is kept per (target, agent).  A newer one from
the same agent replaces the older one; "newer" means applied later locally,
never compared by embedded timestamp, since clients' clocks disagree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence

from fieldops.errors import ValidationError
from fieldops.tactical.models import now_ms


class AckResponse(str, Enum):
    ACKNOWLEDGED = "acknowledged"
    UNABLE = "unable"
    NEGATIVE = "negative"
    NOTED = "noted"


@dataclass(frozen=True)
class Acknowledgment:
    target_id: str
    agent_id: str
    agent_callsign: str
    response: AckResponse = AckResponse.ACKNOWLEDGED
    acknowledged_at: int = 0
    response_message: str | None = None

    def __post_init__(self) -> None:
        if not self.target_id:
            raise ValidationError("acknowledgment requires a target id", field="targetId")
        if not self.agent_id:
            raise ValidationError("acknowledgment requires an agent id", field="agentId")
        try:
            object.__setattr__(self, "response", AckResponse(self.response))
        except ValueError:
            raise ValidationError(f"unknown response: {self.response}", field="response") from None

    @classmethod
    def create(
        cls,
        target_id: str,
        agent_id: str,
        agent_callsign: str = "",
        response: AckResponse | str = AckResponse.ACKNOWLEDGED,
        message: str | None = None,
        now: int | None = None,
    ) -> Acknowledgment:
        return cls(
            target_id=target_id,
            agent_id=agent_id,
            agent_callsign=agent_callsign or agent_id,
            response=response,  # type: ignore[arg-type]
            acknowledged_at=now if now is not None else now_ms(),
            response_message=message or None,
        )

    def to_dict(self) -> dict:
        return {
            "targetId": self.target_id,
            "agentId": self.agent_id,
            "agentCallsign": self.agent_callsign,
            "acknowledgedAt": self.acknowledged_at,
            "response": self.response.value,
            "responseMessage": self.response_message,
        }

    @classmethod
    def from_dict(cls, data: dict, target_id: str | None = None) -> Acknowledgment:
        target = target_id or data.get("targetId") or data.get("broadcastId") or data.get("annotationId")
        return cls(
            target_id=target or "",
            agent_id=data.get("agentId", ""),
            agent_callsign=data.get("agentCallsign") or data.get("agentId", ""),
            response=data.get("response", "acknowledged"),
            acknowledged_at=int(data.get("acknowledgedAt") or 0),
            response_message=data.get("responseMessage"),
        )


def upsert(acks: Iterable[Acknowledgment], ack: Acknowledgment) -> tuple[Acknowledgment, ...]:
    """Return a new ack tuple with *ack* replacing any prior one from its agent."""
    kept = tuple(a for a in acks if a.agent_id != ack.agent_id)
    return kept + (ack,)


def merge(
    remote: Iterable[Acknowledgment],
    local: Iterable[Acknowledgment] = (),
) -> tuple[Acknowledgment, ...]:
    """Fold remote acks, then unconfirmed local ones on top, keeping one per agent."""
    result: tuple[Acknowledgment, ...] = ()
    for ack in remote:
        result = upsert(result, ack)
    for ack in local:
        result = upsert(result, ack)
    return result


def response_counts(acks: Iterable[Acknowledgment]) -> dict[str, int]:
    counts = {r.value: 0 for r in AckResponse}
    for ack in acks:
        counts[ack.response.value] += 1
    return counts


@dataclass(frozen=True)
class AckStats:
    total: int
    acknowledged: int
    unable: int
    noted: int
    negative: int
    pending: int
    pending_agents: tuple[str, ...] = field(default=())

    @property
    def rate(self) -> float:
        """Percent of targeted agents that have responded."""
        if self.total == 0:
            return 100.0
        return (self.total - self.pending) / self.total * 100.0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "acknowledged": self.acknowledged,
            "unable": self.unable,
            "noted": self.noted,
            "negative": self.negative,
            "pending": self.pending,
            "pendingAgents": list(self.pending_agents),
            "rate": self.rate,
        }


def targeted_agents(target_agents: Sequence[str], roster: Iterable[str]) -> list[str]:
    """Explicit targets, or the whole roster when no targets are named."""
    return list(dict.fromkeys(target_agents)) if target_agents else list(dict.fromkeys(roster))
