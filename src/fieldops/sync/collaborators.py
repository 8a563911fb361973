# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Sync collaborator protocol.

The coordinator talks to whatever shared game-state backend is configured
through this interface only.  Implementations raise SyncFailure for any
transport or server problem.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from fieldops.acknowledgments import Acknowledgment
from fieldops.broadcasts.models import TrackedBroadcast
from fieldops.tactical.tracker import Telemetry


@runtime_checkable
class SyncClient(Protocol):
    async def poll_broadcasts(self) -> list[TrackedBroadcast]: ...

    async def push_acknowledgment(self, kind: str, ack: Acknowledgment) -> None: ...

    async def poll_telemetry(self) -> list[Telemetry]: ...

    async def publish_broadcast(self, broadcast: TrackedBroadcast) -> None: ...
