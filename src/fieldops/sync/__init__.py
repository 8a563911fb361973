# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Shared game-state synchronization: polling, ack outbox, schedulers."""

from .collaborators import SyncClient
from .coordinator import ANNOTATION, BROADCAST, OutboxEntry, SyncCoordinator
from .http_client import HttpSyncClient
from .scheduler import PeriodicTask

__all__ = [
    "ANNOTATION",
    "BROADCAST",
    "HttpSyncClient",
    "OutboxEntry",
    "PeriodicTask",
    "SyncClient",
    "SyncCoordinator",
]
