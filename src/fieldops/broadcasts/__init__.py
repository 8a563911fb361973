# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Operator broadcasts and acknowledgment reconciliation."""

from .models import BroadcastStatus, BroadcastType, TrackedBroadcast
from .reconciler import (
    AcknowledgeBroadcast,
    BroadcastReconciler,
    DeleteBroadcast,
    IssueBroadcast,
    ack_stats,
    is_expired,
    is_targeted,
    pending_agents,
    progress,
    status,
)

__all__ = [
    "AcknowledgeBroadcast",
    "BroadcastReconciler",
    "BroadcastStatus",
    "BroadcastType",
    "DeleteBroadcast",
    "IssueBroadcast",
    "TrackedBroadcast",
    "ack_stats",
    "is_expired",
    "is_targeted",
    "pending_agents",
    "progress",
    "status",
]
