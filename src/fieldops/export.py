# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Flat export documents for operator download and after-action review.

Every document is plain dicts, lists and primitives.  Millisecond
``timestamp``-style fields are always accompanied by an ISO-8601 string.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from fieldops.annotations.store import AnnotationStore
from fieldops.broadcasts import reconciler as bc
from fieldops.broadcasts.reconciler import BroadcastReconciler
from fieldops.tactical.lanes import LaneBoard
from fieldops.tactical.models import now_ms
from fieldops.tactical.trails import TrailBuffer, iso_ms
from fieldops.tactical.tracker import AssetTracker

if TYPE_CHECKING:
    from fieldops.ops import OperationsContext


def export_trail(trails: TrailBuffer, asset_id: str, now: int | None = None) -> dict:
    """Raises NotFoundError when the asset never reported a position."""
    return trails.export(asset_id, now)


def export_annotations(store: AnnotationStore, roster: Iterable[str]) -> list[dict]:
    roster = list(roster)
    rows = []
    for ann in store.all():
        row = ann.to_dict()
        row["createdAtIso"] = iso_ms(ann.created_at)
        row["points"] = [c.to_dict() for c in ann.points]
        if ann.requires_ack:
            row["ackStats"] = AnnotationStore.ack_stats(ann, roster).to_dict()
        rows.append(row)
    return rows


def export_broadcasts(
    reconciler: BroadcastReconciler,
    roster: Iterable[str],
    now: int | None = None,
) -> list[dict]:
    now = now if now is not None else now_ms()
    roster = list(roster)
    rows = []
    for b in reconciler.all():
        row = b.to_dict()
        row["issuedAtIso"] = iso_ms(b.issued_at)
        row["status"] = bc.status(b, roster, now).value
        row["expired"] = bc.is_expired(b, now)
        row["ackStats"] = bc.ack_stats(b, roster).to_dict()
        rows.append(row)
    return rows


def export_lanes(board: LaneBoard, tracker: AssetTracker) -> list[dict]:
    assets = tracker.all()
    rows = []
    for lane in board.all():
        row = lane.to_dict()
        row["createdAtIso"] = iso_ms(lane.created_at)
        start, end = LaneBoard.endpoints(lane, assets)
        row["endpoints"] = {
            "start": start.position.to_dict() if start else None,
            "end": end.position.to_dict() if end else None,
        }
        rows.append(row)
    return rows


def export_snapshot(ctx: OperationsContext, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()
    roster = ctx.tracker.roster()
    return {
        "exportedAt": iso_ms(now),
        "timestamp": now,
        "viewport": ctx.transform.viewport(),
        "assets": [a.to_dict() for a in ctx.tracker.all()],
        "trails": [
            {**t.to_dict(), "summary": t.summary().to_dict()}
            for t in ctx.trails.all()
        ],
        "annotations": export_annotations(ctx.annotations, roster),
        "broadcasts": export_broadcasts(ctx.broadcasts, roster, now),
        "lanes": export_lanes(ctx.lanes, ctx.tracker),
        "violations": [v.to_dict() for v in ctx.geofence.violations],
    }
