# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Tactical picture — geodesy, map transform, trails, assets, lanes."""

from .lanes import LaneBoard
from .models import Asset, AssetStatus, Coordinate, GridCell, Lane, LaneStatus, Priority
from .tracker import AssetTracker, Telemetry
from .trails import Trail, TrailBuffer, TrailSummary
from .transform import CoordinateTransform, MapBounds, PixelPoint

__all__ = [
    "Asset",
    "AssetStatus",
    "AssetTracker",
    "Coordinate",
    "CoordinateTransform",
    "GridCell",
    "Lane",
    "LaneBoard",
    "LaneStatus",
    "MapBounds",
    "PixelPoint",
    "Priority",
    "Telemetry",
    "Trail",
    "TrailBuffer",
    "TrailSummary",
]
