# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Great-circle math on a spherical Earth.

Convention:
    - Distances in meters, mean Earth radius 6,371,000 m
    - Bearings in degrees [0, 360), 0 = North, clockwise

All functions are pure and accept anything with ``latitude``/``longitude``
attributes (normally fieldops.tactical.models.Coordinate).
"""

from __future__ import annotations

import math
from typing import Iterable, Protocol

EARTH_RADIUS_M = 6_371_000.0

COMPASS_POINTS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)


class LatLng(Protocol):
    latitude: float
    longitude: float


def distance(a: LatLng, b: LatLng) -> float:
    """Haversine distance between two coordinates in meters."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Rounding can push h a hair outside [0, 1] for antipodal points
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bearing(a: LatLng, b: LatLng) -> float:
    """Initial great-circle bearing from *a* to *b* in degrees [0, 360).

    Identical points have no direction; 0.0 is returned.
    """
    if a.latitude == b.latitude and a.longitude == b.longitude:
        return 0.0
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    deg = math.degrees(math.atan2(y, x)) % 360.0
    # -1e-15 % 360 == 360.0 in float arithmetic
    return 0.0 if deg >= 360.0 else deg


def total_distance(path: Iterable[LatLng]) -> float:
    """Sum of consecutive leg distances. 0 for paths shorter than two points."""
    total = 0.0
    prev = None
    for point in path:
        if prev is not None:
            total += distance(prev, point)
        prev = point
    return total


def compass_label(bearing_deg: float) -> str:
    """Nearest of the 16 compass points for a bearing in degrees."""
    index = int(math.floor(bearing_deg / 22.5 + 0.5)) % 16
    return COMPASS_POINTS[index]


def normalize_heading(heading: float) -> float:
    """Wrap any heading into [0, 360)."""
    wrapped = heading % 360.0
    return 0.0 if wrapped >= 360.0 else wrapped
