# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Map viewport transform — lat/lng <-> render pixels <-> 8x8 tactical grid.

Convention:
    - Pixel origin (0, 0) = top-left of the viewport, +x = East, +y = South
    - Bounds auto-fit the extent of all known asset positions plus 20%
      padding on each axis (minimum 0.01 degrees for a degenerate axis)
    - Render: pixel = base * zoom + pan, where base maps the bounds onto
      the viewport inset by ``padding`` pixels
    - Grid cell (0, 0) is the north-west corner; cells scale with bounds

The inverse transform divides by zoom, so zoom must be > 0.  The viewport's
own zoom is clamped to [zoom_min, zoom_max]; explicit zoom arguments to
to_pixel/to_coordinate may be any positive value.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from fieldops.errors import ValidationError

from .geodesy import LatLng
from .models import GRID_SIZE, Coordinate, GridCell

BOUNDS_PADDING_RATIO = 0.2
MIN_PADDING_DEG = 0.01

MAP_WIDTH = 340
MAP_HEIGHT = 280
MAP_PADDING = 20

DEFAULT_CENTER = (40.71, -74.01)


@dataclass(frozen=True)
class MapBounds:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @property
    def lat_span(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def lng_span(self) -> float:
        return self.max_lng - self.min_lng

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.min_lat <= latitude <= self.max_lat
            and self.min_lng <= longitude <= self.max_lng
        )

    def to_dict(self) -> dict:
        return {
            "minLat": self.min_lat,
            "maxLat": self.max_lat,
            "minLng": self.min_lng,
            "maxLng": self.max_lng,
        }

    @classmethod
    def around(cls, latitude: float, longitude: float, half_span: float = MIN_PADDING_DEG) -> MapBounds:
        """A square box of ``2 * half_span`` degrees centred on a point."""
        return _clamped(
            latitude - half_span, latitude + half_span,
            longitude - half_span, longitude + half_span,
        )


@dataclass(frozen=True)
class PixelPoint:
    x: float
    y: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


def _clamped(min_lat: float, max_lat: float, min_lng: float, max_lng: float) -> MapBounds:
    return MapBounds(
        min_lat=max(-90.0, min_lat),
        max_lat=min(90.0, max_lat),
        min_lng=max(-180.0, min_lng),
        max_lng=min(180.0, max_lng),
    )


def fit_bounds(positions: Iterable[LatLng], default: MapBounds | None = None) -> MapBounds:
    """Bounds enclosing *positions* with 20% padding per axis.

    An axis with zero extent (e.g. a single asset) is padded by
    MIN_PADDING_DEG instead so the spans never collapse to zero.
    """
    lats: list[float] = []
    lngs: list[float] = []
    for p in positions:
        lats.append(p.latitude)
        lngs.append(p.longitude)
    if not lats:
        return default if default is not None else MapBounds.around(*DEFAULT_CENTER)

    min_lat, max_lat = min(lats), max(lats)
    min_lng, max_lng = min(lngs), max(lngs)
    lat_pad = (max_lat - min_lat) * BOUNDS_PADDING_RATIO or MIN_PADDING_DEG
    lng_pad = (max_lng - min_lng) * BOUNDS_PADDING_RATIO or MIN_PADDING_DEG
    return _clamped(min_lat - lat_pad, max_lat + lat_pad, min_lng - lng_pad, max_lng + lng_pad)


class CoordinateTransform:
    """Bidirectional mapping for one map viewport.

    Holds the fitted bounds and the operator's current zoom/pan.  Readers
    get immutable MapBounds snapshots; ``fit`` swaps the whole value.
    """

    def __init__(
        self,
        width: float = MAP_WIDTH,
        height: float = MAP_HEIGHT,
        padding: float = MAP_PADDING,
        zoom_min: float = 0.5,
        zoom_max: float = 5.0,
        zoom_step: float = 1.3,
        default_center: tuple[float, float] = DEFAULT_CENTER,
    ) -> None:
        if width <= 2 * padding or height <= 2 * padding:
            raise ValidationError("viewport must be larger than twice its padding")
        if not 0 < zoom_min <= zoom_max:
            raise ValidationError("zoom range must satisfy 0 < zoom_min <= zoom_max")
        if zoom_step <= 1.0:
            raise ValidationError("zoom_step must be greater than 1")
        self.width = float(width)
        self.height = float(height)
        self.padding = float(padding)
        self.zoom_min = zoom_min
        self.zoom_max = zoom_max
        self.zoom_step = zoom_step
        self._default_bounds = MapBounds.around(*default_center)
        self._bounds = self._default_bounds
        self._zoom = 1.0
        self._pan = PixelPoint(0.0, 0.0)

    # -- View state -----------------------------------------------------------

    @property
    def bounds(self) -> MapBounds:
        return self._bounds

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def pan(self) -> PixelPoint:
        return self._pan

    def fit(self, positions: Iterable[LatLng]) -> MapBounds:
        """Re-fit the bounds to the given asset positions."""
        self._bounds = fit_bounds(positions, default=self._default_bounds)
        return self._bounds

    def set_zoom(self, zoom: float) -> float:
        self._zoom = min(self.zoom_max, max(self.zoom_min, float(zoom)))
        return self._zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self._zoom * self.zoom_step)

    def zoom_out(self) -> float:
        return self.set_zoom(self._zoom / self.zoom_step)

    def pan_by(self, dx: float, dy: float) -> PixelPoint:
        self._pan = PixelPoint(self._pan.x + dx, self._pan.y + dy)
        return self._pan

    def set_pan(self, x: float, y: float) -> PixelPoint:
        self._pan = PixelPoint(float(x), float(y))
        return self._pan

    def reset_view(self) -> None:
        self._zoom = 1.0
        self._pan = PixelPoint(0.0, 0.0)

    # -- Geographic <-> pixel -------------------------------------------------

    def _resolve(self, zoom: float | None, pan: PixelPoint | None) -> tuple[float, PixelPoint]:
        z = self._zoom if zoom is None else zoom
        if not (isinstance(z, (int, float)) and math.isfinite(z) and z > 0):
            raise ValidationError(f"zoom must be a positive number, got {z!r}", field="zoom")
        return float(z), (self._pan if pan is None else pan)

    def to_pixel(
        self, coord: LatLng, zoom: float | None = None, pan: PixelPoint | None = None,
    ) -> PixelPoint:
        z, p = self._resolve(zoom, pan)
        b = self._bounds
        inner_w = self.width - 2 * self.padding
        inner_h = self.height - 2 * self.padding
        base_x = (coord.longitude - b.min_lng) / b.lng_span * inner_w + self.padding
        base_y = (b.max_lat - coord.latitude) / b.lat_span * inner_h + self.padding
        return PixelPoint(base_x * z + p.x, base_y * z + p.y)

    def to_coordinate(
        self,
        pixel: PixelPoint,
        zoom: float | None = None,
        pan: PixelPoint | None = None,
        timestamp: int = 0,
    ) -> Coordinate:
        """Inverse of to_pixel.

        Raises ValidationError if the pixel lies so far outside the map that
        it has no valid latitude/longitude.
        """
        z, p = self._resolve(zoom, pan)
        b = self._bounds
        inner_w = self.width - 2 * self.padding
        inner_h = self.height - 2 * self.padding
        base_x = (pixel.x - p.x) / z
        base_y = (pixel.y - p.y) / z
        lng = (base_x - self.padding) / inner_w * b.lng_span + b.min_lng
        lat = b.max_lat - (base_y - self.padding) / inner_h * b.lat_span
        return Coordinate(latitude=lat, longitude=lng, timestamp=timestamp)

    # -- Tactical grid --------------------------------------------------------

    def to_grid_cell(self, coord: LatLng) -> GridCell | None:
        """Grid cell containing *coord*, or None outside the current bounds."""
        b = self._bounds
        if not b.contains(coord.latitude, coord.longitude):
            return None
        gx = int((coord.longitude - b.min_lng) / b.lng_span * GRID_SIZE)
        gy = int((b.max_lat - coord.latitude) / b.lat_span * GRID_SIZE)
        # The east and south edges belong to the last cell
        return GridCell(min(gx, GRID_SIZE - 1), min(gy, GRID_SIZE - 1))

    def cell_bounds(self, cell: GridCell) -> MapBounds:
        b = self._bounds
        lat_step = b.lat_span / GRID_SIZE
        lng_step = b.lng_span / GRID_SIZE
        return MapBounds(
            min_lat=b.max_lat - (cell.y + 1) * lat_step,
            max_lat=b.max_lat - cell.y * lat_step,
            min_lng=b.min_lng + cell.x * lng_step,
            max_lng=b.min_lng + (cell.x + 1) * lng_step,
        )

    def cell_center(self, cell: GridCell) -> Coordinate:
        cb = self.cell_bounds(cell)
        return Coordinate(
            latitude=(cb.min_lat + cb.max_lat) / 2,
            longitude=(cb.min_lng + cb.max_lng) / 2,
        )

    def grid_lines(self) -> list[dict]:
        """Pixel segments for the 9 horizontal and 9 vertical grid lines."""
        b = self._bounds
        lat_step = b.lat_span / GRID_SIZE
        lng_step = b.lng_span / GRID_SIZE
        lines = []
        for i in range(GRID_SIZE + 1):
            lat = b.min_lat + i * lat_step
            lng = b.min_lng + i * lng_step
            west = self.to_pixel(_Point(lat, b.min_lng))
            east = self.to_pixel(_Point(lat, b.max_lng))
            south = self.to_pixel(_Point(b.min_lat, lng))
            north = self.to_pixel(_Point(b.max_lat, lng))
            lines.append({"orientation": "horizontal", "index": i,
                          "start": west.to_dict(), "end": east.to_dict()})
            lines.append({"orientation": "vertical", "index": i,
                          "start": south.to_dict(), "end": north.to_dict()})
        return lines

    def viewport(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "padding": self.padding,
            "zoom": self._zoom,
            "pan": self._pan.to_dict(),
            "bounds": self._bounds.to_dict(),
        }


@dataclass(frozen=True)
class _Point:
    latitude: float
    longitude: float


# ---------------------------------------------------------------------------
# Label formatting
# ---------------------------------------------------------------------------

def format_latitude(lat: float) -> str:
    hemi = "N" if lat >= 0 else "S"
    return f"{abs(lat):.6f}° {hemi}"


def format_longitude(lng: float) -> str:
    hemi = "E" if lng >= 0 else "W"
    return f"{abs(lng):.6f}° {hemi}"
