"""Unit tests for fieldops.tactical.models — coordinate validation and
wire-format round trips.
"""
from __future__ import annotations

import math

import pytest

from fieldops.errors import ValidationError
from fieldops.tactical.models import Asset, AssetStatus, Coordinate, GridCell

pytestmark = pytest.mark.unit


class TestCoordinate:
    @pytest.mark.parametrize("lat,lng", [(90, 180), (-90, -180), (0, 0), (40.7, -74.0)])
    def test_valid(self, lat, lng):
        c = Coordinate(lat, lng)
        assert isinstance(c.latitude, float)

    @pytest.mark.parametrize("lat,lng", [(90.0001, 0), (-91, 0), (0, 180.5), (0, -181)])
    def test_out_of_range_rejected(self, lat, lng):
        with pytest.raises(ValidationError):
            Coordinate(lat, lng)

    @pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
    def test_non_finite_rejected(self, bad):
        with pytest.raises(ValidationError):
            Coordinate(bad, 0)
        with pytest.raises(ValidationError):
            Coordinate(0, bad)

    def test_non_finite_altitude_rejected(self):
        with pytest.raises(ValidationError):
            Coordinate(0, 0, altitude=math.nan)

    def test_from_dict_requires_lat_lng(self):
        with pytest.raises(ValidationError):
            Coordinate.from_dict({"latitude": 1})

    def test_round_trip(self):
        c = Coordinate(40.7, -74.0, altitude=12.5, timestamp=99)
        assert Coordinate.from_dict(c.to_dict()) == c


class TestAsset:
    def test_round_trip(self):
        asset = Asset(
            id="a1", agent_id="agent-1", callsign="HAWK",
            position=Coordinate(40.7, -74.0, timestamp=5),
            status=AssetStatus.ENROUTE, grid_cell=GridCell(2, 3),
            speed=1.5, heading=90.0, last_update=5,
        )
        data = asset.to_dict()
        assert data["gridCell"] == {"x": 2, "y": 3}
        assert Asset.from_dict(data) == asset

    def test_no_grid_cell(self):
        asset = Asset(id="a1", agent_id="a1", callsign="A", position=Coordinate(0, 0))
        assert Asset.from_dict(asset.to_dict()).grid_cell is None
