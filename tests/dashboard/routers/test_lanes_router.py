"""Unit tests for the lanes router — lane creation and status transitions."""
from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dashboard.routers.lanes import router
from fieldops.ops import OperationsContext
from fieldops.tactical.tracker import Telemetry


def _make_client() -> tuple[TestClient, OperationsContext]:
    ops = OperationsContext.create()
    app = FastAPI()
    app.include_router(router)
    app.state.ops = ops
    return TestClient(app), ops


def _lane(client: TestClient, **overrides):
    body = {"name": "Route A", "start_grid": {"x": 0, "y": 0}, "end_grid": {"x": 7, "y": 7}}
    body.update(overrides)
    return client.post("/api/lanes", json=body)


@pytest.mark.unit
class TestCreate:
    def test_create(self):
        client, _ = _make_client()
        data = _lane(client, assigned_assets=["a1", "a1", "a2"], priority="high").json()
        assert data["name"] == "Route A"
        assert data["status"] == "active"
        assert data["assignedAssets"] == ["a1", "a2"]
        assert data["startGrid"] == {"x": 0, "y": 0}
        assert data["startAsset"] is None

    @pytest.mark.parametrize("overrides", [
        {"name": " "},
        {"start_grid": {"x": 8, "y": 0}},
        {"end_grid": {"x": 0, "y": -1}},
        {"priority": "whenever"},
    ])
    def test_invalid(self, overrides):
        client, ops = _make_client()
        assert _lane(client, **overrides).status_code == 400
        assert ops.lanes.all() == []

    def test_endpoint_assets(self):
        client, ops = _make_client()
        ops.tracker.update_position(Telemetry("a1", 40.0, -74.0, 0))
        cell = ops.tracker.get("a1").grid_cell.to_dict()
        data = _lane(client, start_grid=cell).json()
        assert data["startAsset"] == "a1"
        assert [lane["id"] for lane in client.get("/api/lanes").json()] == [data["id"]]


@pytest.mark.unit
class TestStatus:
    def test_transitions(self):
        client, _ = _make_client()
        lane_id = _lane(client).json()["id"]
        resp = client.post(f"/api/lanes/{lane_id}/status", json={"status": "compromised"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "compromised"

    def test_unknown_status(self):
        client, _ = _make_client()
        lane_id = _lane(client).json()["id"]
        assert client.post(f"/api/lanes/{lane_id}/status", json={"status": "lost"}).status_code == 400

    def test_missing_lane(self):
        client, _ = _make_client()
        assert client.post("/api/lanes/lane-x/status", json={"status": "completed"}).status_code == 404
