"""Unit tests for the trails router — trail detail, summary, clear, export."""
from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dashboard.routers.trails import router
from fieldops.ops import OperationsContext
from fieldops.tactical.tracker import Telemetry


def _make_client() -> tuple[TestClient, OperationsContext]:
    ops = OperationsContext.create()
    app = FastAPI()
    app.include_router(router)
    app.state.ops = ops
    return TestClient(app), ops


def _walk(ops: OperationsContext, agent: str = "a1", n: int = 5) -> None:
    for i in range(n):
        ops.tracker.update_position(Telemetry(agent, 40.0 + i * 0.001, -74.0, i * 2000))


@pytest.mark.unit
class TestGetTrail:
    def test_trail_with_summary(self):
        client, ops = _make_client()
        _walk(ops)
        data = client.get("/api/trails/a1").json()
        assert data["assetId"] == "a1"
        assert len(data["coordinates"]) == 5
        assert data["summary"]["pointCount"] == 5
        assert data["summary"]["durationMs"] == 8000
        assert data["heading"] == pytest.approx(0.0, abs=1e-6)
        assert data["color"].startswith("oklch(")

    def test_missing(self):
        client, _ = _make_client()
        assert client.get("/api/trails/ghost").status_code == 404

    def test_summary_of_unknown_asset_is_zero(self):
        client, _ = _make_client()
        assert client.get("/api/trails/ghost/summary").json() == {
            "pointCount": 0, "totalDistance": 0.0, "durationMs": 0,
        }


@pytest.mark.unit
class TestClearAndExport:
    def test_clear(self):
        client, ops = _make_client()
        _walk(ops)
        resp = client.delete("/api/trails/a1")
        assert resp.json() == {"status": "cleared", "assetId": "a1"}
        assert ops.trails.points("a1") == ()
        assert client.get("/api/trails/a1/summary").json()["pointCount"] == 0

    def test_clear_missing(self):
        client, _ = _make_client()
        assert client.delete("/api/trails/ghost").status_code == 404

    def test_export(self):
        client, ops = _make_client()
        _walk(ops, n=3)
        data = client.get("/api/trails/a1/export").json()
        assert data["totalCoordinates"] == 3
        assert data["coordinates"][2]["datetime"] == "1970-01-01T00:00:04.000Z"
        assert data["exportedAt"].endswith("Z")

    def test_export_missing(self):
        client, _ = _make_client()
        assert client.get("/api/trails/ghost/export").status_code == 404
