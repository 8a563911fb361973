"""Unit tests for fieldops.sync.http_client.HttpSyncClient against an
in-process httpx.MockTransport.
"""
from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from fieldops.acknowledgments import Acknowledgment
from fieldops.broadcasts.models import TrackedBroadcast
from fieldops.errors import SyncFailure
from fieldops.sync.http_client import HttpSyncClient

pytestmark = pytest.mark.unit

BASE = "http://game.test/api/game"


def _client(handler, token: str | None = "s3cret") -> HttpSyncClient:
    return HttpSyncClient(BASE, token=token, transport=httpx.MockTransport(handler))


def _run(client: HttpSyncClient, coro_fn):
    async def scenario():
        try:
            return await coro_fn(client)
        finally:
            await client.aclose()

    return asyncio.run(scenario())


class TestPollBroadcasts:
    def test_parses_wrapped_list_and_skips_malformed(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"broadcasts": [
                {"id": "bc-1", "message": "Go", "issuedBy": "hq", "issuedAt": 5,
                 "priority": "high", "acknowledgments": [
                     {"agentId": "a1", "response": "noted", "acknowledgedAt": 9}]},
                {"message": "no id"},
                {"id": "bc-2", "type": "bogus-type"},
            ]})

        result = _run(_client(handler), lambda c: c.poll_broadcasts())
        assert seen == {"path": "/api/game/broadcasts", "auth": "Bearer s3cret"}
        assert [b.id for b in result] == ["bc-1"]
        assert result[0].acknowledgments[0].target_id == "bc-1"

    def test_bare_list_and_empty_body(self):
        result = _run(_client(lambda r: httpx.Response(200, json=[])), lambda c: c.poll_broadcasts())
        assert result == []
        result = _run(_client(lambda r: httpx.Response(204)), lambda c: c.poll_broadcasts())
        assert result == []

    def test_no_token_no_header(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json=[])

        _run(_client(handler, token=None), lambda c: c.poll_broadcasts())
        assert seen["auth"] is None


class TestErrors:
    def test_http_error_status(self):
        client = _client(lambda r: httpx.Response(503))
        with pytest.raises(SyncFailure) as exc_info:
            _run(client, lambda c: c.poll_broadcasts())
        assert exc_info.value.operation == "poll broadcasts"

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(SyncFailure):
            _run(_client(handler), lambda c: c.poll_telemetry())

    def test_invalid_json(self):
        client = _client(lambda r: httpx.Response(200, content=b"<html>"))
        with pytest.raises(SyncFailure):
            _run(client, lambda c: c.poll_telemetry())


class TestPush:
    def test_push_acknowledgment_body(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        ack = Acknowledgment.create("bc-1", "a1", "ALPHA-1", "unable", "blocked", now=7)
        _run(_client(handler), lambda c: c.push_acknowledgment("broadcast", ack))
        assert captured["method"] == "POST"
        assert captured["path"] == "/api/game/acknowledgments"
        assert captured["body"] == {"kind": "broadcast", "acknowledgment": ack.to_dict()}

    def test_publish_broadcast(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(201)

        bc = TrackedBroadcast(id="bc-9", message="Move", issued_by="op", issued_at=1)
        _run(_client(handler), lambda c: c.publish_broadcast(bc))
        assert captured["body"] == bc.to_dict()


class TestPollTelemetry:
    def test_parses_and_skips_bad_rows(self):
        def handler(request):
            return httpx.Response(200, json={"telemetry": [
                {"agentId": "a1", "latitude": 40.0, "longitude": -74.0, "timestamp": 100},
                {"latitude": 40.0, "longitude": -74.0},
                {"agentId": "a3", "latitude": "north", "longitude": 1.0},
            ]})

        reports = _run(_client(handler), lambda c: c.poll_telemetry())
        assert [r.agent_id for r in reports] == ["a1"]
        assert reports[0].timestamp == 100
