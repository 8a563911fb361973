# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""HttpSyncClient — SyncClient over a JSON HTTP game-state backend.

Endpoints (relative to ``base_url``):

    GET  /broadcasts        -> {"broadcasts": [...]} or a bare list
    POST /acknowledgments   <- {"kind": ..., "acknowledgment": {...}}
    GET  /telemetry         -> {"telemetry": [...]} or a bare list
    POST /broadcasts        <- a broadcast document
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from fieldops.acknowledgments import Acknowledgment
from fieldops.broadcasts.models import TrackedBroadcast
from fieldops.errors import SyncFailure, ValidationError
from fieldops.tactical.tracker import Telemetry

log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 5.0


class HttpSyncClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def poll_broadcasts(self) -> list[TrackedBroadcast]:
        rows = _items(await self._request("GET", "/broadcasts", "poll broadcasts"), "broadcasts")
        result = []
        for row in rows:
            try:
                result.append(TrackedBroadcast.from_dict(row))
            except (ValidationError, KeyError, TypeError, ValueError) as exc:
                log.warning("Skipping malformed broadcast from sync: %s", exc)
        return result

    async def push_acknowledgment(self, kind: str, ack: Acknowledgment) -> None:
        await self._request("POST", "/acknowledgments", "push acknowledgment", json={
            "kind": kind,
            "acknowledgment": ack.to_dict(),
        })

    async def poll_telemetry(self) -> list[Telemetry]:
        rows = _items(await self._request("GET", "/telemetry", "poll telemetry"), "telemetry")
        result = []
        for row in rows:
            try:
                result.append(Telemetry.from_dict(row))
            except ValidationError as exc:
                log.warning("Skipping malformed telemetry from sync: %s", exc)
        return result

    async def publish_broadcast(self, broadcast: TrackedBroadcast) -> None:
        await self._request("POST", "/broadcasts", "publish broadcast", json=broadcast.to_dict())

    async def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SyncFailure(operation, exc) from exc
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise SyncFailure(operation, f"invalid JSON: {exc}") from exc


def _items(payload: Any, key: str) -> list[dict]:
    if payload is None:
        return []
    if isinstance(payload, dict):
        payload = payload.get(key, [])
    if not isinstance(payload, list):
        raise SyncFailure(f"poll {key}", "unexpected payload shape")
    return [row for row in payload if isinstance(row, dict)]
