# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Root conftest — skip integration tests when no sync backend is running."""

import os

import httpx
import pytest

SYNC_BASE_URL = os.environ.get("FIELDOPS_SYNC_BASE_URL", "http://localhost:9000/api/game")


def _sync_backend_reachable() -> bool:
    """Check if the shared game-state backend answers on /broadcasts."""
    try:
        resp = httpx.get(f"{SYNC_BASE_URL.rstrip('/')}/broadcasts", timeout=3)
        return resp.status_code < 500
    except httpx.HTTPError:
        return False


_HAS_SYNC_BACKEND = _sync_backend_reachable()


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "integration" in item.keywords and not _HAS_SYNC_BACKEND:
            item.add_marker(pytest.mark.skip(reason=f"Sync backend not reachable at {SYNC_BASE_URL}"))
