# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Whole-value key/value persistence for the operational stores.

Each named collection is written as one JSON document.  There are no
field-level updates: ``save_state`` rewrites every collection, and
``load_state`` replaces the stores' tables wholesale.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Protocol, TypeVar

from fieldops.annotations.models import Annotation
from fieldops.broadcasts.models import TrackedBroadcast
from fieldops.errors import ValidationError
from fieldops.tactical.models import Asset, Lane
from fieldops.tactical.trails import Trail

if TYPE_CHECKING:
    from fieldops.ops import OperationsContext

log = logging.getLogger(__name__)

COLLECTIONS = ("assets", "trails", "annotations", "broadcasts", "lanes")
DELETED_BROADCASTS_KEY = "deleted_broadcasts"
_FORMAT_VERSION = 1

T = TypeVar("T")


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else default

    def set(self, key: str, value: Any) -> None:
        # Stored serialized so callers never share mutable state with the store
        raw = json.dumps(value)
        with self._lock:
            self._data[key] = raw

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class JsonFileKeyValueStore:
    """One ``<key>.json`` file per key under *directory*."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        if not key or "/" in key or key.startswith("."):
            raise ValidationError(f"invalid storage key: {key!r}", field="key")
        return self.directory / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            with open(path) as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            log.warning("Corrupt state file %s: %s", path, e)
            return default

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        with self._lock:
            with open(tmp_path, "w") as f:
                json.dump(value, f, indent=2)
            os.replace(tmp_path, path)

    def keys(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))


# ---------------------------------------------------------------------------
# Operations state
# ---------------------------------------------------------------------------

def save_state(ctx: OperationsContext, kv: KeyValueStore) -> dict[str, int]:
    """Write every collection. Returns per-collection record counts."""
    docs = {
        "assets": [a.to_dict() for a in ctx.tracker.all()],
        "trails": [t.to_dict() for t in ctx.trails.all()],
        "annotations": [a.to_dict() for a in ctx.annotations.all()],
        "broadcasts": [b.to_dict() for b in ctx.broadcasts.all()],
        "lanes": [lane.to_dict() for lane in ctx.lanes.all()],
    }
    for name, records in docs.items():
        kv.set(name, {"version": _FORMAT_VERSION, "records": records})
    kv.set(DELETED_BROADCASTS_KEY, ctx.broadcasts.deleted_ids())
    counts = {name: len(records) for name, records in docs.items()}
    log.info("State saved: %s", counts)
    return counts


def load_state(ctx: OperationsContext, kv: KeyValueStore) -> dict[str, int]:
    """Replace store contents with whatever *kv* holds. Missing collections load empty.

    Every collection is parsed before any store is touched, so a bad
    document leaves the stores as they were.  Individual records that do
    not parse are logged and skipped.
    """
    records = {name: _records(kv, name) for name in COLLECTIONS}

    assets = _parse("assets", records["assets"], Asset.from_dict)
    trails = _parse("trails", records["trails"],
                    lambda row: Trail.from_dict(row, capacity=ctx.trails.capacity))
    annotations = _parse("annotations", records["annotations"], Annotation.from_dict)
    broadcasts = _parse("broadcasts", records["broadcasts"], TrackedBroadcast.from_dict)
    lanes = _parse("lanes", records["lanes"], Lane.from_dict)
    deleted = _deleted_ids(kv)

    ctx.tracker.restore(assets)
    for trail in trails:
        ctx.trails.restore(trail)
    ctx.annotations.restore(annotations)
    ctx.broadcasts.restore(broadcasts, deleted=deleted)
    ctx.lanes.restore(lanes)

    counts = {
        "assets": len(assets),
        "trails": len(trails),
        "annotations": len(annotations),
        "broadcasts": len(broadcasts),
        "lanes": len(lanes),
    }
    log.info("State loaded: %s", counts)
    return counts


def _parse(name: str, rows: list, parser: Callable[[dict], T]) -> list[T]:
    parsed: list[T] = []
    for index, row in enumerate(rows):
        try:
            parsed.append(parser(row))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            log.warning("Skipping malformed %s record #%d: %r", name, index, e)
    return parsed


def _deleted_ids(kv: KeyValueStore) -> list[str]:
    ids = kv.get(DELETED_BROADCASTS_KEY)
    if not isinstance(ids, list):
        return []
    return [str(i) for i in ids]


def _records(kv: KeyValueStore, name: str) -> list:
    doc = kv.get(name)
    if doc is None:
        return []
    if isinstance(doc, list):
        return doc
    if not isinstance(doc, dict):
        raise ValidationError(f"{name}: expected an object or a list", field=name)
    version = doc.get("version", _FORMAT_VERSION)
    if version != _FORMAT_VERSION:
        raise ValidationError(f"{name}: unsupported state version {version}", field="version")
    return list(doc.get("records") or [])
