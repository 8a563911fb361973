# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""EventBus — thread-safe fan-out of change notifications.

Stores publish after a mutation is fully committed; subscribers receive
``{"type": event_type, "data": data}`` messages on their own queue.

    bus = EventBus()
    sub = bus.subscribe()
    bus.publish("annotation_created", {...})
    msg = sub.get(timeout=1.0)
    bus.unsubscribe(sub)
"""

from __future__ import annotations

import logging
import queue
import threading

log = logging.getLogger(__name__)

# Per-subscriber queue bound; a slow subscriber loses messages, others don't.
_SUBSCRIBER_QUEUE_MAX = 1000


class EventBus:
    """Publish/subscribe hub keyed by event type strings."""

    def __init__(self, maxsize: int = _SUBSCRIBER_QUEUE_MAX) -> None:
        self._subscribers: list[queue.Queue] = []
        self._lock = threading.Lock()
        self._maxsize = maxsize
        self._published = 0
        self._dropped = 0

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    @property
    def stats(self) -> dict:
        return {
            "subscribers": self.subscriber_count,
            "published": self._published,
            "dropped": self._dropped,
        }

    def subscribe(self) -> queue.Queue:
        """Register a new subscriber and return its message queue."""
        q: queue.Queue = queue.Queue(maxsize=self._maxsize)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            try:
                self._subscribers.remove(q)
            except ValueError:
                pass

    def publish(self, event_type: str, data: dict | None = None) -> None:
        """Deliver an event to every current subscriber."""
        msg = {"type": event_type, "data": data if data is not None else {}}
        with self._lock:
            subscribers = list(self._subscribers)
            self._published += 1
        for q in subscribers:
            try:
                q.put_nowait(msg)
            except queue.Full:
                self._dropped += 1
                log.debug("EventBus subscriber queue full, dropped %s", event_type)
