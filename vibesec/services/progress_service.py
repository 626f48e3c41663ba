"""Per-job progress channel.

At most one live subscriber per job; a new subscription replaces and
closes the old one. ``publish`` never blocks the producer: when the
subscriber's queue is full or closed, the subscriber is dropped and it can
fall back to polling the status endpoint.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, AsyncIterator

from vibesec.core.config import settings

logger = logging.getLogger(__name__)

TERMINAL_EVENTS = frozenset({"complete", "error"})

_CLOSED = object()


def connected_event(job_id: str) -> dict[str, Any]:
    return {"type": "connected", "jobId": job_id}


def log_event(progress: int, message: str, status: str = "active") -> dict[str, Any]:
    return {"type": "log", "progress": progress, "status": status, "message": message}


def complete_event(result: dict[str, Any]) -> dict[str, Any]:
    return {"type": "complete", "result": result}


def error_event(error: str) -> dict[str, Any]:
    return {"type": "error", "error": error}


class Subscription:
    def __init__(self, job_id: str, maxsize: int) -> None:
        self.job_id = job_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def offer(self, event: dict[str, Any]) -> bool:
        """Non-blocking enqueue. False means the subscriber should be dropped."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # reader is behind anyway; make room for the sentinel
            self._queue.get_nowait()
            self._queue.put_nowait(_CLOSED)

    async def get(self) -> dict[str, Any] | None:
        """Next event, or None once the subscription is closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        """Yield events until a terminal event or close."""
        while True:
            ev = await self.get()
            if ev is None:
                return
            yield ev
            if ev.get("type") in TERMINAL_EVENTS:
                return


class ProgressChannel:
    def __init__(self, queue_size: int | None = None) -> None:
        self._queue_size = queue_size or settings.PROGRESS_QUEUE_SIZE
        self._subs: dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(self, job_id: str) -> Subscription:
        sub = Subscription(job_id, self._queue_size)
        with self._lock:
            old = self._subs.get(job_id)
            self._subs[job_id] = sub
        if old is not None:
            logger.info("Replacing progress subscriber", extra={"job_id": job_id})
            old.close()
        return sub

    def unsubscribe(self, job_id: str, sub: Subscription) -> None:
        with self._lock:
            if self._subs.get(job_id) is sub:
                del self._subs[job_id]
        sub.close()

    def has_subscriber(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._subs

    def publish(self, job_id: str, event: dict[str, Any]) -> bool:
        """Deliver to the live subscriber if any. Returns whether it was delivered."""
        with self._lock:
            sub = self._subs.get(job_id)
        if sub is None:
            return False

        if sub.offer(event):
            return True

        logger.warning("Dropping slow progress subscriber", extra={"job_id": job_id})
        self.unsubscribe(job_id, sub)
        return False
