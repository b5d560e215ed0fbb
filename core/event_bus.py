"""Thread-safe non-blocking pub/sub bus for training progress events."""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from threading import Lock, Semaphore
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)

Callback = Callable[[Any], None]

LEVEL_COMPLETE = "level_complete"
PROPOSAL_READY = "proposal_ready"
LEVEL_ADVANCED = "level_advanced"
GENRE_FINISHED = "genre_finished"
MASTER_ACTIVATED = "master_activated"


class EventBus:
    """Fan out orchestrator events to UI subscribers.

    Callbacks run in a worker pool so ``publish`` never stalls a tick; when the
    pending queue is full further deliveries are dropped.
    """

    def __init__(self, max_workers: int = 2, max_pending: int = 256) -> None:
        self._subs: dict[str, list[Callback]] = defaultdict(list)
        self._lock = Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="event-bus")
        self._pending = Semaphore(max(1, int(max_pending)))
        self.dropped = 0

    def subscribe(self, event_type: str, callback: Callback) -> None:
        with self._lock:
            self._subs[event_type].append(callback)

    def publish(self, event_type: str, payload: Any) -> int:
        """Queue ``payload`` for every subscriber; return how many were queued."""
        with self._lock:
            callbacks = list(self._subs.get(event_type, []))
        queued = 0
        for callback in callbacks:
            if not self._pending.acquire(blocking=False):
                self.dropped += 1
                continue
            future = self._executor.submit(self._safe_invoke, event_type, callback, payload)
            future.add_done_callback(lambda _f: self._pending.release())
            queued += 1
        return queued

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    @staticmethod
    def _safe_invoke(event_type: str, callback: Callback, payload: Any) -> None:
        try:
            callback(payload)
        except Exception:
            LOGGER.exception("Subscriber for '%s' failed", event_type)
