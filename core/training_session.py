"""Background live training session for UI consumption."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from core.orchestrator import CurriculumOrchestrator

LOGGER = logging.getLogger(__name__)

SessionCallback = Callable[[dict[str, Any]], None]
OperatorCommand = Callable[[CurriculumOrchestrator], Any]


@dataclass
class SessionControlState:
    """Mutable thread-safe control state for a running live session."""

    stop_event: threading.Event
    pause_event: threading.Event
    step_event: threading.Event
    step_ack_event: threading.Event
    speed_multiplier: float = 1.0


class TrainingSession:
    """Ticks an orchestrator in a background thread and emits snapshots.

    Operator actions are queued with ``submit`` and run on the tick thread
    between ticks, so the orchestrator only ever has one writer.
    """

    def __init__(
        self,
        orchestrator: CurriculumOrchestrator,
        on_update: SessionCallback,
        on_complete: SessionCallback | None = None,
        max_ticks: int | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.on_update = on_update
        self.on_complete = on_complete
        self.max_ticks = max_ticks
        self._commands: queue.Queue[tuple[OperatorCommand, threading.Event, dict[str, Any]]] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._state = SessionControlState(
            stop_event=threading.Event(),
            pause_event=threading.Event(),
            step_event=threading.Event(),
            step_ack_event=threading.Event(),
        )

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start session in a background daemon thread."""
        if self.running:
            return
        self._state.stop_event.clear()
        self._state.pause_event.clear()
        self._state.step_event.clear()
        self._state.step_ack_event.clear()
        self._thread = threading.Thread(target=self._run, name="training-session", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Request session stop."""
        self._state.stop_event.set()
        self._state.pause_event.clear()
        self._state.step_event.set()
        self._state.step_ack_event.set()

    def pause(self) -> None:
        self._state.pause_event.set()

    def resume(self) -> None:
        self._state.pause_event.clear()
        self._state.step_event.set()

    def set_speed(self, multiplier: float) -> None:
        """Adjust session speed multiplier."""
        self._state.speed_multiplier = max(0.01, float(multiplier))

    def step_once(self, timeout: float = 2.0) -> bool:
        """Advance exactly one tick while paused and wait for ack."""
        self._state.pause_event.set()
        self._state.step_ack_event.clear()
        self._state.step_event.set()
        return bool(self._state.step_ack_event.wait(timeout=max(0.01, float(timeout))))

    def join(self, timeout: float | None = None) -> None:
        """Join worker thread for deterministic tests/shutdown."""
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

    def submit(self, command: OperatorCommand, timeout: float | None = 2.0) -> Any:
        """Run ``command`` against the orchestrator on the tick thread.

        Returns the command's result, or re-raises its exception. When the
        session is not running the command runs inline.
        """
        if not self.running:
            return command(self.orchestrator)
        done = threading.Event()
        outcome: dict[str, Any] = {}
        self._commands.put((command, done, outcome))
        if not done.wait(timeout=timeout):
            raise TimeoutError("Operator command was not processed in time.")
        if "error" in outcome:
            raise outcome["error"]
        return outcome.get("result")

    def accept(self, genre: str) -> Any:
        return self.submit(lambda orchestrator: orchestrator.accept_proposal(genre))

    def reject(self, genre: str) -> Any:
        return self.submit(lambda orchestrator: orchestrator.reject_proposal(genre))

    def customize(self, genre: str, instruction: str) -> Any:
        return self.submit(lambda orchestrator: orchestrator.customize_proposal(genre, instruction))

    def _drain_commands(self) -> None:
        while True:
            try:
                command, done, outcome = self._commands.get_nowait()
            except queue.Empty:
                return
            try:
                outcome["result"] = command(self.orchestrator)
            except Exception as exc:
                outcome["error"] = exc
            finally:
                done.set()

    def _run(self) -> None:
        orchestrator = self.orchestrator
        interval = float(orchestrator.config.tick_interval)
        ticks = 0
        try:
            while self.max_ticks is None or ticks < self.max_ticks:
                if self._state.stop_event.is_set():
                    break

                step_mode = False
                while self._state.pause_event.is_set() and not self._state.stop_event.is_set():
                    self._drain_commands()
                    if self._state.step_event.is_set():
                        self._state.step_event.clear()
                        step_mode = True
                        break
                    time.sleep(0.02)
                if self._state.stop_event.is_set():
                    break

                self._drain_commands()
                try:
                    orchestrator.tick()
                except Exception as exc:
                    LOGGER.exception("Training tick %d failed", orchestrator.tick_count)
                    self._safe_emit({"event": "error", "tick": orchestrator.tick_count, "message": str(exc)})
                    break
                ticks += 1

                self._safe_emit(
                    {
                        "event": "tick",
                        "tick": orchestrator.tick_count,
                        "snapshot": orchestrator.snapshot(),
                    }
                )
                if step_mode:
                    self._state.step_ack_event.set()
                else:
                    time.sleep(interval / max(0.01, self._state.speed_multiplier))

            completion = {
                "event": "complete",
                "stopped": self._state.stop_event.is_set(),
                "ticks": ticks,
            }
            if self.on_complete is not None:
                try:
                    self.on_complete(completion)
                except Exception:
                    LOGGER.exception("Completion callback failed")
            else:
                self._safe_emit(completion)
        finally:
            self._drain_commands()

    def _safe_emit(self, payload: dict[str, Any]) -> None:
        try:
            self.on_update(payload)
        except Exception:
            LOGGER.exception("Update callback failed for '%s' event", payload.get("event"))
