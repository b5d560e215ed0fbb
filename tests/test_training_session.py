"""Tests for the background training session thread and its command queue."""

from __future__ import annotations

import time

import pytest

from configs.loader import TrainingConfig
from core.level_scheduler import Genre
from core.orchestrator import CurriculumOrchestrator, OperatorActionError
from core.training_session import TrainingSession
from helpers import RecordingProposer


def _orchestrator() -> CurriculumOrchestrator:
    return CurriculumOrchestrator(config=TrainingConfig(tick_interval=0.001), proposer=RecordingProposer())


def test_session_emits_ticks_and_completion() -> None:
    updates: list[dict] = []
    orchestrator = _orchestrator()
    session = TrainingSession(orchestrator, on_update=updates.append, max_ticks=6)
    try:
        session.set_speed(100.0)
        session.start()
        session.join(timeout=5)
    finally:
        orchestrator.close()

    tick_events = [u for u in updates if u.get("event") == "tick"]
    complete_events = [u for u in updates if u.get("event") == "complete"]

    assert len(tick_events) == 6
    assert tick_events[-1]["snapshot"].tick == 6
    assert complete_events and complete_events[0]["ticks"] == 6


def test_session_pause_step_and_stop() -> None:
    updates: list[dict] = []
    orchestrator = _orchestrator()
    session = TrainingSession(orchestrator, on_update=updates.append)
    try:
        session.start()
        time.sleep(0.05)
        session.pause()
        time.sleep(0.05)

        paused_count = len([u for u in updates if u.get("event") == "tick"])
        time.sleep(0.1)
        assert len([u for u in updates if u.get("event") == "tick"]) <= paused_count + 1

        before = orchestrator.tick_count
        assert session.step_once(timeout=2.0)
        assert orchestrator.tick_count == before + 1

        session.stop()
        session.join(timeout=2)
        assert not session.running
    finally:
        orchestrator.close()

    assert any(u.get("event") == "complete" and u.get("stopped") for u in updates)


def test_operator_commands_run_on_tick_thread_and_propagate_errors() -> None:
    orchestrator = _orchestrator()
    session = TrainingSession(orchestrator, on_update=lambda payload: None)
    try:
        session.start()
        session.pause()
        assert session.submit(lambda orch: orch.tick_count) >= 0
        with pytest.raises(OperatorActionError):
            session.accept(Genre.MAZE)
        session.stop()
        session.join(timeout=2)
    finally:
        orchestrator.close()


def test_submit_runs_inline_when_not_running() -> None:
    orchestrator = _orchestrator()
    session = TrainingSession(orchestrator, on_update=lambda payload: None)
    try:
        assert session.submit(lambda orch: orch.levels()[Genre.MAZE].current) == 1
    finally:
        orchestrator.close()


def test_tick_error_is_emitted_without_raising() -> None:
    updates: list[dict] = []
    orchestrator = _orchestrator()

    def broken_tick() -> None:
        raise RuntimeError("engine on fire")

    orchestrator.tick = broken_tick
    session = TrainingSession(orchestrator, on_update=updates.append, max_ticks=3)
    try:
        session.start()
        session.join(timeout=2)
    finally:
        orchestrator.close()

    errors = [u for u in updates if u.get("event") == "error"]
    assert errors and errors[0]["message"] == "engine on fire"
