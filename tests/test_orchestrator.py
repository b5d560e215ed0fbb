"""Tests for the orchestrator tick loop and operator actions."""

from __future__ import annotations

from dataclasses import replace

import pytest

from configs.loader import TrainingConfig
from core.event_log import EventLog, LogSource
from core.level_scheduler import Genre, LevelStatus
from core.orchestrator import CurriculumOrchestrator, OperatorActionError, detect_event, step_reward
from core.proposals import FAILURE_TITLE, REJECT_INSTRUCTION
from data.logger import TrainingLogger
from engines.flappy import FlappyAgent, FlappyState
from engines.maze import TILE_HAZARD, init_maze, step_maze
from engines.runner import RunnerAgent, RunnerState
from helpers import BlockingProposer, ExplodingProposer, RecordingProposer

# Spawn (1,1) sits directly under the goal, so the greedy first action (UP) wins.
GOAL_ABOVE_SPAWN = [
    ["wall", "goal", "wall"],
    ["wall", "empty", "wall"],
    ["wall", "empty", "wall"],
]


def _orchestrator(proposer=None, **overrides) -> CurriculumOrchestrator:
    config = TrainingConfig(epsilon=0.0, **overrides)
    orchestrator = CurriculumOrchestrator(config=config, proposer=proposer or RecordingProposer())
    orchestrator.runtimes[Genre.MAZE].state = init_maze(grid=GOAL_ABOVE_SPAWN)
    return orchestrator


def _complete_maze_level(orchestrator: CurriculumOrchestrator) -> None:
    for _ in range(orchestrator.levels()[Genre.MAZE].wins_required):
        orchestrator.tick()


def test_maze_wins_complete_level_and_request_proposal() -> None:
    proposer = RecordingProposer()
    orchestrator = _orchestrator(proposer)
    try:
        orchestrator.tick()
        assert orchestrator.levels()[Genre.MAZE].wins_current == 1

        orchestrator.tick()
        orchestrator.tick()
        progress = orchestrator.levels()[Genre.MAZE]
        assert progress.status in (LevelStatus.PROPOSING, LevelStatus.WAITING_FOR_APPROVAL)
        assert orchestrator.event_log.entries()[0].message == "Level 1 Completed!"

        assert orchestrator.wait_for_proposals(timeout=5)
        assert orchestrator.levels()[Genre.MAZE].status is LevelStatus.WAITING_FOR_APPROVAL
        assert orchestrator.active_proposal(Genre.MAZE).title == "Spiky Corridor"
        genre, level, snapshot, instruction = proposer.calls[0]
        assert (genre, level, instruction) == (Genre.MAZE, 1, None)
        assert '"grid"' in snapshot
        assert len(snapshot) <= 2000
    finally:
        orchestrator.close()


def test_waiting_genre_is_not_stepped_while_others_continue() -> None:
    orchestrator = _orchestrator()
    try:
        _complete_maze_level(orchestrator)
        orchestrator.wait_for_proposals(timeout=5)
        maze_before = orchestrator.state_of(Genre.MAZE)
        flappy_before = orchestrator.state_of(Genre.FLAPPY)

        orchestrator.tick()

        assert orchestrator.state_of(Genre.MAZE) is maze_before
        assert orchestrator.state_of(Genre.FLAPPY) != flappy_before
    finally:
        orchestrator.close()


def test_accept_applies_patch_resets_agent_and_advances_level(tmp_path) -> None:
    logger = TrainingLogger(tmp_path / "runs.db")
    orchestrator = CurriculumOrchestrator(
        config=TrainingConfig(epsilon=0.0),
        proposer=RecordingProposer(),
        logger=logger,
    )
    orchestrator.runtimes[Genre.MAZE].state = init_maze(grid=GOAL_ABOVE_SPAWN)
    try:
        _complete_maze_level(orchestrator)
        orchestrator.wait_for_proposals(timeout=5)

        progress = orchestrator.accept_proposal(Genre.MAZE)

        assert progress.status is LevelStatus.TRAINING
        assert progress.current == 2
        assert progress.wins_current == 0
        assert progress.wins_required == 5
        maze = orchestrator.state_of(Genre.MAZE)
        assert maze.tile_at(2, 2) == TILE_HAZARD
        assert (maze.agent.x, maze.agent.y, maze.agent.score) == (1, 1, 0.0)
        assert orchestrator.active_proposal(Genre.MAZE) is None
        newest = orchestrator.event_log.entries()[0]
        assert (newest.source, newest.message) == (LogSource.GEMINI, "Applied: Spiky Corridor")

        transitions = [row["transition"] for row in logger.fetch_level_events(orchestrator.run_id, "MAZE")]
        assert transitions == ["LEVEL_COMPLETE", "PROPOSAL_READY", "LEVEL_ADVANCED"]
    finally:
        orchestrator.close()
        logger.close()


def test_accept_at_max_level_finishes_genre_and_stops_stepping() -> None:
    orchestrator = _orchestrator(max_level=1)
    try:
        _complete_maze_level(orchestrator)
        orchestrator.wait_for_proposals(timeout=5)

        progress = orchestrator.accept_proposal(Genre.MAZE)
        assert progress.status is LevelStatus.FINISHED

        finished_state = orchestrator.state_of(Genre.MAZE)
        for _ in range(5):
            orchestrator.tick()
        assert orchestrator.state_of(Genre.MAZE) is finished_state
        assert orchestrator.levels()[Genre.MAZE].status is LevelStatus.FINISHED
    finally:
        orchestrator.close()


def test_reject_requests_a_different_proposal() -> None:
    proposer = RecordingProposer()
    orchestrator = _orchestrator(proposer)
    try:
        _complete_maze_level(orchestrator)
        orchestrator.wait_for_proposals(timeout=5)

        progress = orchestrator.reject_proposal(Genre.MAZE)
        assert progress.status is LevelStatus.WAITING_FOR_APPROVAL
        assert progress.pending
        with pytest.raises(OperatorActionError):
            orchestrator.accept_proposal(Genre.MAZE)

        orchestrator.wait_for_proposals(timeout=5)
        assert not orchestrator.levels()[Genre.MAZE].pending
        assert proposer.calls[-1][3] == REJECT_INSTRUCTION
        assert orchestrator.active_proposal(Genre.MAZE) is not None
    finally:
        orchestrator.close()


def test_customize_forwards_operator_instruction() -> None:
    proposer = RecordingProposer()
    orchestrator = _orchestrator(proposer)
    try:
        _complete_maze_level(orchestrator)
        orchestrator.wait_for_proposals(timeout=5)

        orchestrator.customize_proposal(Genre.MAZE, "  Add a second goal  ")
        orchestrator.wait_for_proposals(timeout=5)

        assert proposer.calls[-1][3] == "Add a second goal"
        assert any(entry.source is LogSource.USER for entry in orchestrator.event_log.entries())
        with pytest.raises(OperatorActionError):
            orchestrator.customize_proposal(Genre.MAZE, "   ")
    finally:
        orchestrator.close()


def test_operator_actions_rejected_while_training() -> None:
    orchestrator = _orchestrator()
    try:
        with pytest.raises(OperatorActionError):
            orchestrator.accept_proposal(Genre.FLAPPY)
        with pytest.raises(OperatorActionError):
            orchestrator.reject_proposal(Genre.RUNNER)
    finally:
        orchestrator.close()


def test_raising_proposer_surfaces_failure_proposal() -> None:
    orchestrator = _orchestrator(ExplodingProposer())
    try:
        _complete_maze_level(orchestrator)
        orchestrator.wait_for_proposals(timeout=5)

        proposal = orchestrator.active_proposal(Genre.MAZE)
        assert proposal.title == FAILURE_TITLE
        assert orchestrator.levels()[Genre.MAZE].status is LevelStatus.WAITING_FOR_APPROVAL
    finally:
        orchestrator.close()


def test_slow_proposal_times_out_into_failure() -> None:
    proposer = BlockingProposer()
    now = [0.0]
    orchestrator = CurriculumOrchestrator(
        config=TrainingConfig(epsilon=0.0, proposal_timeout=10.0),
        proposer=proposer,
        clock=lambda: now[0],
    )
    orchestrator.runtimes[Genre.MAZE].state = init_maze(grid=GOAL_ABOVE_SPAWN)
    try:
        _complete_maze_level(orchestrator)
        orchestrator.tick()
        assert orchestrator.levels()[Genre.MAZE].status is LevelStatus.PROPOSING

        now[0] = 11.0
        orchestrator.tick()

        assert orchestrator.levels()[Genre.MAZE].status is LevelStatus.WAITING_FOR_APPROVAL
        assert orchestrator.active_proposal(Genre.MAZE).is_failure
    finally:
        proposer.release.set()
        orchestrator.close()


def test_master_activates_after_all_base_genres_finish() -> None:
    orchestrator = _orchestrator()
    try:
        for _ in range(2):
            orchestrator.tick()
        maze_keys = orchestrator.runtimes[Genre.MAZE].agent.table_size
        for genre in (Genre.MAZE, Genre.FLAPPY, Genre.RUNNER):
            runtime = orchestrator.runtimes[genre]
            runtime.progress = replace(runtime.progress, status=LevelStatus.FINISHED)

        assert not orchestrator.snapshot().master_active
        orchestrator.tick()

        assert orchestrator.master_active
        master = orchestrator.runtimes[Genre.MASTER]
        assert master.agent.brain_for("MAZE").table_size >= maze_keys
        assert master.state.timer == 1
        assert "MASTER" in orchestrator.snapshot().genres
        assert orchestrator.event_log.entries()[0].genre is Genre.MASTER
    finally:
        orchestrator.close()


def test_snapshot_is_plain_data() -> None:
    orchestrator = _orchestrator()
    try:
        orchestrator.tick()
        snapshot = orchestrator.snapshot()

        assert snapshot.tick == 1
        assert set(snapshot.genres) == {"MAZE", "FLAPPY", "RUNNER"}
        assert snapshot.view("MAZE").level["status"] == "TRAINING"
        assert isinstance(snapshot.view("FLAPPY").state["pipes"], list)
    finally:
        orchestrator.close()


def test_reward_is_score_delta_and_zero_on_reset() -> None:
    alive = FlappyState(agent=FlappyAgent(score=1.0))
    later = FlappyState(agent=FlappyAgent(score=1.1))
    dead = FlappyState(agent=FlappyAgent(score=-9.0, dead=True))

    assert step_reward(Genre.FLAPPY, alive, later) == pytest.approx(0.1)
    assert step_reward(Genre.FLAPPY, dead, FlappyState()) == 0.0


def test_score_chunk_events_fire_on_crossing() -> None:
    before = RunnerState(agent=RunnerAgent(score=99.8))
    after = RunnerState(agent=RunnerAgent(score=100.3))
    assert detect_event(Genre.RUNNER, before, after) is not None
    assert detect_event(Genre.RUNNER, after, after) is None

    maze = init_maze(grid=GOAL_ABOVE_SPAWN)
    assert detect_event(Genre.MAZE, maze, step_maze(maze, 0)) is not None


def test_event_log_keeps_twenty_newest_entries() -> None:
    log = EventLog(clock=lambda: 0.0)
    for index in range(25):
        log.add(Genre.MAZE, LogSource.AGENT, f"entry {index}")
    entries = log.entries()
    assert len(entries) == 20
    assert entries[0].message == "entry 24"
    assert entries[-1].message == "entry 5"
