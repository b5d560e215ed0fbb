"""Composite engine that runs one of the three base games at a time."""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from engines.flappy import FlappyState, flappy_from_document, init_flappy, step_flappy
from engines.maze import MazeState, init_maze, maze_from_document, step_maze
from engines.runner import RunnerState, init_runner, runner_from_document, step_runner

MODE_MAZE = "MAZE"
MODE_FLAPPY = "FLAPPY"
MODE_RUNNER = "RUNNER"
MASTER_MODES: tuple[str, ...] = (MODE_MAZE, MODE_FLAPPY, MODE_RUNNER)


@dataclass(frozen=True)
class MasterState:
    mode: str = MODE_MAZE
    maze: MazeState = field(default_factory=init_maze)
    flappy: FlappyState = field(default_factory=init_flappy)
    runner: RunnerState = field(default_factory=init_runner)
    score: float = 0.0
    timer: int = 0

    def active_state(self) -> MazeState | FlappyState | RunnerState:
        """Return the sub-world selected by ``mode``."""
        if self.mode == MODE_MAZE:
            return self.maze
        if self.mode == MODE_FLAPPY:
            return self.flappy
        return self.runner

    def to_document(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "maze": self.maze.to_document(),
            "flappy": self.flappy.to_document(),
            "runner": self.runner.to_document(),
            "score": self.score,
            "timer": self.timer,
        }


def init_master(
    maze: MazeState | None = None,
    flappy: FlappyState | None = None,
    runner: RunnerState | None = None,
    mode: str = MODE_MAZE,
) -> MasterState:
    """Compose a master world, typically from the finished base worlds."""
    if mode not in MASTER_MODES:
        raise ValueError(f"Unknown master mode: {mode}")
    return MasterState(
        mode=mode,
        maze=maze if maze is not None else init_maze(),
        flappy=flappy if flappy is not None else init_flappy(),
        runner=runner if runner is not None else init_runner(),
    )


def select_mode(state: MasterState, mode: str) -> MasterState:
    if mode not in MASTER_MODES:
        raise ValueError(f"Unknown master mode: {mode}")
    return replace(state, mode=mode)


def step_master(state: MasterState, action: int, rng: random.Random, mode_ticks: int = 300) -> MasterState:
    """Step the active sub-game and rotate modes every ``mode_ticks`` ticks."""
    before = state.active_state()
    if state.mode == MODE_MAZE:
        after = step_maze(state.maze, action)
        next_state = replace(state, maze=after)
    elif state.mode == MODE_FLAPPY:
        after = step_flappy(state.flappy, action, rng)
        next_state = replace(state, flappy=after)
    else:
        after = step_runner(state.runner, action, rng)
        next_state = replace(state, runner=after)

    # A reset step zeroes the sub-score; that drop is not a master loss.
    delta = 0.0 if before.agent.dead else after.agent.score - before.agent.score
    timer = state.timer + 1
    mode = state.mode
    if mode_ticks > 0 and timer % mode_ticks == 0:
        mode = MASTER_MODES[(MASTER_MODES.index(mode) + 1) % len(MASTER_MODES)]
    return replace(next_state, score=state.score + delta, timer=timer, mode=mode)


def master_from_document(document: Mapping[str, Any]) -> MasterState:
    mode = str(document.get("mode", MODE_MAZE))
    if mode not in MASTER_MODES:
        raise ValueError(f"Unknown master mode: {mode}")
    return MasterState(
        mode=mode,
        maze=maze_from_document(document["maze"]),
        flappy=flappy_from_document(document["flappy"]),
        runner=runner_from_document(document["runner"]),
        score=float(document.get("score", 0.0)),
        timer=int(document.get("timer", 0)),
    )
