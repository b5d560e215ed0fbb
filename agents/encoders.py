"""Lossy state encoders that map simulation state to Q-table keys."""

from __future__ import annotations

import math

from engines.flappy import AGENT_CENTER_X, PIPE_WIDTH, FlappyState
from engines.master import MODE_FLAPPY, MODE_MAZE, MasterState
from engines.maze import MazeState, find_goal
from engines.runner import OBSTACLE_ROCK, RunnerState

OUT_OF_BOUNDS_CODE = "W"
NO_PIPE_KEY = "NO_PIPE"
FLAPPY_DY_BUCKET = 30.0
FLAPPY_VELOCITY_BUCKET = 3.0
RUNNER_LOOKAHEAD = 150.0
MASTER_KEY_SEPARATOR = "|"


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def encode_maze(state: MazeState) -> str:
    """3x3 tile initials around the agent plus the sign of the goal offset."""
    agent = state.agent
    cells = []
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            x, y = agent.x + dx, agent.y + dy
            if state.in_bounds(x, y):
                cells.append(state.tile_at(x, y)[:1])
            else:
                cells.append(OUT_OF_BOUNDS_CODE)

    goal_x, goal_y = find_goal(state) or (-1, -1)
    return f"{''.join(cells)}:{_sign(goal_x - agent.x)}:{_sign(goal_y - agent.y)}"


def encode_flappy(state: FlappyState) -> str:
    """Quantized distance to the next pipe, gap offset and velocity."""
    next_pipe = next(
        (pipe for pipe in state.pipes if pipe.x + PIPE_WIDTH > AGENT_CENTER_X),
        None,
    )
    if next_pipe is None:
        return NO_PIPE_KEY
    dx = math.floor((next_pipe.x - AGENT_CENTER_X) / PIPE_WIDTH)
    dy = math.floor((state.agent.y - next_pipe.gap_y) / FLAPPY_DY_BUCKET)
    velocity = math.floor(state.agent.velocity / FLAPPY_VELOCITY_BUCKET)
    return f"{dx},{dy},{velocity}"


def encode_runner(state: RunnerState) -> str:
    """Current lane plus a none/rock/coin code per lane within look-ahead."""
    depth = state.agent_depth
    view = [0] * state.lanes
    for obstacle in state.obstacles:
        if not 0 <= obstacle.lane < state.lanes:
            continue
        if depth - RUNNER_LOOKAHEAD < obstacle.y < depth:
            view[obstacle.lane] = 1 if obstacle.kind == OBSTACLE_ROCK else 2
    return f"{state.agent.lane}:{''.join(str(code) for code in view)}"


def encode_master(state: MasterState) -> str:
    """Prefix the active sub-game's key with its mode."""
    if state.mode == MODE_MAZE:
        inner = encode_maze(state.maze)
    elif state.mode == MODE_FLAPPY:
        inner = encode_flappy(state.flappy)
    else:
        inner = encode_runner(state.runner)
    return f"{state.mode}{MASTER_KEY_SEPARATOR}{inner}"


def split_master_key(key: str) -> tuple[str, str]:
    mode, _, inner = key.partition(MASTER_KEY_SEPARATOR)
    return mode, inner
