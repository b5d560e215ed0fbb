"""Grid maze engine with soft reset on death."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Sequence

TILE_EMPTY = "empty"
TILE_WALL = "wall"
TILE_HAZARD = "hazard"
TILE_GOAL = "goal"
TILE_TYPES: tuple[str, ...] = (TILE_EMPTY, TILE_WALL, TILE_HAZARD, TILE_GOAL)

ACTION_UP = 0
ACTION_DOWN = 1
ACTION_LEFT = 2
ACTION_RIGHT = 3
MAZE_ACTIONS: tuple[str, ...] = ("UP", "DOWN", "LEFT", "RIGHT")

_MOVES: dict[int, tuple[int, int]] = {
    ACTION_UP: (0, -1),
    ACTION_DOWN: (0, 1),
    ACTION_LEFT: (-1, 0),
    ACTION_RIGHT: (1, 0),
}

SPAWN_X = 1
SPAWN_Y = 1
STEP_PENALTY = 0.1
OUT_OF_BOUNDS_PENALTY = 1.0
HAZARD_PENALTY = 10.0
GOAL_REWARD = 50.0

EVENT_STEP = "step"
EVENT_WALL = "wall"
EVENT_OUT_OF_BOUNDS = "out_of_bounds"
EVENT_HAZARD = "hazard"
EVENT_GOAL = "goal"
EVENT_RESET = "reset"

Grid = tuple[tuple[str, ...], ...]


@dataclass(frozen=True)
class MazeAgent:
    x: int = SPAWN_X
    y: int = SPAWN_Y
    score: float = 0.0
    dead: bool = False


@dataclass(frozen=True)
class MazeState:
    """Immutable maze world.

    ``grid`` is indexed ``grid[y][x]``. ``last_event`` records what the most
    recent step did so a goal visit stays observable after the teleport back to
    spawn.
    """

    width: int
    height: int
    grid: Grid
    agent: MazeAgent
    last_event: str = EVENT_STEP

    def tile_at(self, x: int, y: int) -> str:
        return self.grid[y][x]

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def to_document(self) -> dict[str, Any]:
        """Return the JSON document that proposals patch."""
        return {
            "width": self.width,
            "height": self.height,
            "grid": [list(row) for row in self.grid],
            "agent": {
                "x": self.agent.x,
                "y": self.agent.y,
                "score": self.agent.score,
                "dead": self.agent.dead,
            },
        }


def default_grid(width: int, height: int) -> Grid:
    """Border walls with a single goal in the far corner."""
    rows: list[tuple[str, ...]] = []
    for y in range(height):
        row = []
        for x in range(width):
            border = x in (0, width - 1) or y in (0, height - 1)
            row.append(TILE_WALL if border else TILE_EMPTY)
        rows.append(tuple(row))
    goal_x, goal_y = width - 2, height - 2
    if 0 <= goal_x < width and 0 <= goal_y < height and (goal_x, goal_y) != (SPAWN_X, SPAWN_Y):
        goal_row = list(rows[goal_y])
        goal_row[goal_x] = TILE_GOAL
        rows[goal_y] = tuple(goal_row)
    return tuple(rows)


def init_maze(width: int = 10, height: int = 10, grid: Sequence[Sequence[str]] | None = None) -> MazeState:
    """Create a maze with the agent at spawn.

    When ``grid`` is given its shape wins over ``width``/``height``.
    """
    if grid is None:
        if width < 3 or height < 3:
            raise ValueError("Maze must be at least 3x3 to hold the spawn tile.")
        cells = default_grid(width, height)
    else:
        cells = _normalize_grid(grid)
    return MazeState(
        width=len(cells[0]) if cells else 0,
        height=len(cells),
        grid=cells,
        agent=MazeAgent(),
    )


def reset_agent(state: MazeState) -> MazeState:
    """Return ``state`` with the agent back at spawn and its score cleared."""
    return replace(state, agent=_spawn_agent(state), last_event=EVENT_RESET)


def step_maze(state: MazeState, action: int) -> MazeState:
    """Advance the maze by one move.

    A dead agent is silently reset and the action is ignored. Goal tiles pay out
    and teleport the agent back to spawn without ending the episode.
    """
    agent = state.agent
    if agent.dead:
        return reset_agent(state)

    dx, dy = _MOVES.get(int(action), (0, 0))
    nx, ny = agent.x + dx, agent.y + dy

    if not state.in_bounds(nx, ny):
        return replace(
            state,
            agent=replace(agent, score=agent.score - OUT_OF_BOUNDS_PENALTY),
            last_event=EVENT_OUT_OF_BOUNDS,
        )

    tile = state.tile_at(nx, ny)
    if tile == TILE_WALL:
        return replace(
            state,
            agent=replace(agent, score=agent.score - STEP_PENALTY),
            last_event=EVENT_WALL,
        )
    if tile == TILE_HAZARD:
        return replace(
            state,
            agent=replace(agent, x=nx, y=ny, score=agent.score - HAZARD_PENALTY, dead=True),
            last_event=EVENT_HAZARD,
        )
    if tile == TILE_GOAL:
        spawn = _spawn_agent(state)
        return replace(
            state,
            agent=replace(agent, x=spawn.x, y=spawn.y, score=agent.score + GOAL_REWARD),
            last_event=EVENT_GOAL,
        )
    return replace(
        state,
        agent=replace(agent, x=nx, y=ny, score=agent.score - STEP_PENALTY),
        last_event=EVENT_STEP,
    )


def find_goal(state: MazeState) -> tuple[int, int] | None:
    """Return the first goal tile in row-major order."""
    # With several goals this can differ from scanning for the last row that holds one.
    for y, row in enumerate(state.grid):
        for x, tile in enumerate(row):
            if tile == TILE_GOAL:
                return x, y
    return None


def maze_from_document(document: Mapping[str, Any]) -> MazeState:
    """Rebuild a maze from a (possibly patched) document.

    The grid is authoritative for dimensions; ragged rows are padded with empty
    tiles and the agent is clamped into bounds.
    """
    grid = _normalize_grid(document["grid"])
    height = len(grid)
    width = len(grid[0])
    raw_agent = document.get("agent", {})
    if not isinstance(raw_agent, Mapping):
        raise TypeError("Maze agent must be a mapping.")
    x = min(max(int(raw_agent.get("x", SPAWN_X)), 0), width - 1)
    y = min(max(int(raw_agent.get("y", SPAWN_Y)), 0), height - 1)
    agent = MazeAgent(
        x=x,
        y=y,
        score=float(raw_agent.get("score", 0.0)),
        dead=_read_flag(raw_agent, "dead"),
    )
    return MazeState(width=width, height=height, grid=grid, agent=agent)


def _spawn_agent(state: MazeState) -> MazeAgent:
    return MazeAgent(
        x=min(SPAWN_X, state.width - 1),
        y=min(SPAWN_Y, state.height - 1),
    )


def _normalize_grid(raw_grid: Any) -> Grid:
    if isinstance(raw_grid, (str, bytes)) or not isinstance(raw_grid, Sequence):
        raise TypeError("Maze grid must be a sequence of rows.")
    rows = [row for row in raw_grid]
    if not rows:
        raise ValueError("Maze grid must contain at least one row.")
    for row in rows:
        if isinstance(row, (str, bytes)) or not isinstance(row, Sequence):
            raise TypeError("Maze grid rows must be sequences of tile labels.")
        if any(not isinstance(tile, str) for tile in row):
            raise TypeError("Maze tiles must be strings.")
        unknown = sorted({tile for tile in row if tile not in TILE_TYPES})
        if unknown:
            raise ValueError(f"Unknown maze tile(s): {', '.join(unknown)}")
    width = max(len(row) for row in rows)
    if width == 0:
        raise ValueError("Maze grid rows must not be empty.")
    return tuple(tuple(row) + (TILE_EMPTY,) * (width - len(row)) for row in rows)


def _read_flag(raw: Mapping[str, Any], key: str) -> bool:
    value = raw.get(key, False)
    if not isinstance(value, bool):
        raise TypeError(f"{key!r} must be a boolean, got {value!r}.")
    return value
