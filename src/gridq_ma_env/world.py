from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, NamedTuple, Optional, Set, Tuple


@dataclass(frozen=True, order=True)
class State:
    """A grid cell addressed by zero-based (row, col)."""

    row: int
    col: int

    def shifted(self, delta: Tuple[int, int]) -> "State":
        return State(self.row + delta[0], self.col + delta[1])

    def __str__(self) -> str:
        return f"({self.row}, {self.col})"


class Action(Enum):
    UP = "Up"
    DOWN = "Down"
    LEFT = "Left"
    RIGHT = "Right"
    STAY = "Stay"

    @property
    def delta(self) -> Tuple[int, int]:
        if self == Action.UP:
            return (-1, 0)
        if self == Action.DOWN:
            return (1, 0)
        if self == Action.LEFT:
            return (0, -1)
        if self == Action.RIGHT:
            return (0, 1)
        return (0, 0)


ACTIONS: Tuple[Action, ...] = tuple(Action)


class StepResult(NamedTuple):
    state: State
    reward: float
    terminal: bool


class GridEnvironment:
    """Deterministic transition function over a bounded grid.

    Moves are clamped to the grid edges and a move into a wall leaves the
    agent where it was. Instances are never mutated after construction, so
    several agents may step against the same reference.
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        walls: Iterable[State] = (),
        step_penalty: float = -1.0,
        goal: Optional[State] = None,
        goal_reward: float = 0.0,
    ):
        self.rows = rows
        self.cols = cols
        self.walls: FrozenSet[State] = frozenset(walls)
        self.step_penalty = step_penalty
        self.goal = goal
        self.goal_reward = goal_reward

    def in_bounds(self, state: State) -> bool:
        return 0 <= state.row < self.rows and 0 <= state.col < self.cols

    def is_walkable(self, state: State) -> bool:
        if not self.in_bounds(state):
            return False
        return state not in self.walls

    def clamp(self, row: int, col: int) -> State:
        return State(min(max(row, 0), self.rows - 1), min(max(col, 0), self.cols - 1))

    def step(self, state: State, action: Action) -> StepResult:
        dr, dc = action.delta
        candidate = self.clamp(state.row + dr, state.col + dc)
        next_state = state if candidate in self.walls else candidate
        terminal = self.goal is not None and next_state == self.goal
        reward = self.goal_reward if terminal else self.step_penalty
        return StepResult(next_state, reward, terminal)


def _trim_blank_lines(lines: List[str]) -> List[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def parse_ascii_walls(ascii_map: str) -> Set[State]:
    """Return the wall cells of an ASCII map.

    ``#`` is a wall, ``.`` and space are open floor. Row is the zero-based
    line index and column the zero-based character index; blank lines before
    and after the map are ignored, lines themselves are not stripped.
    """
    walls: Set[State] = set()
    for r, line in enumerate(_trim_blank_lines(ascii_map.splitlines())):
        for c, ch in enumerate(line.rstrip("\r")):
            if ch == "#":
                walls.add(State(r, c))
            elif ch not in (".", " "):
                raise ValueError(f"Unexpected character {ch!r} at row {r}, col {c} in ASCII wall map")
    return walls


def ascii_dimensions(ascii_map: str) -> Tuple[int, int]:
    lines = [line.rstrip("\r") for line in _trim_blank_lines(ascii_map.splitlines())]
    if not lines:
        return (0, 0)
    return (len(lines), max(len(line) for line in lines))


def wall_line(direction: str, start: Tuple[int, int], end: Tuple[int, int]) -> List[State]:
    """Cells of a straight wall segment, endpoints included.

    A horizontal line keeps the row of ``start``; a vertical one keeps its column.
    """
    if direction == "horizontal":
        lo, hi = sorted((start[1], end[1]))
        return [State(start[0], col) for col in range(lo, hi + 1)]
    if direction == "vertical":
        lo, hi = sorted((start[0], end[0]))
        return [State(row, start[1]) for row in range(lo, hi + 1)]
    raise ValueError(f"Wall line direction must be 'horizontal' or 'vertical', got {direction!r}")
