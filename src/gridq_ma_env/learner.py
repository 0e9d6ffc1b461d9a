from __future__ import annotations

import math
import re
from dataclasses import dataclass
from numbers import Real
from typing import Dict, List, Mapping, NamedTuple, Optional, Tuple

import numpy as np

from .world import ACTIONS, Action, GridEnvironment, State


@dataclass
class LearnerConfig:
    """Hyper-parameters of one tabular Q-learner, fixed for its lifetime."""

    alpha: float = 0.1
    gamma: float = 0.9
    eps0: float = 0.9
    eps_min: float = 0.15
    warm: int = 10_000  # episodes at eps0 before the linear decay starts
    optimistic: float = 0.0  # value of every unvisited (state, action) pair
    seed: Optional[int] = None

    def epsilon(self, episode: int) -> float:
        """Exploration rate after ``episode`` completed episodes.

        Flat at ``eps0`` during warm-up, then decays linearly over another
        ``warm`` episodes and floors at ``eps_min``. With ``warm == 0`` there
        is neither warm-up nor decay window, so the rate is ``eps_min``.
        """
        if episode < self.warm:
            return self.eps0
        if self.warm <= 0:
            return self.eps_min
        decayed = self.eps0 - (self.eps0 - self.eps_min) * (episode - self.warm) / self.warm
        return max(self.eps_min, decayed)

    def validate(self) -> None:
        for name in ("alpha", "gamma", "eps0", "eps_min"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.eps_min > self.eps0:
            raise ValueError(f"eps_min ({self.eps_min}) must not exceed eps0 ({self.eps0})")
        if self.warm < 0:
            raise ValueError(f"warm must be non-negative, got {self.warm}")
        if self.optimistic < 0.0:
            raise ValueError(f"optimistic must be non-negative, got {self.optimistic}")


@dataclass
class LoadResult:
    ok: bool
    loaded: int = 0
    error: Optional[str] = None


@dataclass
class TrajectoryEntry:
    state: State
    action: Action
    exploring: bool
    q_values: Tuple[float, ...]


class EpisodeOutcome(NamedTuple):
    reached_goal: bool
    steps: int
    trajectory: List[TrajectoryEntry]


_STATE_KEY = re.compile(r"^\s*\(\s*(\d+)\s*,\s*(\d+)\s*\)\s*$")
_ACTIONS_BY_NAME = {action.value: action for action in ACTIONS}


def _parse_value_table(table: Mapping) -> Dict[Tuple[State, Action], float]:
    """Validate an external ``{"(r, c)": {"Up": value, ...}}`` table.

    Raises ``ValueError`` on the first malformed entry so callers can keep
    injection all-or-nothing.
    """
    if not isinstance(table, Mapping):
        raise ValueError(f"value table must be a mapping, got {type(table).__name__}")
    parsed: Dict[Tuple[State, Action], float] = {}
    for state_key, action_values in table.items():
        match = _STATE_KEY.match(str(state_key))
        if match is None:
            raise ValueError(f"invalid state key {state_key!r}")
        state = State(int(match.group(1)), int(match.group(2)))
        if not isinstance(action_values, Mapping):
            raise ValueError(f"actions for state {state_key!r} must be a mapping")
        for action_name, value in action_values.items():
            action = _ACTIONS_BY_NAME.get(action_name)
            if action is None:
                raise ValueError(f"unknown action {action_name!r} for state {state_key!r}")
            if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
                raise ValueError(f"non-numeric value {value!r} for {state_key!r}/{action_name}")
            parsed[(state, action)] = float(value)
    return parsed


class QLearner:
    """Epsilon-greedy tabular Q-learner owned by exactly one agent."""

    def __init__(self, config: Optional[LearnerConfig] = None):
        self.config = config or LearnerConfig()
        self.config.validate()
        self.rng = np.random.default_rng(self.config.seed)
        self.episode_count: int = 0
        self._table: Dict[Tuple[State, Action], float] = {}

    def __len__(self) -> int:
        return len(self._table)

    @property
    def epsilon(self) -> float:
        return self.config.epsilon(self.episode_count)

    def increment_episode(self) -> None:
        self.episode_count += 1

    # Table access --------------------------------------------------------
    def q_value(self, state: State, action: Action) -> float:
        return self._table.get((state, action), self.config.optimistic)

    def q_values(self, state: State) -> np.ndarray:
        return np.array([self.q_value(state, a) for a in ACTIONS], dtype=np.float64)

    def visited(self, state: State, action: Action) -> bool:
        return (state, action) in self._table

    def snapshot(self) -> Dict[Tuple[State, Action], float]:
        return dict(self._table)

    def load_initial_values(self, table: Mapping) -> LoadResult:
        """Merge an externally generated table into this learner.

        The whole table is validated first; on any malformed entry nothing
        is written and the learner keeps its optimistic initialization.
        """
        try:
            parsed = _parse_value_table(table)
        except ValueError as exc:
            return LoadResult(ok=False, error=str(exc))
        self._table.update(parsed)
        return LoadResult(ok=True, loaded=len(parsed))

    # Policy ----------------------------------------------------------------
    def greedy_action(self, state: State) -> Action:
        values = self.q_values(state)
        best = np.flatnonzero(values == values.max())
        return ACTIONS[int(self.rng.choice(best))]

    def choose(self, state: State, greedy: bool = False) -> Tuple[Action, bool]:
        """Return ``(action, exploring)`` for ``state``.

        ``greedy`` forces exploitation regardless of the schedule.
        """
        if not greedy and self.rng.random() < self.epsilon:
            return ACTIONS[int(self.rng.integers(len(ACTIONS)))], True
        return self.greedy_action(state), False

    def update(self, state: State, action: Action, reward: float, next_state: State) -> float:
        alpha = self.config.alpha
        best_next = max(self.q_value(next_state, a) for a in ACTIONS)
        new_value = (1.0 - alpha) * self.q_value(state, action) + alpha * (reward + self.config.gamma * best_next)
        self._table[(state, action)] = new_value
        return new_value

    # Single-agent training -------------------------------------------------
    def episode(self, env: GridEnvironment, start: State, max_steps: int = 200) -> EpisodeOutcome:
        """Run one learning episode alone in ``env`` from ``start``.

        Rewards and termination come from ``env.step``; an episode that
        starts on the goal ends immediately with zero steps.
        """
        trajectory: List[TrajectoryEntry] = []
        state = start
        steps = 0
        reached = env.goal is not None and state == env.goal
        while not reached and steps < max_steps:
            action, exploring = self.choose(state)
            result = env.step(state, action)
            self.update(state, action, result.reward, result.state)
            trajectory.append(TrajectoryEntry(state, action, exploring, tuple(self.q_values(state))))
            state = result.state
            steps += 1
            reached = result.terminal
        self.increment_episode()
        return EpisodeOutcome(reached, steps, trajectory)
