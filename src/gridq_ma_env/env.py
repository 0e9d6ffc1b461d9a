from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from .learner import QLearner
from .triggers import OpenWall, Trigger
from .world import Action, GridEnvironment, State

logger = logging.getLogger(__name__)

TRIGGER_MODES = ("persistent", "once")


@dataclass
class AgentSpec:
    agent_id: str
    start: State
    learner: QLearner = field(default_factory=QLearner)
    goal: Optional[State] = None
    goal_reward: float = 0.0  # flat bonus added on every step the agent stands on its goal
    end_on_goal: bool = True

    def at_goal(self, position: State) -> bool:
        return self.goal is not None and position == self.goal


@dataclass
class WorldSpec:
    rows: int = 5
    cols: int = 5
    step_penalty: float = -1.0
    walls: Set[State] = field(default_factory=set)
    triggers: List[Trigger] = field(default_factory=list)
    agents: List[AgentSpec] = field(default_factory=list)
    episodes: int = 10_000
    step_limit: int = 400
    step_delay_ms: int = 70  # observer pacing only
    show_after: int = 0  # first episode handed to observers
    trigger_mode: str = "persistent"  # "persistent" re-fires every match, "once" until reset

    def agent_ids(self) -> List[str]:
        return [agent.agent_id for agent in self.agents]

    def agent(self, agent_id: str) -> AgentSpec:
        for agent in self.agents:
            if agent.agent_id == agent_id:
                return agent
        raise KeyError(agent_id)

    def in_bounds(self, state: State) -> bool:
        return 0 <= state.row < self.rows and 0 <= state.col < self.cols

    def validate(self) -> None:
        if self.rows < 1 or self.cols < 1:
            raise ValueError(f"Grid dimensions must be positive, got {self.rows}x{self.cols}")
        if self.step_penalty >= 0:
            raise ValueError(f"step_penalty must be strictly negative, got {self.step_penalty}")
        if self.episodes < 0 or self.step_limit < 0:
            raise ValueError("episodes and step_limit must be non-negative")
        if self.trigger_mode not in TRIGGER_MODES:
            raise ValueError(f"trigger_mode must be one of {TRIGGER_MODES}, got {self.trigger_mode!r}")
        ids = self.agent_ids()
        if len(set(ids)) != len(ids):
            raise ValueError(f"Agent ids must be unique, got {ids}")
        for wall in self.walls:
            if not self.in_bounds(wall):
                raise ValueError(f"Wall {wall} lies outside the {self.rows}x{self.cols} grid")
        for agent in self.agents:
            if not self.in_bounds(agent.start):
                raise ValueError(f"Agent {agent.agent_id!r} starts outside the grid at {agent.start}")
            if agent.goal is not None and not self.in_bounds(agent.goal):
                raise ValueError(f"Agent {agent.agent_id!r} has its goal outside the grid at {agent.goal}")
        for trig in self.triggers:
            if not self.in_bounds(trig.at):
                raise ValueError(f"Trigger for {trig.who!r} sits outside the grid at {trig.at}")
            for effect in trig.effects:
                if isinstance(effect, OpenWall) and not self.in_bounds(effect.pos):
                    raise ValueError(f"Trigger for {trig.who!r} opens a cell outside the grid: {effect.pos}")


class EnvironmentManager:
    """Owns the per-episode wall overlay, trigger pool and termination flag."""

    def __init__(self, spec: WorldSpec):
        spec.validate()
        self.spec = spec
        self.static_walls: FrozenSet[State] = frozenset(spec.walls)
        self.opened_walls: Set[State] = set()
        self.episode_done: bool = False
        known = set(spec.agent_ids())
        self.triggers: List[Trigger] = []
        for trig in spec.triggers:
            if trig.who not in known:
                logger.warning("Ignoring trigger at %s for unknown agent %r", trig.at, trig.who)
                continue
            self.triggers.append(trig)
        self.active_triggers: List[Trigger] = list(self.triggers)

    def reset_environment(self) -> None:
        self.opened_walls.clear()
        self.episode_done = False
        self.active_triggers = list(self.triggers)

    # Effect targets --------------------------------------------------------
    def open_wall(self, pos: State) -> None:
        self.opened_walls.add(pos)

    def end_episode(self) -> None:
        self.episode_done = True

    def is_episode_done(self) -> bool:
        return self.episode_done

    # World state -------------------------------------------------------------
    def effective_walls(self) -> FrozenSet[State]:
        return self.static_walls - self.opened_walls

    def current_grid(self) -> GridEnvironment:
        return GridEnvironment(
            rows=self.spec.rows,
            cols=self.spec.cols,
            walls=self.effective_walls(),
            step_penalty=self.spec.step_penalty,
        )

    def execute_actions(
        self, actions: Mapping[str, Action], positions: Mapping[str, State]
    ) -> Tuple[Dict[str, State], Dict[str, float]]:
        # Every agent moves against the same wall snapshot for this tick.
        grid = self.current_grid()
        new_positions: Dict[str, State] = dict(positions)
        rewards: Dict[str, float] = {}
        for agent_id, action in actions.items():
            result = grid.step(positions[agent_id], action)
            new_positions[agent_id] = result.state
            rewards[agent_id] = result.reward
        return new_positions, rewards

    def process_triggers(self, positions: Mapping[str, State]) -> Dict[str, float]:
        bonuses: Dict[str, float] = {}
        remaining: List[Trigger] = []
        for trig in self.active_triggers:
            if not trig.matches(positions):
                remaining.append(trig)
                continue
            bonuses[trig.who] = bonuses.get(trig.who, 0.0) + trig.fire(self)
            if self.spec.trigger_mode == "persistent":
                remaining.append(trig)
        self.active_triggers = remaining
        return bonuses
