from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .env import AgentSpec, EnvironmentManager, WorldSpec
from .learner import QLearner
from .observers import StepInfo
from .world import Action, State

logger = logging.getLogger(__name__)

StepCallback = Callable[[StepInfo], None]


@dataclass
class Transition:
    agent_id: str
    state: State
    action: Action
    reward: float
    next_state: State
    exploring: bool


@dataclass
class EpisodeResult:
    episode: int
    steps: int
    done: bool
    total_reward: float
    returns: Dict[str, float]
    final_positions: Dict[str, State]
    opened_walls: FrozenSet[State]
    trajectory: Optional[List[List[Transition]]] = None

    def summary(self) -> Dict:
        """JSON-serialisable view without the trajectory."""
        return {
            "episode": self.episode,
            "steps": self.steps,
            "done": self.done,
            "total_reward": self.total_reward,
            "returns": dict(self.returns),
            "final_positions": {aid: [pos.row, pos.col] for aid, pos in self.final_positions.items()},
            "opened_walls": sorted([pos.row, pos.col] for pos in self.opened_walls),
        }


class EpisodeManager:
    """Drives one episode: joint action choice, joint stepping, rewards and updates."""

    def __init__(self, spec: WorldSpec, env_manager: Optional[EnvironmentManager] = None):
        self.spec = spec
        self.env_manager = env_manager or EnvironmentManager(spec)
        self.agents: Dict[str, AgentSpec] = {agent.agent_id: agent for agent in spec.agents}
        self.positions: Dict[str, State] = self._start_positions()
        self.episode_reward = 0.0

    def _start_positions(self) -> Dict[str, State]:
        return {aid: agent.start for aid, agent in self.agents.items()}

    def reset_episode(self) -> None:
        self.env_manager.reset_environment()
        self.positions = self._start_positions()
        self.episode_reward = 0.0

    def current_epsilon(self) -> float:
        for agent in self.agents.values():
            return agent.learner.epsilon
        return 0.0

    def goal_reached(self, positions: Mapping[str, State]) -> bool:
        return any(agent.end_on_goal and agent.at_goal(positions[aid]) for aid, agent in self.agents.items())

    def choose_joint_actions(self, greedy: bool = False) -> Tuple[Dict[str, Action], Dict[str, bool]]:
        # All choices come from the same position snapshot, before anyone moves.
        actions: Dict[str, Action] = {}
        exploring: Dict[str, bool] = {}
        for aid, agent in self.agents.items():
            actions[aid], exploring[aid] = agent.learner.choose(self.positions[aid], greedy=greedy)
        return actions, exploring

    def step(self, learn: bool = True, greedy: bool = False) -> Tuple[List[Transition], bool]:
        """Advance every agent by one tick. Returns the transitions and the done flag."""
        actions, exploring = self.choose_joint_actions(greedy=greedy)
        new_positions, step_rewards = self.env_manager.execute_actions(actions, self.positions)
        bonuses = self.env_manager.process_triggers(new_positions)

        transitions: List[Transition] = []
        for aid, agent in self.agents.items():
            reward = step_rewards[aid] + bonuses.get(aid, 0.0)
            if agent.at_goal(new_positions[aid]):
                reward += agent.goal_reward
            if learn:
                agent.learner.update(self.positions[aid], actions[aid], reward, new_positions[aid])
            transitions.append(
                Transition(
                    agent_id=aid,
                    state=self.positions[aid],
                    action=actions[aid],
                    reward=reward,
                    next_state=new_positions[aid],
                    exploring=exploring[aid],
                )
            )

        self.positions = new_positions
        done = self.env_manager.is_episode_done() or self.goal_reached(new_positions)
        return transitions, done

    def run_episode(
        self,
        episode: int = 0,
        max_steps: Optional[int] = None,
        on_step: Optional[StepCallback] = None,
        learn: bool = True,
        greedy: bool = False,
        record: bool = False,
    ) -> EpisodeResult:
        """Run a single episode from the configured starts until done or the step cap."""
        max_steps = self.spec.step_limit if max_steps is None else max_steps
        self.reset_episode()
        returns: Dict[str, float] = {aid: 0.0 for aid in self.agents}
        trajectory: Optional[List[List[Transition]]] = [] if record else None
        done = self.goal_reached(self.positions)
        steps = 0
        while not done and steps < max_steps:
            transitions, done = self.step(learn=learn, greedy=greedy)
            steps += 1
            for t in transitions:
                returns[t.agent_id] += t.reward
                self.episode_reward += t.reward
            if trajectory is not None:
                trajectory.append(transitions)
            if on_step is not None:
                on_step(
                    StepInfo(
                        episode=episode,
                        step=steps,
                        positions=dict(self.positions),
                        opened_walls=frozenset(self.env_manager.opened_walls),
                        any_exploring=any(t.exploring for t in transitions),
                        episode_reward=self.episode_reward,
                        epsilon=self.current_epsilon(),
                        done=done,
                    )
                )
        return EpisodeResult(
            episode=episode,
            steps=steps,
            done=done,
            total_reward=self.episode_reward,
            returns=returns,
            final_positions=dict(self.positions),
            opened_walls=frozenset(self.env_manager.opened_walls),
            trajectory=trajectory,
        )


class MultiAgentQTrainer:
    """Outer training loop over ``spec.episodes`` episodes.

    Observers see episodes numbered ``spec.show_after`` and later. A failing
    observer is logged and detached; it never stops training.
    """

    def __init__(
        self,
        spec: WorldSpec,
        observer: Optional[StepCallback] = None,
        log_path: Optional[str] = None,
        demo_every: int = 0,
        log_every: int = 1000,
    ) -> None:
        self.spec = spec
        self.episode_manager = EpisodeManager(spec)
        self.observer = observer
        self.log_path = log_path
        self.demo_every = demo_every
        self.log_every = log_every
        self.episodes_done = 0

    @property
    def learners(self) -> Dict[str, QLearner]:
        return {aid: agent.learner for aid, agent in self.episode_manager.agents.items()}

    def _notify(self, info: StepInfo) -> None:
        if self.observer is None:
            return
        try:
            self.observer(info)
        except Exception:
            logger.warning("Observer failed at episode %d step %d; detaching it", info.episode, info.step, exc_info=True)
            self.observer = None

    def _callback_for(self, episode: int) -> Optional[StepCallback]:
        if self.observer is None or episode < self.spec.show_after:
            return None
        return self._notify

    def run_episode(self, max_steps: Optional[int] = None, record: bool = False) -> EpisodeResult:
        """Run and learn from one episode, then advance every learner's episode counter."""
        episode = self.episodes_done + 1
        result = self.episode_manager.run_episode(
            episode=episode,
            max_steps=max_steps,
            on_step=self._callback_for(episode),
            record=record,
        )
        for learner in self.learners.values():
            learner.increment_episode()
        self.episodes_done = episode
        if self.log_path:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(result.summary()) + "\n")
        return result

    def run_greedy_episode(self, max_steps: Optional[int] = None, record: bool = False) -> EpisodeResult:
        """Demonstrate the current greedy policy without learning."""
        return self.episode_manager.run_episode(
            episode=self.episodes_done,
            max_steps=max_steps,
            on_step=self._callback_for(self.episodes_done),
            learn=False,
            greedy=True,
            record=record,
        )

    def train(self, episodes: Optional[int] = None) -> List[EpisodeResult]:
        episodes = self.spec.episodes if episodes is None else episodes
        results: List[EpisodeResult] = []
        for _ in range(episodes):
            result = self.run_episode()
            results.append(result)
            if self.log_every and result.episode % self.log_every == 0:
                logger.info(
                    "Episode %d finished in %d steps (done=%s, reward=%.2f, epsilon=%.3f)",
                    result.episode,
                    result.steps,
                    result.done,
                    result.total_reward,
                    self.episode_manager.current_epsilon(),
                )
            if self.demo_every and result.episode % self.demo_every == 0:
                demo = self.run_greedy_episode()
                logger.info("Greedy demo after episode %d: %d steps, done=%s", result.episode, demo.steps, demo.done)
        return results
