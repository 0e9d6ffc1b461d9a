from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .env import AgentSpec, WorldSpec
from .learner import LearnerConfig, QLearner
from .triggers import EndEpisode, OpenWall, Reward, Trigger
from .world import State, ascii_dimensions, parse_ascii_walls, wall_line

LABYRINTH = """
############
#..........#
#.####.###.#
#....#...#.#
####.#.#.#.#
#....#.#...#
#.####.###.#
#.#........#
#.#.######.#
#...#....#.#
#####....#.#
############
"""


@dataclass
class TaskSpec:
    name: str
    description: str
    world: WorldSpec


def _learner(optimistic: float, warm: int, eps_min: float = 0.1, gamma: float = 0.9) -> QLearner:
    return QLearner(LearnerConfig(alpha=0.15, gamma=gamma, eps0=0.8, eps_min=eps_min, warm=warm, optimistic=optimistic))


def _open_wall() -> WorldSpec:
    walls = set(wall_line("vertical", (1, 6), (6, 6)))
    walls |= {State(2, 2), State(3, 2), State(5, 9), State(6, 9)}
    return WorldSpec(
        rows=8,
        cols=12,
        step_penalty=-3.0,
        walls=walls,
        triggers=[Trigger("Opener", State(6, 2), (OpenWall(State(4, 6)),))],
        agents=[
            AgentSpec("Opener", State(1, 1), _learner(0.5, 1_500), goal=State(6, 2), goal_reward=25.0, end_on_goal=False),
            AgentSpec("Runner", State(1, 2), _learner(0.5, 1_500), goal=State(6, 10), goal_reward=55.0),
        ],
        episodes=12_000,
        step_limit=300,
        step_delay_ms=100,
        show_after=10_000,
    )


def _treasure_hunt() -> WorldSpec:
    walls = set()
    walls |= set(wall_line("horizontal", (8, 10), (8, 14)))
    walls |= set(wall_line("horizontal", (11, 10), (11, 14)))
    walls |= set(wall_line("vertical", (8, 10), (11, 10)))
    walls |= set(wall_line("vertical", (8, 14), (11, 14)))
    walls |= set(wall_line("horizontal", (4, 5), (4, 9)))
    walls |= set(wall_line("vertical", (1, 3), (3, 3)))
    walls |= set(wall_line("horizontal", (2, 1), (2, 2)))
    walls |= {State(6, 7), State(7, 7), State(5, 2), State(1, 8), State(2, 11)}
    return WorldSpec(
        rows=12,
        cols=15,
        step_penalty=-1.0,
        walls=walls,
        triggers=[
            # Keys unlock the two chamber doors.
            Trigger("KeyMaster", State(1, 12), (OpenWall(State(9, 10)), Reward(40.0))),
            Trigger("KeyMaster", State(3, 1), (OpenWall(State(10, 10)), Reward(40.0))),
            Trigger("Guardian", State(5, 7), (OpenWall(State(6, 7)), OpenWall(State(7, 7)), Reward(50.0))),
            Trigger("Guardian", State(2, 5), (OpenWall(State(4, 7)), Reward(30.0))),
            Trigger("TreasureHunter", State(9, 12), (Reward(100.0), EndEpisode())),
        ],
        agents=[
            AgentSpec("KeyMaster", State(0, 0), _learner(1.0, 3_000, 0.05, 0.95), goal=State(1, 12), goal_reward=60.0, end_on_goal=False),
            AgentSpec("Guardian", State(0, 14), _learner(0.8, 3_000, 0.05, 0.95), goal=State(5, 7), goal_reward=70.0, end_on_goal=False),
            AgentSpec("TreasureHunter", State(11, 0), _learner(0.5, 3_000, 0.05, 0.95), goal=State(9, 12), goal_reward=150.0),
        ],
        trigger_mode="once",
        episodes=20_000,
        step_limit=600,
        step_delay_ms=150,
        show_after=17_000,
    )


def _labyrinth() -> WorldSpec:
    rows, cols = ascii_dimensions(LABYRINTH)
    return WorldSpec(
        rows=rows,
        cols=cols,
        walls=parse_ascii_walls(LABYRINTH),
        agents=[
            AgentSpec(
                "Explorer",
                State(1, 1),
                QLearner(LearnerConfig(alpha=0.1, gamma=0.95, eps0=0.9, eps_min=0.1, warm=2_000, optimistic=1.0)),
                goal=State(10, 10),
                goal_reward=100.0,
            ),
        ],
        episodes=15_000,
        step_limit=500,
        step_delay_ms=80,
        show_after=12_000,
    )


def task_presets() -> Dict[str, TaskSpec]:
    """Return predefined scenarios. Each call builds fresh learners."""
    return {
        "open_wall": TaskSpec(
            name="open_wall",
            description="Opener reaches its post to open a gap in the dividing wall; Runner crosses to its goal.",
            world=_open_wall(),
        ),
        "treasure_hunt": TaskSpec(
            name="treasure_hunt",
            description="KeyMaster opens the treasure chamber doors, Guardian clears obstacles, TreasureHunter claims the treasure.",
            world=_treasure_hunt(),
        ),
        "labyrinth": TaskSpec(
            name="labyrinth",
            description="Single agent learning a path through an ASCII-defined maze.",
            world=_labyrinth(),
        ),
    }
