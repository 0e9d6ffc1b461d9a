"""Multi-agent tabular Q-learning in a shared grid world with trigger-driven cooperation."""

from .env import AgentSpec, EnvironmentManager, WorldSpec  # noqa: F401
from .learner import EpisodeOutcome, LearnerConfig, LoadResult, QLearner  # noqa: F401
from .loaders import load_value_table, load_value_tables, load_walls_from_response  # noqa: F401
from .observers import ConsoleObserver, FrameRecorder, StepInfo, StepObserver  # noqa: F401
from .rl import EpisodeManager, EpisodeResult, MultiAgentQTrainer, Transition  # noqa: F401
from .tasks import TaskSpec, task_presets  # noqa: F401
from .triggers import EndEpisode, Effect, OpenWall, Reward, Trigger  # noqa: F401
from .world import Action, GridEnvironment, State, StepResult, parse_ascii_walls, wall_line  # noqa: F401
