import pathlib
import sys

import numpy as np
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT / "src"))

from gridq_ma_env import Action, GridEnvironment, LearnerConfig, QLearner, State  # noqa: E402


@pytest.mark.parametrize(
    "eps0, eps_min, warm",
    [(0.9, 0.15, 10), (1.0, 0.0, 3), (0.5, 0.5, 7), (0.3, 0.05, 1), (0.8, 0.1, 0)],
)
def test_epsilon_non_increasing_and_bounded(eps0, eps_min, warm):
    cfg = LearnerConfig(eps0=eps0, eps_min=eps_min, warm=warm)
    values = [cfg.epsilon(ep) for ep in range(5 * max(warm, 1) + 5)]
    assert all(b <= a for a, b in zip(values, values[1:]))
    assert all(eps_min <= v <= eps0 for v in values)
    assert values[-1] == eps_min


def test_epsilon_flat_during_warmup():
    cfg = LearnerConfig(eps0=0.9, eps_min=0.15, warm=100)
    assert all(cfg.epsilon(ep) == 0.9 for ep in range(100))
    assert cfg.epsilon(150) == pytest.approx(0.9 - 0.75 * 0.5)
    assert cfg.epsilon(200) == pytest.approx(0.15)
    assert cfg.epsilon(10_000) == 0.15


def test_epsilon_without_warmup_is_minimum():
    assert LearnerConfig(eps0=0.9, eps_min=0.2, warm=0).epsilon(0) == 0.2


def test_learner_epsilon_follows_episode_counter():
    learner = QLearner(LearnerConfig(eps0=0.8, eps_min=0.0, warm=2))
    assert learner.epsilon == 0.8
    for _ in range(3):
        learner.increment_episode()
    assert learner.episode_count == 3
    assert learner.epsilon == pytest.approx(0.4)


def test_invalid_config_rejected():
    with pytest.raises(ValueError):
        QLearner(LearnerConfig(alpha=1.5))
    with pytest.raises(ValueError):
        QLearner(LearnerConfig(eps0=0.1, eps_min=0.5))
    with pytest.raises(ValueError):
        QLearner(LearnerConfig(warm=-1))


def test_update_from_optimistic_zero():
    learner = QLearner(LearnerConfig(alpha=0.5, gamma=0.9, optimistic=0.0))
    assert learner.q_value(State(2, 1), Action.RIGHT) == 0.0
    learner.update(State(2, 1), Action.RIGHT, 100.0, State(2, 2))
    assert learner.q_value(State(2, 1), Action.RIGHT) == 50.0


def test_update_matches_rule_from_snapshot():
    cfg = LearnerConfig(alpha=0.3, gamma=0.95, optimistic=0.5)
    learner = QLearner(cfg)
    result = learner.load_initial_values(
        {
            "(1, 1)": {"Up": 2.0, "Left": -3.0},
            "(1, 2)": {"Up": 1.25, "Down": 4.5, "Stay": -1.0},
        }
    )
    assert result.ok and result.loaded == 5

    s, a, s2, r = State(1, 1), Action.UP, State(1, 2), -1.0
    before = learner.snapshot()
    expected = (1 - cfg.alpha) * before[(s, a)] + cfg.alpha * (
        r + cfg.gamma * max(before.get((s2, b), cfg.optimistic) for b in Action)
    )
    learner.update(s, a, r, s2)
    assert abs(learner.q_value(s, a) - expected) < 1e-10


def test_unvisited_pairs_read_optimistic():
    learner = QLearner(LearnerConfig(optimistic=1.5))
    assert learner.q_value(State(4, 4), Action.STAY) == 1.5
    assert not learner.visited(State(4, 4), Action.STAY)
    np.testing.assert_array_equal(learner.q_values(State(4, 4)), np.full(5, 1.5))
    assert len(learner) == 0


def test_full_exploration_always_reports_exploring():
    learner = QLearner(LearnerConfig(eps0=1.0, eps_min=0.0, warm=10, seed=3))
    assert all(learner.choose(State(0, 0))[1] for _ in range(500))


def test_zero_exploration_picks_dominant_action():
    learner = QLearner(LearnerConfig(eps0=0.0, eps_min=0.0, seed=3))
    learner.load_initial_values({"(0, 0)": {"Right": 5.0}})
    for _ in range(200):
        action, exploring = learner.choose(State(0, 0))
        assert action is Action.RIGHT
        assert not exploring


def test_greedy_choice_ignores_schedule():
    learner = QLearner(LearnerConfig(eps0=1.0, eps_min=1.0, seed=0))
    learner.load_initial_values({"(0, 0)": {"Down": 1.0}})
    assert learner.choose(State(0, 0), greedy=True) == (Action.DOWN, False)


def test_tie_break_spreads_over_all_maximisers():
    learner = QLearner(LearnerConfig(eps0=0.0, eps_min=0.0, seed=11))
    counts = {a: 0 for a in Action}
    for _ in range(1000):
        counts[learner.choose(State(0, 0))[0]] += 1
    assert all(c > 0 for c in counts.values())

    learner.load_initial_values({"(1, 1)": {"Up": 2.0, "Left": 2.0}})
    picked = {learner.choose(State(1, 1))[0] for _ in range(1000)}
    assert picked == {Action.UP, Action.LEFT}


@pytest.mark.parametrize(
    "table",
    [
        {"(0, 0)": {"Jump": 1.0}},
        {"(0, 0)": {"Up": "high"}},
        {"(0, 0)": {"Up": True}},
        {"0,0": {"Up": 1.0}},
        {"(0, 0)": [1.0, 2.0]},
        ["(0, 0)"],
    ],
)
def test_malformed_table_leaves_learner_untouched(table):
    learner = QLearner(LearnerConfig(optimistic=0.25))
    learner.load_initial_values({"(3, 3)": {"Up": 9.0}})
    result = learner.load_initial_values({"(1, 1)": {"Down": 7.0}, **table} if isinstance(table, dict) else table)
    assert not result.ok
    assert result.error
    assert learner.snapshot() == {(State(3, 3), Action.UP): 9.0}


def test_single_agent_episode_start_on_goal():
    env = GridEnvironment(rows=3, cols=3, goal=State(1, 1), goal_reward=10.0)
    learner = QLearner()
    outcome = learner.episode(env, State(1, 1))
    assert outcome == (True, 0, [])
    assert learner.episode_count == 1


def test_single_agent_episode_reaches_adjacent_goal():
    env = GridEnvironment(rows=1, cols=2, step_penalty=-1.0, goal=State(0, 1), goal_reward=10.0)
    learner = QLearner(LearnerConfig(alpha=0.5, eps0=0.0, eps_min=0.0, seed=5))
    reached, steps, trajectory = learner.episode(env, State(0, 0), max_steps=50)
    assert reached
    assert 1 <= steps <= 5
    assert trajectory[-1].action is Action.RIGHT
    assert len(trajectory[-1].q_values) == 5
    assert learner.q_value(State(0, 0), Action.RIGHT) == 5.0


def test_single_agent_episode_respects_step_cap():
    env = GridEnvironment(rows=3, cols=3, walls={State(1, 2), State(2, 1)}, goal=State(2, 2), goal_reward=10.0)
    learner = QLearner(LearnerConfig(seed=1))
    reached, steps, trajectory = learner.episode(env, State(0, 0), max_steps=7)
    assert not reached
    assert steps == 7
    assert len(trajectory) == 7
