import io
import pathlib
import sys

import numpy as np

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT / "src"))

from gridq_ma_env import (  # noqa: E402
    AgentSpec,
    ConsoleObserver,
    FrameRecorder,
    MultiAgentQTrainer,
    State,
    StepInfo,
    WorldSpec,
    task_presets,
)
from gridq_ma_env.renderer import render_ascii, render_image  # noqa: E402


def _spec():
    return WorldSpec(
        rows=3,
        cols=4,
        walls={State(1, 1), State(1, 2)},
        agents=[AgentSpec("runner", State(0, 0), goal=State(2, 3))],
        episodes=2,
        step_limit=5,
        step_delay_ms=0,
    )


def _info(spec, **overrides):
    fields = dict(
        episode=7,
        step=3,
        positions={"runner": State(0, 1)},
        opened_walls=frozenset({State(1, 2)}),
        any_exploring=True,
        episode_reward=-3.0,
        epsilon=0.5,
    )
    fields.update(overrides)
    return StepInfo(**fields)


def test_render_ascii_marks_walls_goals_and_agents():
    spec = _spec()
    frame = render_ascii(spec, {"runner": State(0, 1)}, {State(1, 2)})
    assert frame.splitlines() == [".R..", ".#_.", "...*"]


def test_render_image_shape():
    spec = _spec()
    img = render_image(spec, {"runner": State(0, 0)}, cell_size=8)
    assert img.shape == (24, 32, 3)
    assert img.dtype == np.uint8
    # Walls are dark.
    assert (img[8:16, 8:16] == 40).all()


def test_console_observer_writes_frame_and_status():
    spec = _spec()
    stream = io.StringIO()
    observer = ConsoleObserver(spec, stream=stream)
    assert observer.delay == 0.0
    observer(_info(spec))
    text = stream.getvalue()
    assert ".R.." in text
    assert "episode=7 step=3" in text
    assert "epsilon=0.500" in text
    assert "exploring" in text


def test_frame_recorder_caps_frames_and_saves_gif(tmp_path):
    spec = _spec()
    recorder = FrameRecorder(spec, cell_size=4, max_frames=2)
    for step in range(1, 4):
        recorder(_info(spec, step=step))
    assert len(recorder.frames) == 2
    out = tmp_path / "run.gif"
    recorder.save(out, delay=0.05)
    assert out.exists() and out.stat().st_size > 0


def test_frame_recorder_attached_to_trainer():
    spec = _spec()
    recorder = FrameRecorder(spec, cell_size=2)
    trainer = MultiAgentQTrainer(spec, observer=recorder)
    results = trainer.train()
    assert len(recorder.frames) == sum(r.steps for r in results)


def test_task_presets_build_valid_worlds():
    presets = task_presets()
    assert set(presets) == {"open_wall", "treasure_hunt", "labyrinth"}
    for task in presets.values():
        trainer = MultiAgentQTrainer(task.world)
        result = trainer.run_episode(max_steps=3)
        assert result.steps <= 3
    # Fresh learners on every call.
    assert task_presets()["labyrinth"].world.agents[0].learner is not presets["labyrinth"].world.agents[0].learner
