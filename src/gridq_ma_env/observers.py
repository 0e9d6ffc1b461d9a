from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, TextIO, Union

import imageio.v3 as iio
import numpy as np

from .env import WorldSpec
from .renderer import render_ascii, render_image
from .world import State


@dataclass(frozen=True)
class StepInfo:
    """Snapshot handed to observers after every step. Display only."""

    episode: int
    step: int
    positions: Dict[str, State]
    opened_walls: FrozenSet[State]
    any_exploring: bool
    episode_reward: float
    epsilon: float
    done: bool = False


class StepObserver:
    """Base class for per-step observers.

    Rendering and pacing happen here; the training loop only calls the
    observer and never waits on it otherwise.
    """

    def __call__(self, info: StepInfo) -> None:
        raise NotImplementedError


class ConsoleObserver(StepObserver):
    def __init__(self, spec: WorldSpec, delay: Optional[float] = None, stream: Optional[TextIO] = None):
        self.spec = spec
        self.delay = spec.step_delay_ms / 1000.0 if delay is None else delay
        self.stream = stream or sys.stdout

    def __call__(self, info: StepInfo) -> None:
        mode = "exploring" if info.any_exploring else "exploiting"
        status = (
            f"episode={info.episode} step={info.step} reward={info.episode_reward:.2f} "
            f"epsilon={info.epsilon:.3f} {mode}"
        )
        frame = render_ascii(self.spec, info.positions, info.opened_walls)
        self.stream.write(f"{frame}\n{status}\n\n")
        self.stream.flush()
        if self.delay > 0:
            time.sleep(self.delay)


class FrameRecorder(StepObserver):
    """Collect RGB frames of observed steps, optionally capped to the first ``max_frames``."""

    def __init__(self, spec: WorldSpec, cell_size: int = 16, max_frames: Optional[int] = None):
        self.spec = spec
        self.cell_size = cell_size
        self.max_frames = max_frames
        self.frames: List[np.ndarray] = []

    def __call__(self, info: StepInfo) -> None:
        if self.max_frames is not None and len(self.frames) >= self.max_frames:
            return
        self.frames.append(render_image(self.spec, info.positions, info.opened_walls, cell_size=self.cell_size))

    def save(self, path: Union[str, Path], delay: float = 0.2) -> None:
        """Persist frames to disk as a GIF (or other imageio-supported format)."""
        if not self.frames:
            return
        iio.imwrite(path, np.stack(self.frames, axis=0), duration=int(delay * 1000), loop=0)
