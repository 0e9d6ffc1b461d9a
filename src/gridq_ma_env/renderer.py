from __future__ import annotations

from typing import AbstractSet, Mapping, Tuple

import numpy as np

from .env import WorldSpec
from .world import State


def _agent_char(agent_id: str) -> str:
    return agent_id[0].upper() if agent_id else "A"


def render_ascii(
    spec: WorldSpec,
    positions: Mapping[str, State],
    opened_walls: AbstractSet[State] = frozenset(),
) -> str:
    """Return an ASCII rendering of the world.

    ``#`` wall, ``_`` opened wall, ``*`` goal, ``.`` floor and the upper-cased
    first letter of an agent id for each agent.
    """
    display = [["." for _ in range(spec.cols)] for _ in range(spec.rows)]
    for wall in spec.walls:
        display[wall.row][wall.col] = "_" if wall in opened_walls else "#"
    for agent in spec.agents:
        if agent.goal is not None:
            display[agent.goal.row][agent.goal.col] = "*"
    for aid, pos in positions.items():
        display[pos.row][pos.col] = _agent_char(aid)
    return "\n".join("".join(row) for row in display)


def _hash_color(name: str) -> Tuple[int, int, int]:
    """Deterministic pseudo-random color from a string."""
    h = sum(ord(c) for c in name) % 256
    return ((h * 37) % 256, (h * 67) % 256, (h * 97) % 256)


def render_image(
    spec: WorldSpec,
    positions: Mapping[str, State],
    opened_walls: AbstractSet[State] = frozenset(),
    cell_size: int = 16,
) -> np.ndarray:
    """Render the world to an RGB image array of shape (rows*cell, cols*cell, 3)."""
    h, w = spec.rows, spec.cols
    img = np.full((h * cell_size, w * cell_size, 3), 230, dtype=np.uint8)

    def fill_cell(r: int, c: int, color: Tuple[int, int, int]):
        img[r * cell_size : (r + 1) * cell_size, c * cell_size : (c + 1) * cell_size, :] = color

    for wall in spec.walls:
        fill_cell(wall.row, wall.col, (180, 200, 180) if wall in opened_walls else (40, 40, 40))

    for trig in spec.triggers:
        fill_cell(trig.at.row, trig.at.col, (255, 215, 0))

    # Goals drawn as a frame in the owning agent's color.
    span = max(1, cell_size // 5)
    for agent in spec.agents:
        if agent.goal is None:
            continue
        r0, c0 = agent.goal.row * cell_size, agent.goal.col * cell_size
        color = _hash_color(agent.agent_id)
        img[r0 : r0 + cell_size, c0 : c0 + span, :] = color
        img[r0 : r0 + cell_size, c0 + cell_size - span : c0 + cell_size, :] = color
        img[r0 : r0 + span, c0 : c0 + cell_size, :] = color
        img[r0 + cell_size - span : r0 + cell_size, c0 : c0 + cell_size, :] = color

    # Agents on top
    for aid, pos in positions.items():
        fill_cell(pos.row, pos.col, _hash_color(aid))

    return img
