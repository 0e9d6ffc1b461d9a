from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, Tuple

from .world import State

if TYPE_CHECKING:
    from .env import EnvironmentManager


class Effect:
    """Base class for a world or episode mutation carried by a trigger."""

    def apply(self, manager: "EnvironmentManager") -> float:
        """Apply the effect and return the bonus reward it yields."""
        raise NotImplementedError


@dataclass(frozen=True)
class OpenWall(Effect):
    pos: State

    def apply(self, manager: "EnvironmentManager") -> float:
        manager.open_wall(self.pos)
        return 0.0


@dataclass(frozen=True)
class EndEpisode(Effect):
    def apply(self, manager: "EnvironmentManager") -> float:
        manager.end_episode()
        return 0.0


@dataclass(frozen=True)
class Reward(Effect):
    delta: float

    def apply(self, manager: "EnvironmentManager") -> float:
        return self.delta


@dataclass(frozen=True)
class Trigger:
    """Apply ``effects`` whenever agent ``who`` stands exactly on ``at``."""

    who: str
    at: State
    effects: Tuple[Effect, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.effects, tuple):
            object.__setattr__(self, "effects", tuple(self.effects))

    def matches(self, positions: Mapping[str, State]) -> bool:
        return positions.get(self.who) == self.at

    def fire(self, manager: "EnvironmentManager") -> float:
        # Effects run strictly in list order.
        bonus = 0.0
        for effect in self.effects:
            bonus += effect.apply(manager)
        return bonus
