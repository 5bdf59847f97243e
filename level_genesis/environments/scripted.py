"""
level_genesis/environments/scripted.py

A physics-free world that plays levels by rule.

Nothing moves here; the world only keeps counts. After placement and
after every shot it spends a fixed number of ticks "in motion", then, if
it still has offensive units and targets, fires again. Each shot removes
a fixed number of targets (and optionally structural units).

Useful for dry runs of the evolutionary loop and for tests, where the
outcome of a level must be known in advance.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from level_genesis.evolution.genome import ColumnStack, ObjectKind
from .oracle import SimulationOracle


@dataclass
class ScriptedWorldConfig:
    """Configuration for the scripted world."""
    settle_ticks: int = 3                  # Ticks of motion after each event
    kills_per_shot: int = 1                # Targets removed by a hit
    structural_losses_per_shot: int = 0    # Blocks removed by a hit
    hit_probability: float = 1.0


class ScriptedWorld(SimulationOracle):
    """
    Counts-only simulation oracle.

    Negative offensive budgets are decoded as zero units.
    """

    def __init__(
        self,
        config: Optional[ScriptedWorldConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config or ScriptedWorldConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.time = 0
        self.shots_fired = 0
        self.clear()

    def clear(self) -> None:
        self._offensive = 0
        self._targets = 0
        self._structural = 0
        self._motion = 0

    def place_actors(self, columns: List[ColumnStack], budget: int) -> None:
        objects = [obj for stack in columns for obj in stack]
        self._offensive = max(0, int(budget))
        self._targets = sum(1 for obj in objects if obj.kind == ObjectKind.TARGET)
        self._structural = sum(1 for obj in objects if obj.kind == ObjectKind.BLOCK)
        self._motion = self.config.settle_ticks if objects else 0

    def step(self) -> None:
        """One tick: let motion die down, or fire when the scene is at rest."""
        self.time += 1

        if self._motion > 0:
            self._motion -= 1
            return

        if self._offensive > 0 and self._targets > 0:
            self._fire()

    def _fire(self) -> None:
        self._offensive -= 1
        self.shots_fired += 1
        if self.rng.random() < self.config.hit_probability:
            self._targets -= min(self.config.kills_per_shot, self._targets)
            self._structural -= min(self.config.structural_losses_per_shot, self._structural)
        self._motion = self.config.settle_ticks

    def is_settled(self) -> bool:
        return self._motion == 0

    def offensive_units_remaining(self) -> int:
        return self._offensive

    def target_units_remaining(self) -> int:
        return self._targets

    def structural_units_remaining(self) -> int:
        return self._structural

    def __repr__(self) -> str:
        return (
            f"ScriptedWorld(offensive={self._offensive}, "
            f"targets={self._targets}, "
            f"structural={self._structural}, "
            f"settled={self.is_settled()})"
        )
