"""
level_genesis/environments/oracle.py

The contract between level evaluation and whatever world plays the level.

An oracle is one shared, mutable scene. It is cleared, given a level,
advanced tick by tick by its owner, and queried for counts until the
level has played out.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List

from level_genesis.evolution.genome import ColumnStack


@dataclass(frozen=True)
class LevelCounts:
    """Unit counts sampled from an oracle at one moment."""
    offensive: int
    targets: int
    structural: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "offensive": self.offensive,
            "targets": self.targets,
            "structural": self.structural,
        }


class SimulationOracle(ABC):
    """
    A tick-driven world that can decode and play a level.

    After clear() the oracle must behave identically regardless of what
    it held before.
    """

    @abstractmethod
    def clear(self) -> None:
        """Remove everything from the scene."""
        pass

    @abstractmethod
    def place_actors(self, columns: List[ColumnStack], budget: int) -> None:
        """Decode a level's columns and offensive budget into the scene."""
        pass

    @abstractmethod
    def is_settled(self) -> bool:
        """True when nothing in the scene is in motion."""
        pass

    @abstractmethod
    def offensive_units_remaining(self) -> int:
        pass

    @abstractmethod
    def target_units_remaining(self) -> int:
        pass

    @abstractmethod
    def structural_units_remaining(self) -> int:
        pass

    def step(self) -> None:
        """
        Advance the world by one tick.

        Worlds advanced by an outside loop (a render loop, an engine
        callback) leave this as a no-op.
        """
        pass


def sample_counts(oracle: SimulationOracle) -> LevelCounts:
    """Read the three unit counts from an oracle."""
    return LevelCounts(
        offensive=oracle.offensive_units_remaining(),
        targets=oracle.target_units_remaining(),
        structural=oracle.structural_units_remaining(),
    )
