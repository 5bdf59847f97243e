"""
level_genesis/evolution/fitness.py

Fitness rules for level evaluation.

Fitness is computed out-of-band: the scheduler lets a level play out in
the simulation, scores it, and writes the score into the generation's
fitness table. Ranking later reads the table back by population index.
"""

from __future__ import annotations
from typing import Any, List, Optional

# A rejected candidate. A normal outcome, not an error.
INFEASIBLE_FITNESS = -1.0


def level_fitness(pk: int, pi: int, li: int, bi: int = 0, bk: int = 0) -> float:
    """
    Score a level from its baseline and final unit counts.

    Args:
        pk: Target units remaining after settlement
        pi: Target units present at start
        li: Structural units present at start
        bi: Offensive units present at start (unused by the rule)
        bk: Offensive units remaining (unused by the rule)

    Returns:
        -1 if any target survived or the level had no targets,
        otherwise li + pi.
    """
    if pk != 0 or pi == 0:
        return INFEASIBLE_FITNESS
    return float(li + pi)


class FitnessTable:
    """
    Per-generation fitness storage indexed by population slot.

    lookup() has the signature the engine expects from a fitness
    function, so a bound method can be passed straight in.
    """

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError(f"Fitness table size must be positive, got {size}")
        self.size = size
        self._values: List[Optional[float]] = [None] * size

    def record(self, index: int, fitness: float) -> None:
        if not 0 <= index < self.size:
            raise IndexError(f"Fitness index {index} out of range [0, {self.size - 1}]")
        self._values[index] = float(fitness)

    def lookup(self, genes: Any, index: int) -> float:
        """Return the recorded fitness for a population slot."""
        value = self._values[index]
        if value is None:
            raise KeyError(f"No fitness recorded for genome {index}")
        return value

    @property
    def recorded(self) -> int:
        return sum(1 for v in self._values if v is not None)

    @property
    def is_complete(self) -> bool:
        return self.recorded == self.size

    def values(self) -> List[Optional[float]]:
        return list(self._values)

    def clear(self) -> None:
        self._values = [None] * self.size

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return f"FitnessTable(recorded={self.recorded}/{self.size})"
