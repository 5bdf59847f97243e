"""
level_genesis/levels/seeds.py

Seed sources: curated levels used to warm-start evolution.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from level_genesis.evolution.genome import StructuralGenome


class SeedSource(ABC):
    """Provides an ordered set of preset levels."""

    @abstractmethod
    def load_all_seeds(self) -> List[StructuralGenome]:
        pass


class StaticSeedSource(SeedSource):
    """
    Seed source over levels already held in memory.

    Every call hands out fresh copies, so evolution can never reach back
    into the curated set.
    """

    def __init__(self, levels: Iterable[StructuralGenome]):
        self._levels = [level.copy() for level in levels]

    @classmethod
    def from_dicts(cls, data: Iterable[Dict[str, Any]]) -> "StaticSeedSource":
        return cls(StructuralGenome.from_dict(d) for d in data)

    def load_all_seeds(self) -> List[StructuralGenome]:
        return [level.copy() for level in self._levels]

    def __len__(self) -> int:
        return len(self._levels)
