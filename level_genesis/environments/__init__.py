"""
Simulation environments that play levels.

- oracle: the contract every environment fulfils
- physics_world: Pymunk rigid-body world with a scripted launcher
- scripted: physics-free, rule-driven world for dry runs
"""

from .oracle import LevelCounts, SimulationOracle, sample_counts
from .scripted import ScriptedWorld, ScriptedWorldConfig

__all__ = [
    "LevelCounts",
    "SimulationOracle",
    "sample_counts",
    "ScriptedWorld",
    "ScriptedWorldConfig",
]
