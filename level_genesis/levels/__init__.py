"""
level_genesis/levels/

Level content: what levels are made of and where they come from.

- objects: block and target templates
- stacks: random column construction and target insertion
- feasibility: completability oracles
- seeds: curated starting levels
"""

from .objects import BLOCK_SHAPES, TARGET_SHAPES, BlockShape
from .stacks import StackBuilder, StackBuilderConfig
from .feasibility import ClassifierFeasibilityOracle, FeasibilityOracle, level_features
from .seeds import SeedSource, StaticSeedSource

__all__ = [
    "BLOCK_SHAPES",
    "TARGET_SHAPES",
    "BlockShape",
    "StackBuilder",
    "StackBuilderConfig",
    "ClassifierFeasibilityOracle",
    "FeasibilityOracle",
    "level_features",
    "SeedSource",
    "StaticSeedSource",
]
