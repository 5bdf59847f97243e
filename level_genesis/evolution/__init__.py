"""
level_genesis/evolution/

Evolutionary machinery for level synthesis.

Key insight: evaluation is the bottleneck and cannot be parallelized.
- Generate candidates (fast, synchronous)
- Evaluate candidates (slow, sequential, inside one shared simulation)
- Rank and breed (fast, synchronous)

Components:
- Genome / StructuralGenome: genetic material plus fitness
- StructuralCodec: column crossover and whole-column mutation
- GeneticAlgorithm: population lifecycle, tournament selection, elitism
- FitnessTable / level_fitness: out-of-band fitness storage and scoring
"""

from .genome import (
    ColumnStack,
    Genome,
    ObjectKind,
    PlacedObject,
    StructuralGenome,
    copy_stack,
)
from .algorithms import (
    ConfigurationError,
    EvolutionConfig,
    GeneticAlgorithm,
    GeneticOperators,
)
from .operators import StructuralCodec
from .fitness import INFEASIBLE_FITNESS, FitnessTable, level_fitness

__all__ = [
    "ColumnStack",
    "Genome",
    "ObjectKind",
    "PlacedObject",
    "StructuralGenome",
    "copy_stack",
    "ConfigurationError",
    "EvolutionConfig",
    "GeneticAlgorithm",
    "GeneticOperators",
    "StructuralCodec",
    "INFEASIBLE_FITNESS",
    "FitnessTable",
    "level_fitness",
]
