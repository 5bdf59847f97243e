"""
level_genesis/evolution/algorithms.py

Generational genetic algorithm with out-of-band fitness evaluation.

Key insight: evaluation is slow and happens elsewhere.
- Generate candidates (fast, synchronous)
- Evaluate candidates (slow, one at a time in a shared simulation)
- Rank, select and breed (fast, synchronous)

The engine never evaluates anything itself. Its fitness operator is a
lookup into a table that the scheduler filled while the generation played.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING, Any, Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar,
)
import logging

import numpy as np

from .genome import Genome

if TYPE_CHECKING:
    from level_genesis.levels.feasibility import FeasibilityOracle

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConfigurationError(ValueError):
    """The engine (or something built on it) was configured incorrectly."""


@dataclass
class EvolutionConfig:
    """Configuration for the generational engine."""
    population_size: int = 100
    generations: int = 2000
    mutation_rate: float = 0.05
    crossover_rate: float = 0.80       # Advisory: crossover is always applied
    elitism: bool = False
    tournament_size: int = 2
    filter_by_feasibility: bool = False
    seed: Optional[int] = None

    def __post_init__(self):
        if self.population_size <= 0:
            raise ConfigurationError(f"population_size must be positive, got {self.population_size}")
        if self.generations <= 0:
            raise ConfigurationError(f"generations must be positive, got {self.generations}")
        if not 0.0 <= self.mutation_rate <= 1.0:
            raise ConfigurationError(f"mutation_rate must be in [0, 1], got {self.mutation_rate}")
        if not 0.0 <= self.crossover_rate <= 1.0:
            raise ConfigurationError(f"crossover_rate must be in [0, 1], got {self.crossover_rate}")
        if self.tournament_size <= 0:
            raise ConfigurationError(f"tournament_size must be positive, got {self.tournament_size}")


@dataclass
class GeneticOperators(Generic[T]):
    """
    Strategy functions owned by one engine instance.

    init_genome() -> T
    crossover(parent_a, parent_b) -> (child_a, child_b)
    mutation(genome) -> None, mutates in place
    fitness_lookup(genes, index) -> float
    init_from_seed(seed) -> T, only needed for seeded starts
    """
    init_genome: Optional[Callable[[], T]] = None
    crossover: Optional[Callable[[Genome[T], Genome[T]], Tuple[Genome[T], Genome[T]]]] = None
    mutation: Optional[Callable[[Genome[T]], None]] = None
    fitness_lookup: Optional[Callable[[T, int], float]] = None
    init_from_seed: Optional[Callable[[Any], T]] = None

    def missing(self) -> List[str]:
        """Names of required operators that were not supplied."""
        required = ("init_genome", "crossover", "mutation", "fitness_lookup")
        return [name for name in required if getattr(self, name) is None]


class GeneticAlgorithm(Generic[T]):
    """
    Generational GA: tournament selection, pairwise crossover,
    per-child mutation and optional single-slot elitism.

    Lifecycle per generation:
        start_evolution()            (once)
        ... fitness recorded out-of-band for every slot ...
        rank_population()
        create_next_generation()     (unless is_final_generation)
    """

    def __init__(
        self,
        config: EvolutionConfig,
        operators: GeneticOperators[T],
        feasibility_oracle: Optional[FeasibilityOracle] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config
        self.operators = operators
        self.feasibility_oracle = feasibility_oracle
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)

        self.generation = 0
        self.total_fitness = 0.0
        self.history: List[Dict[str, Any]] = []

        self._population: List[Genome[T]] = []
        self._started = False
        self._ranked = False

    # ==================== Properties ====================

    @property
    def population_size(self) -> int:
        return self.config.population_size

    @property
    def generations(self) -> int:
        return self.config.generations

    @property
    def mutation_rate(self) -> float:
        return self.config.mutation_rate

    @property
    def population(self) -> List[Genome[T]]:
        """Current population, in rank order once ranked."""
        return list(self._population)

    @property
    def is_final_generation(self) -> bool:
        return self.generation >= self.config.generations - 1

    # ==================== Initialization ====================

    def _check_operators(self) -> None:
        missing = self.operators.missing()
        if missing:
            raise ConfigurationError(f"Need to supply operators: {', '.join(missing)}")
        if self.config.filter_by_feasibility and self.feasibility_oracle is None:
            raise ConfigurationError("filter_by_feasibility requires a feasibility oracle")

    def _sample_feasible(self) -> T:
        """
        Rejection-sample init_genome() until the oracle accepts.

        Unbounded: if the oracle never accepts, this never returns.
        Callers enabling the filter must supply an oracle that accepts
        a non-negligible share of synthesized levels.
        """
        rejected = 0
        while True:
            genes = self.operators.init_genome()
            if self.feasibility_oracle.classify(genes):
                if rejected:
                    logger.debug(f"Accepted feasible genome after {rejected} rejections")
                return genes
            rejected += 1

    def _reset(self) -> None:
        self._population = []
        self.generation = 0
        self.total_fitness = 0.0
        self.history = []
        self._ranked = False

    def start_evolution(self) -> None:
        """Create the initial population from init_genome()."""
        self._check_operators()
        self._reset()

        for _ in range(self.config.population_size):
            if self.config.filter_by_feasibility:
                genes = self._sample_feasible()
            else:
                genes = self.operators.init_genome()
            self._population.append(Genome(genes=genes))

        self._started = True
        logger.info(
            f"Evolution started: {self.config.population_size} genomes, "
            f"{self.config.generations} generations"
        )

    def start_evolution_from_seeds(self, seeds: Sequence[Any]) -> None:
        """
        Create the initial population from preset levels.

        Slot i is built from seeds[i]. With the feasibility filter on,
        a seed the oracle rejects is replaced by a rejection-sampled
        synthetic genome.
        """
        self._check_operators()
        if self.operators.init_from_seed is None:
            raise ConfigurationError("Need to supply operators: init_from_seed")
        if len(seeds) < self.config.population_size:
            raise ConfigurationError(
                f"Seed set has {len(seeds)} levels, "
                f"population needs {self.config.population_size}"
            )
        self._reset()

        for i in range(self.config.population_size):
            genes = self.operators.init_from_seed(seeds[i])
            if self.config.filter_by_feasibility and not self.feasibility_oracle.classify(genes):
                logger.debug(f"Seed {i} rejected by feasibility oracle, synthesizing replacement")
                genes = self._sample_feasible()
            self._population.append(Genome(genes=genes))

        self._started = True
        logger.info(
            f"Evolution started from {len(seeds)} seeds: "
            f"{self.config.population_size} genomes, {self.config.generations} generations"
        )

    def _require_started(self) -> None:
        if not self._started:
            raise RuntimeError("Evolution has not been started")

    # ==================== Ranking ====================

    def rank_population(self) -> List[Genome[T]]:
        """
        Read each genome's fitness and sort the population, best first.

        Must run exactly once per generation, after every slot has a
        recorded fitness: fitness_lookup is keyed by pre-sort index.
        """
        self._require_started()
        if self._ranked:
            raise RuntimeError(f"Generation {self.generation} has already been ranked")

        self.total_fitness = 0.0
        for i, genome in enumerate(self._population):
            genome.fitness = float(self.operators.fitness_lookup(genome.genes, i))
            self.total_fitness += genome.fitness

        self._population.sort()
        self._ranked = True

        fitnesses = np.array([g.fitness for g in self._population])
        self.history.append({
            "generation": self.generation,
            "best_fitness": float(fitnesses[0]),
            "worst_fitness": float(fitnesses[-1]),
            "mean_fitness": float(fitnesses.mean()),
            "total_fitness": self.total_fitness,
        })
        return self.population

    # ==================== Selection & Breeding ====================

    def tournament_selection(self, size: Optional[int] = None) -> Genome[T]:
        """
        Best of `size` uniform draws, with replacement.

        Ties go to the earliest draw.
        """
        self._require_started()
        if size is None:
            size = self.config.tournament_size
        if size <= 0:
            raise ValueError(f"Tournament size must be positive, got {size}")
        indices = self.rng.integers(0, len(self._population), size=size)
        contestants = [self._population[i] for i in indices]
        return sorted(contestants)[0]

    def create_next_generation(self) -> None:
        """
        Replace the population with offspring of the ranked one.

        Children are produced two at a time; with an odd population size
        the surplus child of the last pair is dropped. With elitism, one
        uniformly random slot is overwritten by a copy of the champion.
        """
        self._require_started()
        if not self._ranked:
            raise RuntimeError("Population must be ranked before breeding")

        next_generation: List[Genome[T]] = []
        while len(next_generation) < self.config.population_size:
            parent_a = self.tournament_selection()
            parent_b = self.tournament_selection()

            child_a, child_b = self.operators.crossover(parent_a, parent_b)

            self.operators.mutation(child_a)
            self.operators.mutation(child_b)

            next_generation.append(child_a)
            next_generation.append(child_b)

        del next_generation[self.config.population_size:]

        if self.config.elitism:
            slot = int(self.rng.integers(0, len(next_generation)))
            next_generation[slot] = self._population[0].copy()

        self._population = next_generation
        self.generation += 1
        self._ranked = False

    # ==================== Accessors ====================

    def get_nth_genome(self, n: int) -> Genome[T]:
        self._require_started()
        if n < 0 or n > self.config.population_size - 1:
            raise IndexError(f"Genome index {n} out of range [0, {self.config.population_size - 1}]")
        return self._population[n]

    def get_best(self) -> Genome[T]:
        return self.get_nth_genome(0)

    def get_worst(self) -> Genome[T]:
        return self.get_nth_genome(self.config.population_size - 1)

    def get_statistics(self) -> Dict[str, Any]:
        """Get current algorithm statistics."""
        stats: Dict[str, Any] = {}
        if self.history:
            last = self.history[-1]
            stats.update({k: v for k, v in last.items() if k != "generation"})
            stats["last_ranked_generation"] = last["generation"]
        stats.update({
            "generation": self.generation,
            "population_size": self.config.population_size,
            "algorithm": self.__class__.__name__,
            "ranked": self._ranked,
        })
        return stats
