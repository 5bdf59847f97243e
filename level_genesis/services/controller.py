"""
level_genesis/services/controller.py

Evolution controller service.

The controller owns the tick loop and drives the whole process:
1. Builds the initial population (synthetic or seeded)
2. Hands genomes to the scheduler one at a time
3. Records each verdict in the generation's fitness table
4. Ranks, logs and breeds once every slot is scored
5. Decodes the champion into the world when the run is over

Everything happens on one thread. Each tick() is short and never blocks,
so the same controller can be driven by its own run() loop or by an
outside render loop.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import yaml

from level_genesis.environments.oracle import SimulationOracle
from level_genesis.environments.scripted import ScriptedWorld
from level_genesis.evolution.algorithms import (
    ConfigurationError,
    EvolutionConfig,
    GeneticAlgorithm,
    GeneticOperators,
)
from level_genesis.evolution.fitness import FitnessTable
from level_genesis.evolution.genome import Genome, StructuralGenome
from level_genesis.evolution.operators import StructuralCodec
from level_genesis.levels.feasibility import ClassifierFeasibilityOracle, FeasibilityOracle
from level_genesis.levels.seeds import SeedSource, StaticSeedSource
from level_genesis.levels.stacks import StackBuilder

from .scheduler import FitnessScheduler

logger = logging.getLogger(__name__)

BACKENDS = ("physics", "scripted")


@dataclass
class ControllerConfig:
    """Configuration for the evolution controller."""
    # Evolution parameters
    population_size: int = 100
    generations: int = 2000
    mutation_rate: float = 0.05
    crossover_rate: float = 0.80
    elitism: bool = False
    tournament_size: int = 2
    filter_by_feasibility: bool = False
    budget_bounds: Optional[Tuple[int, int]] = None

    # Initial population
    use_seed_set: bool = False

    # Evaluation
    backend: str = "physics"  # "physics" or "scripted"
    steps_per_tick: int = 2
    max_settle_ticks: Optional[int] = None

    # Feasibility classifier (joblib file)
    classifier_path: Optional[str] = None

    # Random seed
    seed: Optional[int] = None

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown backend: {self.backend} (expected one of {', '.join(BACKENDS)})"
            )
        if self.steps_per_tick <= 0:
            raise ConfigurationError(f"steps_per_tick must be positive, got {self.steps_per_tick}")
        if self.max_settle_ticks is not None and self.max_settle_ticks <= 0:
            raise ConfigurationError(
                f"max_settle_ticks must be positive, got {self.max_settle_ticks}"
            )
        if self.budget_bounds is not None:
            self.budget_bounds = tuple(self.budget_bounds)
            if len(self.budget_bounds) != 2 or self.budget_bounds[0] > self.budget_bounds[1]:
                raise ConfigurationError(f"Invalid budget bounds {self.budget_bounds}")
        self.evolution_config()

    def evolution_config(self) -> EvolutionConfig:
        return EvolutionConfig(
            population_size=self.population_size,
            generations=self.generations,
            mutation_rate=self.mutation_rate,
            crossover_rate=self.crossover_rate,
            elitism=self.elitism,
            tournament_size=self.tournament_size,
            filter_by_feasibility=self.filter_by_feasibility,
            seed=self.seed,
        )


def load_config(path: Union[str, Path]) -> ControllerConfig:
    """Read a ControllerConfig from a YAML mapping of field names to values."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    known = {f.name for f in dataclasses.fields(ControllerConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown config keys in {path}: {', '.join(unknown)}")

    return ControllerConfig(**data)


def load_seed_file(path: Union[str, Path]) -> StaticSeedSource:
    """Read a list of serialized levels (YAML or JSON) into a seed source."""
    with open(path) as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("levels", [])
    return StaticSeedSource.from_dicts(data)


class EvolutionController:
    """
    Tick-driven controller for level evolution.

    Per tick: start the next genome if the scheduler is idle, then poll
    it. A generation ends when every slot has a recorded fitness.
    """

    def __init__(
        self,
        config: ControllerConfig,
        oracle: Optional[SimulationOracle] = None,
        stack_builder: Optional[StackBuilder] = None,
        feasibility_oracle: Optional[FeasibilityOracle] = None,
        seed_source: Optional[SeedSource] = None,
        on_complete: Optional[Callable[[StructuralGenome], None]] = None,
    ):
        self.config = config
        self.on_complete = on_complete
        self.seed_source = seed_source

        # Initialize RNG
        self.rng = np.random.default_rng(config.seed)

        self.oracle = oracle if oracle is not None else self._create_oracle()
        self.stack_builder = stack_builder or StackBuilder(rng=self.rng)

        if feasibility_oracle is None and config.classifier_path:
            feasibility_oracle = ClassifierFeasibilityOracle.load(config.classifier_path)
        self.feasibility_oracle = feasibility_oracle

        self.codec = StructuralCodec(
            self.stack_builder,
            mutation_rate=config.mutation_rate,
            rng=self.rng,
            budget_bounds=config.budget_bounds,
        )
        self.fitness_table = FitnessTable(config.population_size)
        self.algorithm: GeneticAlgorithm[StructuralGenome] = GeneticAlgorithm(
            config.evolution_config(),
            GeneticOperators(
                init_genome=self.codec.init_genome,
                crossover=self.codec.crossover,
                mutation=self.codec.mutate,
                fitness_lookup=self.fitness_table.lookup,
                init_from_seed=self.codec.init_from_seed,
            ),
            feasibility_oracle=feasibility_oracle,
            rng=self.rng,
        )
        self.scheduler = FitnessScheduler(self.oracle, max_ticks=config.max_settle_ticks)

        # State tracking
        self.genome_index = 0
        self.total_evaluations = 0
        self.ticks = 0
        self.history: List[Dict[str, Any]] = []
        self._best: Optional[Genome[StructuralGenome]] = None

        # Status
        self.running = False
        self.completed = False
        self.start_time: Optional[float] = None

        logger.info(f"Controller initialized with {type(self.oracle).__name__}")

    def _create_oracle(self) -> SimulationOracle:
        if self.config.backend == "scripted":
            return ScriptedWorld(rng=self.rng)

        from level_genesis.environments.physics_world import PhysicsWorld, WorldConfig
        return PhysicsWorld(WorldConfig(steps_per_tick=self.config.steps_per_tick))

    # ==================== Lifecycle ====================

    def start(self) -> None:
        """Build generation 0 and begin evaluating."""
        if self.config.use_seed_set:
            if self.seed_source is None:
                raise ConfigurationError("use_seed_set requires a seed source")
            self.algorithm.start_evolution_from_seeds(self.seed_source.load_all_seeds())
        else:
            self.algorithm.start_evolution()

        self.scheduler.abandon()
        self.fitness_table.clear()
        self.genome_index = 0
        self.total_evaluations = 0
        self.ticks = 0
        self.history = []
        self._best = None

        self.running = True
        self.completed = False
        self.start_time = time.time()

    def tick(self) -> bool:
        """
        One cooperative step of the controller.

        Returns whether evolution is still running.
        """
        if not self.running:
            return False

        self.ticks += 1
        if self.scheduler.is_idle:
            genome = self.algorithm.get_nth_genome(self.genome_index)
            self.scheduler.begin(genome.genes, self.genome_index)

        record = self.scheduler.poll()
        if record is not None:
            self.fitness_table.record(record.index, record.fitness)
            self.total_evaluations += 1
            self.genome_index += 1

            if self.fitness_table.is_complete:
                self._end_generation()

        return self.running

    def _end_generation(self) -> None:
        ranked = self.algorithm.rank_population()
        self._best = ranked[0].copy()

        fitnesses = np.array([g.fitness for g in ranked])
        stats = {
            "generation": self.algorithm.generation,
            "best_fitness": float(fitnesses[0]),
            "worst_fitness": float(fitnesses[-1]),
            "mean_fitness": float(fitnesses.mean()),
            "feasible": int(np.sum(fitnesses >= 0)),
            "total_evaluations": self.total_evaluations,
            "timeouts": self.scheduler.timeouts,
            "ticks": self.ticks,
        }
        self.history.append(stats)

        logger.info(
            f"Generation {stats['generation']}: "
            f"best fitness: {stats['best_fitness']:.1f}, "
            f"worst fitness: {stats['worst_fitness']:.1f}, "
            f"feasible: {stats['feasible']}/{len(ranked)}"
        )

        if self.algorithm.is_final_generation:
            self._complete()
            return

        self.algorithm.create_next_generation()
        self.fitness_table.clear()
        self.genome_index = 0

    def _complete(self) -> None:
        """Show the champion in the world and hand it to the callback."""
        best = self.algorithm.get_best()

        self.oracle.clear()
        self.oracle.place_actors(best.genes.columns, best.genes.offensive_unit_budget)

        self.running = False
        self.completed = True

        logger.info(
            f"Evolution complete: {len(self.history)} generations, "
            f"{self.total_evaluations} evaluations, best fitness: {best.fitness:.1f}"
        )

        if self.on_complete is not None:
            self.on_complete(best.genes)

    def run(self, max_ticks: Optional[int] = None) -> Dict[str, Any]:
        """
        Drive the world and the controller until evolution completes.

        Args:
            max_ticks: Stop after this many ticks (default: no limit)

        Returns:
            Final statistics
        """
        if self.start_time is None:
            self.start()
        elif not self.completed:
            self.running = True

        ticks = 0
        try:
            while self.running:
                if max_ticks is not None and ticks >= max_ticks:
                    logger.info(f"Tick limit reached after {ticks} ticks")
                    break
                self.oracle.step()
                self.tick()
                ticks += 1

        except KeyboardInterrupt:
            logger.info("Evolution interrupted by user")
            self.stop()

        best = self.best
        return {
            "completed": self.completed,
            "total_generations": len(self.history),
            "total_evaluations": self.total_evaluations,
            "total_ticks": self.ticks,
            "total_time": time.time() - self.start_time if self.start_time else 0.0,
            "best_fitness": best.fitness if best else None,
            "best_genome": best.genes.to_dict() if best else None,
        }

    def stop(self) -> None:
        """
        Stop evolution, dropping any evaluation in flight.

        A later run() resumes with the genome that was abandoned.
        """
        self.running = False
        self.scheduler.abandon()
        logger.info("Stopping evolution...")

    # ==================== Status ====================

    @property
    def best(self) -> Optional[Genome[StructuralGenome]]:
        """Champion of the most recently ranked generation."""
        return self._best

    def get_status(self) -> Dict[str, Any]:
        """Get current controller status."""
        elapsed = 0.0
        if self.start_time:
            elapsed = time.time() - self.start_time

        return {
            "running": self.running,
            "completed": self.completed,
            "generation": self.algorithm.generation,
            "genome_index": self.genome_index,
            "total_evaluations": self.total_evaluations,
            "ticks": self.ticks,
            "elapsed_time": elapsed,
            "oracle": type(self.oracle).__name__,
            "scheduler": self.scheduler.get_status(),
            "best_fitness": self._best.fitness if self._best else None,
        }


def build_parser():
    """Command-line flags of the level-genesis command."""
    import argparse

    parser = argparse.ArgumentParser(description="Evolve puzzle levels")
    parser.add_argument("--config", default=None, help="YAML file of controller settings")
    parser.add_argument("--population-size", type=int, default=None)
    parser.add_argument("--generations", type=int, default=None)
    parser.add_argument("--mutation-rate", type=float, default=None)
    parser.add_argument("--crossover-rate", type=float, default=None)
    parser.add_argument("--elitism", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--filter-feasibility", action=argparse.BooleanOptionalAction,
                        default=None, dest="filter_by_feasibility")
    parser.add_argument("--classifier-path", default=None)
    parser.add_argument("--seeds", default=None, help="YAML/JSON file of seed levels")
    parser.add_argument("--max-settle-ticks", type=int, default=None)
    parser.add_argument("--backend", choices=list(BACKENDS), default=None)
    parser.add_argument("--steps-per-tick", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output", default=None, help="Write the best level here as JSON")
    return parser


def config_from_args(args) -> ControllerConfig:
    """
    Merge parsed flags over --config (or the defaults).

    Flags left out keep the file's values; boolean flags have --no-
    forms so either value can be forced.
    """
    config = load_config(args.config) if args.config else ControllerConfig()
    overrides = {
        key: value for key, value in vars(args).items()
        if value is not None and key not in ("config", "seeds", "output")
    }
    if args.seeds:
        overrides["use_seed_set"] = True
    return dataclasses.replace(config, **overrides)


def run_controller(
    config: Optional[ControllerConfig] = None,
    argv: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Run the controller as a standalone program.

    This is the entry point for the level-genesis command. Flags override
    values from --config; flags left out keep the file's values.
    """
    import signal

    args = build_parser().parse_args(argv)

    if config is None:
        config = config_from_args(args)

    seed_source = load_seed_file(args.seeds) if args.seeds else None
    controller = EvolutionController(config, seed_source=seed_source)

    # Handle signals for graceful shutdown
    def signal_handler(sig, frame):
        logger.info("Received shutdown signal")
        controller.stop()

    signal.signal(signal.SIGTERM, signal_handler)

    result = controller.run()

    if result["best_genome"] is not None:
        output = json.dumps(
            {"fitness": result["best_fitness"], "level": result["best_genome"]},
            indent=2,
        )
        if args.output:
            Path(args.output).write_text(output)
            logger.info(f"Best level written to {args.output}")
        else:
            print(output)

    return result


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    run_controller()


if __name__ == "__main__":
    main()
