"""
Tests for level_genesis/evolution/algorithms.py

Tests the generational engine with plain integer and list genomes, so
every outcome depends only on the engine and the recorded fitness.
"""

import itertools

import pytest
import numpy as np

from level_genesis.evolution.algorithms import (
    ConfigurationError,
    EvolutionConfig,
    GeneticAlgorithm,
    GeneticOperators,
)
from level_genesis.evolution.fitness import FitnessTable
from level_genesis.evolution.genome import Genome
from level_genesis.levels.feasibility import FeasibilityOracle


class EvenOracle(FeasibilityOracle):
    """Accepts even integers only."""

    def __init__(self):
        self.queries = 0

    def classify(self, level):
        self.queries += 1
        return level % 2 == 0


class FixedDraws:
    """Stands in for a Generator, returning preset tournament draws."""

    def __init__(self, draws):
        self.draws = list(draws)

    def integers(self, low, high=None, size=None):
        return np.array(self.draws[:size])


def make_engine(population_size=4, generations=10, table=None, elitism=False,
                filter_by_feasibility=False, feasibility_oracle=None, seed=42, rng=None,
                **overrides):
    counter = itertools.count()
    table = table or FitnessTable(population_size)
    operators = GeneticOperators(
        init_genome=lambda: next(counter),
        crossover=lambda a, b: (Genome(genes=-100), Genome(genes=-200)),
        mutation=lambda g: None,
        fitness_lookup=table.lookup,
        init_from_seed=lambda s: s,
    )
    for name, value in overrides.items():
        setattr(operators, name, value)
    config = EvolutionConfig(
        population_size=population_size,
        generations=generations,
        elitism=elitism,
        filter_by_feasibility=filter_by_feasibility,
        seed=seed,
    )
    return GeneticAlgorithm(config, operators, feasibility_oracle=feasibility_oracle, rng=rng), table


def score(engine, table, fitnesses):
    for i, f in enumerate(fitnesses):
        table.record(i, f)
    return engine.rank_population()


# ==================== Configuration Tests ====================

class TestEvolutionConfig:
    """Tests for EvolutionConfig validation."""

    def test_defaults(self):
        """Defaults match the documented engine settings."""
        config = EvolutionConfig()
        assert config.population_size == 100
        assert config.generations == 2000
        assert config.mutation_rate == 0.05
        assert config.crossover_rate == 0.80
        assert config.elitism is False

    @pytest.mark.parametrize("field,value", [
        ("population_size", 0),
        ("generations", 0),
        ("mutation_rate", 1.5),
        ("crossover_rate", -0.1),
        ("tournament_size", 0),
    ])
    def test_invalid_values_raise(self, field, value):
        """Invalid settings raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            EvolutionConfig(**{field: value})

    def test_configuration_error_is_value_error(self):
        """ConfigurationError can be caught as ValueError."""
        assert issubclass(ConfigurationError, ValueError)


# ==================== Initialization Tests ====================

class TestStartEvolution:
    """Tests for population initialization."""

    def test_population_from_init_genome(self):
        """start_evolution fills every slot from init_genome."""
        engine, _ = make_engine(population_size=5)
        engine.start_evolution()

        assert [g.genes for g in engine.population] == [0, 1, 2, 3, 4]
        assert all(g.fitness == 0.0 for g in engine.population)
        assert engine.generation == 0

    @pytest.mark.parametrize("missing", ["init_genome", "crossover", "mutation", "fitness_lookup"])
    def test_missing_operator_raises(self, missing):
        """Starting without a required operator raises ConfigurationError."""
        engine, _ = make_engine(**{missing: None})
        with pytest.raises(ConfigurationError, match=missing):
            engine.start_evolution()

    def test_filter_requires_oracle(self):
        """Feasibility filtering without an oracle raises ConfigurationError."""
        engine, _ = make_engine(filter_by_feasibility=True)
        with pytest.raises(ConfigurationError):
            engine.start_evolution()

    def test_feasibility_rejection_sampling(self):
        """With the filter on, only accepted genomes enter the population."""
        oracle = EvenOracle()
        engine, _ = make_engine(filter_by_feasibility=True, feasibility_oracle=oracle)
        engine.start_evolution()

        assert [g.genes for g in engine.population] == [0, 2, 4, 6]
        assert oracle.queries == 7

    def test_oracle_ignored_without_filter(self):
        """The oracle is not consulted when filtering is off."""
        oracle = EvenOracle()
        engine, _ = make_engine(feasibility_oracle=oracle)
        engine.start_evolution()

        assert oracle.queries == 0

    def test_operators_are_per_instance(self):
        """Two engines never see each other's operators."""
        first, _ = make_engine(init_genome=lambda: "a")
        second, _ = make_engine(init_genome=lambda: "b")
        first.start_evolution()
        second.start_evolution()

        assert {g.genes for g in first.population} == {"a"}
        assert {g.genes for g in second.population} == {"b"}


class TestStartFromSeeds:
    """Tests for seeded initialization."""

    def test_slots_follow_seed_order(self):
        """Slot i is built from seed i; extra seeds are ignored."""
        engine, _ = make_engine(population_size=3)
        engine.start_evolution_from_seeds([10, 11, 12, 13])

        assert [g.genes for g in engine.population] == [10, 11, 12]

    def test_too_few_seeds_raises(self):
        """A seed set smaller than the population raises ConfigurationError."""
        engine, _ = make_engine(population_size=4)
        with pytest.raises(ConfigurationError):
            engine.start_evolution_from_seeds([1, 2])

    def test_missing_seed_operator_raises(self):
        """Seeded start needs init_from_seed."""
        engine, _ = make_engine(init_from_seed=None)
        with pytest.raises(ConfigurationError, match="init_from_seed"):
            engine.start_evolution_from_seeds([1, 2, 3, 4])

    def test_rejected_seed_is_replaced(self):
        """With the filter on, rejected seeds are replaced by sampled genomes."""
        engine, _ = make_engine(
            population_size=3, filter_by_feasibility=True, feasibility_oracle=EvenOracle(),
        )
        engine.start_evolution_from_seeds([8, 5, 10])

        genes = [g.genes for g in engine.population]
        assert genes[0] == 8
        assert genes[2] == 10
        assert genes[1] % 2 == 0


# ==================== Ranking Tests ====================

class TestRanking:
    """Tests for rank_population."""

    def test_end_to_end_ranking(self):
        """Fitness [3, -1, 7, 2] ranks slots 2, 0, 3, 1."""
        engine, table = make_engine(population_size=4, generations=1)
        engine.start_evolution()
        ranked = score(engine, table, [3, -1, 7, 2])

        assert [g.genes for g in ranked] == [2, 0, 3, 1]
        assert [g.fitness for g in ranked] == [7.0, 3.0, 2.0, -1.0]
        assert engine.get_best().genes == 2
        assert engine.get_worst().genes == 1
        assert engine.total_fitness == 11.0

    def test_ranking_is_non_increasing(self):
        """After ranking, fitness never increases along the population."""
        engine, table = make_engine(population_size=20)
        engine.start_evolution()
        rng = np.random.default_rng(7)
        score(engine, table, rng.integers(-1, 30, size=20).tolist())

        fitnesses = [g.fitness for g in engine.population]
        assert fitnesses == sorted(fitnesses, reverse=True)

    def test_ties_keep_order(self):
        """Equal fitness keeps pre-sort order."""
        engine, table = make_engine(population_size=4)
        engine.start_evolution()
        ranked = score(engine, table, [5, 5, 9, 5])

        assert [g.genes for g in ranked] == [2, 0, 1, 3]

    def test_history_records_generation(self):
        """Each ranking appends one history entry."""
        engine, table = make_engine(population_size=4)
        engine.start_evolution()
        score(engine, table, [3, -1, 7, 2])

        assert engine.history == [{
            "generation": 0,
            "best_fitness": 7.0,
            "worst_fitness": -1.0,
            "mean_fitness": 2.75,
            "total_fitness": 11.0,
        }]

    def test_double_rank_raises(self):
        """Ranking the same generation twice raises RuntimeError."""
        engine, table = make_engine()
        engine.start_evolution()
        score(engine, table, [1, 2, 3, 4])
        with pytest.raises(RuntimeError):
            engine.rank_population()

    def test_rank_before_start_raises(self):
        """Ranking before starting raises RuntimeError."""
        engine, _ = make_engine()
        with pytest.raises(RuntimeError):
            engine.rank_population()

    def test_missing_fitness_propagates(self):
        """An unscored slot surfaces as the lookup's KeyError."""
        engine, table = make_engine()
        engine.start_evolution()
        table.record(0, 1.0)
        with pytest.raises(KeyError):
            engine.rank_population()


# ==================== Selection & Breeding Tests ====================

class TestSelection:
    """Tests for tournament selection."""

    def test_large_tournament_picks_best(self):
        """A large tournament almost surely includes and returns the best."""
        engine, table = make_engine(population_size=4)
        engine.start_evolution()
        score(engine, table, [3, -1, 7, 2])

        assert engine.tournament_selection(size=64).genes == 2

    def test_single_draw_reaches_everyone(self):
        """With size 1, every genome can be selected."""
        engine, table = make_engine(population_size=4)
        engine.start_evolution()
        score(engine, table, [3, -1, 7, 2])

        picks = {engine.tournament_selection(size=1).genes for _ in range(200)}
        assert picks == {0, 1, 2, 3}

    def test_winner_is_population_member(self):
        """Selection returns a genome from the population."""
        engine, table = make_engine(population_size=4)
        engine.start_evolution()
        score(engine, table, [3, -1, 7, 2])

        winner = engine.tournament_selection()
        assert any(winner is g for g in engine.population)

    @pytest.mark.parametrize("draws, winner", [
        ([2, 1], 1),
        ([1, 2], 0),
        ([3, 1, 2], 3),
        ([3, 0], 2),
    ])
    def test_ties_go_to_earliest_draw(self, draws, winner):
        """Among equally fit contestants the first one drawn wins."""
        engine, table = make_engine(population_size=4, rng=FixedDraws(draws))
        engine.start_evolution()
        # Ranked slots hold genes [2, 0, 1, 3]; the last three share fitness 5
        score(engine, table, [5, 5, 9, 5])

        assert engine.tournament_selection(size=len(draws)).genes == winner

    @pytest.mark.parametrize("size", [0, -2])
    def test_non_positive_size_raises(self, size):
        """An explicit empty or negative tournament is rejected, not defaulted."""
        engine, table = make_engine(population_size=4)
        engine.start_evolution()
        score(engine, table, [3, -1, 7, 2])

        with pytest.raises(ValueError):
            engine.tournament_selection(size=size)


class TestNextGeneration:
    """Tests for create_next_generation."""

    @pytest.mark.parametrize("size", [1, 4, 5, 7])
    def test_population_size_preserved(self, size):
        """Next generation has exactly population_size genomes, odd or even."""
        engine, table = make_engine(population_size=size)
        engine.start_evolution()
        score(engine, table, list(range(size)))
        engine.create_next_generation()

        assert len(engine.population) == size
        assert engine.generation == 1

    def test_every_child_is_mutated(self):
        """Mutation runs once per produced child."""
        calls = []
        engine, table = make_engine(population_size=5, mutation=calls.append)
        engine.start_evolution()
        score(engine, table, [1, 2, 3, 4, 5])
        engine.create_next_generation()

        assert len(calls) == 6

    def test_breeding_before_rank_raises(self):
        """Breeding an unranked population raises RuntimeError."""
        engine, _ = make_engine()
        engine.start_evolution()
        with pytest.raises(RuntimeError):
            engine.create_next_generation()

    def test_no_elitism_drops_champion(self):
        """Without elitism only offspring survive."""
        engine, table = make_engine(population_size=4)
        engine.start_evolution()
        score(engine, table, [3, -1, 7, 2])
        engine.create_next_generation()

        assert {g.genes for g in engine.population} == {-100, -200}

    def test_elitism_copies_champion(self):
        """With elitism, one slot holds an equal but distinct copy of the champion."""
        counter = itertools.count()
        engine, table = make_engine(
            population_size=4,
            elitism=True,
            init_genome=lambda: [next(counter)],
            crossover=lambda a, b: (Genome(genes=[-1]), Genome(genes=[-2])),
        )
        engine.start_evolution()
        score(engine, table, [3, -1, 7, 2])
        champion = engine.get_best()
        engine.create_next_generation()

        elites = [g for g in engine.population if g.genes == [2]]
        assert len(elites) == 1
        assert elites[0].fitness == 7.0
        assert elites[0] is not champion
        assert elites[0].genes is not champion.genes

    def test_rank_again_after_breeding(self):
        """Each new generation can be ranked once."""
        engine, table = make_engine(population_size=4)
        engine.start_evolution()
        score(engine, table, [3, -1, 7, 2])
        engine.create_next_generation()
        table.clear()
        ranked = score(engine, table, [0, 1, 2, 3])

        assert ranked[0].fitness == 3.0
        assert len(engine.history) == 2
        assert engine.history[1]["generation"] == 1


# ==================== Accessor Tests ====================

class TestAccessors:
    """Tests for accessors and statistics."""

    @pytest.mark.parametrize("index", [-1, 4, 100])
    def test_out_of_range_raises(self, index):
        """Out-of-range genome indices raise IndexError."""
        engine, _ = make_engine(population_size=4)
        engine.start_evolution()
        with pytest.raises(IndexError):
            engine.get_nth_genome(index)

    def test_access_before_start_raises(self):
        """Reading genomes before starting raises RuntimeError."""
        engine, _ = make_engine()
        with pytest.raises(RuntimeError):
            engine.get_nth_genome(0)

    def test_final_generation(self):
        """is_final_generation turns true on the last generation."""
        engine, table = make_engine(population_size=2, generations=2)
        engine.start_evolution()
        assert not engine.is_final_generation

        score(engine, table, [1, 2])
        engine.create_next_generation()
        assert engine.is_final_generation

    def test_single_generation_is_final(self):
        """A one-generation run is final immediately."""
        engine, _ = make_engine(generations=1)
        engine.start_evolution()
        assert engine.is_final_generation

    def test_statistics(self):
        """Statistics report the last ranking and current state."""
        engine, table = make_engine(population_size=4)
        engine.start_evolution()
        score(engine, table, [3, -1, 7, 2])
        stats = engine.get_statistics()

        assert stats["best_fitness"] == 7.0
        assert stats["last_ranked_generation"] == 0
        assert stats["generation"] == 0
        assert stats["ranked"] is True
        assert stats["algorithm"] == "GeneticAlgorithm"

    def test_population_is_a_copy(self):
        """Mutating the returned list leaves the engine untouched."""
        engine, _ = make_engine(population_size=4)
        engine.start_evolution()
        engine.population.clear()
        assert len(engine.population) == 4
