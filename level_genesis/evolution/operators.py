"""
level_genesis/evolution/operators.py

Crossover and mutation over structural genomes.

Crossover recombines whole columns: each child independently picks,
column by column, which parent's stack it inherits. Mutation throws a
column away and grows a new one in its place. Neither operator ever
edits a stack in place, and nothing is shared between genomes.
"""

from __future__ import annotations
import math
from typing import TYPE_CHECKING, Optional, Tuple
import logging

import numpy as np

from .genome import ColumnStack, Genome, StructuralGenome, copy_stack

if TYPE_CHECKING:
    from level_genesis.levels.stacks import StackBuilder

logger = logging.getLogger(__name__)


class StructuralCodec:
    """
    Genetic operators for StructuralGenome.

    Bound methods plug straight into GeneticOperators:
        GeneticOperators(
            init_genome=codec.init_genome,
            crossover=codec.crossover,
            mutation=codec.mutate,
            init_from_seed=codec.init_from_seed,
            fitness_lookup=table.lookup,
        )
    """

    def __init__(
        self,
        stack_builder: StackBuilder,
        mutation_rate: float = 0.05,
        rng: Optional[np.random.Generator] = None,
        budget_bounds: Optional[Tuple[int, int]] = None,
    ):
        if not 0.0 <= mutation_rate <= 1.0:
            raise ValueError(f"mutation_rate must be in [0, 1], got {mutation_rate}")
        if budget_bounds is not None and budget_bounds[0] > budget_bounds[1]:
            raise ValueError(f"Invalid budget bounds {budget_bounds}")
        self.stack_builder = stack_builder
        self.mutation_rate = mutation_rate
        self.rng = rng if rng is not None else np.random.default_rng()
        self.budget_bounds = budget_bounds

    # ==================== Initialization ====================

    def init_genome(self) -> StructuralGenome:
        return self.stack_builder.generate_level()

    def init_from_seed(self, level: StructuralGenome) -> StructuralGenome:
        """Seed levels are copied so the seed set itself is never mutated."""
        return level.copy()

    # ==================== Crossover ====================

    def _inherit(self, stack_a: Optional[ColumnStack], stack_b: Optional[ColumnStack]) -> ColumnStack:
        """One child's pick for one column."""
        if stack_a is not None and stack_b is not None:
            return copy_stack(stack_a if self.rng.random() < 0.5 else stack_b)

        only = stack_a if stack_a is not None else stack_b
        return copy_stack(only) if self.rng.random() < 0.5 else []

    def combine_budgets(self, budget_a: int, budget_b: int) -> Tuple[int, int]:
        """
        Arithmetic budget crossover.

        Child A takes the floor of the average. Child B takes the floor of
        a linear extrapolation past parent A, which can go negative or
        exceed both parents. Only budget_bounds, when set, clamps it.
        """
        child_a = math.floor(0.5 * budget_a + 0.5 * budget_b)
        child_b = math.floor(1.5 * budget_a - 0.5 * budget_b)

        if self.budget_bounds is not None:
            low, high = self.budget_bounds
            child_a = min(max(child_a, low), high)
            child_b = min(max(child_b, low), high)

        return child_a, child_b

    def crossover(
        self,
        parent_a: Genome[StructuralGenome],
        parent_b: Genome[StructuralGenome],
    ) -> Tuple[Genome[StructuralGenome], Genome[StructuralGenome]]:
        """
        Uniform column crossover producing two independent children.

        Both children have max(len(a.columns), len(b.columns)) columns.
        """
        columns_a = parent_a.genes.columns
        columns_b = parent_b.genes.columns
        max_columns = max(len(columns_a), len(columns_b))

        genes_1 = StructuralGenome()
        genes_2 = StructuralGenome()

        for i in range(max_columns):
            stack_a = columns_a[i] if i < len(columns_a) else None
            stack_b = columns_b[i] if i < len(columns_b) else None
            genes_1.columns.append(self._inherit(stack_a, stack_b))
            genes_2.columns.append(self._inherit(stack_a, stack_b))

        genes_1.offensive_unit_budget, genes_2.offensive_unit_budget = self.combine_budgets(
            parent_a.genes.offensive_unit_budget,
            parent_b.genes.offensive_unit_budget,
        )

        return Genome(genes=genes_1), Genome(genes=genes_2)

    # ==================== Mutation ====================

    def mutate(self, genome: Genome[StructuralGenome]) -> None:
        """Regenerate each column independently with probability mutation_rate."""
        columns = genome.genes.columns
        regenerated = 0

        for i in range(len(columns)):
            if self.rng.random() < self.mutation_rate:
                stack = self.stack_builder.generate_column_stack(i)
                columns[i] = self.stack_builder.insert_targets(i, stack)
                regenerated += 1

        if regenerated:
            logger.debug(f"Mutation regenerated {regenerated}/{len(columns)} columns")
