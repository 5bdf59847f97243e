"""
level_genesis/levels/stacks.py

Random level construction.

Levels are built column by column: a stack of structural blocks topped
with a target. Nothing ever rests on a target. Mutation regenerates
whole columns through the same two procedures used for initial
synthesis.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from level_genesis.evolution.genome import ColumnStack, ObjectKind, StructuralGenome
from .objects import BLOCK_SHAPES, TARGET_SHAPES, BlockShape, stack_height


@dataclass
class StackBuilderConfig:
    """Configuration for random level construction."""
    min_columns: int = 3
    max_columns: int = 7
    min_stack_blocks: int = 1
    max_stack_blocks: int = 5
    max_stack_height: float = 6.0          # World units
    rotation_probability: float = 0.3      # Chance a block is laid on its side
    min_budget: int = 1
    max_budget: int = 5

    def __post_init__(self):
        if not 0 < self.min_columns <= self.max_columns:
            raise ValueError(f"Invalid column range [{self.min_columns}, {self.max_columns}]")
        if not 0 < self.min_stack_blocks <= self.max_stack_blocks:
            raise ValueError(
                f"Invalid stack block range [{self.min_stack_blocks}, {self.max_stack_blocks}]"
            )
        if not 0 <= self.min_budget <= self.max_budget:
            raise ValueError(f"Invalid budget range [{self.min_budget}, {self.max_budget}]")


class StackBuilder:
    """
    Random-stack generator and target-insertion rules.

    The default rules are position independent; column_index is part of
    the interface so that position-aware rules can be swapped in.
    """

    def __init__(
        self,
        config: Optional[StackBuilderConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config or StackBuilderConfig()
        self.rng = rng if rng is not None else np.random.default_rng()

    def _choose(self, shapes: List[BlockShape]) -> BlockShape:
        return shapes[int(self.rng.integers(len(shapes)))]

    def generate_column_stack(self, column_index: int) -> ColumnStack:
        """Build a fresh bottom-to-top stack of blocks."""
        cfg = self.config
        n_blocks = int(self.rng.integers(cfg.min_stack_blocks, cfg.max_stack_blocks + 1))

        stack: ColumnStack = []
        for _ in range(n_blocks):
            rotation = 90.0 if self.rng.random() < cfg.rotation_probability else 0.0
            obj = self._choose(BLOCK_SHAPES).place(rotation)
            if stack and stack_height(stack) + obj.height > cfg.max_stack_height:
                break
            stack.append(obj)

        return stack

    def _insert_target(self, stack: ColumnStack) -> None:
        """
        Crown the stack with one target.

        Nothing may rest on a target, so a decoration crown is dropped
        first. The target is drawn from the shapes the topmost block is
        wide enough to carry; if it carries none, the narrowest is used.
        """
        while stack and stack[-1].kind == ObjectKind.DECORATION:
            stack.pop()

        shapes = TARGET_SHAPES
        if stack and stack[-1].kind == ObjectKind.BLOCK:
            carried = [s for s in TARGET_SHAPES if s.width <= stack[-1].width]
            shapes = carried or [min(TARGET_SHAPES, key=lambda s: s.width)]
        stack.append(self._choose(shapes).place())

    def insert_targets(self, column_index: int, stack: ColumnStack) -> ColumnStack:
        """
        Seed a stack with targets.

        Guarantees one target at the top of a stack that has none.
        """
        if not any(obj.kind == ObjectKind.TARGET for obj in stack):
            self._insert_target(stack)
        return stack

    def define_budget(self) -> int:
        """Number of offensive units granted to a new level."""
        return int(self.rng.integers(self.config.min_budget, self.config.max_budget + 1))

    def generate_level(self) -> StructuralGenome:
        """Synthesize a complete random level."""
        n_columns = int(self.rng.integers(self.config.min_columns, self.config.max_columns + 1))
        columns = [
            self.insert_targets(i, self.generate_column_stack(i))
            for i in range(n_columns)
        ]
        return StructuralGenome(offensive_unit_budget=self.define_budget(), columns=columns)
