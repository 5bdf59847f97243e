"""
level_genesis/services/scheduler.py

Fitness evaluation scheduler.

Bridges the synchronous generational loop to a world that needs many
ticks to deliver a verdict:
1. Clear the shared world and decode one genome into it
2. Sample baseline unit counts
3. Poll once per tick until the scene has settled and one side is spent
4. Sample final counts, score, reset the world

Exactly one genome is in flight at a time: every candidate shares the
same mutable world.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional
import logging

from level_genesis.environments.oracle import LevelCounts, SimulationOracle, sample_counts
from level_genesis.evolution.fitness import INFEASIBLE_FITNESS, level_fitness
from level_genesis.evolution.genome import StructuralGenome

logger = logging.getLogger(__name__)

# (pk, pi, li, bi, bk) -> fitness
FitnessRule = Callable[[int, int, int, int, int], float]


class EvaluationState(Enum):
    """State of the scheduler."""
    IDLE = "idle"
    EVALUATING = "evaluating"


@dataclass
class EvaluationRecord:
    """Outcome of evaluating one genome."""
    index: int
    fitness: float
    initial: LevelCounts
    final: LevelCounts
    ticks: int
    timed_out: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "fitness": self.fitness,
            "initial": self.initial.to_dict(),
            "final": self.final.to_dict(),
            "ticks": self.ticks,
            "timed_out": self.timed_out,
        }


class FitnessScheduler:
    """
    Two-state machine: IDLE -> EVALUATING -> IDLE.

    The caller owns the tick loop and calls poll() once per tick; poll()
    never blocks. By default there is no deadline: a world that never
    settles keeps the scheduler in EVALUATING forever. Setting max_ticks
    bounds the wait; an evaluation that exceeds it is scored infeasible
    and flagged timed_out.
    """

    def __init__(
        self,
        oracle: SimulationOracle,
        fitness_rule: FitnessRule = level_fitness,
        max_ticks: Optional[int] = None,
    ):
        if max_ticks is not None and max_ticks <= 0:
            raise ValueError(f"max_ticks must be positive, got {max_ticks}")
        self.oracle = oracle
        self.fitness_rule = fitness_rule
        self.max_ticks = max_ticks

        self.state = EvaluationState.IDLE
        self.current_index: Optional[int] = None
        self.evaluations = 0
        self.timeouts = 0

        self._initial: Optional[LevelCounts] = None
        self._ticks = 0

    @property
    def is_idle(self) -> bool:
        return self.state == EvaluationState.IDLE

    def begin(self, genome: StructuralGenome, index: int) -> LevelCounts:
        """
        Decode a genome into the world and start evaluating it.

        Returns the baseline counts (bi, pi, li).
        """
        if self.state == EvaluationState.EVALUATING:
            raise RuntimeError(
                f"Genome {self.current_index} is still being evaluated; "
                f"cannot begin genome {index}"
            )

        self.oracle.clear()
        self.oracle.place_actors(genome.columns, genome.offensive_unit_budget)
        self._initial = sample_counts(self.oracle)
        self._ticks = 0

        self.current_index = index
        self.state = EvaluationState.EVALUATING

        logger.debug(
            f"Evaluating genome {index}: {self._initial.offensive} offensive, "
            f"{self._initial.targets} targets, {self._initial.structural} structural"
        )
        return self._initial

    def _is_resolved(self) -> bool:
        if not self.oracle.is_settled():
            return False
        return (
            self.oracle.offensive_units_remaining() == 0
            or self.oracle.target_units_remaining() == 0
        )

    def poll(self) -> Optional[EvaluationRecord]:
        """
        One non-blocking check. Call once per tick.

        Returns None while the level is still playing, or the record once
        it has resolved (the scheduler is then IDLE again).
        """
        if self.state != EvaluationState.EVALUATING:
            raise RuntimeError("No evaluation in progress")

        if self._is_resolved():
            final = sample_counts(self.oracle)
            initial = self._initial
            fitness = self.fitness_rule(
                final.targets, initial.targets, initial.structural,
                initial.offensive, final.offensive,
            )
            return self._finish(fitness, final, timed_out=False)

        self._ticks += 1
        if self.max_ticks is not None and self._ticks >= self.max_ticks:
            self.timeouts += 1
            logger.warning(
                f"Genome {self.current_index} did not settle within {self.max_ticks} ticks, "
                f"scoring as infeasible"
            )
            return self._finish(INFEASIBLE_FITNESS, sample_counts(self.oracle), timed_out=True)

        return None

    def _finish(self, fitness: float, final: LevelCounts, timed_out: bool) -> EvaluationRecord:
        record = EvaluationRecord(
            index=self.current_index,
            fitness=fitness,
            initial=self._initial,
            final=final,
            ticks=self._ticks,
            timed_out=timed_out,
        )
        self.evaluations += 1
        self._reset()

        logger.debug(f"Genome {record.index} resolved after {record.ticks} ticks: fitness {fitness}")
        return record

    def abandon(self) -> None:
        """Drop the in-flight evaluation, if any, and return to IDLE."""
        if self.state == EvaluationState.EVALUATING:
            logger.debug(f"Abandoning evaluation of genome {self.current_index}")
        self._reset()

    def _reset(self) -> None:
        self.oracle.clear()
        self.state = EvaluationState.IDLE
        self.current_index = None
        self._initial = None
        self._ticks = 0

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "current_index": self.current_index,
            "ticks": self._ticks,
            "evaluations": self.evaluations,
            "timeouts": self.timeouts,
        }
