"""
level_genesis/services/

Services that run evolution against a live world.

Architecture:
- Scheduler: plays one genome at a time in the shared world and scores it
- Controller: owns the tick loop, fills the fitness table, ranks and breeds

Evaluation cannot be parallelized: every genome is played in the same
mutable world, so the scheduler is the single point of suspension.
"""

from .scheduler import EvaluationRecord, EvaluationState, FitnessScheduler
from .controller import ControllerConfig, EvolutionController, load_config, run_controller

__all__ = [
    "EvaluationRecord",
    "EvaluationState",
    "FitnessScheduler",
    "ControllerConfig",
    "EvolutionController",
    "load_config",
    "run_controller",
]
