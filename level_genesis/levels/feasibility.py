"""
level_genesis/levels/feasibility.py

Feasibility oracles: predict whether a level is completable before
spending simulation time on it.

Only the boolean contract matters to the engine. The classifier-backed
oracle loads a persisted scikit-learn style model once per run and asks
it about a fixed-length feature vector derived from the genome.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Union
import logging

import joblib
import numpy as np

from level_genesis.evolution.genome import ObjectKind, StructuralGenome

logger = logging.getLogger(__name__)

FEATURE_NAMES: List[str] = [
    "offensive_unit_budget",
    "columns",
    "blocks",
    "targets",
    "decorations",
    "max_stack_objects",
    "mean_stack_objects",
    "max_stack_height",
    "targets_per_budget",
]


def level_features(level: StructuralGenome) -> np.ndarray:
    """Fixed-length numeric description of a level, ordered as FEATURE_NAMES."""
    sizes = np.array([len(stack) for stack in level.columns], dtype=np.float64)
    heights = np.array(
        [sum(obj.height for obj in stack) for stack in level.columns],
        dtype=np.float64,
    )
    targets = level.count(ObjectKind.TARGET)
    budget = level.offensive_unit_budget

    return np.array([
        budget,
        len(level.columns),
        level.count(ObjectKind.BLOCK),
        targets,
        level.count(ObjectKind.DECORATION),
        sizes.max() if sizes.size else 0.0,
        sizes.mean() if sizes.size else 0.0,
        heights.max() if heights.size else 0.0,
        targets / budget if budget > 0 else float(targets),
    ], dtype=np.float64)


class FeasibilityOracle(ABC):
    """Black-box predicate: is this level completable?"""

    @abstractmethod
    def classify(self, level: StructuralGenome) -> bool:
        """True when the level is predicted feasible."""
        pass


class ClassifierFeasibilityOracle(FeasibilityOracle):
    """
    Feasibility oracle backed by a trained classifier.

    The model needs a predict() accepting a 2D feature array. Whatever
    label it emits for completable levels is feasible_label.
    """

    def __init__(self, model: Any, feasible_label: Any = 1):
        if not hasattr(model, "predict"):
            raise TypeError(f"Classifier {type(model).__name__} has no predict()")
        self.model = model
        self.feasible_label = feasible_label
        self.queries = 0
        self.accepted = 0

    @classmethod
    def load(cls, path: Union[str, Path], feasible_label: Any = 1) -> "ClassifierFeasibilityOracle":
        """Load a classifier persisted with joblib.dump()."""
        model = joblib.load(path)
        logger.info(f"Feasibility classifier loaded from {path}: {type(model).__name__}")
        return cls(model, feasible_label=feasible_label)

    def classify(self, level: StructuralGenome) -> bool:
        features = level_features(level).reshape(1, -1)
        prediction = self.model.predict(features)[0]
        feasible = bool(prediction == self.feasible_label)

        self.queries += 1
        if feasible:
            self.accepted += 1
        return feasible

    @property
    def acceptance_rate(self) -> float:
        return self.accepted / self.queries if self.queries else 0.0
