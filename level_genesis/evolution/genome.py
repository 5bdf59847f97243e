"""
level_genesis/evolution/genome.py

Genome representations for evolutionary level synthesis.

A genome pairs genetic material with the fitness it earned.
The structural genome is the genotype of a level: an offensive budget
and a left-to-right sequence of column stacks. The settled physics
scene it produces is the phenotype.
"""

from __future__ import annotations
import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Generic, List, TypeVar

T = TypeVar("T")


@dataclass
class Genome(Generic[T]):
    """
    One candidate solution plus its fitness.

    Genomes order by fitness, descending: the better genome sorts first.
    Python's sort is stable, so equal fitness keeps sequence position.
    """

    genes: T
    fitness: float = 0.0

    def __lt__(self, other: "Genome[T]") -> bool:
        return self.fitness > other.fitness

    def copy(self) -> "Genome[T]":
        """Independent value copy. Never shares storage with the original."""
        return Genome(genes=copy.deepcopy(self.genes), fitness=self.fitness)


class ObjectKind(Enum):
    """Type tag carried by every placed object."""
    BLOCK = "block"
    TARGET = "target"
    DECORATION = "decoration"


@dataclass
class PlacedObject:
    """
    A single object inside a column stack.

    Dimensions and material are placement parameters for whatever
    environment decodes the level; the evolutionary core never reads them.
    """

    kind: ObjectKind
    label: str
    width: float = 1.0
    height: float = 1.0
    rotation: float = 0.0       # Degrees
    material: str = "wood"

    def copy(self) -> "PlacedObject":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "label": self.label,
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
            "material": self.material,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlacedObject":
        return cls(
            kind=ObjectKind(data["kind"]),
            label=data["label"],
            width=data.get("width", 1.0),
            height=data.get("height", 1.0),
            rotation=data.get("rotation", 0.0),
            material=data.get("material", "wood"),
        )


# Bottom-to-top
ColumnStack = List[PlacedObject]


def copy_stack(stack: ColumnStack) -> ColumnStack:
    """Deep copy of a column stack."""
    return [obj.copy() for obj in stack]


@dataclass
class StructuralGenome:
    """
    Genome for a column-stacked level.

    Column order is spatial order (left to right). Every column is owned
    by exactly one genome; use copy() or copy_stack() when moving material
    between genomes.
    """

    offensive_unit_budget: int = 0
    columns: List[ColumnStack] = field(default_factory=list)

    def copy(self) -> "StructuralGenome":
        return StructuralGenome(
            offensive_unit_budget=self.offensive_unit_budget,
            columns=[copy_stack(stack) for stack in self.columns],
        )

    def count(self, kind: ObjectKind) -> int:
        """Number of placed objects of a given kind across all columns."""
        return sum(1 for stack in self.columns for obj in stack if obj.kind == kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "StructuralGenome",
            "offensive_unit_budget": self.offensive_unit_budget,
            "columns": [[obj.to_dict() for obj in stack] for stack in self.columns],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuralGenome":
        return cls(
            offensive_unit_budget=data.get("offensive_unit_budget", 0),
            columns=[
                [PlacedObject.from_dict(obj) for obj in stack]
                for stack in data.get("columns", [])
            ],
        )
