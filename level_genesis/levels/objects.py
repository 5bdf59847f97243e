"""
level_genesis/levels/objects.py

Catalogue of objects a level can be built from.

Each shape is a template; placing it yields a PlacedObject that the
genome owns. Dimensions are in world units.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List

from level_genesis.evolution.genome import ObjectKind, PlacedObject


@dataclass(frozen=True)
class BlockShape:
    """An object template: what it is and how big it is."""
    label: str
    kind: ObjectKind
    width: float
    height: float
    material: str = "wood"

    def place(self, rotation: float = 0.0) -> PlacedObject:
        """Instantiate this template. A 90 degree rotation swaps width and height."""
        width, height = self.width, self.height
        if rotation % 180 == 90:
            width, height = height, width
        return PlacedObject(
            kind=self.kind,
            label=self.label,
            width=width,
            height=height,
            rotation=rotation,
            material=self.material,
        )


BLOCK_SHAPES: List[BlockShape] = [
    BlockShape("square_small", ObjectKind.BLOCK, 0.43, 0.43),
    BlockShape("square_hole", ObjectKind.BLOCK, 0.84, 0.84),
    BlockShape("rect_tiny", ObjectKind.BLOCK, 0.85, 0.22),
    BlockShape("rect_small", ObjectKind.BLOCK, 0.85, 0.43),
    BlockShape("rect_medium", ObjectKind.BLOCK, 1.68, 0.22),
    BlockShape("rect_big", ObjectKind.BLOCK, 1.68, 0.43),
    BlockShape("rect_fat", ObjectKind.BLOCK, 0.85, 0.85, material="stone"),
    BlockShape("plank_long", ObjectKind.BLOCK, 2.06, 0.22, material="ice"),
]

TARGET_SHAPES: List[BlockShape] = [
    BlockShape("target_small", ObjectKind.TARGET, 0.47, 0.45, material="target"),
    BlockShape("target_medium", ObjectKind.TARGET, 0.78, 0.76, material="target"),
]


def stack_height(stack: List[PlacedObject]) -> float:
    """Total height of a column stack."""
    return sum(obj.height for obj in stack)
