"""
environments/physics_world.py

2D rigid-body world that plays levels for real, using Pymunk.

Columns are raised left to right on a flat ground. A launcher at the
left edge fires one offensive unit at the leftmost surviving target each
time the scene comes to rest, until it runs out of units or targets.

Once shooting has begun, targets are eliminated when a projectile
touches them, when they are knocked away from where they rested at the
first launch, or when they fall off the world. Blocks only count as lost
when they fall off the world.

A level that loses a target before the first launch has collapsed on its
own: the lost target stays on the books and the launcher is disarmed, so
the level plays out as unsolved.

Critical for determinism:
- Fixed timestep
- No threaded space
- Bodies tracked in creation order
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging
import math

import pymunk

from level_genesis.evolution.genome import ColumnStack, ObjectKind, PlacedObject
from .oracle import SimulationOracle

logger = logging.getLogger(__name__)


@dataclass
class WorldConfig:
    """Configuration for the physics world. Lengths are in level units."""
    gravity: Tuple[float, float] = (0.0, -981.0)   # Pixels / s^2
    dt: float = 1 / 60.0
    steps_per_tick: int = 1                         # >1 fast-forwards evaluation
    pixels_per_unit: float = 100.0

    # Layout
    first_column_x: float = 6.0
    column_spacing: float = 2.5
    ground_length: float = 60.0

    # Materials (density per square unit)
    densities: Dict[str, float] = field(default_factory=lambda: {
        "wood": 1.0,
        "stone": 2.5,
        "ice": 0.6,
        "target": 0.8,
        "cloth": 0.2,
        "glass": 0.5,
    })
    friction: float = 0.8
    elasticity: float = 0.1

    # Launcher
    launch_point: Tuple[float, float] = (0.0, 1.5)
    launch_horizontal_speed: float = 800.0          # Pixels / s
    projectile_radius: float = 0.2
    projectile_mass: float = 5.0
    projectile_max_frames: int = 600

    # Settlement and casualties
    settle_linear_velocity: float = 2.0             # Pixels / s
    settle_angular_velocity: float = 0.05           # Rad / s
    warmup_frames: int = 10
    target_kill_distance: float = 0.5
    kill_floor_y: float = -5.0


@dataclass
class _Actor:
    """A placed object's physical body."""
    obj: PlacedObject
    body: pymunk.Body
    shape: pymunk.Shape
    spawn: Tuple[float, float]


@dataclass
class _Projectile:
    body: pymunk.Body
    shape: pymunk.Shape
    launched_frame: int


class PhysicsWorld(SimulationOracle):
    """
    Pymunk-backed simulation oracle.

    Negative offensive budgets are decoded as zero units. A collapsed
    level reports no offensive units, so it resolves as soon as it
    settles.
    """

    def __init__(self, config: Optional[WorldConfig] = None):
        self.config = config or WorldConfig()
        self.clear()

    # ==================== Scene Lifecycle ====================

    def clear(self) -> None:
        self.space = pymunk.Space()
        self.space.gravity = self.config.gravity
        self.frame = 0
        self._placed_frame = 0
        self._budget = 0
        self._fired = 0
        self._stranded = 0

        self._blocks: List[_Actor] = []
        self._targets: List[_Actor] = []
        self._decorations: List[_Actor] = []
        self._projectiles: List[_Projectile] = []

        self._add_ground()

    def _px(self, units: float) -> float:
        return units * self.config.pixels_per_unit

    def _add_ground(self) -> None:
        radius = 5.0
        x0 = self._px(-10.0)
        x1 = self._px(self.config.ground_length)
        ground = pymunk.Segment(self.space.static_body, (x0, -radius), (x1, -radius), radius)
        ground.friction = 1.0
        ground.elasticity = self.config.elasticity
        self.space.add(ground)

    def _create_actor(self, obj: PlacedObject, x: float, base_y: float) -> Tuple[_Actor, float]:
        """Create a body resting at base_y. Returns the actor and its height in pixels."""
        density = self.config.densities.get(obj.material, 1.0)
        width = self._px(obj.width)
        height = self._px(obj.height)

        if obj.kind == ObjectKind.TARGET:
            radius = min(width, height) / 2
            mass = max(density * math.pi * (min(obj.width, obj.height) / 2) ** 2, 0.05)
            body = pymunk.Body(mass, pymunk.moment_for_circle(mass, 0, radius))
            body.position = (x, base_y + radius)
            shape = pymunk.Circle(body, radius)
            occupied = 2 * radius
        else:
            mass = max(density * obj.width * obj.height, 0.05)
            body = pymunk.Body(mass, pymunk.moment_for_box(mass, (width, height)))
            body.position = (x, base_y + height / 2)
            shape = pymunk.Poly.create_box(body, (width, height))
            occupied = height

        shape.friction = self.config.friction
        shape.elasticity = self.config.elasticity
        self.space.add(body, shape)

        spawn = (body.position.x, body.position.y)
        return _Actor(obj=obj, body=body, shape=shape, spawn=spawn), occupied

    def place_actors(self, columns: List[ColumnStack], budget: int) -> None:
        for i, stack in enumerate(columns):
            x = self._px(self.config.first_column_x + i * self.config.column_spacing)
            y = 0.0
            for obj in stack:
                actor, occupied = self._create_actor(obj, x, y)
                y += occupied
                if obj.kind == ObjectKind.TARGET:
                    self._targets.append(actor)
                elif obj.kind == ObjectKind.BLOCK:
                    self._blocks.append(actor)
                else:
                    self._decorations.append(actor)

        self._budget = max(0, int(budget))
        self._fired = 0
        self._stranded = 0
        self._placed_frame = self.frame
        logger.debug(
            f"Placed {len(self._blocks)} blocks, {len(self._targets)} targets, "
            f"{len(self._decorations)} decorations, budget {self._budget}"
        )

    # ==================== Simulation ====================

    def step(self) -> None:
        """
        Advance by one tick.

        1. Integrate physics (steps_per_tick fixed steps)
        2. Remove eliminated targets, lost blocks and spent projectiles
        3. Fire if the scene is at rest and there is something to shoot
        """
        for _ in range(self.config.steps_per_tick):
            self.space.step(self.config.dt)
            self.frame += 1
            self._remove_casualties()

        if (
            self.is_settled()
            and self.offensive_units_remaining() > 0
            and self.target_units_remaining() > 0
        ):
            self._launch()

    def _remove(self, body: pymunk.Body, shape: pymunk.Shape) -> None:
        self.space.remove(body, shape)

    def _remove_casualties(self) -> None:
        kill_floor = self._px(self.config.kill_floor_y)
        projectile_shapes = {id(p.shape) for p in self._projectiles}

        surviving_projectiles = []
        for projectile in self._projectiles:
            age = self.frame - projectile.launched_frame
            body = projectile.body
            spent = (
                age > self.config.projectile_max_frames
                or body.position.y < kill_floor
                or body.position.x > self._px(self.config.ground_length)
                or (age > 30 and body.velocity.length < self.config.settle_linear_velocity)
            )
            if spent:
                self._remove(body, projectile.shape)
            else:
                surviving_projectiles.append(projectile)

        surviving_targets = []
        armed = self._fired > 0
        kill_distance = self._px(self.config.target_kill_distance)
        for target in self._targets:
            body = target.body
            fallen = body.position.y < kill_floor
            if not armed:
                if fallen:
                    self._remove(body, target.shape)
                    self._stranded += 1
                    logger.debug(f"Frame {self.frame}: target {target.obj.label} fell before any launch")
                else:
                    surviving_targets.append(target)
                continue

            hit = any(
                id(info.shape) in projectile_shapes
                for info in self.space.shape_query(target.shape)
            )
            displaced = (
                (body.position.x - target.spawn[0]) ** 2
                + (body.position.y - target.spawn[1]) ** 2
            ) ** 0.5 > kill_distance
            if hit or displaced or fallen:
                self._remove(body, target.shape)
            else:
                surviving_targets.append(target)

        surviving_blocks = []
        for block in self._blocks:
            if block.body.position.y < kill_floor:
                self._remove(block.body, block.shape)
            else:
                surviving_blocks.append(block)

        self._projectiles = surviving_projectiles
        self._targets = surviving_targets
        self._blocks = surviving_blocks

    def _launch(self) -> None:
        """
        Fire a ballistic shot at the leftmost surviving target.

        The first shot also records where every target came to rest;
        displacement is measured from there.
        """
        if self._fired == 0:
            for t in self._targets:
                t.spawn = (t.body.position.x, t.body.position.y)

        target = min(self._targets, key=lambda t: t.body.position.x)
        x0, y0 = self._px(self.config.launch_point[0]), self._px(self.config.launch_point[1])
        tx, ty = target.body.position.x, target.body.position.y

        vx = self.config.launch_horizontal_speed
        flight_time = (tx - x0) / vx if tx > x0 else 0.5
        g = self.config.gravity[1]
        vy = (ty - y0 - 0.5 * g * flight_time ** 2) / flight_time

        radius = self._px(self.config.projectile_radius)
        mass = self.config.projectile_mass
        body = pymunk.Body(mass, pymunk.moment_for_circle(mass, 0, radius))
        body.position = (x0, y0)
        body.velocity = (vx, vy)
        shape = pymunk.Circle(body, radius)
        shape.friction = self.config.friction
        shape.elasticity = self.config.elasticity
        self.space.add(body, shape)

        self._projectiles.append(_Projectile(body=body, shape=shape, launched_frame=self.frame))
        self._fired += 1
        logger.debug(f"Frame {self.frame}: launched unit {self._fired}/{self._budget}")

    # ==================== Queries ====================

    def _actors(self) -> List[_Actor]:
        return self._blocks + self._targets + self._decorations

    def is_settled(self) -> bool:
        actors = self._actors()
        if not actors and not self._projectiles:
            return True
        if self._projectiles:
            return False
        if self.frame - self._placed_frame < self.config.warmup_frames:
            return False
        return all(
            a.body.velocity.length <= self.config.settle_linear_velocity
            and abs(a.body.angular_velocity) <= self.config.settle_angular_velocity
            for a in actors
        )

    @property
    def shots_fired(self) -> int:
        return self._fired

    @property
    def collapsed(self) -> bool:
        """True once a target has been lost without a shot being fired."""
        return self._stranded > 0

    def offensive_units_remaining(self) -> int:
        if self.collapsed:
            return 0
        return self._budget - self._fired

    def target_units_remaining(self) -> int:
        return len(self._targets) + self._stranded

    def structural_units_remaining(self) -> int:
        return len(self._blocks)

    def get_state(self) -> Dict[str, Any]:
        """Positions of everything in the scene, for inspection."""
        def describe(actor: _Actor) -> Dict[str, Any]:
            return {
                "label": actor.obj.label,
                "kind": actor.obj.kind.value,
                "position": {
                    "x": round(actor.body.position.x, 4),
                    "y": round(actor.body.position.y, 4),
                },
                "angle": round(actor.body.angle, 6),
            }

        return {
            "frame": self.frame,
            "objects": [describe(a) for a in self._actors()],
            "projectiles": len(self._projectiles),
        }

    def __repr__(self) -> str:
        return (
            f"PhysicsWorld(frame={self.frame}, "
            f"blocks={len(self._blocks)}, "
            f"targets={len(self._targets)}, "
            f"offensive={self.offensive_units_remaining()})"
        )
