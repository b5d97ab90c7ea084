from __future__ import annotations

import math
from typing import List, Optional, TYPE_CHECKING

from pygame.math import Vector2

from ..core.agent import Agent, EvolutionTrait, Species
from ..core.config import SpeciesConfig
from ..utils.math2d import _heading_from_velocity, _safe_normalize, _safe_normalize_xy, toroidal_delta_xy, wrap_position
from . import foraging

if TYPE_CHECKING:
    from ..core.world import World


def agent_speed(world: World, agent: Agent) -> float:
    speed = world._config.species_config(agent.species).base_speed
    if agent.trait is EvolutionTrait.FAST_MOVEMENT:
        speed *= world._config.evolution.fast_movement_multiplier
    return speed


def update_movement(
    world: World,
    agent: Agent,
    species: SpeciesConfig,
    neighbors: List[Agent],
    neighbor_offsets: List[Vector2],
    neighbor_dist_sq: List[float],
) -> None:
    speed = agent_speed(world, agent)
    if agent.move_timer == 0 or agent.velocity.length_squared() < 1e-12:
        agent.velocity = world._rng.next_unit_circle() * speed

    heading = _safe_normalize(agent.velocity)
    desired_x = heading.x
    desired_y = heading.y
    target = seek_direction(world, agent, species)
    if target is not None:
        desired_x += target.x * species.target_steer_weight
        desired_y += target.y * species.target_steer_weight
    avoid = avoidance(world, neighbors, neighbor_offsets, neighbor_dist_sq)
    desired_x += avoid.x
    desired_y += avoid.y

    direction = _safe_normalize_xy(desired_x, desired_y)
    if direction.length_squared() < 1e-12:
        direction = heading
    agent.velocity = direction * speed
    agent.position += agent.velocity
    wrap_position(agent.position, world._width, world._height)
    update_heading(agent)

    agent.move_timer += 1
    if agent.move_timer >= agent.move_duration:
        if species.can_scan:
            foraging.begin_scan(agent)
        else:
            agent.move_timer = 0


def update_heading(agent: Agent) -> None:
    if agent.velocity.length_squared() > 1e-8:
        agent.heading = _heading_from_velocity(agent.velocity)


def seek_direction(world: World, agent: Agent, species: SpeciesConfig) -> Optional[Vector2]:
    """Unit vector toward the species target, or ``None`` to keep wandering."""
    if species.seeks == "prey":
        prey, offset = world.nearest_agent(agent, Species.COLLECTOR, world.detection_range)
        if prey is None or offset is None:
            return None
        return _safe_normalize(offset)
    if species.seeks == "food":
        if agent.energy >= world._config.max_energy * species.hunger_fraction:
            return None
        return nearest_food_direction(world, agent)
    return None


def nearest_food_direction(world: World, agent: Agent) -> Optional[Vector2]:
    """Direction to the closest active food, counting items already being reeled in by a beam."""
    best_dist_sq = math.inf
    best_x = 0.0
    best_y = 0.0
    pos = agent.position
    for item in world._food:
        if not item.active:
            continue
        dx, dy = toroidal_delta_xy(pos.x, pos.y, item.position.x, item.position.y, world._width, world._height)
        dist_sq = dx * dx + dy * dy
        if dist_sq < best_dist_sq:
            best_dist_sq = dist_sq
            best_x = dx
            best_y = dy
    if best_dist_sq == math.inf:
        return None
    direction = _safe_normalize_xy(best_x, best_y)
    if direction.length_squared() < 1e-12:
        return None
    return direction


def avoidance(
    world: World,
    neighbors: List[Agent],
    neighbor_offsets: List[Vector2],
    neighbor_dist_sq: List[float],
) -> Vector2:
    abilities = world._config.abilities
    radius = abilities.avoidance_radius
    if radius <= 1e-6 or not neighbor_offsets:
        return Vector2()
    radius_sq = radius * radius
    accum_x = 0.0
    accum_y = 0.0
    for other, offset, dist_sq in zip(neighbors, neighbor_offsets, neighbor_dist_sq):
        if not other.alive or dist_sq > radius_sq or dist_sq <= 1e-12:
            continue
        dist = math.sqrt(dist_sq)
        strength = abilities.avoidance_weight / dist
        accum_x -= offset.x / dist * strength
        accum_y -= offset.y / dist * strength
    return Vector2(accum_x, accum_y)
