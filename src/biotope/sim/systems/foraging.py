from __future__ import annotations

import math
from typing import TYPE_CHECKING

from pygame.math import Vector2

from ..core.agent import Agent, EvolutionTrait
from ..utils.math2d import direction_from_degrees, point_segment_distance_xy, toroidal_delta_xy

if TYPE_CHECKING:
    from ..core.world import World

SCAN_START_DEGREES = -90.0


def begin_scan(agent: Agent) -> None:
    agent.scanning = True
    agent.scan_timer = 0
    agent.scan_angle = SCAN_START_DEGREES


def end_scan(agent: Agent) -> None:
    agent.scanning = False
    agent.scan_timer = 0
    agent.scan_angle = SCAN_START_DEGREES
    agent.move_timer = 0


def beam_length(world: World, agent: Agent) -> float:
    length = world._config.abilities.laser_length_factor * math.sqrt(max(0.0, agent.size))
    if agent.trait is EvolutionTrait.LONG_LASER:
        length *= world._config.evolution.long_laser_multiplier
    return length


def beam_direction(agent: Agent) -> Vector2:
    return direction_from_degrees(math.degrees(agent.heading) + agent.scan_angle)


def sweep_angle(agent: Agent) -> float:
    """Beam angle for the current scan tick; the last tick of the scan points at the far end of the arc."""
    steps = agent.scan_duration - 1
    if steps <= 0:
        return SCAN_START_DEGREES
    return SCAN_START_DEGREES + agent.scan_arc * (min(agent.scan_timer, steps) / steps)


def update_scan(world: World, agent: Agent) -> int:
    """Advance the sweep by one tick and return how many food items the beam claimed."""
    duration = max(1, agent.scan_duration)
    agent.scan_angle = sweep_angle(agent)
    claimed = capture_food(world, agent, beam_direction(agent), beam_length(world, agent))
    agent.scan_timer += 1
    if agent.scan_timer >= duration:
        end_scan(agent)
    return claimed


def capture_food(world: World, agent: Agent, direction: Vector2, length: float) -> int:
    tolerance = world._config.abilities.beam_tolerance
    end_x = direction.x * length
    end_y = direction.y * length
    pos = agent.position
    claimed = 0
    for item in world._food:
        if not item.active or item.pulled:
            continue
        # beam is evaluated in the agent's local frame so it wraps with the world
        dx, dy = toroidal_delta_xy(pos.x, pos.y, item.position.x, item.position.y, world._width, world._height)
        if point_segment_distance_xy(dx, dy, 0.0, 0.0, end_x, end_y) <= tolerance + item.size * 0.5:
            item.pulled = True
            item.puller = agent.handle
            claimed += 1
    return claimed
