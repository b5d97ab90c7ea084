from __future__ import annotations

import math
from typing import TYPE_CHECKING

from ..core.agent import Agent
from ..core.food import FoodItem
from ..types.events import EventKind
from ..utils.math2d import toroidal_delta_xy, wrap_position
from . import economy

if TYPE_CHECKING:
    from ..core.world import World


def update_food(world: World) -> int:
    """Reel claimed food toward its collector and pay out on contact. Returns items consumed."""
    config = world._config.food
    consumed = 0
    for item in list(world._food):
        if not item.active or not item.pulled:
            continue
        puller = world.resolve(item.puller)
        if puller is None:
            item.release()
            continue

        dx, dy = toroidal_delta_xy(
            item.position.x, item.position.y, puller.position.x, puller.position.y, world._width, world._height
        )
        distance = math.hypot(dx, dy)
        if distance > 1e-9:
            step = min(config.pull_speed, distance)
            item.position.x += dx / distance * step
            item.position.y += dy / distance * step
            wrap_position(item.position, world._width, world._height)
        item.size = max(config.min_size, item.size - config.shrink_rate)

        if overlaps_box(world, item, puller):
            consume(world, item, puller)
            consumed += 1
    return consumed


def overlaps_box(world: World, item: FoodItem, agent: Agent) -> bool:
    dx, dy = toroidal_delta_xy(
        agent.position.x, agent.position.y, item.position.x, item.position.y, world._width, world._height
    )
    reach = (agent.size + item.size) * 0.5
    return abs(dx) <= reach and abs(dy) <= reach


def consume(world: World, item: FoodItem, agent: Agent) -> None:
    if item.golden:
        agent.energy += world._config.food.golden_energy
        economy.clamp_energy(world, agent)
        economy.grant_random_trait(world, agent, source="golden_food")
    else:
        agent.energy += item.tier.energy
        economy.clamp_energy(world, agent)

    if item.extra:
        world._food.deactivate(item)
    else:
        world._food.reset_item(item)


def spawn_golden(world: World) -> FoodItem:
    item = world._food.spawn_golden()
    world._emit(
        EventKind.GOLDEN_FOOD_SPAWNED,
        x=round(item.position.x, 3),
        y=round(item.position.y, 3),
        extra=item.extra,
    )
    return item
