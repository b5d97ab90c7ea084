from __future__ import annotations

import math
from typing import List, TYPE_CHECKING

from pygame.math import Vector2

from ..core.agent import Agent
from ..utils.math2d import wrap_position

if TYPE_CHECKING:
    from ..core.world import World


def resolve_overlaps(world: World) -> int:
    """Push overlapping bodies apart along the unwrapped line between their centres; each side moves half."""
    grid = world._grid
    grid.clear()
    for agent in world._store:
        grid.insert(agent)

    width = world._width
    height = world._height
    reach = world._config.max_cell_size
    others: List[Agent] = []
    offsets: List[Vector2] = []
    resolved = 0
    for a in world._store:
        grid.collect_neighbors(a.position, reach, others, offsets, exclude_id=a.id)
        for b, offset in zip(others, offsets):
            # each pair once, lower slot first
            if b.handle.index < a.handle.index:
                continue
            min_dist = (a.size + b.size) * 0.5
            dist_sq = offset.length_squared()
            if dist_sq >= min_dist * min_dist:
                continue
            dist = math.sqrt(dist_sq)
            # overlap is measured around the wrap, the push follows the direct axis
            axis_x = b.position.x - a.position.x
            axis_y = b.position.y - a.position.y
            axis_len = math.hypot(axis_x, axis_y)
            if axis_len > 1e-9:
                nx = axis_x / axis_len
                ny = axis_y / axis_len
            else:
                nx, ny = 1.0, 0.0
            push = (min_dist - dist) * 0.5
            a.position.x -= nx * push
            a.position.y -= ny * push
            b.position.x += nx * push
            b.position.y += ny * push
            wrap_position(a.position, width, height)
            wrap_position(b.position, width, height)
            resolved += 1
    return resolved
