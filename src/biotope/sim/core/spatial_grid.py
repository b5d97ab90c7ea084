from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, List, Tuple

from pygame.math import Vector2

from ..utils.math2d import wrap_axis

if TYPE_CHECKING:
    from .agent import Agent


class SpatialGrid:
    """Uniform bucket grid over a wrapped world.

    Cell keys wrap at the world edges and neighbour offsets are toroidal, so a
    query near one edge sees agents just across the opposite edge.
    """

    def __init__(self, cell_size: float, width: float, height: float) -> None:
        self._cell_size = cell_size
        self._width = width
        self._height = height
        self._cols = max(1, int(math.ceil(width / cell_size)))
        self._rows = max(1, int(math.ceil(height / cell_size)))
        self._cells: Dict[Tuple[int, int], List["Agent"]] = {}
        self._active_keys: List[Tuple[int, int]] = []

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()

    def insert(self, agent: "Agent") -> None:
        key = self._cell_key(agent.position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was cleared at the start of this tick; mark it active again.
            self._active_keys.append(key)
        bucket.append(agent)

    def cell_keys_within(self, position: Vector2, radius: float) -> List[Tuple[int, int]]:
        base_x, base_y = self._cell_key(position)
        cell_range = int(math.ceil(radius / self._cell_size))
        span_x = min(cell_range, self._cols // 2)
        span_y = min(cell_range, self._rows // 2)
        keys = {
            ((base_x + dx) % self._cols, (base_y + dy) % self._rows)
            for dx in range(-span_x, span_x + 1)
            for dy in range(-span_y, span_y + 1)
        }
        if cell_range > span_x or cell_range > span_y:
            # radius covers the whole wrapped axis; fall back to every column/row
            cols = range(self._cols) if cell_range > span_x else {k[0] for k in keys}
            rows = range(self._rows) if cell_range > span_y else {k[1] for k in keys}
            keys = {(x, y) for x in cols for y in rows}
        return sorted(keys)

    def collect_neighbors(
        self,
        position: Vector2,
        radius: float,
        out_agents: List["Agent"],
        out_offsets: List[Vector2],
        exclude_id: int | None = None,
        out_dist_sq: List[float] | None = None,
    ) -> None:
        """
        Fill the provided buffers with live agents within ``radius`` of ``position``
        and their toroidal offsets from it.

        Agents removed after the grid was built are skipped.
        """

        out_agents.clear()
        out_offsets.clear()
        if out_dist_sq is not None:
            out_dist_sq.clear()
        radius_sq = radius * radius
        pos_x = position.x
        pos_y = position.y
        width = self._width
        height = self._height

        for key in self.cell_keys_within(position, radius):
            bucket = self._cells.get(key)
            if not bucket:
                continue
            for agent in bucket:
                if not agent.alive:
                    continue
                if exclude_id is not None and agent.id == exclude_id:
                    continue
                pos = agent.position
                offset_x = wrap_axis(pos.x - pos_x, width)
                offset_y = wrap_axis(pos.y - pos_y, height)
                dist_sq = offset_x * offset_x + offset_y * offset_y
                if dist_sq <= radius_sq:
                    out_agents.append(agent)
                    out_offsets.append(Vector2(offset_x, offset_y))
                    if out_dist_sq is not None:
                        out_dist_sq.append(dist_sq)

    def _cell_key(self, position: Vector2) -> Tuple[int, int]:
        return (
            int(position.x // self._cell_size) % self._cols,
            int(position.y // self._cell_size) % self._rows,
        )
