from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

from pygame.math import Vector2

from ..utils.math2d import toroidal_distance
from .config import HazardConfig


@dataclass(frozen=True, slots=True)
class Hazard:
    position: Vector2
    radius: float
    drain: float


class HazardField:
    def __init__(self, hazards: Iterable[HazardConfig], width: float, height: float):
        self._width = width
        self._height = height
        self._hazards: List[Hazard] = [
            Hazard(position=Vector2(h.position), radius=h.radius, drain=h.drain) for h in hazards
        ]

    def drain_at(self, position: Vector2, body_radius: float) -> float:
        """Total per-tick drain for a body of ``body_radius`` centred at ``position``."""
        total = 0.0
        for hazard in self._hazards:
            if toroidal_distance(position, hazard.position, self._width, self._height) < hazard.radius + body_radius:
                total += hazard.drain
        return total

    def export_hazards(self) -> List[Dict[str, float]]:
        return [
            {"x": h.position.x, "y": h.position.y, "radius": h.radius, "drain": h.drain}
            for h in self._hazards
        ]
