from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    collectors: int
    predators: int
    births: int
    deaths: int
    consumed: int
    average_energy: float
    evolved: int
    active_food: int
    golden_food: int
    tick_duration_ms: float = 0.0
