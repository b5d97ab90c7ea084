from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.agent import EvolutionTrait, Species
from ..types.metrics import TickMetrics

if TYPE_CHECKING:
    from ..core.world import World


def create_metrics(world: World, duration_ms: float) -> TickMetrics:
    collectors = 0
    predators = 0
    evolved = 0
    total_energy = 0.0
    for agent in world._store:
        if agent.species is Species.COLLECTOR:
            collectors += 1
        else:
            predators += 1
        if agent.trait is not EvolutionTrait.NONE:
            evolved += 1
        total_energy += agent.energy
    population = collectors + predators
    return TickMetrics(
        tick=world._tick,
        population=population,
        collectors=collectors,
        predators=predators,
        births=world._births,
        deaths=world._deaths,
        consumed=world._consumed,
        average_energy=total_energy / population if population else 0.0,
        evolved=evolved,
        active_food=world._food.active_count(),
        golden_food=world._food.golden_count(),
        tick_duration_ms=duration_ms,
    )
