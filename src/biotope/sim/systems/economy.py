from __future__ import annotations

import math
from typing import Optional, TYPE_CHECKING

from pygame.math import Vector2

from ..core.agent import Agent, EVOLVED_TRAITS, EvolutionTrait
from ..core.config import SpeciesConfig
from ..types.events import EventKind
from ..utils.math2d import _clamp_value

if TYPE_CHECKING:
    from ..core.world import World


def update_economy(world: World, agent: Agent, species: SpeciesConfig) -> None:
    """Energy bookkeeping for one agent: decay and hazards, then reproduction, evolution and size."""
    if not agent.alive:
        return
    agent.energy = max(0.0, agent.energy - decay_rate(world, agent, species))
    agent.energy -= world._hazards.drain_at(agent.position, agent.radius)
    clamp_energy(world, agent)
    try_reproduce(world, agent, species)
    try_evolve(world, agent)
    update_size(world, agent)


def clamp_energy(world: World, agent: Agent) -> None:
    agent.energy = _clamp_value(agent.energy, 0.0, world._config.max_energy)


def decay_rate(world: World, agent: Agent, species: SpeciesConfig) -> float:
    rate = species.energy_decay
    if agent.trait is EvolutionTrait.EFFICIENT_ENERGY:
        rate *= world._config.evolution.efficient_energy_decay_factor
    return rate


def try_reproduce(world: World, agent: Agent, species: SpeciesConfig) -> Optional[Agent]:
    if agent.energy < species.reproduction_threshold:
        return None
    position = Vector2(agent.position)
    if species.offspring_spawn_radius > 0.0:
        angle = world._rng.next_range(0.0, math.tau)
        distance = world._rng.next_range(0.0, species.offspring_spawn_radius)
        position += Vector2(math.cos(angle), math.sin(angle)) * distance
    child = world._create_agent(agent.species, position, species.offspring_energy, generation=agent.generation + 1)
    agent.energy = species.post_reproduction_energy
    clamp_energy(world, agent)
    world._queue_birth(child, agent)
    return child


def try_evolve(world: World, agent: Agent) -> bool:
    threshold = world._config.evolution.threshold
    if agent.trait is not EvolutionTrait.NONE or agent.energy < threshold:
        return False
    agent.energy -= threshold
    clamp_energy(world, agent)
    grant_random_trait(world, agent, source="evolution")
    return True


def grant_random_trait(world: World, agent: Agent, source: str) -> EvolutionTrait:
    trait = world._trait_rng.choice(EVOLVED_TRAITS)
    previous = agent.trait
    agent.trait = trait
    world._emit(
        EventKind.TRAIT_ACQUIRED,
        species=agent.species.value,
        agent_id=agent.id,
        trait=trait.value,
        previous=previous.value,
        source=source,
    )
    return trait


def target_size_for(world: World, energy: float) -> float:
    config = world._config
    fraction = _clamp_value(energy / config.max_energy, 0.0, 1.0)
    return config.min_cell_size + (config.max_cell_size - config.min_cell_size) * fraction


def update_size(world: World, agent: Agent) -> None:
    config = world._config
    agent.target_size = target_size_for(world, agent.energy)
    agent.size += (agent.target_size - agent.size) * config.size_easing
    agent.size = _clamp_value(agent.size, config.min_cell_size, config.max_cell_size)


def opacity(world: World, agent: Agent) -> float:
    return 0.3 + 0.7 * _clamp_value(agent.energy / world._config.max_energy, 0.0, 1.0)
