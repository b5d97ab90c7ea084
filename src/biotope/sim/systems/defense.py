from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.agent import Agent, Species
from . import economy

if TYPE_CHECKING:
    from ..core.world import World


def is_hooked(world: World, agent: Agent) -> bool:
    handle = agent.handle
    if handle is None:
        return False
    for predator in world._store.of_species(Species.PREDATOR):
        if predator.hook.active and predator.hook.target == handle:
            return True
    return False


def update_pulse(world: World, agent: Agent, manual: bool) -> None:
    abilities = world._config.abilities
    pulse = agent.pulse
    if pulse.active:
        pulse.radius += abilities.pulse_speed
        if pulse.radius >= abilities.pulse_max_radius:
            pulse.active = False
            pulse.radius = 0.0
            pulse.cooldown = abilities.pulse_cooldown_ticks
        return
    if pulse.cooldown > 0:
        pulse.cooldown -= 1
        return
    if manual or is_hooked(world, agent):
        pulse.active = True
        pulse.radius = 0.0


def update_counter_drain(world: World, agent: Agent) -> None:
    """Pull energy back from the predator whose hook was reflected by the shield."""
    drain = agent.drain
    if not drain.active:
        return
    partner = world.resolve(drain.partner)
    if partner is None or drain.timer <= 0:
        drain.end()
        return
    amount = min(world._config.abilities.counter_drain_rate, partner.energy)
    partner.energy -= amount
    agent.energy += amount
    economy.clamp_energy(world, partner)
    economy.clamp_energy(world, agent)
    drain.timer -= 1
    if drain.timer <= 0:
        drain.end()
