"""Predator abilities: the ping radar, the hook-and-drain leash and eating on contact."""

from __future__ import annotations

from typing import List, TYPE_CHECKING

from pygame.math import Vector2

from ..core.agent import Agent, Species
from ..utils.math2d import _safe_normalize, toroidal_delta, toroidal_distance, wrap_position
from . import economy

if TYPE_CHECKING:
    from ..core.world import World


def update_ping(world: World, agent: Agent) -> None:
    abilities = world._config.abilities
    ping = agent.ping
    if ping.active:
        ping.radius += abilities.ping_speed
        if ping.radius >= abilities.ping_max_radius:
            ping.active = False
            ping.radius = 0.0
            ping.cooldown = abilities.ping_cooldown_ticks
        return
    if ping.cooldown > 0:
        ping.cooldown -= 1
    if ping.cooldown <= 0:
        ping.active = True
        ping.radius = 0.0


def update_hook(world: World, agent: Agent) -> None:
    abilities = world._config.abilities
    hook = agent.hook
    if not hook.active:
        acquire_target(world, agent)
        return

    target = world.resolve(hook.target)
    if target is None or not target.alive:
        hook.release()
        return

    if hook.latched:
        hook.position.update(target.position)
        if distance_between(world, agent, target) > abilities.hook_max_length:
            hook.release()
            return
        hook_contact(world, agent, target)
        return

    to_target = toroidal_delta(hook.position, target.position, world._width, world._height)
    distance = to_target.length()
    step = min(abilities.hook_speed, distance)
    if step > 0.0:
        hook.position += to_target * (step / distance)
        wrap_position(hook.position, world._width, world._height)
    hook.length += step

    if toroidal_distance(hook.position, target.position, world._width, world._height) <= target.radius:
        hook_contact(world, agent, target)
    elif hook.length > abilities.hook_max_length:
        hook.release()


def acquire_target(world: World, agent: Agent) -> bool:
    target, offset = world.nearest_agent(agent, Species.COLLECTOR, world.detection_range)
    if target is None or offset is None:
        return False
    if offset.length() > world._config.abilities.hook_max_length:
        return False
    hook = agent.hook
    hook.active = True
    hook.latched = False
    hook.length = 0.0
    hook.target = target.handle
    hook.position = Vector2(agent.position)
    return True


def hook_contact(world: World, agent: Agent, target: Agent) -> None:
    """Resolve the hook tip touching ``target``: either the shield reverses it or energy is drained."""
    abilities = world._config.abilities
    hook = agent.hook
    if target.pulse.active:
        remaining = max(0.0, 1.0 - target.pulse.radius / max(1e-6, abilities.pulse_max_radius))
        away = _safe_normalize(toroidal_delta(target.position, agent.position, world._width, world._height))
        if away.length_squared() < 1e-12:
            away = world._rng.next_unit_circle()
        agent.position += away * (abilities.hook_repel_force * remaining)
        wrap_position(agent.position, world._width, world._height)

        transfer = agent.energy * 0.5
        agent.energy -= transfer
        target.energy += transfer
        economy.clamp_energy(world, agent)
        economy.clamp_energy(world, target)

        target.drain.active = True
        target.drain.timer = abilities.drain_duration_ticks
        target.drain.partner = agent.handle
        hook.release()
        return

    hook.latched = True
    hook.position.update(target.position)
    amount = min(abilities.hook_drain_rate, target.energy)
    target.energy -= amount
    agent.energy += amount
    economy.clamp_energy(world, target)
    economy.clamp_energy(world, agent)

    if bodies_touch(world, agent, target):
        eat(world, agent, target)
        hook.release()


def eat_on_contact(world: World, agent: Agent, neighbors: List[Agent]) -> int:
    eaten = 0
    for other in neighbors:
        if not other.alive or other.species is not Species.COLLECTOR:
            continue
        if bodies_touch(world, agent, other):
            eat(world, agent, other)
            eaten += 1
    return eaten


def eat(world: World, predator: Agent, prey: Agent) -> None:
    gain = prey.energy * world._config.eat_energy_fraction
    predator.energy += gain
    economy.clamp_energy(world, predator)
    if predator.hook.target == prey.handle:
        predator.hook.release()
    world._remove(prey, consumed_by=predator)


def bodies_touch(world: World, a: Agent, b: Agent) -> bool:
    return distance_between(world, a, b) < (a.size + b.size) * 0.5


def distance_between(world: World, a: Agent, b: Agent) -> float:
    return toroidal_distance(a.position, b.position, world._width, world._height)
