from __future__ import annotations

from pygame.math import Vector2

from biotope.sim.core.agent import Agent, Species
from biotope.sim.core.store import AgentStore


def _agent(agent_id: int, species: Species = Species.COLLECTOR) -> Agent:
    return Agent(
        id=agent_id,
        species=species,
        position=Vector2(),
        velocity=Vector2(),
        energy=10.0,
        size=8.0,
        behavior_seed=0.5,
    )


def test_handles_resolve_until_removed():
    store = AgentStore()
    first = _agent(0)
    handle = store.add(first)

    assert store.get(handle) is first
    assert first.handle == handle
    assert store.remove(handle) is first
    assert store.get(handle) is None
    assert not first.alive
    assert len(store) == 0


def test_reused_slot_does_not_resolve_stale_handle():
    store = AgentStore()
    old_handle = store.add(_agent(0))
    store.remove(old_handle)

    replacement = _agent(1)
    new_handle = store.add(replacement)

    assert new_handle.index == old_handle.index
    assert new_handle.generation != old_handle.generation
    assert store.get(old_handle) is None
    assert store.get(new_handle) is replacement


def test_lowest_free_slot_is_reused_first():
    store = AgentStore()
    handles = [store.add(_agent(i)) for i in range(4)]
    store.remove(handles[2])
    store.remove(handles[0])

    assert store.add(_agent(10)).index == 0
    assert store.add(_agent(11)).index == 2
    assert [agent.id for agent in store] == [10, 1, 11, 3]


def test_clear_invalidates_every_handle():
    store = AgentStore()
    handles = [store.add(_agent(i)) for i in range(3)]

    store.clear()

    assert len(store) == 0
    assert all(store.get(handle) is None for handle in handles)
    assert store.add(_agent(5)).index == 0


def test_species_queries():
    store = AgentStore()
    store.add(_agent(0))
    store.add(_agent(1, Species.PREDATOR))
    store.add(_agent(2))

    assert store.count(Species.COLLECTOR) == 2
    assert [agent.id for agent in store.of_species(Species.PREDATOR)] == [1]
    assert store.remove(None) is None
