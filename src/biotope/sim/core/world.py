from __future__ import annotations

from collections import deque
from time import perf_counter
from typing import Any, Deque, Dict, List, Optional

import structlog
from pygame.math import Vector2

from .agent import Agent, AgentHandle, EvolutionTrait, Species
from .config import SimulationConfig
from .food import FoodStore
from .hazards import HazardField
from .rng import DeterministicRng
from .spatial_grid import SpatialGrid
from .store import AgentStore
from ..systems import defense, economy, feeding, foraging, hunting, metrics as metrics_system, movement, overlap
from ..types.events import EventKind, SimulationEvent
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld
from ..utils.math2d import _clamp_value, wrap_position

logger = structlog.get_logger()

_FOOD_RNG_SALT = 0xF00DF00D5EED1234
_TRAIT_RNG_SALT = 0x7BADCA11C0FFEE01
_EVENT_BUFFER_SIZE = 4096


def _derive_stream_seed(seed: int, salt: int) -> int:
    return (int(seed) ^ int(salt)) & 0xFFFFFFFFFFFFFFFF


def _seeded_factor(seed: float, jitter: float) -> float:
    return 1.0 - jitter * 0.5 + jitter * seed


class World:
    """Owns the agent store, food store and hazard field and advances them one tick at a time."""

    def __init__(self, config: SimulationConfig):
        self._config = config
        self._width = config.world_width
        self._height = config.world_height
        self._rng = DeterministicRng(config.seed)
        self._food_rng = DeterministicRng(_derive_stream_seed(config.seed, _FOOD_RNG_SALT))
        self._trait_rng = DeterministicRng(_derive_stream_seed(config.seed, _TRAIT_RNG_SALT))
        self._grid = SpatialGrid(config.cell_size, config.world_width, config.world_height)
        self._store = AgentStore()
        self._food = FoodStore(config.food, config.world_width, config.world_height, self._food_rng)
        self._hazards = HazardField(config.hazards, config.world_width, config.world_height)
        self._birth_queue: List[tuple[Agent, int]] = []
        self._events: Deque[SimulationEvent] = deque(maxlen=_EVENT_BUFFER_SIZE)
        self._neighbor_agents: List[Agent] = []
        self._neighbor_offsets: List[Vector2] = []
        self._neighbor_dist_sq: List[float] = []
        self._query_agents: List[Agent] = []
        self._query_offsets: List[Vector2] = []
        self._neighbor_radius = max(config.abilities.avoidance_radius, config.max_cell_size)
        self._tick = 0
        self._next_id = 0
        self._births = 0
        self._deaths = 0
        self._consumed = 0
        self._manual_pulse_pending = False
        self._metrics: TickMetrics | None = None
        self._bootstrap()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def agents(self) -> List[Agent]:
        return list(self._store)

    @property
    def store(self) -> AgentStore:
        return self._store

    @property
    def food(self) -> FoodStore:
        return self._food

    @property
    def hazards(self) -> HazardField:
        return self._hazards

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    @property
    def detection_range(self) -> float:
        return self._config.abilities.ping_max_radius

    def reset(self) -> None:
        self._store.clear()
        self._birth_queue.clear()
        self._events.clear()
        self._grid.clear()
        self._rng.reset()
        self._food_rng.reset()
        self._trait_rng.reset()
        self._tick = 0
        self._next_id = 0
        self._manual_pulse_pending = False
        self._metrics = None
        self._bootstrap()

    def trigger_pulse(self) -> None:
        """Ask every collector that is off cooldown to pulse on the next tick."""
        self._manual_pulse_pending = True

    def resolve(self, handle: Optional[AgentHandle]) -> Optional[Agent]:
        return self._store.get(handle)

    def drain_events(self) -> List[SimulationEvent]:
        events = list(self._events)
        self._events.clear()
        return events

    def spawn_agent(
        self,
        species: Species,
        position: Vector2 | None = None,
        energy: float | None = None,
        trait: EvolutionTrait = EvolutionTrait.NONE,
    ) -> Agent:
        if position is None:
            position = Vector2(
                self._rng.next_range(0.0, self._width),
                self._rng.next_range(0.0, self._height),
            )
        if energy is None:
            energy = self._config.species_config(species).initial_energy
        agent = self._create_agent(species, position, energy)
        agent.trait = trait
        self._store.add(agent)
        self._grid.insert(agent)
        return agent

    def step(self, manual_pulse: bool = False) -> TickMetrics:
        start = perf_counter()
        self._tick += 1
        manual = manual_pulse or self._manual_pulse_pending
        self._manual_pulse_pending = False
        self._births = 0
        self._deaths = 0
        self._consumed = 0
        start_population = len(self._store)

        self._grid.clear()
        for agent in self._store:
            self._grid.insert(agent)

        for handle in self._store.handles():
            agent = self._store.get(handle)
            if agent is None:
                # removed earlier in this pass
                continue
            if agent.energy <= 0.0:
                self._remove(agent)
                continue
            self._update_agent(agent, manual)

        for agent in list(self._store):
            if agent.energy <= 0.0:
                self._remove(agent)

        self._apply_births()
        overlap.resolve_overlaps(self)
        feeding.update_food(self)
        interval = self._config.food.golden_interval_ticks
        if interval > 0 and self._tick % interval == 0:
            feeding.spawn_golden(self)
        self._food.prune()

        population = len(self._store)
        if population != start_population:
            self._emit(
                EventKind.POPULATION_CHANGED,
                previous=start_population,
                population=population,
            )

        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(self, elapsed_ms)
        self._metrics = metrics
        return metrics

    def snapshot(self) -> Snapshot:
        metrics = self._metrics if self._metrics is not None else metrics_system.create_metrics(self, 0.0)
        metadata = SnapshotMetadata(
            world_width=self._width,
            world_height=self._height,
            sim_dt=self._config.time_step,
            tick_rate=0.0 if self._config.time_step <= 0 else 1.0 / self._config.time_step,
            seed=self._config.seed,
            config_version=self._config.config_version,
        )
        return Snapshot(
            tick=self._tick,
            metrics=metrics,
            agents=[self._agent_snapshot(agent) for agent in self._store],
            food=self._food.export_food(),
            hazards=self._hazards.export_hazards(),
            world=SnapshotWorld(width=self._width, height=self._height),
            metadata=metadata,
        )

    def nearest_agent(
        self, agent: Agent, species: Species, radius: float
    ) -> tuple[Optional[Agent], Optional[Vector2]]:
        """Closest live agent of ``species`` within ``radius`` and its toroidal offset from ``agent``."""
        self._grid.collect_neighbors(
            agent.position, radius, self._query_agents, self._query_offsets, exclude_id=agent.id
        )
        best: Optional[Agent] = None
        best_offset: Optional[Vector2] = None
        best_dist_sq = radius * radius
        for other, offset in zip(self._query_agents, self._query_offsets):
            if other.species is not species:
                continue
            dist_sq = offset.length_squared()
            if dist_sq <= best_dist_sq:
                best = other
                best_offset = Vector2(offset)
                best_dist_sq = dist_sq
        return best, best_offset

    def _bootstrap(self) -> None:
        self._food.populate()
        for _ in range(self._config.initial_collectors):
            self.spawn_agent(Species.COLLECTOR)
        for _ in range(self._config.initial_predators):
            self.spawn_agent(Species.PREDATOR)

    def _create_agent(self, species: Species, position: Vector2, energy: float, generation: int = 0) -> Agent:
        config = self._config
        abilities = config.abilities
        seed = self._rng.next_float()
        energy = _clamp_value(energy, 0.0, config.max_energy)
        size = economy.target_size_for(self, energy)
        agent = Agent(
            id=self._next_id,
            species=species,
            position=wrap_position(Vector2(position), self._width, self._height),
            velocity=Vector2(),
            energy=energy,
            size=size,
            target_size=size,
            behavior_seed=seed,
            generation=generation,
        )
        agent.move_duration = max(1, round(abilities.move_duration_ticks * _seeded_factor(seed, abilities.seed_jitter)))
        agent.scan_duration = max(1, round(abilities.scan_duration_ticks * _seeded_factor(seed, abilities.seed_jitter)))
        agent.scan_arc = abilities.scan_arc_degrees * _seeded_factor(1.0 - seed, abilities.seed_jitter)
        agent.ping.radius = seed * abilities.ping_max_radius
        self._next_id += 1
        return agent

    def _update_agent(self, agent: Agent, manual_pulse: bool) -> None:
        species = self._config.species_config(agent.species)
        self._grid.collect_neighbors(
            agent.position,
            self._neighbor_radius,
            self._neighbor_agents,
            self._neighbor_offsets,
            exclude_id=agent.id,
            out_dist_sq=self._neighbor_dist_sq,
        )
        if species.can_pulse:
            defense.update_pulse(self, agent, manual_pulse)
            defense.update_counter_drain(self, agent)
        if species.can_ping:
            hunting.update_ping(self, agent)
        if agent.scanning:
            foraging.update_scan(self, agent)
        else:
            movement.update_movement(
                self, agent, species, self._neighbor_agents, self._neighbor_offsets, self._neighbor_dist_sq
            )
        if species.can_hook:
            hunting.update_hook(self, agent)
        if species.can_eat:
            hunting.eat_on_contact(self, agent, self._neighbor_agents)
        economy.update_economy(self, agent, species)

    def _queue_birth(self, child: Agent, parent: Agent) -> None:
        self._birth_queue.append((child, parent.id))

    def _apply_births(self) -> None:
        for child, parent_id in self._birth_queue:
            self._store.add(child)
            self._births += 1
            self._emit(
                EventKind.AGENT_SPAWNED,
                species=child.species.value,
                agent_id=child.id,
                parent_id=parent_id,
                generation=child.generation,
                energy=round(child.energy, 3),
            )
        self._birth_queue.clear()

    def _remove(self, agent: Agent, consumed_by: Optional[Agent] = None) -> None:
        handle = agent.handle
        if self._store.remove(handle) is None:
            return
        self._food.release_claims(handle)
        if consumed_by is not None:
            self._consumed += 1
            self._emit(
                EventKind.AGENT_CONSUMED,
                species=agent.species.value,
                agent_id=agent.id,
                predator_id=consumed_by.id,
            )
        else:
            self._deaths += 1
            self._emit(EventKind.AGENT_DIED, species=agent.species.value, agent_id=agent.id)

    def _emit(
        self,
        kind: EventKind,
        species: Optional[str] = None,
        agent_id: Optional[int] = None,
        **data: Any,
    ) -> None:
        event = SimulationEvent(kind=kind, tick=self._tick, species=species, agent_id=agent_id, data=data)
        self._events.append(event)
        logger.debug(kind.value, tick=self._tick, species=species, agent_id=agent_id, **data)

    def _agent_snapshot(self, agent: Agent) -> Dict[str, Any]:
        species = self._config.species_config(agent.species)
        payload: Dict[str, Any] = {
            "id": agent.id,
            "species": agent.species.value,
            "x": agent.position.x,
            "y": agent.position.y,
            "vx": agent.velocity.x,
            "vy": agent.velocity.y,
            "heading": agent.heading,
            "size": agent.size,
            "energy": agent.energy,
            "opacity": economy.opacity(self, agent),
            "trait": agent.trait.value,
            "generation": agent.generation,
            "appearance_seed": agent.behavior_seed,
            "scanning": agent.scanning,
        }
        if species.can_scan:
            payload["scan_angle"] = agent.scan_angle
            payload["beam_length"] = foraging.beam_length(self, agent)
        if species.can_ping:
            payload["ping"] = {"active": agent.ping.active, "radius": agent.ping.radius}
        if species.can_hook:
            hook = agent.hook
            payload["hook"] = {
                "active": hook.active,
                "latched": hook.latched,
                "x": hook.position.x,
                "y": hook.position.y,
                "length": hook.length,
            }
        if species.can_pulse:
            payload["pulse"] = {
                "active": agent.pulse.active,
                "radius": agent.pulse.radius,
                "cooldown": agent.pulse.cooldown,
            }
            payload["draining"] = agent.drain.active
        return payload
