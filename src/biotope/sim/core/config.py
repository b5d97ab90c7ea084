from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import yaml

from .agent import Species


@dataclass
class SpeciesConfig:
    base_speed: float = 1.4
    energy_decay: float = 0.02
    initial_energy: float = 45.0
    reproduction_threshold: float = 99.0
    post_reproduction_energy: float = 70.0
    offspring_energy: float = 30.0
    offspring_spawn_radius: float = 0.0
    # "food", "prey" or "none"
    seeks: str = "food"
    hunger_fraction: float = 0.3
    target_steer_weight: float = 0.35
    can_scan: bool = True
    can_pulse: bool = True
    can_hook: bool = False
    can_ping: bool = False
    can_eat: bool = False


def default_collector() -> SpeciesConfig:
    return SpeciesConfig()


def default_predator() -> SpeciesConfig:
    return SpeciesConfig(
        base_speed=1.6,
        energy_decay=0.012,
        initial_energy=50.0,
        reproduction_threshold=100.0,
        post_reproduction_energy=60.0,
        offspring_energy=40.0,
        offspring_spawn_radius=30.0,
        seeks="prey",
        hunger_fraction=1.0,
        target_steer_weight=0.5,
        can_scan=False,
        can_pulse=False,
        can_hook=True,
        can_ping=True,
        can_eat=True,
    )


@dataclass
class AbilityConfig:
    move_duration_ticks: int = 90
    scan_duration_ticks: int = 60
    scan_arc_degrees: float = 180.0
    seed_jitter: float = 0.4
    laser_length_factor: float = 22.0
    beam_tolerance: float = 4.0
    avoidance_radius: float = 40.0
    avoidance_weight: float = 12.0
    ping_speed: float = 3.0
    ping_max_radius: float = 180.0
    ping_cooldown_ticks: int = 90
    hook_max_length: float = 140.0
    hook_speed: float = 6.0
    hook_drain_rate: float = 0.4
    hook_repel_force: float = 30.0
    pulse_speed: float = 2.5
    pulse_max_radius: float = 60.0
    pulse_cooldown_ticks: int = 240
    drain_duration_ticks: int = 90
    counter_drain_rate: float = 0.3


@dataclass
class EvolutionConfig:
    threshold: float = 75.0
    fast_movement_multiplier: float = 1.5
    long_laser_multiplier: float = 1.6
    efficient_energy_decay_factor: float = 0.5


@dataclass
class FoodTierConfig:
    name: str = "common"
    energy: float = 5.0
    chance: float = 1.0


def default_tiers() -> List[FoodTierConfig]:
    return [
        FoodTierConfig(name="common", energy=5.0, chance=0.6),
        FoodTierConfig(name="rich", energy=12.0, chance=0.3),
        FoodTierConfig(name="rare", energy=25.0, chance=0.1),
    ]


@dataclass
class FoodConfig:
    base_pool_size: int = 80
    size: float = 8.0
    min_size: float = 2.0
    pull_speed: float = 2.0
    shrink_rate: float = 0.05
    golden_energy: float = 50.0
    golden_size: float = 11.0
    golden_interval_ticks: int = 600
    tiers: List[FoodTierConfig] = field(default_factory=default_tiers)


@dataclass
class HazardConfig:
    position: tuple[float, float] = (0.0, 0.0)
    radius: float = 50.0
    drain: float = 0.15


def default_hazards() -> List[HazardConfig]:
    return [
        HazardConfig(position=(320.0, 240.0), radius=45.0),
        HazardConfig(position=(960.0, 480.0), radius=60.0),
    ]


@dataclass
class SimulationConfig:
    time_step: float = 1.0 / 60.0
    world_width: float = 1280.0
    world_height: float = 720.0
    cell_size: float = 64.0
    seed: int = 42
    config_version: str = "v1"
    initial_collectors: int = 40
    initial_predators: int = 5
    max_energy: float = 100.0
    min_cell_size: float = 6.0
    max_cell_size: float = 28.0
    size_easing: float = 0.1
    eat_energy_fraction: float = 0.75
    collector: SpeciesConfig = field(default_factory=default_collector)
    predator: SpeciesConfig = field(default_factory=default_predator)
    abilities: AbilityConfig = field(default_factory=AbilityConfig)
    evolution: EvolutionConfig = field(default_factory=EvolutionConfig)
    food: FoodConfig = field(default_factory=FoodConfig)
    hazards: List[HazardConfig] = field(default_factory=default_hazards)

    def species_config(self, species: Species) -> SpeciesConfig:
        return self.collector if species is Species.COLLECTOR else self.predator

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


def validate_config(config: SimulationConfig) -> SimulationConfig:
    if config.world_width <= 0.0 or config.world_height <= 0.0:
        raise ValueError("world extents must be positive")
    if config.min_cell_size > config.max_cell_size:
        raise ValueError("min_cell_size must not exceed max_cell_size")
    if config.max_energy <= 0.0:
        raise ValueError("max_energy must be positive")
    tiers = config.food.tiers
    if not tiers:
        raise ValueError("food.tiers must contain at least one tier")
    total = sum(tier.chance for tier in tiers)
    if not math.isclose(total, 1.0, abs_tol=1e-6):
        raise ValueError(f"food tier chances must sum to 1.0, got {total:.6f}")
    return config


def _pair(value: tuple[float, float] | list[float] | None, default: tuple[float, float]) -> tuple[float, float]:
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return (float(value[0]), float(value[1]))
    return default


def load_config(raw: dict) -> SimulationConfig:
    collector = default_collector()
    predator = default_predator()
    collector_values = {**collector.__dict__, **raw.get("collector", {})}
    predator_values = {**predator.__dict__, **raw.get("predator", {})}

    food_raw = raw.get("food", {})
    tiers_raw = food_raw.get("tiers")
    tiers = default_tiers() if tiers_raw is None else [FoodTierConfig(**tier) for tier in tiers_raw]
    food = FoodConfig(tiers=tiers, **{k: v for k, v in food_raw.items() if k != "tiers"})

    hazards_raw = raw.get("hazards")
    if hazards_raw is None:
        hazards = default_hazards()
    else:
        hazards = [
            HazardConfig(
                position=_pair(item.get("position"), (0.0, 0.0)),
                **{k: v for k, v in item.items() if k != "position"},
            )
            for item in hazards_raw
        ]

    sim_values = {
        k: v
        for k, v in raw.items()
        if k not in {"collector", "predator", "abilities", "evolution", "food", "hazards"}
    }
    config = SimulationConfig(
        collector=SpeciesConfig(**collector_values),
        predator=SpeciesConfig(**predator_values),
        abilities=AbilityConfig(**raw.get("abilities", {})),
        evolution=EvolutionConfig(**raw.get("evolution", {})),
        food=food,
        hazards=hazards,
        **sim_values,
    )
    return validate_config(config)
