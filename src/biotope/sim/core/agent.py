from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pygame.math import Vector2


class Species(str, Enum):
    COLLECTOR = "Collector"
    PREDATOR = "Predator"


class EvolutionTrait(str, Enum):
    NONE = "None"
    FAST_MOVEMENT = "FastMovement"
    LONG_LASER = "LongLaser"
    EFFICIENT_ENERGY = "EfficientEnergy"


EVOLVED_TRAITS: tuple[EvolutionTrait, ...] = (
    EvolutionTrait.FAST_MOVEMENT,
    EvolutionTrait.LONG_LASER,
    EvolutionTrait.EFFICIENT_ENERGY,
)


@dataclass(frozen=True, slots=True)
class AgentHandle:
    """Slot index plus the generation the slot had when the agent was stored."""

    index: int
    generation: int


@dataclass(slots=True)
class PingState:
    active: bool = True
    radius: float = 0.0
    cooldown: int = 0


@dataclass(slots=True)
class HookState:
    active: bool = False
    latched: bool = False
    position: Vector2 = field(default_factory=Vector2)
    length: float = 0.0
    target: Optional[AgentHandle] = None

    def release(self) -> None:
        self.active = False
        self.latched = False
        self.length = 0.0
        self.target = None


@dataclass(slots=True)
class PulseState:
    active: bool = False
    radius: float = 0.0
    cooldown: int = 0


@dataclass(slots=True)
class DrainState:
    active: bool = False
    timer: int = 0
    partner: Optional[AgentHandle] = None

    def end(self) -> None:
        self.active = False
        self.timer = 0
        self.partner = None


@dataclass(slots=True)
class Agent:
    id: int
    species: Species
    position: Vector2
    velocity: Vector2
    energy: float
    size: float
    behavior_seed: float
    handle: Optional[AgentHandle] = None
    target_size: float = 0.0
    heading: float = 0.0
    trait: EvolutionTrait = EvolutionTrait.NONE
    generation: int = 0
    alive: bool = True
    move_timer: int = 0
    move_duration: int = 0
    scanning: bool = False
    scan_timer: int = 0
    scan_angle: float = -90.0
    scan_duration: int = 0
    scan_arc: float = 0.0
    ping: PingState = field(default_factory=PingState)
    hook: HookState = field(default_factory=HookState)
    pulse: PulseState = field(default_factory=PulseState)
    drain: DrainState = field(default_factory=DrainState)

    @property
    def radius(self) -> float:
        return self.size * 0.5
