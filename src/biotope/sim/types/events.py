from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class EventKind(str, Enum):
    POPULATION_CHANGED = "population_changed"
    AGENT_SPAWNED = "agent_spawned"
    AGENT_CONSUMED = "agent_consumed"
    AGENT_DIED = "agent_died"
    TRAIT_ACQUIRED = "trait_acquired"
    GOLDEN_FOOD_SPAWNED = "golden_food_spawned"


@dataclass(frozen=True, slots=True)
class SimulationEvent:
    kind: EventKind
    tick: int
    species: Optional[str] = None
    agent_id: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
