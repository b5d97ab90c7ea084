from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from pygame.math import Vector2

from .agent import AgentHandle
from .config import FoodConfig
from .rng import DeterministicRng

GOLDEN_TIER_NAME = "golden"


@dataclass(frozen=True, slots=True)
class FoodTier:
    name: str
    energy: float
    chance: float


@dataclass(slots=True)
class FoodItem:
    position: Vector2
    tier: FoodTier
    size: float
    active: bool = True
    pulled: bool = False
    puller: Optional[AgentHandle] = None
    golden: bool = False
    extra: bool = False

    def release(self) -> None:
        self.pulled = False
        self.puller = None


class FoodStore:
    """Base pool of food items plus extra slots opened by golden spawns."""

    def __init__(self, config: FoodConfig, width: float, height: float, rng: DeterministicRng):
        self._config = config
        self._width = width
        self._height = height
        self._rng = rng
        self._tiers: List[FoodTier] = [FoodTier(t.name, t.energy, t.chance) for t in config.tiers]
        self._golden_tier = FoodTier(GOLDEN_TIER_NAME, config.golden_energy, 0.0)
        self._items: List[FoodItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[FoodItem]:
        return iter(self._items)

    @property
    def items(self) -> List[FoodItem]:
        return self._items

    @property
    def tiers(self) -> List[FoodTier]:
        return self._tiers

    def populate(self) -> None:
        self._items.clear()
        for _ in range(self._config.base_pool_size):
            self._items.append(self.create())

    def roll_tier(self) -> FoodTier:
        roll = self._rng.next_float()
        cumulative = 0.0
        for tier in self._tiers:
            cumulative += tier.chance
            if roll < cumulative:
                return tier
        return self._tiers[-1]

    def random_position(self) -> Vector2:
        return Vector2(
            self._rng.next_range(0.0, self._width),
            self._rng.next_range(0.0, self._height),
        )

    def create(self) -> FoodItem:
        return FoodItem(position=self.random_position(), tier=self.roll_tier(), size=self._config.size)

    def reset_item(self, item: FoodItem) -> None:
        """Re-roll ``item`` in place as fresh regular food at a new random spot."""
        item.position = self.random_position()
        item.tier = self.roll_tier()
        item.size = self._config.size
        item.active = True
        item.golden = False
        item.release()

    def deactivate(self, item: FoodItem) -> None:
        item.active = False
        item.golden = False
        item.release()

    def spawn_golden(self) -> FoodItem:
        """Place golden food in the first inactive slot, appending a slot when none is free."""
        for item in self._items:
            if not item.active:
                target = item
                break
        else:
            target = FoodItem(position=Vector2(), tier=self._golden_tier, size=self._config.golden_size, extra=True)
            self._items.append(target)
        target.position = self.random_position()
        target.tier = self._golden_tier
        target.size = self._config.golden_size
        target.active = True
        target.golden = True
        target.release()
        return target

    def prune(self) -> int:
        before = len(self._items)
        self._items = [item for item in self._items if not (item.extra and not item.active and not item.golden)]
        return before - len(self._items)

    def release_claims(self, handle: AgentHandle) -> None:
        for item in self._items:
            if item.puller == handle:
                item.release()

    def active_count(self) -> int:
        return sum(1 for item in self._items if item.active)

    def golden_count(self) -> int:
        return sum(1 for item in self._items if item.active and item.golden)

    def export_food(self) -> List[Dict[str, object]]:
        return [
            {
                "x": item.position.x,
                "y": item.position.y,
                "size": item.size,
                "tier": item.tier.name,
                "golden": item.golden,
                "pulled": item.pulled,
            }
            for item in self._items
            if item.active
        ]
