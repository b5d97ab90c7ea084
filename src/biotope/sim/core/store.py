from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional

from .agent import Agent, AgentHandle, Species


@dataclass(slots=True)
class _Slot:
    generation: int = 0
    agent: Optional[Agent] = None


class AgentStore:
    """Slot arena for agents.

    Every cross-reference between agents is an ``AgentHandle``. Removing an
    agent bumps its slot generation, so handles taken before the removal
    resolve to ``None`` even after the slot is reused.
    """

    def __init__(self) -> None:
        self._slots: List[_Slot] = []
        self._free: List[int] = []
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[Agent]:
        for slot in self._slots:
            if slot.agent is not None:
                yield slot.agent

    def add(self, agent: Agent) -> AgentHandle:
        if self._free:
            # lowest free slot first keeps iteration order reproducible
            self._free.sort(reverse=True)
            index = self._free.pop()
            slot = self._slots[index]
        else:
            index = len(self._slots)
            slot = _Slot()
            self._slots.append(slot)
        slot.agent = agent
        handle = AgentHandle(index=index, generation=slot.generation)
        agent.handle = handle
        agent.alive = True
        self._count += 1
        return handle

    def get(self, handle: Optional[AgentHandle]) -> Optional[Agent]:
        if handle is None or handle.index >= len(self._slots):
            return None
        slot = self._slots[handle.index]
        if slot.generation != handle.generation:
            return None
        return slot.agent

    def remove(self, handle: Optional[AgentHandle]) -> Optional[Agent]:
        agent = self.get(handle)
        if agent is None:
            return None
        slot = self._slots[handle.index]
        slot.agent = None
        slot.generation += 1
        self._free.append(handle.index)
        self._count -= 1
        agent.alive = False
        return agent

    def handles(self) -> List[AgentHandle]:
        """Handles of every live agent in slot order, copied so callers may mutate the store."""
        return [
            AgentHandle(index=index, generation=slot.generation)
            for index, slot in enumerate(self._slots)
            if slot.agent is not None
        ]

    def of_species(self, species: Species) -> Iterator[Agent]:
        for agent in self:
            if agent.species is species:
                yield agent

    def count(self, species: Species) -> int:
        return sum(1 for _ in self.of_species(species))

    def clear(self) -> None:
        self._free.clear()
        for index, slot in enumerate(self._slots):
            if slot.agent is not None:
                slot.agent.alive = False
                slot.agent = None
                slot.generation += 1
            self._free.append(index)
        self._count = 0
