"""First-in first-out memory drained on every sample."""

from __future__ import annotations

import logging
from collections import deque

import numpy as np

from stepwise_rl.memory.base import Memory, MemoryBatch, MemoryConfig
from stepwise_rl.types import Transition

logger = logging.getLogger(__name__)


class OnlineMemory(Memory):
    """Holds the transitions since the last training pass.

    ``sample()`` returns every stored transition in insertion order and
    empties the memory. With a positive capacity the oldest transitions
    are dropped first.
    """

    def __init__(self, config: MemoryConfig | None = None, rng: np.random.Generator | None = None) -> None:
        super().__init__(config or MemoryConfig(capacity=0, batch_size=-1), rng)
        self._items: deque[Transition] = deque(maxlen=self.capacity or None)

    def add(self, transition: Transition) -> None:
        with self._lock:
            if self.capacity and len(self._items) == self.capacity:
                logger.debug("online memory full (%d); evicting oldest", self.capacity)
            self._items.append(transition)

    def sample(self) -> MemoryBatch:
        with self._lock:
            items = tuple(self._items)
            self._items.clear()
        return MemoryBatch.of(items)

    def peek(self) -> tuple[Transition, ...]:
        """Snapshot of stored transitions without draining them."""
        with self._lock:
            return tuple(self._items)

    def ready(self) -> bool:
        return len(self) > 0

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
