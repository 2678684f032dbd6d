"""Uniform replay memory.

Fixed-size circular buffer: once full, each insertion overwrites the
oldest transition. Sampling draws ``batch_size`` slots uniformly with
replacement and leaves the contents in place.
"""

from __future__ import annotations

import numpy as np

from stepwise_rl.errors import ConfigurationError
from stepwise_rl.memory.base import Memory, MemoryBatch, MemoryConfig
from stepwise_rl.types import Transition


class ReplayMemory(Memory):
    """Fixed-size circular buffer with uniform random sampling."""

    def __init__(self, config: MemoryConfig | None = None, rng: np.random.Generator | None = None) -> None:
        super().__init__(config or MemoryConfig(), rng)
        if self.capacity <= 0:
            raise ConfigurationError("memory", "replay memory needs a positive capacity")
        self._items: list[Transition | None] = [None] * self.capacity
        self._size = 0
        self._ptr = 0

    def add(self, transition: Transition) -> None:
        with self._lock:
            self._items[self._ptr] = transition
            self._ptr = (self._ptr + 1) % self.capacity
            self._size = min(self._size + 1, self.capacity)

    def sample(self) -> MemoryBatch:
        with self._lock:
            size = self._size
            snapshot = list(self._items[:size])
        if size == 0:
            return MemoryBatch.of(())
        indices = self._rng.integers(0, size, size=size if self.batch_size == -1 else self.batch_size)
        transitions = tuple(snapshot[i] for i in indices)
        return MemoryBatch(transitions, indices.astype(np.int64), np.ones(len(indices), dtype=np.float32))

    def transitions(self) -> list[Transition]:
        """Stored transitions from oldest to newest."""
        with self._lock:
            if self._size < self.capacity:
                items = self._items[: self._size]
            else:
                items = self._items[self._ptr :] + self._items[: self._ptr]
            return [t for t in items if t is not None]

    def clear(self) -> None:
        with self._lock:
            self._items = [None] * self.capacity
            self._size = 0
            self._ptr = 0

    def __len__(self) -> int:
        return self._size
