"""Proportional prioritized replay (Schaul et al., 2015).

New transitions are inserted with the current maximum priority so each
is sampled at least once. Priorities are ``(|td_error| + 1e-8) ** alpha``
and importance-sampling weights ``(N * P(i)) ** -beta``, normalised by
their maximum, correct for the non-uniform sampling. ``beta`` anneals
toward 1 by ``beta_step_size`` per sample.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from stepwise_rl.errors import ConfigurationError
from stepwise_rl.memory.base import Memory, MemoryBatch, MemoryConfig
from stepwise_rl.types import Transition

logger = logging.getLogger(__name__)

_EPSILON = 1e-8


@dataclass(frozen=True)
class PriorityMemoryConfig(MemoryConfig):
    alpha: float = 0.6
    beta: float = 0.4
    beta_step_size: float = 0.001
    apply_importance_sampling_weights: bool = True

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.capacity <= 0:
            raise ConfigurationError("memory", "priority memory needs a positive capacity")
        if not 0.0 <= self.beta <= 1.0:
            raise ConfigurationError("memory", f"beta must be in [0, 1], got {self.beta}")


class SumTree:
    """Binary tree where parent = sum of children. Enables O(log n) proportional sampling."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self.tree = np.zeros(2 * capacity - 1, dtype=np.float64)

    def update(self, data_idx: int, priority: float) -> None:
        tree_idx = data_idx + self.capacity - 1
        delta = priority - self.tree[tree_idx]
        self.tree[tree_idx] = priority
        while tree_idx > 0:
            tree_idx = (tree_idx - 1) // 2
            self.tree[tree_idx] += delta

    def get(self, value: float) -> int:
        """Retrieve the leaf data index whose cumulative sum covers `value`."""
        idx = 0
        while idx < self.capacity - 1:
            left = 2 * idx + 1
            if value <= self.tree[left]:
                idx = left
            else:
                value -= self.tree[left]
                idx = left + 1
        return idx - (self.capacity - 1)

    def priority(self, data_idx: int) -> float:
        return float(self.tree[data_idx + self.capacity - 1])

    @property
    def total(self) -> float:
        return float(self.tree[0])


class PriorityMemory(Memory):
    """Replay memory sampled in proportion to TD-error priority."""

    config: PriorityMemoryConfig

    def __init__(
        self,
        config: PriorityMemoryConfig | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        config = config or PriorityMemoryConfig()
        super().__init__(config, rng)
        self.alpha = config.alpha
        self.beta = config.beta
        self._tree = SumTree(self.capacity)
        self._items: list[Transition | None] = [None] * self.capacity
        self._max_priority = 1.0
        self._size = 0
        self._ptr = 0

    def add(self, transition: Transition) -> None:
        with self._lock:
            idx = self._ptr
            self._items[idx] = transition
            self._tree.update(idx, self._max_priority)
            self._ptr = (self._ptr + 1) % self.capacity
            self._size = min(self._size + 1, self.capacity)

    def sample(self) -> MemoryBatch:
        with self._lock:
            size = self._size
            if size == 0:
                return MemoryBatch.of(())
            batch_size = size if self.batch_size == -1 else self.batch_size
            beta = self.beta
            self.beta = min(1.0, self.beta + self.config.beta_step_size)

            indices = np.zeros(batch_size, dtype=np.int64)
            priorities = np.zeros(batch_size, dtype=np.float64)
            total = self._tree.total
            segment = total / batch_size
            for i in range(batch_size):
                value = self._rng.uniform(segment * i, segment * (i + 1))
                idx = min(self._tree.get(value), size - 1)
                indices[i] = idx
                priorities[i] = self._tree.priority(idx)
            transitions = tuple(self._items[i] for i in indices)

        if self.config.apply_importance_sampling_weights:
            probs = priorities / total
            weights = (size * probs) ** (-beta)
            weights /= weights.max()
        else:
            weights = np.ones(batch_size, dtype=np.float64)
        return MemoryBatch(transitions, indices, weights.astype(np.float32))

    def update_priorities(self, indices: np.ndarray, td_errors: np.ndarray) -> None:
        priorities = (np.abs(np.asarray(td_errors, dtype=np.float64)) + _EPSILON) ** self.alpha
        with self._lock:
            for idx, p in zip(indices, priorities):
                self._tree.update(int(idx), float(p))
                self._max_priority = max(self._max_priority, float(p))

    def priorities(self) -> np.ndarray:
        """Current priority of every stored slot."""
        with self._lock:
            return np.array([self._tree.priority(i) for i in range(self._size)])

    def clear(self) -> None:
        with self._lock:
            self._tree = SumTree(self.capacity)
            self._items = [None] * self.capacity
            self._max_priority = 1.0
            self._size = 0
            self._ptr = 0

    def __len__(self) -> int:
        return self._size
