"""Transition memories.

Memories hold :class:`~stepwise_rl.types.Transition` objects between
the step that produced them and the training pass that consumes them.
Sampling returns a :class:`MemoryBatch`, which stacks the pieces the
algorithms need into numpy arrays.

Append and sample may come from different threads (a live loop filling
the memory while a trainer samples it); both take the memory's lock and
sampling works on a snapshot of the stored entries.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from stepwise_rl.errors import ConfigurationError
from stepwise_rl.types import Transition


@dataclass(frozen=True)
class MemoryConfig:
    """Capacity and batch size shared by every memory.

    ``capacity = 0`` means unbounded (online memory only);
    ``batch_size = -1`` means "everything stored".
    """

    capacity: int = 20_000
    batch_size: int = 32

    def __post_init__(self) -> None:
        if self.capacity < 0:
            raise ConfigurationError("memory", f"capacity must be >= 0, got {self.capacity}")
        if self.batch_size == 0 or self.batch_size < -1:
            raise ConfigurationError(
                "memory", f"batch_size must be positive or -1, got {self.batch_size}"
            )


class MemoryBatch(NamedTuple):
    """A sampled batch of transitions.

    Fields:
        transitions: the sampled transitions, in sample order.
        indices: storage slots the transitions came from (for priority updates).
        weights: importance-sampling weights, all ones for unweighted memories.
    """

    transitions: tuple[Transition, ...]
    indices: np.ndarray
    weights: np.ndarray

    def __len__(self) -> int:
        return len(self.transitions)

    @property
    def features(self) -> np.ndarray:
        return np.stack([t.state.feature_vector for t in self.transitions])

    @property
    def next_features(self) -> np.ndarray:
        return np.stack([t.next_state.feature_vector for t in self.transitions])

    @property
    def actions(self) -> np.ndarray:
        return np.array([t.action for t in self.transitions], dtype=np.int32)

    @property
    def next_actions(self) -> np.ndarray:
        return np.array([t.next_action for t in self.transitions], dtype=np.int32)

    @property
    def rewards(self) -> np.ndarray:
        return np.array([t.reward for t in self.transitions], dtype=np.float32)

    @property
    def terminals(self) -> np.ndarray:
        return np.array([t.terminal for t in self.transitions], dtype=np.bool_)

    def next_action_mask(self, number_of_actions: int) -> np.ndarray:
        """Boolean ``(B, A)`` mask of the actions available in each next state."""
        mask = np.zeros((len(self.transitions), number_of_actions), dtype=np.bool_)
        for row, t in enumerate(self.transitions):
            for action in t.next_state.available_actions:
                mask[row, action] = True
        return mask

    @staticmethod
    def of(transitions: list[Transition] | tuple[Transition, ...]) -> MemoryBatch:
        """Wrap transitions that did not come from a memory."""
        n = len(transitions)
        return MemoryBatch(
            tuple(transitions),
            np.arange(n, dtype=np.int64),
            np.ones(n, dtype=np.float32),
        )


class Memory(ABC):
    """Bounded store of transitions."""

    def __init__(self, config: MemoryConfig, rng: np.random.Generator | None = None) -> None:
        self.config = config
        self.capacity = config.capacity
        self.batch_size = config.batch_size
        self._rng = rng if rng is not None else np.random.default_rng()
        self._lock = threading.Lock()

    @abstractmethod
    def add(self, transition: Transition) -> None:
        """Store one transition, evicting if the memory is full."""

    @abstractmethod
    def sample(self) -> MemoryBatch:
        """Draw a training batch."""

    @abstractmethod
    def __len__(self) -> int: ...

    def ready(self) -> bool:
        """Whether enough transitions are stored to draw a batch."""
        needed = 1 if self.batch_size == -1 else self.batch_size
        return len(self) >= needed

    def update_priorities(self, indices: np.ndarray, td_errors: np.ndarray) -> None:
        """Feed back TD errors; a no-op for memories without priorities."""
        return None

    @abstractmethod
    def clear(self) -> None: ...
