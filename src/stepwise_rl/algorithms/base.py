"""Learning algorithm base class and the shared TD target.

An algorithm owns its estimators and turns observed transitions into
training targets. The agent drives it through ``observe`` (store a
transition), ``ready``/``train`` (one training pass over a sampled
batch) and ``end_episode``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from stepwise_rl.errors import ConfigurationError
from stepwise_rl.estimator import FunctionEstimator
from stepwise_rl.memory import MemoryBatch
from stepwise_rl.types import EnvironmentState, Transition


@dataclass(frozen=True)
class AlgorithmConfig:
    """Discount factor shared by every algorithm."""

    gamma: float = 0.99

    def __post_init__(self) -> None:
        if not 0.0 <= self.gamma <= 1.0:
            raise ConfigurationError("algorithm", f"gamma must be in [0, 1], got {self.gamma}")


def td_target(
    reward: np.ndarray | float,
    next_value: np.ndarray | float,
    terminal: np.ndarray | bool,
    gamma: float,
) -> np.ndarray:
    """``reward + gamma * next_value``, or exactly ``reward`` for terminal transitions."""
    reward = np.asarray(reward, dtype=np.float64)
    next_value = np.asarray(next_value, dtype=np.float64)
    bootstrap = np.where(terminal, 0.0, next_value)
    return np.where(terminal, reward, reward + gamma * bootstrap)


def discounted_returns(rewards: np.ndarray, terminals: np.ndarray, gamma: float) -> np.ndarray:
    """Backward accumulation ``G_t = r_t + gamma * G_{t+1}``, restarting after terminals."""
    returns = np.zeros(len(rewards), dtype=np.float32)
    running = 0.0
    for t in reversed(range(len(rewards))):
        if terminals[t]:
            running = 0.0
        running = float(rewards[t]) + gamma * running
        returns[t] = running
    return returns


def masked_max(values: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Row-wise max over masked entries; rows with no legal entry give 0."""
    masked = np.where(mask, values, -np.inf)
    best = masked.max(axis=-1)
    return np.where(mask.any(axis=-1), best, 0.0).astype(np.float32)


def masked_argmax(values: np.ndarray, mask: np.ndarray) -> np.ndarray:
    masked = np.where(mask, values, -np.inf)
    return np.argmax(masked, axis=-1)


def action_targets(actions: np.ndarray, weights: np.ndarray, number_of_actions: int) -> np.ndarray:
    """``(B, A)`` matrix with ``weights[i]`` at ``actions[i]`` and zeros elsewhere."""
    targets = np.zeros((len(actions), number_of_actions), dtype=np.float32)
    targets[np.arange(len(actions)), actions] = weights
    return targets


class LearningAlgorithm(ABC):
    """Turns transitions into estimator updates."""

    config_class: ClassVar[type[AlgorithmConfig]] = AlgorithmConfig
    # Algorithms that need whole episodes train only when an episode ends.
    episodic_update: ClassVar[bool] = False

    def __init__(self, config: AlgorithmConfig, number_of_actions: int) -> None:
        self.config = config
        self.number_of_actions = number_of_actions
        self.train_steps = 0

    @property
    @abstractmethod
    def primary(self) -> FunctionEstimator:
        """The estimator whose memory receives transitions."""

    @property
    @abstractmethod
    def estimators(self) -> list[FunctionEstimator]: ...

    @abstractmethod
    def action_values(self, state: EnvironmentState) -> np.ndarray:
        """Output vector the exploration policy selects from."""

    def observe(self, transition: Transition) -> None:
        self.primary.store(transition)

    def ready(self) -> bool:
        return self.primary.memory_ready()

    def train(self) -> dict[str, float]:
        """One training pass; returns scalar metrics (empty if nothing was stored)."""
        batch = self.primary.sample()
        if len(batch) == 0:
            return {}
        metrics = self._train_batch(batch)
        self.train_steps += 1
        return metrics

    def _train_batch(self, batch: MemoryBatch) -> dict[str, float]:
        """One update from a sampled batch; algorithms that keep their own
        training data override :meth:`train` instead."""
        raise NotImplementedError(f"{type(self).__name__} does not train from memory batches")

    def end_episode(self) -> None:
        """Flush per-episode state before the end-of-episode training pass."""

    def reset(self) -> None:
        """Drop running statistics and stored transitions."""
        for estimator in self.estimators:
            if estimator.memory is not None:
                estimator.memory.clear()
