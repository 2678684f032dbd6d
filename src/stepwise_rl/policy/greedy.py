"""Greedy and epsilon-greedy selection."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from stepwise_rl.errors import ConfigurationError
from stepwise_rl.policy.base import (
    ExplorationPolicy,
    PolicyConfig,
    greedy_action,
    normalized_entropy,
)
from stepwise_rl.schedule import exponential_schedule, linear_schedule


class GreedyPolicy(ExplorationPolicy):
    """Always the highest value; deterministic."""

    def _explore(self, values: np.ndarray, candidates: list[int]) -> int:
        return greedy_action(values, candidates)


@dataclass(frozen=True)
class EpsilonGreedyConfig(PolicyConfig):
    """Exploration rate schedule.

    Exponential by default: ``max(epsilon_min, epsilon_initial * rate**k)``.
    ``epsilon_decay_steps > 0`` switches to a linear ramp over that many
    steps. ``epsilon_decay_by_update`` advances ``k`` once per training
    pass instead of once per selection.
    """

    epsilon_initial: float = 1.0
    epsilon_min: float = 0.2
    epsilon_decay_rate: float = 0.999
    epsilon_decay_steps: int = 0
    epsilon_decay_by_update: bool = False

    def __post_init__(self) -> None:
        if not 0.0 <= self.epsilon_min <= 1.0 or not 0.0 <= self.epsilon_initial <= 1.0:
            raise ConfigurationError("policy", "epsilon values must lie in [0, 1]")
        if not 0.0 < self.epsilon_decay_rate <= 1.0:
            raise ConfigurationError("policy", "epsilon_decay_rate must be in (0, 1]")


class EpsilonGreedyPolicy(ExplorationPolicy):
    """Uniform random action with probability epsilon, else greedy."""

    config_class = EpsilonGreedyConfig
    config: EpsilonGreedyConfig

    def __init__(self, config: EpsilonGreedyConfig | None = None, rng: np.random.Generator | None = None) -> None:
        super().__init__(config, rng)
        cfg = self.config
        if cfg.epsilon_decay_steps > 0:
            self._schedule = linear_schedule(cfg.epsilon_initial, cfg.epsilon_min, cfg.epsilon_decay_steps)
        else:
            self._schedule = exponential_schedule(cfg.epsilon_initial, cfg.epsilon_decay_rate, cfg.epsilon_min)
        self.updates = 0

    @property
    def epsilon(self) -> float:
        k = self.updates if self.config.epsilon_decay_by_update else self.steps
        return float(self._schedule(k))

    def _explore(self, values: np.ndarray, candidates: list[int]) -> int:
        if self.rng.random() < self.epsilon:
            return int(self.rng.choice(candidates))
        return greedy_action(values, candidates)

    def on_update(self) -> None:
        self.updates += 1

    def reset(self) -> None:
        super().reset()
        self.updates = 0


class EntropyGreedyPolicy(ExplorationPolicy):
    """Explore uniformly with probability equal to the normalised entropy of the values."""

    def _explore(self, values: np.ndarray, candidates: list[int]) -> int:
        if self.rng.random() < normalized_entropy(values[candidates]):
            return int(self.rng.choice(candidates))
        return greedy_action(values, candidates)
