"""Sampling-based selection."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from stepwise_rl.errors import ConfigurationError
from stepwise_rl.policy.base import ExplorationPolicy, PolicyConfig, greedy_action, softmax
from stepwise_rl.schedule import exponential_schedule


@dataclass(frozen=True)
class SampledConfig(PolicyConfig):
    threshold_initial: float = 1.0
    threshold_min: float = 0.2
    threshold_decay: float = 0.999


class SampledPolicy(ExplorationPolicy):
    """Below a decaying threshold sample from a softmax of the values, else greedy."""

    config_class = SampledConfig
    config: SampledConfig

    def __init__(self, config: SampledConfig | None = None, rng: np.random.Generator | None = None) -> None:
        super().__init__(config, rng)
        self._schedule = exponential_schedule(
            self.config.threshold_initial, self.config.threshold_decay, self.config.threshold_min
        )

    @property
    def threshold(self) -> float:
        return float(self._schedule(self.steps))

    def _explore(self, values: np.ndarray, candidates: list[int]) -> int:
        if self.rng.random() < self.threshold:
            probs = softmax(values[candidates])
            return candidates[int(self.rng.choice(len(candidates), p=probs))]
        return greedy_action(values, candidates)


@dataclass(frozen=True)
class MultinomialConfig(PolicyConfig):
    number_of_trials: int = 1

    def __post_init__(self) -> None:
        if self.number_of_trials < 1:
            raise ConfigurationError("policy", f"number_of_trials must be >= 1, got {self.number_of_trials}")


class MultinomialPolicy(ExplorationPolicy):
    """Draw from the categorical distribution the values describe.

    Negative values count as zero; all-zero values fall back to uniform.
    With several trials the most frequent draw wins.
    """

    config_class = MultinomialConfig
    config: MultinomialConfig

    def _explore(self, values: np.ndarray, candidates: list[int]) -> int:
        weights = np.clip(values[candidates], 0.0, None)
        total = weights.sum()
        probs = weights / total if total > 0.0 else np.full(len(candidates), 1.0 / len(candidates))
        counts = self.rng.multinomial(self.config.number_of_trials, probs)
        return candidates[int(np.argmax(counts))]
