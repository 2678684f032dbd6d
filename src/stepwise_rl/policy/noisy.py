"""Noise-driven selection: perturbed next-best and Ornstein-Uhlenbeck."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from stepwise_rl.policy.base import (
    ExplorationPolicy,
    PolicyConfig,
    greedy_action,
    normalized_entropy,
)
from stepwise_rl.schedule import exponential_schedule


@dataclass(frozen=True)
class NoisyNextBestConfig(PolicyConfig):
    initial_exploration_noise: float = 1.0
    min_exploration_noise: float = 0.2
    exploration_noise_decay: float = 0.999


class NoisyNextBestPolicy(ExplorationPolicy):
    """Argmax of values perturbed by Gaussian noise of decaying scale."""

    config_class = NoisyNextBestConfig
    config: NoisyNextBestConfig

    def __init__(self, config: NoisyNextBestConfig | None = None, rng: np.random.Generator | None = None) -> None:
        super().__init__(config, rng)
        self._schedule = exponential_schedule(
            self.config.initial_exploration_noise,
            self.config.exploration_noise_decay,
            self.config.min_exploration_noise,
        )

    @property
    def exploration_noise(self) -> float:
        return float(self._schedule(self.steps))

    def _explore(self, values: np.ndarray, candidates: list[int]) -> int:
        noisy = values.copy()
        noisy[candidates] += self.rng.normal(0.0, self.exploration_noise, size=len(candidates))
        return greedy_action(noisy, candidates)


class EntropyNoisyNextBestPolicy(ExplorationPolicy):
    """Take the runner-up action with probability equal to the normalised entropy."""

    def _explore(self, values: np.ndarray, candidates: list[int]) -> int:
        if len(candidates) > 1 and self.rng.random() < normalized_entropy(values[candidates]):
            # Stable sort keeps lower indices first among ties.
            order = np.argsort(-values[candidates], kind="stable")
            return candidates[int(order[1])]
        return greedy_action(values, candidates)


@dataclass(frozen=True)
class OUNoiseConfig(PolicyConfig):
    """Ornstein-Uhlenbeck process; ``sigma`` decays once per episode."""

    mu: float = 0.0
    theta: float = 0.1
    sigma: float = 0.5
    min_sigma: float = 0.01
    sigma_decay: float = 0.9999


class OUNoisePolicy(ExplorationPolicy):
    """Greedy over values plus temporally correlated noise."""

    config_class = OUNoiseConfig
    config: OUNoiseConfig

    def __init__(self, config: OUNoiseConfig | None = None, rng: np.random.Generator | None = None) -> None:
        super().__init__(config, rng)
        self.sigma = self.config.sigma
        self.noise: np.ndarray | None = None

    def _explore(self, values: np.ndarray, candidates: list[int]) -> int:
        cfg = self.config
        if self.noise is None or self.noise.shape != values.shape:
            self.noise = np.full(values.shape, cfg.mu)
        self.noise = (
            self.noise
            + cfg.theta * (cfg.mu - self.noise)
            + self.sigma * self.rng.normal(size=values.shape)
        )
        return greedy_action(values + self.noise, candidates)

    def start_episode(self) -> None:
        self.noise = None
        self.sigma = max(self.config.min_sigma, self.sigma * self.config.sigma_decay)

    def reset(self) -> None:
        super().reset()
        self.sigma = self.config.sigma
        self.noise = None
