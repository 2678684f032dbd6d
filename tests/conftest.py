"""Shared fixtures.

Networks are kept small so the end-to-end tests stay fast on CPU.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import jax
import numpy as np
import pytest

from stepwise_rl.env import Maze, TravellingSalesman
from stepwise_rl.estimator import EstimatorConfig
from stepwise_rl.types import EnvironmentState, Transition


class RewardSink:
    """Stands in for an agent when driving an environment directly."""

    def __init__(self) -> None:
        self.rewards: list[float] = []

    def respond(self, reward: float) -> None:
        self.rewards.append(reward)


@pytest.fixture
def key() -> jax.Array:
    return jax.random.PRNGKey(0)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(0)


@pytest.fixture
def sink() -> RewardSink:
    return RewardSink()


@pytest.fixture
def small_config() -> EstimatorConfig:
    return EstimatorConfig(hidden_size=16, hidden_layers=1, learning_rate=1e-2)


@pytest.fixture
def tsp() -> TravellingSalesman:
    env = TravellingSalesman(number_of_cities=5, seed=0)
    env.reset()
    return env


@pytest.fixture
def maze() -> Maze:
    return Maze(size=9, seed=0)


@pytest.fixture
def make_transition() -> Callable[..., Transition]:
    """Factory for transitions between hand-made states."""

    def _make(
        features: Sequence[float] = (1.0, 0.0),
        action: int = 0,
        reward: float = 0.0,
        next_features: Sequence[float] | None = None,
        terminal: bool = False,
        actions: Sequence[int] = (0, 1),
        next_action: int = -1,
    ) -> Transition:
        state = EnvironmentState.create(features, actions)
        next_state = EnvironmentState.create(
            next_features if next_features is not None else features,
            () if terminal else actions,
            time_step=1,
            terminal=terminal,
        )
        return Transition(state, action, reward, next_state, terminal, next_action)

    return _make
