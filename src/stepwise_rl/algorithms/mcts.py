"""Search-guided learning.

Actions come from :class:`~stepwise_rl.policy.MCTSPolicy`, which walks a
search tree using the policy estimator as prior. When an episode ends
its undiscounted returns are backed up through the tree, then the value
estimator regresses toward those returns and the policy estimator
toward the tree's visit distribution at every step of the episode.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import jax
import numpy as np

from stepwise_rl.algorithms.base import AlgorithmConfig, LearningAlgorithm, discounted_returns
from stepwise_rl.estimator import (
    EstimatorConfig,
    EstimatorKind,
    FunctionEstimator,
    make_estimator,
)
from stepwise_rl.memory import MemoryBatch
from stepwise_rl.policy import MCTSPolicy
from stepwise_rl.seeding import split_key
from stepwise_rl.types import EnvironmentState, Transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MCTSLearningConfig(AlgorithmConfig):
    gamma: float = 1.0


class MCTSLearning(LearningAlgorithm):
    """Episode-level value and policy targets from tree search."""

    config_class = MCTSLearningConfig
    config: MCTSLearningConfig
    episodic_update = True

    def __init__(
        self,
        config: MCTSLearningConfig,
        estimator_config: EstimatorConfig,
        input_size: int,
        number_of_actions: int,
        search: MCTSPolicy,
        *,
        key: jax.Array,
    ) -> None:
        super().__init__(config, number_of_actions)
        policy_key, value_key = split_key(key)
        self.search = search
        self.policy = make_estimator(
            EstimatorKind.POLICY, input_size, number_of_actions, estimator_config, key=policy_key, name="policy"
        )
        self.value = make_estimator(
            EstimatorKind.STATE_VALUE, input_size, number_of_actions, estimator_config, key=value_key, name="value"
        )
        self._episode: list[Transition] = []
        self._features: list[np.ndarray] = []
        self._policy_targets: list[np.ndarray] = []
        self._returns: list[np.ndarray] = []

    @property
    def primary(self) -> FunctionEstimator:
        return self.policy

    @property
    def estimators(self) -> list[FunctionEstimator]:
        return [self.policy, self.value]

    def action_values(self, state: EnvironmentState) -> np.ndarray:
        return self.policy.predict(state.feature_vector)

    def observe(self, transition: Transition) -> None:
        self._episode.append(transition)

    def end_episode(self) -> None:
        if not self._episode:
            return
        batch = MemoryBatch.of(self._episode)
        returns = discounted_returns(batch.rewards, batch.terminals, self.config.gamma)
        self.search.backup(list(returns))
        self._features.append(batch.features)
        self._policy_targets.append(self.search.visit_targets(self.number_of_actions))
        self._returns.append(returns)
        self._episode = []

    def ready(self) -> bool:
        return bool(self._features)

    def train(self) -> dict[str, float]:
        if not self._features:
            return {}
        features = np.concatenate(self._features)
        policy_targets = np.concatenate(self._policy_targets)
        returns = np.concatenate(self._returns)
        self._features, self._policy_targets, self._returns = [], [], []
        value_loss = self.value.fit(features, returns[:, None])
        policy_loss = self.policy.fit(features, policy_targets)
        self.train_steps += 1
        return {"value_loss": value_loss, "policy_loss": policy_loss, "return_mean": float(np.mean(returns))}

    def reset(self) -> None:
        self._episode = []
        self._features, self._policy_targets, self._returns = [], [], []
        self.search.reset()
