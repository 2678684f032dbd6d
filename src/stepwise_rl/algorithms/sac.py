"""Soft actor-critic for discrete actions.

Twin action-value estimators, each with a target copy, and a softmax
policy trained to minimise ``sum_a pi(a|s) * (alpha * log pi(a|s) - min Q(s, a))``.
The critic target is the soft state value of the next state::

    V(s') = sum_a pi(a|s') * (min(Q1_t, Q2_t)(s', a) - alpha * log pi(a|s'))

restricted to the actions available in ``s'``. With ``auto_soft_alpha``
the temperature follows the entropy target by gradient descent on
``alpha * (H(pi) - target_entropy)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import jax
import jax.numpy as jnp
import numpy as np
import optax

from stepwise_rl.algorithms.base import AlgorithmConfig, LearningAlgorithm, td_target
from stepwise_rl.errors import ConfigurationError
from stepwise_rl.estimator import (
    EstimatorConfig,
    EstimatorKind,
    FunctionEstimator,
    LossParams,
    Objective,
    make_estimator,
)
from stepwise_rl.memory import Memory, MemoryBatch
from stepwise_rl.seeding import split_keys
from stepwise_rl.types import EnvironmentState

logger = logging.getLogger(__name__)

_LOG_EPS = 1e-8


@dataclass(frozen=True)
class SACConfig(AlgorithmConfig):
    soft_q_alpha: float = 1.0
    auto_soft_alpha: bool = True
    alpha_learning_rate: float = 3e-4
    target_entropy_scale: float = 0.98

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.soft_q_alpha <= 0.0:
            raise ConfigurationError("algorithm", "soft_q_alpha must be positive")

    def make_alpha_optimizer(self) -> optax.GradientTransformation:
        return optax.adam(self.alpha_learning_rate)


def _alpha_loss(log_alpha: jax.Array, entropy: jax.Array, target_entropy: jax.Array) -> jax.Array:
    return jnp.exp(log_alpha) * (entropy - target_entropy)


class SoftActorCriticDiscrete(LearningAlgorithm):
    """Discrete SAC with twin critics and automatic temperature."""

    config_class = SACConfig
    config: SACConfig

    def __init__(
        self,
        config: SACConfig,
        estimator_config: EstimatorConfig,
        input_size: int,
        number_of_actions: int,
        memory: Memory,
        *,
        key: jax.Array,
    ) -> None:
        super().__init__(config, number_of_actions)
        _, policy_key, q1_key, q2_key = split_keys(key, n=3)
        self.policy = make_estimator(
            EstimatorKind.POLICY, input_size, number_of_actions, estimator_config,
            key=policy_key, memory=memory, name="policy", objective=Objective.SOFT_POLICY,
        )
        self.q1 = make_estimator(
            EstimatorKind.ACTION_VALUE, input_size, number_of_actions, estimator_config, key=q1_key, name="q1"
        )
        self.q2 = make_estimator(
            EstimatorKind.ACTION_VALUE, input_size, number_of_actions, estimator_config, key=q2_key, name="q2"
        )
        self.q1.enable_target()
        self.q2.enable_target()
        self.target_entropy = config.target_entropy_scale * float(np.log(max(number_of_actions, 2)))
        self.log_alpha = jnp.log(jnp.float32(config.soft_q_alpha))
        self._alpha_optimizer = config.make_alpha_optimizer()
        self._alpha_opt_state = self._alpha_optimizer.init(self.log_alpha)

    @property
    def alpha(self) -> float:
        return float(jnp.exp(self.log_alpha))

    @property
    def primary(self) -> FunctionEstimator:
        return self.policy

    @property
    def estimators(self) -> list[FunctionEstimator]:
        return [self.policy, self.q1, self.q2]

    def action_values(self, state: EnvironmentState) -> np.ndarray:
        return self.policy.predict(state.feature_vector)

    def _next_values(self, batch: MemoryBatch) -> np.ndarray:
        next_features = batch.next_features
        mask = batch.next_action_mask(self.number_of_actions)
        probs = self.policy.predict_batch(next_features) * mask
        totals = probs.sum(axis=-1, keepdims=True)
        probs = np.divide(probs, totals, out=np.zeros_like(probs), where=totals > 0.0)
        min_q = np.minimum(
            self.q1.predict_target_batch(next_features), self.q2.predict_target_batch(next_features)
        )
        soft = np.where(mask, min_q - self.alpha * np.log(probs + _LOG_EPS), 0.0)
        return np.sum(probs * soft, axis=-1)

    def _fit_critic(self, q: FunctionEstimator, batch: MemoryBatch, targets_td: np.ndarray) -> tuple[float, np.ndarray]:
        features = batch.features
        predictions = q.predict_batch(features)
        rows = np.arange(len(batch))
        td_errors = targets_td - predictions[rows, batch.actions]
        targets = predictions.copy()
        targets[rows, batch.actions] = targets_td
        return q.fit(features, targets, batch.weights), td_errors

    def _update_alpha(self, entropy: float) -> float:
        loss, grad = jax.value_and_grad(_alpha_loss)(
            self.log_alpha, jnp.float32(entropy), jnp.float32(self.target_entropy)
        )
        updates, self._alpha_opt_state = self._alpha_optimizer.update(grad, self._alpha_opt_state)
        self.log_alpha = optax.apply_updates(self.log_alpha, updates)
        return float(loss)

    def _train_batch(self, batch: MemoryBatch) -> dict[str, float]:
        targets_td = td_target(batch.rewards, self._next_values(batch), batch.terminals, self.config.gamma)
        q1_loss, td_errors = self._fit_critic(self.q1, batch, targets_td)
        q2_loss, _ = self._fit_critic(self.q2, batch, targets_td)
        self.policy.update_priorities(batch, td_errors)

        features = batch.features
        min_q = np.minimum(self.q1.predict_batch(features), self.q2.predict_batch(features))
        policy_loss = self.policy.fit(
            features, min_q, batch.weights, loss_params=LossParams(alpha=self.alpha)
        )
        probs = self.policy.predict_batch(features)
        entropy = float(np.mean(-np.sum(probs * np.log(probs + _LOG_EPS), axis=-1)))
        metrics = {
            "q1_loss": q1_loss,
            "q2_loss": q2_loss,
            "policy_loss": policy_loss,
            "entropy": entropy,
        }
        if self.config.auto_soft_alpha:
            metrics["alpha_loss"] = self._update_alpha(entropy)
        metrics["alpha"] = self.alpha
        return metrics
