"""Policy-gradient methods: REINFORCE, actor-critic and PPO.

The policy estimator outputs action probabilities and is trained on
``-advantage * log pi(a|s)`` (minus an entropy bonus when enabled).

- REINFORCE: advantage is the discounted episode return, optionally
  normalised by running mean and standard deviation.
- Actor-critic: a state-value critic supplies
  ``advantage = reward + gamma * V(s') - V(s)`` and is regressed toward
  the TD target.
- PPO: as actor-critic, with the probability ratio to a periodically
  refreshed copy of the policy clipped to ``[1 - eps, 1 + eps]``.

Actor-critic and PPO can share one network producing ``[V(s); pi(.|s)]``
(``single_function_estimator``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import jax
import numpy as np

from stepwise_rl.algorithms.base import (
    AlgorithmConfig,
    LearningAlgorithm,
    action_targets,
    discounted_returns,
    td_target,
)
from stepwise_rl.errors import ConfigurationError
from stepwise_rl.estimator import (
    EstimatorConfig,
    EstimatorKind,
    FunctionEstimator,
    LossParams,
    make_estimator,
)
from stepwise_rl.memory import Memory, MemoryBatch
from stepwise_rl.seeding import split_key
from stepwise_rl.types import EnvironmentState, Transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyGradientConfig(AlgorithmConfig):
    apply_entropy: bool = True
    entropy_coefficient: float = 0.01

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.entropy_coefficient < 0.0:
            raise ConfigurationError("algorithm", "entropy_coefficient must be >= 0")

    @property
    def loss_params(self) -> LossParams:
        return LossParams(entropy_coefficient=self.entropy_coefficient if self.apply_entropy else 0.0)


@dataclass(frozen=True)
class ReinforceConfig(PolicyGradientConfig):
    use_baseline: bool = True
    baseline_tau: float = 0.9


class Reinforce(LearningAlgorithm):
    """Monte-Carlo policy gradient over complete episodes.

    The latest transition is held back until the next one arrives or the
    episode ends, so an episode cut off before its terminal state still
    closes its return: the held transition is stored as terminal.
    """

    config_class = ReinforceConfig
    config: ReinforceConfig
    episodic_update = True

    def __init__(
        self,
        config: ReinforceConfig,
        estimator_config: EstimatorConfig,
        input_size: int,
        number_of_actions: int,
        memory: Memory,
        *,
        key: jax.Array,
    ) -> None:
        super().__init__(config, number_of_actions)
        self.policy = make_estimator(
            EstimatorKind.POLICY, input_size, number_of_actions, estimator_config,
            key=key, memory=memory, name="policy",
        )
        self.return_mean: float | None = None
        self.return_std: float | None = None
        self._pending: Transition | None = None

    @property
    def primary(self) -> FunctionEstimator:
        return self.policy

    @property
    def estimators(self) -> list[FunctionEstimator]:
        return [self.policy]

    def action_values(self, state: EnvironmentState) -> np.ndarray:
        return self.policy.predict(state.feature_vector)

    def observe(self, transition: Transition) -> None:
        if self._pending is not None:
            self.policy.store(self._pending)
            self._pending = None
        if transition.terminal:
            self.policy.store(transition)
        else:
            self._pending = transition

    def end_episode(self) -> None:
        if self._pending is not None:
            self.policy.store(self._pending._replace(terminal=True))
            self._pending = None

    def _baseline(self, returns: np.ndarray) -> np.ndarray:
        mean, std = float(np.mean(returns)), float(np.std(returns))
        if self.return_mean is None or self.return_std is None:
            self.return_mean, self.return_std = mean, std
        else:
            tau = self.config.baseline_tau
            self.return_mean = tau * self.return_mean + (1.0 - tau) * mean
            self.return_std = tau * self.return_std + (1.0 - tau) * std
        return (returns - self.return_mean) / (self.return_std + 1e-8)

    def _train_batch(self, batch: MemoryBatch) -> dict[str, float]:
        returns = discounted_returns(batch.rewards, batch.terminals, self.config.gamma)
        advantages = self._baseline(returns) if self.config.use_baseline else returns
        targets = action_targets(batch.actions, advantages, self.number_of_actions)
        loss = self.policy.fit(batch.features, targets, batch.weights, loss_params=self.config.loss_params)
        return {"policy_loss": loss, "return_mean": float(np.mean(returns))}

    def reset(self) -> None:
        super().reset()
        self.return_mean = None
        self.return_std = None
        self._pending = None


@dataclass(frozen=True)
class ActorCriticConfig(PolicyGradientConfig):
    single_function_estimator: bool = False


class ActorCritic(LearningAlgorithm):
    """Advantage actor-critic with a state-value critic."""

    config_class = ActorCriticConfig
    config: ActorCriticConfig

    def __init__(
        self,
        config: ActorCriticConfig,
        estimator_config: EstimatorConfig,
        input_size: int,
        number_of_actions: int,
        memory: Memory,
        *,
        key: jax.Array,
    ) -> None:
        super().__init__(config, number_of_actions)
        policy_key, critic_key = split_key(key)
        self.critic: FunctionEstimator | None = None
        if config.single_function_estimator:
            self.policy = make_estimator(
                EstimatorKind.POLICY_VALUE, input_size, number_of_actions, estimator_config,
                key=policy_key, memory=memory, name="policy_value",
            )
        else:
            self.policy = make_estimator(
                EstimatorKind.POLICY, input_size, number_of_actions, estimator_config,
                key=policy_key, memory=memory, name="policy",
            )
            self.critic = make_estimator(
                EstimatorKind.STATE_VALUE, input_size, number_of_actions, estimator_config,
                key=critic_key, name="critic",
            )

    @property
    def primary(self) -> FunctionEstimator:
        return self.policy

    @property
    def estimators(self) -> list[FunctionEstimator]:
        return [self.policy] if self.critic is None else [self.policy, self.critic]

    def action_values(self, state: EnvironmentState) -> np.ndarray:
        output = self.policy.predict(state.feature_vector)
        return output[1:] if self.critic is None else output

    def _values(self, features: np.ndarray) -> np.ndarray:
        if self.critic is None:
            return self.policy.predict_batch(features)[:, 0]
        return self.critic.predict_batch(features)[:, 0]

    def _reference(self, features: np.ndarray) -> np.ndarray | None:
        """Previous-policy probabilities for the proximal surrogate; none here."""
        return None

    def _train_batch(self, batch: MemoryBatch) -> dict[str, float]:
        features = batch.features
        values = self._values(features)
        next_values = self._values(batch.next_features)
        targets_td = td_target(batch.rewards, next_values, batch.terminals, self.config.gamma)
        advantages = targets_td - values
        policy_targets = action_targets(batch.actions, advantages, self.number_of_actions)
        reference = self._reference(features)
        loss_params = self._loss_params()
        metrics = {"advantage": float(np.mean(advantages)), "value_mean": float(np.mean(values))}
        if self.critic is None:
            targets = np.concatenate([targets_td[:, None], policy_targets], axis=1)
            metrics["loss"] = self.policy.fit(features, targets, batch.weights, reference, loss_params)
        else:
            metrics["value_loss"] = self.critic.fit(features, targets_td[:, None], batch.weights)
            metrics["policy_loss"] = self.policy.fit(
                features, policy_targets, batch.weights, reference, loss_params
            )
        self._after_update()
        return metrics

    def _loss_params(self) -> LossParams:
        return self.config.loss_params

    def _after_update(self) -> None:
        return None


@dataclass(frozen=True)
class PPOConfig(ActorCriticConfig):
    clip_epsilon: float = 0.2
    policy_update_cycle: int = 1

    def __post_init__(self) -> None:
        super().__post_init__()
        if not 0.0 < self.clip_epsilon < 1.0:
            raise ConfigurationError("algorithm", f"clip_epsilon must be in (0, 1), got {self.clip_epsilon}")
        if self.policy_update_cycle < 1:
            raise ConfigurationError("algorithm", "policy_update_cycle must be >= 1")


class ProximalPolicyOptimization(ActorCritic):
    """Actor-critic with a clipped probability ratio to the previous policy."""

    config_class = PPOConfig
    config: PPOConfig

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.previous_policy = self.policy.snapshot()
        self.policy_updates = 0

    def _reference(self, features: np.ndarray) -> np.ndarray:
        return self.previous_policy.predict_batch(features)

    def _loss_params(self) -> LossParams:
        return self.config.loss_params._replace(clip_epsilon=self.config.clip_epsilon)

    def _after_update(self) -> None:
        self.policy_updates += 1
        if self.policy_updates % self.config.policy_update_cycle == 0:
            self.previous_policy.load_parameters(self.policy.clone_parameters())
