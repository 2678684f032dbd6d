"""Learning algorithms, selectable by :class:`AlgorithmType`.

Usage::

    params = parse_params("gamma = 0.95, targetFunctionUpdateCycle = 100")
    algorithm = make_algorithm(AlgorithmType.DQN, params, input_size=52, number_of_actions=4, key=key)
"""

from __future__ import annotations

import enum
from collections.abc import Mapping

import jax
import numpy as np

from stepwise_rl.algorithms.base import (
    AlgorithmConfig,
    LearningAlgorithm,
    action_targets,
    discounted_returns,
    masked_argmax,
    masked_max,
    td_target,
)
from stepwise_rl.algorithms.mcts import MCTSLearning, MCTSLearningConfig
from stepwise_rl.algorithms.policy_gradient import (
    ActorCritic,
    ActorCriticConfig,
    PolicyGradientConfig,
    PPOConfig,
    ProximalPolicyOptimization,
    Reinforce,
    ReinforceConfig,
)
from stepwise_rl.algorithms.sac import SACConfig, SoftActorCriticDiscrete
from stepwise_rl.algorithms.value import DoubleQLearning, QLearning, Sarsa, ValueLearningConfig
from stepwise_rl.errors import ConfigurationError
from stepwise_rl.estimator import EstimatorConfig
from stepwise_rl.memory import MemoryType, make_memory
from stepwise_rl.params import config_fields, config_from_params
from stepwise_rl.policy import MCTSPolicy


class AlgorithmType(enum.Enum):
    QN = "qn"
    DQN = "dqn"
    DDQN = "ddqn"
    SARSA = "sarsa"
    REINFORCE = "reinforce"
    ACTOR_CRITIC = "actor_critic"
    PPO = "ppo"
    SAC_DISCRETE = "sac_discrete"
    MCTS = "mcts"


_ALGORITHMS: dict[AlgorithmType, type[LearningAlgorithm]] = {
    AlgorithmType.QN: QLearning,
    AlgorithmType.DQN: QLearning,
    AlgorithmType.DDQN: DoubleQLearning,
    AlgorithmType.SARSA: Sarsa,
    AlgorithmType.REINFORCE: Reinforce,
    AlgorithmType.ACTOR_CRITIC: ActorCritic,
    AlgorithmType.PPO: ProximalPolicyOptimization,
    AlgorithmType.SAC_DISCRETE: SoftActorCriticDiscrete,
    AlgorithmType.MCTS: MCTSLearning,
}

DEFAULT_MEMORY: dict[AlgorithmType, MemoryType] = {
    AlgorithmType.QN: MemoryType.ONLINE,
    AlgorithmType.DQN: MemoryType.ONLINE,
    AlgorithmType.DDQN: MemoryType.PRIORITY,
    AlgorithmType.SARSA: MemoryType.ONLINE,
    AlgorithmType.REINFORCE: MemoryType.ONLINE,
    AlgorithmType.ACTOR_CRITIC: MemoryType.ONLINE,
    AlgorithmType.PPO: MemoryType.ONLINE,
    AlgorithmType.SAC_DISCRETE: MemoryType.PRIORITY,
    AlgorithmType.MCTS: MemoryType.ONLINE,
}

# Estimator defaults that differ per algorithm when the parameter string is silent.
_ESTIMATOR_DEFAULTS: dict[AlgorithmType, dict[str, object]] = {
    AlgorithmType.QN: {"learning_rate": 0.1},
    AlgorithmType.SAC_DISCRETE: {"target_function_tau": 0.005},
}


def algorithm_keys(kind: AlgorithmType) -> set[str]:
    """Parameter names an algorithm of *kind* and its estimators recognise."""
    return config_fields(_ALGORITHMS[kind].config_class) | config_fields(EstimatorConfig)


def make_algorithm(
    kind: AlgorithmType,
    params: Mapping[str, str] | None,
    input_size: int,
    number_of_actions: int,
    *,
    key: jax.Array,
    rng: np.random.Generator | None = None,
    memory_type: MemoryType | None = None,
    search: MCTSPolicy | None = None,
) -> LearningAlgorithm:
    """Build an algorithm of *kind* together with its estimators and memory."""
    params = params or {}
    cls = _ALGORITHMS[kind]
    config = config_from_params(cls.config_class, params, "algorithm")
    defaults = {k: v for k, v in _ESTIMATOR_DEFAULTS.get(kind, {}).items() if k not in params}
    estimator_config = config_from_params(EstimatorConfig, params, "estimator", **defaults)

    if kind is AlgorithmType.MCTS:
        if search is None:
            raise ConfigurationError("algorithm", "MCTS needs an MCTSPolicy as its exploration policy")
        return MCTSLearning(config, estimator_config, input_size, number_of_actions, search, key=key)

    memory = make_memory(memory_type or DEFAULT_MEMORY[kind], params, rng)
    if kind is AlgorithmType.QN:
        return QLearning(
            config, estimator_config, input_size, number_of_actions, memory, key=key, tabular=True
        )
    if kind is AlgorithmType.DQN:
        return QLearning(
            config, estimator_config, input_size, number_of_actions, memory, key=key, use_target=True
        )
    if kind is AlgorithmType.DDQN:
        return cls(config, estimator_config, input_size, number_of_actions, memory, key=key, use_target=True)
    return cls(config, estimator_config, input_size, number_of_actions, memory, key=key)


__all__ = [
    "DEFAULT_MEMORY",
    "ActorCritic",
    "ActorCriticConfig",
    "AlgorithmConfig",
    "AlgorithmType",
    "DoubleQLearning",
    "LearningAlgorithm",
    "MCTSLearning",
    "MCTSLearningConfig",
    "PPOConfig",
    "PolicyGradientConfig",
    "ProximalPolicyOptimization",
    "QLearning",
    "Reinforce",
    "ReinforceConfig",
    "SACConfig",
    "Sarsa",
    "SoftActorCriticDiscrete",
    "ValueLearningConfig",
    "action_targets",
    "algorithm_keys",
    "discounted_returns",
    "make_algorithm",
    "masked_argmax",
    "masked_max",
    "td_target",
]
