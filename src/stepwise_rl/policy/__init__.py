"""Exploration policies, selectable by :class:`ExplorationPolicyType`."""

from __future__ import annotations

import enum
from collections.abc import Mapping

import numpy as np

from stepwise_rl.params import config_fields, config_from_params
from stepwise_rl.policy.base import (
    ExplorationPolicy,
    PolicyConfig,
    as_distribution,
    greedy_action,
    normalized_entropy,
    softmax,
)
from stepwise_rl.policy.greedy import (
    EntropyGreedyPolicy,
    EpsilonGreedyConfig,
    EpsilonGreedyPolicy,
    GreedyPolicy,
)
from stepwise_rl.policy.mcts import MCTSConfig, MCTSPolicy, SearchNode
from stepwise_rl.policy.noisy import (
    EntropyNoisyNextBestPolicy,
    NoisyNextBestConfig,
    NoisyNextBestPolicy,
    OUNoiseConfig,
    OUNoisePolicy,
)
from stepwise_rl.policy.sampled import (
    MultinomialConfig,
    MultinomialPolicy,
    SampledConfig,
    SampledPolicy,
)


class ExplorationPolicyType(enum.Enum):
    GREEDY = "greedy"
    EPSILON_GREEDY = "epsilon_greedy"
    NOISY_NEXT_BEST = "noisy_next_best"
    SAMPLED = "sampled"
    ENTROPY_GREEDY = "entropy_greedy"
    ENTROPY_NOISY_NEXT_BEST = "entropy_noisy_next_best"
    MULTINOMIAL = "multinomial"
    OU_NOISE = "ou_noise"
    MCTS = "mcts"


_POLICIES: dict[ExplorationPolicyType, type[ExplorationPolicy]] = {
    ExplorationPolicyType.GREEDY: GreedyPolicy,
    ExplorationPolicyType.EPSILON_GREEDY: EpsilonGreedyPolicy,
    ExplorationPolicyType.NOISY_NEXT_BEST: NoisyNextBestPolicy,
    ExplorationPolicyType.SAMPLED: SampledPolicy,
    ExplorationPolicyType.ENTROPY_GREEDY: EntropyGreedyPolicy,
    ExplorationPolicyType.ENTROPY_NOISY_NEXT_BEST: EntropyNoisyNextBestPolicy,
    ExplorationPolicyType.MULTINOMIAL: MultinomialPolicy,
    ExplorationPolicyType.OU_NOISE: OUNoisePolicy,
    ExplorationPolicyType.MCTS: MCTSPolicy,
}


def policy_keys(kind: ExplorationPolicyType) -> set[str]:
    """Parameter names a policy of *kind* recognises."""
    return config_fields(_POLICIES[kind].config_class)


def make_policy(
    kind: ExplorationPolicyType,
    params: Mapping[str, str] | None = None,
    rng: np.random.Generator | None = None,
) -> ExplorationPolicy:
    """Build a policy of *kind* from a parsed parameter mapping."""
    cls = _POLICIES[kind]
    config = config_from_params(cls.config_class, params or {}, "policy")
    return cls(config, rng)


__all__ = [
    "EntropyGreedyPolicy",
    "EntropyNoisyNextBestPolicy",
    "EpsilonGreedyConfig",
    "EpsilonGreedyPolicy",
    "ExplorationPolicy",
    "ExplorationPolicyType",
    "GreedyPolicy",
    "MCTSConfig",
    "MCTSPolicy",
    "MultinomialConfig",
    "MultinomialPolicy",
    "NoisyNextBestConfig",
    "NoisyNextBestPolicy",
    "OUNoiseConfig",
    "OUNoisePolicy",
    "PolicyConfig",
    "SampledConfig",
    "SampledPolicy",
    "SearchNode",
    "as_distribution",
    "greedy_action",
    "make_policy",
    "normalized_entropy",
    "policy_keys",
    "softmax",
]
