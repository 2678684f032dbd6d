"""Assemble an agent from enum selections and one parameter string."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from stepwise_rl.agent.deep_agent import AgentConfig, DeepAgent
from stepwise_rl.algorithms import DEFAULT_MEMORY, AlgorithmType, algorithm_keys, make_algorithm
from stepwise_rl.env import Environment
from stepwise_rl.errors import ConfigurationError
from stepwise_rl.memory import MemoryType, memory_keys
from stepwise_rl.observers import EpisodeObserver
from stepwise_rl.params import check_unclaimed, config_fields, config_from_params, parse_params
from stepwise_rl.policy import ExplorationPolicyType, MCTSPolicy, make_policy, policy_keys
from stepwise_rl.seeding import make_rng, numpy_rng, split_keys

logger = logging.getLogger(__name__)

_VALUE_BASED = {AlgorithmType.QN, AlgorithmType.DQN, AlgorithmType.DDQN, AlgorithmType.SARSA}


def default_policy(algorithm: AlgorithmType) -> ExplorationPolicyType:
    """Epsilon-greedy for value methods, sampling for policy methods, search for MCTS."""
    if algorithm is AlgorithmType.MCTS:
        return ExplorationPolicyType.MCTS
    if algorithm in _VALUE_BASED:
        return ExplorationPolicyType.EPSILON_GREEDY
    return ExplorationPolicyType.MULTINOMIAL


def create_agent(
    environment: Environment,
    algorithm: AlgorithmType,
    policy: ExplorationPolicyType | None = None,
    params: str | Mapping[str, str] | None = None,
    *,
    memory_type: MemoryType | None = None,
    seed: int = 0,
    observers: Iterable[EpisodeObserver] = (),
) -> DeepAgent:
    """Build a :class:`DeepAgent` for *environment*.

    Every key in *params* must be recognised by the agent, the policy,
    the algorithm, its estimators or its memory.
    """
    parsed = parse_params(params) if params is None or isinstance(params, str) else dict(params)
    policy = policy or default_policy(algorithm)
    if (algorithm is AlgorithmType.MCTS) != (policy is ExplorationPolicyType.MCTS):
        raise ConfigurationError(
            "policy", f"{policy.value} policy cannot drive the {algorithm.value} algorithm"
        )
    memory_type = memory_type or DEFAULT_MEMORY[algorithm]
    claimed = (
        config_fields(AgentConfig)
        | policy_keys(policy)
        | algorithm_keys(algorithm)
        | memory_keys(memory_type)
    )
    check_unclaimed(parsed, claimed)

    _, net_key, policy_key, memory_key = split_keys(make_rng(seed), n=3)
    exploration = make_policy(policy, parsed, numpy_rng(policy_key))
    learner = make_algorithm(
        algorithm,
        parsed,
        environment.observation_size,
        environment.number_of_actions,
        key=net_key,
        rng=numpy_rng(memory_key),
        memory_type=memory_type,
        search=exploration if isinstance(exploration, MCTSPolicy) else None,
    )
    config = config_from_params(AgentConfig, parsed, "agent")
    logger.debug("created %s/%s agent with params %s", algorithm.value, policy.value, parsed)
    return DeepAgent(environment, learner, exploration, config, observers)
