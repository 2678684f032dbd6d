"""stepwise_rl — agent/environment reinforcement learning with JAX."""

from stepwise_rl.agent import Agent, DeepAgent, create_agent
from stepwise_rl.algorithms import AlgorithmType
from stepwise_rl.env import Environment, make
from stepwise_rl.errors import ConfigurationError, EstimatorError, ProtocolError, StepwiseError
from stepwise_rl.memory import MemoryType
from stepwise_rl.metrics import MetricsLogger, setup_logging
from stepwise_rl.params import parse_params
from stepwise_rl.policy import ExplorationPolicyType
from stepwise_rl.runner import RunnerConfig, evaluate, run_episode, train
from stepwise_rl.schedule import exponential_schedule, linear_schedule
from stepwise_rl.seeding import fold_in, make_rng, split_key, split_keys
from stepwise_rl.types import ActionError, ActionOutcome, AgentPhase, EnvironmentState, Transition

__version__ = "0.1.0"

__all__ = [
    "ActionError",
    "ActionOutcome",
    "Agent",
    "AgentPhase",
    "AlgorithmType",
    "ConfigurationError",
    "DeepAgent",
    "Environment",
    "EnvironmentState",
    "EstimatorError",
    "ExplorationPolicyType",
    "MemoryType",
    "MetricsLogger",
    "ProtocolError",
    "RunnerConfig",
    "StepwiseError",
    "Transition",
    "create_agent",
    "evaluate",
    "exponential_schedule",
    "fold_in",
    "linear_schedule",
    "make",
    "make_rng",
    "parse_params",
    "run_episode",
    "setup_logging",
    "split_key",
    "split_keys",
    "train",
]
