"""Preset experiment configurations.

Each preset bundles an environment, an algorithm/policy selection with
its parameter string, and runner settings. Use :func:`cli` in a
training script to get a :class:`TrainConfig` with
``overridable_config_cli``; the user picks a preset and optionally
overrides individual fields::

    python scripts/train.py tsp_actor_critic --runner.episodes 500
    python scripts/train.py maze_dqn --params "gamma = 0.9, epsilonMin = 0.05"
"""

from __future__ import annotations

from dataclasses import dataclass, field

import tyro

from stepwise_rl.algorithms import AlgorithmType
from stepwise_rl.env import Environment, make
from stepwise_rl.memory import MemoryType
from stepwise_rl.policy import ExplorationPolicyType
from stepwise_rl.runner.config import RunnerConfig


@dataclass(frozen=True)
class TrainConfig:
    """Full training configuration: environment, agent and runner."""

    # Environment
    env_id: str = "tsp"
    number_of_cities: int = 10
    maze_size: int = 60
    env_seed: int = 0

    # Agent
    algorithm: AlgorithmType = AlgorithmType.ACTOR_CRITIC
    policy: ExplorationPolicyType | None = None
    memory: MemoryType | None = None
    params: str = ""

    # Runner / outer-loop settings
    runner: RunnerConfig = field(default_factory=RunnerConfig)

    def make_env(self) -> Environment:
        if self.env_id == "tsp":
            return make("tsp", number_of_cities=self.number_of_cities, seed=self.env_seed)
        if self.env_id == "maze":
            return make("maze", size=self.maze_size, seed=self.env_seed)
        return make(self.env_id)


# ---------------------------------------------------------------------------
# Preset registry
# ---------------------------------------------------------------------------

PRESETS: dict[str, tuple[str, TrainConfig]] = {
    "tsp_actor_critic": (
        "Actor-critic on a 10-city tour, epsilon-greedy exploration",
        TrainConfig(
            env_id="tsp",
            algorithm=AlgorithmType.ACTOR_CRITIC,
            policy=ExplorationPolicyType.EPSILON_GREEDY,
            params="gamma = 1, epsilonDecayRate = 0.999, epsilonMin = 0, learningRate = 0.001",
            runner=RunnerConfig(episodes=2_000, log_interval=100),
        ),
    ),
    "tsp_ppo": (
        "PPO with a shared policy/value network on a 10-city tour",
        TrainConfig(
            env_id="tsp",
            algorithm=AlgorithmType.PPO,
            policy=ExplorationPolicyType.MULTINOMIAL,
            params="gamma = 1, singleFunctionEstimator = true, numberOfIterations = 4",
            runner=RunnerConfig(episodes=2_000, log_interval=100),
        ),
    ),
    "tsp_mcts": (
        "Search-guided policy and value learning on a 8-city tour",
        TrainConfig(
            env_id="tsp",
            number_of_cities=8,
            algorithm=AlgorithmType.MCTS,
            policy=ExplorationPolicyType.MCTS,
            runner=RunnerConfig(episodes=1_000, log_interval=100),
        ),
    ),
    "maze_dqn": (
        "Double DQN with prioritized replay in a 60x60 maze",
        TrainConfig(
            env_id="maze",
            algorithm=AlgorithmType.DDQN,
            policy=ExplorationPolicyType.EPSILON_GREEDY,
            params="gamma = 0.9, epsilonMin = 0.05, targetFunctionUpdateCycle = 100, batchSize = 32",
            runner=RunnerConfig(episodes=50, steps=1_000, log_interval=5),
        ),
    ),
    "maze_sarsa": (
        "SARSA with noisy next-best exploration in a 30x30 maze",
        TrainConfig(
            env_id="maze",
            maze_size=30,
            algorithm=AlgorithmType.SARSA,
            policy=ExplorationPolicyType.NOISY_NEXT_BEST,
            params="gamma = 0.9, agentUpdateCycle = 10",
            runner=RunnerConfig(episodes=50, steps=1_000, log_interval=5),
        ),
    ),
}


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def cli(
    args: list[str] | None = None,
    **kwargs: object,
) -> TrainConfig:
    """Parse a preset + overrides from the command line.

    Usage::

        config = cli()                                       # parse sys.argv
        config = cli(["tsp_ppo", "--runner.episodes", "100"])  # explicit args
    """
    return tyro.extras.overridable_config_cli(
        PRESETS,
        args=args,
        use_underscores=True,
        **kwargs,  # type: ignore[arg-type]
    )
