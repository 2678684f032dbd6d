"""Tests for the preset registry and its command-line front end."""

from __future__ import annotations

import pytest

from stepwise_rl.agent import create_agent
from stepwise_rl.algorithms import AlgorithmType
from stepwise_rl.configs import PRESETS, TrainConfig, cli
from stepwise_rl.env import Maze, TravellingSalesman


class TestPresets:
    def test_registry_shape(self) -> None:
        assert {"tsp_actor_critic", "tsp_ppo", "tsp_mcts", "maze_dqn", "maze_sarsa"} <= set(PRESETS)
        for name, (description, config) in PRESETS.items():
            assert description, name
            assert isinstance(config, TrainConfig)

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_preset_builds_an_agent(self, name: str) -> None:
        config = PRESETS[name][1]
        env = config.make_env()
        agent = create_agent(
            env, config.algorithm, config.policy, config.params,
            memory_type=config.memory, seed=config.runner.seed,
        )
        agent.start()
        assert agent.algorithm.number_of_actions == env.number_of_actions

    def test_make_env(self) -> None:
        tsp = TrainConfig(env_id="tsp", number_of_cities=6).make_env()
        assert isinstance(tsp, TravellingSalesman)
        assert tsp.number_of_cities == 6
        maze = TrainConfig(env_id="maze", maze_size=11).make_env()
        assert isinstance(maze, Maze)
        assert maze.size == 11

    def test_unknown_env(self) -> None:
        with pytest.raises(KeyError, match="Available"):
            TrainConfig(env_id="cartpole").make_env()


class TestCli:
    def test_select_preset(self) -> None:
        config = cli(["tsp_ppo"])
        assert config == PRESETS["tsp_ppo"][1]
        assert config.algorithm is AlgorithmType.PPO

    def test_override_runner_field(self) -> None:
        config = cli(["tsp_actor_critic", "--runner.episodes", "7"])
        assert config.runner.episodes == 7
        assert config.runner.log_interval == PRESETS["tsp_actor_critic"][1].runner.log_interval

    def test_override_environment(self) -> None:
        config = cli(["maze_sarsa", "--maze_size", "15", "--params", "gamma = 0.5"])
        assert config.maze_size == 15
        assert config.params == "gamma = 0.5"
        assert config.env_id == "maze"
