"""Tests for the training and evaluation loops."""

from __future__ import annotations

import pytest

from stepwise_rl.agent import create_agent
from stepwise_rl.algorithms import AlgorithmType
from stepwise_rl.env import Maze, TravellingSalesman
from stepwise_rl.errors import ConfigurationError
from stepwise_rl.metrics import read_metrics
from stepwise_rl.runner import RunnerConfig, evaluate, run_episode, train
from stepwise_rl.types import ActionError, AgentPhase

PARAMS = "gamma = 1, hiddenSize = 8, hiddenLayers = 1"


@pytest.fixture
def env() -> TravellingSalesman:
    return TravellingSalesman(number_of_cities=5, seed=0)


@pytest.fixture
def agent(env):
    return create_agent(env, AlgorithmType.REINFORCE, params=PARAMS)


class TestRunEpisode:
    def test_resets_episodic_env(self, agent, env) -> None:
        agent.start()
        first = run_episode(agent, env)
        second = run_episode(agent, env)
        assert first.steps == second.steps == 4
        assert second.episode_id == first.episode_id + 1
        assert env.episode_id == 2

    def test_max_steps_cuts_episode(self, agent, env) -> None:
        agent.start()
        result = run_episode(agent, env, max_steps=2)
        assert result.steps == 2
        assert agent.phase is AgentPhase.IDLE
        assert len(env.route) == 3

    def test_terminal_outcome_reported(self, agent, env, sink, monkeypatch) -> None:
        agent.start()
        env.reset()
        while not env.is_terminal_state():
            env.commit_action(sink, min(env.get_state().available_actions))
        # Pretend the task is continuing so the loop does not reset it.
        monkeypatch.setattr(env, "is_episodic", lambda: False)
        result = run_episode(agent, env, max_steps=3)
        assert result.steps == 0
        assert result.errors[0].error is ActionError.ENVIRONMENT_TERMINAL
        assert agent.phase is AgentPhase.IDLE
        assert len(sink.rewards) == 4


class TestTrain:
    def test_results_and_metrics_file(self, agent, env, tmp_path) -> None:
        path = tmp_path / "run" / "metrics.jsonl"
        config = RunnerConfig(episodes=6, log_interval=3, metrics_path=str(path))
        results = train(agent, env, config)

        assert len(results) == 6
        records = read_metrics(path)
        assert [r["episode"] for r in records] == [1, 2, 3, 4, 5, 6]
        assert all(r["steps"] == 4 for r in records)
        assert "policy_loss" in records[-1]
        assert agent.phase is AgentPhase.STOPPED

    def test_callback_every_log_interval(self, agent, env) -> None:
        seen: list[int] = []
        train(agent, env, RunnerConfig(episodes=6, log_interval=2), callback=lambda ep, a, rec: seen.append(ep))
        assert seen == [2, 4, 6]

    def test_log_interval_zero_never_logs(self, agent, env) -> None:
        seen: list[int] = []
        results = train(agent, env, RunnerConfig(episodes=3, log_interval=0), callback=lambda ep, a, rec: seen.append(ep))
        assert len(results) == 3
        assert seen == []

    def test_periodic_evaluation(self, agent, env, tmp_path) -> None:
        path = tmp_path / "metrics.jsonl"
        train(agent, env, RunnerConfig(episodes=4, eval_every=2, metrics_path=str(path)))
        records = read_metrics(path)
        assert ["eval_reward" in r for r in records] == [False, True, False, True]


class TestEvaluate:
    def test_restores_learning_flag(self, agent, env) -> None:
        agent.start()
        reward = evaluate(agent, env, episodes=2)
        assert 0.0 <= reward <= 1.0
        assert agent.learning
        assert agent.updates == 0

    def test_keeps_learning_disabled(self, agent, env) -> None:
        agent.start()
        agent.disable_learning()
        evaluate(agent, env)
        assert not agent.learning


class TestContinuingTasks:
    @pytest.fixture
    def maze(self) -> Maze:
        return Maze(size=9, seed=0)

    def test_evaluation_uses_segment_budget(self, maze, tmp_path) -> None:
        agent = create_agent(maze, AlgorithmType.DQN, params="hiddenSize = 8, hiddenLayers = 1")
        path = tmp_path / "metrics.jsonl"
        results = train(agent, maze, RunnerConfig(episodes=2, steps=10, eval_every=1, metrics_path=str(path)))
        assert [r.steps for r in results] == [10, 10]
        assert all("eval_reward" in r for r in read_metrics(path))
        assert maze.clock == 40
        assert agent.learning

    def test_unbounded_episode_rejected(self, maze) -> None:
        agent = create_agent(maze, AlgorithmType.DQN, params="hiddenSize = 8, hiddenLayers = 1")
        agent.start()
        with pytest.raises(ConfigurationError, match="step budget"):
            run_episode(agent, maze)
        with pytest.raises(ConfigurationError, match="step budget"):
            evaluate(agent, maze)
        assert agent.learning
        assert agent.phase is AgentPhase.IDLE


class TestRunnerConfig:
    @pytest.mark.parametrize(
        "kwargs",
        [{"log_interval": -1}, {"eval_every": -1}, {"steps": 0}, {"max_steps_per_episode": 0}, {"eval_episodes": 0}],
    )
    def test_rejects_invalid_settings(self, kwargs) -> None:
        with pytest.raises(ConfigurationError):
            RunnerConfig(**kwargs)
