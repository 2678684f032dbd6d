"""Tests for Q-learning, double Q-learning and SARSA."""

from __future__ import annotations

import numpy as np
import pytest

from stepwise_rl.algorithms import (
    AlgorithmType,
    DoubleQLearning,
    QLearning,
    Sarsa,
    ValueLearningConfig,
    make_algorithm,
)
from stepwise_rl.errors import ConfigurationError
from stepwise_rl.estimator import DuelingNetwork, NeuralFunctionEstimator, TabularFunctionEstimator
from stepwise_rl.memory import MemoryBatch, MemoryType, OnlineMemory, PriorityMemory, ReplayMemory

SMALL = {"hidden_size": "8", "hidden_layers": "1"}


class TestQLearningTabular:
    def test_qn_is_tabular(self, key) -> None:
        algorithm = make_algorithm(AlgorithmType.QN, {}, 2, 2, key=key)
        assert isinstance(algorithm, QLearning)
        assert isinstance(algorithm.q, TabularFunctionEstimator)
        assert algorithm.q.config.learning_rate == pytest.approx(0.1)
        assert algorithm.q.target is None

    def test_terminal_update(self, key, make_transition) -> None:
        algorithm = make_algorithm(AlgorithmType.QN, {}, 2, 2, key=key)
        algorithm.observe(make_transition((1.0, 0.0), action=1, reward=1.0, terminal=True))
        assert algorithm.ready()
        metrics = algorithm.train()
        np.testing.assert_allclose(algorithm.q.predict(np.array([1.0, 0.0])), [0.0, 0.1])
        assert metrics["td_error"] == pytest.approx(1.0)
        assert algorithm.train_steps == 1

    def test_bootstrap_uses_max_available(self, key, make_transition) -> None:
        algorithm = make_algorithm(AlgorithmType.QN, {"gamma": "0.5", "learning_rate": "1"}, 2, 3, key=key)
        algorithm.q.set_values(np.array([0.0, 1.0]), np.array([4.0, 100.0, 2.0]))
        # The next state only offers actions 0 and 2.
        algorithm.observe(make_transition((1.0, 0.0), action=0, reward=1.0, next_features=(0.0, 1.0), actions=(0, 2)))
        algorithm.train()
        assert algorithm.q.predict(np.array([1.0, 0.0]))[0] == pytest.approx(1.0 + 0.5 * 4.0)

    def test_train_on_empty_memory(self, key) -> None:
        algorithm = make_algorithm(AlgorithmType.QN, {}, 2, 2, key=key)
        assert algorithm.train() == {}


class TestDQN:
    def test_has_target(self, key) -> None:
        algorithm = make_algorithm(AlgorithmType.DQN, SMALL, 2, 2, key=key)
        assert isinstance(algorithm.q, NeuralFunctionEstimator)
        assert algorithm.q.target is not None
        assert isinstance(algorithm.q.memory, OnlineMemory)

    def test_target_lags_until_cycle(self, key, make_transition) -> None:
        params = {**SMALL, "target_function_update_cycle": "100"}
        algorithm = make_algorithm(AlgorithmType.DQN, params, 2, 2, key=key)
        before = algorithm.q.target.parameter_vector()
        algorithm.observe(make_transition(reward=1.0))
        algorithm.train()
        np.testing.assert_array_equal(algorithm.q.target.parameter_vector(), before)
        assert not np.allclose(algorithm.q.parameter_vector(), before)

    def test_dueling(self, key) -> None:
        algorithm = make_algorithm(AlgorithmType.DQN, {**SMALL, "apply_dueling": "true"}, 2, 3, key=key)
        assert isinstance(algorithm.q.model, DuelingNetwork)

    def test_replay_memory_override(self, key, make_transition) -> None:
        params = {**SMALL, "capacity": "10", "batch_size": "2"}
        algorithm = make_algorithm(AlgorithmType.DQN, params, 2, 2, key=key, memory_type=MemoryType.REPLAY)
        assert isinstance(algorithm.q.memory, ReplayMemory)
        algorithm.observe(make_transition())
        assert not algorithm.ready()
        algorithm.observe(make_transition())
        assert algorithm.ready()
        assert "loss" in algorithm.train()


class TestDoubleQLearning:
    def test_defaults(self, key) -> None:
        algorithm = make_algorithm(AlgorithmType.DDQN, SMALL, 2, 2, key=key)
        assert isinstance(algorithm, DoubleQLearning)
        assert isinstance(algorithm.q.memory, PriorityMemory)
        assert algorithm.q.target is not None

    def test_updates_priorities(self, key, make_transition) -> None:
        params = {**SMALL, "batch_size": "2"}
        algorithm = make_algorithm(AlgorithmType.DDQN, params, 2, 2, key=key)
        algorithm.observe(make_transition(reward=5.0, terminal=True))
        algorithm.observe(make_transition((0.0, 1.0), reward=0.0, terminal=True))
        algorithm.train()
        priorities = algorithm.q.memory.priorities()
        assert not np.allclose(priorities, 1.0)

    def test_live_selects_target_evaluates(self, key, make_transition) -> None:
        algorithm = make_algorithm(AlgorithmType.DDQN, SMALL, 2, 2, key=key)
        transition = make_transition(next_features=(0.0, 1.0))
        batch = MemoryBatch.of([transition])
        live = algorithm.q.predict(np.array([0.0, 1.0]))
        target = algorithm.q.predict_target(np.array([0.0, 1.0]))
        expected = target[int(np.argmax(live))]
        assert algorithm._next_values(batch)[0] == pytest.approx(expected)


class TestSarsa:
    def test_defers_until_next_action(self, key, make_transition) -> None:
        algorithm = make_algorithm(AlgorithmType.SARSA, SMALL, 2, 2, key=key)
        assert isinstance(algorithm, Sarsa)
        assert algorithm.q.target is None
        algorithm.observe(make_transition(action=0))
        assert len(algorithm.q.memory) == 0
        algorithm.observe(make_transition(action=1))
        stored = algorithm.q.memory.peek()
        assert len(stored) == 1
        assert stored[0].next_action == 1

    def test_terminal_flushes(self, key, make_transition) -> None:
        algorithm = make_algorithm(AlgorithmType.SARSA, SMALL, 2, 2, key=key)
        algorithm.observe(make_transition(action=0))
        algorithm.observe(make_transition(action=1, terminal=True))
        stored = algorithm.q.memory.peek()
        assert [t.next_action for t in stored] == [1, -1]
        assert stored[1].terminal

    def test_cut_off_episode_uses_greedy_action(self, key, make_transition) -> None:
        algorithm = make_algorithm(AlgorithmType.SARSA, SMALL, 2, 2, key=key)
        algorithm.observe(make_transition(action=0))
        algorithm.end_episode()
        stored = algorithm.q.memory.peek()
        assert len(stored) == 1
        values = algorithm.q.predict(stored[0].next_state.feature_vector)
        assert stored[0].next_action == int(np.argmax(values))

    def test_next_value_of_taken_action(self, key, make_transition) -> None:
        algorithm = make_algorithm(AlgorithmType.SARSA, SMALL, 2, 2, key=key)
        batch = MemoryBatch.of([make_transition(next_features=(0.0, 1.0), next_action=1)])
        expected = algorithm.q.predict(np.array([0.0, 1.0]))[1]
        assert algorithm._next_values(batch)[0] == pytest.approx(expected)

    def test_trains(self, key, make_transition) -> None:
        algorithm = make_algorithm(AlgorithmType.SARSA, SMALL, 2, 2, key=key)
        algorithm.observe(make_transition(action=0, reward=1.0))
        algorithm.observe(make_transition(action=1, reward=0.0, terminal=True))
        metrics = algorithm.train()
        assert np.isfinite(metrics["loss"])

    def test_reset_drops_pending(self, key, make_transition) -> None:
        algorithm = make_algorithm(AlgorithmType.SARSA, SMALL, 2, 2, key=key)
        algorithm.observe(make_transition())
        algorithm.reset()
        algorithm.end_episode()
        assert len(algorithm.q.memory) == 0


class TestValueLearningConfig:
    def test_gamma_range(self) -> None:
        with pytest.raises(ConfigurationError):
            ValueLearningConfig(gamma=1.5)
