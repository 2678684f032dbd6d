"""Tests for the transition memories."""

from __future__ import annotations

import threading

import numpy as np
import pytest

from stepwise_rl.errors import ConfigurationError
from stepwise_rl.memory import (
    MemoryBatch,
    MemoryConfig,
    MemoryType,
    OnlineMemory,
    PriorityMemory,
    PriorityMemoryConfig,
    ReplayMemory,
    SumTree,
    make_memory,
    memory_keys,
)


class TestMemoryConfig:
    def test_defaults(self) -> None:
        config = MemoryConfig()
        assert config.capacity == 20_000
        assert config.batch_size == 32

    def test_rejects_zero_batch(self) -> None:
        with pytest.raises(ConfigurationError):
            MemoryConfig(batch_size=0)

    def test_rejects_negative_capacity(self) -> None:
        with pytest.raises(ConfigurationError):
            MemoryConfig(capacity=-1)


class TestMemoryBatch:
    def test_stacks_fields(self, make_transition) -> None:
        batch = MemoryBatch.of([
            make_transition((1.0, 0.0), action=1, reward=0.5),
            make_transition((0.0, 1.0), action=0, reward=-1.0, terminal=True),
        ])
        assert batch.features.shape == (2, 2)
        np.testing.assert_array_equal(batch.actions, [1, 0])
        np.testing.assert_allclose(batch.rewards, [0.5, -1.0])
        np.testing.assert_array_equal(batch.terminals, [False, True])
        np.testing.assert_array_equal(batch.weights, [1.0, 1.0])

    def test_next_action_mask(self, make_transition) -> None:
        batch = MemoryBatch.of([
            make_transition(actions=(0, 2)),
            make_transition(terminal=True, actions=(0, 2)),
        ])
        mask = batch.next_action_mask(3)
        np.testing.assert_array_equal(mask, [[True, False, True], [False, False, False]])


class TestOnlineMemory:
    def test_sample_drains_in_order(self, make_transition) -> None:
        memory = OnlineMemory()
        for i in range(3):
            memory.add(make_transition(reward=float(i)))
        batch = memory.sample()
        np.testing.assert_allclose(batch.rewards, [0.0, 1.0, 2.0])
        assert len(memory) == 0
        assert not memory.ready()

    def test_fifo_eviction(self, make_transition) -> None:
        memory = OnlineMemory(MemoryConfig(capacity=3, batch_size=-1))
        for i in range(5):
            memory.add(make_transition(reward=float(i)))
        assert len(memory) == 3
        np.testing.assert_allclose([t.reward for t in memory.peek()], [2.0, 3.0, 4.0])

    def test_unbounded_by_default(self, make_transition) -> None:
        memory = OnlineMemory()
        for _ in range(100):
            memory.add(make_transition())
        assert len(memory) == 100


class TestReplayMemory:
    def test_capacity_invariant(self, make_transition) -> None:
        capacity, extra = 4, 3
        memory = ReplayMemory(MemoryConfig(capacity=capacity, batch_size=2))
        for i in range(capacity + extra):
            memory.add(make_transition(reward=float(i)))
        assert len(memory) == capacity
        assert [t.reward for t in memory.transitions()] == [3.0, 4.0, 5.0, 6.0]

    def test_sample_does_not_drain(self, make_transition, rng) -> None:
        memory = ReplayMemory(MemoryConfig(capacity=10, batch_size=4), rng)
        for i in range(6):
            memory.add(make_transition(reward=float(i)))
        batch = memory.sample()
        assert len(batch) == 4
        assert len(memory) == 6
        assert np.all(batch.indices < 6)
        for index, transition in zip(batch.indices, batch.transitions):
            assert transition.reward == float(index)

    def test_ready_needs_a_batch(self, make_transition) -> None:
        memory = ReplayMemory(MemoryConfig(capacity=10, batch_size=3))
        memory.add(make_transition())
        assert not memory.ready()
        memory.add(make_transition())
        memory.add(make_transition())
        assert memory.ready()

    def test_clear(self, make_transition) -> None:
        memory = ReplayMemory(MemoryConfig(capacity=2))
        memory.add(make_transition())
        memory.clear()
        assert len(memory) == 0
        assert memory.transitions() == []

    def test_needs_capacity(self) -> None:
        with pytest.raises(ConfigurationError):
            ReplayMemory(MemoryConfig(capacity=0))

    def test_concurrent_adds(self, make_transition) -> None:
        memory = ReplayMemory(MemoryConfig(capacity=1000))
        transition = make_transition()

        def fill() -> None:
            for _ in range(100):
                memory.add(transition)

        threads = [threading.Thread(target=fill) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(memory) == 400


class TestSumTree:
    def test_total(self) -> None:
        tree = SumTree(4)
        for i, p in enumerate([1.0, 2.0, 3.0, 4.0]):
            tree.update(i, p)
        assert tree.total == pytest.approx(10.0)

    def test_get(self) -> None:
        tree = SumTree(4)
        for i, p in enumerate([1.0, 2.0, 3.0, 4.0]):
            tree.update(i, p)
        assert tree.get(0.5) == 0
        assert tree.get(2.5) == 1
        assert tree.get(5.5) == 2
        assert tree.get(9.5) == 3

    def test_update_replaces(self) -> None:
        tree = SumTree(2)
        tree.update(0, 5.0)
        tree.update(0, 1.0)
        assert tree.total == pytest.approx(1.0)
        assert tree.priority(0) == pytest.approx(1.0)


class TestPriorityMemory:
    def test_new_entries_get_max_priority(self, make_transition) -> None:
        memory = PriorityMemory(PriorityMemoryConfig(capacity=8, batch_size=2))
        memory.add(make_transition())
        memory.update_priorities(np.array([0]), np.array([3.0]))
        memory.add(make_transition())
        priorities = memory.priorities()
        assert priorities[1] == pytest.approx(priorities[0])
        assert priorities[0] == pytest.approx((3.0 + 1e-8) ** 0.6)

    def test_high_priority_sampled_more(self, make_transition, rng) -> None:
        memory = PriorityMemory(PriorityMemoryConfig(capacity=4, batch_size=4), rng)
        for i in range(4):
            memory.add(make_transition(reward=float(i)))
        memory.update_priorities(np.arange(4), np.array([0.001, 0.001, 0.001, 10.0]))
        counts = np.zeros(4)
        for _ in range(50):
            batch = memory.sample()
            for idx in batch.indices:
                counts[idx] += 1
        assert counts[3] > counts[:3].sum()

    def test_weights_normalised(self, make_transition, rng) -> None:
        memory = PriorityMemory(PriorityMemoryConfig(capacity=8, batch_size=4), rng)
        for _ in range(8):
            memory.add(make_transition())
        memory.update_priorities(np.arange(8), np.linspace(0.1, 2.0, 8))
        batch = memory.sample()
        assert batch.weights.max() == pytest.approx(1.0)
        assert np.all(batch.weights > 0.0)

    def test_weights_disabled(self, make_transition, rng) -> None:
        config = PriorityMemoryConfig(capacity=8, batch_size=4, apply_importance_sampling_weights=False)
        memory = PriorityMemory(config, rng)
        for _ in range(8):
            memory.add(make_transition())
        memory.update_priorities(np.arange(8), np.linspace(0.1, 2.0, 8))
        np.testing.assert_array_equal(memory.sample().weights, np.ones(4))

    def test_beta_anneals(self, make_transition) -> None:
        memory = PriorityMemory(PriorityMemoryConfig(capacity=4, batch_size=1, beta=0.4, beta_step_size=0.3))
        memory.add(make_transition())
        memory.sample()
        assert memory.beta == pytest.approx(0.7)
        memory.sample()
        memory.sample()
        assert memory.beta == pytest.approx(1.0)

    def test_evicts_oldest(self, make_transition) -> None:
        memory = PriorityMemory(PriorityMemoryConfig(capacity=2, batch_size=1))
        for i in range(3):
            memory.add(make_transition(reward=float(i)))
        assert len(memory) == 2
        rewards = {t.reward for t in memory.sample().transitions}
        assert rewards <= {1.0, 2.0}

    def test_config_validation(self) -> None:
        with pytest.raises(ConfigurationError):
            PriorityMemoryConfig(capacity=0)
        with pytest.raises(ConfigurationError):
            PriorityMemoryConfig(beta=1.5)


class TestMakeMemory:
    def test_online_defaults(self) -> None:
        memory = make_memory(MemoryType.ONLINE)
        assert isinstance(memory, OnlineMemory)
        assert memory.capacity == 0
        assert memory.batch_size == -1

    def test_replay_from_params(self) -> None:
        memory = make_memory(MemoryType.REPLAY, {"capacity": "50", "batch_size": "8"})
        assert isinstance(memory, ReplayMemory)
        assert memory.capacity == 50
        assert memory.batch_size == 8

    def test_priority_from_params(self) -> None:
        memory = make_memory(MemoryType.PRIORITY, {"alpha": "0.5"})
        assert isinstance(memory, PriorityMemory)
        assert memory.alpha == 0.5

    def test_keys(self) -> None:
        assert "alpha" in memory_keys(MemoryType.PRIORITY)
        assert "alpha" not in memory_keys(MemoryType.REPLAY)
        assert {"capacity", "batch_size"} <= memory_keys(MemoryType.ONLINE)
