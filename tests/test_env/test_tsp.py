"""Tests for the travelling-salesman environment."""

from __future__ import annotations

import numpy as np
import pytest

from stepwise_rl.env import TravellingSalesman, make
from stepwise_rl.errors import ProtocolError

SQUARE = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])


def _tour(env: TravellingSalesman, actions: list[int], sink) -> float:
    env.reset()
    for action in actions:
        env.commit_action(sink, action)
    return sink.rewards[-1]


class TestTravellingSalesmanSpaces:
    def test_sizes(self, tsp: TravellingSalesman) -> None:
        assert tsp.observation_size == 20
        assert tsp.number_of_actions == 4
        assert tsp.is_episodic()

    def test_initial_state(self, tsp: TravellingSalesman) -> None:
        state = tsp.get_state()
        assert state.available_actions == frozenset({0, 1, 2, 3})
        assert state.size == 20
        assert not state.terminal
        assert state.time_step == 0

    def test_features_split_visited_and_unvisited(self, tsp: TravellingSalesman) -> None:
        features = tsp.get_state().feature_vector
        np.testing.assert_allclose(features[0:2], tsp.cities[0] / 10.0, rtol=1e-6)
        assert np.all(features[10:12] == 0.0)
        np.testing.assert_allclose(features[12:14], tsp.cities[1] / 10.0, rtol=1e-6)
        assert np.all(features[2:4] == 0.0)

    def test_state_is_cached_until_commit(self, tsp: TravellingSalesman, sink) -> None:
        first = tsp.get_state()
        assert tsp.get_state() is first
        tsp.commit_action(sink, 0)
        assert tsp.get_state() is not first
        assert tsp.get_state().time_step == 1

    def test_make(self) -> None:
        env = make("tsp", number_of_cities=6, seed=1)
        assert isinstance(env, TravellingSalesman)
        assert env.number_of_cities == 6

    def test_make_unknown(self) -> None:
        with pytest.raises(KeyError, match="Available"):
            make("nope")


class TestTravellingSalesmanEpisode:
    def test_complete_tour(self, tsp: TravellingSalesman, sink) -> None:
        while not tsp.is_terminal_state():
            tsp.commit_action(sink, min(tsp.get_state().available_actions))
        route = tsp.route
        assert len(route) == 5
        assert sorted(route) == [0, 1, 2, 3, 4]
        expected = sum(
            float(np.hypot(*(tsp.cities[a] - tsp.cities[b]))) for a, b in zip(route, route[1:])
        ) + float(np.hypot(*(tsp.cities[route[-1]] - tsp.cities[route[0]])))
        assert tsp.total_distance == pytest.approx(expected)
        assert tsp.total_distance == pytest.approx(tsp.tour_length(route))

    def test_intermediate_rewards_are_zero(self, tsp: TravellingSalesman, sink) -> None:
        while not tsp.is_terminal_state():
            tsp.commit_action(sink, max(tsp.get_state().available_actions))
        assert sink.rewards[:-1] == [0.0, 0.0, 0.0]
        assert len(sink.rewards) == 4

    def test_terminal_state_has_no_actions(self, tsp: TravellingSalesman, sink) -> None:
        for action in (0, 1, 2, 3):
            tsp.commit_action(sink, action)
        state = tsp.get_state()
        assert state.terminal
        assert state.available_actions == frozenset()

    def test_commit_on_terminal_raises(self, tsp: TravellingSalesman, sink) -> None:
        for action in (0, 1, 2, 3):
            tsp.commit_action(sink, action)
        with pytest.raises(ProtocolError, match="terminal"):
            tsp.commit_action(sink, 0)

    def test_commit_visited_city_raises(self, tsp: TravellingSalesman, sink) -> None:
        tsp.commit_action(sink, 2)
        with pytest.raises(ProtocolError, match="not available"):
            tsp.commit_action(sink, 2)
        assert tsp.time_step == 1

    def test_reset(self, tsp: TravellingSalesman, sink) -> None:
        episode = tsp.episode_id
        tsp.commit_action(sink, 0)
        tsp.reset()
        assert tsp.episode_id == episode + 1
        assert tsp.route == [0]
        assert tsp.time_step == 0
        assert tsp.total_distance == 0.0


class TestTravellingSalesmanReward:
    def test_first_tour_earns_one(self, sink) -> None:
        env = TravellingSalesman(cities=SQUARE)
        assert _tour(env, [0, 1, 2], sink) == 1.0
        assert env.total_distance == pytest.approx(4.0)

    def test_running_extremes(self, sink) -> None:
        env = TravellingSalesman(cities=SQUARE)
        assert _tour(env, [0, 1, 2], sink) == 1.0  # perimeter, length 4
        assert _tour(env, [1, 0, 2], sink) == pytest.approx(0.0)  # crossing tour is the new longest
        assert env.max_distance == pytest.approx(2.0 + 2.0 * np.sqrt(2.0))
        assert _tour(env, [2, 1, 0], sink) == 1.0  # perimeter reversed
        assert env.min_distance == pytest.approx(4.0)
        assert env.shortest_route == [0, 1, 2, 3]
        assert env.longest_route == [0, 2, 1, 3]

    def test_between_extremes(self, sink) -> None:
        cities = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0], [1.0, 3.0]])
        env = TravellingSalesman(cities=cities)
        _tour(env, [0, 1, 2], sink)
        _tour(env, [1, 0, 2], sink)
        shortest, longest = env.min_distance, env.max_distance
        reward = _tour(env, [2, 1, 0], sink)
        total = env.total_distance
        if shortest < total < longest:
            assert reward == pytest.approx(0.75 * (1.0 - total / longest))
        assert 0.0 <= reward <= 1.0


class TestStartCity:
    def test_actions_skip_start_city(self, sink) -> None:
        env = TravellingSalesman(number_of_cities=5, start_city=2, seed=0)
        env.reset()
        assert env.get_state().available_actions == frozenset({0, 1, 2, 3})
        env.commit_action(sink, 2)
        assert env.route == [2, 3]
        env.commit_action(sink, 1)
        assert env.route == [2, 3, 1]

    def test_invalid_start_city(self) -> None:
        with pytest.raises(ValueError):
            TravellingSalesman(number_of_cities=3, start_city=3)
