"""Travelling-salesman tour construction as an episodic task.

Each step the agent picks the next unvisited city; the episode ends
when every city has been visited. The tour is closed back to the start
city when the reward is computed.

Observation: ``4 * N`` values. City ``i`` contributes its coordinates
scaled to ``[0, 1)`` at ``[2i, 2i+1]`` once visited, or at
``[2N+2i, 2N+2i+1]`` while unvisited; the other pair stays zero.
Actions: ``city - 1`` for every unvisited city other than the start.
Reward: ``0`` until the tour is complete, then ``1`` for a tour matching
the shortest one seen so far, else ``0.75 * (1 - total / longest)``.
"""

from __future__ import annotations

import logging

import numpy as np

from stepwise_rl.env.base import Environment

logger = logging.getLogger(__name__)

_SCALE = 10.0


class TravellingSalesman(Environment):
    """Build a tour over randomly placed cities.

    Parameters
    ----------
    number_of_cities:
        Cities placed uniformly in ``[0, 10)^2``.
    start_city:
        Index of the city every tour starts from.
    seed:
        Seed for city placement.
    cities:
        Optional explicit ``(N, 2)`` coordinates overriding random placement.
    """

    def __init__(
        self,
        number_of_cities: int = 10,
        start_city: int = 0,
        seed: int = 0,
        cities: np.ndarray | None = None,
    ) -> None:
        super().__init__()
        if cities is not None:
            cities = np.asarray(cities, dtype=np.float64)
            number_of_cities = cities.shape[0]
        else:
            rng = np.random.default_rng(seed)
            cities = rng.uniform(0.0, _SCALE, size=(number_of_cities, 2))
        if number_of_cities < 2:
            raise ValueError(f"need at least 2 cities, got {number_of_cities}")
        if not 0 <= start_city < number_of_cities:
            raise ValueError(f"start_city {start_city} out of range")
        self.cities = cities
        self.number_of_cities = number_of_cities
        self.start_city = start_city
        self.min_distance = float("inf")
        self.max_distance = float("-inf")
        self.route: list[int] = [start_city]
        self.total_distance = 0.0
        self.shortest_route: list[int] = []
        self.longest_route: list[int] = []

    @property
    def observation_size(self) -> int:
        return 4 * self.number_of_cities

    @property
    def number_of_actions(self) -> int:
        return self.number_of_cities - 1

    def is_episodic(self) -> bool:
        return True

    def is_terminal_state(self) -> bool:
        return len(self.route) == self.number_of_cities

    def distance(self, a: int, b: int) -> float:
        return float(np.linalg.norm(self.cities[a] - self.cities[b]))

    def tour_length(self, route: list[int]) -> float:
        """Length of *route* including the edge back to its first city."""
        legs = sum(self.distance(a, b) for a, b in zip(route, route[1:]))
        return legs + self.distance(route[-1], route[0])

    def _reset(self) -> None:
        self.route = [self.start_city]
        self.total_distance = 0.0

    def _features(self) -> np.ndarray:
        n = self.number_of_cities
        features = np.zeros(4 * n, dtype=np.float32)
        visited = set(self.route)
        for city in range(n):
            offset = 2 * city if city in visited else 2 * n + 2 * city
            features[offset : offset + 2] = self.cities[city] / _SCALE
        return features

    def _city(self, action: int) -> int:
        # The start city never appears as an action, so indices shift past it.
        return action if action < self.start_city else action + 1

    def _action(self, city: int) -> int:
        return city if city < self.start_city else city - 1

    def _available_actions(self) -> list[int]:
        visited = set(self.route)
        return [self._action(c) for c in range(self.number_of_cities) if c not in visited]

    def _transition(self, action: int) -> float:
        city = self._city(action)
        self.total_distance += self.distance(self.route[-1], city)
        self.route.append(city)
        if not self.is_terminal_state():
            return 0.0
        self.total_distance += self.distance(city, self.start_city)
        total = self.total_distance
        # Running extremes include the tour being scored, so the first
        # tour always earns 1 and rewards shift as longer tours are found.
        if total < self.min_distance:
            self.min_distance = total
            self.shortest_route = list(self.route)
        if total > self.max_distance:
            self.max_distance = total
            self.longest_route = list(self.route)
        if total == self.min_distance:
            reward = 1.0
        else:
            reward = 0.75 * (1.0 - total / self.max_distance)
        logger.debug(
            "episode %d tour %.3f (min %.3f, max %.3f) reward %.4f",
            self.episode_id, total, self.min_distance, self.max_distance, reward,
        )
        return reward

    def render(self) -> str:
        route = " -> ".join(str(c) for c in [*self.route, self.start_city])
        return f"tour {route} length {self.total_distance:.3f} (best {self.min_distance:.3f})"
