"""Maze navigation as a continuing task.

A square grid is carved into a perfect maze by randomized depth-first
search from ``(0, 0)``. The agent starts at the centre and is rewarded
for moving away from it through cells it has not visited recently.
Reaching the border counts as an escape and puts the agent back at the
start; the task itself never terminates.

Actions: ``0``: x-1, ``1``: x+1, ``2``: y-1, ``3``: y+1, offered only
where a passage exists.
Observation: the last ``history_length`` moves one-hot encoded with
``-1``, followed by the four passage flags of the current cell (``-1``
where open).
"""

from __future__ import annotations

import logging

import numpy as np

from stepwise_rl.env.base import Environment

logger = logging.getLogger(__name__)

# Direction deltas indexed by action.
_DX = (-1, 1, 0, 0)
_DY = (0, 0, -1, 1)
_OPPOSITE = (1, 0, 3, 2)


class Maze(Environment):
    """Randomly generated maze.

    Parameters
    ----------
    size:
        Side length of the grid.
    seed:
        Seed for maze carving and random start cells.
    history_length:
        Number of past moves encoded in the observation.
    revisit_window:
        Steps after which a cell's visit count starts over at 1.
    random_start:
        Start at a random cell instead of the centre.
    """

    def __init__(
        self,
        size: int = 60,
        seed: int = 0,
        history_length: int = 12,
        revisit_window: int = 100,
        random_start: bool = False,
    ) -> None:
        super().__init__()
        if size < 3:
            raise ValueError(f"maze size must be at least 3, got {size}")
        self.size = size
        self.history_length = history_length
        self.revisit_window = revisit_window
        self.random_start = random_start
        self._rng = np.random.default_rng(seed)
        # passages[x, y, d] is True when moving in direction d is possible.
        self.passages = np.zeros((size, size, 4), dtype=bool)
        self._carve()
        self.visit_count = np.zeros((size, size), dtype=np.int64)
        self.last_visit = np.full((size, size), -(10**9), dtype=np.int64)
        self.history: list[int] = []
        self.clock = 0
        self.escapes = 0
        self.position = self._start_position()
        self._visit(self.position)

    # ---- generation ------------------------------------------------------

    def _carve(self) -> None:
        visited = np.zeros((self.size, self.size), dtype=bool)
        stack = [(0, 0)]
        visited[0, 0] = True
        while stack:
            x, y = stack[-1]
            options = [
                d for d in range(4)
                if self._inside(x + _DX[d], y + _DY[d]) and not visited[x + _DX[d], y + _DY[d]]
            ]
            if not options:
                stack.pop()
                continue
            d = options[self._rng.integers(len(options))]
            nx, ny = x + _DX[d], y + _DY[d]
            self.passages[x, y, d] = True
            self.passages[nx, ny, _OPPOSITE[d]] = True
            visited[nx, ny] = True
            stack.append((nx, ny))

    def _inside(self, x: int, y: int) -> bool:
        return 0 <= x < self.size and 0 <= y < self.size

    def _start_position(self) -> tuple[int, int]:
        if self.random_start:
            return int(self._rng.integers(1, self.size - 1)), int(self._rng.integers(1, self.size - 1))
        return self.size // 2, self.size // 2

    # ---- queries ---------------------------------------------------------

    @property
    def observation_size(self) -> int:
        return 4 * self.history_length + 4

    @property
    def number_of_actions(self) -> int:
        return 4

    def is_episodic(self) -> bool:
        return False

    def is_terminal_state(self) -> bool:
        return False

    def is_dead_end(self, x: int, y: int) -> bool:
        return int(self.passages[x, y].sum()) == 1

    def on_border(self, x: int, y: int) -> bool:
        return x in (0, self.size - 1) or y in (0, self.size - 1)

    def _features(self) -> np.ndarray:
        features = np.zeros(self.observation_size, dtype=np.float32)
        for slot, move in enumerate(reversed(self.history[-self.history_length :])):
            features[4 * slot + move] = -1.0
        x, y = self.position
        features[4 * self.history_length :] = -self.passages[x, y].astype(np.float32)
        return features

    def _available_actions(self) -> list[int]:
        x, y = self.position
        return [d for d in range(4) if self.passages[x, y, d]]

    # ---- dynamics --------------------------------------------------------

    def _visit(self, cell: tuple[int, int]) -> None:
        x, y = cell
        if self.clock - self.last_visit[x, y] > self.revisit_window:
            self.visit_count[x, y] = 1
        else:
            self.visit_count[x, y] += 1
        self.last_visit[x, y] = self.clock

    def _transition(self, action: int) -> float:
        x, y = self.position
        self.position = (x + _DX[action], y + _DY[action])
        self.history.append(action)
        del self.history[: -self.history_length]
        self.clock += 1
        self._visit(self.position)
        reward = self._reward()
        if self.on_border(*self.position):
            self.escapes += 1
            logger.debug("escape %d after %d steps", self.escapes, self.clock)
            self.position = self._start_position()
            self.history.clear()
            self._visit(self.position)
        return reward

    def _reward(self) -> float:
        x, y = self.position
        if self.is_dead_end(x, y):
            return 0.0
        centre = self.size // 2
        distance = float(np.hypot(x - centre, y - centre))
        spread = 1.0 - 1.0 / max(1.0, distance)
        penalty = 1.0 / float(self.visit_count[x, y]) ** 3
        return max(0.0, spread * penalty)

    def _reset(self) -> None:
        self.position = self._start_position()
        self.history.clear()
        self._visit(self.position)

    def render(self) -> str:
        rows = []
        for y in range(self.size):
            cells = []
            for x in range(self.size):
                if (x, y) == self.position:
                    cells.append("@")
                elif self.is_dead_end(x, y):
                    cells.append("x")
                else:
                    cells.append(".")
            rows.append("".join(cells))
        return "\n".join(rows)
