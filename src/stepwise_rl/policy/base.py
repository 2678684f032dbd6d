"""Exploration policy base class.

A policy turns an estimator output vector into one action index drawn
from the state's available actions. Subclasses implement ``_explore``;
``select(..., greedy=True)`` always takes the greedy branch and leaves
decay counters untouched.

Usage::

    policy = EpsilonGreedyPolicy(EpsilonGreedyConfig(epsilon_initial=0.2), rng=rng)
    action = policy.select(values, state.available_actions)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from stepwise_rl.errors import ProtocolError


@dataclass(frozen=True)
class PolicyConfig:
    """``as_softmax``: pass values through a softmax before selecting."""

    as_softmax: bool = False


def softmax(values: np.ndarray) -> np.ndarray:
    shifted = np.exp(values - np.max(values))
    return shifted / np.sum(shifted)


def as_distribution(values: np.ndarray) -> np.ndarray:
    """Normalise non-negative values; fall back to a softmax otherwise."""
    values = np.asarray(values, dtype=np.float64)
    total = np.sum(values)
    if np.all(values >= 0.0) and total > 0.0:
        return values / total
    return softmax(values)


def normalized_entropy(values: np.ndarray) -> float:
    """Entropy of ``as_distribution(values)`` divided by its maximum, in ``[0, 1]``."""
    if len(values) < 2:
        return 0.0
    probs = as_distribution(values)
    nonzero = probs[probs > 0.0]
    return float(-np.sum(nonzero * np.log(nonzero)) / np.log(len(probs)))


class ExplorationPolicy(ABC):
    """Select an action index from estimator outputs."""

    config_class: ClassVar[type[PolicyConfig]] = PolicyConfig

    def __init__(
        self,
        config: PolicyConfig | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.config = config or self.config_class()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.steps = 0

    def select(
        self,
        values: np.ndarray,
        available_actions: Iterable[int],
        greedy: bool = False,
    ) -> int:
        values = np.asarray(values, dtype=np.float64)
        candidates = sorted(available_actions)
        if not candidates:
            raise ProtocolError("policy", "no available actions to select from")
        if candidates[0] < 0 or candidates[-1] >= len(values):
            raise ProtocolError(
                "policy",
                f"available actions {candidates} outside estimator output of size {len(values)}",
            )
        if self.config.as_softmax:
            values = softmax(values)
        if greedy:
            return self._greedy(values, candidates)
        action = self._explore(values, candidates)
        self.steps += 1
        return action

    def _greedy(self, values: np.ndarray, candidates: list[int]) -> int:
        return greedy_action(values, candidates)

    @abstractmethod
    def _explore(self, values: np.ndarray, candidates: list[int]) -> int: ...

    # ---- lifecycle hooks -------------------------------------------------

    def observe_action(self, action: int) -> None:
        """Called with the action actually committed this step."""

    def start_episode(self) -> None:
        """Called when the agent starts an episode."""

    def on_update(self) -> None:
        """Called after each training pass."""

    def reset(self) -> None:
        self.steps = 0


def greedy_action(values: np.ndarray, candidates: list[int]) -> int:
    """Argmax over *candidates* (sorted); ties go to the lowest index."""
    return candidates[int(np.argmax(values[candidates]))]
