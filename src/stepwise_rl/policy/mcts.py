"""Monte-Carlo tree search over action sequences.

Nodes are identified by the path of actions from the episode start, so
the search works for any environment whose episodes begin in the same
state. Each selection scores children with PUCT::

    Q(child) + c_puct * (eps * P + (1 - eps) * eta) * sqrt(N(node)) / (1 + N(child))

where ``P`` is the policy estimator's prior and ``eta`` is Dirichlet
noise. After the episode, :meth:`MCTSPolicy.backup` propagates returns
along the walked path and :meth:`MCTSPolicy.visit_targets` yields the
visit distribution ``N(child)^(1/tau)`` used as the policy target.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import numpy as np

from stepwise_rl.errors import ProtocolError
from stepwise_rl.policy.base import ExplorationPolicy, PolicyConfig, greedy_action

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MCTSConfig(PolicyConfig):
    c_puct: float = 2.5
    dirichlet_alpha: float = 0.6
    exploration_epsilon: float = 0.8
    visit_tau: float = 1.1
    reset_cycle: int = 0  # episodes between tree resets; 0 keeps the tree


@dataclass
class SearchNode:
    visits: int = 0
    value_sum: float = 0.0
    children: dict[int, SearchNode] = field(default_factory=dict)

    @property
    def mean_value(self) -> float:
        return self.value_sum / self.visits if self.visits else 0.0


class MCTSPolicy(ExplorationPolicy):
    """PUCT selection that records its walk for the episode-end backup."""

    config_class = MCTSConfig
    config: MCTSConfig

    def __init__(self, config: MCTSConfig | None = None, rng: np.random.Generator | None = None) -> None:
        super().__init__(config, rng)
        self.root = SearchNode()
        self.current = self.root
        self.path: list[tuple[SearchNode, int]] = []
        self.episodes = 0

    def _explore(self, values: np.ndarray, candidates: list[int]) -> int:
        cfg = self.config
        node = self.current
        priors = values[candidates]
        noise = self.rng.dirichlet([cfg.dirichlet_alpha] * len(candidates))
        mixed = cfg.exploration_epsilon * priors + (1.0 - cfg.exploration_epsilon) * noise
        scale = math.sqrt(max(1, node.visits))
        scores = np.empty(len(candidates))
        for i, action in enumerate(candidates):
            child = node.children.get(action)
            q = child.mean_value if child else 0.0
            n = child.visits if child else 0
            scores[i] = q + cfg.c_puct * mixed[i] * scale / (1 + n)
        return candidates[int(np.argmax(scores))]

    def _greedy(self, values: np.ndarray, candidates: list[int]) -> int:
        visits = np.array([
            self.current.children[a].visits if a in self.current.children else 0
            for a in candidates
        ])
        if visits.sum() == 0:
            return greedy_action(values, candidates)
        return candidates[int(np.argmax(visits))]

    def observe_action(self, action: int) -> None:
        self.path.append((self.current, action))
        self.current = self.current.children.setdefault(action, SearchNode())

    def start_episode(self) -> None:
        self.episodes += 1
        if self.config.reset_cycle and self.episodes % self.config.reset_cycle == 0:
            logger.debug("search tree reset after %d episodes", self.episodes)
            self.root = SearchNode()
        self.current = self.root
        self.path = []

    def backup(self, returns: list[float]) -> None:
        """Add one visit and the step's return along the walked path."""
        if len(returns) != len(self.path):
            raise ProtocolError(
                "policy", f"backup of {len(returns)} returns over a path of {len(self.path)} steps"
            )
        if self.path:
            self.path[0][0].visits += 1
        for (node, action), ret in zip(self.path, returns):
            child = node.children[action]
            child.visits += 1
            child.value_sum += float(ret)

    def visit_targets(self, number_of_actions: int) -> np.ndarray:
        """``(len(path), number_of_actions)`` visit distributions along the path."""
        inv_tau = 1.0 / self.config.visit_tau
        targets = np.zeros((len(self.path), number_of_actions), dtype=np.float32)
        for row, (node, _) in enumerate(self.path):
            for action, child in node.children.items():
                targets[row, action] = child.visits**inv_tau
            total = targets[row].sum()
            if total > 0.0:
                targets[row] /= total
        return targets

    def reset(self) -> None:
        super().reset()
        self.root = SearchNode()
        self.current = self.root
        self.path = []
        self.episodes = 0
