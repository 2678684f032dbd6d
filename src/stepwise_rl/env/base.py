"""Environment contract consumed by the agent.

Environments are stateful host-side objects. The agent reads the
current :class:`~stepwise_rl.types.EnvironmentState`, picks a legal
action and hands it to :meth:`Environment.commit_action`, which applies
it and reports exactly one scalar reward back through
``agent.respond(reward)`` before returning.

Core pattern::

    env = TravellingSalesman(number_of_cities=5, seed=0)
    env.reset()
    state = env.get_state()
    env.commit_action(agent, next(iter(state.available_actions)))

Subclasses implement ``_features``, ``_available_actions``,
``_transition`` and ``is_terminal_state``; the base class validates the
action, advances the step counter and delivers the reward.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

import numpy as np

from stepwise_rl.errors import ProtocolError
from stepwise_rl.types import EnvironmentState

logger = logging.getLogger(__name__)


@runtime_checkable
class RewardReceiver(Protocol):
    """Anything that can be handed a reward after an action is committed."""

    def respond(self, reward: float) -> None: ...


class Environment(ABC):
    """Abstract base for agent-driven environments."""

    def __init__(self) -> None:
        self.episode_id = 0
        self.time_step = 0
        self._state: EnvironmentState | None = None

    # ---- contract --------------------------------------------------------

    @property
    @abstractmethod
    def observation_size(self) -> int:
        """Length of every feature vector this environment produces."""

    @property
    @abstractmethod
    def number_of_actions(self) -> int:
        """Size of the discrete action space."""

    @abstractmethod
    def is_episodic(self) -> bool:
        """Whether the task terminates naturally."""

    @abstractmethod
    def is_terminal_state(self) -> bool:
        """True exactly when no further action is legal this episode."""

    def get_state(self) -> EnvironmentState:
        """Return the current immutable state.

        The snapshot is built lazily and cached until the next commit or
        reset, so repeated calls return the same object.
        """
        if self._state is None:
            terminal = self.is_terminal_state()
            actions = () if terminal else self._available_actions()
            self._state = EnvironmentState.create(
                self._features(),
                actions,
                episode_id=self.episode_id,
                time_step=self.time_step,
                terminal=terminal,
            )
        return self._state

    def commit_action(self, agent: RewardReceiver, action: int) -> None:
        """Apply *action* and deliver its reward to *agent*.

        Raises :class:`ProtocolError` when the episode is already over or
        the action is not in the current state's available actions.
        """
        state = self.get_state()
        if state.terminal:
            raise ProtocolError(
                "environment",
                f"commit_action({action}) on terminal state of episode {self.episode_id}",
            )
        if action not in state.available_actions:
            raise ProtocolError(
                "environment",
                f"action {action} not available; legal: {sorted(state.available_actions)}",
            )
        reward = float(self._transition(int(action)))
        self.time_step += 1
        self._state = None
        agent.respond(reward)

    def reset(self) -> None:
        """Begin a new episode."""
        self.episode_id += 1
        self.time_step = 0
        self._reset()
        self._state = None
        logger.debug("%s reset for episode %d", type(self).__name__, self.episode_id)

    def render(self) -> str:
        return repr(self)

    # ---- subclass hooks --------------------------------------------------

    @abstractmethod
    def _features(self) -> np.ndarray: ...

    @abstractmethod
    def _available_actions(self) -> list[int]: ...

    @abstractmethod
    def _transition(self, action: int) -> float:
        """Mutate internal state for *action* and return the reward."""

    def _reset(self) -> None:
        return None
