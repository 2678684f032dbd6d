"""Core type definitions for stepwise_rl.

State and transition containers are immutable NamedTuples. Feature
vectors are host-side numpy arrays marked read-only once a state is
built, so a state handed to the agent can never change underneath it.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from typing import Any, NamedTuple, TypeAlias

import chex
import numpy as np

from stepwise_rl.errors import ProtocolError

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------
Features: TypeAlias = np.ndarray
Values: TypeAlias = chex.ArrayNumpy
Params: TypeAlias = Any  # estimator parameter pytree
OptState: TypeAlias = Any  # optax optimizer state pytree


# ---------------------------------------------------------------------------
# Environment state
# ---------------------------------------------------------------------------
class EnvironmentState(NamedTuple):
    """Immutable snapshot of what the agent can observe.

    Fields:
        feature_vector: 1-D float32 array, read-only.
        available_actions: legal action indices for this state.
        episode_id: episode the state belongs to.
        time_step: step index within the episode.
        terminal: whether the episode ended in this state.
    """

    feature_vector: Features
    available_actions: frozenset[int]
    episode_id: int
    time_step: int
    terminal: bool = False

    @staticmethod
    def create(
        feature_vector: Iterable[float] | np.ndarray,
        available_actions: Iterable[int],
        episode_id: int = 0,
        time_step: int = 0,
        terminal: bool = False,
    ) -> EnvironmentState:
        """Build a state, freezing the feature vector and action set.

        Raises :class:`ProtocolError` when a non-terminal state offers
        no legal action.
        """
        features = np.array(feature_vector, dtype=np.float32).reshape(-1)
        features.setflags(write=False)
        actions = frozenset(int(a) for a in available_actions)
        if not actions and not terminal:
            raise ProtocolError(
                "environment",
                f"non-terminal state (episode {episode_id}, step {time_step}) "
                "has no available actions",
            )
        return EnvironmentState(features, actions, episode_id, time_step, terminal)

    @property
    def size(self) -> int:
        return int(self.feature_vector.shape[0])


class Transition(NamedTuple):
    """A single (s, a, r, s', terminal) experience tuple.

    ``next_action`` is filled in by on-policy algorithms once the action
    taken in ``next_state`` is known; it stays ``-1`` otherwise.
    """

    state: EnvironmentState
    action: int
    reward: float
    next_state: EnvironmentState
    terminal: bool
    next_action: int = -1


# ---------------------------------------------------------------------------
# Action outcomes
# ---------------------------------------------------------------------------
class ActionError(enum.Enum):
    """Why an ``act()`` call did not complete a step."""

    NOT_AVAILABLE = "not_available"
    ENVIRONMENT_TERMINAL = "environment_terminal"
    ESTIMATOR_DIVERGENCE = "estimator_divergence"


class ActionOutcome(NamedTuple):
    """Result of one ``act()`` call: either an action and reward, or an error."""

    action: int | None
    reward: float | None = None
    error: ActionError | None = None
    cause: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> int:
        """Return the committed action, re-raising the failure cause if any."""
        if self.error is not None:
            if self.cause is not None:
                raise self.cause
            raise ProtocolError("agent", f"action failed: {self.error.value}")
        if self.action is None:
            raise ProtocolError("agent", "successful outcome carries no action")
        return self.action

    @staticmethod
    def success(action: int, reward: float) -> ActionOutcome:
        return ActionOutcome(action=action, reward=reward)

    @staticmethod
    def failure(
        error: ActionError, cause: Exception | None = None, action: int | None = None
    ) -> ActionOutcome:
        return ActionOutcome(action=action, error=error, cause=cause)


class AgentPhase(enum.Enum):
    """Lifecycle phases of an agent within an episode."""

    IDLE = "idle"
    EPISODE_STARTED = "episode_started"
    TIME_STEP_BEGUN = "time_step_begun"
    ACTION_SELECTED = "action_selected"
    ACTION_COMMITTED = "action_committed"
    REWARD_RECEIVED = "reward_received"
    VALUE_UPDATED = "value_updated"
    STOPPED = "stopped"
