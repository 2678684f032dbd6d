"""Agent interface.

``Agent`` is the structural contract the runner drives; any object with
these methods works, no inheritance required. The lifecycle per episode
is::

    agent.start()
    agent.start_episode()
    while not env.is_terminal_state():
        agent.new_time_step()
        outcome = agent.act()
    agent.end_episode()
    agent.stop()

Environments call ``agent.respond(reward)`` from inside
``commit_action`` exactly once per committed action.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from stepwise_rl.observers import EpisodeRecord
from stepwise_rl.types import ActionOutcome, AgentPhase


@runtime_checkable
class Agent(Protocol):
    """Structural typing protocol for an episode-driven agent."""

    phase: AgentPhase

    def start(self) -> None:
        """Validate configuration and become ready for episodes."""
        ...

    def start_episode(self) -> None: ...

    def new_time_step(self) -> None: ...

    def act(self, action: int | None = None, greedy: bool = False) -> ActionOutcome:
        """Select (or take the given) action, commit it and learn from the reward."""
        ...

    def respond(self, reward: float) -> None:
        """Reward callback invoked by the environment."""
        ...

    def end_episode(self) -> EpisodeRecord: ...

    def stop(self) -> None:
        """Flush pending updates and release resources."""
        ...
