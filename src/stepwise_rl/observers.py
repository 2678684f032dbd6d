"""Rendering sink for finished episodes.

Observers registered on an agent receive the steps of every episode
once it ends. They are a side channel: nothing they do feeds back into
learning.

Usage::

    recorder = EpisodeRecorder(keep=5)
    agent.add_observer(recorder)
    run_episode(agent, env)
    steps = recorder.episodes[-1].steps
"""

from __future__ import annotations

import logging
from collections import deque
from typing import NamedTuple, Protocol, runtime_checkable

from stepwise_rl.types import EnvironmentState

logger = logging.getLogger(__name__)


class StepRecord(NamedTuple):
    state: EnvironmentState
    action: int
    reward: float


class EpisodeRecord(NamedTuple):
    episode_id: int
    steps: tuple[StepRecord, ...]

    @property
    def total_reward(self) -> float:
        return sum(step.reward for step in self.steps)

    @property
    def actions(self) -> list[int]:
        return [step.action for step in self.steps]


@runtime_checkable
class EpisodeObserver(Protocol):
    def on_episode_end(self, record: EpisodeRecord) -> None: ...


class EpisodeRecorder:
    """Keeps the most recent ``keep`` episodes in memory."""

    def __init__(self, keep: int = 10) -> None:
        self.episodes: deque[EpisodeRecord] = deque(maxlen=keep)

    def on_episode_end(self, record: EpisodeRecord) -> None:
        self.episodes.append(record)

    @property
    def best(self) -> EpisodeRecord | None:
        if not self.episodes:
            return None
        return max(self.episodes, key=lambda r: r.total_reward)


class LoggingObserver:
    """Logs a one-line summary per episode at DEBUG level."""

    def on_episode_end(self, record: EpisodeRecord) -> None:
        logger.debug(
            "episode %d: %d steps, reward %.4f, actions %s",
            record.episode_id, len(record.steps), record.total_reward, record.actions,
        )
