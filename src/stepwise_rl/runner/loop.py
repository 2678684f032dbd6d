"""Episode and training loops.

The loops only drive the agent lifecycle; the agent decides when to
train. Episodic environments are reset before each episode; continuing
environments run as one long episode.

Usage::

    env = make("tsp", number_of_cities=8, seed=0)
    agent = create_agent(env, AlgorithmType.ACTOR_CRITIC, params="gamma = 1")
    results = train(agent, env, RunnerConfig(episodes=200))
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import NamedTuple

import numpy as np

from stepwise_rl.agent import DeepAgent
from stepwise_rl.env import Environment
from stepwise_rl.errors import ConfigurationError
from stepwise_rl.metrics import MetricsLogger, log_step_progress
from stepwise_rl.runner.config import RunnerConfig
from stepwise_rl.types import ActionError, ActionOutcome

logger = logging.getLogger(__name__)


class EpisodeResult(NamedTuple):
    """Return value from ``run_episode``."""

    episode_id: int
    total_reward: float
    steps: int
    errors: tuple[ActionOutcome, ...]


def run_episode(
    agent: DeepAgent,
    env: Environment,
    max_steps: int | None = None,
    greedy: bool = False,
) -> EpisodeResult:
    """Play one episode; a rejected action ends it early and is reported in ``errors``."""
    if max_steps is None and not env.is_episodic():
        raise ConfigurationError("runner", "a continuing task needs a step budget (max_steps)")
    if env.is_episodic():
        env.reset()
    agent.start_episode()
    errors: list[ActionOutcome] = []
    steps = 0
    total = 0.0
    while max_steps is None or steps < max_steps:
        if env.is_episodic() and env.is_terminal_state():
            break
        agent.new_time_step()
        outcome = agent.act(greedy=greedy)
        if not outcome.ok:
            errors.append(outcome)
            if outcome.error is ActionError.ENVIRONMENT_TERMINAL:
                # act() already closed the episode.
                return EpisodeResult(agent.episode_id, total, steps, tuple(errors))
            logger.warning("episode %d aborted: %s", agent.episode_id, outcome.cause)
            break
        steps += 1
        total += outcome.reward or 0.0
    agent.end_episode()
    return EpisodeResult(agent.episode_id, total, steps, tuple(errors))


def run_steps(agent: DeepAgent, env: Environment, steps: int, greedy: bool = False) -> EpisodeResult:
    """Run *steps* steps of a continuing task as a single episode."""
    return run_episode(agent, env, max_steps=steps, greedy=greedy)


def evaluate(agent: DeepAgent, env: Environment, episodes: int = 1, max_steps: int | None = None) -> float:
    """Mean reward of greedy episodes with learning switched off.

    Continuing tasks never end on their own, so they need *max_steps*.
    """
    was_learning = agent.learning
    agent.disable_learning()
    try:
        rewards = [run_episode(agent, env, max_steps, greedy=True).total_reward for _ in range(episodes)]
    finally:
        if was_learning:
            agent.enable_learning()
    return float(np.mean(rewards))


def train(
    agent: DeepAgent,
    env: Environment,
    config: RunnerConfig | None = None,
    *,
    callback: Callable[[int, DeepAgent, dict[str, float]], None] | None = None,
) -> list[EpisodeResult]:
    """Start the agent, run ``config.episodes`` episodes, stop it.

    Continuing tasks run ``config.episodes`` segments of
    ``config.steps`` steps each.

    Args:
        agent: Agent created for *env*.
        env: Environment to train on.
        config: Loop settings.
        callback: Optional ``callback(episode, agent, record)`` called
            every ``config.log_interval`` episodes.

    Returns:
        One ``EpisodeResult`` per episode.
    """
    config = config or RunnerConfig()
    metrics = MetricsLogger(config.metrics_path) if config.metrics_path else None
    results: list[EpisodeResult] = []
    budget = config.max_steps_per_episode if env.is_episodic() else config.steps
    agent.start()
    try:
        for episode in range(1, config.episodes + 1):
            if env.is_episodic():
                result = run_episode(agent, env, config.max_steps_per_episode)
            else:
                result = run_steps(agent, env, config.steps)
            results.append(result)

            record: dict[str, float] = {
                "episode": episode,
                "reward": result.total_reward,
                "steps": result.steps,
                **agent.last_metrics,
            }
            if config.eval_every and episode % config.eval_every == 0:
                record["eval_reward"] = evaluate(agent, env, config.eval_episodes, budget)
            if metrics is not None:
                metrics.write(record)
            if config.log_interval and episode % config.log_interval == 0:
                window = [r.total_reward for r in results[-config.log_interval :]]
                log_step_progress(episode, config.episodes, {"mean_reward": float(np.mean(window))})
                if callback is not None:
                    callback(episode, agent, record)
    finally:
        agent.stop()
        if metrics is not None:
            metrics.close()
    return results
