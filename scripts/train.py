#!/usr/bin/env python3
"""Unified training script with preset selection.

Select a preset configuration and optionally override any field::

    python scripts/train.py tsp_actor_critic
    python scripts/train.py tsp_ppo --runner.episodes 500
    python scripts/train.py maze_dqn --params "gamma = 0.95, epsilonMin = 0.1"
    python scripts/train.py maze_sarsa --runner.metrics_path runs/maze/metrics.jsonl
    python scripts/train.py tsp_actor_critic --help
"""

from __future__ import annotations

import numpy as np

from stepwise_rl.agent import create_agent
from stepwise_rl.configs import TrainConfig, cli
from stepwise_rl.metrics import setup_logging
from stepwise_rl.observers import EpisodeRecorder
from stepwise_rl.runner import evaluate, train


def main(config: TrainConfig) -> None:
    setup_logging()
    env = config.make_env()
    recorder = EpisodeRecorder(keep=10)
    agent = create_agent(
        env,
        config.algorithm,
        config.policy,
        config.params,
        memory_type=config.memory,
        seed=config.runner.seed,
        observers=[recorder],
    )

    results = train(agent, env, config.runner)

    last = results[-10:]
    mean_reward = float(np.mean([r.total_reward for r in last])) if last else 0.0
    print(
        f"Training complete | "
        f"episodes={len(results)} | "
        f"mean_reward(last 10)={mean_reward:.4f} | "
        f"updates={agent.updates}"
    )
    best = recorder.best
    if best is not None:
        print(f"Best recent episode {best.episode_id}: reward={best.total_reward:.4f} actions={best.actions}")
    if env.is_episodic():
        agent.start()
        greedy = evaluate(agent, env, episodes=1)
        agent.stop()
        print(f"Greedy episode reward: {greedy:.4f}")
        print(env.render())
    if config.runner.metrics_path:
        print(f"Metrics: {config.runner.metrics_path}")


if __name__ == "__main__":
    main(cli())
