"""Training loops driving an agent through its environment."""

from stepwise_rl.runner.config import RunnerConfig
from stepwise_rl.runner.loop import EpisodeResult, evaluate, run_episode, run_steps, train

__all__ = ["EpisodeResult", "RunnerConfig", "evaluate", "run_episode", "run_steps", "train"]
