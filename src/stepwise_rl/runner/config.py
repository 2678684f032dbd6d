"""Runner configuration."""

from __future__ import annotations

from dataclasses import dataclass

from stepwise_rl.errors import ConfigurationError


@dataclass(frozen=True)
class RunnerConfig:
    """Outer training loop settings.

    Agent, policy and algorithm settings travel in the parameter string
    handed to :func:`~stepwise_rl.agent.create_agent`.
    """

    # Training budget
    episodes: int = 100
    max_steps_per_episode: int | None = None  # None = until terminal
    steps: int = 10_000  # continuing tasks; also the evaluation budget there

    # Evaluation
    eval_every: int = 0  # 0 = never
    eval_episodes: int = 1

    # Logging
    log_interval: int = 10  # 0 = never
    metrics_path: str | None = None

    # Seeding
    seed: int = 0

    def __post_init__(self) -> None:
        if self.episodes < 0:
            raise ConfigurationError("runner", f"episodes must be >= 0, got {self.episodes}")
        if self.steps <= 0:
            raise ConfigurationError("runner", f"steps must be positive, got {self.steps}")
        if self.max_steps_per_episode is not None and self.max_steps_per_episode <= 0:
            raise ConfigurationError("runner", "max_steps_per_episode must be positive or None")
        if self.eval_every < 0 or self.log_interval < 0:
            raise ConfigurationError("runner", "eval_every and log_interval must be >= 0")
        if self.eval_episodes <= 0:
            raise ConfigurationError("runner", f"eval_episodes must be positive, got {self.eval_episodes}")
