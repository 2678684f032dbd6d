"""Preset configuration registry for stepwise_rl experiments."""

from stepwise_rl.configs.presets import PRESETS, TrainConfig, cli

__all__ = [
    "PRESETS",
    "TrainConfig",
    "cli",
]
