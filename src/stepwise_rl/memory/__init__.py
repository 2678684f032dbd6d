"""Transition memories: online (drained), uniform replay, and prioritized replay."""

from __future__ import annotations

import enum
from collections.abc import Mapping

import numpy as np

from stepwise_rl.memory.base import Memory, MemoryBatch, MemoryConfig
from stepwise_rl.memory.online import OnlineMemory
from stepwise_rl.memory.priority import PriorityMemory, PriorityMemoryConfig, SumTree
from stepwise_rl.memory.replay import ReplayMemory
from stepwise_rl.params import config_fields, config_from_params


class MemoryType(enum.Enum):
    ONLINE = "online"
    REPLAY = "replay"
    PRIORITY = "priority"


def memory_keys(kind: MemoryType) -> set[str]:
    """Parameter names a memory of *kind* recognises."""
    return config_fields(PriorityMemoryConfig if kind is MemoryType.PRIORITY else MemoryConfig)


def make_memory(
    kind: MemoryType,
    params: Mapping[str, str] | None = None,
    rng: np.random.Generator | None = None,
) -> Memory:
    """Build a memory of *kind* from a parsed parameter mapping."""
    params = params or {}
    if kind is MemoryType.ONLINE:
        defaults = {"capacity": 0, "batch_size": -1}
        overrides = {k: v for k, v in defaults.items() if k not in params}
        return OnlineMemory(config_from_params(MemoryConfig, params, "memory", **overrides), rng)
    if kind is MemoryType.REPLAY:
        return ReplayMemory(config_from_params(MemoryConfig, params, "memory"), rng)
    return PriorityMemory(config_from_params(PriorityMemoryConfig, params, "memory"), rng)


__all__ = [
    "Memory",
    "MemoryBatch",
    "MemoryConfig",
    "MemoryType",
    "OnlineMemory",
    "PriorityMemory",
    "PriorityMemoryConfig",
    "ReplayMemory",
    "SumTree",
    "make_memory",
    "memory_keys",
]
