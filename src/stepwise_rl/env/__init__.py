"""Environments driven through the agent protocol.

Quick start::

    from stepwise_rl.env import make

    env = make("tsp", number_of_cities=5, seed=0)
    env.reset()
    state = env.get_state()
"""

from collections.abc import Callable

from stepwise_rl.env.base import Environment, RewardReceiver
from stepwise_rl.env.maze import Maze
from stepwise_rl.env.tsp import TravellingSalesman

# ---- Registry ----

_REGISTRY: dict[str, Callable[..., Environment]] = {
    "tsp": TravellingSalesman,
    "maze": Maze,
}


def register(name: str, factory: Callable[..., Environment]) -> None:
    """Register a custom environment factory under *name*."""
    _REGISTRY[name] = factory


def make(name: str, **kwargs: object) -> Environment:
    """Create an environment by name.

    Built-in names: ``"tsp"``, ``"maze"``.
    """
    if name not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown environment {name!r}. Available: {available}")
    return _REGISTRY[name](**kwargs)


__all__ = [
    "Environment",
    "Maze",
    "RewardReceiver",
    "TravellingSalesman",
    "make",
    "register",
]
