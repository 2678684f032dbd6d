"""Pure-function decay schedules.

All schedules follow the signature ``schedule(step) -> value`` and keep
no Python-side state, so exploration policies only track the step count.

Usage::

    from stepwise_rl.schedule import exponential_schedule

    schedule = exponential_schedule(start=0.2, rate=0.999, floor=0.01)
    eps = float(schedule(1000))   # 0.0736
"""

from __future__ import annotations

from collections.abc import Callable

import jax.numpy as jnp

Schedule = Callable[[int | jnp.ndarray], jnp.ndarray]


def linear_schedule(
    start: float,
    end: float,
    steps: int,
) -> Schedule:
    """Return a pure function that linearly interpolates from *start* to *end*.

    Parameters
    ----------
    start:
        Value at step 0.
    end:
        Value at step *steps* (and beyond).
    steps:
        Number of steps over which to interpolate.
    """
    _start = jnp.float32(start)
    _end = jnp.float32(end)
    _steps = jnp.float32(max(steps, 1))

    def _schedule(step: int | jnp.ndarray) -> jnp.ndarray:
        frac = jnp.clip(jnp.float32(step) / _steps, 0.0, 1.0)
        return _start + frac * (_end - _start)

    return _schedule


def exponential_schedule(
    start: float,
    rate: float,
    floor: float = 0.0,
) -> Schedule:
    """Geometric decay ``max(floor, start * rate**step)``.

    Equivalent to applying ``value <- max(floor, value * rate)`` once per
    step, computed in closed form.
    """
    _start = jnp.float32(start)
    _rate = jnp.float32(rate)
    _floor = jnp.float32(floor)

    def _schedule(step: int | jnp.ndarray) -> jnp.ndarray:
        return jnp.maximum(_floor, _start * _rate ** jnp.float32(step))

    return _schedule

