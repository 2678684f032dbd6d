"""PRNG key management utilities.

Network initialisation uses explicit ``jax.random`` keys. Exploration
policies, memories and environments run on the host and draw from
``numpy.random.Generator`` objects derived from the same keys, so one
integer seed reproduces a whole run.

Usage::

    from stepwise_rl.seeding import make_rng, numpy_rng, split_keys

    rng = make_rng(42)
    rng, net_key, policy_key = split_keys(rng, n=2)
    policy_rng = numpy_rng(policy_key)
"""

from __future__ import annotations

import jax
import numpy as np


def make_rng(seed: int) -> jax.Array:
    """Create a JAX PRNG key from an integer seed."""
    return jax.random.PRNGKey(seed)


def split_key(rng: jax.Array) -> tuple[jax.Array, jax.Array]:
    """Split *rng* into two keys: ``(new_rng, subkey)``."""
    return tuple(jax.random.split(rng))  # type: ignore[return-value]


def split_keys(rng: jax.Array, n: int) -> tuple[jax.Array, ...]:
    """Split *rng* into ``n + 1`` keys.

    Returns ``(new_rng, key_1, key_2, ..., key_n)``.
    """
    keys = jax.random.split(rng, n + 1)
    return tuple(keys)  # type: ignore[return-value]


def fold_in(rng: jax.Array, data: int) -> jax.Array:
    """Deterministically derive a new key by folding *data* into *rng*."""
    return jax.random.fold_in(rng, data)


def numpy_rng(key: jax.Array) -> np.random.Generator:
    """Derive a numpy generator from a JAX key for host-side sampling."""
    seed = jax.random.randint(key, (), 0, np.iinfo(np.int32).max)
    return np.random.default_rng(int(seed))
