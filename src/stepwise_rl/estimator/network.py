"""Estimator networks implemented with Equinox.

All networks map a single feature vector to a 1-D output; estimators
``vmap`` them over batches.

- ``ValueNetwork``: features -> one value per output (Q-values, or V(s) with one output)
- ``DuelingNetwork``: shared trunk, Q = V + A - mean(A)
- ``PolicyNetwork``: features -> action probabilities
- ``PolicyValueNetwork``: features -> ``[V(s), pi(.|s)]`` from one trunk
"""

from __future__ import annotations

import equinox as eqx
import jax
import jax.numpy as jnp


def _mlp(dims: list[int], key: jax.Array) -> list[eqx.nn.Linear]:
    keys = jax.random.split(key, len(dims) - 1)
    return [
        eqx.nn.Linear(d_in, d_out, key=k)
        for d_in, d_out, k in zip(dims[:-1], dims[1:], keys)
    ]


class ValueNetwork(eqx.Module):
    """Simple MLP: features -> one value per output."""

    layers: list

    def __init__(
        self,
        input_size: int,
        output_size: int,
        hidden_sizes: tuple[int, ...] = (64, 64),
        *,
        key: jax.Array,
    ) -> None:
        self.layers = _mlp([input_size, *hidden_sizes, output_size], key)

    def __call__(self, x: jax.Array) -> jax.Array:
        for layer in self.layers[:-1]:
            x = jax.nn.relu(layer(x))
        return self.layers[-1](x)


class DuelingNetwork(eqx.Module):
    """Dueling architecture: separate state-value and advantage heads."""

    trunk: list
    value_head: eqx.nn.Linear
    advantage_head: eqx.nn.Linear

    def __init__(
        self,
        input_size: int,
        output_size: int,
        hidden_sizes: tuple[int, ...] = (64, 64),
        *,
        key: jax.Array,
    ) -> None:
        k_trunk, k_value, k_adv = jax.random.split(key, 3)
        dims = [input_size, *hidden_sizes]
        self.trunk = _mlp(dims, k_trunk) if len(dims) > 1 else []
        self.value_head = eqx.nn.Linear(dims[-1], 1, key=k_value)
        self.advantage_head = eqx.nn.Linear(dims[-1], output_size, key=k_adv)

    def __call__(self, x: jax.Array) -> jax.Array:
        for layer in self.trunk:
            x = jax.nn.relu(layer(x))
        value = self.value_head(x)
        advantage = self.advantage_head(x)
        return value + advantage - jnp.mean(advantage)


class PolicyNetwork(eqx.Module):
    """MLP policy: features -> softmax action probabilities."""

    layers: list

    def __init__(
        self,
        input_size: int,
        output_size: int,
        hidden_sizes: tuple[int, ...] = (64, 64),
        *,
        key: jax.Array,
    ) -> None:
        self.layers = _mlp([input_size, *hidden_sizes, output_size], key)

    def logits(self, x: jax.Array) -> jax.Array:
        for layer in self.layers[:-1]:
            x = jax.nn.tanh(layer(x))
        return self.layers[-1](x)

    def __call__(self, x: jax.Array) -> jax.Array:
        return jax.nn.softmax(self.logits(x))


class PolicyValueNetwork(eqx.Module):
    """Shared trunk with a value head and a policy head.

    Output layout is ``[V(s), pi(a_0|s), ..., pi(a_{n-1}|s)]``.
    """

    trunk: list
    value_head: eqx.nn.Linear
    policy_head: eqx.nn.Linear

    def __init__(
        self,
        input_size: int,
        number_of_actions: int,
        hidden_sizes: tuple[int, ...] = (64, 64),
        *,
        key: jax.Array,
    ) -> None:
        k_trunk, k_value, k_policy = jax.random.split(key, 3)
        dims = [input_size, *hidden_sizes]
        self.trunk = _mlp(dims, k_trunk) if len(dims) > 1 else []
        self.value_head = eqx.nn.Linear(dims[-1], 1, key=k_value)
        self.policy_head = eqx.nn.Linear(dims[-1], number_of_actions, key=k_policy)

    def __call__(self, x: jax.Array) -> jax.Array:
        for layer in self.trunk:
            x = jax.nn.tanh(layer(x))
        value = self.value_head(x)
        probs = jax.nn.softmax(self.policy_head(x))
        return jnp.concatenate([value, probs])
