"""Equinox network wrapped as a :class:`FunctionEstimator`.

Parameters live as the array half of ``eqx.partition(model, eqx.is_array)``;
training swaps in a whole new parameter pytree under the estimator lock,
so a concurrent ``predict`` sees either the old or the new parameters,
never a mix.
"""

from __future__ import annotations

import logging

import chex
import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np
import optax

from stepwise_rl.errors import EstimatorError
from stepwise_rl.estimator.base import (
    EstimatorConfig,
    FunctionEstimator,
    LossParams,
    Objective,
)
from stepwise_rl.memory import Memory
from stepwise_rl.types import Params

logger = logging.getLogger(__name__)

_LOG_EPS = 1e-8


@eqx.filter_jit
def _forward(params: Params, static: eqx.Module, features: jax.Array) -> jax.Array:
    model = eqx.combine(params, static)
    return jax.vmap(model)(features)


def _regression(outputs: jax.Array, targets: jax.Array, loss_kind: str) -> jax.Array:
    if loss_kind == "huber":
        per_output = optax.huber_loss(outputs, targets)
    else:
        per_output = optax.squared_error(outputs, targets)
    return jnp.sum(per_output, axis=-1)


def _policy(
    probs: jax.Array,
    targets: jax.Array,
    reference: jax.Array | None,
    loss_params: LossParams,
) -> jax.Array:
    log_probs = jnp.log(probs + _LOG_EPS)
    if reference is None:
        surrogate = -jnp.sum(targets * log_probs, axis=-1)
    else:
        # Clipped proximal surrogate on the ratio to the previous policy.
        ratio = jnp.where(reference > 0.0, probs / jnp.maximum(reference, _LOG_EPS), 1.0)
        clipped = jnp.clip(ratio, 1.0 - loss_params.clip_epsilon, 1.0 + loss_params.clip_epsilon)
        surrogate = -jnp.sum(jnp.minimum(ratio * targets, clipped * targets), axis=-1)
    entropy = -jnp.sum(probs * log_probs, axis=-1)
    return surrogate - loss_params.entropy_coefficient * entropy


def objective_loss(
    objective: Objective,
    loss_kind: str,
    outputs: jax.Array,
    targets: jax.Array,
    weights: jax.Array,
    reference: jax.Array | None,
    loss_params: LossParams,
) -> jax.Array:
    """Weighted batch loss for *objective*."""
    if objective is Objective.REGRESSION:
        per_sample = _regression(outputs, targets, loss_kind)
    elif objective is Objective.POLICY:
        per_sample = _policy(outputs, targets, reference, loss_params)
    elif objective is Objective.SOFT_POLICY:
        log_probs = jnp.log(outputs + _LOG_EPS)
        per_sample = jnp.sum(outputs * (loss_params.alpha * log_probs - targets), axis=-1)
    else:
        value_loss = _regression(outputs[:, :1], targets[:, :1], loss_kind)
        policy_reference = None if reference is None else reference[:, 1:]
        per_sample = value_loss + _policy(outputs[:, 1:], targets[:, 1:], policy_reference, loss_params)
    return jnp.mean(weights * per_sample)


@eqx.filter_jit
def _train_step(
    params: Params,
    static: eqx.Module,
    opt_state: optax.OptState,
    optimizer: optax.GradientTransformation,
    objective: Objective,
    loss_kind: str,
    features: jax.Array,
    targets: jax.Array,
    weights: jax.Array,
    reference: jax.Array | None,
    loss_params: LossParams,
) -> tuple[Params, optax.OptState, jax.Array]:
    def loss_fn(p: Params) -> jax.Array:
        outputs = jax.vmap(eqx.combine(p, static))(features)
        return objective_loss(objective, loss_kind, outputs, targets, weights, reference, loss_params)

    loss, grads = jax.value_and_grad(loss_fn)(params)
    updates, new_opt_state = optimizer.update(grads, opt_state, params)
    new_params = optax.apply_updates(params, updates)
    return new_params, new_opt_state, loss


def _all_finite(params: Params) -> bool:
    leaves = jax.tree.leaves(params)
    return all(bool(jnp.all(jnp.isfinite(leaf))) for leaf in leaves)


class NeuralFunctionEstimator(FunctionEstimator):
    """Differentiable estimator backed by an Equinox module and an optax optimizer."""

    def __init__(
        self,
        model: eqx.Module,
        input_size: int,
        output_size: int,
        config: EstimatorConfig,
        objective: Objective = Objective.REGRESSION,
        memory: Memory | None = None,
        name: str = "estimator",
    ) -> None:
        super().__init__(input_size, output_size, config, objective, memory, name)
        self._params, self._static = eqx.partition(model, eqx.is_array)
        self._optimizer = config.make_optimizer()
        self._opt_state = self._optimizer.init(self._params)

    @property
    def model(self) -> eqx.Module:
        with self._lock:
            return eqx.combine(self._params, self._static)

    def _forward(self, features: np.ndarray) -> np.ndarray:
        outputs = _forward(self._params, self._static, jnp.asarray(features))
        return np.asarray(outputs, dtype=np.float32)

    def _fit(
        self,
        features: np.ndarray,
        targets: np.ndarray,
        weights: np.ndarray,
        reference: np.ndarray | None,
        loss_params: LossParams,
    ) -> float:
        chex.assert_equal_shape_prefix([features, targets, weights], 1)
        with self._lock:
            params, opt_state = self._params, self._opt_state
        new_params, new_opt_state, loss = _train_step(
            params,
            self._static,
            opt_state,
            self._optimizer,
            self.objective,
            self.config.loss,
            jnp.asarray(features),
            jnp.asarray(targets),
            jnp.asarray(weights),
            None if reference is None else jnp.asarray(reference, dtype=jnp.float32),
            LossParams(*(jnp.float32(v) for v in loss_params)),
        )
        loss = float(loss)
        if not np.isfinite(loss) or not _all_finite(new_params):
            raise EstimatorError(
                "estimator",
                f"{self.name}: non-finite loss ({loss}) after update {self.update_count}; "
                "parameters left unchanged",
            )
        with self._lock:
            self._params, self._opt_state = new_params, new_opt_state
        return loss

    def clone_parameters(self) -> Params:
        with self._lock:
            return jax.tree.map(jnp.copy, self._params)

    def load_parameters(self, params: Params) -> None:
        with self._lock:
            if jax.tree.structure(params) != jax.tree.structure(self._params):
                raise EstimatorError("estimator", f"{self.name}: parameter structure mismatch")
            self._params = params

    def _blend(self, target: Params, live: Params, tau: float) -> Params:
        return optax.incremental_update(live, target, tau)

    def copy(self) -> NeuralFunctionEstimator:
        clone = NeuralFunctionEstimator(
            eqx.combine(self.clone_parameters(), self._static),
            self.input_size,
            self.output_size,
            self.config,
            self.objective,
            memory=None,
            name=self.name,
        )
        clone.update_count = self.update_count
        return clone

    def parameter_vector(self) -> np.ndarray:
        """All parameters flattened into one vector."""
        leaves = jax.tree.leaves(self.clone_parameters())
        return np.concatenate([np.asarray(leaf).ravel() for leaf in leaves])
