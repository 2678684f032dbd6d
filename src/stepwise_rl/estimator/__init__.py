"""Function estimators: neural (Equinox + optax) and tabular."""

from __future__ import annotations

import enum

import jax

from stepwise_rl.estimator.base import (
    EstimatorConfig,
    FunctionEstimator,
    LossParams,
    Objective,
)
from stepwise_rl.estimator.network import (
    DuelingNetwork,
    PolicyNetwork,
    PolicyValueNetwork,
    ValueNetwork,
)
from stepwise_rl.estimator.neural import NeuralFunctionEstimator
from stepwise_rl.estimator.tabular import TabularFunctionEstimator
from stepwise_rl.memory import Memory


class EstimatorKind(enum.Enum):
    """Estimator flavours and the outputs they produce."""

    ACTION_VALUE = "action_value"  # Q(s, .)
    DUELING = "dueling"  # Q(s, .) via V + A
    STATE_VALUE = "state_value"  # V(s), one output
    POLICY = "policy"  # pi(.|s)
    POLICY_VALUE = "policy_value"  # [V(s); pi(.|s)]
    TABULAR = "tabular"  # Q(s, .) lookup table


def make_estimator(
    kind: EstimatorKind,
    input_size: int,
    number_of_actions: int,
    config: EstimatorConfig,
    *,
    key: jax.Array,
    memory: Memory | None = None,
    name: str | None = None,
    objective: Objective | None = None,
) -> FunctionEstimator:
    """Build an estimator of *kind* mapping ``input_size`` features to its outputs.

    *objective* only applies to policy estimators (e.g. ``SOFT_POLICY``).
    """
    name = name or kind.value
    hidden = config.hidden_sizes
    if kind is EstimatorKind.TABULAR:
        return TabularFunctionEstimator(input_size, number_of_actions, config, memory=memory, name=name)
    if kind is EstimatorKind.ACTION_VALUE:
        model = ValueNetwork(input_size, number_of_actions, hidden, key=key)
        return NeuralFunctionEstimator(model, input_size, number_of_actions, config, Objective.REGRESSION, memory, name)
    if kind is EstimatorKind.DUELING:
        model = DuelingNetwork(input_size, number_of_actions, hidden, key=key)
        return NeuralFunctionEstimator(model, input_size, number_of_actions, config, Objective.REGRESSION, memory, name)
    if kind is EstimatorKind.STATE_VALUE:
        model = ValueNetwork(input_size, 1, hidden, key=key)
        return NeuralFunctionEstimator(model, input_size, 1, config, Objective.REGRESSION, memory, name)
    if kind is EstimatorKind.POLICY:
        model = PolicyNetwork(input_size, number_of_actions, hidden, key=key)
        return NeuralFunctionEstimator(
            model, input_size, number_of_actions, config, objective or Objective.POLICY, memory, name
        )
    model = PolicyValueNetwork(input_size, number_of_actions, hidden, key=key)
    return NeuralFunctionEstimator(
        model, input_size, number_of_actions + 1, config, Objective.POLICY_VALUE, memory, name
    )


__all__ = [
    "DuelingNetwork",
    "EstimatorConfig",
    "EstimatorKind",
    "FunctionEstimator",
    "LossParams",
    "NeuralFunctionEstimator",
    "Objective",
    "PolicyNetwork",
    "PolicyValueNetwork",
    "TabularFunctionEstimator",
    "ValueNetwork",
    "make_estimator",
]
