"""Function estimator contract.

An estimator maps feature vectors to output vectors (action values,
action probabilities, or ``[value; policy]``) and accepts training
targets. It owns its parameters, its transition memory and, for
target-style algorithms, a structurally identical target copy that is
refreshed every ``target_function_update_cycle`` fit calls.

Usage::

    estimator = make_estimator(EstimatorKind.ACTION_VALUE, 8, 4, config, key=key)
    estimator.enable_target()
    values = estimator.predict(state.feature_vector)
    loss = estimator.fit(features, targets, weights)
"""

from __future__ import annotations

import enum
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
import optax

from stepwise_rl.errors import ConfigurationError
from stepwise_rl.memory import Memory, MemoryBatch
from stepwise_rl.types import Params, Transition

logger = logging.getLogger(__name__)


class Objective(enum.Enum):
    """What ``fit`` targets mean and which loss they feed.

    REGRESSION: targets are desired outputs (weighted Huber or squared error).
    POLICY: outputs are probabilities, targets weight ``log pi`` (advantage
        one-hot, or a visit distribution). With a ``reference`` the clipped
        proximal surrogate is used instead.
    SOFT_POLICY: targets are Q-values; loss ``sum pi (alpha log pi - Q)``.
    POLICY_VALUE: ``[value; policy]`` layout; regression on the first
        column plus POLICY on the rest.
    """

    REGRESSION = "regression"
    POLICY = "policy"
    SOFT_POLICY = "soft_policy"
    POLICY_VALUE = "policy_value"


class LossParams(NamedTuple):
    """Scalar loss coefficients passed into a fit call."""

    clip_epsilon: float = 0.2
    entropy_coefficient: float = 0.0
    alpha: float = 1.0


@dataclass(frozen=True)
class EstimatorConfig:
    """Estimator hyperparameters.

    ``target_function_update_cycle = 0`` synchronizes the target after
    every fit call; ``target_function_tau = 1`` is a hard copy and any
    smaller value blends (Polyak averaging).
    """

    # Network
    hidden_size: int = 64
    hidden_layers: int = 2

    # Optimization
    learning_rate: float = 1e-3
    max_grad_norm: float = 10.0
    loss: str = "huber"
    number_of_iterations: int = 1

    # Target network
    target_function_update_cycle: int = 0
    target_function_tau: float = 1.0

    # Tabular
    initial_value: float = 0.0
    decimals: int = 4

    def __post_init__(self) -> None:
        if self.number_of_iterations < 1:
            raise ConfigurationError(
                "estimator", f"number_of_iterations must be >= 1, got {self.number_of_iterations}"
            )
        if self.target_function_update_cycle < 0:
            raise ConfigurationError("estimator", "target_function_update_cycle must be >= 0")
        if not 0.0 < self.target_function_tau <= 1.0:
            raise ConfigurationError(
                "estimator", f"target_function_tau must be in (0, 1], got {self.target_function_tau}"
            )
        if self.loss not in ("huber", "mse"):
            raise ConfigurationError("estimator", f"loss must be 'huber' or 'mse', got {self.loss!r}")
        if self.learning_rate <= 0.0:
            raise ConfigurationError("estimator", "learning_rate must be positive")

    @property
    def hidden_sizes(self) -> tuple[int, ...]:
        return (self.hidden_size,) * self.hidden_layers

    def make_optimizer(self) -> optax.GradientTransformation:
        return optax.chain(
            optax.clip_by_global_norm(self.max_grad_norm),
            optax.adam(self.learning_rate, eps=1e-5),
        )


class FunctionEstimator(ABC):
    """Trainable mapping from feature vectors to output vectors."""

    def __init__(
        self,
        input_size: int,
        output_size: int,
        config: EstimatorConfig,
        objective: Objective = Objective.REGRESSION,
        memory: Memory | None = None,
        name: str = "estimator",
    ) -> None:
        if input_size <= 0 or output_size <= 0:
            raise ConfigurationError(
                "estimator", f"{name}: sizes must be positive ({input_size} -> {output_size})"
            )
        self.input_size = input_size
        self.output_size = output_size
        self.config = config
        self.objective = objective
        self.memory = memory
        self.name = name
        self.target: FunctionEstimator | None = None
        self.update_count = 0
        self._lock = threading.RLock()

    # ---- inference -------------------------------------------------------

    def _check_width(self, features: np.ndarray) -> np.ndarray:
        features = np.asarray(features, dtype=np.float32)
        if features.shape[-1] != self.input_size:
            raise ConfigurationError(
                "estimator",
                f"{self.name}: feature vector has {features.shape[-1]} values, "
                f"estimator expects {self.input_size}",
            )
        return features

    def predict(self, features: np.ndarray) -> np.ndarray:
        """Forward pass for one feature vector."""
        features = self._check_width(features)
        return self.predict_batch(features[None, :])[0]

    def predict_batch(self, features: np.ndarray) -> np.ndarray:
        features = self._check_width(features)
        if features.ndim != 2:
            raise ConfigurationError("estimator", f"{self.name}: expected a (batch, features) array")
        with self._lock:
            return self._forward(features)

    def predict_target(self, features: np.ndarray) -> np.ndarray:
        """Forward pass on the target copy, or the live estimator if there is none."""
        return (self.target or self).predict(features)

    def predict_target_batch(self, features: np.ndarray) -> np.ndarray:
        return (self.target or self).predict_batch(features)

    # ---- training --------------------------------------------------------

    def fit(
        self,
        features: np.ndarray,
        targets: np.ndarray,
        weights: np.ndarray | None = None,
        reference: np.ndarray | None = None,
        loss_params: LossParams | None = None,
    ) -> float:
        """Train toward *targets*; returns the loss of the last iteration.

        Runs ``number_of_iterations`` gradient steps, then counts one
        update and synchronizes the target when its cycle comes round.
        """
        features = self._check_width(features)
        targets = np.asarray(targets, dtype=np.float32)
        if targets.shape != (features.shape[0], self.output_size):
            raise ConfigurationError(
                "estimator",
                f"{self.name}: targets shape {targets.shape} does not match "
                f"({features.shape[0]}, {self.output_size})",
            )
        if weights is None:
            weights = np.ones(features.shape[0], dtype=np.float32)
        loss_params = loss_params or LossParams()
        loss = 0.0
        for _ in range(self.config.number_of_iterations):
            loss = self._fit(features, targets, np.asarray(weights, dtype=np.float32), reference, loss_params)
        self.update_count += 1
        if self.target is not None:
            cycle = self.config.target_function_update_cycle
            if cycle == 0 or self.update_count % cycle == 0:
                self.synchronize_target()
        return loss

    # ---- memory ----------------------------------------------------------

    def store(self, transition: Transition) -> None:
        if self.memory is None:
            raise ConfigurationError("estimator", f"{self.name} has no memory attached")
        self.memory.add(transition)

    def sample(self) -> MemoryBatch:
        if self.memory is None:
            raise ConfigurationError("estimator", f"{self.name} has no memory attached")
        return self.memory.sample()

    def memory_ready(self) -> bool:
        return self.memory is not None and self.memory.ready()

    def update_priorities(self, batch: MemoryBatch, td_errors: np.ndarray) -> None:
        if self.memory is not None:
            self.memory.update_priorities(batch.indices, td_errors)

    # ---- parameters and target --------------------------------------------

    def enable_target(self) -> FunctionEstimator:
        """Create the target copy with the current parameters."""
        self.target = self.copy()
        self.target.name = f"{self.name}/target"
        return self.target

    def synchronize_target(self) -> None:
        """Hard-copy or Polyak-blend live parameters into the target."""
        if self.target is None:
            return
        tau = self.config.target_function_tau
        if tau >= 1.0:
            self.target.load_parameters(self.clone_parameters())
        else:
            self.target.load_parameters(
                self._blend(self.target.clone_parameters(), self.clone_parameters(), tau)
            )
        logger.debug("%s target synchronized (update %d, tau %.4f)", self.name, self.update_count, tau)

    def snapshot(self) -> FunctionEstimator:
        """Independent copy for inference while this estimator keeps training."""
        return self.copy()

    @abstractmethod
    def clone_parameters(self) -> Params:
        """Independent copy of the current parameters."""

    @abstractmethod
    def load_parameters(self, params: Params) -> None:
        """Replace the parameters wholesale."""

    @abstractmethod
    def copy(self) -> FunctionEstimator:
        """Structurally identical estimator with cloned parameters and no memory."""

    @abstractmethod
    def _blend(self, target: Params, live: Params, tau: float) -> Params:
        """``(1 - tau) * target + tau * live``."""

    @abstractmethod
    def _forward(self, features: np.ndarray) -> np.ndarray: ...

    @abstractmethod
    def _fit(
        self,
        features: np.ndarray,
        targets: np.ndarray,
        weights: np.ndarray,
        reference: np.ndarray | None,
        loss_params: LossParams,
    ) -> float: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name}: {self.input_size} -> {self.output_size})"

