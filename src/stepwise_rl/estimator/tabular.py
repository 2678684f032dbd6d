"""Lookup-table estimator.

Feature vectors are rounded to ``decimals`` places and used as keys;
each row holds one value per output. Fitting moves each touched row
toward its target by the plain TD rule
``v <- v + learning_rate * weight * (target - v)``.
"""

from __future__ import annotations

import numpy as np

from stepwise_rl.errors import ConfigurationError
from stepwise_rl.estimator.base import (
    EstimatorConfig,
    FunctionEstimator,
    LossParams,
    Objective,
)
from stepwise_rl.memory import Memory

Table = dict[tuple[float, ...], np.ndarray]


class TabularFunctionEstimator(FunctionEstimator):
    """Value table keyed by discretized feature vectors."""

    def __init__(
        self,
        input_size: int,
        output_size: int,
        config: EstimatorConfig,
        objective: Objective = Objective.REGRESSION,
        memory: Memory | None = None,
        name: str = "estimator",
    ) -> None:
        if objective is not Objective.REGRESSION:
            raise ConfigurationError(
                "estimator", f"{name}: tabular estimators only support value regression"
            )
        super().__init__(input_size, output_size, config, objective, memory, name)
        self._table: Table = {}

    def _key(self, row: np.ndarray) -> tuple[float, ...]:
        return tuple(np.round(row, self.config.decimals).tolist())

    def _row(self, key: tuple[float, ...]) -> np.ndarray:
        row = self._table.get(key)
        if row is None:
            return np.full(self.output_size, self.config.initial_value, dtype=np.float32)
        return row

    def __len__(self) -> int:
        return len(self._table)

    def set_values(self, features: np.ndarray, values: np.ndarray) -> None:
        """Write a row directly."""
        features = self._check_width(features)
        with self._lock:
            self._table[self._key(features)] = np.asarray(values, dtype=np.float32).copy()

    def _forward(self, features: np.ndarray) -> np.ndarray:
        return np.stack([self._row(self._key(row)).copy() for row in features])

    def _fit(
        self,
        features: np.ndarray,
        targets: np.ndarray,
        weights: np.ndarray,
        reference: np.ndarray | None,
        loss_params: LossParams,
    ) -> float:
        rate = self.config.learning_rate
        errors = []
        with self._lock:
            for row, target, weight in zip(features, targets, weights):
                key = self._key(row)
                values = self._row(key).copy()
                error = target - values
                values += rate * weight * error
                self._table[key] = values
                errors.append(float(weight * np.sum(error**2)))
        return float(np.mean(errors)) if errors else 0.0

    def clone_parameters(self) -> Table:
        with self._lock:
            return {key: row.copy() for key, row in self._table.items()}

    def load_parameters(self, params: Table) -> None:
        with self._lock:
            self._table = {key: np.asarray(row, dtype=np.float32).copy() for key, row in params.items()}

    def _blend(self, target: Table, live: Table, tau: float) -> Table:
        default = np.full(self.output_size, self.config.initial_value, dtype=np.float32)
        return {
            key: (1.0 - tau) * target.get(key, default) + tau * live.get(key, default)
            for key in set(target) | set(live)
        }

    def copy(self) -> TabularFunctionEstimator:
        clone = TabularFunctionEstimator(
            self.input_size, self.output_size, self.config, self.objective, memory=None, name=self.name
        )
        clone.load_parameters(self.clone_parameters())
        clone.update_count = self.update_count
        return clone
