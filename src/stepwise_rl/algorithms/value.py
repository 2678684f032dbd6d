"""Temporal-difference value methods: Q-learning, double Q-learning, SARSA.

All three regress the action-value estimator toward
``reward + gamma * V(next_state)``; they differ in ``V``:

- Q-learning: max over the next state's available actions, read from the
  target estimator when one exists.
- Double Q-learning: the live estimator picks the next action, the target
  estimator scores it.
- SARSA: the value of the action actually taken next. Transitions are held
  back one step until that action is known.

The regression target for a transition is the current prediction with the
taken action's entry replaced by the TD target, so only that entry moves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import jax
import numpy as np

from stepwise_rl.algorithms.base import (
    AlgorithmConfig,
    LearningAlgorithm,
    masked_argmax,
    masked_max,
    td_target,
)
from stepwise_rl.estimator import (
    EstimatorConfig,
    EstimatorKind,
    FunctionEstimator,
    make_estimator,
)
from stepwise_rl.memory import Memory, MemoryBatch
from stepwise_rl.types import EnvironmentState, Transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValueLearningConfig(AlgorithmConfig):
    apply_dueling: bool = False


class QLearning(LearningAlgorithm):
    """Off-policy TD control on an action-value estimator."""

    config_class = ValueLearningConfig
    config: ValueLearningConfig

    def __init__(
        self,
        config: ValueLearningConfig,
        estimator_config: EstimatorConfig,
        input_size: int,
        number_of_actions: int,
        memory: Memory,
        *,
        key: jax.Array,
        tabular: bool = False,
        use_target: bool = False,
    ) -> None:
        super().__init__(config, number_of_actions)
        if tabular:
            kind = EstimatorKind.TABULAR
        elif config.apply_dueling:
            kind = EstimatorKind.DUELING
        else:
            kind = EstimatorKind.ACTION_VALUE
        self.q = make_estimator(
            kind, input_size, number_of_actions, estimator_config, key=key, memory=memory, name="q"
        )
        if use_target:
            self.q.enable_target()

    @property
    def primary(self) -> FunctionEstimator:
        return self.q

    @property
    def estimators(self) -> list[FunctionEstimator]:
        return [self.q]

    def action_values(self, state: EnvironmentState) -> np.ndarray:
        return self.q.predict(state.feature_vector)

    def _next_values(self, batch: MemoryBatch) -> np.ndarray:
        next_q = self.q.predict_target_batch(batch.next_features)
        return masked_max(next_q, batch.next_action_mask(self.number_of_actions))

    def _train_batch(self, batch: MemoryBatch) -> dict[str, float]:
        features = batch.features
        predictions = self.q.predict_batch(features)
        targets_td = td_target(batch.rewards, self._next_values(batch), batch.terminals, self.config.gamma)
        rows = np.arange(len(batch))
        actions = batch.actions
        td_errors = targets_td - predictions[rows, actions]
        targets = predictions.copy()
        targets[rows, actions] = targets_td
        loss = self.q.fit(features, targets, batch.weights)
        self.q.update_priorities(batch, td_errors)
        return {
            "loss": loss,
            "td_error": float(np.mean(np.abs(td_errors))),
            "q_mean": float(np.mean(predictions[rows, actions])),
        }


class DoubleQLearning(QLearning):
    """Live estimator selects the next action, target estimator evaluates it."""

    def _next_values(self, batch: MemoryBatch) -> np.ndarray:
        next_features = batch.next_features
        mask = batch.next_action_mask(self.number_of_actions)
        best = masked_argmax(self.q.predict_batch(next_features), mask)
        evaluated = self.q.predict_target_batch(next_features)[np.arange(len(batch)), best]
        return np.where(mask.any(axis=-1), evaluated, 0.0)


class Sarsa(QLearning):
    """On-policy TD control: bootstrap from the action actually taken next."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._pending: Transition | None = None

    def observe(self, transition: Transition) -> None:
        if self._pending is not None:
            self.q.store(self._pending._replace(next_action=transition.action))
            self._pending = None
        if transition.terminal:
            self.q.store(transition)
        else:
            self._pending = transition

    def end_episode(self) -> None:
        # Cut-off episode: the next action is unknown, assume the greedy one.
        if self._pending is None:
            return
        pending = self._pending
        next_state = pending.next_state
        if next_state.available_actions:
            values = self.q.predict(next_state.feature_vector)
            candidates = sorted(next_state.available_actions)
            next_action = candidates[int(np.argmax(values[candidates]))]
            self.q.store(pending._replace(next_action=next_action))
        else:
            self.q.store(pending._replace(terminal=True))
        self._pending = None

    def _next_values(self, batch: MemoryBatch) -> np.ndarray:
        next_actions = batch.next_actions
        next_q = self.q.predict_target_batch(batch.next_features)
        chosen = next_q[np.arange(len(batch)), np.maximum(next_actions, 0)]
        return np.where(next_actions >= 0, chosen, 0.0)

    def reset(self) -> None:
        super().reset()
        self._pending = None
