"""Tests for stepwise_rl.types and stepwise_rl.errors."""

from __future__ import annotations

import numpy as np
import pytest

from stepwise_rl.errors import ConfigurationError, EstimatorError, ProtocolError, StepwiseError
from stepwise_rl.types import ActionError, ActionOutcome, EnvironmentState


class TestEnvironmentState:
    def test_feature_vector_is_read_only(self) -> None:
        state = EnvironmentState.create([1.0, 2.0], [0])
        with pytest.raises(ValueError):
            state.feature_vector[0] = 5.0

    def test_copies_input(self) -> None:
        features = np.array([1.0, 2.0])
        state = EnvironmentState.create(features, [0])
        features[0] = 9.0
        assert state.feature_vector[0] == 1.0

    def test_float32_flat(self) -> None:
        state = EnvironmentState.create([[1, 2], [3, 4]], [0, 1])
        assert state.feature_vector.dtype == np.float32
        assert state.size == 4

    def test_non_terminal_needs_actions(self) -> None:
        with pytest.raises(ProtocolError, match="no available actions"):
            EnvironmentState.create([0.0], [])

    def test_terminal_without_actions(self) -> None:
        state = EnvironmentState.create([0.0], [], terminal=True)
        assert state.terminal
        assert state.available_actions == frozenset()

    def test_actions_are_frozen(self) -> None:
        state = EnvironmentState.create([0.0], [2, 1, 2])
        assert state.available_actions == frozenset({1, 2})


class TestActionOutcome:
    def test_success(self) -> None:
        outcome = ActionOutcome.success(3, 0.5)
        assert outcome.ok
        assert outcome.unwrap() == 3
        assert outcome.reward == 0.5

    def test_failure_reraises_cause(self) -> None:
        cause = ProtocolError("environment", "action 7 not available")
        outcome = ActionOutcome.failure(ActionError.NOT_AVAILABLE, cause, action=7)
        assert not outcome.ok
        assert outcome.action == 7
        with pytest.raises(ProtocolError, match="not available"):
            outcome.unwrap()

    def test_failure_without_cause(self) -> None:
        outcome = ActionOutcome.failure(ActionError.ENVIRONMENT_TERMINAL)
        with pytest.raises(ProtocolError, match="environment_terminal"):
            outcome.unwrap()

    def test_success_without_action(self) -> None:
        with pytest.raises(ProtocolError, match="no action"):
            ActionOutcome(action=None).unwrap()


class TestErrors:
    def test_message_names_component(self) -> None:
        err = ConfigurationError("estimator", "bad width")
        assert str(err) == "[estimator] bad width"
        assert err.component == "estimator"
        assert err.message == "bad width"

    def test_hierarchy(self) -> None:
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(ProtocolError, RuntimeError)
        assert issubclass(EstimatorError, ArithmeticError)
        for cls in (ConfigurationError, ProtocolError, EstimatorError):
            assert issubclass(cls, StepwiseError)
