"""Error taxonomy.

Every error names the component that raised it so a failed run points
straight at the estimator, policy, algorithm, memory, environment or
agent that was misconfigured or misused.
"""

from __future__ import annotations


class StepwiseError(Exception):
    """Base class for all stepwise_rl errors."""

    def __init__(self, component: str, message: str) -> None:
        super().__init__(f"[{component}] {message}")
        self.component = component
        self.message = message


class ConfigurationError(StepwiseError, ValueError):
    """Invalid construction-time configuration (fatal)."""


class ProtocolError(StepwiseError, RuntimeError):
    """Lifecycle misuse or an action outside the legal set."""


class EstimatorError(StepwiseError, ArithmeticError):
    """Numerical failure inside an estimator update."""
