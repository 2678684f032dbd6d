"""Tests for stepwise_rl.schedule."""

from __future__ import annotations

import jax
import jax.numpy as jnp
import pytest

from stepwise_rl.schedule import exponential_schedule, linear_schedule


class TestLinearSchedule:
    def test_start_value(self) -> None:
        sched = linear_schedule(start=1.0, end=0.0, steps=100)
        assert float(sched(0)) == 1.0

    def test_end_value(self) -> None:
        sched = linear_schedule(start=1.0, end=0.0, steps=100)
        assert float(sched(100)) == 0.0

    def test_midpoint(self) -> None:
        sched = linear_schedule(start=1.0, end=0.0, steps=100)
        val = float(sched(50))
        assert abs(val - 0.5) < 1e-5

    def test_clamps_beyond_steps(self) -> None:
        sched = linear_schedule(start=1.0, end=0.1, steps=100)
        assert float(sched(200)) == float(sched(100))

    def test_jit_compatible(self) -> None:
        sched = linear_schedule(start=1.0, end=0.0, steps=10)
        val = jax.jit(sched)(jnp.int32(5))
        assert abs(float(val) - 0.5) < 1e-5


class TestExponentialSchedule:
    def test_start_value(self) -> None:
        sched = exponential_schedule(start=0.2, rate=0.999, floor=0.01)
        assert float(sched(0)) == pytest.approx(0.2)

    def test_after_thousand_steps(self) -> None:
        sched = exponential_schedule(start=0.2, rate=0.999, floor=0.01)
        assert float(sched(1000)) == pytest.approx(max(0.01, 0.2 * 0.999**1000), rel=1e-4)

    def test_floor(self) -> None:
        sched = exponential_schedule(start=0.2, rate=0.999, floor=0.01)
        assert float(sched(10_000)) == pytest.approx(0.01)

    def test_matches_repeated_multiplication(self) -> None:
        sched = exponential_schedule(start=1.0, rate=0.9, floor=0.0)
        value = 1.0
        for _ in range(7):
            value *= 0.9
        assert float(sched(7)) == pytest.approx(value, rel=1e-5)

    def test_jit_compatible(self) -> None:
        sched = exponential_schedule(start=1.0, rate=0.5, floor=0.0)
        assert float(jax.jit(sched)(jnp.int32(2))) == pytest.approx(0.25)
