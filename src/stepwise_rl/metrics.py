"""Structured JSONL metrics logger and console logging setup.

Writes one JSON object per line. Each line is self-describing; fields
can vary between entries (per-algorithm training metrics are merged
into the episode record).

Usage::

    from stepwise_rl.metrics import MetricsLogger, setup_logging

    setup_logging()
    with MetricsLogger("runs/tsp/metrics.jsonl") as metrics:
        metrics.write({"episode": 1, "reward": 0.42, "policy_loss": 0.1})
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import IO, Any, Protocol

import jax.numpy as jnp
import numpy as np


class LogBackend(Protocol):
    """Protocol for extra sinks that receive every metrics record."""

    def log(self, record: dict[str, Any], step: int | None = None) -> None: ...
    def close(self) -> None: ...


class MemoryBackend:
    """Keeps records in a list; handy for tests and notebooks."""

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    def log(self, record: dict[str, Any], step: int | None = None) -> None:
        self.records.append(dict(record))

    def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Structured console logging
# ---------------------------------------------------------------------------

_LEVEL_ABBREV = {
    logging.DEBUG: "D",
    logging.INFO: "I",
    logging.WARNING: "W",
    logging.ERROR: "E",
    logging.CRITICAL: "C",
}


class _TrainFormatter(logging.Formatter):
    """Compact formatter: abbreviated level + millisecond timestamp.

    Example output::

        I 2026-02-15 14:30:22.123 [stepwise_rl.agent.deep_agent] episode 3 finished
    """

    def format(self, record: logging.LogRecord) -> str:
        lvl = _LEVEL_ABBREV.get(record.levelno, "?")
        ts = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        ms = int(record.msecs)
        msg = record.getMessage()
        return f"{lvl} {ts}.{ms:03d} [{record.name}] {msg}"


def setup_logging(level: int = logging.INFO) -> None:
    """Configure the ``stepwise_rl`` logger with compact formatting.

    Safe to call repeatedly; existing handlers are replaced.
    """
    logger = logging.getLogger("stepwise_rl")
    logger.setLevel(level)
    for h in logger.handlers[:]:
        logger.removeHandler(h)
    handler = logging.StreamHandler()
    handler.setFormatter(_TrainFormatter())
    logger.addHandler(handler)
    logger.propagate = False


def log_step_progress(
    step: int,
    total_steps: int,
    metrics: dict[str, Any] | None = None,
    logger_name: str = "stepwise_rl",
) -> None:
    """Log a one-line training progress message.

    Example output::

        I 2026-02-15 14:30:22.123 [stepwise_rl] episode 50/200 (25.0%) | mean_reward=0.42
    """
    pct = 100.0 * step / total_steps if total_steps > 0 else 0.0
    parts = [f"episode {step}/{total_steps} ({pct:.1f}%)"]
    if metrics:
        kv = " ".join(
            f"{k}={_to_python(v):.4g}" if isinstance(v, float) else f"{k}={_to_python(v)}"
            for k, v in metrics.items()
            if k not in ("episode", "wall_time")
        )
        if kv:
            parts.append(kv)
    logging.getLogger(logger_name).info(" | ".join(parts))


# ---------------------------------------------------------------------------
# Core MetricsLogger
# ---------------------------------------------------------------------------


class MetricsLogger:
    """Append-only JSONL logger with optional backend fan-out.

    Parameters
    ----------
    path:
        Path to the JSONL file. Parent directories are created
        automatically.
    backends:
        Optional :class:`LogBackend` instances; each ``write()`` call is
        forwarded to all of them.
    """

    def __init__(
        self,
        path: str | Path,
        backends: list[LogBackend] | None = None,
    ) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file: IO[str] = open(self._path, "a")  # noqa: SIM115
        self._start_time = time.monotonic()
        self._backends: list[LogBackend] = backends or []

    def write(self, record: dict[str, Any]) -> None:
        """Write one record as a JSON line, adding ``wall_time`` if absent."""
        row = {k: _to_python(v) for k, v in record.items()}
        if "wall_time" not in row:
            row["wall_time"] = round(time.monotonic() - self._start_time, 3)
        self._file.write(json.dumps(row, default=str) + "\n")
        self._file.flush()

        step = row.get("episode", row.get("step"))
        for backend in self._backends:
            backend.log(row, step=step)

    def close(self) -> None:
        self._file.close()
        for backend in self._backends:
            backend.close()

    @property
    def path(self) -> Path:
        return self._path

    def __enter__(self) -> MetricsLogger:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"MetricsLogger({self._path})"


def read_metrics(path: str | Path) -> list[dict[str, Any]]:
    """Read all records from a JSONL metrics file."""
    p = Path(path)
    if not p.exists():
        return []
    records = []
    for line in p.read_text().splitlines():
        line = line.strip()
        if line:
            records.append(json.loads(line))
    return records


def _to_python(val: Any) -> Any:
    """Convert JAX/numpy scalars to plain Python types for JSON."""
    if isinstance(val, (jnp.ndarray, np.ndarray)):
        return val.item()
    if isinstance(val, (np.integer, np.floating)):
        return val.item()
    return val
