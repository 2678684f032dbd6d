"""Flat ``key = value`` parameter strings.

Components are configured from a single comma-separated string such as
``"epsilonInitial = 0.2, epsilonDecayRate = 0.999, epsilonMin = 0.01"``.
Each component owns a frozen dataclass; :func:`config_from_params` fills
the fields it recognises and the caller checks that nothing was left
unclaimed.

Usage::

    params = parse_params("gamma = 0.95, applyDueling = true")
    config = config_from_params(DQNConfig, params, component="algorithm")
    check_unclaimed(params, claimed)
"""

from __future__ import annotations

import dataclasses
import re
import typing
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from stepwise_rl.errors import ConfigurationError

T = TypeVar("T")

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")
_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off"}


def normalize_key(key: str) -> str:
    """``epsilonDecayRate`` -> ``epsilon_decay_rate``; snake_case passes through."""
    key = key.strip()
    if "_" in key or key.islower():
        return key.lower()
    return _CAMEL.sub("_", key).lower()


def parse_params(text: str | None) -> dict[str, str]:
    """Split a ``key = value, key = value`` string into normalised raw values."""
    params: dict[str, str] = {}
    if not text or not text.strip():
        return params
    for item in text.split(","):
        if not item.strip():
            continue
        if "=" not in item:
            raise ConfigurationError("config", f"malformed parameter {item.strip()!r}")
        key, value = item.split("=", 1)
        name = normalize_key(key)
        if not name:
            raise ConfigurationError("config", f"empty parameter name in {item.strip()!r}")
        if name in params:
            raise ConfigurationError("config", f"parameter {key.strip()!r} given twice")
        params[name] = value.strip()
    return params


def _convert(raw: str, target: Any, key: str, component: str) -> Any:
    origin = typing.get_origin(target)
    if origin is not None:
        # Optional[X] / X | None
        args = [a for a in typing.get_args(target) if a is not type(None)]
        if raw.lower() in {"none", "null", ""}:
            return None
        if len(args) == 1:
            return _convert(raw, args[0], key, component)
        raise ConfigurationError(component, f"parameter {key!r} cannot be set from a string")
    try:
        if target is bool:
            lowered = raw.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(raw)
        if target is int:
            return int(raw)
        if target is float:
            return float(raw)
        if target is str:
            return raw
    except ValueError:
        raise ConfigurationError(
            component, f"parameter {key!r} expects {target.__name__}, got {raw!r}"
        ) from None
    raise ConfigurationError(component, f"parameter {key!r} cannot be set from a string")


def config_fields(cls: type) -> set[str]:
    """Names of the fields a config dataclass accepts from a parameter string."""
    return {f.name for f in dataclasses.fields(cls) if f.init}


def config_from_params(
    cls: type[T],
    params: Mapping[str, str],
    component: str,
    **overrides: Any,
) -> T:
    """Instantiate ``cls`` from the subset of ``params`` naming its fields.

    Keys the dataclass does not define are ignored here; use
    :func:`check_unclaimed` once every component has taken its share.
    """
    hints = typing.get_type_hints(cls)
    kwargs: dict[str, Any] = dict(overrides)
    for name in config_fields(cls):
        if name in params and name not in overrides:
            kwargs[name] = _convert(params[name], hints[name], name, component)
    try:
        return cls(**kwargs)
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ConfigurationError):
            raise
        raise ConfigurationError(component, str(exc)) from exc


def check_unclaimed(params: Mapping[str, str], claimed: Iterable[str]) -> None:
    """Raise if any parameter was not recognised by some component."""
    unknown = sorted(set(params) - set(claimed))
    if unknown:
        raise ConfigurationError("config", f"unknown parameter(s): {', '.join(unknown)}")
