"""Readers for kfutil settings held in environment variables.

Blank values count as unset everywhere, so an empty line in a ``.env`` file
never shadows a default.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import ConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def optional_env_var(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name, "")
    return value if value.strip() else default


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Read every name, reporting all absent ones in a single error."""

    values = {name: optional_env_var(name) for name in names}
    absent = sorted(name for name, value in values.items() if value is None)
    if absent:
        raise MissingConfigurationError(
            f"Missing configuration for: {', '.join(absent)} "
            "(set them in the environment or a .env file)"
        )
    return {name: value for name, value in values.items() if value is not None}


def require_env_var(name: str) -> str:
    return require_env_vars((name,))[name]


def env_flag(name: str) -> bool:
    return (optional_env_var(name) or "").strip().lower() in _TRUTHY


def env_float(name: str, default: float) -> float:
    text = optional_env_var(name)
    if text is None:
        return default
    try:
        return float(text)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {text!r}") from exc
