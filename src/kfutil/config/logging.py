"""Shared logging helpers for kfutil."""

from __future__ import annotations

import logging

from .env import env_flag

DEBUG_ENV_VAR = "KFUTIL_DEBUG"


def debug_requested(flag: bool = False) -> bool:
    """Return whether debug logging was asked for by flag or environment."""

    return flag or env_flag(DEBUG_ENV_VAR)


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: we default
    to INFO level and a terse format suitable for CLI output. Pass ``force=True`` to
    reconfigure during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
