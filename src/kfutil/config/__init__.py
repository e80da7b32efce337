"""Application configuration helpers."""

from __future__ import annotations

from .env import env_flag, optional_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging, debug_requested
from .platform import PlatformConfig, get_platform_config
from .secrets import StoreSecretsConfig, get_store_secrets_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "MissingConfigurationError",
    "PlatformConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StoreSecretsConfig",
    "configure_logging",
    "debug_requested",
    "env_flag",
    "get_platform_config",
    "get_store_secrets_config",
    "optional_env_var",
    "require_env_var",
    "require_env_vars",
]
