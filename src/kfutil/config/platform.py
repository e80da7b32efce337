"""Keyfactor Command (the Platform) connection settings."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, optional_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import (
    CacheConfig,
    ResilienceConfig,
    RetryPolicy,
    ShouldCacheHook,
)

DEFAULT_API_PATH = "KeyfactorAPI"
DEFAULT_TIMEOUT_SECONDS = 30.0
MIN_TIMEOUT_SECONDS = 3.0
REQUESTED_WITH = "APIClient"
API_VERSION = "1"


@dataclass(frozen=True, slots=True)
class PlatformConfig:
    """Holds the Platform connection values and the HTTP client profile."""

    hostname: str
    username: str
    password: str
    resilience: ResilienceConfig
    domain: str | None = None
    api_path: str = DEFAULT_API_PATH

    @property
    def base_url(self) -> str:
        return build_base_url(self.hostname, self.api_path)


def build_base_url(hostname: str, api_path: str) -> str:
    host = hostname.strip().rstrip("/")
    if "://" not in host:
        host = f"https://{host}"
    path = api_path.strip().strip("/")
    return f"{host}/{path}/" if path else f"{host}/"


def basic_auth_user(username: str, domain: str | None) -> str:
    if domain and "\\" not in username and "@" not in username:
        return f"{domain}\\{username}"
    return username


def get_platform_config(
    *,
    resilience: ResilienceConfig | None = None,
    cache_predicate: ShouldCacheHook | None = None,
) -> PlatformConfig:
    values = require_env_vars(("KEYFACTOR_HOSTNAME", "KEYFACTOR_USERNAME", "KEYFACTOR_PASSWORD"))
    domain = optional_env_var("KEYFACTOR_DOMAIN")
    api_path = optional_env_var("KEYFACTOR_API_PATH", DEFAULT_API_PATH) or DEFAULT_API_PATH
    timeout = env_float("KFUTIL_HTTP_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    if timeout < MIN_TIMEOUT_SECONDS:
        raise ConfigurationError(
            f"KFUTIL_HTTP_TIMEOUT must be at least {MIN_TIMEOUT_SECONDS:g} seconds"
        )

    username = basic_auth_user(values["KEYFACTOR_USERNAME"], domain)
    return PlatformConfig(
        hostname=values["KEYFACTOR_HOSTNAME"],
        username=username,
        password=values["KEYFACTOR_PASSWORD"],
        domain=domain,
        api_path=api_path,
        resilience=resilience
        or ResilienceConfig(
            name="keyfactor",
            base_url=build_base_url(values["KEYFACTOR_HOSTNAME"], api_path),
            timeout_seconds=timeout,
            retry=RetryPolicy(),
            cache=CacheConfig(should_cache=cache_predicate),
            default_headers={
                "x-keyfactor-requested-with": REQUESTED_WITH,
                "x-keyfactor-api-version": API_VERSION,
                "Accept": "application/json",
            },
            auth=(username, values["KEYFACTOR_PASSWORD"]),
        ),
    )
