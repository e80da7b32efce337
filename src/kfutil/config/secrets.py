"""Secret overrides used when creating certificate stores in bulk."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var

SERVER_USERNAME_ENV_VAR = "KFUTIL_CSV_SERVER_USERNAME"
SERVER_PASSWORD_ENV_VAR = "KFUTIL_CSV_SERVER_PASSWORD"
STORE_PASSWORD_ENV_VAR = "KFUTIL_CSV_STORE_PASSWORD"


@dataclass(frozen=True, slots=True)
class StoreSecretsConfig:
    server_username: str | None = None
    server_password: str | None = None
    store_password: str | None = None


def get_store_secrets_config() -> StoreSecretsConfig:
    return StoreSecretsConfig(
        server_username=optional_env_var(SERVER_USERNAME_ENV_VAR),
        server_password=optional_env_var(SERVER_PASSWORD_ENV_VAR),
        store_password=optional_env_var(STORE_PASSWORD_ENV_VAR),
    )
