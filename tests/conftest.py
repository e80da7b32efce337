from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from kfutil.config.logging import DEBUG_ENV_VAR
from kfutil.config.secrets import (
    SERVER_PASSWORD_ENV_VAR,
    SERVER_USERNAME_ENV_VAR,
    STORE_PASSWORD_ENV_VAR,
)
from kfutil.domain.model import StoreTypeDescriptor, StoreTypeProperty
from tests.support.fake_gateway import FakeGateway, make_certificate, make_store, root_entry

if TYPE_CHECKING:
    from collections.abc import Callable

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=UTC)

_ENV_VARS = (
    "KEYFACTOR_HOSTNAME",
    "KEYFACTOR_USERNAME",
    "KEYFACTOR_PASSWORD",
    "KEYFACTOR_DOMAIN",
    "KEYFACTOR_API_PATH",
    "KFUTIL_HTTP_TIMEOUT",
    DEBUG_ENV_VAR,
    SERVER_USERNAME_ENV_VAR,
    SERVER_PASSWORD_ENV_VAR,
    STORE_PASSWORD_ENV_VAR,
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def jks_store_type() -> StoreTypeDescriptor:
    return StoreTypeDescriptor(
        type_id=101,
        short_name="JKS",
        name="Java Keystore",
        properties=(
            StoreTypeProperty(name="ServerUsername", required=False),
            StoreTypeProperty(name="ServerPassword", required=False),
            StoreTypeProperty(name="ServerUseSsl", data_type="Bool", required=True),
            StoreTypeProperty(name="Alias", required=False),
        ),
        store_password_required=True,
        server_required=True,
    )


@pytest.fixture
def gateway(jks_store_type: StoreTypeDescriptor) -> FakeGateway:
    """Gateway with one eligible store ``s1`` holding root ``A`` (id 1).

    Roots ``B`` (id 2) and ``C`` (id 3) are known to the Platform but not deployed.
    """

    root_a = make_certificate("a", 1)
    fake = FakeGateway(
        certificates=[root_a, make_certificate("b", 2), make_certificate("c", 3)],
        store_types={jks_store_type.type_id: jks_store_type},
    )
    fake.add_store(make_store("s1"), [root_entry(root_a)])
    return fake
