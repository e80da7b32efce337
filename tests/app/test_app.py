from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from kfutil.adapters.csvio import (
    AUDIT_HEADER,
    STORES_HEADER,
    TemplateFormat,
    read_stores,
    read_table,
    write_table,
)
from kfutil.app import (
    TemplateKind,
    export_stores_csv,
    generate_rot_template,
    generate_store_import_template,
    import_stores_csv,
    run_rot_audit,
)
from kfutil.config import MissingConfigurationError
from kfutil.config.secrets import (
    SERVER_PASSWORD_ENV_VAR,
    SERVER_USERNAME_ENV_VAR,
    STORE_PASSWORD_ENV_VAR,
)
from kfutil.domain.bulk_stores import SecretDefaults, template_header
from kfutil.domain.rot import RunConfig
from tests.support.fake_gateway import make_store, thumbprint
from tests.support.rot_files import write_certs_csv, write_stores_csv

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from pathlib import Path

    from kfutil.domain.model import StoreTypeDescriptor
    from tests.support.fake_gateway import FakeGateway


def test_plain_template_needs_no_platform(tmp_path: Path) -> None:
    path = generate_rot_template(TemplateKind.ACTIONS, outpath=tmp_path / "actions.csv")

    assert path.read_text(encoding="utf-8") == ",".join(AUDIT_HEADER) + "\n"


def test_default_template_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    path = generate_rot_template(TemplateKind.CERTS, fmt=TemplateFormat.JSON)

    assert path.name == "certs_template.json"
    assert (tmp_path / path).exists()


def test_filters_on_an_actions_template_are_ignored(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.WARNING):
        generate_rot_template(
            TemplateKind.ACTIONS, outpath=tmp_path / "actions.csv", store_type="JKS"
        )

    assert "do not apply" in caplog.text


def test_stores_template_is_prefilled_by_store_type(
    gateway: FakeGateway, fixed_clock: Callable[[], datetime], tmp_path: Path
) -> None:
    gateway.add_store(make_store("other", store_type_id=7))

    path = generate_rot_template(
        TemplateKind.STORES,
        outpath=tmp_path / "stores.csv",
        store_type="JKS",
        gateway=gateway,
        clock=fixed_clock,
    )

    header, rows = read_table(path)
    assert header == list(STORES_HEADER)
    assert [row["StoreID"] for row in rows] == ["s1"]
    assert rows[0]["StoreType"] == "JKS"
    assert rows[0]["LastQueriedDate"] == "2024-05-01T12:30:15Z"
    assert [store.store_id for store in read_stores(path)] == ["s1"]


def test_certs_template_is_prefilled_by_common_name(
    gateway: FakeGateway, fixed_clock: Callable[[], datetime], tmp_path: Path
) -> None:
    path = generate_rot_template(
        TemplateKind.CERTS,
        fmt=TemplateFormat.JSON,
        outpath=tmp_path / "certs.json",
        issued_cn="Root B",
        gateway=gateway,
        clock=fixed_clock,
    )

    (row,) = json.loads(path.read_text(encoding="utf-8"))
    assert row["Thumbprint"] == thumbprint("B")
    assert row["CertID"] == "2"
    assert row["SubjectName"] == "CN=Root B,O=Example"


def test_prefill_without_platform_settings_fails(tmp_path: Path) -> None:
    with pytest.raises(MissingConfigurationError):
        generate_rot_template(TemplateKind.STORES, outpath=tmp_path / "s.csv", store_type="JKS")


def test_audit_writes_the_report(
    gateway: FakeGateway, fixed_clock: Callable[[], datetime], tmp_path: Path
) -> None:
    config = RunConfig(
        stores_path=write_stores_csv(tmp_path / "stores.csv", ["s1"]),
        add_certs_path=write_certs_csv(tmp_path / "add.csv", [thumbprint("B")]),
        output_path=tmp_path / "audit.csv",
    )

    outcome = run_rot_audit(config, gateway=gateway, clock=fixed_clock)

    assert not outcome.errors
    assert len(outcome.plan.pending) == 1
    assert outcome.report_path.exists()
    assert gateway.mutations == 0
    assert not gateway.closed


def test_store_import_template_uses_the_short_name(
    gateway: FakeGateway, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)

    path = generate_store_import_template(store_type_id=101, gateway=gateway)

    assert path.name == "createstores_template_JKS.csv"
    header, rows = read_table(tmp_path / path)
    assert header[-1] == "Password"
    assert rows == []


def test_store_type_is_required() -> None:
    with pytest.raises(ValueError, match="store type"):
        generate_store_import_template()


def test_stores_are_imported_with_secrets_from_the_environment(
    gateway: FakeGateway,
    jks_store_type: StoreTypeDescriptor,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv(SERVER_USERNAME_ENV_VAR, "env-user")
    monkeypatch.setenv(SERVER_PASSWORD_ENV_VAR, "env-password")
    monkeypatch.setenv(STORE_PASSWORD_ENV_VAR, "env-store")
    header = template_header(jks_store_type)
    row = dict.fromkeys(header, "")
    row.update(
        {"ClientMachine": "host2", "StorePath": "/opt/trust.jks", "Properties.ServerUseSsl": "true"}
    )
    source = tmp_path / "stores.csv"
    write_table(source, header, [row])

    outcome = import_stores_csv(
        source,
        store_type_name="JKS",
        flags=SecretDefaults(server_username="flag-user"),
        prompt=False,
        gateway=gateway,
    )

    assert not outcome.errors
    assert outcome.results_path == tmp_path / "stores_results.csv"
    (created,) = gateway.created
    assert created["Properties"]["ServerUsername"] == "flag-user"
    assert created["Properties"]["ServerPassword"] == "env-password"
    assert created["Password"] == "env-store"
    results_header, results = read_table(outcome.results_path)
    assert results_header[-2:] == ["Id", "Errors"]
    assert results[0]["Id"] == "store-1"
    assert "env-store" not in results[0].values()


def test_stores_are_exported(gateway: FakeGateway, tmp_path: Path) -> None:
    outcome = export_stores_csv(
        store_type_name="JKS", outpath=tmp_path / "export.csv", gateway=gateway
    )

    assert outcome.rows == 1
    assert not outcome.errors
    header, rows = read_table(outcome.path)
    assert header[0] == "Id"
    assert rows[0]["ClientMachine"] == "host1.example.com"
