"""Application orchestration entry points."""

from __future__ import annotations

import getpass
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from kfutil.adapters.csvio import (
    AUDIT_HEADER,
    CERTIFICATES_HEADER,
    STORES_HEADER,
    CsvRotFiles,
    TemplateFormat,
    read_table,
    results_path,
    write_table,
    write_template,
)
from kfutil.adapters.platform import KeyfactorGateway, should_cache_payload
from kfutil.config import get_platform_config, get_store_secrets_config
from kfutil.domain.bulk_stores import (
    SecretDefaults,
    StoreImporter,
    default_export_path,
    export_stores,
    template_header,
)
from kfutil.domain.clock import format_timestamp, run_timestamp, utcnow
from kfutil.domain.model import CertificateQuery
from kfutil.domain.ports.gateway import StoreFilter
from kfutil.domain.rot import RootOfTrustManager

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kfutil.domain.bulk_stores import ImportRowResult
    from kfutil.domain.clock import Clock
    from kfutil.domain.errors import ErrorList
    from kfutil.domain.model import StoreTypeDescriptor
    from kfutil.domain.ports.files import RotFiles
    from kfutil.domain.ports.gateway import PlatformGateway
    from kfutil.domain.rot import AuditOutcome, ReconcileOutcome, ReconcileSource, RunConfig

log = getLogger(__name__)


class TemplateKind(StrEnum):
    CERTS = "certs"
    STORES = "stores"
    ACTIONS = "actions"


TEMPLATE_HEADERS: dict[TemplateKind, tuple[str, ...]] = {
    TemplateKind.CERTS: CERTIFICATES_HEADER,
    TemplateKind.STORES: STORES_HEADER,
    TemplateKind.ACTIONS: AUDIT_HEADER,
}


@dataclass(slots=True)
class StoreImportOutcome:
    results: list[ImportRowResult]
    errors: ErrorList
    results_path: Path


@dataclass(slots=True)
class StoreExportOutcome:
    path: Path
    rows: int
    errors: ErrorList


def build_gateway() -> KeyfactorGateway:
    """Create a Platform gateway from the environment."""

    config = get_platform_config(cache_predicate=should_cache_payload)
    log.debug("Using Keyfactor Command API at %s", config.base_url)
    return KeyfactorGateway(config=config)


@contextmanager
def _gateway_scope(gateway: PlatformGateway | None) -> Iterator[PlatformGateway]:
    if gateway is not None:
        yield gateway
        return
    owned = build_gateway()
    try:
        yield owned
    finally:
        close = getattr(owned, "close", None)
        if callable(close):
            close()


# root of trust


def run_rot_audit(
    config: RunConfig,
    *,
    gateway: PlatformGateway | None = None,
    files: RotFiles | None = None,
    clock: Clock = utcnow,
) -> AuditOutcome:
    """Plan root-of-trust changes and write the audit file."""

    with _gateway_scope(gateway) as effective_gateway:
        manager = RootOfTrustManager(
            config, effective_gateway, files or CsvRotFiles(), clock=clock
        )
        return manager.audit()


def run_rot_reconcile(
    config: RunConfig,
    source: ReconcileSource,
    *,
    gateway: PlatformGateway | None = None,
    files: RotFiles | None = None,
    clock: Clock = utcnow,
) -> ReconcileOutcome:
    """Plan (or import) root-of-trust changes and dispatch them."""

    log.info("Starting reconcile: source=%s, dry_run=%s", source, config.dry_run)
    with _gateway_scope(gateway) as effective_gateway:
        manager = RootOfTrustManager(
            config, effective_gateway, files or CsvRotFiles(), clock=clock
        )
        return manager.reconcile(source)


def default_template_path(kind: TemplateKind, fmt: TemplateFormat) -> Path:
    return Path(f"{kind}_template.{fmt}")


def generate_rot_template(
    kind: TemplateKind,
    *,
    fmt: TemplateFormat = TemplateFormat.CSV,
    outpath: Path | None = None,
    store_type: str | None = None,
    container_name: str | None = None,
    collection_id: int | None = None,
    issued_cn: str | None = None,
    gateway: PlatformGateway | None = None,
    clock: Clock = utcnow,
) -> Path:
    """Write a ROT input template, prefilled from the Platform when filters are given."""

    header = TEMPLATE_HEADERS[kind]
    path = outpath or default_template_path(kind, fmt)
    rows: list[dict[str, str]] = []

    wants_stores = kind is TemplateKind.STORES and (store_type or container_name)
    wants_certs = kind is TemplateKind.CERTS and (collection_id is not None or issued_cn)
    if not (wants_stores or wants_certs):
        if store_type or container_name or collection_id is not None or issued_cn:
            log.warning("Prefill filters do not apply to %s templates and are ignored", kind)
        return write_template(path, header, rows, fmt=fmt)

    queried_at = format_timestamp(run_timestamp(clock))
    with _gateway_scope(gateway) as effective_gateway:
        if wants_stores:
            rows = _store_template_rows(
                effective_gateway,
                store_type=store_type,
                container_name=container_name,
                queried_at=queried_at,
            )
        else:
            rows = _certificate_template_rows(
                effective_gateway,
                CertificateQuery(issued_cn=issued_cn, collection_id=collection_id),
                queried_at=queried_at,
            )
    log.info("Prefilled %s template with %s rows", kind, len(rows))
    return write_template(path, header, rows, fmt=fmt)


def _store_template_rows(
    gateway: PlatformGateway,
    *,
    store_type: str | None,
    container_name: str | None,
    queried_at: str,
) -> list[dict[str, str]]:
    descriptor = gateway.get_store_type(store_type) if store_type else None
    summaries = gateway.list_stores(
        StoreFilter(
            store_type_id=descriptor.type_id if descriptor else None,
            container_name=container_name,
        )
    )
    type_names: dict[int, str] = {descriptor.type_id: descriptor.short_name} if descriptor else {}
    rows: list[dict[str, str]] = []
    for summary in summaries:
        if summary.store_type_id not in type_names:
            type_names[summary.store_type_id] = gateway.get_store_type(
                summary.store_type_id
            ).short_name
        rows.append(
            {
                "StoreID": summary.store_id,
                "StoreType": type_names[summary.store_type_id],
                "StoreMachine": summary.client_machine,
                "StorePath": summary.store_path,
                "ContainerId": str(summary.container_id) if summary.container_id else "",
                "ContainerName": container_name or "",
                "LastQueriedDate": queried_at,
            }
        )
    return rows


def _certificate_template_rows(
    gateway: PlatformGateway,
    query: CertificateQuery,
    *,
    queried_at: str,
) -> list[dict[str, str]]:
    return [
        {
            "Thumbprint": cert.thumbprint,
            "SubjectName": cert.issued_dn,
            "Issuer": cert.issuer_dn,
            "CertID": str(cert.cert_id),
            "Locations": "",
            "LastQueriedDate": queried_at,
        }
        for cert in gateway.list_certificates(query)
    ]


# bulk stores


def _store_type_identifier(name: str | None, type_id: int | None) -> str | int:
    if type_id is not None:
        return type_id
    if name:
        return name
    raise ValueError("either a store type name or a store type id is required")


def generate_store_import_template(
    *,
    store_type_name: str | None = None,
    store_type_id: int | None = None,
    outpath: Path | None = None,
    gateway: PlatformGateway | None = None,
) -> Path:
    identifier = _store_type_identifier(store_type_name, store_type_id)
    with _gateway_scope(gateway) as effective_gateway:
        descriptor = effective_gateway.get_store_type(identifier)
    path = outpath or Path(f"createstores_template_{descriptor.short_name}.csv")
    write_table(path, template_header(descriptor), [])
    log.info("Store import template for %s written to %s", descriptor.short_name, path)
    return path


def prompt_for_secret(name: str) -> str:
    return getpass.getpass(f"{name}: ")


def import_stores_csv(
    path: Path,
    *,
    store_type_name: str | None = None,
    store_type_id: int | None = None,
    outcome_path: Path | None = None,
    dry_run: bool = False,
    flags: SecretDefaults | None = None,
    prompt: bool = True,
    gateway: PlatformGateway | None = None,
) -> StoreImportOutcome:
    """Create one store per row of ``path`` and write an outcome file next to it."""

    identifier = _store_type_identifier(store_type_name, store_type_id)
    header, rows = read_table(path)
    secrets = get_store_secrets_config()
    environment = SecretDefaults(
        server_username=secrets.server_username,
        server_password=secrets.server_password,
        store_password=secrets.store_password,
    )
    with _gateway_scope(gateway) as effective_gateway:
        descriptor = effective_gateway.get_store_type(identifier)
        importer = StoreImporter(
            effective_gateway,
            descriptor,
            flags=flags,
            environment=environment,
            prompt=prompt_for_secret if prompt else None,
            dry_run=dry_run,
        )
        results, errors = importer.import_rows(header, rows)

    target = outcome_path or results_path(path)
    write_table(target, _outcome_header(header), [result.outcome_row() for result in results])
    log.info("Import results written to %s", target)
    return StoreImportOutcome(results=results, errors=errors, results_path=target)


def _outcome_header(header: Sequence[str]) -> list[str]:
    kept = [column for column in header if column.lower() not in {"id", "errors"}]
    return [*kept, "Id", "Errors"]


def export_stores_csv(
    *,
    store_type_name: str | None = None,
    store_type_id: int | None = None,
    outpath: Path | None = None,
    gateway: PlatformGateway | None = None,
) -> StoreExportOutcome:
    identifier = _store_type_identifier(store_type_name, store_type_id)
    with _gateway_scope(gateway) as effective_gateway:
        descriptor: StoreTypeDescriptor = effective_gateway.get_store_type(identifier)
        export, errors = export_stores(effective_gateway, descriptor)
    path = outpath or Path(default_export_path(descriptor))
    write_table(path, export.header, export.rows)
    log.info("Exported %s stores of type %s to %s", len(export.rows), descriptor.short_name, path)
    return StoreExportOutcome(path=path, rows=len(export.rows), errors=errors)

