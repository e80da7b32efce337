"""Readers and writers for the root-of-trust CSV files."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Self

from kfutil.domain.clock import format_timestamp, parse_timestamp
from kfutil.domain.errors import ErrorList, InputError, InvalidRow
from kfutil.domain.model import AuditRow, CertificateRef, StoreRow

from .dialect import is_blank, make_reader, make_writer, normalize_header, require_header

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from types import TracebackType
    from typing import TextIO

    from kfutil.domain.model import Action

log = getLogger(__name__)

STORES_HEADER: tuple[str, ...] = (
    "StoreID",
    "StoreType",
    "StoreMachine",
    "StorePath",
    "ContainerId",
    "ContainerName",
    "LastQueriedDate",
)
CERTIFICATES_HEADER: tuple[str, ...] = (
    "Thumbprint",
    "SubjectName",
    "Issuer",
    "CertID",
    "Locations",
    "LastQueriedDate",
)
CERTIFICATE_ID_COLUMNS = frozenset({"certid", "thumbprint", "id"})
AUDIT_HEADER: tuple[str, ...] = (
    "Thumbprint",
    "CertID",
    "SubjectName",
    "Issuer",
    "StoreID",
    "StoreType",
    "Machine",
    "Path",
    "AddCert",
    "RemoveCert",
    "Deployed",
    "AuditDate",
)
RECONCILED_HEADER: tuple[str, ...] = (*AUDIT_HEADER[:-1], "ReconciledDate")

UNKNOWN_CERT_ID = -1


def _open_for_read(path: Path) -> TextIO:
    try:
        return path.open(newline="", encoding="utf-8")
    except OSError as exc:
        raise InputError(f"unable to read {path}: {exc}") from exc


def _read_header(rows: Iterable[list[str]], path: Path) -> list[str]:
    for row in rows:
        if not is_blank(row):
            return normalize_header(row)
    raise InputError(f"{path}: file is empty, a header row is required")


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def _parse_bool(text: str, column: str) -> bool:
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError(f"{column} must be true or false, got {text!r}")


def _parse_int(text: str, default: int) -> int:
    value = text.strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_optional_timestamp(text: str) -> datetime | None:
    if not text.strip():
        return None
    try:
        return parse_timestamp(text)
    except ValueError:
        log.debug("Ignoring unparseable timestamp %r", text)
        return None


def _pad(row: list[str], width: int) -> list[str]:
    return row + [""] * (width - len(row)) if len(row) < width else row


# stores


def read_stores(path: Path) -> list[StoreRow]:
    with _open_for_read(path) as handle:
        rows = make_reader(handle)
        require_header(_read_header(rows, path), STORES_HEADER, source=str(path))
        stores: list[StoreRow] = []
        seen: set[str] = set()
        for line, raw in enumerate(rows, start=2):
            if is_blank(raw):
                continue
            row = _pad(raw, len(STORES_HEADER))
            store_id = row[0].strip()
            if not store_id:
                raise InputError(f"{path}: line {line} has no StoreID")
            if store_id in seen:
                log.warning("%s: dropping duplicate store %s on line %s", path, store_id, line)
                continue
            seen.add(store_id)
            stores.append(
                StoreRow(
                    store_id=store_id,
                    store_type=row[1].strip(),
                    machine=row[2].strip(),
                    path=row[3].strip(),
                    container_id=_parse_int(row[4], 0),
                    container_name=row[5].strip(),
                    last_queried=_parse_optional_timestamp(row[6]),
                )
            )
    log.info("Read %s stores from %s", len(stores), path)
    return stores


# certificates


def read_certificates(path: Path) -> list[CertificateRef]:
    with _open_for_read(path) as handle:
        rows = make_reader(handle)
        header = _read_header(rows, path)
        if header[0].lower() not in CERTIFICATE_ID_COLUMNS:
            raise InputError(
                f"{path}: first column must be one of CertID, Thumbprint or id, got {header[0]!r}"
            )
        refs: list[CertificateRef] = []
        for line, row in enumerate(rows, start=2):
            if is_blank(row) or not row[0].strip():
                continue
            try:
                refs.append(CertificateRef.parse(row[0]))
            except InputError as exc:
                raise InputError(f"{path}: line {line}: {exc}") from exc
    log.info("Read %s certificate references from %s", len(refs), path)
    return refs


# audit and reconciled files


def action_row(action: Action, timestamp: datetime | None) -> list[str]:
    return [
        action.thumbprint,
        str(action.cert_id),
        action.subject_dn,
        action.issuer_dn,
        action.store_id,
        action.store_type,
        action.machine,
        action.store_path,
        _format_bool(action.add),
        _format_bool(action.remove),
        _format_bool(action.deployed),
        format_timestamp(timestamp) if timestamp else "",
    ]


class AuditCsvWriter:
    """Action sink writing one audit row per action.

    The file is truncated and the header written on open.
    """

    header: tuple[str, ...] = AUDIT_HEADER

    def __init__(self, path: Path) -> None:
        self.path = path
        self._handle = path.open("w", newline="", encoding="utf-8")
        self._writer = make_writer(self._handle)
        self._writer.writerow(self.header)
        self.rows_written = 0

    def _timestamp(self, action: Action) -> datetime | None:
        return action.audit_timestamp

    def write(self, action: Action) -> None:
        self._writer.writerow(action_row(action, self._timestamp(action)))
        self.rows_written += 1

    def flush(self) -> None:
        self._handle.flush()

    def close(self) -> None:
        if not self._handle.closed:
            self._handle.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class ReconciledCsvWriter(AuditCsvWriter):
    header = RECONCILED_HEADER

    def __init__(self, path: Path, *, reconciled_at: datetime) -> None:
        self.reconciled_at = reconciled_at
        super().__init__(path)

    def _timestamp(self, action: Action) -> datetime | None:  # noqa: ARG002
        return self.reconciled_at


def read_audit(path: Path) -> tuple[list[AuditRow], ErrorList]:
    """Parse an audit file, skipping rows whose flags cannot be read."""

    errors = ErrorList()
    audit_rows: list[AuditRow] = []
    with _open_for_read(path) as handle:
        rows = make_reader(handle)
        require_header(_read_header(rows, path), AUDIT_HEADER, source=str(path))
        for line, raw in enumerate(rows, start=2):
            if is_blank(raw):
                continue
            row = _pad(raw, len(AUDIT_HEADER))
            try:
                add = _parse_bool(row[8], "AddCert")
                remove = _parse_bool(row[9], "RemoveCert")
                deployed = _parse_bool(row[10], "Deployed") if row[10].strip() else False
            except ValueError as exc:
                log.warning("%s: skipping line %s: %s", path, line, exc)
                errors.append(InvalidRow(str(exc), subject=f"{path.name} line {line}"))
                continue
            audit_rows.append(
                AuditRow(
                    line=line,
                    thumbprint=row[0].strip(),
                    cert_id=_parse_int(row[1], UNKNOWN_CERT_ID),
                    subject_dn=row[2],
                    issuer_dn=row[3],
                    store_id=row[4].strip(),
                    store_type=row[5].strip(),
                    machine=row[6].strip(),
                    store_path=row[7],
                    add=add,
                    remove=remove,
                    deployed=deployed,
                    audit_timestamp=_parse_optional_timestamp(row[11]),
                )
            )
    log.info("Read %s audit rows from %s", len(audit_rows), path)
    return audit_rows, errors


class CsvRotFiles:
    """File-backed implementation of the ``RotFiles`` port."""

    def read_stores(self, path: Path) -> list[StoreRow]:
        return read_stores(path)

    def read_certificates(self, path: Path) -> list[CertificateRef]:
        return read_certificates(path)

    def read_audit(self, path: Path) -> tuple[list[AuditRow], ErrorList]:
        return read_audit(path)

    def open_audit(self, path: Path) -> AuditCsvWriter:
        return AuditCsvWriter(path)

    def open_reconciled(self, path: Path, *, reconciled_at: datetime) -> ReconciledCsvWriter:
        return ReconciledCsvWriter(path, reconciled_at=reconciled_at)


if TYPE_CHECKING:
    from kfutil.domain.ports.files import RotFiles

    _files_check: RotFiles = CsvRotFiles()
