"""Create certificate stores from the rows of a bulk store file."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from kfutil.domain.errors import ApplyFailure, ErrorList, InputError, InvalidRow
from kfutil.domain.model import IntCell, StrCell, decode_cell
from kfutil.domain.ports.gateway import GatewayError

from .template import (
    CONTAINER_ID_COLUMN,
    ERRORS_COLUMN,
    ID_COLUMN,
    PASSWORD_COLUMN,
    RESULT_COLUMNS,
    SERVER_PASSWORD,
    SERVER_USERNAME,
    missing_required_columns,
    property_column,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from kfutil.domain.model import StoreTypeDescriptor
    from kfutil.domain.ports.gateway import PlatformGateway

log = getLogger(__name__)

ERROR_ID = "error"
DRY_RUN_ID = "dry-run"

SecretPrompt = Callable[[str], str]


@dataclass(slots=True, frozen=True)
class SecretDefaults:
    """Fallback values for the three secret fields of a create request."""

    server_username: str | None = None
    server_password: str | None = None
    store_password: str | None = None

    def get(self, name: str) -> str | None:
        match name:
            case "ServerUsername":
                return self.server_username
            case "ServerPassword":
                return self.server_password
            case "Password":
                return self.store_password
            case _:
                return None


@dataclass(slots=True)
class ImportRowResult:
    line: int
    values: dict[str, str]
    store_id: str | None = None
    error: str | None = None
    request: dict[str, Any] = field(default_factory=dict)

    def outcome_row(self) -> dict[str, str]:
        row = {
            key: value for key, value in self.values.items() if key.lower() not in RESULT_COLUMNS
        }
        row[ID_COLUMN] = ERROR_ID if self.error else (self.store_id or "")
        row[ERRORS_COLUMN] = self.error or ""
        return row


def set_path(tree: dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` in a nested dict following a ``.``-separated path."""

    parts = path.split(".")
    node = tree
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


class StoreImporter:
    """Builds one create request per row and sends it to the Platform.

    Secret fields are filled from, in order: the row itself, command-line
    flags, environment variables and finally an interactive prompt.
    """

    def __init__(
        self,
        gateway: PlatformGateway,
        descriptor: StoreTypeDescriptor,
        *,
        flags: SecretDefaults | None = None,
        environment: SecretDefaults | None = None,
        prompt: SecretPrompt | None = None,
        dry_run: bool = False,
    ) -> None:
        self._gateway = gateway
        self._descriptor = descriptor
        self._flags = flags or SecretDefaults()
        self._environment = environment or SecretDefaults()
        self._prompt = prompt
        self._prompted: dict[str, str] = {}
        self._dry_run = dry_run

    def import_rows(
        self,
        header: Sequence[str],
        rows: Sequence[Mapping[str, str]],
    ) -> tuple[list[ImportRowResult], ErrorList]:
        missing = missing_required_columns(header, self._descriptor)
        if missing:
            raise InputError(
                f"missing required columns for store type {self._descriptor.short_name}: "
                + ", ".join(property_column(name) for name in missing)
            )

        results: list[ImportRowResult] = []
        errors = ErrorList()
        for index, values in enumerate(rows, start=1):
            result = ImportRowResult(line=index, values=dict(values))
            results.append(result)
            try:
                result.request = self.build_request(values)
            except InvalidRow as exc:
                exc.subject = f"row {index}"
                log.error("Row %s is not usable: %s", index, exc.message)
                result.error = exc.message
                errors.append(exc)
                continue

            if self._dry_run:
                log.info("[dry-run] would create store %s", _describe(result.request))
                result.store_id = DRY_RUN_ID
                continue

            try:
                result.store_id = self._gateway.create_store(result.request)
            except GatewayError as exc:
                log.error("Error creating store from row %s: %s", index, exc)
                result.error = str(exc)
                errors.append(ApplyFailure(str(exc), subject=f"row {index}"))
                continue
            log.info("Created store from row %s as %s", index, result.store_id)

        log.info(
            "%s rows processed, %s stores created, %s rows with errors",
            len(results),
            sum(1 for result in results if result.store_id and not result.error),
            sum(1 for result in results if result.error),
        )
        return results, errors

    def build_request(self, values: Mapping[str, str]) -> dict[str, Any]:
        request: dict[str, Any] = {}
        for column, text in values.items():
            name = column.strip()
            if not name or name.lower() in RESULT_COLUMNS:
                continue
            cell = decode_cell(text or "")
            if isinstance(cell, StrCell) and cell.is_empty:
                continue
            if name == CONTAINER_ID_COLUMN and isinstance(cell, IntCell) and cell.value == 0:
                log.debug("ContainerId is 0, omitting from request")
                continue
            set_path(request, name, cell.value)

        request["CertStoreType"] = self._descriptor.type_id
        self._apply_secrets(request, values)
        return request

    def _apply_secrets(self, request: dict[str, Any], values: Mapping[str, str]) -> None:
        if self._descriptor.server_required:
            for name in (SERVER_USERNAME, SERVER_PASSWORD):
                column = property_column(name)
                secret = self._secret(name, _cell(values, column))
                set_path(request, column, secret)
        if self._descriptor.store_password_required:
            request[PASSWORD_COLUMN] = self._secret(
                PASSWORD_COLUMN, _cell(values, PASSWORD_COLUMN)
            )

    def _secret(self, name: str, row_value: str | None) -> str:
        for candidate in (row_value, self._flags.get(name), self._environment.get(name)):
            if candidate:
                return candidate
        if name in self._prompted:
            return self._prompted[name]
        if self._prompt is not None:
            value = self._prompt(name)
            if value:
                self._prompted[name] = value
                return value
        raise InvalidRow(f"no value for required secret {name}")


def _cell(values: Mapping[str, str], column: str) -> str | None:
    wanted = column.lower()
    for key, value in values.items():
        if key.strip().lower() == wanted and value and value.strip():
            return value
    return None


def _describe(request: Mapping[str, Any]) -> str:
    machine = request.get("ClientMachine", "")
    path = request.get("StorePath", "")
    return f"{machine}:{path}"


__all__ = [
    "DRY_RUN_ID",
    "ERROR_ID",
    "ImportRowResult",
    "SecretDefaults",
    "SecretPrompt",
    "StoreImporter",
    "set_path",
]
