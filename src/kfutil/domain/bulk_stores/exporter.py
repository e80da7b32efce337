"""Export existing stores of one type into the bulk store file layout."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from kfutil.domain.errors import ErrorList, LookupFailure
from kfutil.domain.model import encode_value
from kfutil.domain.ports.gateway import GatewayError, StoreFilter

from .template import (
    CONTAINER_ID_COLUMN,
    ID_COLUMN,
    PASSWORD_COLUMN,
    SERVER_SECRETS,
    property_column,
    template_header,
)

if TYPE_CHECKING:
    from kfutil.domain.model import InventorySchedule, StoreRecord, StoreTypeDescriptor
    from kfutil.domain.ports.gateway import PlatformGateway

log = getLogger(__name__)

_SECRET_COLUMNS = frozenset({PASSWORD_COLUMN, *(property_column(name) for name in SERVER_SECRETS)})


@dataclass(slots=True)
class StoreExport:
    header: list[str]
    rows: list[dict[str, str]]


def default_export_path(descriptor: StoreTypeDescriptor) -> str:
    return f"export_stores_{descriptor.type_id}.csv"


def export_header(descriptor: StoreTypeDescriptor) -> list[str]:
    return [ID_COLUMN] + [
        column for column in template_header(descriptor) if column not in _SECRET_COLUMNS
    ]


def export_stores(
    gateway: PlatformGateway,
    descriptor: StoreTypeDescriptor,
) -> tuple[StoreExport, ErrorList]:
    """List every store of the type and turn each one into an importable row.

    Secrets are never exported; the Platform does not hand them back.
    """

    errors = ErrorList()
    header = export_header(descriptor)
    rows: list[dict[str, str]] = []
    summaries = gateway.list_stores(StoreFilter(store_type_id=descriptor.type_id))
    log.info("Exporting %s stores of type %s", len(summaries), descriptor.short_name)
    for summary in summaries:
        try:
            record = gateway.get_store(summary.store_id)
        except GatewayError as exc:
            log.warning("Unable to fetch store %s: %s", summary.store_id, exc)
            errors.append(LookupFailure(f"store lookup failed: {exc}", subject=summary.store_id))
            continue
        rows.append(store_to_row(record, header))
    return StoreExport(header=header, rows=rows), errors


def store_to_row(record: StoreRecord, header: list[str]) -> dict[str, str]:
    values: dict[str, str] = {
        ID_COLUMN: record.store_id,
        CONTAINER_ID_COLUMN: str(record.container_id) if record.container_id else "",
        "ClientMachine": record.client_machine,
        "StorePath": record.store_path,
        "CreateIfMissing": encode_value(record.create_if_missing),
        "AgentId": record.agent_id,
    }
    values.update(_schedule_columns(record.schedule))
    for name, value in record.properties.items():
        if name in SERVER_SECRETS:
            continue
        values[property_column(name)] = encode_value(value)
    return {column: values.get(column, "") for column in header}


def _schedule_columns(schedule: InventorySchedule) -> dict[str, str]:
    columns: dict[str, str] = {}
    if schedule.immediate is not None:
        columns["InventorySchedule.Immediate"] = encode_value(schedule.immediate)
    if schedule.interval_minutes is not None:
        columns["InventorySchedule.Interval.Minutes"] = encode_value(schedule.interval_minutes)
    if schedule.daily_time is not None:
        columns["InventorySchedule.Daily.Time"] = schedule.daily_time
    if schedule.weekly_days:
        columns["InventorySchedule.Weekly.Days"] = encode_value(list(schedule.weekly_days))
    if schedule.weekly_time is not None:
        columns["InventorySchedule.Weekly.Time"] = schedule.weekly_time
    return columns
