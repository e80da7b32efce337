"""Column layout of bulk store files, derived from a store-type descriptor."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kfutil.domain.model import StoreTypeDescriptor

CONTAINER_ID_COLUMN = "ContainerId"
PROPERTY_PREFIX = "Properties."
PASSWORD_COLUMN = "Password"
ID_COLUMN = "Id"
ERRORS_COLUMN = "Errors"

SERVER_USERNAME = "ServerUsername"
SERVER_PASSWORD = "ServerPassword"
SERVER_SECRETS = frozenset({SERVER_USERNAME, SERVER_PASSWORD})

FIXED_COLUMNS: tuple[str, ...] = (
    CONTAINER_ID_COLUMN,
    "ClientMachine",
    "StorePath",
    "CreateIfMissing",
    "AgentId",
    "InventorySchedule.Immediate",
    "InventorySchedule.Interval.Minutes",
    "InventorySchedule.Daily.Time",
    "InventorySchedule.Weekly.Days",
    "InventorySchedule.Weekly.Time",
)

# Columns added to outcome and export files that never become request fields.
RESULT_COLUMNS = frozenset({ID_COLUMN.lower(), ERRORS_COLUMN.lower()})


def property_column(name: str) -> str:
    return f"{PROPERTY_PREFIX}{name}"


def template_header(descriptor: StoreTypeDescriptor) -> list[str]:
    """Return the header of a bulk create file for the given store type."""

    header = list(FIXED_COLUMNS)
    header.extend(property_column(prop.name) for prop in descriptor.properties)
    if descriptor.store_password_required:
        header.append(PASSWORD_COLUMN)
    return header


def missing_required_columns(
    header: Iterable[str],
    descriptor: StoreTypeDescriptor,
) -> list[str]:
    # Server credentials can come from flags, environment or a prompt instead.
    present = {column.strip().lower() for column in header}
    return [
        prop.name
        for prop in descriptor.required_properties
        if prop.name not in SERVER_SECRETS and property_column(prop.name).lower() not in present
    ]
