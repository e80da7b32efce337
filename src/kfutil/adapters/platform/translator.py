"""Map Keyfactor Command payloads to domain types and back."""

from __future__ import annotations

import copy
import json
from logging import getLogger
from typing import TYPE_CHECKING, Any

from kfutil.domain.model import (
    CertificateRecord,
    InventoryCertificate,
    InventoryEntry,
    InventorySchedule,
    StoreRecord,
    StoreSummary,
    StoreTypeDescriptor,
    StoreTypeProperty,
    normalize_thumbprint,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .schema import (
        CertificatePayload,
        InventoryPayload,
        SchedulePayload,
        StorePayload,
        StoreTypePayload,
    )

log = getLogger(__name__)

WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
SERVER_SECRET_PROPERTIES = frozenset({"ServerUsername", "ServerPassword"})


def parse_certificate(payload: CertificatePayload) -> CertificateRecord:
    return CertificateRecord(
        cert_id=payload.id,
        thumbprint=normalize_thumbprint(payload.thumbprint),
        issued_dn=payload.issued_dn or "",
        issuer_dn=payload.issuer_dn or "",
        serial_number=payload.serial_number,
        issued_cn=payload.issued_cn,
    )


def parse_inventory_entry(payload: InventoryPayload) -> InventoryEntry:
    parameters = {key: str(value) for key, value in (payload.parameters or {}).items()}
    return InventoryEntry(
        alias=payload.name or "",
        certificates=tuple(
            InventoryCertificate(
                thumbprint=normalize_thumbprint(cert.thumbprint),
                cert_id=cert.id,
                serial_number=cert.serial_number,
                issued_dn=cert.issued_dn or "",
                issuer_dn=cert.issuer_dn or "",
            )
            for cert in payload.certificates
        ),
        parameters=parameters,
    )


def parse_store_summary(payload: StorePayload) -> StoreSummary:
    return StoreSummary(
        store_id=payload.id,
        store_type_id=payload.cert_store_type,
        client_machine=payload.client_machine,
        store_path=payload.store_path,
        container_id=payload.container_id or 0,
    )


def parse_store_record(payload: StorePayload) -> StoreRecord:
    return StoreRecord(
        store_id=payload.id,
        store_type_id=payload.cert_store_type,
        client_machine=payload.client_machine,
        store_path=payload.store_path,
        container_id=payload.container_id or 0,
        container_name=payload.container_name or "",
        agent_id=payload.agent_id or "",
        create_if_missing=bool(payload.create_if_missing),
        properties=flatten_properties(payload.properties),
        schedule=parse_schedule(payload.inventory_schedule),
    )


def parse_store_type(payload: StoreTypePayload) -> StoreTypeDescriptor:
    return StoreTypeDescriptor(
        type_id=payload.store_type,
        short_name=payload.short_name,
        name=payload.name,
        properties=tuple(
            StoreTypeProperty(
                name=prop.name,
                display_name=prop.display_name or prop.name,
                data_type=prop.type or "String",
                required=prop.required,
                default_value=None if prop.default_value is None else str(prop.default_value),
            )
            for prop in payload.properties
        ),
        store_password_required=payload.password_options.store_required,
        server_required=payload.server_required,
    )


def flatten_properties(raw: str | Mapping[str, Any] | None) -> dict[str, Any]:
    """Decode store properties, unwrapping ``{"name": {"value": ...}}`` pairs."""

    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            log.warning("Ignoring store properties that are not valid JSON")
            return {}
        if not isinstance(decoded, dict):
            return {}
        raw = decoded
    flattened: dict[str, Any] = {}
    for name, value in raw.items():
        if isinstance(value, dict) and "value" in value:
            flattened[name] = value["value"]
        else:
            flattened[name] = value
    return flattened


def weekday_name(day: int | str) -> str:
    if isinstance(day, int):
        return WEEKDAYS[day % 7]
    text = day.strip()
    if text.isdigit():
        return WEEKDAYS[int(text) % 7]
    for name in WEEKDAYS:
        if name.lower() == text.lower():
            return name
    return text


def parse_schedule(payload: SchedulePayload | None) -> InventorySchedule:
    if payload is None:
        return InventorySchedule()
    return InventorySchedule(
        immediate=payload.immediate,
        interval_minutes=payload.interval.minutes if payload.interval else None,
        daily_time=payload.daily.time if payload.daily else None,
        weekly_days=tuple(weekday_name(day) for day in payload.weekly.days)
        if payload.weekly
        else (),
        weekly_time=payload.weekly.time if payload.weekly else None,
    )


def build_create_store_body(request: Mapping[str, Any]) -> dict[str, Any]:
    """Turn an importer request tree into the body of ``POST CertificateStores``."""

    body = copy.deepcopy(dict(request))
    container_id = body.get("ContainerId")
    if container_id in (None, "", 0):
        body.pop("ContainerId", None)

    properties = body.pop("Properties", None) or {}
    body["Properties"] = json.dumps(
        {name: _wrap_property(name, value) for name, value in properties.items()},
        separators=(",", ":"),
    )

    password = body.get("Password")
    if isinstance(password, str):
        body["Password"] = {"SecretValue": password}

    schedule = body.get("InventorySchedule")
    if isinstance(schedule, dict):
        weekly = schedule.get("Weekly")
        if isinstance(weekly, dict) and isinstance(weekly.get("Days"), list):
            weekly["Days"] = [weekday_name(day) for day in weekly["Days"]]
    return body


def _wrap_property(name: str, value: Any) -> dict[str, Any]:
    if name in SERVER_SECRET_PROPERTIES:
        return {"value": {"SecretValue": value}}
    return {"value": value}
