"""Keyfactor Command response payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PlatformModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CertificatePayload(PlatformModel):
    id: int = Field(alias="Id")
    thumbprint: str = Field(alias="Thumbprint")
    serial_number: str | None = Field(default=None, alias="SerialNumber")
    issued_dn: str | None = Field(default=None, alias="IssuedDN")
    issuer_dn: str | None = Field(default=None, alias="IssuerDN")
    issued_cn: str | None = Field(default=None, alias="IssuedCN")


class InventoriedCertificatePayload(PlatformModel):
    id: int | None = Field(default=None, alias="Id")
    thumbprint: str = Field(alias="Thumbprint")
    serial_number: str | None = Field(default=None, alias="SerialNumber")
    issued_dn: str | None = Field(default=None, alias="IssuedDN")
    issuer_dn: str | None = Field(default=None, alias="IssuerDN")


class InventoryPayload(PlatformModel):
    name: str | None = Field(default=None, alias="Name")
    certificates: list[InventoriedCertificatePayload] = Field(
        default_factory=list, alias="Certificates"
    )
    parameters: dict[str, Any] | None = Field(default=None, alias="Parameters")


class IntervalPayload(PlatformModel):
    minutes: int = Field(alias="Minutes")


class DailyPayload(PlatformModel):
    time: str = Field(alias="Time")


class WeeklyPayload(PlatformModel):
    days: list[int | str] = Field(default_factory=list, alias="Days")
    time: str | None = Field(default=None, alias="Time")


class SchedulePayload(PlatformModel):
    immediate: bool | None = Field(default=None, alias="Immediate")
    interval: IntervalPayload | None = Field(default=None, alias="Interval")
    daily: DailyPayload | None = Field(default=None, alias="Daily")
    weekly: WeeklyPayload | None = Field(default=None, alias="Weekly")


class StorePayload(PlatformModel):
    id: str = Field(alias="Id")
    cert_store_type: int = Field(alias="CertStoreType")
    client_machine: str = Field(default="", alias="ClientMachine")
    store_path: str = Field(default="", alias="StorePath")
    container_id: int | None = Field(default=None, alias="ContainerId")
    container_name: str | None = Field(default=None, alias="ContainerName")
    agent_id: str | None = Field(default=None, alias="AgentId")
    create_if_missing: bool | None = Field(default=None, alias="CreateIfMissing")
    properties: str | dict[str, Any] | None = Field(default=None, alias="Properties")
    inventory_schedule: SchedulePayload | None = Field(default=None, alias="InventorySchedule")


class StoreTypePropertyPayload(PlatformModel):
    name: str = Field(alias="Name")
    display_name: str | None = Field(default=None, alias="DisplayName")
    type: str | None = Field(default=None, alias="Type")
    required: bool = Field(default=False, alias="Required")
    default_value: Any = Field(default=None, alias="DefaultValue")


class PasswordOptionsPayload(PlatformModel):
    entry_supported: bool = Field(default=False, alias="EntrySupported")
    store_required: bool = Field(default=False, alias="StoreRequired")
    style: str | None = Field(default=None, alias="Style")


class StoreTypePayload(PlatformModel):
    store_type: int = Field(alias="StoreType")
    name: str = Field(default="", alias="Name")
    short_name: str = Field(alias="ShortName")
    properties: list[StoreTypePropertyPayload] = Field(default_factory=list, alias="Properties")
    password_options: PasswordOptionsPayload = Field(
        default_factory=PasswordOptionsPayload, alias="PasswordOptions"
    )
    server_required: bool = Field(default=False, alias="ServerRequired")


class ErrorPayload(PlatformModel):
    error_code: str | None = Field(default=None, alias="ErrorCode")
    message: str = Field(default="", alias="Message")
