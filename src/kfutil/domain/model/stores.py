"""Certificate stores, their inventories and store-type descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .certificates import normalize_thumbprint

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from .cells import Value

PRIVATE_KEY_PARAMETER = "PrivateKeyEntry"


@dataclass(slots=True, frozen=True)
class InventoryCertificate:
    thumbprint: str
    cert_id: int | None = None
    serial_number: str | None = None
    issued_dn: str = ""
    issuer_dn: str = ""

    @property
    def is_leaf(self) -> bool:
        return self.issued_dn != self.issuer_dn


@dataclass(slots=True, frozen=True)
class InventoryEntry:
    """One keystore entry. Chains carry more than one certificate."""

    alias: str
    certificates: tuple[InventoryCertificate, ...] = ()
    parameters: Mapping[str, str] = field(default_factory=dict)

    @property
    def thumbprints(self) -> tuple[str, ...]:
        return tuple(normalize_thumbprint(cert.thumbprint) for cert in self.certificates)

    @property
    def serials(self) -> tuple[str, ...]:
        return tuple(cert.serial_number for cert in self.certificates if cert.serial_number)

    @property
    def cert_ids(self) -> tuple[int, ...]:
        return tuple(cert.cert_id for cert in self.certificates if cert.cert_id is not None)

    @property
    def has_private_key(self) -> bool:
        return self.parameters.get(PRIVATE_KEY_PARAMETER) == "Yes"


@dataclass(slots=True, frozen=True)
class StoreRow:
    """One line of the Stores CSV."""

    store_id: str
    store_type: str = ""
    machine: str = ""
    path: str = ""
    container_id: int = 0
    container_name: str = ""
    last_queried: datetime | None = None


@dataclass(slots=True)
class TrustStore:
    """A candidate root-of-trust store and its last known inventory.

    The four lookup sets are derived from ``inventory`` and are only ever
    rebuilt by :meth:`load_inventory`.
    """

    store_id: str
    store_type: str = ""
    client_machine: str = ""
    store_path: str = ""
    container_id: int = 0
    container_name: str = ""
    last_queried: datetime | None = None
    inventory: tuple[InventoryEntry, ...] = ()
    thumbprints: frozenset[str] = field(default_factory=frozenset)
    serials: frozenset[str] = field(default_factory=frozenset)
    cert_ids: frozenset[int] = field(default_factory=frozenset)
    aliases: frozenset[str] = field(default_factory=frozenset)

    def load_inventory(self, entries: Iterable[InventoryEntry]) -> None:
        self.inventory = tuple(entries)
        self.thumbprints = frozenset(tp for entry in self.inventory for tp in entry.thumbprints)
        self.serials = frozenset(sn for entry in self.inventory for sn in entry.serials)
        self.cert_ids = frozenset(cid for entry in self.inventory for cid in entry.cert_ids)
        self.aliases = frozenset(entry.alias for entry in self.inventory if entry.alias)

    def contains(self, thumbprint: str) -> bool:
        return normalize_thumbprint(thumbprint) in self.thumbprints


@dataclass(slots=True, frozen=True)
class StoreSummary:
    store_id: str
    store_type_id: int
    client_machine: str
    store_path: str
    container_id: int = 0


@dataclass(slots=True, frozen=True)
class InventorySchedule:
    immediate: bool | None = None
    interval_minutes: int | None = None
    daily_time: str | None = None
    weekly_days: tuple[str, ...] = ()
    weekly_time: str | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.immediate is None
            and self.interval_minutes is None
            and self.daily_time is None
            and not self.weekly_days
            and self.weekly_time is None
        )


@dataclass(slots=True, frozen=True)
class StoreRecord:
    store_id: str
    store_type_id: int
    client_machine: str
    store_path: str
    container_id: int = 0
    container_name: str = ""
    agent_id: str = ""
    create_if_missing: bool = False
    properties: Mapping[str, Value] = field(default_factory=dict)
    schedule: InventorySchedule = field(default_factory=InventorySchedule)


@dataclass(slots=True, frozen=True)
class StoreTypeProperty:
    name: str
    display_name: str = ""
    data_type: str = "String"
    required: bool = False
    default_value: str | None = None


@dataclass(slots=True, frozen=True)
class StoreTypeDescriptor:
    type_id: int
    short_name: str
    name: str = ""
    properties: tuple[StoreTypeProperty, ...] = ()
    store_password_required: bool = False
    server_required: bool = False

    @property
    def required_properties(self) -> tuple[StoreTypeProperty, ...]:
        return tuple(prop for prop in self.properties if prop.required)


@dataclass(slots=True, frozen=True)
class StoreTarget:
    """One store in an add or remove job request."""

    store_id: str
    alias: str | None = None
    overwrite: bool = True


@dataclass(slots=True, frozen=True)
class JobReceipt:
    cert_id: int
    store_ids: tuple[str, ...]
    job_ids: tuple[str, ...] = ()
