"""Port for the Platform calls the ROT pipeline and bulk store tooling need."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kfutil.domain.model import (
        CertificateQuery,
        CertificateRecord,
        InventoryEntry,
        JobReceipt,
        StoreRecord,
        StoreSummary,
        StoreTarget,
        StoreTypeDescriptor,
    )


class GatewayError(RuntimeError):
    """Raised when a Platform call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(GatewayError):
    pass


class UnauthorizedError(GatewayError):
    pass


class ConflictError(GatewayError):
    pass


class RequestRejectedError(GatewayError):
    """The Platform refused the request as invalid."""


class TransportFailure(GatewayError):
    """Network failure, timeout or unexpected server response."""


@dataclass(slots=True, frozen=True)
class StoreFilter:
    store_type_id: int | None = None
    client_machine: str | None = None
    container_name: str | None = None
    store_ids: tuple[str, ...] = field(default_factory=tuple)


@runtime_checkable
class PlatformGateway(Protocol):
    def lookup_certificate(
        self,
        *,
        thumbprint: str | None = None,
        cert_id: int | None = None,
    ) -> CertificateRecord: ...

    def list_stores(self, filters: StoreFilter | None = None) -> list[StoreSummary]: ...

    def get_store(self, store_id: str) -> StoreRecord: ...

    def get_store_inventory(self, store_id: str) -> list[InventoryEntry]: ...

    def get_store_type(self, identifier: str | int) -> StoreTypeDescriptor: ...

    def add_certificate_to_stores(
        self, cert_id: int, stores: Sequence[StoreTarget]
    ) -> JobReceipt: ...

    def remove_certificate_from_stores(
        self, cert_id: int, stores: Sequence[StoreTarget]
    ) -> JobReceipt: ...

    def create_store(self, body: dict[str, Any]) -> str: ...

    def list_certificates(self, query: CertificateQuery) -> list[CertificateRecord]: ...


__all__ = [
    "ConflictError",
    "GatewayError",
    "NotFoundError",
    "PlatformGateway",
    "RequestRejectedError",
    "StoreFilter",
    "TransportFailure",
    "UnauthorizedError",
]
