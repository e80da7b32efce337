"""HTTP gateway for the Keyfactor Command API."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING, Any, Self, TypeVar

import httpx
from pydantic import ValidationError

from kfutil.adapters.http_resilience import ResilientClient
from kfutil.domain.model import JobReceipt
from kfutil.domain.ports.gateway import (
    ConflictError,
    NotFoundError,
    RequestRejectedError,
    StoreFilter,
    TransportFailure,
    UnauthorizedError,
)

from .schema import (
    CertificatePayload,
    ErrorPayload,
    InventoryPayload,
    StorePayload,
    StoreTypePayload,
)
from .translator import (
    build_create_store_body,
    parse_certificate,
    parse_inventory_entry,
    parse_store_record,
    parse_store_summary,
    parse_store_type,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Sequence
    from types import TracebackType

    from kfutil.config.http_resilience import ResilienceConfig
    from kfutil.config.platform import PlatformConfig
    from kfutil.domain.model import (
        CertificateQuery,
        CertificateRecord,
        InventoryEntry,
        StoreRecord,
        StoreSummary,
        StoreTarget,
        StoreTypeDescriptor,
    )

log = getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=CertificatePayload | InventoryPayload | StorePayload | StoreTypePayload)

DEFAULT_PAGE_SIZE = 100
CONFLICT_RETRIES = 1


def should_cache_payload(payload: object) -> bool:
    """Only store-type descriptors are stable enough to cache during a run."""

    return isinstance(payload, dict) and "ShortName" in payload and "StoreType" in payload


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_store_query(filters: StoreFilter | None) -> str | None:
    if filters is None:
        return None
    clauses: list[str] = []
    if filters.store_type_id is not None:
        clauses.append(f"CertStoreType -eq {filters.store_type_id}")
    if filters.client_machine:
        clauses.append(f"ClientMachine -eq {_quote(filters.client_machine)}")
    if filters.container_name:
        clauses.append(f"ContainerName -eq {_quote(filters.container_name)}")
    if filters.store_ids:
        ids = " OR ".join(f"Id -eq {_quote(store_id)}" for store_id in filters.store_ids)
        clauses.append(f"({ids})" if len(filters.store_ids) > 1 else ids)
    return " AND ".join(clauses) or None


def _raise_for_status(response: httpx.Response, description: str) -> None:
    if response.is_success:
        return
    status = response.status_code
    message = _error_message(response)
    detail = f"{description} returned {status}"
    if message:
        detail = f"{detail}: {message}"
    if status in {401, 403}:
        raise UnauthorizedError(detail, status_code=status)
    if status == 404:
        raise NotFoundError(detail, status_code=status)
    if status == 409:
        raise ConflictError(detail, status_code=status)
    if status in {400, 422}:
        raise RequestRejectedError(detail, status_code=status)
    raise TransportFailure(detail, status_code=status)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(payload, dict) and "Message" in payload:
        return ErrorPayload.model_validate(payload).message
    return response.text.strip()


class KeyfactorGateway:
    """Synchronous Platform gateway.

    One ``ResilientClient`` is kept open on a private event loop for the
    lifetime of the gateway so connections and cached store types are reused.
    Calls are serialized.
    """

    def __init__(
        self,
        *,
        config: PlatformConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._page_size = page_size
        self._runner: asyncio.Runner | None = None
        self._client: ResilientClient | None = None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._runner is None:
            return
        if self._client is not None:
            self._runner.run(self._client.aclose())
            self._client = None
        self._runner.close()
        self._runner = None

    # certificates

    def lookup_certificate(
        self,
        *,
        thumbprint: str | None = None,
        cert_id: int | None = None,
    ) -> CertificateRecord:
        if (thumbprint is None) == (cert_id is None):
            raise ValueError("lookup_certificate needs exactly one of thumbprint or cert_id")
        if cert_id is not None:
            payload = self._run(self._get_json(f"Certificates/{cert_id}"))
            return parse_certificate(_validate(CertificatePayload, payload))

        query = f"Thumbprint -eq {_quote(thumbprint or '')}"
        payload = self._run(self._get_json("Certificates", params={"pq.queryString": query}))
        if not isinstance(payload, list) or not payload:
            raise NotFoundError(f"certificate with thumbprint {thumbprint} not found")
        return parse_certificate(_validate(CertificatePayload, payload[0]))

    def list_certificates(self, query: CertificateQuery) -> list[CertificateRecord]:
        params: dict[str, str | int] = {}
        if query.issued_cn:
            params["pq.queryString"] = f"IssuedCN -contains {_quote(query.issued_cn)}"
        if query.collection_id is not None:
            params["collectionId"] = query.collection_id
        items = self._run(self._get_pages("Certificates", params))
        return [parse_certificate(_validate(CertificatePayload, item)) for item in items]

    # stores

    def list_stores(self, filters: StoreFilter | None = None) -> list[StoreSummary]:
        params: dict[str, str | int] = {}
        query = build_store_query(filters)
        if query:
            params["pq.queryString"] = query
        items = self._run(self._get_pages("CertificateStores", params))
        return [parse_store_summary(_validate(StorePayload, item)) for item in items]

    def get_store(self, store_id: str) -> StoreRecord:
        payload = self._run(self._get_json(f"CertificateStores/{store_id}"))
        return parse_store_record(_validate(StorePayload, payload))

    def get_store_inventory(self, store_id: str) -> list[InventoryEntry]:
        items = self._run(self._get_pages(f"CertificateStores/{store_id}/Inventory", {}))
        return [parse_inventory_entry(_validate(InventoryPayload, item)) for item in items]

    def get_store_type(self, identifier: str | int) -> StoreTypeDescriptor:
        if isinstance(identifier, int) or identifier.strip().isdigit():
            path = f"CertificateStoreTypes/{int(identifier)}"
        else:
            path = f"CertificateStoreTypes/Name/{identifier.strip()}"
        payload = self._run(self._get_json(path))
        return parse_store_type(_validate(StoreTypePayload, payload))

    def create_store(self, body: dict[str, Any]) -> str:
        request = build_create_store_body(body)
        payload = self._run(self._post_json("CertificateStores", request))
        if isinstance(payload, dict) and payload.get("Id"):
            return str(payload["Id"])
        raise TransportFailure("create store response did not include an Id")

    # jobs

    def add_certificate_to_stores(
        self,
        cert_id: int,
        stores: Sequence[StoreTarget],
    ) -> JobReceipt:
        body = {
            "CertificateId": cert_id,
            "CertificateStores": [_store_entry(store, overwrite=store.overwrite) for store in stores],
            "Schedule": {"Immediate": True},
        }
        attempts = 0
        while True:
            try:
                payload = self._run(self._post_json("CertificateStores/Certificates/Add", body))
            except ConflictError:
                if attempts >= CONFLICT_RETRIES:
                    raise
                attempts += 1
                log.warning("Add of certificate %s hit a conflict, retrying once", cert_id)
                continue
            return _receipt(cert_id, stores, payload)

    def remove_certificate_from_stores(
        self,
        cert_id: int,
        stores: Sequence[StoreTarget],
    ) -> JobReceipt:
        body = {
            "CertificateId": cert_id,
            "CertificateStores": [_store_entry(store) for store in stores],
            "Schedule": {"Immediate": True},
        }
        payload = self._run(self._post_json("CertificateStores/Certificates/Remove", body))
        return _receipt(cert_id, stores, payload)

    # transport

    def _run(self, coro: Coroutine[Any, Any, T]) -> T:
        if self._runner is None:
            self._runner = asyncio.Runner()
        return self._runner.run(coro)

    def _ensure_client(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self._resilience)
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str | int] | None = None,
        body: object = None,
    ) -> Any:
        client = self._ensure_client()
        description = f"{method} {path}"
        log.debug("%s params=%s", description, params)
        try:
            if body is None:
                response = await client.request(method, path, params=params)
            else:
                response = await client.request(method, path, params=params, json=body)
        except httpx.HTTPError as exc:
            raise TransportFailure(f"{description} failed: {exc}") from exc

        _raise_for_status(response, description)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportFailure(f"{description} returned invalid JSON") from exc

    async def _get_json(self, path: str, *, params: dict[str, str | int] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def _post_json(self, path: str, body: object) -> Any:
        return await self._request("POST", path, body=body)

    async def _get_pages(self, path: str, params: dict[str, str | int]) -> list[Any]:
        items: list[Any] = []
        page = 1
        while True:
            page_params = {
                **params,
                "pq.pageReturned": page,
                "pq.returnLimit": self._page_size,
            }
            payload = await self._get_json(path, params=page_params)
            if payload is None:
                break
            if not isinstance(payload, list):
                raise TransportFailure(f"GET {path} returned an unexpected payload")
            items.extend(payload)
            if len(payload) < self._page_size:
                break
            page += 1
        return items


def _validate(
    model: type[M],
    payload: object,
) -> M:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise TransportFailure(f"unexpected {model.__name__} payload: {exc}") from exc


def _store_entry(store: StoreTarget, *, overwrite: bool | None = None) -> dict[str, Any]:
    entry: dict[str, Any] = {"CertificateStoreId": store.store_id}
    if store.alias:
        entry["Alias"] = store.alias
    if overwrite is not None:
        entry["Overwrite"] = overwrite
    return entry


def _receipt(cert_id: int, stores: Sequence[StoreTarget], payload: object) -> JobReceipt:
    job_ids = tuple(str(item) for item in payload) if isinstance(payload, list) else ()
    return JobReceipt(
        cert_id=cert_id,
        store_ids=tuple(store.store_id for store in stores),
        job_ids=job_ids,
    )


__all__ = ["KeyfactorGateway", "build_store_query", "should_cache_payload"]
