from __future__ import annotations

import json
from collections.abc import Callable, Iterator  # noqa: TC003

import httpx
import pytest

from kfutil.adapters.http_resilience import ResilientClient
from kfutil.adapters.platform import KeyfactorGateway, build_store_query
from kfutil.config.http_resilience import ResilienceConfig
from kfutil.config.platform import PlatformConfig
from kfutil.domain.model import CertificateQuery, StoreTarget
from kfutil.domain.ports.gateway import (
    ConflictError,
    NotFoundError,
    RequestRejectedError,
    StoreFilter,
    TransportFailure,
    UnauthorizedError,
)

BASE_URL = "https://kf.example.com/KeyfactorAPI/"
API_PREFIX = "/KeyfactorAPI/"

Handler = Callable[[httpx.Request], httpx.Response]


def _make_client_factory(handler: Handler) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=resilience.base_url,
            headers=dict(resilience.default_headers or {}),
            transport=httpx.MockTransport(async_handler),
        )
        return client

    return factory


def _config() -> PlatformConfig:
    return PlatformConfig(
        hostname="kf.example.com",
        username="EXAMPLE\\svc-kfutil",
        password="secret",
        resilience=ResilienceConfig(
            name="keyfactor-test",
            base_url=BASE_URL,
            cache=None,
            default_headers={"x-keyfactor-requested-with": "APIClient"},
        ),
    )


@pytest.fixture
def make_gateway() -> Iterator[Callable[..., KeyfactorGateway]]:
    gateways: list[KeyfactorGateway] = []

    def build(handler: Handler, **kwargs: int) -> KeyfactorGateway:
        gateway = KeyfactorGateway(
            config=_config(),
            client_factory=_make_client_factory(handler),
            **kwargs,
        )
        gateways.append(gateway)
        return gateway

    yield build
    for gateway in gateways:
        gateway.close()


def _path(request: httpx.Request) -> str:
    return request.url.path.removeprefix(API_PREFIX)


CERT_PAYLOAD = {
    "Id": 2,
    "Thumbprint": "bb" * 20,
    "SerialNumber": "0002",
    "IssuedDN": "CN=Root B,O=Example",
    "IssuerDN": "CN=Root B,O=Example",
    "IssuedCN": "Root B",
}


def test_lookup_by_thumbprint_queries_the_certificate_list(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[CERT_PAYLOAD])

    gateway = make_gateway(handler)

    record = gateway.lookup_certificate(thumbprint="BB" * 20)

    assert record.cert_id == 2
    assert record.thumbprint == "BB" * 20
    assert record.issuer_dn == "CN=Root B,O=Example"
    (request,) = seen
    assert _path(request) == "Certificates"
    assert request.url.params["pq.queryString"] == f'Thumbprint -eq "{"BB" * 20}"'
    assert request.headers["x-keyfactor-requested-with"] == "APIClient"


def test_lookup_by_id_uses_the_certificate_resource(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert _path(request) == "Certificates/2"
        return httpx.Response(200, json=CERT_PAYLOAD)

    assert make_gateway(handler).lookup_certificate(cert_id=2).issued_cn == "Root B"


def test_empty_thumbprint_result_is_not_found(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    gateway = make_gateway(lambda _request: httpx.Response(200, json=[]))

    with pytest.raises(NotFoundError):
        gateway.lookup_certificate(thumbprint="DD" * 20)


@pytest.mark.parametrize(
    ("status", "error"),
    [
        (401, UnauthorizedError),
        (403, UnauthorizedError),
        (404, NotFoundError),
        (409, ConflictError),
        (400, RequestRejectedError),
        (500, TransportFailure),
    ],
)
def test_status_codes_map_to_gateway_errors(
    make_gateway: Callable[..., KeyfactorGateway],
    status: int,
    error: type[Exception],
) -> None:
    gateway = make_gateway(
        lambda _request: httpx.Response(
            status, json={"ErrorCode": "0xA0110002", "Message": "Platform says no"}
        )
    )

    with pytest.raises(error, match="Platform says no") as excinfo:
        gateway.get_store("s1")

    assert getattr(excinfo.value, "status_code", None) == status


def test_network_failure_is_a_transport_failure(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportFailure, match="connection refused"):
        make_gateway(handler).get_store("s1")


def test_invalid_json_is_a_transport_failure(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    gateway = make_gateway(lambda _request: httpx.Response(200, content=b"<html>"))

    with pytest.raises(TransportFailure, match="invalid JSON"):
        gateway.get_store("s1")


def test_unexpected_payload_shape_is_a_transport_failure(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    gateway = make_gateway(lambda _request: httpx.Response(200, json={"Id": "s1"}))

    with pytest.raises(TransportFailure, match="StorePayload"):
        gateway.get_store("s1")


def test_get_store_flattens_properties_and_schedule(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    payload = {
        "Id": "s1",
        "CertStoreType": 101,
        "ClientMachine": "host1",
        "StorePath": "/opt/app/truststore.jks",
        "ContainerId": 4,
        "AgentId": "agent-1",
        "CreateIfMissing": False,
        "Properties": json.dumps(
            {"ServerUseSsl": {"value": "true"}, "Alias": {"value": "trust"}, "Plain": 3}
        ),
        "InventorySchedule": {"Weekly": {"Days": [1, 5], "Time": "2024-01-01T02:00:00Z"}},
    }
    gateway = make_gateway(lambda _request: httpx.Response(200, json=payload))

    record = gateway.get_store("s1")

    assert record.store_type_id == 101
    assert record.container_id == 4
    assert dict(record.properties) == {"ServerUseSsl": "true", "Alias": "trust", "Plain": 3}
    assert record.schedule.weekly_days == ("Monday", "Friday")
    assert record.schedule.weekly_time == "2024-01-01T02:00:00Z"


def test_inventory_is_read_page_by_page(make_gateway: Callable[..., KeyfactorGateway]) -> None:
    pages: list[str] = []
    entries = [
        {"Name": f"alias-{index}", "Certificates": [{"Thumbprint": f"{index:040d}", "Id": index}]}
        for index in range(5)
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert _path(request) == "CertificateStores/s1/Inventory"
        page = int(request.url.params["pq.pageReturned"])
        limit = int(request.url.params["pq.returnLimit"])
        pages.append(request.url.params["pq.pageReturned"])
        return httpx.Response(200, json=entries[(page - 1) * limit : page * limit])

    inventory = make_gateway(handler, page_size=2).get_store_inventory("s1")

    assert pages == ["1", "2", "3"]
    assert [entry.alias for entry in inventory] == [f"alias-{index}" for index in range(5)]
    assert inventory[4].cert_ids == (4,)


def test_list_stores_sends_the_filter_query(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    queries: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        queries.append(request.url.params["pq.queryString"])
        return httpx.Response(
            200, json=[{"Id": "s1", "CertStoreType": 101, "ClientMachine": "host1"}]
        )

    stores = make_gateway(handler).list_stores(StoreFilter(store_type_id=101))

    assert queries == ["CertStoreType -eq 101"]
    assert stores[0].store_id == "s1"


def test_list_certificates_filters_by_cn_and_collection(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[CERT_PAYLOAD])

    records = make_gateway(handler).list_certificates(
        CertificateQuery(issued_cn="Root", collection_id=7)
    )

    assert [record.cert_id for record in records] == [2]
    assert seen[0].url.params["pq.queryString"] == 'IssuedCN -contains "Root"'
    assert seen[0].url.params["collectionId"] == "7"


def test_store_type_is_fetched_by_name_or_id(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    paths: list[str] = []
    payload = {
        "StoreType": 101,
        "ShortName": "JKS",
        "Name": "Java Keystore",
        "Properties": [
            {"Name": "ServerUseSsl", "DisplayName": "Use SSL", "Type": "Bool", "Required": True}
        ],
        "PasswordOptions": {"EntrySupported": False, "StoreRequired": True, "Style": "Default"},
        "ServerRequired": True,
    }

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(_path(request))
        return httpx.Response(200, json=payload)

    gateway = make_gateway(handler)
    by_name = gateway.get_store_type("JKS")
    by_id = gateway.get_store_type(101)

    assert paths == ["CertificateStoreTypes/Name/JKS", "CertificateStoreTypes/101"]
    assert by_name == by_id
    assert by_name.store_password_required
    assert by_name.server_required
    assert by_name.required_properties[0].name == "ServerUseSsl"


def test_add_sends_one_immediate_job_with_overwrite(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert _path(request) == "CertificateStores/Certificates/Add"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=["job-1"])

    receipt = make_gateway(handler).add_certificate_to_stores(
        2, [StoreTarget(store_id="s1", overwrite=True)]
    )

    assert bodies == [
        {
            "CertificateId": 2,
            "CertificateStores": [{"CertificateStoreId": "s1", "Overwrite": True}],
            "Schedule": {"Immediate": True},
        }
    ]
    assert receipt.job_ids == ("job-1",)
    assert receipt.store_ids == ("s1",)


def test_remove_names_the_alias(make_gateway: Callable[..., KeyfactorGateway]) -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert _path(request) == "CertificateStores/Certificates/Remove"
        bodies.append(json.loads(request.content))
        return httpx.Response(204)

    receipt = make_gateway(handler).remove_certificate_from_stores(
        1, [StoreTarget(store_id="s1", alias="AA" * 20)]
    )

    assert bodies[0]["CertificateStores"] == [{"CertificateStoreId": "s1", "Alias": "AA" * 20}]
    assert receipt.job_ids == ()


def test_add_conflict_is_retried_once(make_gateway: Callable[..., KeyfactorGateway]) -> None:
    responses = iter([httpx.Response(409, json={"Message": "job pending"}), httpx.Response(200)])
    calls: list[int] = []

    def handler(_request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return next(responses)

    make_gateway(handler).add_certificate_to_stores(2, [StoreTarget(store_id="s1")])

    assert len(calls) == 2


def test_add_conflict_twice_is_raised(make_gateway: Callable[..., KeyfactorGateway]) -> None:
    calls: list[int] = []

    def handler(_request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(409, json={"Message": "job pending"})

    with pytest.raises(ConflictError):
        make_gateway(handler).add_certificate_to_stores(2, [StoreTarget(store_id="s1")])

    assert len(calls) == 2


def test_create_store_sends_the_platform_body(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert _path(request) == "CertificateStores"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"Id": "new-store"})

    store_id = make_gateway(handler).create_store(
        {
            "ContainerId": 0,
            "ClientMachine": "host1",
            "StorePath": "/truststore.jks",
            "CertStoreType": 101,
            "Properties": {"ServerUsername": "admin", "ServerUseSsl": True},
            "Password": "store-secret",
            "InventorySchedule": {"Weekly": {"Days": [0, 3], "Time": "02:00"}},
        }
    )

    assert store_id == "new-store"
    (body,) = bodies
    assert "ContainerId" not in body
    assert json.loads(str(body["Properties"])) == {
        "ServerUsername": {"value": {"SecretValue": "admin"}},
        "ServerUseSsl": {"value": True},
    }
    assert body["Password"] == {"SecretValue": "store-secret"}
    assert body["InventorySchedule"] == {"Weekly": {"Days": ["Sunday", "Wednesday"], "Time": "02:00"}}


def test_create_store_without_id_in_response_fails(
    make_gateway: Callable[..., KeyfactorGateway],
) -> None:
    gateway = make_gateway(lambda _request: httpx.Response(200, json={}))

    with pytest.raises(TransportFailure, match="did not include an Id"):
        gateway.create_store({"ClientMachine": "host1", "CertStoreType": 101})


def test_build_store_query() -> None:
    assert build_store_query(None) is None
    assert build_store_query(StoreFilter()) is None
    assert (
        build_store_query(
            StoreFilter(
                store_type_id=5,
                container_name='Prod "A"',
                store_ids=("s1", "s2"),
            )
        )
        == 'CertStoreType -eq 5 AND ContainerName -eq "Prod \\"A\\"" AND (Id -eq "s1" OR Id -eq "s2")'
    )
