"""Public interface for the Keyfactor Command adapter."""

from __future__ import annotations

from .client import KeyfactorGateway, build_store_query, should_cache_payload
from .schema import (
    CertificatePayload,
    InventoryPayload,
    StorePayload,
    StoreTypePayload,
)
from .translator import build_create_store_body, flatten_properties, parse_store_type

__all__ = [
    "CertificatePayload",
    "InventoryPayload",
    "KeyfactorGateway",
    "StorePayload",
    "StoreTypePayload",
    "build_create_store_body",
    "build_store_query",
    "flatten_properties",
    "parse_store_type",
    "should_cache_payload",
]
