"""Domain port definitions for adapters."""

from __future__ import annotations

from .files import ActionSink, ClosableActionSink, RotFiles
from .gateway import (
    ConflictError,
    GatewayError,
    NotFoundError,
    PlatformGateway,
    RequestRejectedError,
    StoreFilter,
    TransportFailure,
    UnauthorizedError,
)

__all__ = [
    "ActionSink",
    "ClosableActionSink",
    "ConflictError",
    "GatewayError",
    "NotFoundError",
    "PlatformGateway",
    "RequestRejectedError",
    "RotFiles",
    "StoreFilter",
    "TransportFailure",
    "UnauthorizedError",
]
