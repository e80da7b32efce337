"""Public domain model surface."""

from __future__ import annotations

from kfutil.domain.model.actions import Action, ActionKind, AuditRow, Plan
from kfutil.domain.model.cells import (
    BoolCell,
    Cell,
    IntCell,
    ObjCell,
    StrCell,
    Value,
    decode_cell,
    encode_value,
)
from kfutil.domain.model.certificates import (
    CertificateQuery,
    CertificateRecord,
    CertificateRef,
    is_thumbprint,
    normalize_thumbprint,
)
from kfutil.domain.model.stores import (
    InventoryCertificate,
    InventoryEntry,
    InventorySchedule,
    JobReceipt,
    StoreRecord,
    StoreRow,
    StoreSummary,
    StoreTarget,
    StoreTypeDescriptor,
    StoreTypeProperty,
    TrustStore,
)

__all__ = [  # noqa: RUF022
    # actions
    "Action",
    "ActionKind",
    "AuditRow",
    "Plan",
    # cells
    "BoolCell",
    "Cell",
    "IntCell",
    "ObjCell",
    "StrCell",
    "Value",
    "decode_cell",
    "encode_value",
    # certificates
    "CertificateQuery",
    "CertificateRecord",
    "CertificateRef",
    "is_thumbprint",
    "normalize_thumbprint",
    # stores
    "InventoryCertificate",
    "InventoryEntry",
    "InventorySchedule",
    "JobReceipt",
    "StoreRecord",
    "StoreRow",
    "StoreSummary",
    "StoreTarget",
    "StoreTypeDescriptor",
    "StoreTypeProperty",
    "TrustStore",
]
