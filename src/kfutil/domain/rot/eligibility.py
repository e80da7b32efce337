"""Root-of-trust eligibility rules.

A real trust store holds self-signed anchors only: no leaf certificates and no
private keys. Each threshold can be switched off with ``-1``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kfutil.domain.model import InventoryEntry, TrustStore

DISABLED = -1


@dataclass(slots=True, frozen=True)
class TrustStoreCriteria:
    min_certs: int = 1
    max_leaves: int = 5
    max_keys: int = 5


@dataclass(slots=True, frozen=True)
class EligibilityReport:
    store_id: str
    cert_count: int
    leaf_count: int
    key_count: int
    reason: str | None = None

    @property
    def eligible(self) -> bool:
        return self.reason is None


def evaluate_eligibility(
    store: TrustStore,
    inventory: Iterable[InventoryEntry],
    *,
    min_certs: int,
    max_leaves: int,
    max_keys: int,
) -> EligibilityReport:
    cert_count = 0
    leaf_count = 0
    key_count = 0
    for entry in inventory:
        cert_count += len(entry.certificates)
        leaf_count += sum(1 for cert in entry.certificates if cert.is_leaf)
        if entry.has_private_key:
            key_count += 1

    reason: str | None = None
    if min_certs > DISABLED and cert_count < min_certs:
        reason = f"has {cert_count} certificates, fewer than the minimum of {min_certs}"
    elif max_leaves > DISABLED and leaf_count > max_leaves:
        reason = f"has {leaf_count} leaf certificates, more than the maximum of {max_leaves}"
    elif max_keys > DISABLED and key_count > max_keys:
        reason = f"has {key_count} private keys, more than the maximum of {max_keys}"

    return EligibilityReport(
        store_id=store.store_id,
        cert_count=cert_count,
        leaf_count=leaf_count,
        key_count=key_count,
        reason=reason,
    )


def eligible(
    store: TrustStore,
    inventory: Iterable[InventoryEntry],
    *,
    min_certs: int,
    max_leaves: int,
    max_keys: int,
) -> bool:
    report = evaluate_eligibility(
        store,
        inventory,
        min_certs=min_certs,
        max_leaves=max_leaves,
        max_keys=max_keys,
    )
    return report.eligible
