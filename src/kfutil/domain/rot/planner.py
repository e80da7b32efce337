"""Build the add/remove plan for a set of trust stores."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from kfutil.domain.clock import run_timestamp, utcnow
from kfutil.domain.errors import ErrorList, LookupFailure
from kfutil.domain.model import Action, CertificateRecord, CertificateRef, Plan, normalize_thumbprint

from .lookup import resolve_certificate

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from kfutil.domain.clock import Clock
    from kfutil.domain.model import TrustStore
    from kfutil.domain.ports.files import ActionSink
    from kfutil.domain.ports.gateway import PlatformGateway

log = getLogger(__name__)


def dedupe_refs(refs: Iterable[CertificateRef]) -> list[CertificateRef]:
    seen: set[CertificateRef] = set()
    unique: list[CertificateRef] = []
    for ref in refs:
        if ref in seen:
            log.debug("Dropping duplicate certificate reference %s", ref)
            continue
        seen.add(ref)
        unique.append(ref)
    return unique


@dataclass(slots=True)
class _RemoveSet:
    refs: set[CertificateRef] = field(default_factory=set)
    thumbprints: set[str] = field(default_factory=set)
    cert_ids: set[int] = field(default_factory=set)

    def add(self, ref: CertificateRef, record: CertificateRecord | None) -> None:
        self.refs.add(ref)
        if record is not None:
            self.thumbprints.add(normalize_thumbprint(record.thumbprint))
            self.cert_ids.add(record.cert_id)

    def conflicts_with(self, ref: CertificateRef, record: CertificateRecord | None) -> bool:
        if ref in self.refs:
            return True
        if ref.thumbprint is not None and ref.thumbprint in self.thumbprints:
            return True
        if ref.cert_id is not None and ref.cert_id in self.cert_ids:
            return True
        if record is None:
            return False
        return (
            normalize_thumbprint(record.thumbprint) in self.thumbprints
            or record.cert_id in self.cert_ids
        )


class Planner:
    """Turns desired certificates and observed store inventories into actions.

    Rows are handed to the sink as soon as they are decided so an interrupted
    run still leaves a readable audit file behind.
    """

    def __init__(self, gateway: PlatformGateway, *, clock: Clock = utcnow) -> None:
        self._gateway = gateway
        self._clock = clock

    def plan(
        self,
        stores: Sequence[TrustStore],
        *,
        add: Iterable[CertificateRef] = (),
        remove: Iterable[CertificateRef] = (),
        sink: ActionSink,
    ) -> tuple[Plan, ErrorList]:
        errors = ErrorList()
        plan = Plan()
        timestamp = run_timestamp(self._clock)

        remove_records, remove_set = self._resolve_removals(dedupe_refs(remove), errors)
        add_records = self._resolve_additions(dedupe_refs(add), remove_set, errors)

        for record in add_records:
            for store in stores:
                action = _add_action(record, store, timestamp)
                plan.append(action)
                sink.write(action)

        for record in remove_records:
            for store in stores:
                action = _remove_action(record, store, timestamp)
                plan.append(action)
                sink.write(action)

        sink.flush()
        log.info(
            "Planned %s actions (%s pending) across %s stores",
            len(plan),
            len(plan.pending),
            len(stores),
        )
        return plan, errors

    def _resolve_removals(
        self,
        refs: list[CertificateRef],
        errors: ErrorList,
    ) -> tuple[list[CertificateRecord], _RemoveSet]:
        records: list[CertificateRecord] = []
        remove_set = _RemoveSet()
        for ref in refs:
            result = resolve_certificate(self._gateway, ref)
            if isinstance(result, LookupFailure):
                errors.append(result)
                remove_set.add(ref, None)
                continue
            remove_set.add(ref, result)
            records.append(result)
        return records, remove_set

    def _resolve_additions(
        self,
        refs: list[CertificateRef],
        remove_set: _RemoveSet,
        errors: ErrorList,
    ) -> list[CertificateRecord]:
        records: list[CertificateRecord] = []
        for ref in refs:
            if remove_set.conflicts_with(ref, None):
                _log_conflict(ref)
                continue
            result = resolve_certificate(self._gateway, ref)
            if isinstance(result, LookupFailure):
                errors.append(result)
                continue
            if remove_set.conflicts_with(ref, result):
                _log_conflict(ref)
                continue
            records.append(result)
        return records


def _log_conflict(ref: CertificateRef) -> None:
    log.warning(
        "Certificate %s is listed for both addition and removal; only the removal is planned",
        ref,
    )


def _in_store(record: CertificateRecord, store: TrustStore) -> bool:
    return store.contains(record.thumbprint) or record.cert_id in store.cert_ids


def _base_action(
    record: CertificateRecord,
    store: TrustStore,
    timestamp: datetime,
    *,
    add: bool,
    remove: bool,
    deployed: bool,
) -> Action:
    return Action(
        thumbprint=normalize_thumbprint(record.thumbprint),
        cert_id=record.cert_id,
        store_id=store.store_id,
        subject_dn=record.issued_dn,
        issuer_dn=record.issuer_dn,
        store_type=store.store_type,
        store_path=store.store_path,
        machine=store.client_machine,
        add=add,
        remove=remove,
        deployed=deployed,
        audit_timestamp=timestamp,
    )


def _add_action(record: CertificateRecord, store: TrustStore, timestamp: datetime) -> Action:
    if _in_store(record, store):
        return _base_action(record, store, timestamp, add=False, remove=False, deployed=True)
    return _base_action(record, store, timestamp, add=True, remove=False, deployed=False)


def _remove_action(record: CertificateRecord, store: TrustStore, timestamp: datetime) -> Action:
    if _in_store(record, store):
        return _base_action(record, store, timestamp, add=False, remove=True, deployed=True)
    return _base_action(record, store, timestamp, add=False, remove=False, deployed=False)
