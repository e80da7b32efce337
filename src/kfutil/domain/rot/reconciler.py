"""Dispatch planned actions to the Platform."""

from __future__ import annotations

from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING

from kfutil.domain.errors import ApplyFailure, ErrorList, InvalidRow, LookupFailure
from kfutil.domain.model import ActionKind, CertificateRef, StoreTarget, normalize_thumbprint
from kfutil.domain.ports.gateway import GatewayError

from .lookup import resolve_certificate

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kfutil.domain.model import Action, AuditRow
    from kfutil.domain.ports.files import ActionSink
    from kfutil.domain.ports.gateway import PlatformGateway

log = getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ReconcileResult:
    dispatched: int = 0
    skipped: int = 0
    failed: int = 0
    dry_run: bool = False


class Reconciler:
    """Sends one add or remove job per pending action, in plan order.

    Every successfully dispatched action (or, in dry-run, every action that
    would have been dispatched) is written to the sink.
    """

    def __init__(self, gateway: PlatformGateway, *, dry_run: bool = False) -> None:
        self._gateway = gateway
        self._dry_run = dry_run

    def reconcile(
        self,
        actions: Iterable[Action],
        sink: ActionSink,
    ) -> tuple[ReconcileResult, ErrorList]:
        errors = ErrorList()
        dispatched = skipped = failed = 0

        for action in actions:
            if action.is_noop:
                skipped += 1
                continue
            if self._dry_run:
                log.info("[dry-run] would %s", action.describe())
                sink.write(action)
                dispatched += 1
                continue
            try:
                self._dispatch(action)
            except GatewayError as exc:
                log.error("Failed to %s: %s", action.describe(), exc)
                errors.append(
                    ApplyFailure(
                        f"{action.kind} failed: {exc}",
                        subject=f"{action.thumbprint or action.cert_id} on store {action.store_id}",
                    )
                )
                failed += 1
                continue
            log.info("Scheduled job to %s", action.describe())
            sink.write(action)
            dispatched += 1

        sink.flush()
        result = ReconcileResult(
            dispatched=dispatched,
            skipped=skipped,
            failed=failed,
            dry_run=self._dry_run,
        )
        log.info(
            "Reconcile finished: dispatched=%s, skipped=%s, failed=%s, dry_run=%s",
            result.dispatched,
            result.skipped,
            result.failed,
            result.dry_run,
        )
        return result, errors

    def _dispatch(self, action: Action) -> None:
        match action.kind:
            case ActionKind.ADD:
                self._gateway.add_certificate_to_stores(
                    action.cert_id,
                    [StoreTarget(store_id=action.store_id, overwrite=True)],
                )
            case ActionKind.REMOVE:
                self._gateway.remove_certificate_from_stores(
                    action.cert_id,
                    [StoreTarget(store_id=action.store_id, alias=action.thumbprint)],
                )
            case ActionKind.NOOP:
                pass


def actions_from_audit(
    rows: Iterable[AuditRow],
    gateway: PlatformGateway,
) -> tuple[list[Action], ErrorList]:
    """Rebuild actions from a (possibly hand edited) audit file."""

    errors = ErrorList()
    actions: list[Action] = []
    for row in rows:
        subject = f"line {row.line}"
        if row.add and row.remove:
            log.warning("Skipping %s: both AddCert and RemoveCert are true", subject)
            errors.append(InvalidRow("AddCert and RemoveCert are both true", subject=subject))
            continue
        if not row.add and not row.remove:
            actions.append(row.to_action())
            continue
        if not row.store_id.strip():
            log.warning("Skipping %s: no StoreID", subject)
            errors.append(InvalidRow("missing StoreID", subject=subject))
            continue
        if not row.thumbprint.strip() and row.cert_id < 0:
            log.warning("Skipping %s: neither Thumbprint nor CertID is set", subject)
            errors.append(InvalidRow("missing Thumbprint and CertID", subject=subject))
            continue

        action = _complete_identity(row, gateway, errors)
        if action is not None:
            actions.append(action)
    return actions, errors


def _complete_identity(
    row: AuditRow,
    gateway: PlatformGateway,
    errors: ErrorList,
) -> Action | None:
    thumbprint = normalize_thumbprint(row.thumbprint)
    needs_id = row.cert_id < 0
    needs_alias = row.remove and not thumbprint
    if not needs_id and not needs_alias:
        return replace(row.to_action(), thumbprint=thumbprint)

    ref = CertificateRef(thumbprint=thumbprint) if needs_id else CertificateRef(cert_id=row.cert_id)
    result = resolve_certificate(gateway, ref)
    if isinstance(result, LookupFailure):
        result.subject = f"line {row.line} ({ref})"
        errors.append(result)
        return None
    action = row.to_action(cert_id=result.cert_id)
    return replace(action, thumbprint=thumbprint or normalize_thumbprint(result.thumbprint))
