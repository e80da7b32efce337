"""Facade that runs the audit and reconcile stages end to end."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from kfutil.domain.clock import run_timestamp, utcnow
from kfutil.domain.errors import EligibilityRejection, ErrorList, InputError, LookupFailure
from kfutil.domain.model import Plan, TrustStore
from kfutil.domain.ports.gateway import GatewayError

from .eligibility import TrustStoreCriteria, evaluate_eligibility
from .planner import Planner
from .reconciler import ReconcileResult, Reconciler, actions_from_audit

if TYPE_CHECKING:
    from datetime import datetime

    from kfutil.domain.clock import Clock
    from kfutil.domain.model import Action, CertificateRef, StoreRow
    from kfutil.domain.ports.files import RotFiles
    from kfutil.domain.ports.gateway import PlatformGateway

log = getLogger(__name__)

DEFAULT_AUDIT_FILE = "rot_audit.csv"
RECONCILED_SUFFIX = "_reconciled"


class ReconcileSource(StrEnum):
    FROM_PLAN = "from-plan"
    FROM_FILE = "from-file"


@dataclass(slots=True, frozen=True)
class RunConfig:
    """Everything a single ROT run needs, built once at program entry."""

    stores_path: Path | None = None
    add_certs_path: Path | None = None
    remove_certs_path: Path | None = None
    input_path: Path | None = None
    output_path: Path = Path(DEFAULT_AUDIT_FILE)
    criteria: TrustStoreCriteria = field(default_factory=TrustStoreCriteria)
    dry_run: bool = False

    def reconciled_path(self) -> Path:
        return self.output_path.with_name(f"{self.output_path.stem}{RECONCILED_SUFFIX}.csv")


@dataclass(slots=True)
class AuditOutcome:
    plan: Plan
    errors: ErrorList
    report_path: Path
    stores: list[TrustStore] = field(default_factory=list)


@dataclass(slots=True)
class ReconcileOutcome:
    result: ReconcileResult
    errors: ErrorList
    reconciled_path: Path
    report_path: Path | None = None
    plan: Plan | None = None


@dataclass(slots=True)
class _Inputs:
    stores: list[StoreRow]
    add: list[CertificateRef]
    remove: list[CertificateRef]


class RootOfTrustManager:
    """Wires CSV inputs, the gateway, the planner and the reconciler.

    All input files are parsed before the first Platform call so that a bad
    header stops the run without side effects.
    """

    def __init__(
        self,
        config: RunConfig,
        gateway: PlatformGateway,
        files: RotFiles,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._config = config
        self._gateway = gateway
        self._files = files
        self._clock = clock
        self._stores: dict[str, TrustStore] = {}
        self._store_type_names: dict[int, str] = {}

    @property
    def config(self) -> RunConfig:
        return self._config

    @property
    def stores(self) -> dict[str, TrustStore]:
        return dict(self._stores)

    def audit(self) -> AuditOutcome:
        inputs = self._read_plan_inputs()
        stores, errors = self.load_trust_stores(inputs.stores)

        report_path = self._config.output_path
        planner = Planner(self._gateway, clock=self._clock)
        with self._files.open_audit(report_path) as sink:
            plan, plan_errors = planner.plan(
                stores,
                add=inputs.add,
                remove=inputs.remove,
                sink=sink,
            )
        errors.extend(plan_errors)
        log.info("Audit written to %s", report_path)
        return AuditOutcome(plan=plan, errors=errors, report_path=report_path, stores=stores)

    def reconcile(self, source: ReconcileSource) -> ReconcileOutcome:
        match source:
            case ReconcileSource.FROM_PLAN:
                outcome = self.audit()
                errors = outcome.errors
                actions: list[Action] = list(outcome.plan)
                report_path: Path | None = outcome.report_path
                plan: Plan | None = outcome.plan
            case ReconcileSource.FROM_FILE:
                input_path = self._validate_import_inputs()
                rows, errors = self._files.read_audit(input_path)
                actions, import_errors = actions_from_audit(rows, self._gateway)
                errors.extend(import_errors)
                report_path = None
                plan = Plan(actions)

        reconciled_path = self._config.reconciled_path()
        reconciler = Reconciler(self._gateway, dry_run=self._config.dry_run)
        with self._files.open_reconciled(
            reconciled_path,
            reconciled_at=run_timestamp(self._clock),
        ) as sink:
            result, apply_errors = reconciler.reconcile(actions, sink)
        errors.extend(apply_errors)
        log.info("Reconciled actions written to %s", reconciled_path)
        return ReconcileOutcome(
            result=result,
            errors=errors,
            reconciled_path=reconciled_path,
            report_path=report_path,
            plan=plan,
        )

    def load_trust_stores(
        self,
        rows: list[StoreRow] | None = None,
    ) -> tuple[list[TrustStore], ErrorList]:
        """Fetch each listed store and its inventory, keeping the eligible ones."""

        if rows is None:
            rows = self._read_store_rows()
        errors = ErrorList()
        queried_at = run_timestamp(self._clock)
        criteria = self._config.criteria
        self._stores.clear()

        for row in rows:
            store = self._load_store(row, queried_at, errors)
            if store is None:
                continue
            report = evaluate_eligibility(
                store,
                store.inventory,
                min_certs=criteria.min_certs,
                max_leaves=criteria.max_leaves,
                max_keys=criteria.max_keys,
            )
            if not report.eligible:
                log.warning("Store %s is not a root of trust store: %s", store.store_id, report.reason)
                errors.append(
                    EligibilityRejection(f"store {report.reason}", subject=store.store_id)
                )
                continue
            self._stores[store.store_id] = store

        log.info("%s of %s listed stores are eligible", len(self._stores), len(rows))
        if not self._stores:
            log.warning(
                "No root of trust stores found that meet the defined criteria "
                "(min_certs=%s, max_leaves=%s, max_keys=%s)",
                criteria.min_certs,
                criteria.max_leaves,
                criteria.max_keys,
            )
        return list(self._stores.values()), errors

    def _load_store(
        self,
        row: StoreRow,
        queried_at: datetime,
        errors: ErrorList,
    ) -> TrustStore | None:
        try:
            record = self._gateway.get_store(row.store_id)
            inventory = self._gateway.get_store_inventory(row.store_id)
        except GatewayError as exc:
            log.warning("Unable to load store %s: %s", row.store_id, exc)
            errors.append(LookupFailure(f"store lookup failed: {exc}", subject=row.store_id))
            return None

        store = TrustStore(
            store_id=record.store_id,
            store_type=self._store_type_name(record.store_type_id, fallback=row.store_type),
            client_machine=record.client_machine,
            store_path=record.store_path,
            container_id=record.container_id,
            container_name=record.container_name,
            last_queried=queried_at,
        )
        store.load_inventory(inventory)
        return store

    def _store_type_name(self, type_id: int, *, fallback: str) -> str:
        if type_id in self._store_type_names:
            return self._store_type_names[type_id]
        try:
            name = self._gateway.get_store_type(type_id).short_name
        except GatewayError as exc:
            log.debug("Store type %s could not be resolved: %s", type_id, exc)
            return fallback or str(type_id)
        self._store_type_names[type_id] = name
        return name

    def _read_store_rows(self) -> list[StoreRow]:
        if self._config.stores_path is None:
            raise InputError("a stores file is required to plan")
        return self._files.read_stores(self._config.stores_path)

    def _read_plan_inputs(self) -> _Inputs:
        config = self._config
        if config.input_path is not None:
            raise InputError("an audit input file cannot be combined with planning inputs")
        if config.add_certs_path is None and config.remove_certs_path is None:
            raise InputError("at least one of the add or remove certificate files is required")
        stores = self._read_store_rows()
        add = self._files.read_certificates(config.add_certs_path) if config.add_certs_path else []
        remove = (
            self._files.read_certificates(config.remove_certs_path)
            if config.remove_certs_path
            else []
        )
        return _Inputs(stores=stores, add=add, remove=remove)

    def _validate_import_inputs(self) -> Path:
        config = self._config
        if config.input_path is None:
            raise InputError("an audit input file is required to reconcile from file")
        if config.stores_path or config.add_certs_path or config.remove_certs_path:
            raise InputError(
                "an audit input file cannot be combined with stores or certificate files"
            )
        return config.input_path
