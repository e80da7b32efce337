"""Root-of-trust reconciliation.

Flow of a run:
1) read the stores file and load each store with its inventory
2) drop stores that do not look like trust stores
3) plan add/remove actions and write them to the audit file
4) dispatch pending actions, either from the plan or from an edited audit file
"""

from __future__ import annotations

from .eligibility import EligibilityReport, TrustStoreCriteria, eligible, evaluate_eligibility
from .manager import (
    DEFAULT_AUDIT_FILE,
    AuditOutcome,
    ReconcileOutcome,
    ReconcileSource,
    RootOfTrustManager,
    RunConfig,
)
from .planner import Planner, dedupe_refs
from .reconciler import ReconcileResult, Reconciler, actions_from_audit

__all__ = [
    "DEFAULT_AUDIT_FILE",
    "AuditOutcome",
    "EligibilityReport",
    "Planner",
    "ReconcileOutcome",
    "ReconcileResult",
    "ReconcileSource",
    "Reconciler",
    "RootOfTrustManager",
    "RunConfig",
    "TrustStoreCriteria",
    "actions_from_audit",
    "dedupe_refs",
    "eligible",
    "evaluate_eligibility",
]
