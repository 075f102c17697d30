"""Plan generation pipeline: payload, recovery, reconciliation.

The orchestrator lives in ``core.planning.orchestrator`` and is imported
from there directly.
"""

from .payload import generate_payload, rank_drivers, select_included
from .recovery import (
    RecoveryFailure,
    RecoveryFailureKind,
    RecoveryResult,
    RecoverySuccess,
    recover,
)
from .reconcile import ReconcileTolerances, merge_findings, reconcile

__all__ = [
    "generate_payload",
    "rank_drivers",
    "select_included",
    "RecoveryFailure",
    "RecoveryFailureKind",
    "RecoveryResult",
    "RecoverySuccess",
    "recover",
    "ReconcileTolerances",
    "merge_findings",
    "reconcile",
]
