"""Cluster lifecycle and library reconciliation engine."""

from .libraries import LibraryDiff, diff_libraries, is_converged, is_settled
from .lifecycle import wait_for_running, wait_for_stable, wait_for_terminated
from .poller import checkpoint, wait_until
from .reconciler import Reconciler, reconcile, reconcile_sync
from .state import Action, is_legal, legal_actions, require

__all__ = [
    "Action",
    "LibraryDiff",
    "Reconciler",
    "checkpoint",
    "diff_libraries",
    "is_converged",
    "is_legal",
    "is_settled",
    "legal_actions",
    "reconcile",
    "reconcile_sync",
    "require",
    "wait_for_running",
    "wait_for_stable",
    "wait_for_terminated",
    "wait_until",
]
