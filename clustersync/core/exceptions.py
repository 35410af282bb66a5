"""Exception hierarchy for clustersync.

All clustersync-specific exceptions inherit from ClusterSyncError, so
callers can catch every engine failure with a single except clause.
The reconciler stamps the failing ``Stage`` onto the error before
handing it back inside a ReconciliationResult.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from clustersync.api.library import LibraryStatus
    from clustersync.api.model import ClusterState, Stage


class ClusterSyncError(Exception):
    """Base exception for all clustersync errors."""

    stage: Stage | None = None

    def at(self, stage: Stage) -> ClusterSyncError:
        """Record the reconciliation stage, keeping the innermost one."""
        if self.stage is None:
            self.stage = stage
        return self


class ValidationError(ClusterSyncError):
    """Raised when a desired spec violates an invariant. No remote call was made."""


class ConfigurationError(ClusterSyncError):
    """Raised for invalid configuration or missing credentials."""


class TransportError(ClusterSyncError):
    """Raised when the control plane cannot be reached."""


class APIError(ClusterSyncError):
    """Structured rejection from the control plane.

    The message is kept verbatim so callers can match on it.
    """

    def __init__(self, code: str, message: str, status: int = 400) -> None:
        self.code = code
        self.message = message
        self.status = status
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}, status={self.status})"


class NotFoundError(APIError):
    """The addressed resource does not exist."""


class AuthenticationError(APIError):
    """Credentials were rejected."""


class ConvergenceTimeout(ClusterSyncError):
    """A poll exceeded its deadline without reaching the target state."""

    def __init__(self, description: str, timeout: float, last: Any = None) -> None:
        self.description = description
        self.timeout = timeout
        self.last = last
        super().__init__(f"Timeout waiting for {description} after {timeout:.1f}s")


class PartialConvergenceError(ClusterSyncError):
    """Some libraries failed to install after the retry budget was spent."""

    def __init__(self, failed: Sequence[LibraryStatus], statuses: Sequence[LibraryStatus]) -> None:
        self.failed = tuple(failed)
        self.statuses = tuple(statuses)
        details = "; ".join(
            f"{s.library}: {' '.join(s.messages) or 'failed'}" for s in self.failed
        )
        super().__init__(f"{len(self.failed)} of {len(self.statuses)} libraries failed to install: {details}")


class TerminalStateError(ClusterSyncError):
    """The cluster reached a state it cannot leave on its own."""

    def __init__(self, cluster_id: str, state: ClusterState, message: str = "") -> None:
        self.cluster_id = cluster_id
        self.state = state
        self.message = message
        suffix = f": {message}" if message else ""
        super().__init__(f"Cluster {cluster_id} is {state.value}{suffix}")


class IllegalActionError(ClusterSyncError):
    """An action was attempted from a state that does not permit it."""

    def __init__(self, action: str, state: ClusterState) -> None:
        self.action = action
        self.state = state
        super().__init__(f"{action} is not permitted while the cluster is {state.value}")


class ReconciliationCancelled(ClusterSyncError):
    """The caller cancelled the reconciliation."""

    def __init__(self) -> None:
        super().__init__("Reconciliation cancelled")
