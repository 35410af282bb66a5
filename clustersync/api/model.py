from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from clustersync.api.library import LibraryStatus
from clustersync.api.spec import ClusterSpec
from clustersync.core.exceptions import ClusterSyncError


class ClusterState(Enum):
    """Coarse lifecycle phase of a cluster."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    TERMINATING = "TERMINATING"
    TERMINATED = "TERMINATED"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: str | None) -> ClusterState:
        match (raw or "").upper():
            case "RESTARTING" | "RESIZING":
                return cls.PENDING
            case value if value in cls.__members__:
                return cls[value]
            case _:
                return cls.UNKNOWN

    @property
    def transitional(self) -> bool:
        return self in (ClusterState.PENDING, ClusterState.TERMINATING)


class Stage(Enum):
    """Step of a reconciliation cycle, reported alongside failures."""

    VALIDATE = "validate"
    READ = "read"
    CREATE = "create"
    START = "start"
    EDIT = "edit"
    LIBRARY_INSTALL = "library-install"
    LIBRARY_UNINSTALL = "library-uninstall"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class ClusterInfo:
    """Observed cluster. Always re-fetched, never cached across calls."""

    cluster_id: str
    state: ClusterState
    state_message: str = ""
    shape: ClusterSpec | None = None

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> ClusterInfo:
        return cls(
            cluster_id=raw.get("cluster_id", ""),
            state=ClusterState.parse(raw.get("state")),
            state_message=raw.get("state_message", ""),
            shape=ClusterSpec.from_json(raw),
        )


@dataclass(frozen=True, slots=True)
class ClusterSnapshot:
    cluster: ClusterInfo
    libraries: tuple[LibraryStatus, ...] = ()


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """Outcome of one reconciliation cycle.

    On failure ``error`` carries the classified exception and ``stage``
    the step that failed; ``cluster`` and ``libraries`` hold the last
    state observed before the failure.
    """

    cluster: ClusterInfo | None
    libraries: tuple[LibraryStatus, ...] = ()
    error: ClusterSyncError | None = None
    stage: Stage | None = None
    actions: tuple[str, ...] = field(default=(), compare=False)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def cluster_id(self) -> str | None:
        if self.cluster is None or not self.cluster.cluster_id:
            return None
        return self.cluster.cluster_id

    def raise_for_error(self) -> ReconciliationResult:
        if self.error is not None:
            raise self.error
        return self
