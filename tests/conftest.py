from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

import pytest

from clustersync.api.library import InstallStatus, Library, LibraryStatus
from clustersync.api.model import ClusterInfo, ClusterState
from clustersync.api.spec import ClusterSpec
from clustersync.config import ReconcileSettings
from clustersync.core.exceptions import APIError, NotFoundError


@dataclass
class _Cluster:
    spec: ClusterSpec
    state: ClusterState
    state_message: str = ""
    libraries: dict[Library, InstallStatus] = field(default_factory=dict)
    gets_until_settled: int = 0


class FakeControlPlane:
    """In-memory control plane with the same lifecycle rules as the real one.

    Transitional states advance on reads: a PENDING cluster becomes
    RUNNING after ``pending_polls`` get calls, TERMINATING becomes
    TERMINATED after ``terminating_polls``. Installed libraries go
    PENDING -> INSTALLED on the next status read, or FAILED while they
    have remaining entries in ``failures``.
    """

    def __init__(self) -> None:
        self.clusters: dict[str, _Cluster] = {}
        self.calls: list[tuple[str, ...]] = []
        self.errors: dict[str, list[Exception]] = defaultdict(list)
        self.failures: dict[Library, int] = {}
        self.pending_polls = 1
        self.terminating_polls = 1
        self.next_id = "abc"
        self.stuck_pending = False
        self.fail_on_start = False
        self.error_on_terminate = False
        self.drop_installs = False

    # ─── Test helpers ────────────────────────────────────────────────

    def add_cluster(
        self,
        cluster_id: str,
        spec: ClusterSpec,
        state: ClusterState = ClusterState.RUNNING,
        libraries: dict[Library, InstallStatus] | None = None,
        state_message: str = "",
    ) -> None:
        self.clusters[cluster_id] = _Cluster(
            spec=spec,
            state=state,
            state_message=state_message,
            libraries=dict(libraries or {}),
        )

    def fail(self, method: str, error: Exception) -> None:
        self.errors[method].append(error)

    def mutations(self) -> list[str]:
        reads = {"get_cluster", "library_statuses"}
        return [call[0] for call in self.calls if call[0] not in reads]

    def _record(self, method: str, *args: str) -> None:
        self.calls.append((method, *args))
        if self.errors[method]:
            raise self.errors[method].pop(0)

    def _cluster(self, cluster_id: str) -> _Cluster:
        if cluster_id not in self.clusters:
            raise NotFoundError("RESOURCE_DOES_NOT_EXIST", f"Cluster {cluster_id} does not exist", 404)
        return self.clusters[cluster_id]

    def _require(self, cluster: _Cluster, *states: ClusterState) -> None:
        if cluster.state not in states:
            raise APIError("INVALID_STATE", f"Cluster is in unexpected state {cluster.state.value}")

    # ─── ControlPlane ────────────────────────────────────────────────

    async def create_cluster(self, spec: ClusterSpec) -> str:
        self._record("create_cluster")
        cluster_id = self.next_id
        self.clusters[cluster_id] = _Cluster(
            spec=spec, state=ClusterState.PENDING, gets_until_settled=self.pending_polls,
        )
        return cluster_id

    async def get_cluster(self, cluster_id: str) -> ClusterInfo:
        self._record("get_cluster", cluster_id)
        cluster = self._cluster(cluster_id)
        info = ClusterInfo(
            cluster_id=cluster_id,
            state=cluster.state,
            state_message=cluster.state_message,
            shape=cluster.spec,
        )
        self._advance(cluster)
        return info

    def _advance(self, cluster: _Cluster) -> None:
        if not cluster.state.transitional or self.stuck_pending:
            return
        if cluster.gets_until_settled > 0:
            cluster.gets_until_settled -= 1
            return
        if cluster.state is ClusterState.PENDING:
            if self.fail_on_start:
                cluster.state = ClusterState.TERMINATED
                cluster.state_message = "Cloud provider launch failure"
            else:
                cluster.state = ClusterState.RUNNING
                cluster.libraries = {
                    lib: status
                    for lib, status in cluster.libraries.items()
                    if status is not InstallStatus.UNINSTALL_ON_RESTART
                }
        elif self.error_on_terminate:
            cluster.state = ClusterState.ERROR
            cluster.state_message = "Termination failed"
        else:
            cluster.state = ClusterState.TERMINATED

    async def start_cluster(self, cluster_id: str) -> None:
        self._record("start_cluster", cluster_id)
        cluster = self._cluster(cluster_id)
        self._require(cluster, ClusterState.TERMINATED)
        cluster.state = ClusterState.PENDING
        cluster.gets_until_settled = self.pending_polls

    async def edit_cluster(self, cluster_id: str, spec: ClusterSpec) -> None:
        self._record("edit_cluster", cluster_id)
        cluster = self._cluster(cluster_id)
        self._require(cluster, ClusterState.RUNNING)
        cluster.spec = spec
        cluster.state = ClusterState.PENDING
        cluster.gets_until_settled = self.pending_polls

    async def delete_cluster(self, cluster_id: str) -> None:
        self._record("delete_cluster", cluster_id)
        cluster = self._cluster(cluster_id)
        self._require(cluster, ClusterState.RUNNING, ClusterState.TERMINATED, ClusterState.ERROR)
        if cluster.state is not ClusterState.TERMINATED:
            cluster.state = ClusterState.TERMINATING
            cluster.gets_until_settled = self.terminating_polls

    async def permanent_delete_cluster(self, cluster_id: str) -> None:
        self._record("permanent_delete_cluster", cluster_id)
        cluster = self._cluster(cluster_id)
        self._require(cluster, ClusterState.TERMINATED)
        del self.clusters[cluster_id]

    async def library_statuses(self, cluster_id: str) -> list[LibraryStatus]:
        self._record("library_statuses", cluster_id)
        cluster = self._cluster(cluster_id)
        statuses = [
            LibraryStatus(
                library=lib,
                status=status,
                messages=("boom",) if status is InstallStatus.FAILED else (),
            )
            for lib, status in cluster.libraries.items()
        ]
        if cluster.state is ClusterState.RUNNING:
            for lib, status in list(cluster.libraries.items()):
                if status is not InstallStatus.PENDING:
                    continue
                if self.failures.get(lib, 0) > 0:
                    self.failures[lib] -= 1
                    cluster.libraries[lib] = InstallStatus.FAILED
                else:
                    cluster.libraries[lib] = InstallStatus.INSTALLED
        return statuses

    async def install_libraries(self, cluster_id: str, libraries: Sequence[Library]) -> None:
        self._record("install_libraries", cluster_id, *map(repr, libraries))
        cluster = self._cluster(cluster_id)
        self._require(cluster, ClusterState.RUNNING)
        if self.drop_installs:
            return
        for lib in libraries:
            cluster.libraries[lib] = InstallStatus.PENDING

    async def uninstall_libraries(self, cluster_id: str, libraries: Sequence[Library]) -> None:
        self._record("uninstall_libraries", cluster_id, *map(repr, libraries))
        cluster = self._cluster(cluster_id)
        self._require(cluster, ClusterState.RUNNING)
        for lib in libraries:
            if lib in cluster.libraries:
                cluster.libraries[lib] = InstallStatus.UNINSTALL_ON_RESTART


@pytest.fixture
def plane() -> FakeControlPlane:
    return FakeControlPlane()


@pytest.fixture
def settings() -> ReconcileSettings:
    return ReconcileSettings(
        poll_timeout=2.0,
        poll_interval=0.01,
        max_poll_interval=0.05,
        library_attempts=2,
        transport_retries=2,
    )
