"""Contract the engine consumes from the remote control plane.

Implementations must be safe for concurrent calls targeting different
clusters. Every method may raise TransportError, AuthenticationError or
APIError; lookups of a missing cluster raise NotFoundError.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from clustersync.api.library import Library, LibraryStatus
    from clustersync.api.model import ClusterInfo
    from clustersync.api.spec import ClusterSpec


@runtime_checkable
class ControlPlane(Protocol):
    async def create_cluster(self, spec: ClusterSpec) -> str:
        """Create a cluster and return its identifier (assigned synchronously)."""
        ...

    async def get_cluster(self, cluster_id: str) -> ClusterInfo: ...

    async def start_cluster(self, cluster_id: str) -> None: ...

    async def edit_cluster(self, cluster_id: str, spec: ClusterSpec) -> None: ...

    async def delete_cluster(self, cluster_id: str) -> None:
        """Terminate the cluster; its record survives until permanently deleted."""
        ...

    async def permanent_delete_cluster(self, cluster_id: str) -> None: ...

    async def library_statuses(self, cluster_id: str) -> list[LibraryStatus]: ...

    async def install_libraries(self, cluster_id: str, libraries: Sequence[Library]) -> None: ...

    async def uninstall_libraries(self, cluster_id: str, libraries: Sequence[Library]) -> None: ...
