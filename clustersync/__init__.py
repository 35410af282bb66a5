"""clustersync - converge a remote compute cluster and its libraries to a declared spec.

Example:

    import asyncio
    from clustersync import ClusterSpec, Jar, Reconciler, connect, load_settings

    workspace, settings = load_settings()
    spec = ClusterSpec(
        spark_version="7.1-scala12",
        node_type_id="i3.xlarge",
        num_workers=2,
        libraries=(Jar("dbfs://foo.jar"),),
    )

    async def main():
        async with connect(workspace) as client:
            result = await Reconciler(client, settings).reconcile(spec)
            print(result.raise_for_error().cluster_id)

    asyncio.run(main())
"""

from clustersync.api import (
    AutoScale,
    AwsAttributes,
    AzureAttributes,
    ClusterInfo,
    ClusterSnapshot,
    ClusterSpec,
    ClusterState,
    Cran,
    Egg,
    GcpAttributes,
    InstallStatus,
    Jar,
    Library,
    LibraryStatus,
    Maven,
    PyPi,
    ReconciliationResult,
    Stage,
    Whl,
)
from clustersync.client import ControlPlane, WorkspaceClient
from clustersync.config import ReconcileSettings, WorkspaceConfig, connect, load_settings
from clustersync.core.exceptions import (
    APIError,
    AuthenticationError,
    ClusterSyncError,
    ConfigurationError,
    ConvergenceTimeout,
    IllegalActionError,
    NotFoundError,
    PartialConvergenceError,
    ReconciliationCancelled,
    TerminalStateError,
    TransportError,
    ValidationError,
)
from clustersync.engine import Reconciler, reconcile, reconcile_sync
from clustersync.observability.logger import logger

__version__ = "0.1.0"

__all__ = [
    "APIError",
    "AuthenticationError",
    "AutoScale",
    "AwsAttributes",
    "AzureAttributes",
    "ClusterInfo",
    "ClusterSnapshot",
    "ClusterSpec",
    "ClusterState",
    "ClusterSyncError",
    "ConfigurationError",
    "ControlPlane",
    "ConvergenceTimeout",
    "Cran",
    "Egg",
    "GcpAttributes",
    "IllegalActionError",
    "InstallStatus",
    "Jar",
    "Library",
    "LibraryStatus",
    "Maven",
    "NotFoundError",
    "PartialConvergenceError",
    "PyPi",
    "ReconcileSettings",
    "Reconciler",
    "ReconciliationCancelled",
    "ReconciliationResult",
    "Stage",
    "TerminalStateError",
    "TransportError",
    "ValidationError",
    "Whl",
    "WorkspaceClient",
    "WorkspaceConfig",
    "connect",
    "load_settings",
    "logger",
    "reconcile",
    "reconcile_sync",
]
