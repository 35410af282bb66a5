"""Cluster phase waits built on the poller."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from clustersync.api.model import ClusterInfo, ClusterState
from clustersync.core.exceptions import NotFoundError, TerminalStateError
from clustersync.engine.poller import wait_until
from clustersync.engine.state import is_stable

if TYPE_CHECKING:
    from clustersync.client.protocol import ControlPlane
    from clustersync.config import ReconcileSettings


def _poll_options(
    settings: ReconcileSettings,
    cancel: asyncio.Event | None,
    observe: Callable[[Any], None] | None,
) -> dict[str, Any]:
    return {
        "timeout": settings.poll_timeout,
        "interval": settings.poll_interval,
        "backoff": settings.poll_backoff,
        "max_interval": settings.max_poll_interval,
        "transport_retries": settings.transport_retries,
        "cancel": cancel,
        "on_value": observe,
    }


async def wait_for_running(
    client: ControlPlane,
    cluster_id: str,
    settings: ReconcileSettings,
    cancel: asyncio.Event | None = None,
    observe: Callable[[ClusterInfo], None] | None = None,
) -> ClusterInfo:
    """Wait for RUNNING. TERMINATED or ERROR on the way is a failure, and so is NotFound."""

    def failure(info: ClusterInfo) -> Exception | None:
        if info.state in (ClusterState.TERMINATED, ClusterState.ERROR):
            return TerminalStateError(cluster_id, info.state, info.state_message)
        return None

    return await wait_until(
        lambda: client.get_cluster(cluster_id),
        lambda info: info.state is ClusterState.RUNNING,
        failure=failure,
        description=f"cluster {cluster_id} to be running",
        **_poll_options(settings, cancel, observe),
    )


async def wait_for_terminated(
    client: ControlPlane,
    cluster_id: str,
    settings: ReconcileSettings,
    cancel: asyncio.Event | None = None,
    observe: Callable[[ClusterInfo | None], None] | None = None,
) -> ClusterInfo | None:
    """Wait for TERMINATED. A cluster that disappeared counts as terminated (returns None).

    ERROR on the way is a failure.
    """

    async def fetch() -> ClusterInfo | None:
        try:
            return await client.get_cluster(cluster_id)
        except NotFoundError:
            return None

    def failure(info: ClusterInfo | None) -> Exception | None:
        if info is not None and info.state is ClusterState.ERROR:
            return TerminalStateError(cluster_id, info.state, info.state_message)
        return None

    return await wait_until(
        fetch,
        lambda info: info is None or info.state is ClusterState.TERMINATED,
        failure=failure,
        description=f"cluster {cluster_id} to terminate",
        **_poll_options(settings, cancel, observe),
    )


async def wait_for_stable(
    client: ControlPlane,
    cluster_id: str,
    settings: ReconcileSettings,
    cancel: asyncio.Event | None = None,
    observe: Callable[[ClusterInfo], None] | None = None,
) -> ClusterInfo:
    """Wait until the cluster leaves PENDING, TERMINATING and UNKNOWN."""
    return await wait_until(
        lambda: client.get_cluster(cluster_id),
        lambda info: is_stable(info.state),
        description=f"cluster {cluster_id} to settle",
        **_poll_options(settings, cancel, observe),
    )
