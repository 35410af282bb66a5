"""Converge one cluster and its library set to a desired spec.

One reconciliation call is a single sequential flow: phase transitions,
then shape edits, then library changes. Suspension happens only inside
remote calls and poll waits. The engine holds no lock; callers must run
at most one reconciliation per cluster identifier at a time.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from clustersync.api.library import Library, LibraryStatus
from clustersync.api.model import (
    ClusterInfo,
    ClusterSnapshot,
    ClusterState,
    ReconciliationResult,
    Stage,
)
from clustersync.config import ReconcileSettings
from clustersync.core.exceptions import (
    ClusterSyncError,
    NotFoundError,
    PartialConvergenceError,
    TerminalStateError,
)
from clustersync.engine.libraries import diff_libraries, is_settled
from clustersync.engine.lifecycle import wait_for_running, wait_for_stable, wait_for_terminated
from clustersync.engine.poller import checkpoint, wait_until
from clustersync.engine.state import Action, require
from clustersync.observability.logger import logger

if TYPE_CHECKING:
    from clustersync.api.spec import ClusterSpec
    from clustersync.client.protocol import ControlPlane

log = logger.bind(component="reconciler")


@dataclass(slots=True)
class _Cycle:
    """Call-local state of one reconciliation. Discarded when the call returns."""

    stage: Stage = Stage.VALIDATE
    cluster: ClusterInfo | None = None
    libraries: tuple[LibraryStatus, ...] = ()
    actions: list[str] = field(default_factory=list)

    def observe_cluster(self, info: ClusterInfo | None) -> None:
        if info is not None:
            self.cluster = info

    def observe_libraries(self, statuses: Sequence[LibraryStatus]) -> None:
        self.libraries = tuple(statuses)

    def result(self, error: ClusterSyncError | None = None) -> ReconciliationResult:
        return ReconciliationResult(
            cluster=self.cluster,
            libraries=self.libraries,
            error=error,
            stage=error.stage if error is not None else None,
            actions=tuple(self.actions),
        )


class Reconciler:
    """Drives create, update and delete against a control plane.

    The reconciler is a function of (spec, client): it keeps no state
    between calls, and every call re-reads the cluster before acting.

    Example:
        async with connect(config) as client:
            result = await Reconciler(client).reconcile(spec, cluster_id=None)
            result.raise_for_error()
    """

    def __init__(
        self,
        client: ControlPlane,
        settings: ReconcileSettings | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or ReconcileSettings()
        self._cancel = cancel

    # =========================================================================
    # Entry points
    # =========================================================================

    async def reconcile(self, spec: ClusterSpec, cluster_id: str | None = None) -> ReconciliationResult:
        """Create the cluster when ``cluster_id`` is None, otherwise update it."""
        if cluster_id is None:
            return await self.create(spec)
        return await self.update(cluster_id, spec)

    async def create(self, spec: ClusterSpec) -> ReconciliationResult:
        return await self._run(lambda cycle: self._create(cycle, spec))

    async def update(self, cluster_id: str, spec: ClusterSpec) -> ReconciliationResult:
        return await self._run(lambda cycle: self._update(cycle, cluster_id, spec))

    async def delete(self, cluster_id: str) -> ReconciliationResult:
        """Terminate and purge the cluster. Already gone or terminated is success."""
        return await self._run(lambda cycle: self._delete(cycle, cluster_id))

    async def refresh(self, cluster_id: str) -> ClusterSnapshot | None:
        """Read the cluster and its libraries; None when it no longer exists."""
        checkpoint(self._cancel)
        try:
            info = await self._client.get_cluster(cluster_id)
        except NotFoundError:
            log.info("Cluster {cluster_id} not found", cluster_id=cluster_id)
            return None
        checkpoint(self._cancel)
        statuses = await self._client.library_statuses(cluster_id)
        return ClusterSnapshot(cluster=info, libraries=tuple(statuses))

    async def _run(self, flow: Callable[[_Cycle], Awaitable[None]]) -> ReconciliationResult:
        cycle = _Cycle()
        try:
            await flow(cycle)
        except ClusterSyncError as e:
            e.at(cycle.stage)
            log.warning(
                "Reconciliation failed during {stage}: {error}",
                stage=cycle.stage.value, error=e,
            )
            return cycle.result(e)
        return cycle.result()

    # =========================================================================
    # Flows
    # =========================================================================

    async def _create(self, cycle: _Cycle, spec: ClusterSpec) -> None:
        spec.validate()

        cycle.stage = Stage.CREATE
        cluster_id = await self._call(cycle, "create", self._client.create_cluster, spec)
        cycle.cluster = ClusterInfo(cluster_id=cluster_id, state=ClusterState.PENDING)
        log.info("Created cluster {cluster_id}, waiting for it to run", cluster_id=cluster_id)

        info = await self._wait_running(cycle, cluster_id)

        if spec.libraries:
            await self._converge_libraries(cycle, info, spec.libraries, observed=())

        log.info("Cluster {cluster_id} is converged", cluster_id=cluster_id)

    async def _update(self, cycle: _Cycle, cluster_id: str, spec: ClusterSpec) -> None:
        spec.validate()

        cycle.stage = Stage.READ
        info = await self._get(cycle, cluster_id)
        if info.state.transitional or info.state is ClusterState.UNKNOWN:
            log.info(
                "Cluster {cluster_id} is {state}, waiting for a stable state",
                cluster_id=cluster_id, state=info.state.value,
            )
            info = await wait_for_stable(
                self._client, cluster_id, self._settings, self._cancel, cycle.observe_cluster,
            )
        statuses = await self._library_statuses(cycle, cluster_id)

        changes = spec.shape_changes(info.shape) if info.shape is not None else []
        delta = diff_libraries(spec.libraries, statuses)
        if not changes and delta.empty:
            if info.state is ClusterState.RUNNING:
                await self._converge_libraries(cycle, info, spec.libraries, observed=statuses)
            log.info("Cluster {cluster_id} is up to date", cluster_id=cluster_id)
            return

        log.info(
            "Cluster {cluster_id} needs changes: shape={changes}, install={n_in}, uninstall={n_out}",
            cluster_id=cluster_id, changes=changes or "-",
            n_in=len(delta.install), n_out=len(delta.uninstall),
        )

        if info.state is not ClusterState.RUNNING:
            cycle.stage = Stage.START
            if info.state is not ClusterState.TERMINATED:
                raise TerminalStateError(cluster_id, info.state, info.state_message)
            require(info.state, Action.START)
            await self._call(cycle, "start", self._client.start_cluster, cluster_id)
            info = await self._wait_running(cycle, cluster_id)

        if changes:
            cycle.stage = Stage.EDIT
            require(info.state, Action.EDIT)
            await self._call(cycle, "edit", self._client.edit_cluster, cluster_id, spec)
            info = await self._wait_running(cycle, cluster_id)

        # the start may have changed what the control plane reports
        statuses = await self._library_statuses(cycle, cluster_id)
        await self._converge_libraries(cycle, info, spec.libraries, observed=statuses)
        log.info("Cluster {cluster_id} is converged", cluster_id=cluster_id)

    async def _delete(self, cycle: _Cycle, cluster_id: str) -> None:
        cycle.stage = Stage.DELETE
        try:
            info = await self._get(cycle, cluster_id)
            if info.state.transitional or info.state is ClusterState.UNKNOWN:
                info = await wait_for_stable(
                    self._client, cluster_id, self._settings, self._cancel, cycle.observe_cluster,
                )

            if info.state is not ClusterState.TERMINATED:
                require(info.state, Action.DELETE)
                await self._call(cycle, "delete", self._client.delete_cluster, cluster_id)
                terminated = await wait_for_terminated(
                    self._client, cluster_id, self._settings, self._cancel, cycle.observe_cluster,
                )
                if terminated is None:
                    log.info("Cluster {cluster_id} is gone", cluster_id=cluster_id)
                    return
                info = terminated

            require(info.state, Action.PERMANENT_DELETE)
            await self._call(
                cycle, "permanent-delete", self._client.permanent_delete_cluster, cluster_id,
            )
        except NotFoundError:
            log.info("Cluster {cluster_id} already deleted", cluster_id=cluster_id)
            return

        log.info("Cluster {cluster_id} permanently deleted", cluster_id=cluster_id)

    async def _converge_libraries(
        self,
        cycle: _Cycle,
        info: ClusterInfo,
        desired: Sequence[Library],
        observed: Sequence[LibraryStatus],
    ) -> None:
        """Uninstall, then install, then wait; re-submit failed installs within budget."""
        cluster_id = info.cluster_id
        attempts: dict[Library, int] = {}
        removed: set[Library] = set()

        while True:
            delta = diff_libraries(
                desired, observed, attempts=attempts, budget=self._settings.library_attempts,
            )

            if delta.uninstall:
                cycle.stage = Stage.LIBRARY_UNINSTALL
                require(info.state, Action.UNINSTALL_LIBRARIES)
                await self._call(
                    cycle, "uninstall", self._client.uninstall_libraries, cluster_id, delta.uninstall,
                )
                removed.update(delta.uninstall)

            if delta.install:
                cycle.stage = Stage.LIBRARY_INSTALL
                require(info.state, Action.INSTALL_LIBRARIES)
                retried = [lib for lib in delta.install if attempts.get(lib)]
                if retried:
                    log.warning(
                        "Re-submitting {n} failed librar(ies) on {cluster_id}",
                        n=len(retried), cluster_id=cluster_id,
                    )
                await self._call(
                    cycle, "install", self._client.install_libraries, cluster_id, delta.install,
                )
                for lib in delta.install:
                    attempts[lib] = attempts.get(lib, 0) + 1

            if delta.empty and is_settled(desired, removed, observed):
                if delta.exhausted:
                    cycle.stage = Stage.LIBRARY_INSTALL
                    raise PartialConvergenceError(delta.exhausted, observed)
                return

            if delta.empty:
                cycle.stage = Stage.LIBRARY_INSTALL
            observed = await wait_until(
                lambda: self._client.library_statuses(cluster_id),
                lambda statuses: is_settled(desired, removed, statuses),
                timeout=self._settings.poll_timeout,
                interval=self._settings.poll_interval,
                backoff=self._settings.poll_backoff,
                max_interval=self._settings.max_poll_interval,
                description=f"libraries on cluster {cluster_id}",
                transport_retries=self._settings.transport_retries,
                cancel=self._cancel,
                on_value=cycle.observe_libraries,
            )

    # =========================================================================
    # Remote calls
    # =========================================================================

    async def _call[**P, T](
        self,
        cycle: _Cycle,
        action: str,
        fn: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        checkpoint(self._cancel)
        log.debug("Issuing {action}", action=action)
        cycle.actions.append(action)
        return await fn(*args, **kwargs)

    async def _get(self, cycle: _Cycle, cluster_id: str) -> ClusterInfo:
        checkpoint(self._cancel)
        info = await self._client.get_cluster(cluster_id)
        cycle.observe_cluster(info)
        return info

    async def _library_statuses(self, cycle: _Cycle, cluster_id: str) -> list[LibraryStatus]:
        checkpoint(self._cancel)
        statuses = await self._client.library_statuses(cluster_id)
        cycle.observe_libraries(statuses)
        return statuses

    async def _wait_running(self, cycle: _Cycle, cluster_id: str) -> ClusterInfo:
        return await wait_for_running(
            self._client, cluster_id, self._settings, self._cancel, cycle.observe_cluster,
        )


async def reconcile(
    client: ControlPlane,
    spec: ClusterSpec,
    existing_id: str | None = None,
    *,
    library_attempts: int = 3,
    poll_timeout: float = 1200.0,
    poll_interval: float = 10.0,
    cancel: asyncio.Event | None = None,
) -> ReconciliationResult:
    """Create or update one cluster and its libraries; see Reconciler."""
    settings = ReconcileSettings(
        poll_timeout=poll_timeout,
        poll_interval=poll_interval,
        library_attempts=library_attempts,
    )
    return await Reconciler(client, settings, cancel=cancel).reconcile(spec, existing_id)


def reconcile_sync(
    client: ControlPlane,
    spec: ClusterSpec,
    existing_id: str | None = None,
    *,
    library_attempts: int = 3,
    poll_timeout: float = 1200.0,
    poll_interval: float = 10.0,
) -> ReconciliationResult:
    """Blocking variant of :func:`reconcile` for callers without an event loop.

    Runs on a private event loop. A client exposing ``close()`` is closed
    before returning, since its session is bound to that loop; the REST
    client reopens its session on next use.
    """

    async def _main() -> ReconciliationResult:
        try:
            return await reconcile(
                client,
                spec,
                existing_id,
                library_attempts=library_attempts,
                poll_timeout=poll_timeout,
                poll_interval=poll_interval,
            )
        finally:
            close = getattr(client, "close", None)
            if close is not None:
                await close()

    return asyncio.run(_main())
