"""Async REST client for the workspace control plane (API 2.0)."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, cast

from clustersync.api.library import Library, LibraryStatus, library_to_json
from clustersync.api.model import ClusterInfo
from clustersync.api.spec import ClusterSpec
from clustersync.core.exceptions import (
    APIError,
    AuthenticationError,
    NotFoundError,
    TransportError,
)
from clustersync.infra.http import Auth, HttpClient, HttpError
from clustersync.infra.retry import on_status_code, retry
from clustersync.observability.logger import logger

from .types import ClusterLibraryStatuses, ClusterResponse, CreateClusterResponse, ErrorBody

API_PREFIX = "/api/2.0"

_NOT_FOUND_CODES = frozenset({"RESOURCE_DOES_NOT_EXIST", "NOT_FOUND"})


def classify(e: HttpError) -> TransportError | APIError:
    """Turn an HTTP failure into the engine's error taxonomy."""
    if e.status == 0:
        return TransportError(e.body)

    try:
        body = cast(ErrorBody, json.loads(e.body))
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    code = body.get("error_code") or f"HTTP_{e.status}"
    message = body.get("message") or e.body or f"HTTP {e.status}"

    if e.status in (401, 403):
        return AuthenticationError(code, message, e.status)
    if e.status == 404 or code in _NOT_FOUND_CODES:
        return NotFoundError(code, message, e.status)
    return APIError(code, message, e.status)


class WorkspaceClient:
    """Control-plane client over the clusters and libraries REST endpoints.

    Example:
        async with WorkspaceClient("https://example.cloud", BearerAuth("dapi...")) as client:
            cluster_id = await client.create_cluster(spec)
    """

    def __init__(self, host: str, auth: Auth, *, timeout: float = 60) -> None:
        self._http = HttpClient(
            host,
            auth,
            timeout=timeout,
            default_headers={"Content-Type": "application/json"},
        )
        self._log = logger.bind(component="client")

    async def __aenter__(self) -> WorkspaceClient:
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.close()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            return await self._http.request(method, f"{API_PREFIX}{path}", json=json, params=params)
        except HttpError as e:
            error = classify(e)
            self._log.debug(
                "{method} {path} failed: {error!r}", method=method, path=path, error=error,
            )
            raise error from e

    # =========================================================================
    # Clusters
    # =========================================================================

    async def create_cluster(self, spec: ClusterSpec) -> str:
        result: CreateClusterResponse | None = await self._request(
            "POST", "/clusters/create", json=spec.to_request(),
        )
        if not result or not result.get("cluster_id"):
            raise APIError("EMPTY_RESPONSE", "Cluster create returned no cluster_id", 200)
        return result["cluster_id"]

    @retry(on=on_status_code(429, 503), max_attempts=3, base_delay=1.0)
    async def get_cluster(self, cluster_id: str) -> ClusterInfo:
        result: ClusterResponse = await self._request(
            "GET", "/clusters/get", params={"cluster_id": cluster_id},
        )
        info = ClusterInfo.from_json(result or {})
        if not info.cluster_id:
            # some deployments omit the id on get
            return ClusterInfo(
                cluster_id=cluster_id,
                state=info.state,
                state_message=info.state_message,
                shape=info.shape,
            )
        return info

    async def start_cluster(self, cluster_id: str) -> None:
        await self._request("POST", "/clusters/start", json={"cluster_id": cluster_id})

    async def edit_cluster(self, cluster_id: str, spec: ClusterSpec) -> None:
        await self._request("POST", "/clusters/edit", json=spec.to_request(cluster_id))

    async def delete_cluster(self, cluster_id: str) -> None:
        await self._request("POST", "/clusters/delete", json={"cluster_id": cluster_id})

    async def permanent_delete_cluster(self, cluster_id: str) -> None:
        await self._request("POST", "/clusters/permanent-delete", json={"cluster_id": cluster_id})

    # =========================================================================
    # Libraries
    # =========================================================================

    @retry(on=on_status_code(429, 503), max_attempts=3, base_delay=1.0)
    async def library_statuses(self, cluster_id: str) -> list[LibraryStatus]:
        """Library statuses for the cluster, excluding workspace-wide libraries."""
        result: ClusterLibraryStatuses | None = await self._request(
            "GET", "/libraries/cluster-status", params={"cluster_id": cluster_id},
        )
        return [
            LibraryStatus.from_json(raw)
            for raw in (result or {}).get("library_statuses") or []
            if not raw.get("is_library_for_all_clusters", False)
        ]

    async def install_libraries(self, cluster_id: str, libraries: Sequence[Library]) -> None:
        await self._request("POST", "/libraries/install", json={
            "cluster_id": cluster_id,
            "libraries": [library_to_json(lib) for lib in libraries],
        })

    async def uninstall_libraries(self, cluster_id: str, libraries: Sequence[Library]) -> None:
        await self._request("POST", "/libraries/uninstall", json={
            "cluster_id": cluster_id,
            "libraries": [library_to_json(lib) for lib in libraries],
        })
