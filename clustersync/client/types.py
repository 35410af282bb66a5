"""Control-plane response types.

TypedDicts for the JSON documents the REST API returns.
"""

from __future__ import annotations

from typing import Any, NotRequired, TypedDict


class ErrorBody(TypedDict):
    error_code: NotRequired[str]
    message: NotRequired[str]


class CreateClusterResponse(TypedDict):
    cluster_id: str


class AutoScaleResponse(TypedDict):
    min_workers: NotRequired[int]
    max_workers: NotRequired[int]


class ClusterResponse(TypedDict):
    cluster_id: str
    state: str  # PENDING, RUNNING, RESTARTING, RESIZING, TERMINATING, TERMINATED, ERROR, UNKNOWN
    state_message: NotRequired[str]
    cluster_name: NotRequired[str]
    spark_version: NotRequired[str]
    node_type_id: NotRequired[str]
    driver_node_type_id: NotRequired[str]
    num_workers: NotRequired[int]
    autoscale: NotRequired[AutoScaleResponse]
    autotermination_minutes: NotRequired[int]
    spark_conf: NotRequired[dict[str, str]]
    spark_env_vars: NotRequired[dict[str, str]]
    custom_tags: NotRequired[dict[str, str]]
    aws_attributes: NotRequired[dict[str, Any]]
    azure_attributes: NotRequired[dict[str, Any]]
    gcp_attributes: NotRequired[dict[str, Any]]
    instance_pool_id: NotRequired[str]
    enable_elastic_disk: NotRequired[bool]


class LibraryStatusResponse(TypedDict):
    library: dict[str, Any]
    status: str  # PENDING, RESOLVING, INSTALLING, INSTALLED, SKIPPED, FAILED, UNINSTALL_ON_RESTART
    messages: NotRequired[list[str]]
    is_library_for_all_clusters: NotRequired[bool]


class ClusterLibraryStatuses(TypedDict):
    cluster_id: NotRequired[str]
    library_statuses: NotRequired[list[LibraryStatusResponse]]
