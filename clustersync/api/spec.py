"""Desired cluster shape.

These are the immutable objects that describe what the caller wants.
The engine never mutates them; it renders them into control-plane
request bodies and compares them against what it observes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Literal

from clustersync.api.library import Cran, Egg, Jar, Library, Maven, PyPi, Whl
from clustersync.core.exceptions import ValidationError

type Availability = Literal["SPOT", "ON_DEMAND", "SPOT_WITH_FALLBACK"]


@dataclass(frozen=True, slots=True)
class AutoScale:
    min_workers: int
    max_workers: int


@dataclass(frozen=True, slots=True)
class AwsAttributes:
    zone_id: str | None = None
    availability: Availability | None = None
    first_on_demand: int | None = None
    spot_bid_price_percent: int | None = None
    instance_profile_arn: str | None = None
    ebs_volume_type: Literal["GENERAL_PURPOSE_SSD", "THROUGHPUT_OPTIMIZED_HDD"] | None = None
    ebs_volume_count: int | None = None
    ebs_volume_size: int | None = None


@dataclass(frozen=True, slots=True)
class AzureAttributes:
    availability: Literal["SPOT_AZURE", "ON_DEMAND_AZURE", "SPOT_WITH_FALLBACK_AZURE"] | None = None
    first_on_demand: int | None = None
    spot_bid_max_price: float | None = None


@dataclass(frozen=True, slots=True)
class GcpAttributes:
    google_service_account: str | None = None
    availability: Literal["PREEMPTIBLE_GCP", "ON_DEMAND_GCP", "PREEMPTIBLE_WITH_FALLBACK_GCP"] | None = None
    boot_disk_size: int | None = None


type CloudAttributes = AwsAttributes | AzureAttributes | GcpAttributes

_CLOUD_KEYS: dict[str, type[CloudAttributes]] = {
    "aws_attributes": AwsAttributes,
    "azure_attributes": AzureAttributes,
    "gcp_attributes": GcpAttributes,
}


def _cloud_key(cloud: CloudAttributes) -> str:
    match cloud:
        case AwsAttributes():
            return "aws_attributes"
        case AzureAttributes():
            return "azure_attributes"
        case GcpAttributes():
            return "gcp_attributes"


def _attributes_to_json(cloud: CloudAttributes) -> dict[str, Any]:
    return {
        f.name: getattr(cloud, f.name)
        for f in fields(cloud)
        if getattr(cloud, f.name) is not None
    }


def _attributes_from_json(cls: type[CloudAttributes], raw: Mapping[str, Any]) -> CloudAttributes:
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in raw.items() if k in known})


def _frozen(mapping: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class ClusterSpec:
    """Declared cluster shape plus the libraries it should carry.

    Exactly one of ``num_workers`` and ``autoscale`` must be set. The
    node type may be omitted when the cluster draws from an instance pool.

    Example:
        >>> spec = ClusterSpec(
        ...     spark_version="7.1-scala12",
        ...     node_type_id="i3.xlarge",
        ...     num_workers=100,
        ...     autotermination_minutes=15,
        ...     libraries=(Jar("dbfs://foo.jar"),),
        ... )
    """

    spark_version: str
    cluster_name: str | None = None
    node_type_id: str | None = None
    driver_node_type_id: str | None = None
    num_workers: int | None = None
    autoscale: AutoScale | None = None
    autotermination_minutes: int = 60
    spark_conf: Mapping[str, str] = field(default_factory=dict)
    spark_env_vars: Mapping[str, str] = field(default_factory=dict)
    custom_tags: Mapping[str, str] = field(default_factory=dict)
    cloud: CloudAttributes | None = None
    instance_pool_id: str | None = None
    enable_elastic_disk: bool | None = None
    libraries: tuple[Library, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "spark_conf", _frozen(self.spark_conf))
        object.__setattr__(self, "spark_env_vars", _frozen(self.spark_env_vars))
        object.__setattr__(self, "custom_tags", _frozen(self.custom_tags))
        object.__setattr__(self, "libraries", tuple(self.libraries))

    def validate(self) -> ClusterSpec:
        if not self.spark_version:
            raise ValidationError("spark_version is required")
        if not self.node_type_id and not self.instance_pool_id:
            raise ValidationError("node_type_id is required unless instance_pool_id is set")

        match (self.num_workers, self.autoscale):
            case (None, None):
                raise ValidationError("One of num_workers or autoscale must be set")
            case (int(), AutoScale()):
                raise ValidationError("num_workers and autoscale are mutually exclusive")
            case (int() as n, None) if n < 0:
                raise ValidationError(f"num_workers must be >= 0, got {n}")
            case (None, AutoScale(min_workers=lo, max_workers=hi)) if lo < 0 or hi < 1 or lo > hi:
                raise ValidationError(
                    f"autoscale requires 0 <= min_workers <= max_workers and max_workers >= 1, "
                    f"got min={lo} max={hi}"
                )
            case _:
                pass

        if self.autotermination_minutes < 0:
            raise ValidationError("autotermination_minutes must be >= 0")
        if self.cloud is not None and not isinstance(self.cloud, AwsAttributes | AzureAttributes | GcpAttributes):
            raise ValidationError(f"Unsupported cloud attributes: {self.cloud!r}")
        for lib in self.libraries:
            if not isinstance(lib, PyPi | Jar | Egg | Whl | Maven | Cran):
                raise ValidationError(f"Unsupported library: {lib!r}")
        return self

    @property
    def sizing(self) -> tuple[str, int | AutoScale | None]:
        if self.autoscale is not None:
            return ("autoscale", self.autoscale)
        return ("fixed", self.num_workers)

    def to_request(self, cluster_id: str | None = None) -> dict[str, Any]:
        """Render the create/edit body. Libraries are not part of it."""
        body: dict[str, Any] = {}
        if cluster_id:
            body["cluster_id"] = cluster_id
        if self.cluster_name:
            body["cluster_name"] = self.cluster_name
        body["spark_version"] = self.spark_version
        if self.node_type_id:
            body["node_type_id"] = self.node_type_id
        if self.driver_node_type_id:
            body["driver_node_type_id"] = self.driver_node_type_id
        match self.sizing:
            case ("autoscale", AutoScale(min_workers=lo, max_workers=hi)):
                body["autoscale"] = {"min_workers": lo, "max_workers": hi}
            case (_, n):
                body["num_workers"] = n
        body["autotermination_minutes"] = self.autotermination_minutes
        if self.spark_conf:
            body["spark_conf"] = dict(self.spark_conf)
        if self.spark_env_vars:
            body["spark_env_vars"] = dict(self.spark_env_vars)
        if self.custom_tags:
            body["custom_tags"] = dict(self.custom_tags)
        if self.cloud is not None:
            body[_cloud_key(self.cloud)] = _attributes_to_json(self.cloud)
        if self.instance_pool_id:
            body["instance_pool_id"] = self.instance_pool_id
        if self.enable_elastic_disk is not None:
            body["enable_elastic_disk"] = self.enable_elastic_disk
        return body

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> ClusterSpec:
        """Build an unvalidated spec from an observed cluster document."""
        autoscale = raw.get("autoscale")
        cloud: CloudAttributes | None = None
        for key, attr_cls in _CLOUD_KEYS.items():
            if raw.get(key):
                cloud = _attributes_from_json(attr_cls, raw[key])
                break
        return cls(
            spark_version=raw.get("spark_version", ""),
            cluster_name=raw.get("cluster_name"),
            node_type_id=raw.get("node_type_id"),
            driver_node_type_id=raw.get("driver_node_type_id"),
            num_workers=None if autoscale else raw.get("num_workers", 0),
            autoscale=AutoScale(
                min_workers=autoscale.get("min_workers", 0),
                max_workers=autoscale.get("max_workers", 0),
            ) if autoscale else None,
            autotermination_minutes=raw.get("autotermination_minutes", 0),
            spark_conf=raw.get("spark_conf") or {},
            spark_env_vars=raw.get("spark_env_vars") or {},
            custom_tags=raw.get("custom_tags") or {},
            cloud=cloud,
            instance_pool_id=raw.get("instance_pool_id"),
            enable_elastic_disk=raw.get("enable_elastic_disk"),
        )

    def shape_changes(self, observed: ClusterSpec) -> list[str]:
        """Names of shape fields where ``observed`` differs from this spec.

        Fields this spec leaves unset (None or an empty mapping) are not
        compared, and cloud attributes only compare the keys this spec
        sets, since the control plane fills in its own defaults.
        """
        changes: list[str] = []
        if self.sizing != observed.sizing:
            changes.append("sizing")

        for name in (
            "cluster_name",
            "spark_version",
            "node_type_id",
            "driver_node_type_id",
            "instance_pool_id",
            "enable_elastic_disk",
        ):
            desired = getattr(self, name)
            if desired is not None and desired != getattr(observed, name):
                changes.append(name)

        if self.autotermination_minutes != observed.autotermination_minutes:
            changes.append("autotermination_minutes")

        for name in ("spark_conf", "spark_env_vars", "custom_tags"):
            desired = dict(getattr(self, name))
            if desired and desired != dict(getattr(observed, name)):
                changes.append(name)

        if self.cloud is not None:
            wanted = _attributes_to_json(self.cloud)
            have = (
                _attributes_to_json(observed.cloud)
                if type(observed.cloud) is type(self.cloud)
                else {}
            )
            if any(have.get(k) != v for k, v in wanted.items()):
                changes.append(_cloud_key(self.cloud))

        return sorted(changes)
