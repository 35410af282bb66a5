"""Installable library artifacts and their observed install status.

The control plane encodes a library as an object with exactly one of
``pypi``, ``jar``, ``egg``, ``whl``, ``maven`` or ``cran`` populated.
Here it is a closed union of frozen dataclasses; two libraries are the
same iff they are the same variant with equal fields.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from clustersync.core.exceptions import ValidationError


@dataclass(frozen=True, slots=True)
class PyPi:
    """Package-manager reference, e.g. ``PyPi("seaborn==1.2.4")``."""

    package: str
    repo: str | None = None


@dataclass(frozen=True, slots=True)
class Jar:
    path: str


@dataclass(frozen=True, slots=True)
class Egg:
    path: str


@dataclass(frozen=True, slots=True)
class Whl:
    path: str


@dataclass(frozen=True, slots=True)
class Maven:
    coordinates: str
    repo: str | None = None
    exclusions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Cran:
    package: str
    repo: str | None = None


type Library = PyPi | Jar | Egg | Whl | Maven | Cran

_KINDS = ("pypi", "jar", "egg", "whl", "maven", "cran")


def _drop_none(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v not in (None, (), [])}


def library_to_json(lib: Library) -> dict[str, Any]:
    match lib:
        case PyPi(package=package, repo=repo):
            return {"pypi": _drop_none({"package": package, "repo": repo})}
        case Jar(path=path):
            return {"jar": path}
        case Egg(path=path):
            return {"egg": path}
        case Whl(path=path):
            return {"whl": path}
        case Maven(coordinates=coordinates, repo=repo, exclusions=exclusions):
            return {"maven": _drop_none({
                "coordinates": coordinates,
                "repo": repo,
                "exclusions": list(exclusions),
            })}
        case Cran(package=package, repo=repo):
            return {"cran": _drop_none({"package": package, "repo": repo})}
        case _:
            raise ValidationError(f"Unsupported library: {lib!r}")


def library_from_json(raw: Mapping[str, Any]) -> Library:
    """Decode a wire library object, enforcing a single active variant."""
    present = [k for k in _KINDS if raw.get(k)]
    if len(present) != 1:
        raise ValidationError(
            f"Library must set exactly one of {', '.join(_KINDS)}; got {present or 'none'}"
        )

    kind = present[0]
    value = raw[kind]
    match kind:
        case "jar":
            return Jar(value)
        case "egg":
            return Egg(value)
        case "whl":
            return Whl(value)
        case "pypi":
            return PyPi(package=value["package"], repo=value.get("repo"))
        case "maven":
            return Maven(
                coordinates=value["coordinates"],
                repo=value.get("repo"),
                exclusions=tuple(value.get("exclusions") or ()),
            )
        case _:
            return Cran(package=value["package"], repo=value.get("repo"))


class InstallStatus(Enum):
    PENDING = "PENDING"
    INSTALLING = "INSTALLING"
    INSTALLED = "INSTALLED"
    FAILED = "FAILED"
    UNINSTALL_ON_RESTART = "UNINSTALL_ON_RESTART"

    @classmethod
    def parse(cls, raw: str | None) -> InstallStatus:
        match (raw or "").upper():
            case "RESOLVING":
                return cls.INSTALLING
            case "SKIPPED":
                return cls.FAILED
            case value if value in cls.__members__:
                return cls[value]
            case _:
                return cls.PENDING

    @property
    def settled(self) -> bool:
        """True once the control plane has stopped working on the library."""
        return self in (InstallStatus.INSTALLED, InstallStatus.FAILED, InstallStatus.UNINSTALL_ON_RESTART)


@dataclass(frozen=True, slots=True)
class LibraryStatus:
    library: Library
    status: InstallStatus
    messages: tuple[str, ...] = ()

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> LibraryStatus:
        return cls(
            library=library_from_json(raw.get("library") or {}),
            status=InstallStatus.parse(raw.get("status")),
            messages=tuple(raw.get("messages") or ()),
        )
