"""TOML-based workspace and reconciliation configuration.

Loads ~/.clustersync/defaults.toml (global) and clustersync.toml
(project), merges them, and fills missing workspace credentials from the
DATABRICKS_* environment variables. Credentials are resolved once into
an Auth object; the resulting client is passed to the engine explicitly.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any

from clustersync.core.exceptions import ConfigurationError
from clustersync.infra.http import Auth, BasicAuth, BearerAuth

if TYPE_CHECKING:
    from clustersync.client.rest import WorkspaceClient

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".clustersync" / "defaults.toml"
PROJECT_CONFIG_NAME = "clustersync.toml"

_ENV = {
    "host": "DATABRICKS_HOST",
    "token": "DATABRICKS_TOKEN",
    "username": "DATABRICKS_USERNAME",
    "password": "DATABRICKS_PASSWORD",
}


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_cfg = _read_toml((project_dir or Path.cwd()) / PROJECT_CONFIG_NAME)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("workspace", {})
    merged.setdefault("reconcile", {})
    return merged


def _normalize_host(host: str) -> str:
    if host and "://" not in host:
        return f"https://{host}"
    return host


@dataclass(frozen=True, slots=True)
class WorkspaceConfig:
    """Where the control plane lives and how to authenticate against it.

    Args:
        host: Workspace URL. A missing scheme defaults to https.
        token: Personal access token. Mutually exclusive with password.
        username: Basic-auth user.
        password: Basic-auth password.
        request_timeout: Per-request timeout in seconds.
    """

    host: str = ""
    token: str | None = None
    username: str | None = None
    password: str | None = None
    request_timeout: float = 60.0

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], env: Mapping[str, str] | None = None) -> WorkspaceConfig:
        env = os.environ if env is None else env
        known = {f.name for f in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise ConfigurationError(f"Unknown workspace settings: {', '.join(sorted(unknown))}")

        values = dict(raw)
        for key, var in _ENV.items():
            if not values.get(key) and env.get(var):
                values[key] = env[var]
        return cls(**values)

    def auth(self) -> Auth:
        """Resolve credentials. Token wins; token plus password is ambiguous."""
        if self.token and self.password:
            raise ConfigurationError("More than one authorization method configured: password and token")
        if self.token:
            if not self.host:
                raise ConfigurationError("Host is empty, but is required by token")
            return BearerAuth(self.token)
        if self.username and self.password:
            if not self.host:
                raise ConfigurationError("Host is empty, but is required by basic_auth")
            return BasicAuth(self.username, self.password)
        raise ConfigurationError(
            "Authentication is not configured for provider. "
            "Set token, or username and password, or the DATABRICKS_* environment variables."
        )

    @property
    def url(self) -> str:
        return _normalize_host(self.host)


@dataclass(frozen=True, slots=True)
class ReconcileSettings:
    """Polling and retry budgets for one reconciliation cycle.

    Args:
        poll_timeout: Deadline for each wait, in seconds.
        poll_interval: Initial pause between status checks, in seconds.
        poll_backoff: Multiplier applied to the pause after each check.
        max_poll_interval: Upper bound for the pause.
        library_attempts: Install submissions allowed per library.
        transport_retries: Attempts per status check on transport errors.
    """

    poll_timeout: float = 1200.0
    poll_interval: float = 10.0
    poll_backoff: float = 1.0
    max_poll_interval: float = 60.0
    library_attempts: int = 3
    transport_retries: int = 3

    def __post_init__(self) -> None:
        if self.poll_timeout <= 0:
            raise ConfigurationError("poll_timeout must be positive")
        if self.poll_interval < 0:
            raise ConfigurationError("poll_interval must be >= 0")
        if self.poll_backoff < 1:
            raise ConfigurationError("poll_backoff must be >= 1")
        if self.library_attempts < 1:
            raise ConfigurationError("library_attempts must be >= 1")
        if self.transport_retries < 1:
            raise ConfigurationError("transport_retries must be >= 1")

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> ReconcileSettings:
        known = {f.name for f in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise ConfigurationError(f"Unknown reconcile settings: {', '.join(sorted(unknown))}")
        return cls(**raw)


def load_settings(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[WorkspaceConfig, ReconcileSettings]:
    config = load_config(project_dir=project_dir, global_path=global_path)
    return (
        WorkspaceConfig.from_raw(config["workspace"], env=env),
        ReconcileSettings.from_raw(config["reconcile"]),
    )


def connect(config: WorkspaceConfig) -> WorkspaceClient:
    """Build the shared control-plane client. Resolve once, then reuse it."""
    from clustersync.client.rest import WorkspaceClient

    return WorkspaceClient(config.url, config.auth(), timeout=config.request_timeout)
