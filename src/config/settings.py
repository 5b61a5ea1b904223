"""
Sync Settings — Process-wide configuration, fixed at startup.

Values are resolved in this order (later wins):

1. Built-in defaults
2. Optional YAML file (`--config gcrsync.yaml`)
3. Environment variables (a project `.env` is loaded by the CLI)
4. Explicit overrides (CLI options)

## Environment Variables

    GCR_NAMESPACE=google_containers
    DOCKER_USER=gcrxio
    DOCKER_PASSWORD=...
    GITHUB_TOKEN=ghp_xxx
    GITHUB_REPO=gcrxio/gcr.io
    SYNC_PROXY=http://127.0.0.1:8123
    HTTP_TIMEOUT=10
    SYNC_TIMEOUT=0            # seconds, 0 = unbounded
    PROCESS_LIMIT=20
    QUERY_LIMIT=50
    INTAKE_CAPACITY=20
    MONITOR_INTERVAL=5
    MONITOR_COUNT=-1          # -1 = forever
    CHANGELOG_REPO_DIR=changelog-repo
    DEBUG=false
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, get_type_hints

import yaml

logger = logging.getLogger(__name__)

# field name -> environment variable
ENV_VARS: Dict[str, str] = {
    "namespace": "GCR_NAMESPACE",
    "docker_user": "DOCKER_USER",
    "docker_password": "DOCKER_PASSWORD",
    "github_token": "GITHUB_TOKEN",
    "github_repo": "GITHUB_REPO",
    "proxy": "SYNC_PROXY",
    "http_timeout": "HTTP_TIMEOUT",
    "sync_timeout": "SYNC_TIMEOUT",
    "process_limit": "PROCESS_LIMIT",
    "query_limit": "QUERY_LIMIT",
    "intake_capacity": "INTAKE_CAPACITY",
    "monitor_interval": "MONITOR_INTERVAL",
    "monitor_count": "MONITOR_COUNT",
    "repo_dir": "CHANGELOG_REPO_DIR",
    "debug": "DEBUG",
}

_TRUE = ("true", "1", "yes", "on")


@dataclass(frozen=True)
class SyncSettings:
    """Immutable configuration for sync and monitor runs."""

    namespace: str = "google_containers"
    docker_user: str = ""
    docker_password: str = ""
    github_token: str = ""
    github_repo: str = ""
    proxy: str = ""
    http_timeout: float = 10.0
    sync_timeout: float = 0.0
    process_limit: int = 20
    query_limit: int = 50
    intake_capacity: int = 20
    monitor_interval: float = 5.0
    monitor_count: int = -1
    repo_dir: str = "changelog-repo"
    debug: bool = False

    @classmethod
    def load(
        cls,
        config_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "SyncSettings":
        """Resolve settings from file, environment and overrides."""
        settings = cls()
        if config_file is not None:
            settings = settings.merge(_read_yaml(config_file))
        settings = settings.merge(_from_environ(os.environ if environ is None else environ))
        return settings.merge({k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SyncSettings":
        return cls.load(environ=environ)

    def merge(self, values: Mapping[str, Any]) -> "SyncSettings":
        """Return a copy with `values` coerced to each field's type."""
        known = get_type_hints(type(self))
        updates: Dict[str, Any] = {}
        for key, raw in values.items():
            if key not in known:
                logger.warning(f"Ignoring unknown setting: {key}")
                continue
            updates[key] = _coerce(key, raw, known[key])
        return replace(self, **updates)

    @property
    def commit_url(self) -> Optional[str]:
        """Authenticated clone/push URL for the changelog repository."""
        if not self.github_token or not self.github_repo:
            return None
        return f"https://{self.github_token}@github.com/{self.github_repo}.git"

    def redacted(self) -> Dict[str, Any]:
        """Settings as a dict with secrets masked, for logs and `check-config`."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        for secret in ("docker_password", "github_token"):
            if data[secret]:
                data[secret] = "***"
        return data


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    logger.debug(f"Loaded settings file {path}")
    return data


def _from_environ(environ: Mapping[str, str]) -> Dict[str, str]:
    return {
        name: environ[var]
        for name, var in ENV_VARS.items()
        if environ.get(var, "") != ""
    }


def _coerce(key: str, raw: Any, target: type) -> Any:
    if target is bool:
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in _TRUE
    if target is int and isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError(f"Invalid value for {key}: {raw!r} (expected a whole number)")
        return int(raw)
    try:
        return target(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {key}: {raw!r}") from e
