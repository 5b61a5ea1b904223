"""
Configuration Validator — Check settings before a sync or monitor run.

## Usage

    from src.config.validator import validate_settings, has_errors

    issues = validate_settings(settings, command="sync")
    for issue in issues:
        print(f"{issue.level}: {issue.message}")
    if has_errors(issues):
        raise SystemExit(1)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .settings import ENV_VARS, SyncSettings

logger = logging.getLogger(__name__)

LEVEL_ERROR = "error"
LEVEL_WARNING = "warning"


@dataclass
class ConfigIssue:
    """A single problem found in the configuration."""

    field: str
    level: str
    message: str
    guidance: Optional[str] = None

    @property
    def env_var(self) -> Optional[str]:
        return ENV_VARS.get(self.field)

    def to_dict(self) -> Dict:
        return {
            "field": self.field,
            "env_var": self.env_var,
            "level": self.level,
            "message": self.message,
            "guidance": self.guidance,
        }


# Credentials each command needs
COMMAND_REQUIREMENTS = {
    "sync": {
        "docker_user": "Docker Hub account that receives the mirrored images",
        "docker_password": "Docker Hub password or access token",
        "github_token": "Create a personal access token at https://github.com/settings/tokens",
        "github_repo": "owner/repo that holds the CHANGELOG files",
    },
    "monitor": {
        "docker_user": "Docker Hub account to compare against",
    },
}


def validate_settings(settings: SyncSettings, command: str = "sync") -> List[ConfigIssue]:
    """Return every issue found; an empty list means the settings are usable."""
    issues: List[ConfigIssue] = []

    for name, guidance in COMMAND_REQUIREMENTS.get(command, {}).items():
        if not getattr(settings, name):
            issues.append(ConfigIssue(
                field=name,
                level=LEVEL_ERROR,
                message=f"{ENV_VARS[name]} is not set",
                guidance=guidance,
            ))

    if not settings.namespace:
        issues.append(ConfigIssue("namespace", LEVEL_ERROR, "GCR namespace is empty"))

    for name in ("process_limit", "query_limit", "intake_capacity"):
        if getattr(settings, name) < 1:
            issues.append(ConfigIssue(name, LEVEL_ERROR, f"{name} must be at least 1"))

    if settings.sync_timeout < 0:
        issues.append(ConfigIssue(
            "sync_timeout", LEVEL_ERROR, "sync_timeout must be >= 0 (0 = unbounded)"
        ))
    if settings.http_timeout <= 0:
        issues.append(ConfigIssue("http_timeout", LEVEL_ERROR, "http_timeout must be > 0"))
    if settings.monitor_interval <= 0:
        issues.append(ConfigIssue(
            "monitor_interval", LEVEL_ERROR, "monitor_interval must be > 0"
        ))
    if settings.monitor_count < -1:
        issues.append(ConfigIssue(
            "monitor_count", LEVEL_ERROR, "monitor_count must be -1 (forever) or >= 0"
        ))

    if settings.intake_capacity < settings.process_limit:
        issues.append(ConfigIssue(
            "intake_capacity",
            LEVEL_WARNING,
            "intake_capacity is below process_limit; workers may stall handing off results",
        ))

    return issues


def has_errors(issues: List[ConfigIssue]) -> bool:
    return any(i.level == LEVEL_ERROR for i in issues)


def log_issues(issues: List[ConfigIssue]) -> None:
    """Log issues at a level matching their severity."""
    for issue in issues:
        if issue.level == LEVEL_ERROR:
            logger.error(f"✗ {issue.field}: {issue.message}")
        else:
            logger.warning(f"⚠ {issue.field}: {issue.message}")
