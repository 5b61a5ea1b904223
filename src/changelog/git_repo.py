"""
Git Repo — Thin subprocess wrapper around the changelog working copy.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional

from ..engine.errors import CommitError

logger = logging.getLogger(__name__)

COMMIT_AUTHOR_NAME = "gcrsync"
COMMIT_AUTHOR_EMAIL = "gcrsync@users.noreply.github.com"


def _git(repo: Path, *args: str, timeout: int = 30) -> subprocess.CompletedProcess:
    """Run a git command in the repo directory."""
    cmd = ["git"] + list(args)
    return subprocess.run(
        cmd,
        cwd=str(repo),
        capture_output=True,
        text=True,
        timeout=timeout,
    )


class GitRepo:
    """Local clone of the changelog repository."""

    def __init__(self, path: Path, remote_url: str, secret: Optional[str] = None):
        self.path = Path(path)
        self.remote_url = remote_url
        # Masked out of every error message (the remote URL embeds it)
        self.secret = secret

    @property
    def is_cloned(self) -> bool:
        return (self.path / ".git").exists()

    def ensure_clone(self) -> None:
        """Clone the repository, or fast-forward an existing clone."""
        if self.is_cloned:
            logger.info(f"[changelog] Updating existing clone at {self.path}")
            self._run("pull", "--ff-only", timeout=120)
            return

        logger.info(f"[changelog] Cloning changelog repo into {self.path}")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            result = _git(self.path.parent, "clone", self.remote_url, self.path.name, timeout=300)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CommitError(f"git clone could not run: {self._redact(str(e))}") from e
        if result.returncode != 0:
            raise CommitError(f"git clone failed: {self._redact(result.stderr.strip())}")

    def add(self, *paths: str) -> None:
        self._run("add", *paths)

    def commit(self, message: str) -> None:
        self._run(
            "-c", f"user.name={COMMIT_AUTHOR_NAME}",
            "-c", f"user.email={COMMIT_AUTHOR_EMAIL}",
            "commit", "-m", message,
        )

    def push(self) -> None:
        self._run("push", "origin", "HEAD", timeout=120)

    def reset(self, ref: Optional[str] = None) -> None:
        """Drop staged changes and local commits after `ref`; the working tree is kept."""
        args = ["reset", "--mixed"]
        if ref:
            args.append(ref)
        self._run(*args)

    def head(self) -> Optional[str]:
        result = _git(self.path, "rev-parse", "--short", "HEAD")
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def _run(self, *args: str, timeout: int = 30) -> subprocess.CompletedProcess:
        verb = next((a for a in args if not a.startswith("-") and "=" not in a), "command")
        try:
            result = _git(self.path, *args, timeout=timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CommitError(f"git {verb} could not run: {self._redact(str(e))}") from e
        if result.returncode != 0:
            error = result.stderr.strip() or result.stdout.strip() or "unknown error"
            raise CommitError(f"git {verb} failed: {self._redact(error)}")
        return result

    def _redact(self, text: str) -> str:
        if self.secret:
            return text.replace(self.secret, "***")
        return text
