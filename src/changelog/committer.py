"""
Changelog Committer — Append a run's mirrored images to the dated changelog
and push it.

Each day gets its own file, `CHANGELOG-YYYY-MM-DD.md`. Every committed
batch adds one section:

    ## 08:15:02 UTC

    - `gcr.io/google_containers/pause:3.1` → `gcrxio/google_containers_pause:3.1`

The clone is prepared lazily on the first commit, so runs with nothing to
mirror never touch git.

If add, commit or push fails, the file and the clone are reset to their
state before the batch, so the images are not recorded for that run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from ..engine.errors import CommitError
from ..registry.base import ChangelogCommitter
from ..registry.dockerhub import target_repository
from ..registry.gcr import source_reference
from .git_repo import GitRepo

logger = logging.getLogger(__name__)

CHANGELOG_TPL = "CHANGELOG-{date}.md"


class GitChangelogCommitter(ChangelogCommitter):
    """Writes, commits and pushes the changelog for one batch."""

    def __init__(
        self,
        repo: GitRepo,
        namespace: str,
        user: str,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repo = repo
        self.namespace = namespace
        self.user = user
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._prepared = False

    def changelog_path(self, now: datetime) -> Path:
        return self.repo.path / CHANGELOG_TPL.format(date=now.strftime("%Y-%m-%d"))

    def commit(self, batch: List[str]) -> None:
        if not batch:
            return

        if not self._prepared:
            self.repo.ensure_clone()
            self._prepared = True

        now = self._clock()
        path = self.changelog_path(now)
        previous = path.read_text(encoding="utf-8") if path.exists() else None
        base = self.repo.head()
        self._append(path, now, batch)

        try:
            self.repo.add(path.name)
            self.repo.commit(f"Sync {len(batch)} image(s) from gcr.io/{self.namespace}")
            self.repo.push()
        except Exception:
            self._rollback(path, previous, base)
            raise
        logger.info(f"[changelog] Pushed {path.name} ({len(batch)} image(s)) at {self.repo.head()}")

    def render(self, now: datetime, batch: List[str]) -> str:
        lines = [f"## {now.strftime('%H:%M:%S')} UTC", ""]
        for image in batch:
            name = source_reference(self.namespace, image)
            mirror = target_repository(self.user, self.namespace, image)
            lines.append(f"- `{name}` → `{mirror}`")
        lines.append("")
        return "\n".join(lines) + "\n"

    def _rollback(self, path: Path, previous: Optional[str], base: Optional[str]) -> None:
        """Put the clone back to where it was before this batch."""
        logger.warning(f"[changelog] Rolling back {path.name} after a failed commit")
        try:
            self.repo.reset(base)
        except CommitError as e:
            logger.error(f"[changelog] Could not reset the changelog clone: {e}")
        if previous is None:
            path.unlink(missing_ok=True)
        else:
            path.write_text(previous, encoding="utf-8")

    def _append(self, path: Path, now: datetime, batch: List[str]) -> None:
        is_new = not path.exists()
        with open(path, "a", encoding="utf-8") as f:
            if is_new:
                f.write(f"# Mirrored images, {now.strftime('%Y-%m-%d')}\n\n")
            f.write(self.render(now, batch))
