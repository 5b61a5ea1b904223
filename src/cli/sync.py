"""
CLI sync commands — mirror missing images, or watch the backlog.

Usage:
    python -m src.main sync [--namespace NS] [--process-limit N] [--sync-timeout S] [--json]
    python -m src.main monitor [--count N] [--interval S]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click

from ..config.settings import SyncSettings
from ..config.validator import has_errors, log_issues, validate_settings
from ..engine.errors import CommitError, ListingError
from ..engine.tokens import AdmissionTokens
from ..registry.dockerhub import DockerHubLister
from ..registry.gcr import GcrLister
from ..registry.http import build_session


def build_listers(settings: SyncSettings) -> Tuple[GcrLister, DockerHubLister]:
    """Source and target listers sharing one session and one query limit."""
    session = build_session(
        timeout=settings.http_timeout,
        proxy=settings.proxy or None,
        pool_size=settings.query_limit,
    )
    query_tokens = AdmissionTokens(settings.query_limit)
    source = GcrLister(settings.namespace, session, query_tokens)
    target = DockerHubLister(settings.docker_user, settings.namespace, session, query_tokens)
    return source, target


def _apply_overrides(ctx: click.Context, **overrides: Any) -> SyncSettings:
    settings: SyncSettings = ctx.obj["settings"]
    values: Dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}
    return settings.merge(values) if values else settings


def _require_valid(settings: SyncSettings, command: str) -> None:
    issues = validate_settings(settings, command=command)
    log_issues(issues)
    if has_errors(issues):
        for issue in issues:
            if issue.level == "error":
                line = f"  ✗ {issue.message}"
                if issue.guidance:
                    line += f" ({issue.guidance})"
                click.secho(line, fg="red", err=True)
        raise SystemExit(1)


@click.command("sync")
@click.option("--namespace", default=None, help="gcr.io namespace to mirror")
@click.option("--process-limit", type=int, default=None, help="Concurrent transfers")
@click.option("--query-limit", type=int, default=None, help="Concurrent registry queries")
@click.option("--sync-timeout", type=float, default=None, help="Run budget in seconds (0 = unbounded)")
@click.option("--http-timeout", type=float, default=None, help="Per-request HTTP timeout in seconds")
@click.option("--proxy", default=None, help="HTTP(S) proxy for registry listing")
@click.option("--repo-dir", default=None, help="Local clone of the changelog repo")
@click.option("--drop-late", is_flag=True, help="Drop results that finish after the deadline")
@click.option("--json", "as_json", is_flag=True, help="Print the run report as JSON")
@click.option("--metrics", "show_metrics", is_flag=True, help="Print Prometheus metrics after the run")
@click.pass_context
def sync(
    ctx: click.Context,
    namespace: Optional[str],
    process_limit: Optional[int],
    query_limit: Optional[int],
    sync_timeout: Optional[float],
    http_timeout: Optional[float],
    proxy: Optional[str],
    repo_dir: Optional[str],
    drop_late: bool,
    as_json: bool,
    show_metrics: bool,
) -> None:
    """Mirror images missing from Docker Hub and commit a changelog."""
    from ..changelog.committer import GitChangelogCommitter
    from ..changelog.git_repo import GitRepo
    from ..engine.sync import SyncOrchestrator
    from ..registry.transfer import DockerTransfer

    settings = _apply_overrides(
        ctx,
        namespace=namespace,
        process_limit=process_limit,
        query_limit=query_limit,
        sync_timeout=sync_timeout,
        http_timeout=http_timeout,
        proxy=proxy,
        repo_dir=repo_dir,
    )
    _require_valid(settings, "sync")

    source, target = build_listers(settings)
    transfer = DockerTransfer(settings.namespace, settings.docker_user, settings.docker_password)
    committer = GitChangelogCommitter(
        GitRepo(Path(settings.repo_dir), settings.commit_url, secret=settings.github_token),
        namespace=settings.namespace,
        user=settings.docker_user,
    )
    orchestrator = SyncOrchestrator(
        source=source,
        target=target,
        transfer=transfer,
        committer=committer,
        settings=settings,
        accept_late=not drop_late,
    )

    try:
        report = orchestrator.run()
    except ListingError as e:
        click.secho(f"✗ Listing failed: {e}", fg="red", err=True)
        raise SystemExit(1)
    except CommitError as e:
        click.secho(f"✗ Changelog commit failed: {e}", fg="red", err=True)
        if e.report is not None and as_json:
            click.echo(json.dumps(e.report.model_dump(), indent=2))
        raise SystemExit(1)

    if show_metrics:
        from ..observability.metrics import metrics

        click.echo(metrics.export_prometheus(), err=True)

    if as_json:
        click.echo(json.dumps(report.model_dump(), indent=2))
        return

    click.echo("")
    click.echo(f"  Run ID:        {report.run_id}")
    click.echo(f"  gcr.io images: {report.source_total}")
    click.echo(f"  Docker Hub:    {report.target_total}")
    click.echo(f"  Planned:       {report.planned}")
    click.echo(f"  Mirrored:      {report.transferred}")
    click.echo(f"  Failed:        {report.failed}")
    click.echo(f"  Skipped:       {report.skipped}")
    if report.deadline_exceeded:
        click.secho("  ⏱ Deadline exceeded, remaining images wait for the next run", fg="yellow")
    if report.committed:
        click.secho(f"✓ Changelog committed ({len(report.batch)} image(s))", fg="green")
    else:
        click.secho("(Nothing to commit)", fg="cyan")


@click.command("monitor")
@click.option("--count", type=int, default=None, help="Iterations to run (-1 = forever)")
@click.option("--interval", type=float, default=None, help="Seconds between checks")
@click.option("--namespace", default=None, help="gcr.io namespace to watch")
@click.option("--stop-on-error", is_flag=True, help="Exit on the first listing failure")
@click.pass_context
def monitor(
    ctx: click.Context,
    count: Optional[int],
    interval: Optional[float],
    namespace: Optional[str],
    stop_on_error: bool,
) -> None:
    """Log how many images are waiting to be mirrored, on an interval."""
    from ..engine.monitor import PeriodicMonitor, mode_from_count

    settings = _apply_overrides(
        ctx, monitor_count=count, monitor_interval=interval, namespace=namespace
    )
    _require_valid(settings, "monitor")

    source, target = build_listers(settings)
    mon = PeriodicMonitor(
        source,
        target,
        interval=settings.monitor_interval,
        mode=mode_from_count(settings.monitor_count),
        stop_on_error=stop_on_error,
    )

    try:
        mon.run()
    except ListingError as e:
        click.secho(f"✗ Listing failed: {e}", fg="red", err=True)
        raise SystemExit(1)
    except KeyboardInterrupt:
        mon.stop()
        click.echo("Monitor stopped")
