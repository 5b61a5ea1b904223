"""
Tests for the CLI — check-config, sync and monitor.

Uses Click's CliRunner; the orchestrator and monitor are patched so no
registry, daemon or git remote is touched.
"""

from __future__ import annotations

import json
from unittest import mock

import pytest
from click.testing import CliRunner

from src.config.settings import ENV_VARS
from src.engine.errors import CommitError, ListingError
from src.main import cli
from src.models.image import SyncReport

FULL_ENV = {
    "DOCKER_USER": "gcrxio",
    "DOCKER_PASSWORD": "hunter2",
    "GITHUB_TOKEN": "ghp_secret",
    "GITHUB_REPO": "gcrxio/gcr.io",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from an empty configuration environment."""
    for var in ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def runner():
    return CliRunner()


def _report(**kwargs):
    values = dict(run_id="S-deadbeef", source_total=3, target_total=1, planned=2)
    values.update(kwargs)
    return SyncReport(**values)


class TestCheckConfig:
    def test_missing_credentials(self, runner):
        result = runner.invoke(cli, ["check-config"])

        assert result.exit_code == 1
        assert "DOCKER_USER is not set" in result.output

    def test_ready(self, runner):
        result = runner.invoke(cli, ["check-config"], env=FULL_ENV)

        assert result.exit_code == 0
        assert "Ready to sync" in result.output
        assert "hunter2" not in result.output
        assert "ghp_secret" not in result.output

    def test_json(self, runner):
        result = runner.invoke(
            cli, ["check-config", "--command", "monitor", "--json"], env={"DOCKER_USER": "gcrxio"}
        )

        data = json.loads(result.output)
        assert result.exit_code == 0
        assert data["ok"] is True
        assert data["settings"]["docker_user"] == "gcrxio"

    def test_config_file(self, runner, tmp_path):
        config = tmp_path / "gcrsync.yaml"
        config.write_text("docker_user: from-file\n")

        result = runner.invoke(
            cli, ["--config", str(config), "check-config", "--command", "monitor", "--json"]
        )

        assert json.loads(result.output)["settings"]["docker_user"] == "from-file"

    def test_bad_config_value(self, runner):
        result = runner.invoke(cli, ["check-config"], env={"PROCESS_LIMIT": "lots"})

        assert result.exit_code != 0
        assert "PROCESS_LIMIT" in result.output or "process_limit" in result.output


class TestSyncCommand:
    def test_refuses_without_credentials(self, runner):
        with mock.patch("src.engine.sync.SyncOrchestrator.run") as run:
            result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 1
        run.assert_not_called()

    def test_summary(self, runner):
        report = _report(transferred=2, batch=["a:1", "c:1"], committed=True)

        with mock.patch("src.engine.sync.SyncOrchestrator.run", return_value=report):
            result = runner.invoke(cli, ["sync"], env=FULL_ENV)

        assert result.exit_code == 0
        assert "S-deadbeef" in result.output
        assert "Changelog committed (2 image(s))" in result.output

    def test_json_report(self, runner):
        report = _report(transferred=2, batch=["a:1", "c:1"], committed=True)

        with mock.patch("src.engine.sync.SyncOrchestrator.run", return_value=report):
            result = runner.invoke(cli, ["sync", "--json"], env=FULL_ENV)

        data = json.loads(result.output)
        assert data["planned"] == 2
        assert data["batch"] == ["a:1", "c:1"]

    def test_options_override_settings(self, runner):
        captured = {}

        def fake_init(self, **kwargs):
            captured.update(kwargs)

        with mock.patch("src.engine.sync.SyncOrchestrator.__init__", fake_init), \
                mock.patch("src.engine.sync.SyncOrchestrator.run", return_value=_report()):
            result = runner.invoke(
                cli,
                ["sync", "--process-limit", "3", "--sync-timeout", "900", "--drop-late"],
                env=FULL_ENV,
            )

        assert result.exit_code == 0
        assert captured["settings"].process_limit == 3
        assert captured["settings"].sync_timeout == 900.0
        assert captured["accept_late"] is False

    def test_listing_failure_exits_nonzero(self, runner):
        error = ListingError("gcr", "connection refused")

        with mock.patch("src.engine.sync.SyncOrchestrator.run", side_effect=error):
            result = runner.invoke(cli, ["sync"], env=FULL_ENV)

        assert result.exit_code == 1
        assert "Listing failed" in result.output

    def test_commit_failure_prints_report(self, runner):
        error = CommitError("git push failed: rejected", report=_report(transferred=2))

        with mock.patch("src.engine.sync.SyncOrchestrator.run", side_effect=error):
            result = runner.invoke(cli, ["sync", "--json"], env=FULL_ENV)

        assert result.exit_code == 1
        assert '"transferred": 2' in result.output


class TestMonitorCommand:
    def test_runs_configured_iterations(self, runner):
        with mock.patch("src.engine.monitor.PeriodicMonitor.run", return_value=[]) as run:
            result = runner.invoke(
                cli, ["monitor", "--count", "2", "--interval", "1"], env={"DOCKER_USER": "gcrxio"}
            )

        assert result.exit_code == 0
        run.assert_called_once()

    def test_needs_docker_user(self, runner):
        result = runner.invoke(cli, ["monitor", "--count", "1"])

        assert result.exit_code == 1
