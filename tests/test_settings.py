"""
Tests for SyncSettings resolution and the configuration validator.
"""

import pytest

from src.config.settings import SyncSettings
from src.config.validator import has_errors, validate_settings


class TestSyncSettings:
    """Defaults, YAML file, environment, overrides."""

    def test_defaults(self):
        settings = SyncSettings.load(environ={})

        assert settings.namespace == "google_containers"
        assert settings.process_limit == 20
        assert settings.query_limit == 50
        assert settings.sync_timeout == 0.0
        assert settings.monitor_count == -1
        assert settings.commit_url is None

    def test_from_env(self):
        settings = SyncSettings.from_env({
            "GCR_NAMESPACE": "kubernetes-helm",
            "DOCKER_USER": "mirror",
            "PROCESS_LIMIT": "5",
            "SYNC_TIMEOUT": "600",
            "DEBUG": "yes",
        })

        assert settings.namespace == "kubernetes-helm"
        assert settings.docker_user == "mirror"
        assert settings.process_limit == 5
        assert settings.sync_timeout == 600.0
        assert settings.debug is True

    def test_empty_env_values_ignored(self):
        settings = SyncSettings.from_env({"GCR_NAMESPACE": "", "PROCESS_LIMIT": ""})

        assert settings.namespace == "google_containers"
        assert settings.process_limit == 20

    def test_yaml_then_env_then_overrides(self, tmp_path):
        config = tmp_path / "gcrsync.yaml"
        config.write_text("namespace: from-file\nprocess_limit: 4\nquery_limit: 7\n")

        settings = SyncSettings.load(
            config_file=config,
            environ={"PROCESS_LIMIT": "8"},
            query_limit=9,
            namespace=None,
        )

        assert settings.namespace == "from-file"
        assert settings.process_limit == 8
        assert settings.query_limit == 9

    def test_yaml_must_be_mapping(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            SyncSettings.load(config_file=config, environ={})

    def test_invalid_number(self):
        with pytest.raises(ValueError, match="process_limit"):
            SyncSettings.from_env({"PROCESS_LIMIT": "many"})

    def test_fractional_timeout_over_integer_value(self):
        """Coercion follows the declared field type, not the current value."""
        settings = SyncSettings(sync_timeout=0).merge({"sync_timeout": 0.1})

        assert settings.sync_timeout == 0.1
        assert isinstance(settings.sync_timeout, float)

    def test_fractional_timeout_from_yaml(self, tmp_path):
        config = tmp_path / "gcrsync.yaml"
        config.write_text("sync_timeout: 0.5\nmonitor_interval: 2\n")

        settings = SyncSettings.load(config_file=config, environ={})

        assert settings.sync_timeout == 0.5
        assert settings.monitor_interval == 2.0

    def test_non_integral_limit_rejected(self):
        with pytest.raises(ValueError, match="process_limit"):
            SyncSettings().merge({"process_limit": 2.7})

    def test_integral_float_limit_accepted(self):
        settings = SyncSettings().merge({"process_limit": 3.0})

        assert settings.process_limit == 3
        assert isinstance(settings.process_limit, int)

    def test_unknown_key_ignored(self):
        settings = SyncSettings().merge({"no_such_setting": 1, "process_limit": "3"})

        assert settings.process_limit == 3
        assert not hasattr(settings, "no_such_setting")

    def test_commit_url(self):
        settings = SyncSettings(github_token="ghp_abc", github_repo="gcrxio/gcr.io")

        assert settings.commit_url == "https://ghp_abc@github.com/gcrxio/gcr.io.git"

    def test_redacted_masks_secrets(self):
        settings = SyncSettings(docker_password="hunter2", github_token="ghp_abc")

        data = settings.redacted()

        assert data["docker_password"] == "***"
        assert data["github_token"] == "***"
        assert "hunter2" not in str(data)

    def test_frozen(self):
        settings = SyncSettings()
        with pytest.raises(Exception):
            settings.process_limit = 1


class TestValidateSettings:
    """Per-command requirement checks."""

    def test_complete_settings_pass(self, settings):
        assert validate_settings(settings, command="sync") == []

    def test_missing_credentials_for_sync(self):
        issues = validate_settings(SyncSettings(), command="sync")

        fields = {i.field for i in issues if i.level == "error"}
        assert fields == {"docker_user", "docker_password", "github_token", "github_repo"}
        assert has_errors(issues)

    def test_monitor_needs_only_docker_user(self):
        issues = validate_settings(SyncSettings(docker_user="mirror"), command="monitor")

        assert not has_errors(issues)

    def test_error_names_env_var(self):
        issues = validate_settings(SyncSettings(), command="monitor")

        assert issues[0].env_var == "DOCKER_USER"
        assert issues[0].to_dict()["message"] == "DOCKER_USER is not set"

    def test_limits_must_be_positive(self, settings):
        bad = settings.merge({"process_limit": 0, "query_limit": -1})

        fields = {i.field for i in validate_settings(bad) if i.level == "error"}
        assert {"process_limit", "query_limit"} <= fields

    def test_negative_timeout_rejected(self, settings):
        issues = validate_settings(settings.merge({"sync_timeout": -5}))

        assert [i.field for i in issues if i.level == "error"] == ["sync_timeout"]

    def test_monitor_count_below_minus_one(self, settings):
        issues = validate_settings(settings.merge({"monitor_count": -2}), command="monitor")

        assert has_errors(issues)

    def test_small_intake_is_a_warning(self, settings):
        issues = validate_settings(settings.merge({"process_limit": 30, "intake_capacity": 5}))

        assert not has_errors(issues)
        assert issues[0].field == "intake_capacity"
        assert issues[0].level == "warning"
