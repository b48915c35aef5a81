"""Unit tests for calendar_widget.config_manager."""

import json
import os
import stat
from pathlib import Path

import pytest

from calendar_widget.config_manager import (
    ConfigManager,
    ConfigPaths,
    apply_overrides,
    parse_env_file,
)
from calendar_widget.exceptions import ConfigError
from calendar_widget.models import COMMON_TENANT, PUBLIC_CLIENT_ID, REDIRECT_URI, WidgetConfig

pytestmark = pytest.mark.unit


class TestConfigPaths:
    """Tests for path resolution."""

    def test_default_when_nothing_set_then_home_config_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        paths = ConfigPaths.default()
        assert paths.config_file == tmp_path / ".config" / "calendar-widget" / "config.json"
        assert paths.token_file == tmp_path / ".config" / "calendar-widget" / "token.json"

    def test_default_when_env_dir_then_used(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CALENDAR_WIDGET_CONFIG_DIR", str(tmp_path / "cw"))
        paths = ConfigPaths.default()
        assert paths.config_file == tmp_path / "cw" / "config.json"

    def test_default_when_explicit_file_then_token_beside_it(self, tmp_path):
        paths = ConfigPaths.default(tmp_path / "alt" / "widget.json")
        assert paths.config_file == tmp_path / "alt" / "widget.json"
        assert paths.token_file == tmp_path / "alt" / "token.json"


class TestParseEnvFile:
    """Tests for parse_env_file."""

    def test_parse_env_file_when_missing_then_empty(self, tmp_path):
        assert parse_env_file(tmp_path / ".env") == {}

    def test_parse_env_file_when_quoted_and_comments_then_parsed(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text(
            '# comment\n\nCALENDAR_WIDGET_TOKEN_COMMAND="az account get-access-token"\n'
            "CALENDAR_WIDGET_REFRESH_INTERVAL='120'\nnot a pair\n",
            encoding="utf-8",
        )
        assert parse_env_file(env) == {
            "CALENDAR_WIDGET_TOKEN_COMMAND": "az account get-access-token",
            "CALENDAR_WIDGET_REFRESH_INTERVAL": "120",
        }


class TestConfigManager:
    """Tests for loading and saving config.json."""

    def test_load_config_when_missing_then_public_defaults(self, config_paths):
        config = ConfigManager(config_paths).load_config()
        assert config.client_id == PUBLIC_CLIENT_ID
        assert config.tenant_id == COMMON_TENANT
        assert config.redirect_uri == REDIRECT_URI
        assert config.use_public_client is True
        assert config.refresh_interval == 60

    def test_save_config_when_called_then_round_trips_with_owner_only_mode(self, config_paths):
        manager = ConfigManager(config_paths)
        manager.save_config(WidgetConfig(token_command="helper", refresh_interval=90))

        loaded = manager.load_config()
        assert loaded.token_command == "helper"
        assert loaded.refresh_interval == 90
        assert stat.S_IMODE(os.stat(config_paths.config_file).st_mode) == 0o600

    def test_load_config_when_empty_client_id_then_migrated(self, config_paths):
        config_paths.config_file.parent.mkdir(parents=True)
        config_paths.config_file.write_text(
            json.dumps({"client_id": "", "tenant_id": "contoso", "token_command": "x"}),
            encoding="utf-8",
        )
        config = ConfigManager(config_paths).load_config()
        assert config.client_id == PUBLIC_CLIENT_ID
        assert config.tenant_id == COMMON_TENANT
        assert config.token_command == "x"

    def test_load_config_when_invalid_json_then_config_error(self, config_paths):
        config_paths.config_file.parent.mkdir(parents=True)
        config_paths.config_file.write_text("{nope", encoding="utf-8")
        with pytest.raises(ConfigError, match="failed to parse config"):
            ConfigManager(config_paths).load_config()

    def test_load_config_when_root_not_object_then_config_error(self, config_paths):
        config_paths.config_file.parent.mkdir(parents=True)
        config_paths.config_file.write_text("[]", encoding="utf-8")
        with pytest.raises(ConfigError):
            ConfigManager(config_paths).load_config()

    def test_load_config_when_field_invalid_then_config_error(self, config_paths):
        config_paths.config_file.parent.mkdir(parents=True)
        config_paths.config_file.write_text(
            json.dumps({"client_id": "abc", "refresh_interval": 1}), encoding="utf-8"
        )
        with pytest.raises(ConfigError, match="invalid config"):
            ConfigManager(config_paths).load_config()

    def test_load_config_when_env_overrides_then_applied(self, config_paths, monkeypatch):
        monkeypatch.setenv("CALENDAR_WIDGET_REFRESH_INTERVAL", "300")
        monkeypatch.setenv("CALENDAR_WIDGET_REQUEST_TIMEOUT", "bogus")
        monkeypatch.setenv("CALENDAR_WIDGET_TOKEN_COMMAND", "helper --json")
        monkeypatch.setenv("CALENDAR_WIDGET_GRAPH_URL", "https://graph.example/beta/")

        config = ConfigManager(config_paths).load_config()
        assert config.refresh_interval == 300
        assert config.request_timeout == 30
        assert config.token_command == "helper --json"
        assert config.graph_base_url == "https://graph.example/beta"

    def test_load_env_file_when_present_then_existing_env_wins(self, config_paths, monkeypatch):
        config_paths.config_file.parent.mkdir(parents=True)
        (config_paths.config_file.parent / ".env").write_text(
            "CALENDAR_WIDGET_TOKEN_COMMAND=from-file\nCALENDAR_WIDGET_REFRESH_INTERVAL=120\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("CALENDAR_WIDGET_TOKEN_COMMAND", "from-shell")
        # Registered so monkeypatch removes it again after the test
        monkeypatch.setenv("CALENDAR_WIDGET_REFRESH_INTERVAL", "")
        monkeypatch.delenv("CALENDAR_WIDGET_REFRESH_INTERVAL")

        manager = ConfigManager(config_paths)
        assert manager.load_env_file() == ["CALENDAR_WIDGET_REFRESH_INTERVAL"]
        config = manager.load_config()
        assert config.token_command == "from-shell"
        assert config.refresh_interval == 120

    def test_delete_config_when_present_then_true(self, config_paths):
        manager = ConfigManager(config_paths)
        manager.save_config(WidgetConfig())
        assert manager.delete_config() is True
        assert not Path(config_paths.config_file).exists()

    def test_delete_config_when_missing_then_false(self, config_paths):
        assert ConfigManager(config_paths).delete_config() is False

    def test_load_config_when_env_overrides_out_of_range_then_ignored(
        self, config_paths, monkeypatch
    ):
        monkeypatch.setenv("CALENDAR_WIDGET_REFRESH_INTERVAL", "0")
        monkeypatch.setenv("CALENDAR_WIDGET_REQUEST_TIMEOUT", "-3")
        monkeypatch.setenv("CALENDAR_WIDGET_TOKEN_COMMAND", "helper")

        config = ConfigManager(config_paths).load_config()

        assert config.refresh_interval == 60
        assert config.request_timeout == 30
        assert config.token_command == "helper"

    def test_load_config_when_legacy_client_secret_then_ignored(self, config_paths):
        config_paths.config_file.parent.mkdir(parents=True)
        config_paths.config_file.write_text(
            json.dumps({"client_id": "abc", "client_secret": "s3cret"}), encoding="utf-8"
        )
        config = ConfigManager(config_paths).load_config()
        assert config.client_id == "abc"
        assert "client_secret" not in config.model_dump()


class TestApplyOverrides:
    """Tests for validated config overrides."""

    def test_apply_overrides_when_valid_then_new_validated_config(self):
        base = WidgetConfig()
        config = apply_overrides(base, {"refresh_interval": 120})
        assert config.refresh_interval == 120
        assert base.refresh_interval == 60

    def test_apply_overrides_when_one_invalid_then_only_that_one_dropped(self):
        config = apply_overrides(
            WidgetConfig(), {"refresh_interval": 2, "request_timeout": 10}
        )
        assert config.refresh_interval == 60
        assert config.request_timeout == 10

    def test_apply_overrides_when_all_invalid_then_same_config(self):
        base = WidgetConfig()
        assert apply_overrides(base, {"max_retries": -1}) is base
