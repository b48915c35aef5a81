"""Configuration management for calendar_widget."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .exceptions import ConfigError
from .models import COMMON_TENANT, PUBLIC_CLIENT_ID, REDIRECT_URI, WidgetConfig

logger = logging.getLogger(__name__)

APP_DIR_NAME = "calendar-widget"
CONFIG_DIR_ENV = "CALENDAR_WIDGET_CONFIG_DIR"


def apply_overrides(config: WidgetConfig, overrides: dict[str, Any]) -> WidgetConfig:
    """Return a validated copy of config with overrides applied.

    Each override is checked against the WidgetConfig field constraints; values
    that fail validation are logged and dropped, keeping the current value.
    """
    accepted: dict[str, Any] = {}
    base = config.model_dump()
    for field, value in overrides.items():
        try:
            WidgetConfig.model_validate({**base, **accepted, field: value})
        except ValidationError as e:
            reason = e.errors()[0]["msg"] if e.errors() else str(e)
            logger.warning("Ignoring invalid %s=%r: %s", field, value, reason)
            continue
        accepted[field] = value

    if not accepted:
        return config
    return WidgetConfig.model_validate({**base, **accepted})


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Skips blank lines and comments and strips single or double quotes from
    values. Returns an empty dict when the file does not exist.
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", path, exc_info=True)
        return result

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        if key:
            result[key] = val.strip().strip('"').strip("'")

    return result


@dataclass(frozen=True)
class ConfigPaths:
    """Locations of the files owned by the widget."""

    config_file: Path
    token_file: Path

    @classmethod
    def default(cls, config_file: str | os.PathLike[str] | None = None) -> ConfigPaths:
        """Resolve paths from an explicit config file, the env, or ~/.config."""
        if config_file:
            path = Path(config_file).expanduser()
            return cls(config_file=path, token_file=path.parent / "token.json")

        env_dir = os.environ.get(CONFIG_DIR_ENV)
        base = Path(env_dir).expanduser() if env_dir else Path.home() / ".config" / APP_DIR_NAME
        return cls(config_file=base / "config.json", token_file=base / "token.json")


class ConfigManager:
    """Loads and saves config.json and applies environment overrides."""

    def __init__(self, paths: ConfigPaths, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            paths: Resolved file locations
            env_file_path: Optional .env file (defaults to .env next to config.json)
        """
        self.paths = paths
        self.env_file_path = env_file_path or paths.config_file.parent / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env defaults without overriding variables already set."""
        parsed = parse_env_file(self.env_file_path)

        set_keys = []
        for key, val in parsed.items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def load_config(self) -> WidgetConfig:
        """Load config.json, falling back to the public-client defaults.

        Raises:
            ConfigError: If the file exists but cannot be read or parsed
        """
        path = self.paths.config_file
        if not path.exists():
            logger.debug("No config file at %s; using public client defaults", path)
            return self._apply_env_overrides(WidgetConfig())

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"failed to read config file: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"failed to parse config: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError("failed to parse config: root must be an object")

        # Older configs without a client id move to the public client
        if not data.get("client_id"):
            data.update(
                client_id=PUBLIC_CLIENT_ID,
                tenant_id=COMMON_TENANT,
                redirect_uri=REDIRECT_URI,
                use_public_client=True,
            )

        try:
            config = WidgetConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"invalid config: {e}") from e

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: WidgetConfig) -> WidgetConfig:
        """Apply CALENDAR_WIDGET_* environment overrides.

        Recognizes:
        - CALENDAR_WIDGET_REFRESH_INTERVAL -> refresh_interval (int)
        - CALENDAR_WIDGET_REQUEST_TIMEOUT -> request_timeout (int)
        - CALENDAR_WIDGET_TOKEN_COMMAND -> token_command
        - CALENDAR_WIDGET_GRAPH_URL -> graph_base_url
        """
        overrides: dict[str, Any] = {}

        for env_key, field in (
            ("CALENDAR_WIDGET_REFRESH_INTERVAL", "refresh_interval"),
            ("CALENDAR_WIDGET_REQUEST_TIMEOUT", "request_timeout"),
        ):
            raw = os.environ.get(env_key)
            if not raw:
                continue
            try:
                overrides[field] = int(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_key, raw)

        token_command = os.environ.get("CALENDAR_WIDGET_TOKEN_COMMAND")
        if token_command:
            overrides["token_command"] = token_command

        graph_url = os.environ.get("CALENDAR_WIDGET_GRAPH_URL")
        if graph_url:
            overrides["graph_base_url"] = graph_url.rstrip("/")

        if not overrides:
            return config
        return apply_overrides(config, overrides)

    def save_config(self, config: WidgetConfig) -> None:
        """Write config.json with owner-only permissions.

        Raises:
            ConfigError: If the directory or file cannot be written
        """
        path = self.paths.config_file
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(config.model_dump_json(indent=2, exclude_none=True), encoding="utf-8")
            os.chmod(path, 0o600)
        except OSError as e:
            raise ConfigError(f"failed to save config: {e}") from e
        logger.debug("Saved config to %s", path)

    def delete_config(self) -> bool:
        """Remove config.json. Returns True if a file was removed."""
        try:
            self.paths.config_file.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise ConfigError(f"failed to remove config file: {e}") from e
        return True

    def load_full_config(self) -> WidgetConfig:
        """Load .env defaults, then config.json with environment overrides."""
        self.load_env_file()
        return self.load_config()
