"""Shared CLI wiring: configuration loading and collaborator construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..auth import AuthStore
from ..config_manager import ConfigManager, ConfigPaths, apply_overrides
from ..exceptions import ConfigError
from ..graph_client import CalendarService
from ..models import WidgetConfig
from ..widget import Widget

logger = logging.getLogger(__name__)


@dataclass
class CliContext:
    """Everything a mode needs, resolved from the parsed arguments."""

    paths: ConfigPaths
    config_manager: ConfigManager
    config: WidgetConfig
    auth: AuthStore

    def service_factory(self, allow_interactive: bool, force_refresh: bool) -> CalendarService:
        return CalendarService(
            self.config,
            self.auth,
            allow_interactive=allow_interactive,
            force_refresh=force_refresh,
        )

    def build_widget(self, **kwargs: Any) -> Widget:
        return Widget(self.config, self.service_factory, **kwargs)


def apply_cli_overrides(config: WidgetConfig, args: Any) -> WidgetConfig:
    """Apply command-line values on top of the loaded configuration."""
    refresh: Optional[int] = getattr(args, "refresh", None)
    if refresh:
        config = apply_overrides(config, {"refresh_interval": max(refresh, 5)})
    return config


def load_context(args: Any, replace_invalid: bool = False) -> CliContext:
    """Resolve paths, load .env and config.json, and build the auth store.

    Args:
        args: Parsed command line arguments
        replace_invalid: Fall back to defaults when config.json is invalid
            (used by setup, which overwrites it)

    Raises:
        ConfigError: If config.json exists but is invalid and replace_invalid
            is False
    """
    paths = ConfigPaths.default(getattr(args, "config", None))
    manager = ConfigManager(paths)
    try:
        loaded = manager.load_full_config()
    except ConfigError as e:
        if not replace_invalid:
            raise
        logger.warning("Ignoring invalid configuration: %s", e)
        loaded = WidgetConfig()
    config = apply_cli_overrides(loaded, args)
    logger.debug("Using config %s (token cache %s)", paths.config_file, paths.token_file)
    return CliContext(
        paths=paths,
        config_manager=manager,
        config=config,
        auth=AuthStore(paths, config),
    )
