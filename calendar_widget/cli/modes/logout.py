"""Logout mode: remove the cached token and the configuration file."""

from __future__ import annotations

from typing import Any

from ...auth import AuthStore
from ...config_manager import ConfigManager, ConfigPaths
from ...exceptions import ConfigError
from ...models import WidgetConfig


async def run_logout_mode(args: Any) -> int:
    """Delete token.json and config.json; missing files are not an error.

    Works from paths alone so that a corrupt config.json can still be removed.
    """
    print("Logging out...")
    paths = ConfigPaths.default(getattr(args, "config", None))

    try:
        AuthStore(paths, WidgetConfig()).clear_tokens()
    except OSError as e:
        print(f"Logout failed: failed to remove token file: {e}")
        return 1

    try:
        ConfigManager(paths).delete_config()
    except ConfigError as e:
        print(f"Logout failed: {e}")
        return 1

    print("✅ Successfully logged out!")
    print("All stored authentication data has been cleared.")
    print()
    print("To use the calendar widget again, run: calendar-widget setup")
    return 0
