"""Validate mode: check configuration, token acquisition and calendar access."""

from __future__ import annotations

import logging
import os
from typing import Any

from ...auth import ACCESS_TOKEN_ENV
from ...exceptions import (
    AuthRequiredError,
    CalendarWidgetError,
    ConfigError,
    TokenAcquisitionError,
    TransientFetchError,
)
from ..config import load_context

logger = logging.getLogger(__name__)


def guidance_for(error: CalendarWidgetError) -> list[str]:
    """Troubleshooting lines for a failed validation, chosen by error kind."""
    if isinstance(error, TokenAcquisitionError):
        return [
            "🔧 SOLUTION: The credential helper failed.",
            "   1. Run the configured token command by hand and check its output",
            "   2. Make sure you are signed in (e.g. 'az login')",
            "   3. Run 'calendar-widget setup --token-command CMD' to change it",
        ]
    if isinstance(error, AuthRequiredError):
        if error.status_code in (401, 403):
            return [
                "🔧 SOLUTION: The calendar API rejected the token.",
                "   1. Ensure the token is issued for Microsoft Graph",
                "   2. Ensure it carries the 'Calendars.Read' and 'User.Read' permissions",
                "   3. Check whether admin consent is required and granted",
                "   4. Run 'calendar-widget reauth'",
            ]
        return [
            "🔧 SOLUTION: No way to obtain a token is configured.",
            "   1. Run 'calendar-widget setup --token-command CMD'",
            f"   2. Or export {ACCESS_TOKEN_ENV} with a valid bearer token",
        ]
    if isinstance(error, TransientFetchError):
        return [
            "🔧 SOLUTION: The calendar API could not be reached.",
            "   1. Check your network connection and proxy settings",
            "   2. Try again in a few minutes",
        ]
    return [
        "🔧 Common solutions:",
        "   1. Check the Graph URL in config.json",
        "   2. Run 'calendar-widget debug' for details",
    ]


async def run_validate_mode(args: Any) -> int:
    """Report configuration details and try a real calendar request.

    Returns:
        Exit code (0 when authentication and calendar access succeed)
    """
    print("Validating Configuration")
    print("========================")
    print()

    try:
        ctx = load_context(args)
    except ConfigError as e:
        print(f"❌ Configuration invalid: {e}")
        print("   Run 'calendar-widget setup' to recreate it.")
        return 1

    if not ctx.paths.config_file.exists():
        print("❌ Configuration not found. Run 'calendar-widget setup' first.")
        return 1

    config = ctx.config
    print("✅ Configuration found")
    print(f"   Client ID: {config.client_id}")
    print(f"   Tenant ID: {config.tenant_id}")
    if os.environ.get(ACCESS_TOKEN_ENV):
        print(f"   Token source: {ACCESS_TOKEN_ENV}")
    else:
        print(f"   Token command: {config.token_command or '(none)'}")
    print()

    print("Testing authentication...")
    try:
        async with ctx.service_factory(True, False) as service:
            events = await service.get_todays_events()
    except CalendarWidgetError as e:
        print("❌ Authentication failed:")
        print(f"   Error: {e}")
        print()
        for line in guidance_for(e):
            print(line)
        print()
        return 1

    print("✅ Authentication successful!")
    print(f"✅ Calendar reachable ({len(events)} events today)")
    print()
    print("Your configuration is working correctly.")
    return 0
