"""Setup mode: write the default configuration and acquire a first token."""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from ...auth import ACCESS_TOKEN_ENV, GRAPH_SCOPES, AuthStore
from ...config_manager import apply_overrides
from ...exceptions import AuthRequiredError, ConfigError
from ...models import COMMON_TENANT, PUBLIC_CLIENT_ID, REDIRECT_URI
from ..config import CliContext, load_context

logger = logging.getLogger(__name__)

EXAMPLE_TOKEN_COMMAND = "az account get-access-token --resource-type ms-graph"


def perform_setup(ctx: CliContext, token_command: Optional[str] = None) -> int:
    """Save the public-client configuration and verify a token can be obtained.

    Args:
        ctx: Loaded CLI context
        token_command: Credential helper to store; keeps the existing one when None

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    print("Calendar Widget Setup")
    print("=====================")
    print()
    print("This widget reads your Microsoft 365 calendar with these permissions:")
    for scope in GRAPH_SCOPES:
        print(f"• {scope.rsplit('/', 1)[-1]}")
    print()

    config = apply_overrides(
        ctx.config,
        {
            "client_id": PUBLIC_CLIENT_ID,
            "tenant_id": COMMON_TENANT,
            "redirect_uri": REDIRECT_URI,
            "use_public_client": True,
            "token_command": token_command or ctx.config.token_command,
        },
    )

    try:
        ctx.config_manager.save_config(config)
    except ConfigError as e:
        print(f"Setup failed: {e}")
        return 1
    print(f"✅ Configuration saved to {ctx.paths.config_file}")

    if not config.token_command and not os.environ.get(ACCESS_TOKEN_ENV):
        print()
        print("No credential helper configured. Tokens are obtained from a command that")
        print("prints a Microsoft Graph access token, for example the Azure CLI:")
        print()
        print(f'   calendar-widget setup --token-command "{EXAMPLE_TOKEN_COMMAND}"')
        print()
        print(f"Alternatively export {ACCESS_TOKEN_ENV} with a valid bearer token.")
        return 1

    print("Requesting an access token...")
    auth = AuthStore(ctx.paths, config)
    try:
        auth.get_access_token(allow_interactive=True, force_refresh=True)
    except AuthRequiredError as e:
        print(f"Setup failed: authentication failed: {e}")
        return 1

    print()
    print("✅ Authentication successful!")
    print("✅ Credentials cached for future use")
    print()
    print("Setup complete! You can now use the calendar widget.")
    print("Try running: calendar-widget")
    return 0


async def run_setup_mode(args: Any) -> int:
    ctx = load_context(args, replace_invalid=True)
    return perform_setup(ctx, getattr(args, "token_command", None))
