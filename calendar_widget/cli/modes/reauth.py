"""Re-authentication mode: drop cached tokens and run setup again."""

from __future__ import annotations

import logging
from typing import Any

from ..config import CliContext, load_context
from .setup import perform_setup

logger = logging.getLogger(__name__)


def perform_reauth(ctx: CliContext) -> int:
    """Clear the token cache and repeat setup with the current configuration."""
    try:
        ctx.auth.clear_tokens()
    except OSError as e:
        print(f"Warning: failed to clear tokens: {e}")

    print("🔄 Re-authenticating...")
    print("Starting fresh authentication process...")
    return perform_setup(ctx)


async def run_reauth_mode(args: Any) -> int:
    ctx = load_context(args, replace_invalid=True)
    return perform_reauth(ctx)
