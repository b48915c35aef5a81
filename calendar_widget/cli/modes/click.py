"""Click mode: join the current meeting or re-authenticate."""

from __future__ import annotations

import logging
from typing import Any

from ...exceptions import ConfigError
from ..config import load_context
from .reauth import perform_reauth

logger = logging.getLogger(__name__)


async def run_click_mode(args: Any) -> int:
    """Handle a click on the status-bar module.

    Opens the selected meeting when it is in progress or starts within five
    minutes. When credentials are still rejected after a forced refresh,
    re-authentication runs and its exit code is returned.
    """
    try:
        ctx = load_context(args)
    except ConfigError as e:
        print(f"Click handler failed: {e}")
        return 1

    reauth_results: list[int] = []

    def _reauth() -> None:
        print("Authentication required, re-authenticating...")
        reauth_results.append(perform_reauth(ctx))

    widget = ctx.build_widget(on_reauth=_reauth)
    opened = await widget.handle_click()
    logger.debug("Click handled (opened=%s)", opened)

    if reauth_results:
        return reauth_results[0]
    return 0
