"""Waybar mode: print one JSON payload and exit."""

from __future__ import annotations

import logging
from typing import Any

from ...exceptions import ConfigError
from ...render import Renderer
from ..config import load_context

logger = logging.getLogger(__name__)


async def run_waybar_mode(args: Any) -> int:
    """Print a single Waybar payload on stdout.

    Always exits 0 so that Waybar keeps the module alive; failures are
    reported through an error-shaped payload instead.
    """
    renderer = Renderer()
    try:
        ctx = load_context(args)
        widget = ctx.build_widget(renderer=renderer)
        output = await widget.run_waybar(force_refresh=getattr(args, "force_refresh", False))
    except ConfigError as e:
        logger.warning("Configuration error: %s", e)
        output = renderer.error_output(str(e))
    except Exception as e:
        logger.exception("Unexpected error in waybar mode")
        output = renderer.error_output(str(e) or e.__class__.__name__)

    print(output.to_json(), flush=True)
    return 0
