"""CLI module for calendar-widget.

Parses arguments, initializes logging and dispatches to the mode handler
for the selected subcommand.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Awaitable
from typing import Any, Callable, Optional

from .. import _init_logging
from .modes.click import run_click_mode
from .modes.debug import run_debug_mode
from .modes.logout import run_logout_mode
from .modes.reauth import run_reauth_mode
from .modes.setup import run_setup_mode
from .modes.tooltip import run_tooltip_mode
from .modes.validate import run_validate_mode
from .modes.waybar import run_waybar_mode
from .modes.widget import run_widget_mode
from .parser import create_parser, parse_args

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "CALENDAR_WIDGET_LOG_LEVEL"

MODE_HANDLERS: dict[str, Callable[[Any], Awaitable[int]]] = {
    "widget": run_widget_mode,
    "waybar": run_waybar_mode,
    "tooltip": run_tooltip_mode,
    "click": run_click_mode,
    "setup": run_setup_mode,
    "reauth": run_reauth_mode,
    "logout": run_logout_mode,
    "validate": run_validate_mode,
    "debug": run_debug_mode,
}


async def main_entry(argv: Optional[list[str]] = None) -> int:
    """Parse arguments and run the selected mode.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = parse_args(argv)
    _init_logging(os.environ.get(LOG_LEVEL_ENV), debug=args.debug)

    handler = MODE_HANDLERS[args.command]
    logger.debug("Running %s mode", args.command)
    return await handler(args)


def main(argv: Optional[list[str]] = None) -> None:
    """Console script entry point."""
    try:
        exit_code = asyncio.run(main_entry(argv))
    except KeyboardInterrupt:
        exit_code = 0
    sys.exit(exit_code)


__all__ = ["MODE_HANDLERS", "create_parser", "main", "main_entry", "parse_args"]
