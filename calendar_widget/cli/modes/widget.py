"""Interactive terminal widget mode."""

from __future__ import annotations

import logging
from typing import Any

from ...exceptions import ConfigError
from ..config import load_context

logger = logging.getLogger(__name__)


async def run_widget_mode(args: Any) -> int:
    """Run the terminal widget until the user quits.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        ctx = load_context(args)
    except ConfigError as e:
        print(f"Widget failed: {e}")
        return 1

    widget = ctx.build_widget(compact=getattr(args, "compact", False))
    print("calendar-widget: q quit | r refresh | Enter or click open meeting")
    await widget.run_interactive()
    return 0
