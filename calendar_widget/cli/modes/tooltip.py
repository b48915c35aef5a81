"""Tooltip mode: print today's schedule and the coming week."""

from __future__ import annotations

from typing import Any

from ...exceptions import CalendarWidgetError
from ..config import load_context


async def run_tooltip_mode(args: Any) -> int:
    try:
        ctx = load_context(args)
        text = await ctx.build_widget().show_tooltip()
    except CalendarWidgetError as e:
        print(f"Tooltip failed: {e}")
        return 1

    print(text)
    return 0
