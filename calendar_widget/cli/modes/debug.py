"""Debug mode: print detailed calendar access information."""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from typing import Any, Optional

from ...classifier import classify, time_until
from ...exceptions import CalendarWidgetError
from ...models import Event, EventStatus
from ...selector import find_next_meeting
from ..config import load_context

MAX_EVENTS_SHOWN = 5


def _iso(dt: Optional[datetime.datetime]) -> str:
    return dt.isoformat() if dt is not None else "(unparsed)"


def describe_events(events: Sequence[Event], now: datetime.datetime) -> list[str]:
    """Detail lines for the first few events."""
    lines: list[str] = []
    for index, event in enumerate(events[:MAX_EVENTS_SHOWN], start=1):
        status = classify(event, now)
        lines.append(f"📅 Event {index}:")
        lines.append(f"  📝 Subject: {event.subject}")
        lines.append(f"  🕐 Start: {_iso(event.start)}")
        lines.append(f"  🕐 End: {_iso(event.end)}")
        lines.append(f"  📍 Location: {event.location}")
        lines.append(f"  🔗 Teams: {str(event.is_online_meeting).lower()}")
        if event.teams_link:
            lines.append(f"  🔗 Teams Link: {event.teams_link}")
        lines.append(f"  🌐 Web Link: {event.web_link}")
        lines.append(f"  📊 Status: {status.value}")
        if status is not EventStatus.PAST:
            lines.append(f"  ⏰ Time until: {time_until(event, now)}")
        lines.append("")

    if len(events) > MAX_EVENTS_SHOWN:
        lines.append(f"... and {len(events) - MAX_EVENTS_SHOWN} more events")
        lines.append("")
    return lines


async def run_debug_mode(args: Any) -> int:
    print("🔍 Debug Calendar Access")
    print("========================")

    try:
        ctx = load_context(args)
        widget = ctx.build_widget()
        now = widget.clock()
        print(f"📅 Current time: {now.isoformat()}")
        print(f"🌍 Timezone: {now.tzname()}")
        print()

        async with ctx.service_factory(True, False) as service:
            print("📋 Getting today's events...")
            todays = await service.get_todays_events()
            print(f"📊 Found {len(todays)} today's events")
            print()

            print("📋 Getting upcoming events...")
            upcoming = await service.get_upcoming_events()
            print(f"📊 Found {len(upcoming)} upcoming events")
            print()
    except CalendarWidgetError as e:
        print(f"Debug failed: {e}")
        return 1

    events = todays
    if not todays and upcoming:
        print("📌 No events today, showing upcoming events instead:")
        events = upcoming

    if not events:
        print("❌ No events found")
        print("This could be because:")
        print("  • Events are in a different timezone")
        print("  • Events are in a different calendar")
        print("  • Query filter is too restrictive")
        return 0

    for line in describe_events(events, now):
        print(line)

    print("🔍 Getting next meeting...")
    next_meeting = find_next_meeting(upcoming, now)
    if next_meeting is None:
        print("❌ No next meeting found")
        return 0

    print(f"📅 Next meeting: {next_meeting.subject}")
    print(f"🕐 Starts: {_iso(next_meeting.start)}")
    print(f"📊 Status: {classify(next_meeting, now).value}")
    remaining = time_until(next_meeting, now)
    if remaining is not None and remaining > datetime.timedelta(0):
        print(f"⏰ Time until: {remaining}")
    return 0
