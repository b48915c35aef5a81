"""Text rendering for Waybar payloads, tooltips and the terminal widget."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional

from .classifier import classify, time_until
from .models import Event, EventStatus, WaybarOutput

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 50
TRUNCATED_SUBJECT_LENGTH = 45
TRUNCATED_UPCOMING_SUBJECT_LENGTH = 40
COMPACT_TITLE_LENGTH = 30
UPCOMING_TOOLTIP_LIMIT = 5

TEAMS_PREFIX = "[T] "
SCHEDULE_HEADER = "📅 Today's Schedule:"
UPCOMING_HEADER = "🔮 Upcoming Events"
NO_MEETINGS_TODAY = "No meetings today"
NO_UPCOMING = "No upcoming meetings"

ANSI_RESET = "\033[0m"


@dataclass(frozen=True)
class StatusStyle:
    """Presentation attributes for one status tier."""

    icon: str
    css_class: str
    ansi: str = ""


DEFAULT_STATUS_STYLES: Mapping[EventStatus, StatusStyle] = MappingProxyType(
    {
        EventStatus.URGENT: StatusStyle("🔴", "urgent", "\033[1;97;41m"),
        EventStatus.SOON: StatusStyle("🟡", "soon", "\033[1;30;43m"),
        EventStatus.CURRENT: StatusStyle("🟢", "current", "\033[1;97;42m"),
        EventStatus.UPCOMING: StatusStyle("🔵", "upcoming", "\033[97;44m"),
        EventStatus.PAST: StatusStyle("⚫", "past", "\033[2;9m"),
    }
)

FALLBACK_STYLE = StatusStyle("📅", "unknown")


def escape_pango(text: str) -> str:
    """Escape the characters Pango markup treats specially."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def format_countdown(delta: datetime.timedelta) -> str:
    """Render a positive interval as ``Xm`` or ``XhYm`` (minutes truncated)."""
    minutes = int(delta.total_seconds() // 60)
    if delta < datetime.timedelta(hours=1):
        return f"{minutes}m"
    return f"{minutes // 60}h{minutes % 60}m"


def _clock(dt: Optional[datetime.datetime], tz: Optional[datetime.tzinfo]) -> str:
    if dt is None:
        return "--:--"
    return dt.astimezone(tz).strftime("%H:%M")


class Renderer:
    """Builds every user-facing string from events and the current time.

    Styles are injected so callers (and tests) can swap icons or classes
    without touching module state.
    """

    def __init__(self, styles: Mapping[EventStatus, StatusStyle] = DEFAULT_STATUS_STYLES):
        self.styles = MappingProxyType(dict(styles))

    def style_for(self, status: EventStatus) -> StatusStyle:
        return self.styles.get(status, FALLBACK_STYLE)

    def waybar_output(self, event: Event, now: datetime.datetime) -> WaybarOutput:
        """Status-bar payload for a single event, without tooltip."""
        status = classify(event, now)
        style = self.style_for(status)
        subject = escape_pango(event.subject)

        if status is EventStatus.UPCOMING:
            delta = time_until(event, now) or datetime.timedelta(0)
            text = f"{style.icon} {subject} (in {format_countdown(delta)})"
            if len(text) > MAX_TEXT_LENGTH:
                text = f"{style.icon} {subject[:TRUNCATED_UPCOMING_SUBJECT_LENGTH]}..."
        else:
            text = f"{style.icon} {subject}"
            if len(text) > MAX_TEXT_LENGTH:
                text = f"{style.icon} {subject[:TRUNCATED_SUBJECT_LENGTH]}..."

        if event.is_online_meeting:
            text = TEAMS_PREFIX + text

        return WaybarOutput(text=text, css_class=style.css_class, alt=style.css_class)

    def waybar_output_for_schedule(
        self,
        display_event: Optional[Event],
        todays_events: Sequence[Event],
        now: datetime.datetime,
    ) -> WaybarOutput:
        """Payload for the selected event with today's schedule as tooltip."""
        if display_event is None:
            return WaybarOutput(
                text=NO_MEETINGS_TODAY,
                css_class="no-meeting",
                alt="no-meeting",
                tooltip="No meetings scheduled for today",
            )

        output = self.waybar_output(display_event, now)
        lines = self._schedule_lines(todays_events, now, markup=True)
        if todays_events:
            lines.append("")
            lines.append("💡 Click to open meeting link")
            if display_event.is_online_meeting:
                lines.append("🔗 Teams meeting - will open directly in Teams")
            else:
                lines.append("🌐 Will open in browser")

        return output.model_copy(update={"tooltip": "\n".join(lines)})

    def no_meeting_output(
        self, todays_events: Sequence[Event], now: datetime.datetime
    ) -> WaybarOutput:
        return WaybarOutput(
            text=NO_UPCOMING,
            css_class="no-meeting",
            alt="no-meeting",
            tooltip=self.schedule_tooltip(todays_events, now),
        )

    def auth_required_output(self) -> WaybarOutput:
        return WaybarOutput(
            text="Auth Required",
            css_class="error",
            alt="auth-required",
            tooltip="Click to authenticate",
        )

    def error_output(self, message: str) -> WaybarOutput:
        return WaybarOutput(
            text="Calendar Error",
            css_class="error",
            alt="error",
            tooltip=escape_pango(message),
        )

    def schedule_tooltip(self, todays_events: Sequence[Event], now: datetime.datetime) -> str:
        """Today's schedule as shown in the status-bar tooltip."""
        return "\n".join(self._schedule_lines(todays_events, now, markup=True))

    def extended_tooltip(
        self,
        todays_events: Sequence[Event],
        upcoming_events: Sequence[Event],
        now: datetime.datetime,
    ) -> str:
        """Today's schedule followed by the next few events of the week."""
        lines = self._schedule_lines(todays_events, now, markup=False)

        lines.extend(["", UPCOMING_HEADER, ""])
        if not upcoming_events:
            lines.append(NO_UPCOMING)
            return "\n".join(lines)

        tz = now.tzinfo
        today = now.date()
        tomorrow = today + datetime.timedelta(days=1)
        for index, event in enumerate(upcoming_events):
            if index >= UPCOMING_TOOLTIP_LIMIT:
                lines.append(f"... and {len(upcoming_events) - UPCOMING_TOOLTIP_LIMIT} more events")
                break

            if event.start is None:
                when = "--:--"
            else:
                start = event.start.astimezone(tz)
                if start.date() == today:
                    when = start.strftime("%H:%M")
                elif start.date() == tomorrow:
                    when = f"Tomorrow {start:%H:%M}"
                else:
                    when = f"{start:%a} {start.day}/{start.month} {start:%H:%M}"

            icon = self.style_for(classify(event, now)).icon
            lines.append(f"{icon} {when} {self._title(event, markup=False)}")

        return "\n".join(lines)

    def terminal_line(self, event: Event, now: datetime.datetime, compact: bool = False) -> str:
        """One styled line for the interactive terminal widget."""
        status = classify(event, now)
        style = self.style_for(status)

        title = event.subject
        if compact and len(title) > COMPACT_TITLE_LENGTH:
            title = title[: COMPACT_TITLE_LENGTH - 3] + "..."

        tz = now.tzinfo
        if status is EventStatus.CURRENT:
            when = f"{_clock(event.start, tz)}-{_clock(event.end, tz)}"
        elif status in (EventStatus.URGENT, EventStatus.SOON, EventStatus.UPCOMING):
            delta = time_until(event, now) or datetime.timedelta(0)
            when = f"in {format_countdown(delta)}"
        else:
            when = _clock(event.start, tz)

        parts = [style.icon]
        if event.is_online_meeting:
            parts.append("Teams")
        parts.extend([when, title])
        content = " ".join(parts)

        if not style.ansi:
            return content
        return f"{style.ansi} {content} {ANSI_RESET}"

    def _title(self, event: Event, markup: bool) -> str:
        escape = escape_pango if markup else str
        title = escape(event.subject)
        if event.is_online_meeting:
            title += " (Teams)"
        elif event.location:
            title += " @ " + escape(event.location)
        return title

    def _schedule_lines(
        self, events: Sequence[Event], now: datetime.datetime, markup: bool
    ) -> list[str]:
        header = SCHEDULE_HEADER if markup else SCHEDULE_HEADER.rstrip(":")
        lines = [header, ""]
        if not events:
            lines.append(NO_MEETINGS_TODAY)
            return lines

        tz = now.tzinfo
        for event in events:
            icon = self.style_for(classify(event, now)).icon
            span = f"{_clock(event.start, tz)}-{_clock(event.end, tz)}"
            lines.append(f"{icon} {span} {self._title(event, markup)}")
        return lines
