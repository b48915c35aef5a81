"""Widget orchestration: one-shot status-bar polls, click handling, terminal loop."""

from __future__ import annotations

import asyncio
import datetime
import logging
import sys
from collections.abc import Callable
from typing import Any, Optional, TextIO

from .click_action import LinkOpener, resolve_click_target
from .exceptions import AuthRequiredError, CalendarWidgetError
from .graph_client import CalendarService
from .keyboard import KeyboardHandler, KeyCode
from .models import Event, WaybarOutput, WidgetConfig
from .render import ANSI_RESET, Renderer
from .selector import select_best, select_best_for_click
from .timezone_utils import now_local

logger = logging.getLogger(__name__)

# (allow_interactive, force_refresh) -> CalendarService
ServiceFactory = Callable[[bool, bool], CalendarService]

ERROR_ANSI = "\033[1;31m"
DIM_ANSI = "\033[2;3m"


class Widget:
    """Ties the calendar service, selector, renderer and link opener together."""

    def __init__(
        self,
        config: WidgetConfig,
        service_factory: ServiceFactory,
        renderer: Optional[Renderer] = None,
        opener: Optional[LinkOpener] = None,
        clock: Callable[[], datetime.datetime] = now_local,
        on_reauth: Optional[Callable[[], Any]] = None,
        compact: bool = False,
    ) -> None:
        """Initialize widget.

        Args:
            config: Loaded widget configuration
            service_factory: Builds a CalendarService for the given auth options
            renderer: Output renderer (default styles when omitted)
            opener: Link opener used for click-to-join
            clock: Source of the current time
            on_reauth: Called when a click finds credentials still rejected
                after a forced refresh
            compact: Shorten titles in the terminal view
        """
        self.config = config
        self.service_factory = service_factory
        self.renderer = renderer or Renderer()
        self.opener = opener or LinkOpener()
        self.clock = clock
        self.on_reauth = on_reauth
        self.compact = compact

        # Interactive state
        self.todays_events: list[Event] = []
        self.next_meeting: Optional[Event] = None
        self.last_error: Optional[str] = None
        self.last_update: Optional[datetime.datetime] = None
        self._stop_event: Optional[asyncio.Event] = None

    async def run_waybar(self, force_refresh: bool = False) -> WaybarOutput:
        """Poll once and build the status-bar payload.

        Fetch failures become error-shaped payloads; this never raises for
        calendar or auth errors.
        """
        try:
            async with self.service_factory(force_refresh, force_refresh) as service:
                upcoming = await service.get_upcoming_events()
                try:
                    todays = await service.get_todays_events()
                except CalendarWidgetError as e:
                    logger.warning("Could not load today's schedule for tooltip: %s", e)
                    todays = []
        except AuthRequiredError as e:
            logger.info("Authentication required: %s", e)
            return self.renderer.auth_required_output()
        except CalendarWidgetError as e:
            logger.warning("Calendar fetch failed: %s", e)
            return self.renderer.error_output(str(e))

        now = self.clock()
        display_event = select_best(upcoming, now)
        if display_event is None:
            return self.renderer.no_meeting_output(todays, now)
        return self.renderer.waybar_output_for_schedule(display_event, todays, now)

    async def show_tooltip(self) -> str:
        """Extended tooltip: today's schedule plus the coming week.

        Raises:
            CalendarWidgetError: If either fetch fails
        """
        async with self.service_factory(True, False) as service:
            todays = await service.get_todays_events()
            upcoming = await service.get_upcoming_events()
        return self.renderer.extended_tooltip(todays, upcoming, self.clock())

    async def _fetch_upcoming(self, allow_interactive: bool, force_refresh: bool) -> list[Event]:
        async with self.service_factory(allow_interactive, force_refresh) as service:
            return await service.get_upcoming_events()

    async def handle_click(self) -> bool:
        """Open the selected meeting if it is current or about to start.

        A non-interactive fetch is tried first. If credentials are missing or
        rejected, the token is refreshed interactively; if that is still
        rejected, the re-authentication callback runs.

        Returns:
            True when a link was opened
        """
        try:
            events = await self._fetch_upcoming(False, False)
        except AuthRequiredError:
            logger.info("Authentication required, forcing token refresh")
            try:
                events = await self._fetch_upcoming(True, True)
            except AuthRequiredError as e:
                logger.warning("Force refresh still failed with auth error: %s", e)
                if self.on_reauth is not None:
                    self.on_reauth()
                return False
            except CalendarWidgetError as e:
                logger.warning("Force refresh failed: %s", e)
                return False
        except CalendarWidgetError as e:
            logger.warning("Click ignored, calendar fetch failed: %s", e)
            return False

        now = self.clock()
        target = resolve_click_target(select_best_for_click(events, now), now)
        if target is None:
            return False
        return await asyncio.to_thread(self.opener.open_target, target)

    async def refresh(self) -> None:
        """Reload today's events and the next meeting for the terminal view.

        Errors are kept for display; the previous events stay in place.
        """
        try:
            async with self.service_factory(True, False) as service:
                todays = await service.get_todays_events()
                next_meeting = await service.get_next_meeting()
        except CalendarWidgetError as e:
            logger.warning("Refresh failed: %s", e)
            self.last_error = str(e)
            return

        self.todays_events = todays
        self.next_meeting = next_meeting
        self.last_error = None
        self.last_update = self.clock()

    async def open_next_meeting(self) -> bool:
        """Open the meeting shown in the terminal view."""
        if self.next_meeting is None:
            return False
        event = self.next_meeting
        if event.is_online_meeting and event.teams_link:
            url = event.teams_link
        elif event.web_link:
            url = event.web_link
        else:
            self.last_error = "no link available for meeting"
            return False
        return await asyncio.to_thread(self.opener.open, url)

    def view(self) -> str:
        """Current terminal view as a single line."""
        if self.last_error:
            return f"{ERROR_ANSI}Error: {self.last_error}{ANSI_RESET}"
        if self.next_meeting is None:
            return f"{DIM_ANSI}No upcoming meetings{ANSI_RESET}"
        return self.renderer.terminal_line(self.next_meeting, self.clock(), self.compact)

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run_interactive(
        self,
        keyboard: Optional[KeyboardHandler] = None,
        out: TextIO = sys.stdout,
    ) -> None:
        """Run the terminal widget until 'q' or Ctrl-C.

        Refreshes every refresh_interval seconds and on 'r'. Enter, Space or a
        left mouse click opens the displayed meeting.
        """
        self._stop_event = asyncio.Event()
        keyboard = keyboard or KeyboardHandler()

        async def _refresh_and_draw() -> None:
            await self.refresh()
            self._draw(out)

        async def _open() -> None:
            await self.open_next_meeting()
            self._draw(out)

        keyboard.register_key_handler(KeyCode.QUIT, self.stop)
        keyboard.register_key_handler(KeyCode.REFRESH, _refresh_and_draw)
        keyboard.register_key_handler(KeyCode.OPEN, _open)

        key_task = asyncio.create_task(keyboard.start_listening())
        try:
            while not self._stop_event.is_set():
                await _refresh_and_draw()
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self.config.refresh_interval
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            keyboard.stop_listening()
            try:
                await asyncio.wait_for(key_task, timeout=1.0)
            except asyncio.TimeoutError:
                key_task.cancel()
            out.write("\n")
            out.flush()

    def _draw(self, out: TextIO) -> None:
        out.write("\r\033[K" + self.view())
        out.flush()
