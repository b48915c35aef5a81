"""Microsoft Graph calendar client.

Fetches the signed-in user's calendar view and turns the JSON payload into
immutable Event models. Failures are raised as tagged exceptions:
AuthRequiredError for rejected or missing credentials, TransientFetchError for
network trouble and timeouts, CalendarFetchError for everything else.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import random
import re
from collections.abc import Callable
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from dateutil import parser as date_parser
from pydantic import ValidationError

from .auth import AuthStore
from .exceptions import AuthRequiredError, CalendarFetchError, TransientFetchError
from .models import Event, ShowAs, WidgetConfig
from .selector import find_next_meeting
from .timezone_utils import now_local, resolve_timezone, start_of_day, to_graph_timestamp

logger = logging.getLogger(__name__)

# Backoff calculation constants
MAX_BACKOFF_SECONDS = 30.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3

PAGE_SIZE = 50
MAX_PAGES = 10
UPCOMING_WINDOW = datetime.timedelta(days=7)

SELECT_FIELDS = (
    "subject",
    "start",
    "end",
    "location",
    "webLink",
    "body",
    "organizer",
    "attendees",
    "onlineMeeting",
    "isOnlineMeeting",
    "isAllDay",
    "showAs",
)

# HTTP statuses worth reporting as transient rather than as hard failures
TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})

TEAMS_URL_PATTERNS = (
    re.compile(r"https://teams\.microsoft\.com/l/meetup-join/[^\s<>\"']+"),
    re.compile(r"https://teams\.live\.com/meet/[^\s<>\"']+"),
    re.compile(r"https://[a-zA-Z0-9-]+\.teams\.microsoft\.com/[^\s<>\"']+"),
)

TEAMS_INDICATORS = (
    "microsoft teams meeting",
    "teams meeting",
    "join microsoft teams meeting",
    "microsoft teams-møde",
    "teams-møde",
)

_ANY_HTTPS_URL = re.compile(r"https://[^\s<>\"']+")
_TRAILING_PUNCTUATION = ".,:;!?"
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")


def extract_teams_link(body: str, location: str) -> tuple[str, bool]:
    """Find a Teams join link in free text.

    Tries the known Teams URL shapes first. Failing that, if the text mentions
    a Teams meeting, the first HTTPS URL with a host is used.

    Returns:
        (link, is_teams). The link may be empty when the text names a Teams
        meeting without a usable URL.
    """
    content = f"{body} {location}"

    for pattern in TEAMS_URL_PATTERNS:
        match = pattern.search(content)
        if match:
            return match.group(0).rstrip(_TRAILING_PUNCTUATION), True

    content_lower = content.lower()
    if not any(indicator in content_lower for indicator in TEAMS_INDICATORS):
        return "", False

    for match in _ANY_HTTPS_URL.finditer(content):
        candidate = match.group(0).rstrip(_TRAILING_PUNCTUATION)
        if urlparse(candidate).hostname:
            return candidate, True

    return "", True


def parse_graph_datetime(
    value: Optional[str], tz_name: Optional[str] = None
) -> Optional[datetime.datetime]:
    """Parse a Graph dateTime string into an aware datetime.

    Handles the .NET seven-digit fraction ("2025-01-15T10:00:00.0000000"),
    plain ISO 8601 with or without an offset, and "Z". Naive values are
    interpreted in tz_name (UTC when absent).

    Returns:
        Aware datetime, or None for empty or unparsable input
    """
    if not isinstance(value, str) or not value.strip():
        return None
    if not isinstance(tz_name, str):
        tz_name = None

    text = _LONG_FRACTION.sub(r"\1", value.strip())
    try:
        parsed = date_parser.isoparse(text)
    except (ValueError, OverflowError):
        logger.debug("Unparsable Graph dateTime %r", value)
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=resolve_timezone(tz_name))
    return parsed


def _nested(payload: dict[str, Any], *keys: str) -> Any:
    value: Any = payload
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _parse_show_as(value: Any) -> ShowAs:
    try:
        return ShowAs(value)
    except ValueError:
        return ShowAs.UNKNOWN


def parse_graph_event(payload: dict[str, Any]) -> Event:
    """Build an Event from one calendarView item."""
    start = parse_graph_datetime(
        _nested(payload, "start", "dateTime"), _nested(payload, "start", "timeZone")
    )
    end = parse_graph_datetime(
        _nested(payload, "end", "dateTime"), _nested(payload, "end", "timeZone")
    )
    subject = payload.get("subject") or ""

    if start is not None and end is not None and end < start:
        logger.warning("Event %r ends before it starts; clamping end to start", subject)
        end = start

    body = _nested(payload, "body", "content") or ""
    location = _nested(payload, "location", "displayName") or ""

    online_meeting = payload.get("onlineMeeting")
    if isinstance(online_meeting, dict):
        teams_link = online_meeting.get("joinUrl") or ""
        is_online = True
    else:
        # Non-standard meeting links pasted into the body or location
        teams_link, is_online = extract_teams_link(body, location)

    attendees = tuple(
        name
        for name in (_nested(a, "emailAddress", "name") for a in payload.get("attendees") or ())
        if name
    )

    return Event(
        subject=subject,
        start=start,
        end=end,
        location=location,
        web_link=payload.get("webLink") or "",
        teams_link=teams_link,
        is_online_meeting=is_online,
        organizer=_nested(payload, "organizer", "emailAddress", "name") or "",
        attendees=attendees,
        body=body,
        is_all_day=bool(payload.get("isAllDay")),
        show_as=_parse_show_as(payload.get("showAs")),
    )


class CalendarService:
    """Async client for the signed-in user's Graph calendar."""

    def __init__(
        self,
        config: WidgetConfig,
        auth: AuthStore,
        client: Optional[httpx.AsyncClient] = None,
        allow_interactive: bool = False,
        force_refresh: bool = False,
        clock: Callable[[], datetime.datetime] = now_local,
    ) -> None:
        """Initialize calendar service.

        Args:
            config: Widget configuration (base URL, timeouts, retry policy)
            auth: Token provider
            client: Optional preconfigured HTTP client (not closed by the service)
            allow_interactive: Allow the auth store to run the credential helper
            force_refresh: Ignore the cached token on the first request
            clock: Source of the current time
        """
        self.config = config
        self.auth = auth
        self.client = client
        self._owns_client = client is None
        self.allow_interactive = allow_interactive
        self._force_refresh = force_refresh
        self._token: Optional[str] = None
        self.clock = clock

    async def __aenter__(self) -> CalendarService:
        self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            timeout = httpx.Timeout(
                connect=10.0, read=float(self.config.request_timeout), write=10.0, pool=30.0
            )
            self.client = httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                headers={"Accept": "application/json"},
            )
            self._owns_client = True
        return self.client

    async def aclose(self) -> None:
        """Close the HTTP client if this service created it."""
        if self.client is not None and self._owns_client and not self.client.is_closed:
            await self.client.aclose()
            logger.debug("Closed Graph HTTP client")
        if self._owns_client:
            self.client = None

    async def get_todays_events(self) -> list[Event]:
        """Events from local midnight to the next midnight."""
        day_start = start_of_day(self.clock())
        return await self._get_calendar_view(day_start, day_start + datetime.timedelta(days=1))

    async def get_upcoming_events(self) -> list[Event]:
        """Events from now until seven days from now."""
        now = self.clock()
        return await self._get_calendar_view(now, now + UPCOMING_WINDOW)

    async def get_next_meeting(self) -> Optional[Event]:
        """First upcoming event that is in progress or still to start."""
        events = await self.get_upcoming_events()
        return find_next_meeting(events, self.clock())

    async def _bearer_token(self) -> str:
        if self._token is None:
            self._token = await asyncio.to_thread(
                self.auth.get_access_token, self.allow_interactive, self._force_refresh
            )
            self._force_refresh = False
        return self._token

    async def _get_calendar_view(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> list[Event]:
        url: Optional[str] = f"{self.config.graph_base_url.rstrip('/')}/me/calendarView"
        params: Optional[dict[str, str]] = {
            "startDateTime": to_graph_timestamp(start),
            "endDateTime": to_graph_timestamp(end),
            "$orderby": "start/dateTime",
            "$select": ",".join(SELECT_FIELDS),
            "$top": str(PAGE_SIZE),
        }

        events: list[Event] = []
        pages = 0
        while url and pages < MAX_PAGES:
            payload = await self._request_json(url, params)
            items = payload.get("value")
            if not isinstance(items, list):
                raise CalendarFetchError("calendar view response has no 'value' list")

            for item in items:
                if not isinstance(item, dict):
                    continue
                try:
                    events.append(parse_graph_event(item))
                except (ValidationError, TypeError, ValueError, AttributeError) as e:
                    logger.warning("Skipping malformed event %r: %s", item.get("subject"), e)

            # nextLink already carries the query string
            url = payload.get("@odata.nextLink")
            params = None
            pages += 1

        logger.debug(
            "Fetched %d events between %s and %s", len(events), start.isoformat(), end.isoformat()
        )
        return events

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with jitter, capped at MAX_BACKOFF_SECONDS."""
        base_backoff = min(self.config.retry_backoff_factor**attempt, MAX_BACKOFF_SECONDS)
        jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311
        return base_backoff + jitter

    async def _request_json(self, url: str, params: Optional[dict[str, str]]) -> dict[str, Any]:
        """GET a Graph resource with retry on network errors and timeouts.

        Raises:
            AuthRequiredError: HTTP 401/403 or no usable token
            TransientFetchError: Network failure, timeout, or throttling
            CalendarFetchError: Any other HTTP error or a non-JSON body
        """
        client = self._ensure_client()
        token = await self._bearer_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Prefer": 'outlook.timezone="UTC"',
        }

        max_retries = self.config.max_retries
        attempt = 0
        while True:
            try:
                response = await client.get(url, params=params, headers=headers)
                break
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if attempt >= max_retries:
                    logger.error("All %d attempts failed for %s: %s", attempt + 1, url, e)
                    kind = "timeout" if isinstance(e, httpx.TimeoutException) else "network error"
                    raise TransientFetchError(f"{kind} contacting calendar API: {e}") from e

                backoff_time = self._calculate_backoff(attempt)
                logger.warning(
                    "Request failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    max_retries + 1,
                    backoff_time,
                    e,
                )
                await asyncio.sleep(backoff_time)
                attempt += 1

        status = response.status_code
        if status in (401, 403):
            logger.warning("Calendar API rejected credentials (HTTP %d)", status)
            raise AuthRequiredError(
                f"authentication required: calendar API returned HTTP {status}", status
            )
        if status in TRANSIENT_STATUS_CODES:
            raise TransientFetchError(
                f"calendar API unavailable: HTTP {status} {response.reason_phrase}", status
            )
        if status >= 400:
            raise CalendarFetchError(
                f"HTTP {status}: {_graph_error_message(response)}", status
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CalendarFetchError(f"calendar API returned invalid JSON: {e}", status) from e
        if not isinstance(data, dict):
            raise CalendarFetchError("calendar API returned an unexpected payload", status)
        return data


def _graph_error_message(response: httpx.Response) -> str:
    """Extract error.message from a Graph error body, else the reason phrase."""
    try:
        message = _nested(response.json(), "error", "message")
    except ValueError:
        message = None
    return message or response.reason_phrase
