"""Clock and timezone helpers for calendar_widget."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "CALENDAR_WIDGET_TEST_TIME"

# Windows timezone names Graph may return when the UTC preference header is
# not honoured (shared mailboxes, some on-prem Exchange hybrids).
WINDOWS_TZ_MAP: dict[str, str] = {
    "Pacific Standard Time": "America/Los_Angeles",
    "Mountain Standard Time": "America/Denver",
    "Central Standard Time": "America/Chicago",
    "Eastern Standard Time": "America/New_York",
    "GMT Standard Time": "Europe/London",
    "Greenwich Standard Time": "Atlantic/Reykjavik",
    "Romance Standard Time": "Europe/Paris",
    "W. Europe Standard Time": "Europe/Berlin",
    "Central Europe Standard Time": "Europe/Budapest",
    "Central European Standard Time": "Europe/Warsaw",
    "FLE Standard Time": "Europe/Helsinki",
    "India Standard Time": "Asia/Kolkata",
    "China Standard Time": "Asia/Shanghai",
    "Tokyo Standard Time": "Asia/Tokyo",
    "AUS Eastern Standard Time": "Australia/Sydney",
}


def now_local() -> datetime.datetime:
    """Return the current time as an aware datetime in the local zone.

    Can be overridden for testing via the CALENDAR_WIDGET_TEST_TIME environment
    variable (ISO 8601, e.g. "2025-10-27T08:20:00+02:00"). A naive override is
    taken as local time.
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is None:
                return dt.astimezone()
            return dt
        except ValueError as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.datetime.now().astimezone()


def start_of_day(dt: datetime.datetime) -> datetime.datetime:
    """Return local midnight at the start of the day containing dt.

    now_local() yields a fixed UTC offset, which is wrong for midnight on a
    DST change day. Such values are re-localised from the wall-clock date;
    datetimes carrying a real zone keep it.
    """
    midnight = datetime.datetime.combine(dt.date(), datetime.time())
    is_local_offset = dt.astimezone().utcoffset() == dt.utcoffset()
    if isinstance(dt.tzinfo, datetime.timezone) and is_local_offset:
        return midnight.astimezone()
    return midnight.replace(tzinfo=dt.tzinfo)


def resolve_timezone(tz_name: str | None) -> datetime.tzinfo:
    """Resolve a Graph timeZone value to a tzinfo.

    Accepts IANA names and the common Windows names. Unknown or missing names
    resolve to UTC, which is what Graph uses when no preference is sent.
    """
    if not tz_name or tz_name.upper() in ("UTC", "ETC/UTC", "GMT"):
        return datetime.timezone.utc

    iana = WINDOWS_TZ_MAP.get(tz_name, tz_name)
    try:
        return zoneinfo.ZoneInfo(iana)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, assuming UTC", tz_name)
        return datetime.timezone.utc


def to_graph_timestamp(dt: datetime.datetime) -> str:
    """Format an aware datetime the way the calendarView query expects."""
    utc = dt.astimezone(datetime.timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
