"""Status classification for calendar events.

This module is the single source of truth for turning an event and the
current time into an urgency tier. Status is never stored on the event; it
must be recomputed whenever the clock moves.
"""

from __future__ import annotations

import datetime
import logging

from .models import Event, EventStatus, ShowAs

logger = logging.getLogger(__name__)

URGENT_THRESHOLD = datetime.timedelta(minutes=5)
SOON_THRESHOLD = datetime.timedelta(minutes=15)

# Events this long are treated as day markers rather than meetings
LONG_EVENT_THRESHOLD = datetime.timedelta(hours=24)

_NON_BLOCKING_SHOW_AS = frozenset(
    {ShowAs.FREE, ShowAs.TENTATIVE, ShowAs.WORKING_ELSEWHERE}
)


def classify(event: Event, now: datetime.datetime) -> EventStatus:
    """Classify event relative to now.

    Rules, first match wins:
    1. now >= end                 -> past
    2. start <= now < end         -> current
    3. start - now <= 5 minutes   -> urgent
    4. start - now <= 15 minutes  -> soon
    5. otherwise                  -> upcoming

    Args:
        event: Event to classify
        now: Current time (aware)

    Returns:
        EventStatus for the event at that instant
    """
    if event.start is None or event.end is None:
        # Unparsable timestamps behave like the zero time: far in the past.
        logger.debug("Event %r has no usable start/end; classified past", event.subject)
        return EventStatus.PAST

    if now >= event.end:
        return EventStatus.PAST
    if event.start <= now:
        return EventStatus.CURRENT

    delta = event.start - now
    if delta <= URGENT_THRESHOLD:
        return EventStatus.URGENT
    if delta <= SOON_THRESHOLD:
        return EventStatus.SOON
    return EventStatus.UPCOMING


def time_until(event: Event, now: datetime.datetime) -> datetime.timedelta | None:
    """Return start - now (negative once started), or None without a start."""
    if event.start is None:
        return None
    return event.start - now


def is_blocking(event: Event) -> bool:
    """Return True when the event represents real, non-free time.

    All-day entries, free/tentative/working-elsewhere markers and anything
    lasting a day or more are placeholders, not meetings.
    """
    if event.is_all_day:
        return False
    if event.show_as in _NON_BLOCKING_SHOW_AS:
        return False
    duration = event.duration
    return not (duration is not None and duration >= LONG_EVENT_THRESHOLD.total_seconds())
