"""Selection of the single most relevant event to display or open."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable, Sequence

from .classifier import classify, is_blocking
from .models import Event, EventStatus

logger = logging.getLogger(__name__)

# Statuses examined, most relevant first. Past events are never selectable.
STATUS_PRIORITY: tuple[EventStatus, ...] = (
    EventStatus.CURRENT,
    EventStatus.URGENT,
    EventStatus.SOON,
    EventStatus.UPCOMING,
)


class EventSelector:
    """Picks the best event using status priority and a blocking tiebreak."""

    def __init__(self, blocking_checker: Callable[[Event], bool] = is_blocking):
        """Initialize event selector.

        Args:
            blocking_checker: Callable deciding whether an event is real busy time
        """
        self.is_blocking = blocking_checker

    def select_best(
        self,
        events: Sequence[Event],
        now: datetime.datetime,
    ) -> Event | None:
        """Return the most relevant event, or None when nothing is selectable.

        Business rules:
        1. Status tiers are examined in order current, urgent, soon, upcoming
        2. Within a tier, the first blocking event in input order wins
        3. Failing that, the first event of the tier wins regardless of blocking
        4. Upcoming candidates must start strictly after now

        Input order is preserved within a tier; events are not re-sorted.

        Args:
            events: Events in the order returned by the calendar source
            now: Current time

        Returns:
            Selected event or None
        """
        if not events:
            return None

        # Classify once per call so both passes see the same status.
        classified = [(ev, classify(ev, now)) for ev in events]

        for target in STATUS_PRIORITY:
            candidates = [
                ev
                for ev, status in classified
                if status is target and self._eligible(ev, target, now)
            ]
            if not candidates:
                continue

            for ev in candidates:
                if self.is_blocking(ev):
                    logger.debug("Selected blocking %s event: %r", target.value, ev.subject)
                    return ev

            logger.debug(
                "No blocking %s event; falling back to %r", target.value, candidates[0].subject
            )
            return candidates[0]

        return None

    @staticmethod
    def _eligible(event: Event, target: EventStatus, now: datetime.datetime) -> bool:
        # Guards against clock skew and zero-duration artifacts.
        if target is EventStatus.UPCOMING:
            return event.start is not None and event.start > now
        return True


_default_selector = EventSelector()


def select_best(events: Sequence[Event], now: datetime.datetime) -> Event | None:
    """Select the event to display."""
    return _default_selector.select_best(events, now)


def select_best_for_click(events: Sequence[Event], now: datetime.datetime) -> Event | None:
    """Select the event a click acts on; identical to the display choice."""
    return _default_selector.select_best(events, now)


def find_next_meeting(events: Sequence[Event], now: datetime.datetime) -> Event | None:
    """Return the first event that is in progress or has not started yet."""
    for ev in events:
        if ev.start is None or ev.end is None:
            continue
        if ev.start > now or (ev.start < now < ev.end):
            return ev
    return None
