"""Exception hierarchy for calendar_widget.

Errors carry their kind in their type so callers can tell an authentication
problem from a transient network failure without inspecting message text.
"""

from __future__ import annotations


class CalendarWidgetError(Exception):
    """Base exception for all calendar_widget errors."""


class ConfigError(CalendarWidgetError):
    """Configuration file could not be read, parsed or written."""


class AuthRequiredError(CalendarWidgetError):
    """No usable credential is available.

    Raised when:
    - No cached token exists, or it expires within the safety margin, and
      interactive acquisition is disallowed
    - The calendar API rejects the bearer token (HTTP 401/403)
    - Interactive acquisition is allowed but no credential helper is configured

    Callers respond by running re-authentication rather than reporting a
    generic failure.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CalendarFetchError(CalendarWidgetError):
    """Calendar data could not be retrieved or decoded.

    Covers unexpected HTTP status codes and malformed payloads. Not retried.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientFetchError(CalendarFetchError):
    """Network failure or timeout while talking to the calendar API.

    Recoverable: the current poll cycle is reported as failed and the previous
    display state is simply not refreshed.
    """


class TokenAcquisitionError(AuthRequiredError):
    """The configured credential helper failed to produce a token."""
