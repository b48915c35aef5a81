"""Click-to-join: which link to open for the selected event, and opening it."""

from __future__ import annotations

import datetime
import logging
import subprocess  # nosec B404
import sys
from dataclasses import dataclass
from urllib.parse import urlparse

from .classifier import classify
from .models import Event, EventStatus

logger = logging.getLogger(__name__)

# Only events this close trigger an automatic open
CLICKABLE_STATUSES = frozenset({EventStatus.CURRENT, EventStatus.URGENT})

OPEN_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class ClickTarget:
    """Link chosen for a click and whether it is a Teams join link."""

    url: str
    is_teams: bool = False


def resolve_click_target(event: Event | None, now: datetime.datetime) -> ClickTarget | None:
    """Decide what a click should open for the selected event.

    Args:
        event: Selected event, or None when nothing was selected
        now: Current time

    Returns:
        ClickTarget, or None when the click should do nothing
    """
    if event is None:
        return None

    status = classify(event, now)
    if status not in CLICKABLE_STATUSES:
        logger.debug("Event %r is %s; click does nothing", event.subject, status.value)
        return None

    if event.is_online_meeting and event.teams_link:
        return ClickTarget(url=event.teams_link, is_teams=True)
    if event.web_link:
        return ClickTarget(url=event.web_link)

    logger.debug("Event %r has no link to open", event.subject)
    return None


def teams_app_uri(url: str) -> str | None:
    """Translate a Teams web join URL into the msteams: app scheme.

    Returns None for URLs that are not on a teams.microsoft.com host.
    """
    parsed = urlparse(url)
    host = parsed.hostname or ""
    if host != "teams.microsoft.com" and not host.endswith(".teams.microsoft.com"):
        return None
    uri = f"msteams:{parsed.path}"
    if parsed.query:
        uri += f"?{parsed.query}"
    return uri


class LinkOpener:
    """Opens URLs through the platform's default handler."""

    def __init__(self, platform: str | None = None) -> None:
        self.platform = platform or sys.platform

    def _command(self, url: str) -> list[str]:
        if self.platform.startswith("linux") or "bsd" in self.platform:
            return ["xdg-open", url]
        if self.platform == "darwin":
            return ["open", url]
        if self.platform == "win32":
            return ["rundll32", "url.dll,FileProtocolHandler", url]
        raise OSError(f"unsupported platform: {self.platform}")

    def open(self, url: str) -> bool:
        """Open url; returns False (after logging) on any failure."""
        try:
            cmd = self._command(url)
            result = subprocess.run(  # nosec B603 - argument list, no shell
                cmd,
                capture_output=True,
                text=True,
                timeout=OPEN_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Failed to open %s: %s", url, e)
            return False

        if result.returncode != 0:
            logger.warning(
                "Opener exited with %d for %s: %s",
                result.returncode,
                url,
                (result.stderr or "").strip(),
            )
            return False

        logger.debug("Opened %s", url)
        return True

    def open_target(self, target: ClickTarget) -> bool:
        """Open a click target, preferring the Teams app for Teams links."""
        if target.is_teams:
            app_uri = teams_app_uri(target.url)
            if app_uri and self.open(app_uri):
                logger.info("Opened meeting in Teams app")
                return True
            logger.debug("Teams app not available, falling back to browser")
        return self.open(target.url)
