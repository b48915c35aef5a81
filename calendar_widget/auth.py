"""Bearer token cache for the Graph API with atomic JSON persistence.

The widget does not implement an OAuth flow itself. A token comes from one of:
- the CALENDAR_WIDGET_ACCESS_TOKEN environment variable
- the cached token.json, while it is more than five minutes from expiry
- the configured credential helper (``token_command``), when interactive
  acquisition is allowed

Anything else is reported as AuthRequiredError so callers can prompt for
re-authentication instead of showing a generic failure.
"""

from __future__ import annotations

import contextlib
import datetime
import json
import logging
import os
import shlex
import subprocess  # nosec B404
import tempfile
import threading
from pathlib import Path
from typing import Any

from dateutil import parser as date_parser
from pydantic import ValidationError

from .config_manager import ConfigPaths
from .exceptions import AuthRequiredError, TokenAcquisitionError
from .models import TokenStore, WidgetConfig
from .timezone_utils import now_local

logger = logging.getLogger(__name__)

ACCESS_TOKEN_ENV = "CALENDAR_WIDGET_ACCESS_TOKEN"

# Tokens expiring within this margin are treated as already expired
EXPIRY_MARGIN = datetime.timedelta(minutes=5)

# Lifetime assumed for helpers that print a bare token without expiry
DEFAULT_TOKEN_LIFETIME = datetime.timedelta(minutes=55)

TOKEN_COMMAND_TIMEOUT_SECONDS = 600

GRAPH_SCOPES = (
    "https://graph.microsoft.com/Calendars.Read",
    "https://graph.microsoft.com/User.Read",
)


def is_token_valid(token: TokenStore | None, now: datetime.datetime | None = None) -> bool:
    """Return True if token exists and does not expire within the margin."""
    if token is None or not token.access_token:
        return False
    now = now or now_local()
    return now + EXPIRY_MARGIN < token.expires_at


def parse_token_output(output: str, now: datetime.datetime) -> TokenStore:
    """Build a TokenStore from credential helper output.

    Accepts a bare token, or JSON in either the Azure CLI shape
    (``accessToken``, ``expiresOn``/``expires_on``) or the OAuth shape
    (``access_token``, ``expires_in``, ``refresh_token``).

    Raises:
        TokenAcquisitionError: If no token can be found in the output
    """
    text = output.strip()
    if not text:
        raise TokenAcquisitionError("credential helper printed nothing")

    if not text.startswith("{"):
        return TokenStore(access_token=text, expires_at=now + DEFAULT_TOKEN_LIFETIME)

    try:
        data: dict[str, Any] = json.loads(text)
    except json.JSONDecodeError as e:
        raise TokenAcquisitionError(f"credential helper printed invalid JSON: {e}") from e

    access_token = data.get("accessToken") or data.get("access_token")
    if not access_token:
        raise TokenAcquisitionError("credential helper output has no access token")

    expires_at = _parse_expiry(data, now)
    return TokenStore(
        access_token=access_token,
        refresh_token=data.get("refresh_token") or data.get("refreshToken") or "",
        expires_at=expires_at,
        token_type=data.get("tokenType") or data.get("token_type") or "Bearer",
    )


def _parse_expiry(data: dict[str, Any], now: datetime.datetime) -> datetime.datetime:
    if data.get("expires_on") is not None:
        try:
            return datetime.datetime.fromtimestamp(int(data["expires_on"]), tz=datetime.timezone.utc)
        except (TypeError, ValueError):
            logger.debug("Ignoring unparsable expires_on=%r", data["expires_on"])

    if data.get("expires_in") is not None:
        try:
            return now + datetime.timedelta(seconds=int(data["expires_in"]))
        except (TypeError, ValueError):
            logger.debug("Ignoring unparsable expires_in=%r", data["expires_in"])

    if data.get("expiresOn"):
        try:
            expires_on = date_parser.parse(data["expiresOn"])
            # Azure CLI prints local wall time without an offset
            return expires_on if expires_on.tzinfo else expires_on.astimezone()
        except (ValueError, OverflowError):
            logger.debug("Ignoring unparsable expiresOn=%r", data["expiresOn"])

    return now + DEFAULT_TOKEN_LIFETIME


class AuthStore:
    """Owns token.json and hands out bearer tokens."""

    def __init__(self, paths: ConfigPaths, config: WidgetConfig) -> None:
        self._path = paths.token_file
        self.config = config
        self._lock = threading.Lock()

    @property
    def token_path(self) -> Path:
        return self._path

    def load_token(self) -> TokenStore | None:
        """Read token.json; a missing or unreadable file yields None."""
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                return TokenStore.model_validate(json.load(fh))
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Failed to read token cache %s: %s", self._path, exc)
            return None

    def save_token(self, token: TokenStore) -> None:
        """Persist token.json atomically with owner-only permissions.

        Writes to a temporary file in the same directory, then replaces.
        """
        dirpath = self._path.parent
        dirpath.mkdir(parents=True, exist_ok=True)

        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=dirpath, delete=False, encoding="utf-8", suffix=".tmp"
            ) as tf:
                tmp_path = Path(tf.name)
                os.chmod(tmp_path, 0o600)
                tf.write(token.model_dump_json(indent=2))
                tf.flush()
                with contextlib.suppress(OSError):
                    os.fsync(tf.fileno())
            tmp_path.replace(self._path)
        except OSError:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise

        logger.debug("Cached token until %s", token.expires_at.isoformat())

    def clear_tokens(self) -> bool:
        """Remove the cached token. Returns True if a file was removed."""
        with self._lock:
            try:
                self._path.unlink()
            except FileNotFoundError:
                return False
        logger.info("Cleared cached token %s", self._path)
        return True

    def get_access_token(self, allow_interactive: bool = False, force_refresh: bool = False) -> str:
        """Return a bearer token for the Graph API.

        Args:
            allow_interactive: Permit running the credential helper
            force_refresh: Ignore the cached token

        Raises:
            AuthRequiredError: No valid cached token and acquisition disallowed
                or not configured
            TokenAcquisitionError: The credential helper failed
        """
        env_token = os.environ.get(ACCESS_TOKEN_ENV)
        if env_token:
            return env_token

        with self._lock:
            if not force_refresh:
                cached = self.load_token()
                if cached is not None and is_token_valid(cached):
                    return cached.access_token

            if not allow_interactive:
                raise AuthRequiredError(
                    "authentication required: no valid cached token and interactive login disabled"
                )

            token = self._acquire_token()

            try:
                self.save_token(token)
            except OSError as e:
                logger.warning("Failed to cache token: %s", e)

            return token.access_token

    def _acquire_token(self) -> TokenStore:
        command = self.config.token_command
        if not command:
            raise AuthRequiredError(
                "no credential helper configured; run 'calendar-widget setup "
                "--token-command CMD' or set CALENDAR_WIDGET_ACCESS_TOKEN"
            )

        logger.info("Requesting a new token from the credential helper")
        try:
            result = subprocess.run(  # nosec B603 - argument list, no shell
                shlex.split(command),
                capture_output=True,
                text=True,
                timeout=TOKEN_COMMAND_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise TokenAcquisitionError(f"failed to run credential helper: {e}") from e

        if result.returncode != 0:
            raise TokenAcquisitionError(
                f"credential helper exited with {result.returncode}: {result.stderr.strip()}"
            )

        return parse_token_output(result.stdout, now_local())
