"""Data models for calendar_widget."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

# Microsoft Graph PowerShell public client ID, usable without an app registration
PUBLIC_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"
# Common tenant allows personal and work accounts
COMMON_TENANT = "common"
REDIRECT_URI = "http://localhost:12345/auth/callback"
GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


class EventStatus(str, Enum):
    """Time-derived urgency tier of an event."""

    PAST = "past"
    CURRENT = "current"
    URGENT = "urgent"
    SOON = "soon"
    UPCOMING = "upcoming"


class ShowAs(str, Enum):
    """Graph free/busy values."""

    FREE = "free"
    TENTATIVE = "tentative"
    BUSY = "busy"
    OUT_OF_OFFICE = "oof"
    WORKING_ELSEWHERE = "workingElsewhere"
    UNKNOWN = "unknown"


class Event(BaseModel):
    """One calendar entry, built fresh from each API response.

    start/end are None when the API value was missing or unparsable.
    """

    model_config = ConfigDict(frozen=True)

    subject: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    location: str = ""
    web_link: str = ""
    teams_link: str = ""
    is_online_meeting: bool = False
    organizer: str = ""
    attendees: tuple[str, ...] = ()
    body: str = ""

    is_all_day: bool = False
    show_as: ShowAs = ShowAs.BUSY

    @model_validator(mode="after")
    def _check_time_order(self) -> Event:
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError("event end must not precede its start")
        return self

    @property
    def duration(self) -> Optional[float]:
        """Duration in seconds, or None when either bound is absent."""
        if self.start is None or self.end is None:
            return None
        return (self.end - self.start).total_seconds()


class WaybarOutput(BaseModel):
    """Status payload consumed by a Waybar custom module."""

    model_config = ConfigDict(populate_by_name=True)

    text: str
    css_class: str = Field(default="", alias="class")
    alt: str = ""
    tooltip: Optional[str] = None

    def to_json(self) -> str:
        """Serialize with the `class` key and without an empty tooltip."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class TokenStore(BaseModel):
    """Cached bearer credential as persisted in token.json."""

    access_token: str
    refresh_token: str = ""
    expires_at: datetime
    token_type: str = "Bearer"

    @field_serializer("expires_at")
    def serialize_expires_at(self, dt: datetime) -> str:
        """Serialize expiry to ISO format."""
        return dt.isoformat()


class WidgetConfig(BaseModel):
    """Persisted configuration (config.json)."""

    # Identity fields kept so config.json stays readable by other clients of
    # the same file; tokens come from token_command, not an OAuth flow.
    client_id: str = PUBLIC_CLIENT_ID
    tenant_id: str = COMMON_TENANT
    redirect_uri: str = REDIRECT_URI
    use_public_client: bool = True

    # External credential helper printing a Graph token (raw or Azure CLI JSON)
    token_command: Optional[str] = Field(
        default=None, description="Shell command that prints a Graph access token"
    )

    graph_base_url: str = GRAPH_BASE_URL
    refresh_interval: int = Field(default=60, ge=5, description="Refresh interval in seconds")
    request_timeout: int = Field(default=30, ge=1, description="HTTP timeout in seconds")
    max_retries: int = Field(default=2, ge=0)
    retry_backoff_factor: float = Field(default=1.5, gt=0)
