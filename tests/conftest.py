"""Shared test configuration with lightweight fixtures."""

from __future__ import annotations

import datetime
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import pytest

from calendar_widget.config_manager import ConfigPaths
from calendar_widget.models import Event, ShowAs

# Fixed instant used across tests: Wednesday 2025-01-15 10:00 UTC
FIXED_NOW = datetime.datetime(2025, 1, 15, 10, 0, tzinfo=datetime.timezone.utc)


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "fast: Tests without I/O beyond tmp_path")


@pytest.fixture(autouse=True)
def _clean_widget_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep CALENDAR_WIDGET_* variables from the developer's shell out of tests."""
    for name in (
        "CALENDAR_WIDGET_ACCESS_TOKEN",
        "CALENDAR_WIDGET_CONFIG_DIR",
        "CALENDAR_WIDGET_DEBUG",
        "CALENDAR_WIDGET_GRAPH_URL",
        "CALENDAR_WIDGET_LOG_LEVEL",
        "CALENDAR_WIDGET_REFRESH_INTERVAL",
        "CALENDAR_WIDGET_REQUEST_TIMEOUT",
        "CALENDAR_WIDGET_TEST_TIME",
        "CALENDAR_WIDGET_TOKEN_COMMAND",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def now() -> datetime.datetime:
    return FIXED_NOW


@pytest.fixture
def make_event(now: datetime.datetime) -> Callable[..., Event]:
    """Factory building events relative to the fixed clock.

    start/end are offsets in minutes from now; end defaults to start + 30.
    """

    def _make(
        subject: str = "Meeting",
        start: Optional[float] = 10,
        end: Optional[float] = None,
        **kwargs: Any,
    ) -> Event:
        start_dt = None if start is None else now + datetime.timedelta(minutes=start)
        if end is None and start is not None:
            end_dt = start_dt + datetime.timedelta(minutes=30) if start_dt else None
        else:
            end_dt = None if end is None else now + datetime.timedelta(minutes=end)
        kwargs.setdefault("show_as", ShowAs.BUSY)
        return Event(subject=subject, start=start_dt, end=end_dt, **kwargs)

    return _make


@pytest.fixture
def config_paths(tmp_path: Path) -> ConfigPaths:
    return ConfigPaths(
        config_file=tmp_path / "calendar-widget" / "config.json",
        token_file=tmp_path / "calendar-widget" / "token.json",
    )
