"""Keyboard input handling for the interactive terminal widget."""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from collections.abc import Awaitable
from enum import Enum
from typing import Any, Callable, Optional, Union

logger = logging.getLogger(__name__)

KeyCallback = Union[Callable[[], None], Callable[[], Awaitable[None]]]

POLL_INTERVAL_SECONDS = 0.05
MAX_ESCAPE_SEQUENCE = 32

ESC = "\x1b"
# xterm mouse reporting: button events, SGR extended coordinates
MOUSE_REPORTING_ON = "\x1b[?1000h\x1b[?1006h"
MOUSE_REPORTING_OFF = "\x1b[?1006l\x1b[?1000l"
_SGR_MOUSE = re.compile(r"^\x1b\[<(\d+);(\d+);(\d+)([Mm])$")
LEFT_BUTTON = 0


class KeyCode(Enum):
    """Commands understood by the interactive widget."""

    QUIT = "quit"
    REFRESH = "refresh"
    OPEN = "open"
    UNKNOWN = "unknown"


_KEY_MAP = {
    "q": KeyCode.QUIT,
    "\x03": KeyCode.QUIT,  # Ctrl-C when ISIG is off
    "r": KeyCode.REFRESH,
    "\r": KeyCode.OPEN,
    "\n": KeyCode.OPEN,
    " ": KeyCode.OPEN,
}


def parse_mouse_event(sequence: str) -> KeyCode:
    """Map an SGR mouse report to a KeyCode; a left-button press opens."""
    match = _SGR_MOUSE.match(sequence)
    if match is None:
        return KeyCode.UNKNOWN
    button, _col, _row, action = match.groups()
    if int(button) == LEFT_BUTTON and action == "M":
        return KeyCode.OPEN
    return KeyCode.UNKNOWN


def parse_key(key_data: str) -> KeyCode:
    """Map raw key input (a character or an escape sequence) to a KeyCode."""
    if not key_data:
        return KeyCode.UNKNOWN
    if key_data.startswith(ESC) and len(key_data) > 1:
        return parse_mouse_event(key_data)
    return _KEY_MAP.get(key_data.lower(), KeyCode.UNKNOWN)


class KeyboardHandler:
    """Reads keystrokes and mouse clicks from a POSIX terminal in non-canonical mode."""

    def __init__(self, stream: Any = None, output: Any = None) -> None:
        self._stream = stream if stream is not None else sys.stdin
        self._output = output if output is not None else sys.stdout
        self._mouse_enabled = False
        self._running = False
        self._key_callbacks: dict[KeyCode, KeyCallback] = {}
        self._old_settings: Optional[list[Any]] = None

    def register_key_handler(self, key_code: KeyCode, callback: KeyCallback) -> None:
        """Register a callback for a specific key."""
        self._key_callbacks[key_code] = callback
        logger.debug("Registered handler for key: %s", key_code)

    @property
    def is_running(self) -> bool:
        return self._running

    def _is_tty(self) -> bool:
        try:
            return bool(self._stream.isatty())
        except (AttributeError, ValueError):
            return False

    def _setup_terminal(self) -> None:
        """Disable canonical mode and echo so keys arrive one at a time."""
        if sys.platform == "win32" or not self._is_tty():
            return
        try:
            import termios  # noqa: PLC0415

            fd = self._stream.fileno()
            self._old_settings = termios.tcgetattr(fd)
            new_settings = termios.tcgetattr(fd)
            new_settings[3] &= ~(termios.ICANON | termios.ECHO)
            new_settings[6][termios.VMIN] = 0
            new_settings[6][termios.VTIME] = 1
            termios.tcsetattr(fd, termios.TCSAFLUSH, new_settings)
            logger.debug("Terminal set to raw input mode")
            self._set_mouse_reporting(True)
        except (ImportError, OSError) as e:
            logger.warning("Could not set terminal to raw mode: %s", e)
            self._old_settings = None

    def _set_mouse_reporting(self, enabled: bool) -> None:
        try:
            self._output.write(MOUSE_REPORTING_ON if enabled else MOUSE_REPORTING_OFF)
            self._output.flush()
        except (OSError, ValueError) as e:
            logger.debug("Could not toggle mouse reporting: %s", e)
            return
        self._mouse_enabled = enabled

    def _restore_terminal(self) -> None:
        if self._mouse_enabled:
            self._set_mouse_reporting(False)
        if self._old_settings is None:
            return
        try:
            import termios  # noqa: PLC0415

            termios.tcsetattr(self._stream.fileno(), termios.TCSADRAIN, self._old_settings)
            logger.debug("Terminal settings restored")
        except (ImportError, OSError) as e:
            logger.warning("Could not restore terminal settings: %s", e)
        finally:
            self._old_settings = None

    def _key_available(self) -> bool:
        import select  # noqa: PLC0415

        readable, _, _ = select.select([self._stream], [], [], 0)
        return bool(readable)

    def _read_escape_sequence(self) -> str:
        """Read the rest of an escape sequence already waiting on the stream."""
        sequence = ""
        while len(sequence) < MAX_ESCAPE_SEQUENCE and self._key_available():
            char = self._stream.read(1)
            if not char:
                break
            sequence += char
            # Final byte of a CSI sequence
            if len(sequence) > 1 and (char.isalpha() or char == "~"):
                break
        return sequence

    async def start_listening(self) -> None:
        """Dispatch keystrokes to registered callbacks until stopped."""
        if self._running:
            logger.warning("Keyboard handler already running")
            return
        if not self._is_tty():
            logger.info("stdin is not a terminal; keyboard commands disabled")
            return

        self._running = True
        self._setup_terminal()
        try:
            while self._running:
                if not self._key_available():
                    await asyncio.sleep(POLL_INTERVAL_SECONDS)
                    continue
                key_data = self._stream.read(1)
                if key_data == "":
                    # EOF
                    break
                if key_data == ESC:
                    key_data += self._read_escape_sequence()
                await self.handle_key_input(key_data)
        finally:
            self._restore_terminal()
            self._running = False
            logger.debug("Stopped keyboard input listening")

    def stop_listening(self) -> None:
        self._running = False

    async def handle_key_input(self, key_data: str) -> None:
        """Run the callback registered for key_data, if any."""
        key_code = parse_key(key_data)
        logger.debug("Received key_data=%r, parsed as=%s", key_data, key_code)

        callback = self._key_callbacks.get(key_code)
        if key_code is KeyCode.UNKNOWN or callback is None:
            return

        result = callback()
        if asyncio.iscoroutine(result):
            await result
