"""calendar_widget - Microsoft 365 meeting status for Waybar and the terminal.

The package keeps imports light so that the one-shot Waybar invocation (run
every minute by the bar) starts quickly. Heavy modules are imported by the
CLI modes that need them.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str], debug: bool = False) -> None:
    """Initialize root logging to stream to stderr.

    stdout is reserved for command output (Waybar reads JSON from it), so the
    handler always writes to stderr.

    Honors CALENDAR_WIDGET_DEBUG (truthy values: "1", "true", "yes", "on"),
    which forces DEBUG verbosity without changing the command line.
    """
    import logging
    import os
    import sys

    debug_env = os.environ.get("CALENDAR_WIDGET_DEBUG", "")
    if debug or debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        from colorlog import ColoredFormatter

        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message
        # Only the level is colorized; no_color when stderr is not a terminal.
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        formatter = ColoredFormatter(
            fmt,
            datefmt="%H:%M:%S",
            log_colors=log_colors,
            no_color=not sys.stderr.isatty(),
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)

    level = logging.WARNING
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.WARNING)
    root.setLevel(level)

    # Third-party libraries that are chatty at DEBUG
    for noisy in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )
