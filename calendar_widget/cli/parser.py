"""Command-line argument parsing for calendar-widget."""

from __future__ import annotations

import argparse

from .. import __version__

DEFAULT_COMMAND = "widget"


def positive_int(value: str) -> int:
    """argparse type for strictly positive integers."""
    try:
        number = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from e
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {number}")
    return number


def _add_global_options(parser: argparse.ArgumentParser, suppress: bool) -> None:
    # Subcommands repeat the global flags with SUPPRESS defaults so that
    # "calendar-widget waybar --debug" does not reset a value given earlier.
    defaults = {"config": argparse.SUPPRESS, "debug": argparse.SUPPRESS} if suppress else {
        "config": None,
        "debug": False,
    }
    parser.add_argument(
        "--config",
        type=str,
        default=defaults["config"],
        metavar="PATH",
        help="config file (default is $HOME/.config/calendar-widget/config.json)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=defaults["debug"],
        help="enable debug logging on stderr",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one subcommand per mode.

    Running without a subcommand starts the interactive terminal widget.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="calendar-widget",
        description=(
            "A calendar widget for Waybar that shows your next Microsoft 365 meeting "
            "with urgency indicators and click-to-join for Teams meetings."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Run the terminal widget (default)
  %(prog)s waybar                   # Print one Waybar JSON payload
  %(prog)s click                    # Join the current or imminent meeting
  %(prog)s setup --token-command "az account get-access-token --resource-type ms-graph"
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_global_options(parser, suppress=False)
    parser.set_defaults(command=DEFAULT_COMMAND, refresh=None, compact=False)

    common = argparse.ArgumentParser(add_help=False)
    _add_global_options(common, suppress=True)

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    widget = subparsers.add_parser(
        "widget", parents=[common], help="Run the calendar widget in the terminal"
    )
    widget.add_argument(
        "--refresh", type=positive_int, default=None, help="refresh interval in seconds"
    )
    widget.add_argument("--compact", action="store_true", help="use compact display mode")

    waybar = subparsers.add_parser(
        "waybar", parents=[common], help="Print one JSON payload for a Waybar custom module"
    )
    waybar.add_argument(
        "--refresh",
        type=positive_int,
        default=None,
        help="refresh interval in seconds (Waybar drives polling; accepted for module configs)",
    )
    waybar.add_argument(
        "--force-refresh",
        action="store_true",
        help="ignore the cached token and acquire a new one on this run",
    )

    subparsers.add_parser(
        "tooltip", parents=[common], help="Show today's schedule and the coming week"
    )
    subparsers.add_parser(
        "click",
        parents=[common],
        help="Open the current meeting, or re-authenticate when required",
    )

    setup = subparsers.add_parser(
        "setup", parents=[common], help="Write the configuration and acquire a token"
    )
    setup.add_argument(
        "--token-command",
        type=str,
        default=None,
        metavar="CMD",
        help="command that prints a Microsoft Graph access token",
    )

    subparsers.add_parser("reauth", parents=[common], help="Clear tokens and re-authenticate")
    subparsers.add_parser(
        "logout", parents=[common], help="Remove stored tokens and configuration"
    )
    subparsers.add_parser(
        "validate", parents=[common], help="Check configuration and authentication"
    )
    subparsers.add_parser("debug", parents=[common], help="Show detailed calendar access info")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse argv, filling in the default command when none is given."""
    args = create_parser().parse_args(argv)
    if args.command is None:
        args.command = DEFAULT_COMMAND
    return args
