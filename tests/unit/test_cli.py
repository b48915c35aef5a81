"""Unit tests for the calendar_widget.cli package."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from calendar_widget.auth import AuthStore
from calendar_widget.cli import MODE_HANDLERS, main, main_entry
from calendar_widget.cli.config import apply_cli_overrides, load_context
from calendar_widget.cli.modes.click import run_click_mode
from calendar_widget.cli.modes.debug import describe_events
from calendar_widget.cli.modes.logout import run_logout_mode
from calendar_widget.cli.modes.setup import run_setup_mode
from calendar_widget.cli.modes.validate import guidance_for, run_validate_mode
from calendar_widget.cli.modes.waybar import run_waybar_mode
from calendar_widget.cli.parser import parse_args
from calendar_widget.config_manager import ConfigManager
from calendar_widget.exceptions import (
    AuthRequiredError,
    CalendarFetchError,
    ConfigError,
    TokenAcquisitionError,
    TransientFetchError,
)
from calendar_widget.models import TokenStore, WaybarOutput, WidgetConfig

pytestmark = pytest.mark.unit


def args_for(command, config_paths, *extra):
    """Parse a subcommand pointed at the temporary config file."""
    return parse_args([command, "--config", str(config_paths.config_file), *extra])


class TestParser:
    """Tests for argument parsing."""

    def test_parse_args_when_no_command_then_widget_defaults(self):
        args = parse_args([])
        assert args.command == "widget"
        assert args.config is None
        assert args.debug is False
        assert args.refresh is None
        assert args.compact is False

    def test_parse_args_when_widget_options_then_parsed(self):
        args = parse_args(["widget", "--refresh", "30", "--compact"])
        assert args.command == "widget"
        assert args.refresh == 30
        assert args.compact is True

    def test_parse_args_when_waybar_force_refresh_then_set(self):
        args = parse_args(["waybar", "--force-refresh"])
        assert args.command == "waybar"
        assert args.force_refresh is True

    def test_parse_args_when_global_flag_before_command_then_kept(self):
        args = parse_args(["--config", "/tmp/cw.json", "--debug", "waybar"])
        assert args.config == "/tmp/cw.json"
        assert args.debug is True

    def test_parse_args_when_global_flag_after_command_then_applied(self):
        args = parse_args(["click", "--debug", "--config", "/tmp/cw.json"])
        assert args.command == "click"
        assert args.config == "/tmp/cw.json"
        assert args.debug is True

    def test_parse_args_when_setup_token_command_then_parsed(self):
        args = parse_args(["setup", "--token-command", "az account get-access-token"])
        assert args.token_command == "az account get-access-token"

    @pytest.mark.parametrize("value", ["0", "-5", "soon"])
    def test_parse_args_when_refresh_not_positive_then_exits(self, value):
        with pytest.raises(SystemExit):
            parse_args(["widget", "--refresh", value])

    def test_parse_args_when_unknown_command_then_exits(self):
        with pytest.raises(SystemExit):
            parse_args(["calendar"])

    def test_mode_handlers_when_listed_then_every_command_present(self):
        assert set(MODE_HANDLERS) == {
            "widget",
            "waybar",
            "tooltip",
            "click",
            "setup",
            "reauth",
            "logout",
            "validate",
            "debug",
        }


class TestCliConfig:
    """Tests for configuration wiring."""

    def test_apply_cli_overrides_when_refresh_then_clamped(self):
        config = apply_cli_overrides(WidgetConfig(), SimpleNamespace(refresh=2))
        assert config.refresh_interval == 5

    def test_apply_cli_overrides_when_no_refresh_then_unchanged(self):
        config = WidgetConfig(refresh_interval=90)
        assert apply_cli_overrides(config, SimpleNamespace(refresh=None)) is config

    def test_load_context_when_config_flag_then_paths_follow(self, config_paths):
        ctx = load_context(SimpleNamespace(config=str(config_paths.config_file), refresh=120))
        assert ctx.paths == config_paths
        assert ctx.config.refresh_interval == 120
        assert ctx.auth.config is ctx.config

    def test_load_context_when_invalid_config_then_raises(self, config_paths):
        config_paths.config_file.parent.mkdir(parents=True)
        config_paths.config_file.write_text("{nope", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_context(SimpleNamespace(config=str(config_paths.config_file)))

    def test_load_context_when_invalid_and_replace_then_defaults(self, config_paths):
        config_paths.config_file.parent.mkdir(parents=True)
        config_paths.config_file.write_text("{nope", encoding="utf-8")
        args = SimpleNamespace(config=str(config_paths.config_file))
        ctx = load_context(args, replace_invalid=True)
        assert ctx.config == WidgetConfig()


class TestWaybarMode:
    """Tests for the waybar subcommand."""

    @pytest.mark.asyncio
    async def test_run_waybar_mode_when_success_then_prints_payload(self, capsys):
        widget = MagicMock()
        widget.run_waybar = AsyncMock(
            return_value=WaybarOutput(text="🔴 Sync", css_class="urgent", alt="urgent")
        )
        ctx = MagicMock()
        ctx.build_widget.return_value = widget

        with patch("calendar_widget.cli.modes.waybar.load_context", return_value=ctx):
            code = await run_waybar_mode(parse_args(["waybar", "--force-refresh"]))

        assert code == 0
        widget.run_waybar.assert_awaited_once_with(force_refresh=True)
        assert json.loads(capsys.readouterr().out) == {
            "text": "🔴 Sync",
            "class": "urgent",
            "alt": "urgent",
        }

    @pytest.mark.asyncio
    async def test_run_waybar_mode_when_config_invalid_then_error_payload_and_zero(
        self, config_paths, capsys
    ):
        config_paths.config_file.parent.mkdir(parents=True)
        config_paths.config_file.write_text("{nope", encoding="utf-8")

        code = await run_waybar_mode(args_for("waybar", config_paths))

        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["text"] == "Calendar Error"
        assert payload["class"] == "error"
        assert "failed to parse config" in payload["tooltip"]

    @pytest.mark.asyncio
    async def test_run_waybar_mode_when_unexpected_error_then_error_payload(self, capsys):
        with patch(
            "calendar_widget.cli.modes.waybar.load_context", side_effect=RuntimeError("boom")
        ):
            code = await run_waybar_mode(parse_args(["waybar"]))

        assert code == 0
        assert json.loads(capsys.readouterr().out)["tooltip"] == "boom"


class TestClickMode:
    """Tests for the click subcommand."""

    @staticmethod
    def context_for(reauth_requested: bool):
        ctx = MagicMock()

        def build_widget(on_reauth):
            async def handle_click():
                if reauth_requested:
                    on_reauth()
                return False

            widget = MagicMock()
            widget.handle_click = handle_click
            return widget

        ctx.build_widget.side_effect = build_widget
        return ctx

    @pytest.mark.asyncio
    async def test_run_click_mode_when_reauth_fails_then_its_exit_code(self, capsys):
        ctx = self.context_for(reauth_requested=True)

        with patch(
            "calendar_widget.cli.modes.click.load_context", return_value=ctx
        ), patch(
            "calendar_widget.cli.modes.click.perform_reauth", return_value=1
        ) as mock_reauth:
            code = await run_click_mode(parse_args(["click"]))

        assert code == 1
        mock_reauth.assert_called_once_with(ctx)
        assert "re-authenticating" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_run_click_mode_when_reauth_succeeds_then_zero(self):
        ctx = self.context_for(reauth_requested=True)

        with patch(
            "calendar_widget.cli.modes.click.load_context", return_value=ctx
        ), patch("calendar_widget.cli.modes.click.perform_reauth", return_value=0):
            code = await run_click_mode(parse_args(["click"]))

        assert code == 0

    @pytest.mark.asyncio
    async def test_run_click_mode_when_no_reauth_then_zero(self):
        ctx = self.context_for(reauth_requested=False)

        with patch(
            "calendar_widget.cli.modes.click.load_context", return_value=ctx
        ), patch("calendar_widget.cli.modes.click.perform_reauth") as mock_reauth:
            code = await run_click_mode(parse_args(["click"]))

        assert code == 0
        mock_reauth.assert_not_called()

    @pytest.mark.asyncio
    async def test_run_click_mode_when_config_invalid_then_one(self, config_paths, capsys):
        config_paths.config_file.parent.mkdir(parents=True)
        config_paths.config_file.write_text("{nope", encoding="utf-8")

        code = await run_click_mode(args_for("click", config_paths))

        assert code == 1
        assert "Click handler failed" in capsys.readouterr().out


class TestAccountModes:
    """Tests for setup, logout and validate."""

    @pytest.mark.asyncio
    async def test_run_setup_mode_when_no_helper_then_config_saved_and_fails(
        self, config_paths, capsys
    ):
        code = await run_setup_mode(args_for("setup", config_paths))

        assert code == 1
        assert config_paths.config_file.exists()
        assert "--token-command" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_run_setup_mode_when_helper_succeeds_then_token_cached(self, config_paths):
        result = MagicMock(returncode=0, stdout="fresh-token")
        args = args_for("setup", config_paths, "--token-command", "helper")

        with patch("calendar_widget.auth.subprocess.run", return_value=result):
            code = await run_setup_mode(args)

        assert code == 0
        assert ConfigManager(config_paths).load_config().token_command == "helper"
        cached = AuthStore(config_paths, WidgetConfig()).load_token()
        assert cached is not None
        assert cached.access_token == "fresh-token"

    @pytest.mark.asyncio
    async def test_run_logout_mode_when_files_present_then_removed(self, config_paths, now):
        ConfigManager(config_paths).save_config(WidgetConfig())
        AuthStore(config_paths, WidgetConfig()).save_token(
            TokenStore(access_token="x", expires_at=now)
        )

        code = await run_logout_mode(args_for("logout", config_paths))

        assert code == 0
        assert not config_paths.config_file.exists()
        assert not config_paths.token_file.exists()

    @pytest.mark.asyncio
    async def test_run_logout_mode_when_nothing_stored_then_succeeds(self, config_paths):
        code = await run_logout_mode(args_for("logout", config_paths))
        assert code == 0

    @pytest.mark.asyncio
    async def test_run_validate_mode_when_no_config_then_fails(self, config_paths, capsys):
        code = await run_validate_mode(args_for("validate", config_paths))
        assert code == 1
        assert "Configuration not found" in capsys.readouterr().out

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (TokenAcquisitionError("helper exited 1"), "credential helper failed"),
            (AuthRequiredError("HTTP 401", status_code=401), "rejected the token"),
            (AuthRequiredError("no credential helper"), "No way to obtain a token"),
            (TransientFetchError("timeout"), "could not be reached"),
            (CalendarFetchError("HTTP 500"), "Common solutions"),
        ],
    )
    def test_guidance_for_when_error_kind_then_matching_advice(self, error, expected):
        assert expected in guidance_for(error)[0]


class TestDebugMode:
    """Tests for debug output helpers."""

    def test_describe_events_when_many_then_first_five_and_remainder(self, make_event, now):
        events = [make_event(f"E{i}", start=30 + i) for i in range(7)]
        lines = describe_events(events, now)
        assert lines[0] == "📅 Event 1:"
        assert "  📝 Subject: E0" in lines
        assert "  📝 Subject: E5" not in lines
        assert "... and 2 more events" in lines

    def test_describe_events_when_past_then_no_time_until(self, make_event, now):
        lines = describe_events([make_event("Done", start=-60, end=-30)], now)
        assert "  📊 Status: past" in lines
        assert not any(line.startswith("  ⏰") for line in lines)


class TestMainEntry:
    """Tests for dispatch and the console script."""

    @pytest.mark.asyncio
    async def test_main_entry_when_command_then_dispatched(self):
        handler = AsyncMock(return_value=3)
        with patch.dict(MODE_HANDLERS, {"tooltip": handler}), patch(
            "calendar_widget.cli._init_logging"
        ) as mock_logging:
            code = await main_entry(["tooltip", "--debug"])

        assert code == 3
        handler.assert_awaited_once()
        assert handler.await_args.args[0].command == "tooltip"
        mock_logging.assert_called_once_with(None, debug=True)

    def test_main_when_keyboard_interrupt_then_exit_zero(self):
        def interrupted(coro):
            coro.close()
            raise KeyboardInterrupt

        with patch("calendar_widget.cli.asyncio.run", side_effect=interrupted):
            with pytest.raises(SystemExit) as exc_info:
                main(["widget"])
        assert exc_info.value.code == 0
