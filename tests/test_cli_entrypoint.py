# tests/test_cli_entrypoint.py
"""
Tests for the command-line argument parsing and dispatching in gptcli/gptcli.py.
"""

import io
import sys

import pytest

from gptcli import gptcli, handlers
from gptcli.conversation_store import RecordNotFoundError
from gptcli.settings import ConfigError


@pytest.fixture(autouse=True)
def mock_handlers(mocker, make_settings):
    """
    Mocks every handler so that only argument parsing and dispatching
    in gptcli.py is exercised.
    """
    mocker.patch("gptcli.handlers.handle_chat")
    mocker.patch("gptcli.handlers.handle_list")
    mocker.patch("gptcli.handlers.handle_show")
    mocker.patch("gptcli.handlers.handle_delete")
    mocker.patch("gptcli.handlers.handle_title")
    mocker.patch("gptcli.handlers.handle_config")
    mocker.patch("gptcli.gptcli.load_dotenv")
    mocker.patch("gptcli.utils.ensure_dir_exists")
    return mocker.patch("gptcli.gptcli.load_settings", return_value=make_settings())


class TestCLIEntrypoint:
    """Test suite for the main CLI entrypoint."""

    def test_no_args_interactive_chat(self, monkeypatch):
        """Tests that running `gptcli` with no args starts an interactive chat."""
        monkeypatch.setattr(sys, "argv", ["gptcli"])
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        gptcli.main()
        handlers.handle_chat.assert_called_once()
        call_args, _ = handlers.handle_chat.call_args
        assert call_args[0] is None

    def test_prompt_arg_calls_handle_chat(self, monkeypatch):
        """Tests that `gptcli -p "prompt"` is treated as `gptcli chat -p "prompt"`."""
        monkeypatch.setattr(sys, "argv", ["gptcli", "--prompt", "hello world"])
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        gptcli.main()
        call_args, _ = handlers.handle_chat.call_args
        assert call_args[0] == "hello world"

    def test_piped_input_calls_handle_chat(self, monkeypatch):
        """Tests that piped input is correctly passed as a prompt."""
        monkeypatch.setattr(sys, "argv", ["gptcli"])
        monkeypatch.setattr("sys.stdin", io.StringIO("piped content\n"))
        gptcli.main()
        call_args, _ = handlers.handle_chat.call_args
        assert call_args[0] == "piped content"

    def test_empty_prompt_exits(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["gptcli", "-p", "   "])
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        with pytest.raises(SystemExit) as e:
            gptcli.main()
        assert e.value.code == 1
        handlers.handle_chat.assert_not_called()

    def test_resume_and_overrides_are_forwarded(self, monkeypatch, mock_handlers):
        monkeypatch.setattr(
            sys,
            "argv",
            ["gptcli", "chat", "-r", "abcd1234", "-m", "gpt-4o", "--title-threshold", "4"],
        )
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        gptcli.main()

        overrides = mock_handlers.call_args.args[0]
        assert overrides["model"] == "gpt-4o"
        assert overrides["title_turn_threshold"] == 4
        args = handlers.handle_chat.call_args.args[1]
        assert args.resume == "abcd1234"

    def test_leading_verbose_flag_before_subcommand(self, monkeypatch, mocker):
        set_level = mocker.patch("gptcli.gptcli.set_console_level")
        monkeypatch.setattr(sys, "argv", ["gptcli", "-v", "list"])

        gptcli.main()

        handlers.handle_list.assert_called_once()
        handlers.handle_chat.assert_not_called()
        set_level.assert_called_once()

    @pytest.mark.parametrize(
        "argv, expected",
        [
            ([], ["chat"]),
            (["-p", "hi"], ["chat", "-p", "hi"]),
            (["-v"], ["chat", "-v"]),
            (["--verbose", "show", "ab"], ["show", "--verbose", "ab"]),
            (["-h"], ["-h"]),
        ],
    )
    def test_normalize_args(self, argv, expected):
        assert gptcli.normalize_args(argv) == expected

    def test_resume_and_select_are_mutually_exclusive(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["gptcli", "-r", "abcd", "--select"])
        with pytest.raises(SystemExit) as e:
            gptcli.main()
        assert e.value.code == 2

    @pytest.mark.parametrize(
        "argv, handler_name",
        [
            (["list"], "handle_list"),
            (["show", "abcd"], "handle_show"),
            (["delete", "abcd"], "handle_delete"),
            (["title", "abcd", "--force"], "handle_title"),
            (["config", "show"], "handle_config"),
        ],
    )
    def test_subcommands_dispatch(self, monkeypatch, argv, handler_name):
        monkeypatch.setattr(sys, "argv", ["gptcli"] + argv)
        gptcli.main()
        getattr(handlers, handler_name).assert_called_once()
        handlers.handle_chat.assert_not_called()

    def test_config_set_does_not_load_settings(self, monkeypatch, mock_handlers):
        monkeypatch.setattr(sys, "argv", ["gptcli", "config", "set", "model", "gpt-4o"])
        gptcli.main()
        handlers.handle_config.assert_called_once_with("set", "model", "gpt-4o", None)
        mock_handlers.assert_not_called()

    def test_config_error_exits_with_one(self, monkeypatch, mock_handlers, capsys):
        mock_handlers.side_effect = ConfigError("No API key configured.")
        monkeypatch.setattr(sys, "argv", ["gptcli", "list"])
        with pytest.raises(SystemExit) as e:
            gptcli.main()
        assert e.value.code == 1
        assert "No API key configured." in capsys.readouterr().err

    def test_store_error_exits_with_one(self, monkeypatch, capsys):
        handlers.handle_show.side_effect = RecordNotFoundError("abcd")
        monkeypatch.setattr(sys, "argv", ["gptcli", "show", "abcd"])
        with pytest.raises(SystemExit) as e:
            gptcli.main()
        assert e.value.code == 1
        assert "abcd" in capsys.readouterr().err

    def test_keyboard_interrupt_exits_with_130(self, monkeypatch):
        handlers.handle_list.side_effect = KeyboardInterrupt
        monkeypatch.setattr(sys, "argv", ["gptcli", "list"])
        with pytest.raises(SystemExit) as e:
            gptcli.main()
        assert e.value.code == 130
