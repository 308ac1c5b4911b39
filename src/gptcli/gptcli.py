#!/usr/bin/env python3
# gptcli: A command-line interface for conversational AI models.
# Copyright (C) 2025 Dank A. Saurus

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

# -*- coding: utf-8 -*-

"""
Command-line client for conversational AI models.
Main entry point for the application.
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from . import config, handlers, utils
from .conversation_store import StoreError
from .logger import log, set_console_level
from .settings import ConfigError, load_settings

COMMANDS = ("chat", "list", "show", "delete", "title", "config")


class CustomHelpFormatter(
    argparse.RawTextHelpFormatter, argparse.ArgumentDefaultsHelpFormatter
):
    """Custom formatter for argparse help messages."""


def _add_storage_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--storage-dir",
        type=str,
        help="Directory holding saved conversations (overrides settings).",
    )


def build_parser() -> argparse.ArgumentParser:
    common_parser = argparse.ArgumentParser(add_help=False)
    common_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print debug logging to stderr.",
    )

    parser = argparse.ArgumentParser(
        prog="gptcli",
        description="Command-line client for conversational AI models with saved conversations.",
        formatter_class=CustomHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    chat_parser = subparsers.add_parser(
        "chat",
        help="Start or resume a conversation (default if no command is given).",
        parents=[common_parser],
        formatter_class=CustomHelpFormatter,
    )
    core_group = chat_parser.add_argument_group("Core Execution")
    session_group = chat_parser.add_argument_group("Session Control")
    resume_group = session_group.add_mutually_exclusive_group()
    core_group.add_argument(
        "-p",
        "--prompt",
        type=str,
        help="Send a single message and exit instead of starting an interactive chat.",
    )
    core_group.add_argument(
        "-m",
        "--model",
        type=str,
        help="Model for a new conversation. Resumed conversations keep their own model.",
    )
    resume_group.add_argument(
        "-r",
        "--resume",
        type=str,
        metavar="ID",
        help="Resume a saved conversation by id (a unique prefix is enough).",
    )
    resume_group.add_argument(
        "--select",
        action="store_true",
        help="Pick a saved conversation to resume from a list.",
    )
    session_group.add_argument(
        "--title-threshold",
        type=int,
        help="Number of user/assistant turns after which a title is generated.",
    )
    _add_storage_args(session_group)

    list_parser = subparsers.add_parser(
        "list", help="List saved conversations, most recent first.", parents=[common_parser]
    )
    _add_storage_args(list_parser)

    show_parser = subparsers.add_parser(
        "show", help="Print a saved conversation.", parents=[common_parser]
    )
    show_parser.add_argument("id", help="Conversation id or unique prefix.")
    _add_storage_args(show_parser)

    delete_parser = subparsers.add_parser(
        "delete", help="Delete a saved conversation.", parents=[common_parser]
    )
    delete_parser.add_argument("id", help="Conversation id or unique prefix.")
    _add_storage_args(delete_parser)

    title_parser = subparsers.add_parser(
        "title", help="Generate a title for a saved conversation.", parents=[common_parser]
    )
    title_parser.add_argument("id", help="Conversation id or unique prefix.")
    title_parser.add_argument(
        "--force", action="store_true", help="Replace an existing title."
    )
    _add_storage_args(title_parser)

    config_parser = subparsers.add_parser(
        "config", help="Manage the settings file.", parents=[common_parser]
    )
    config_parser.add_argument("action", choices=["init", "show", "set"])
    config_parser.add_argument("key", nargs="?")
    config_parser.add_argument("value", nargs="?")

    return parser


def _overrides_from_args(args: argparse.Namespace) -> dict:
    return {
        "model": getattr(args, "model", None),
        "storage_dir": getattr(args, "storage_dir", None),
        "title_turn_threshold": getattr(args, "title_threshold", None),
    }


def normalize_args(args_list: list[str]) -> list[str]:
    """
    Inserts the default `chat` command where none is given, so `gptcli` and
    `gptcli -p ...` mean `gptcli chat ...`. Leading -v flags are moved after
    the command, where the subcommand parsers accept them.
    """
    args_list = list(args_list)
    leading = []
    while args_list and args_list[0] in ("-v", "--verbose"):
        leading.append(args_list.pop(0))
    if not args_list or args_list[0] not in COMMANDS + ("-h", "--help"):
        args_list = ["chat"] + args_list
    return args_list[:1] + leading + args_list[1:]


def run_command(args: argparse.Namespace) -> None:
    """Dispatches a parsed command line to its handler."""
    # Writing the settings file must work even when the current one is broken.
    if args.command == "config" and args.action != "show":
        handlers.handle_config(args.action, args.key, args.value, None)
        return

    settings = load_settings(_overrides_from_args(args))

    if args.command == "chat":
        prompt = args.prompt
        if prompt is None and not sys.stdin.isatty():
            prompt = sys.stdin.read().strip()
        if prompt is not None and not prompt.strip():
            print(
                "Error: The provided prompt cannot be empty or contain only whitespace.",
                file=sys.stderr,
            )
            sys.exit(1)
        handlers.handle_chat(prompt, args, settings)
    elif args.command == "list":
        handlers.handle_list(settings)
    elif args.command == "show":
        handlers.handle_show(args.id, settings)
    elif args.command == "delete":
        handlers.handle_delete(args.id, settings)
    elif args.command == "title":
        handlers.handle_title(args.id, args.force, settings)
    elif args.command == "config":
        handlers.handle_config(args.action, args.key, args.value, settings)


def main():
    """Parses arguments and orchestrates the application flow."""
    utils.ensure_dir_exists(config.CONFIG_DIR)
    load_dotenv(dotenv_path=config.DOTENV_FILE)

    parser = build_parser()
    args = parser.parse_args(normalize_args(sys.argv[1:]))
    if args.verbose:
        set_console_level(logging.DEBUG)

    try:
        run_command(args)
    except ConfigError as e:
        print(f"{utils.SYSTEM_MSG}Configuration Error:{utils.RESET_COLOR}", file=sys.stderr)
        print(f"  {e}", file=sys.stderr)
        sys.exit(1)
    except StoreError as e:
        log.info("Store error: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(handlers.EXIT_INTERRUPTED)


if __name__ == "__main__":
    main()
