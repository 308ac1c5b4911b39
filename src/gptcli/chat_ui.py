# gptcli/chat_ui.py
# gptcli: A command-line interface for conversational AI models.
# Copyright (C) 2025 Dank A. Saurus

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY;
# without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Terminal rendering and the interactive chat loop.
"""

from __future__ import annotations

import sys

from prompt_toolkit import prompt
from prompt_toolkit.history import InMemoryHistory

from . import config, utils
from .api_client import RemoteError
from .conversation_store import StoreError
from .logger import log
from .models import ConversationRecord, Turn
from .session_controller import SessionController
from .title_generator import TitleError
from .utils import ASSISTANT_PROMPT, RESET_COLOR, SYSTEM_MSG, USER_PROMPT

_ROLE_LABELS = {
    "system": f"{SYSTEM_MSG}System{RESET_COLOR}",
    "user": f"{USER_PROMPT}You{RESET_COLOR}",
    "assistant": f"{ASSISTANT_PROMPT}Assistant{RESET_COLOR}",
}


def print_system(message: str, file=None) -> None:
    print(f"{SYSTEM_MSG}--> {message}{RESET_COLOR}", file=file or sys.stdout)


def print_reply(turn: Turn) -> None:
    print(f"\n{ASSISTANT_PROMPT}Assistant: {RESET_COLOR}{turn.content}")
    if not turn.content.endswith("\n"):
        print()


def print_history(record: ConversationRecord) -> None:
    """Prints a whole conversation."""
    title = record.title or "(untitled)"
    print("---------------------------------")
    print(f"{title}  [{record.id}]")
    print(
        f"Model: {record.model}  Created: {utils.format_timestamp(record.created_at)}  "
        f"Updated: {utils.format_timestamp(record.updated_at)}"
    )
    print("---------------------------------")
    for turn in record.turns:
        print(f"{_ROLE_LABELS[turn.role]}:")
        print(turn.content)
        print()
    print("---------------------------------")


def print_usage(estimated: int, recorded: dict[str, int] | None = None) -> None:
    """Prints the usage reported by the API, when known, and the local estimate."""
    if recorded and recorded.get("total"):
        print(f"{SYSTEM_MSG}Recorded usage {recorded['total']}/{config.MODEL_TOKEN_LIMIT} tokens{RESET_COLOR}")
    print(f"{SYSTEM_MSG}Estimated usage {estimated}/{config.MODEL_TOKEN_LIMIT} tokens{RESET_COLOR}")


def print_unsent_prompt(user_input: str) -> None:
    """Echoes back a prompt that could not be answered so it is not lost."""
    print_system("Your message was not answered. Here it is so you can retry:", file=sys.stderr)
    print(user_input, file=sys.stderr)


class SingleChatUI:
    """Runs the read-eval-print loop for one conversation."""

    def __init__(self, controller: SessionController):
        self.controller = controller
        self.history = InMemoryHistory()

    def run(self) -> None:
        record = self.controller.record
        if record is None:
            raise RuntimeError("SingleChatUI requires an open conversation.")
        label = record.title or "new conversation"
        print_system(f"Chatting in {label} [{utils.short_id(record.id)}]. Type /help for commands.")

        while True:
            try:
                user_input = prompt("\nYou: ", history=self.history)
            except (KeyboardInterrupt, EOFError):
                print()
                break

            if not user_input.strip():
                continue
            if user_input.startswith("/"):
                if self._handle_command(user_input.strip()):
                    break
                continue

            try:
                reply = self.controller.take_turn(user_input)
            except KeyboardInterrupt:
                print()
                print_system("Request cancelled; nothing was saved.")
                continue
            except RemoteError as e:
                print_system(f"Error: {e}", file=sys.stderr)
                print_unsent_prompt(user_input)
                continue
            print_reply(reply)
            print_usage(self.controller.estimated_tokens(), self.controller.last_usage)

        self._finish()

    def _handle_command(self, line: str) -> bool:
        """Runs a slash command. Returns True when the loop should end."""
        command = line.split()[0].lower()
        if command in ("/exit", "/quit"):
            return True
        if command == "/help":
            utils.display_help()
        elif command == "/history":
            print_history(self.controller.record)
            print_usage(self.controller.estimated_tokens(), self.controller.last_usage)
        elif command == "/id":
            print_system(self.controller.record.id)
        elif command == "/title":
            print_system("Generating title...")
            try:
                print_system(f"Title: {self.controller.regenerate_title()}")
            except (RemoteError, TitleError, StoreError) as e:
                log.warning("Manual title generation failed: %s", e)
                print_system(f"Could not generate a title: {e}")
        else:
            print_system(f"Unknown command: {command}. Type /help for commands.")
        return False

    def _finish(self) -> None:
        title = self.controller.finish()
        record = self.controller.record
        name = f"'{title}'" if title else "untitled conversation"
        print_system(f"Saved {name}. Resume with: gptcli chat --resume {utils.short_id(record.id)}")
