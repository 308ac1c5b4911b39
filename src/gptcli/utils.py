# gptcli/utils.py
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


import datetime
from pathlib import Path

USER_PROMPT = "\033[94m"
ASSISTANT_PROMPT = "\033[92m"
SYSTEM_MSG = "\033[93m"
RESET_COLOR = "\033[0m"

SHORT_ID_LENGTH = 8


def ensure_dir_exists(path: Path) -> None:
    """Creates a directory (and parents) if it does not already exist."""
    path.mkdir(parents=True, exist_ok=True)


def utc_now() -> datetime.datetime:
    """Returns the current time as a timezone-aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def format_timestamp(moment: datetime.datetime) -> str:
    """Formats a stored timestamp in the user's local time for display."""
    return moment.astimezone().strftime("%Y-%m-%d %H:%M")


def short_id(conversation_id: str) -> str:
    return conversation_id[:SHORT_ID_LENGTH]


def estimate_token_count(text: str) -> int:
    """
    Provides a simple, fast estimation of token count.
    The ratio of characters to tokens is roughly 4:1 for English text.
    """
    return round(len(text) / 4)


def redact(value: str | None) -> str:
    """Masks a credential for display, keeping only its last four characters."""
    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "****"
    return f"****{value[-4:]}"


def display_help() -> None:
    """Displays help information for the interactive chat loop."""
    help_text = """
Interactive Chat Commands:
  /exit             End the session (waits briefly for a pending title).
  /help             Display this help message.
  /history          Print the conversation so far.
  /title            Regenerate the conversation title now.
  /id               Print the identifier of the current conversation.
Press Ctrl-C while waiting for a reply to cancel that request.
"""
    print(help_text)
