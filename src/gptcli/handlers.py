# gptcli/handlers.py
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

import argparse
import json
import sys

from prompt_toolkit import prompt

from . import settings as app_settings
from . import utils
from .api_client import ModelClient, RemoteError
from .chat_ui import (
    SingleChatUI,
    print_history,
    print_reply,
    print_system,
    print_unsent_prompt,
    print_usage,
)
from .conversation_store import ConversationStore, RecordNotFoundError
from .engine import OpenAIEngine
from .session_controller import PersistError, SessionController
from .settings import Settings
from .title_generator import TitleError, TitleGenerator

EXIT_INTERRUPTED = 130


def build_client(settings: Settings) -> ModelClient:
    """Creates the API client; raises ConfigError if no key is configured."""
    engine = OpenAIEngine(settings.require_api_key(), settings.api_base)
    return ModelClient(engine, timeout=settings.api_timeout)


def build_controller(settings: Settings) -> SessionController:
    store = ConversationStore(settings.storage_dir)
    client = build_client(settings)
    generator = TitleGenerator(client, input_budget=settings.title_input_budget)
    return SessionController(settings, store, client, generator)


def _confirm(question: str) -> bool:
    if not sys.stdin.isatty():
        return False
    try:
        answer = prompt(f"{question} (Y/n): ").lower().strip()
    except (KeyboardInterrupt, EOFError):
        return False
    return answer in ("", "y", "yes")


def select_conversation(store: ConversationStore) -> str | None:
    """Lets the user pick a stored conversation by number."""
    summaries = store.list()
    if not summaries:
        print_system("No saved conversations yet.")
        return None

    print("\nPlease select a conversation:")
    for i, summary in enumerate(summaries):
        print(
            f"  {i + 1}. {utils.format_timestamp(summary.updated_at)}  "
            f"{summary.title or '(untitled)'}  [{utils.short_id(summary.id)}]"
        )
    try:
        choice = prompt("Enter number (or press Enter for a new conversation): ")
    except (KeyboardInterrupt, EOFError):
        return None
    if not choice.strip():
        return None
    try:
        index = int(choice) - 1
        if 0 <= index < len(summaries):
            return summaries[index].id
    except ValueError:
        pass
    print_system("Invalid selection. Starting a new conversation.")
    return None


def _report_persist_error(error: PersistError) -> None:
    print_system(f"Error: {error}", file=sys.stderr)
    print_system("The following messages were NOT saved:", file=sys.stderr)
    for turn in error.turns:
        print(f"[{turn.role}]\n{turn.content}\n", file=sys.stderr)


def handle_chat(initial_prompt: str | None, args: argparse.Namespace, settings: Settings) -> None:
    """Handles both single-shot and interactive chat sessions."""
    controller = build_controller(settings)

    resume_id = args.resume
    if args.select and not resume_id:
        resume_id = select_conversation(controller.store)

    try:
        controller.open(resume_id)
    except RecordNotFoundError as e:
        print_system(f"Error: {e}", file=sys.stderr)
        if not initial_prompt and _confirm("Start a new conversation instead?"):
            controller.open(None)
        else:
            sys.exit(1)

    try:
        if initial_prompt:
            _run_single_shot(controller, initial_prompt)
        else:
            SingleChatUI(controller).run()
    except PersistError as e:
        controller.finish()
        _report_persist_error(e)
        sys.exit(1)


def _run_single_shot(controller: SessionController, user_input: str) -> None:
    try:
        reply = controller.take_turn(user_input)
    except KeyboardInterrupt:
        print_system("Request cancelled; nothing was saved.", file=sys.stderr)
        controller.finish()
        sys.exit(EXIT_INTERRUPTED)
    except RemoteError as e:
        print_system(f"Error: {e}", file=sys.stderr)
        print_unsent_prompt(user_input)
        controller.finish()
        sys.exit(1)

    if sys.stdout.isatty():
        print_reply(reply)
    else:
        print(reply.content)
    controller.finish()
    print_system(f"Conversation: {controller.record.id}", file=sys.stderr)


def handle_list(settings: Settings) -> None:
    store = ConversationStore(settings.storage_dir)
    summaries = store.list()
    if not summaries:
        print("No saved conversations.")
        return
    for summary in summaries:
        print(
            f"{utils.short_id(summary.id)}  {utils.format_timestamp(summary.updated_at)}  "
            f"{summary.turn_count:>4} turns  {summary.title or '(untitled)'}"
        )


def handle_show(conversation_id: str, settings: Settings) -> None:
    store = ConversationStore(settings.storage_dir)
    record = store.load(store.resolve(conversation_id))
    print_history(record)
    print_usage(record.estimated_tokens)


def handle_delete(conversation_id: str, settings: Settings) -> None:
    store = ConversationStore(settings.storage_dir)
    full_id = store.resolve(conversation_id)
    store.delete(full_id)
    print(f"Deleted conversation {full_id}.")


def handle_title(conversation_id: str, force: bool, settings: Settings) -> None:
    """Generates a title for a stored conversation now."""
    store = ConversationStore(settings.storage_dir)
    record = store.load(store.resolve(conversation_id))
    if record.title and not force:
        print(f"{record.title}  (use --force to regenerate)")
        return

    generator = TitleGenerator(build_client(settings), input_budget=settings.title_input_budget)
    try:
        title = generator.generate(record)
    except (RemoteError, TitleError) as e:
        print_system(f"Could not generate a title: {e}", file=sys.stderr)
        sys.exit(1)
    store.set_title(record.id, title)
    print(title)


def handle_config(action: str, key: str | None, value: str | None, settings: Settings | None) -> None:
    if action == "init":
        path = app_settings.write_default_settings()
        print(f"Wrote default settings to {path}")
    elif action == "show":
        print(json.dumps(settings.as_display_dict(), indent=2))
    elif action == "set":
        if not key or value is None:
            print("Usage: gptcli config set <key> <value>", file=sys.stderr)
            sys.exit(1)
        success, message = app_settings.save_setting(key, value)
        print_system(message, file=None if success else sys.stderr)
        if not success:
            sys.exit(1)
