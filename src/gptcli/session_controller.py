# gptcli/session_controller.py
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
This module contains the SessionController, which drives a single CLI
invocation: it opens or creates a conversation, exchanges turns with the
model, persists them, and schedules title generation. It is independent of
the terminal UI.
"""

from __future__ import annotations

import enum

from . import api_client
from .api_client import ModelClient
from .conversation_store import ConversationStore, StoreError
from .logger import log
from .models import ConversationRecord, Turn
from .settings import Settings
from .title_generator import TitleGenerator, TitleTask, should_generate_title


class PersistError(Exception):
    """Raised when an exchange could not be saved. Carries the unsaved turns."""

    def __init__(self, conversation_id: str, turns: list[Turn], cause: Exception):
        self.conversation_id = conversation_id
        self.turns = turns
        self.cause = cause
        super().__init__(f"Could not save conversation '{conversation_id}': {cause}")


class SessionPhase(enum.Enum):
    IDLE = "idle"
    RESUMING = "resuming"
    CREATING = "creating"
    AWAITING_MODEL_RESPONSE = "awaiting_model_response"
    APPENDING = "appending"
    MAYBE_TITLING = "maybe_titling"
    PERSISTED = "persisted"


class SessionController:
    """Encapsulates the lifecycle of one conversation within one invocation."""

    def __init__(
        self,
        settings: Settings,
        store: ConversationStore,
        client: ModelClient,
        title_generator: TitleGenerator,
    ):
        self.settings = settings
        self.store = store
        self.client = client
        self.title_generator = title_generator
        self.record: ConversationRecord | None = None
        self.phase = SessionPhase.IDLE
        self.title_task: TitleTask | None = None
        # Token usage reported by the API for the latest reply.
        self.last_usage: dict[str, int] | None = None

    def _enter(self, phase: SessionPhase) -> None:
        log.debug("Session phase: %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def _require_record(self) -> ConversationRecord:
        if self.record is None:
            raise RuntimeError("No conversation is open; call open() first.")
        return self.record

    def open(self, resume_id: str | None = None) -> ConversationRecord:
        """Resumes the given conversation or starts a new one."""
        if resume_id:
            self._enter(SessionPhase.RESUMING)
            try:
                self.record = self.store.load(self.store.resolve(resume_id))
            except StoreError:
                self._enter(SessionPhase.IDLE)
                raise
            log.info("Resumed conversation %s.", self.record.id)
        else:
            self._enter(SessionPhase.CREATING)
            self.record = self.store.create(
                self.settings.model, system_prompt=self.settings.system_prompt or None
            )
        self._enter(SessionPhase.PERSISTED)
        return self.record

    def take_turn(self, user_input: str) -> Turn:
        """
        Sends the user's message with the conversation so far and stores the
        exchange. Returns the assistant's reply.

        Raises RemoteError if the API failed after retries, PersistError if the
        exchange could not be saved, and lets KeyboardInterrupt through after
        discarding the in-flight request.
        """
        record = self._require_record()
        user_turn = Turn("user", user_input)

        self._enter(SessionPhase.AWAITING_MODEL_RESPONSE)
        try:
            success = api_client.complete_with_retry(
                self.client,
                list(record.turns) + [user_turn],
                record.model,
                self.settings.max_tokens,
                self.settings.max_retries,
                self.settings.retry_backoff,
            )
        except KeyboardInterrupt:
            log.info("Request for %s cancelled by user; nothing was saved.", record.id)
            self._enter(SessionPhase.PERSISTED)
            raise
        except api_client.RemoteError:
            self._enter(SessionPhase.PERSISTED)
            raise

        self.last_usage = success.usage
        self._enter(SessionPhase.APPENDING)
        self.record = self._persist([user_turn, success.turn])

        self._enter(SessionPhase.MAYBE_TITLING)
        self._maybe_start_title_task()

        self._enter(SessionPhase.PERSISTED)
        return success.turn

    def _persist(self, turns: list[Turn]) -> ConversationRecord:
        """Appends the exchange, retrying once before giving up."""
        record = self._require_record()
        try:
            return self.store.extend(record.id, turns)
        except StoreError as first_error:
            log.warning("Saving %s failed (%s); retrying once.", record.id, first_error)
            try:
                return self.store.extend(record.id, turns)
            except StoreError as e:
                log.error("Saving %s failed again: %s", record.id, e)
                raise PersistError(record.id, turns, e) from e

    def _maybe_start_title_task(self) -> None:
        record = self._require_record()
        if self.title_task is not None and not self.title_task.done:
            return
        if not should_generate_title(record, self.settings.title_turn_threshold):
            return
        log.debug("Starting title generation for %s.", record.id)
        self.title_task = TitleTask(self.title_generator, self.store, record).start()

    def regenerate_title(self) -> str:
        """Generates a new title right away, replacing any existing one."""
        record = self._require_record()
        title = self.title_generator.generate(record)
        self.record = self.store.set_title(record.id, title)
        return title

    def finish(self, timeout: float | None = None) -> str | None:
        """
        Waits (bounded) for a pending title and returns the current title.
        On timeout the title is left unset for a later invocation.
        """
        timeout = self.settings.title_timeout if timeout is None else timeout
        if self.title_task is not None:
            self.title_task.join(timeout)
            self.title_task = None
        if self.record is None:
            return None
        try:
            self.record = self.store.load(self.record.id)
        except StoreError as e:
            log.warning("Could not reload %s after session: %s", self.record.id, e)
        return self.record.title

    def estimated_tokens(self) -> int:
        return self._require_record().estimated_tokens
