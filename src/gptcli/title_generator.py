# gptcli/title_generator.py
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
Generates short human-readable titles for conversations.

Titling is best-effort: a failed attempt leaves the title unset so that a
later invocation can try again, and it never blocks saving the conversation.
"""

from __future__ import annotations

import re
import threading
from typing import Sequence

from . import config, prompts, utils
from .api_client import ModelClient, RemoteError, Success
from .conversation_store import ConversationStore, StoreError
from .logger import log
from .models import CONVERSATIONAL_ROLES, ConversationRecord, Turn


class TitleError(Exception):
    """Raised when the model replied but no usable title could be extracted."""
    pass


def should_generate_title(record: ConversationRecord, threshold: int, force: bool = False) -> bool:
    """Titles are generated once enough turns exist, unless one is already set."""
    if force:
        return True
    return record.title is None and record.conversational_turn_count >= threshold


def truncate_turns(turns: Sequence[Turn], budget: int) -> list[Turn]:
    """
    Keeps the newest user/assistant turns whose combined estimated size fits
    the token budget, dropping the oldest first. If even the newest turn is
    too large on its own, only the tail of its content is kept.
    """
    candidates = [t for t in turns if t.role in CONVERSATIONAL_ROLES]
    kept: list[Turn] = []
    used = 0
    for turn in reversed(candidates):
        cost = utils.estimate_token_count(turn.content)
        if used + cost > budget:
            break
        kept.append(turn)
        used += cost

    if not kept and candidates:
        newest = candidates[-1]
        kept.append(Turn(newest.role, newest.content[-budget * 4:], newest.timestamp))

    kept.reverse()
    return kept


def clean_title(raw_title: str, max_length: int = config.MAX_TITLE_LENGTH) -> str:
    """Normalizes a model reply into a single-line title."""
    lines = [line.strip() for line in raw_title.strip().splitlines() if line.strip()]
    if not lines:
        return ""
    title = re.sub(r"^(title)\s*:\s*", "", lines[0], flags=re.IGNORECASE)
    title = title.replace("_", " ")
    title = title.strip(" \"'`*#").rstrip(".!?:;,")
    title = re.sub(r"\s+", " ", title).strip()
    if len(title) > max_length:
        title = title[:max_length].rsplit(" ", 1)[0] or title[:max_length]
    return title


class TitleGenerator:
    def __init__(
        self,
        client: ModelClient,
        model: str | None = None,
        input_budget: int = 3000,
        max_length: int = config.MAX_TITLE_LENGTH,
    ):
        self.client = client
        self.model = model
        self.input_budget = input_budget
        self.max_length = max_length

    def build_request(self, record: ConversationRecord) -> list[Turn]:
        retained = truncate_turns(record.turns, self.input_budget)
        return retained + [Turn("user", prompts.TITLE_PROMPT)]

    def generate(self, record: ConversationRecord) -> str:
        """Asks the model for a title. Raises RemoteError or TitleError on failure."""
        model = self.model or record.model
        response = self.client.complete(self.build_request(record), model, config.TITLE_MAX_TOKENS)
        if not isinstance(response, Success):
            raise RemoteError(response)
        title = clean_title(response.turn.content, self.max_length)
        if not title:
            raise TitleError("The model returned an empty title.")
        return title


class TitleTask:
    """
    Generates and stores a title on a background thread.

    The thread is a daemon so it can never keep the process alive; callers
    must join() it with a timeout before exiting. A task that has not yet
    committed its write when the timeout expires is cancelled and its result
    discarded. The commit happens under the conversation's store lock, so a
    cancelled task never writes.
    """

    def __init__(self, generator: TitleGenerator, store: ConversationStore, record: ConversationRecord):
        self.generator = generator
        self.store = store
        self.record = record
        self.title: str | None = None
        self.error: Exception | None = None
        self._state_lock = threading.Lock()
        self._cancelled = False
        self._committed = False
        self._thread = threading.Thread(
            target=self._run, name=f"title-{utils.short_id(record.id)}", daemon=True
        )

    def start(self) -> TitleTask:
        self._thread.start()
        return self

    def _commit(self) -> bool:
        # Called by the store with the conversation lock held.
        with self._state_lock:
            if self._cancelled:
                return False
            self._committed = True
            return True

    def _run(self) -> None:
        try:
            title = self.generator.generate(self.record)
            if self.store.set_title(self.record.id, title, should_write=self._commit) is None:
                log.info("Title for %s arrived after cancellation; discarded.", self.record.id)
                return
            self.title = title
        except (RemoteError, TitleError, StoreError) as e:
            self.error = e
            log.warning("Title generation for %s failed: %s", self.record.id, e)

    def cancel(self) -> bool:
        """Prevents the write. Returns False if the write was already committed."""
        with self._state_lock:
            if self._committed:
                return False
            self._cancelled = True
            return True

    @property
    def done(self) -> bool:
        return not self._thread.is_alive()

    def join(self, timeout: float | None) -> bool:
        """
        Waits up to timeout seconds. Returns False (and cancels) on timeout,
        unless the title write is already under way, in which case it waits
        for that local write to finish.
        """
        self._thread.join(timeout)
        if not self._thread.is_alive():
            return True
        if self.cancel():
            log.info("Title generation for %s timed out; will retry next time.", self.record.id)
            return False
        self._thread.join()
        return True
