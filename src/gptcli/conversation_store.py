# gptcli/conversation_store.py
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
File-backed storage for conversation records.

Each conversation lives in its own ``<id>.json`` file under the store root.
Writes go to a temporary file in the same directory which is fsynced and then
renamed over the target, so a record on disk is always either the previous
complete version or the new complete version. Read-modify-write operations
hold an exclusive lock on a per-conversation lock file so that two terminals
working on the same conversation never interleave their updates.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import os
import re
import tempfile
import uuid
from pathlib import Path
from typing import Callable, Iterator

from . import config, utils
from .logger import log
from .models import ConversationRecord, ConversationSummary, Turn

_ID_PATTERN = re.compile(r"^[0-9a-f]{1,32}$")


class StoreError(Exception):
    """Base class for conversation store failures."""
    pass


class RecordNotFoundError(StoreError):
    """Raised when a conversation does not exist (or cannot be used)."""

    def __init__(self, conversation_id: str, message: str | None = None):
        self.conversation_id = conversation_id
        super().__init__(message or f"Conversation '{conversation_id}' not found.")


class CorruptRecordError(RecordNotFoundError):
    """Raised when a conversation file exists but cannot be decoded."""

    def __init__(self, conversation_id: str, reason: str):
        self.reason = reason
        super().__init__(
            conversation_id,
            f"Conversation '{conversation_id}' is corrupt and cannot be loaded: {reason}",
        )


class ConversationStore:
    """Durable repository of ConversationRecords keyed by identifier."""

    def __init__(self, root: Path):
        self.root = Path(root)

    # --- Paths & locking ---

    def _ensure_root(self) -> None:
        try:
            utils.ensure_dir_exists(self.root / config.LOCKS_DIRNAME)
        except OSError as e:
            raise StoreError(f"Could not create storage directory {self.root}: {e}") from e

    def _path_for(self, conversation_id: str) -> Path:
        if not _ID_PATTERN.match(conversation_id or ""):
            raise RecordNotFoundError(conversation_id)
        return self.root / f"{conversation_id}.json"

    @contextlib.contextmanager
    def _locked(self, conversation_id: str) -> Iterator[None]:
        self._ensure_root()
        lock_path = self.root / config.LOCKS_DIRNAME / f"{conversation_id}.lock"
        with open(lock_path, "a", encoding="utf-8") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    # --- Serialization ---

    def _write(self, record: ConversationRecord) -> None:
        """Atomically replaces the record's file with its current contents."""
        target = self._path_for(record.id)
        tmp = tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=self.root,
            prefix=f".{record.id}.",
            suffix=".tmp",
            delete=False,
        )
        try:
            with tmp:
                json.dump(record.to_dict(), tmp, indent=2, ensure_ascii=False)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp.name, target)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.unlink(tmp.name)
            raise StoreError(f"Could not write conversation '{record.id}': {e}") from e

    def _read(self, conversation_id: str) -> ConversationRecord:
        path = self._path_for(conversation_id)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise RecordNotFoundError(conversation_id) from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptRecordError(conversation_id, f"invalid JSON ({e})") from e
        except OSError as e:
            raise StoreError(f"Could not read conversation '{conversation_id}': {e}") from e

        try:
            record = ConversationRecord.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CorruptRecordError(conversation_id, f"unexpected structure ({e!r})") from e
        if record.id != conversation_id:
            raise CorruptRecordError(conversation_id, f"file contains id '{record.id}'")
        return record

    # --- Public API ---

    def create(self, model: str, system_prompt: str | None = None) -> ConversationRecord:
        """Allocates and persists a new, empty conversation."""
        self._ensure_root()
        now = utils.utc_now()
        turns = (Turn("system", system_prompt, now),) if system_prompt else ()
        conversation_id = uuid.uuid4().hex
        while self._path_for(conversation_id).exists():
            conversation_id = uuid.uuid4().hex

        record = ConversationRecord(
            id=conversation_id,
            created_at=now,
            updated_at=now,
            model=model,
            turns=turns,
        )
        with self._locked(conversation_id):
            self._write(record)
        log.info("Created conversation %s (model %s).", conversation_id, model)
        return record

    def load(self, conversation_id: str) -> ConversationRecord:
        return self._read(conversation_id)

    def exists(self, conversation_id: str) -> bool:
        try:
            return self._path_for(conversation_id).exists()
        except RecordNotFoundError:
            return False

    def append(self, conversation_id: str, turn: Turn) -> ConversationRecord:
        """Appends a single turn and persists before returning."""
        return self.extend(conversation_id, [turn])

    def extend(self, conversation_id: str, turns: list[Turn]) -> ConversationRecord:
        """Appends several turns in a single atomic write."""
        with self._locked(conversation_id):
            record = self._read(conversation_id).with_turns(turns)
            self._write(record)
        log.debug("Appended %d turn(s) to %s.", len(turns), conversation_id)
        return record

    def set_title(
        self,
        conversation_id: str,
        title: str,
        should_write: Callable[[], bool] | None = None,
    ) -> ConversationRecord | None:
        """
        Overwrites the title; turns are left untouched.

        When should_write is given it is called while the conversation's lock
        is held, and a False result skips the write and returns None.
        """
        with self._locked(conversation_id):
            record = self._read(conversation_id).with_title(title)
            if should_write is not None and not should_write():
                return None
            self._write(record)
        log.info("Set title of %s to '%s'.", conversation_id, title)
        return record

    def delete(self, conversation_id: str) -> None:
        path = self._path_for(conversation_id)
        with self._locked(conversation_id):
            try:
                path.unlink()
            except FileNotFoundError as e:
                raise RecordNotFoundError(conversation_id) from e
            except OSError as e:
                raise StoreError(f"Could not delete conversation '{conversation_id}': {e}") from e
        with contextlib.suppress(OSError):
            (self.root / config.LOCKS_DIRNAME / f"{conversation_id}.lock").unlink()
        log.info("Deleted conversation %s.", conversation_id)

    def list(self) -> list[ConversationSummary]:
        """Summaries of all readable conversations, most recently updated first."""
        if not self.root.is_dir():
            return []
        summaries = []
        for path in self.root.glob("*.json"):
            try:
                summaries.append(self._read(path.stem).summary())
            except StoreError as e:
                # Removed between glob and read, corrupt, or unreadable.
                log.warning("Skipping conversation file %s: %s", path.name, e)
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries

    def resolve(self, id_or_prefix: str) -> str:
        """Expands a unique identifier prefix to the full conversation id."""
        candidate = (id_or_prefix or "").strip().lower()
        if not _ID_PATTERN.match(candidate):
            raise RecordNotFoundError(id_or_prefix)
        if self.exists(candidate):
            return candidate
        matches = sorted(p.stem for p in self.root.glob(f"{candidate}*.json"))
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise RecordNotFoundError(
                id_or_prefix,
                f"Identifier '{id_or_prefix}' is ambiguous ({len(matches)} matches).",
            )
        raise RecordNotFoundError(id_or_prefix)
