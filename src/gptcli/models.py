# gptcli/models.py
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
Data classes describing conversations and their on-disk JSON representation.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from typing import Any

from . import config, utils

ROLES = ("user", "assistant", "system")

# Roles that count towards the title threshold.
CONVERSATIONAL_ROLES = ("user", "assistant")


@dataclass(frozen=True)
class Turn:
    """A single message in a conversation. Immutable once created."""

    role: str
    content: str
    timestamp: datetime.datetime = field(default_factory=utils.utc_now)

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown role: {self.role!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Turn:
        return cls(
            role=data["role"],
            content=data["content"],
            timestamp=_parse_timestamp(data["timestamp"]),
        )

    def as_message(self) -> dict[str, str]:
        """The role/content pair sent to the chat API."""
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ConversationRecord:
    id: str
    created_at: datetime.datetime
    updated_at: datetime.datetime
    model: str
    title: str | None = None
    turns: tuple[Turn, ...] = ()

    @property
    def conversational_turn_count(self) -> int:
        return sum(1 for t in self.turns if t.role in CONVERSATIONAL_ROLES)

    @property
    def estimated_tokens(self) -> int:
        return sum(utils.estimate_token_count(t.content) for t in self.turns)

    def with_turns(self, new_turns: list[Turn] | tuple[Turn, ...]) -> ConversationRecord:
        """Returns a copy with turns appended and updated_at refreshed."""
        updated_at = max(utils.utc_now(), self.updated_at, self.created_at)
        return replace(self, turns=self.turns + tuple(new_turns), updated_at=updated_at)

    def with_title(self, title: str) -> ConversationRecord:
        return replace(self, title=title)

    def summary(self) -> ConversationSummary:
        return ConversationSummary(
            id=self.id,
            title=self.title,
            model=self.model,
            created_at=self.created_at,
            updated_at=self.updated_at,
            turn_count=len(self.turns),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": config.RECORD_FORMAT_VERSION,
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "model": self.model,
            "title": self.title,
            "turns": [t.to_dict() for t in self.turns],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationRecord:
        """Builds a record from decoded JSON, raising on missing or bad fields."""
        version = data.get("version", config.RECORD_FORMAT_VERSION)
        if version != config.RECORD_FORMAT_VERSION:
            raise ValueError(f"Unsupported record version: {version!r}")
        title = data.get("title")
        if title is not None and not isinstance(title, str):
            raise ValueError("Title must be a string.")
        return cls(
            id=data["id"],
            created_at=_parse_timestamp(data["created_at"]),
            updated_at=_parse_timestamp(data["updated_at"]),
            model=data["model"],
            title=title,
            turns=tuple(Turn.from_dict(t) for t in data["turns"]),
        )


@dataclass(frozen=True)
class ConversationSummary:
    """The lightweight view of a record used for listing."""

    id: str
    title: str | None
    model: str
    created_at: datetime.datetime
    updated_at: datetime.datetime
    turn_count: int


def _parse_timestamp(value: str) -> datetime.datetime:
    moment = datetime.datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    return moment
