# gptcli/engine.py
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

import abc
from typing import Any, Dict, List


class AIEngine(abc.ABC):
    """Abstract base class for an AI engine provider."""

    def __init__(self, api_key: str, api_base: str):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")

    @abc.abstractmethod
    def get_chat_url(self, model: str) -> str:
        """Get the API endpoint URL for chat completions."""
        pass

    @abc.abstractmethod
    def get_headers(self) -> Dict[str, str]:
        pass

    @abc.abstractmethod
    def build_chat_payload(self, messages: List[Dict[str, str]], max_tokens: int | None, model: str) -> Dict[str, Any]:
        """Build the JSON payload for a chat request."""
        pass

    @abc.abstractmethod
    def parse_chat_response(self, response_data: Dict[str, Any]) -> str:
        """
        Extract the assistant's text response from the API response.
        Raises KeyError, IndexError or TypeError when the shape is unexpected.
        """
        pass

    @abc.abstractmethod
    def parse_token_counts(self, response_data: Dict[str, Any]) -> Dict[str, int]:
        pass


class OpenAIEngine(AIEngine):
    """AI Engine implementation for OpenAI and OpenAI-compatible servers."""

    def get_chat_url(self, model: str) -> str:
        return f"{self.api_base}/chat/completions"

    def get_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def build_chat_payload(self, messages: List[Dict[str, str]], max_tokens: int | None, model: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
        }
        if max_tokens:
            # Legacy models ('gpt-4' but not 'gpt-4o', 'gpt-3.5-turbo') use 'max_tokens'.
            if model.startswith('gpt-3.5-turbo') or (model.startswith('gpt-4') and not model.startswith('gpt-4o')):
                payload['max_tokens'] = max_tokens
            else:
                payload['max_completion_tokens'] = max_tokens
        return payload

    def parse_chat_response(self, response_data: Dict[str, Any]) -> str:
        content = response_data['choices'][0]['message']['content']
        if not isinstance(content, str):
            raise TypeError(f"message content is {type(content).__name__}, expected str")
        return content

    def parse_token_counts(self, response_data: Dict[str, Any]) -> Dict[str, int]:
        usage = response_data.get('usage') or {}
        return {
            'prompt': usage.get('prompt_tokens', 0),
            'completion': usage.get('completion_tokens', 0),
            'total': usage.get('total_tokens', 0),
        }
