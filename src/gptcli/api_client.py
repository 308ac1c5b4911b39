# gptcli/api_client.py
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
The boundary between gptcli and the remote chat API.

Every HTTP exchange is decoded exactly once into a ModelResponse variant so
that callers never inspect raw JSON or requests exceptions.
"""

from __future__ import annotations

import copy
import datetime
import json
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence, Union

import requests

from . import config
from .engine import AIEngine
from .logger import log
from .models import Turn

# Upper bound on any single wait between retries, in seconds.
BACKOFF_MAX_SECONDS = 30.0


@dataclass(frozen=True)
class Success:
    turn: Turn
    usage: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RateLimited:
    retry_after: float | None = None
    reason: str = "Rate limited by the API."


@dataclass(frozen=True)
class Timeout:
    reason: str = "The request timed out."


@dataclass(frozen=True)
class Unavailable:
    """Network failures and HTTP errors. Client errors (4xx) are not retryable."""

    reason: str
    retryable: bool = True


@dataclass(frozen=True)
class Malformed:
    reason: str


ModelResponse = Union[Success, RateLimited, Timeout, Unavailable, Malformed]


class RemoteError(Exception):
    """Raised when the API could not produce a reply."""

    def __init__(self, response: ModelResponse, attempts: int = 1):
        self.response = response
        self.attempts = attempts
        super().__init__(describe_failure(response))


def describe_failure(response: ModelResponse) -> str:
    if isinstance(response, RateLimited):
        return f"Rate limited: {response.reason}"
    if isinstance(response, Timeout):
        return f"Timed out: {response.reason}"
    if isinstance(response, Unavailable):
        return f"API unavailable: {response.reason}"
    if isinstance(response, Malformed):
        return f"Malformed API response: {response.reason}"
    return "Request succeeded."


def is_retryable(response: ModelResponse) -> bool:
    if isinstance(response, (RateLimited, Timeout)):
        return True
    return isinstance(response, Unavailable) and response.retryable


def _redact_sensitive_info(log_entry: dict) -> dict:
    """Returns a copy of a log entry with API keys redacted."""
    safe_log_entry = copy.deepcopy(log_entry)
    request = safe_log_entry.get("request", {})
    if "url" in request and "key=" in request["url"]:
        request["url"] = re.sub(r"key=([^&]+)", "key=[REDACTED]", request["url"])
    if "headers" in request and "Authorization" in request["headers"]:
        request["headers"]["Authorization"] = "Bearer [REDACTED]"
    return safe_log_entry


def _error_details(response: requests.Response) -> str:
    """Pulls the most useful error message out of a failed HTTP response."""
    try:
        error_json = response.json()
        if isinstance(error_json, dict) and isinstance(error_json.get('error'), dict) and 'message' in error_json['error']:
            return error_json['error']['message']
    except ValueError:
        pass
    return response.text or response.reason or "No specific error message provided by the API."


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class ModelClient:
    """Sends a conversation to the chat API and decodes the reply."""

    def __init__(self, engine: AIEngine, timeout: float, raw_log_file: Path | None = None):
        self.engine = engine
        self.timeout = timeout
        self.raw_log_file = raw_log_file or config.RAW_LOG_FILE

    def complete(self, turns: Sequence[Turn], model: str, max_tokens: int | None = None) -> ModelResponse:
        url = self.engine.get_chat_url(model)
        headers = self.engine.get_headers()
        payload = self.engine.build_chat_payload([t.as_message() for t in turns], max_tokens, model)
        log_entry = {
            "timestamp": datetime.datetime.now().isoformat(),
            "request": {"url": url, "headers": headers, "payload": payload},
        }
        result: ModelResponse | None = None
        try:
            try:
                http_response = requests.post(url, headers=headers, json=payload, timeout=self.timeout)
            except requests.exceptions.Timeout as e:
                result = Timeout(str(e))
            except requests.exceptions.RequestException as e:
                result = Unavailable(str(e))
            else:
                result = self._decode(http_response)
                log_entry["response"] = {"status_code": http_response.status_code}
            return result
        finally:
            # result stays None when the request was interrupted (Ctrl-C).
            log_entry["outcome"] = type(result).__name__ if result is not None else "Interrupted"
            if result is not None and not isinstance(result, Success):
                log.warning("Chat request to %s failed: %s", model, describe_failure(result))
            self._write_raw_log(log_entry)

    def _decode(self, http_response: requests.Response) -> ModelResponse:
        status = http_response.status_code
        if status == 429:
            return RateLimited(
                retry_after=_parse_retry_after(http_response.headers.get("Retry-After")),
                reason=_error_details(http_response),
            )
        if status in (408, 504):
            return Timeout(f"HTTP {status}: {_error_details(http_response)}")
        if status >= 400:
            return Unavailable(
                f"HTTP {status}: {_error_details(http_response)}",
                retryable=status >= 500,
            )

        try:
            data = http_response.json()
        except ValueError:
            return Malformed("Failed to decode API response.")
        if not isinstance(data, dict):
            return Malformed("API response is not a JSON object.")
        if 'error' in data:
            error = data['error']
            message = error.get('message', 'Unknown API error') if isinstance(error, dict) else str(error)
            return Malformed(message)

        try:
            text = self.engine.parse_chat_response(data)
        except (KeyError, IndexError, TypeError) as e:
            return Malformed(f"Unexpected response structure: {e!r}")
        return Success(Turn("assistant", text), self.engine.parse_token_counts(data))

    def _write_raw_log(self, log_entry: dict) -> None:
        safe_log_entry = _redact_sensitive_info(log_entry)
        try:
            self.raw_log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.raw_log_file, 'a', encoding='utf-8') as f:
                f.write(json.dumps(safe_log_entry) + '\n')
        except OSError as e:
            log.warning("Could not write to raw log file: %s", e)


def _backoff_seconds(attempt: int, backoff_base: float) -> float:
    return min(backoff_base ** attempt, BACKOFF_MAX_SECONDS)


def complete_with_retry(
    client: ModelClient,
    turns: Sequence[Turn],
    model: str,
    max_tokens: int | None,
    max_retries: int,
    backoff_base: float,
    sleep: Callable[[float], None] | None = None,
) -> Success:
    """
    Performs a chat request, retrying transient failures with exponential backoff.
    Raises RemoteError once retries are exhausted or the failure is permanent.
    """
    attempt = 0
    while True:
        attempt += 1
        response = client.complete(turns, model, max_tokens)
        if isinstance(response, Success):
            return response
        if not is_retryable(response) or attempt > max_retries:
            raise RemoteError(response, attempts=attempt)

        delay = _backoff_seconds(attempt, backoff_base)
        if isinstance(response, RateLimited) and response.retry_after is not None:
            delay = min(response.retry_after, BACKOFF_MAX_SECONDS)
        log.info(
            "Retrying chat request in %.1fs (attempt %d of %d): %s",
            delay, attempt + 1, max_retries + 1, describe_failure(response),
        )
        (sleep or time.sleep)(delay)
