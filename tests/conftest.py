# tests/conftest.py
"""
This module contains shared fixtures for the pytest suite.
Fixtures defined here are automatically available to all test functions.
"""

import datetime

import pytest
from pyfakefs.fake_filesystem_unittest import Patcher

from gptcli.api_client import ModelClient
from gptcli.conversation_store import ConversationStore
from gptcli.engine import OpenAIEngine
from gptcli.models import Turn
from gptcli.settings import Settings


@pytest.fixture
def fake_fs():
    """
    Initializes a fake filesystem using pyfakefs for tests that
    require filesystem interactions (e.g., reading/writing settings).
    """
    with Patcher() as patcher:
        yield patcher.fs


@pytest.fixture
def mock_requests_post(mocker):
    """
    A fixture that mocks `requests.post` to prevent actual network calls.
    Returns the mock object for customization within tests.
    """
    return mocker.patch("requests.post")


@pytest.fixture
def mock_openai_chat_response():
    """A fixture providing a standard, non-streaming OpenAI API chat response."""
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1677652288,
        "model": "gpt-4o-mini",
        "choices": [{
            "index": 0,
            "message": {
                "role": "assistant",
                "content": "This is a test response.",
            },
            "finish_reason": "stop"
        }],
        "usage": {
            "prompt_tokens": 10,
            "completion_tokens": 20,
            "total_tokens": 30
        }
    }


@pytest.fixture
def openai_engine():
    return OpenAIEngine(api_key="fake_openai_key", api_base="https://api.example.test/v1")


@pytest.fixture
def model_client(openai_engine, tmp_path):
    """A real ModelClient whose raw log goes to a temporary directory."""
    return ModelClient(openai_engine, timeout=5, raw_log_file=tmp_path / "logs" / "raw.log")


@pytest.fixture
def store(tmp_path) -> ConversationStore:
    """A ConversationStore rooted in a fresh temporary directory."""
    return ConversationStore(tmp_path / "conversations")


@pytest.fixture
def make_settings(tmp_path):
    """Factory for Settings objects with test-friendly defaults."""
    def _make(**overrides):
        values = {
            "api_key": "fake_key",
            "api_base": "https://api.example.test/v1",
            "model": "gpt-4o-mini",
            "storage_dir": tmp_path / "conversations",
            "title_turn_threshold": 2,
            "title_timeout": 5.0,
            "title_input_budget": 3000,
            "api_timeout": 5.0,
            "max_retries": 2,
            "retry_backoff": 1.5,
            "max_tokens": 256,
            "system_prompt": "",
        }
        values.update(overrides)
        return Settings(**values)
    return _make


@pytest.fixture
def make_turn():
    """Factory for turns with deterministic timestamps."""
    def _make(role: str, content: str, minute: int = 0) -> Turn:
        return Turn(
            role,
            content,
            datetime.datetime(2025, 1, 1, 12, minute, tzinfo=datetime.timezone.utc),
        )
    return _make
