# tests/test_api_client.py
"""
Integration tests for the API client in gptcli/api_client.py.
These tests use mocking to simulate network requests and responses.
"""

import json

import pytest
import requests

from gptcli import api_client
from gptcli.api_client import (
    Malformed,
    RateLimited,
    RemoteError,
    Success,
    Timeout,
    Unavailable,
)
from gptcli.models import Turn


def make_http_response(mocker, status_code=200, json_data=None, text="", headers=None):
    """Builds a MagicMock standing in for requests.Response."""
    response = mocker.MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.headers = headers or {}
    response.text = text
    response.reason = "Reason"
    if json_data is None:
        response.json.side_effect = requests.exceptions.JSONDecodeError(
            "Expecting value", "doc", 0
        )
    else:
        response.json.return_value = json_data
    return response


class TestModelClient:
    """Test suite for decoding API responses into ModelResponse variants."""

    def test_success(self, model_client, mock_requests_post, mock_openai_chat_response, mocker):
        mock_requests_post.return_value = make_http_response(
            mocker, json_data=mock_openai_chat_response
        )

        result = model_client.complete([Turn("user", "Hello")], "gpt-4o-mini", 100)

        assert isinstance(result, Success)
        assert result.turn.role == "assistant"
        assert result.turn.content == "This is a test response."
        assert result.usage == {"prompt": 10, "completion": 20, "total": 30}

        _, kwargs = mock_requests_post.call_args
        assert kwargs["json"]["messages"] == [{"role": "user", "content": "Hello"}]
        assert kwargs["timeout"] == 5

    def test_rate_limited(self, model_client, mock_requests_post, mocker):
        mock_requests_post.return_value = make_http_response(
            mocker,
            status_code=429,
            json_data={"error": {"message": "Slow down"}},
            headers={"Retry-After": "3"},
        )

        result = model_client.complete([Turn("user", "Hello")], "gpt-4o-mini")

        assert result == RateLimited(retry_after=3.0, reason="Slow down")

    def test_timeout(self, model_client, mock_requests_post):
        mock_requests_post.side_effect = requests.exceptions.Timeout("Request timed out")

        result = model_client.complete([Turn("user", "Hello")], "gpt-4o-mini")

        assert isinstance(result, Timeout)
        assert "Request timed out" in result.reason

    def test_connection_error_is_retryable(self, model_client, mock_requests_post):
        mock_requests_post.side_effect = requests.exceptions.ConnectionError("refused")

        result = model_client.complete([Turn("user", "Hello")], "gpt-4o-mini")

        assert isinstance(result, Unavailable)
        assert api_client.is_retryable(result)

    def test_client_error_is_not_retryable(self, model_client, mock_requests_post, mocker):
        mock_requests_post.return_value = make_http_response(
            mocker, status_code=401, text="Invalid API key"
        )

        result = model_client.complete([Turn("user", "Hello")], "gpt-4o-mini")

        assert isinstance(result, Unavailable)
        assert "Invalid API key" in result.reason
        assert not api_client.is_retryable(result)

    def test_server_error_is_retryable(self, model_client, mock_requests_post, mocker):
        mock_requests_post.return_value = make_http_response(mocker, status_code=503, text="busy")

        result = model_client.complete([Turn("user", "Hello")], "gpt-4o-mini")

        assert api_client.is_retryable(result)

    def test_non_json_body_is_malformed(self, model_client, mock_requests_post, mocker):
        mock_requests_post.return_value = make_http_response(mocker, text="This is not JSON")

        result = model_client.complete([Turn("user", "Hello")], "gpt-4o-mini")

        assert result == Malformed("Failed to decode API response.")

    def test_missing_choices_is_malformed(self, model_client, mock_requests_post, mocker):
        mock_requests_post.return_value = make_http_response(mocker, json_data={"id": "x"})

        result = model_client.complete([Turn("user", "Hello")], "gpt-4o-mini")

        assert isinstance(result, Malformed)
        assert not api_client.is_retryable(result)

    def test_raw_log_is_written_and_redacted(self, model_client, mock_requests_post, mocker, mock_openai_chat_response):
        mock_requests_post.return_value = make_http_response(
            mocker, json_data=mock_openai_chat_response
        )

        model_client.complete([Turn("user", "Hello")], "gpt-4o-mini")

        lines = model_client.raw_log_file.read_text(encoding="utf-8").splitlines()
        entry = json.loads(lines[-1])
        assert entry["request"]["headers"]["Authorization"] == "Bearer [REDACTED]"
        assert entry["outcome"] == "Success"
        assert "fake_openai_key" not in lines[-1]


class TestCompleteWithRetry:
    """Tests for the bounded retry loop."""

    def test_returns_first_success(self, mocker):
        client = mocker.MagicMock()
        client.complete.return_value = Success(Turn("assistant", "ok"))
        sleep = mocker.MagicMock()

        result = api_client.complete_with_retry(client, [], "m", None, 2, 1.5, sleep=sleep)

        assert result.turn.content == "ok"
        sleep.assert_not_called()

    def test_backoff_grows_exponentially(self, mocker):
        client = mocker.MagicMock()
        client.complete.side_effect = [Timeout(), Timeout(), Success(Turn("assistant", "ok"))]
        sleep = mocker.MagicMock()

        api_client.complete_with_retry(client, [], "m", None, 2, 2.0, sleep=sleep)

        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 4.0]

    def test_retry_after_is_honoured(self, mocker):
        client = mocker.MagicMock()
        client.complete.side_effect = [RateLimited(retry_after=7), Success(Turn("assistant", "ok"))]
        sleep = mocker.MagicMock()

        api_client.complete_with_retry(client, [], "m", None, 2, 1.5, sleep=sleep)

        sleep.assert_called_once_with(7)

    def test_default_sleep_is_looked_up_at_call_time(self, mocker):
        patched_sleep = mocker.patch("gptcli.api_client.time.sleep")
        client = mocker.MagicMock()
        client.complete.side_effect = [Timeout(), Success(Turn("assistant", "ok"))]

        api_client.complete_with_retry(client, [], "m", None, 2, 2.0)

        patched_sleep.assert_called_once_with(2.0)

    def test_exhaustion_raises_remote_error(self, mocker):
        client = mocker.MagicMock()
        client.complete.return_value = Unavailable("down")
        sleep = mocker.MagicMock()

        with pytest.raises(RemoteError) as excinfo:
            api_client.complete_with_retry(client, [], "m", None, 1, 1.5, sleep=sleep)

        assert excinfo.value.attempts == 2
        assert "down" in str(excinfo.value)
        assert client.complete.call_count == 2

    def test_zero_retries_means_one_attempt(self, mocker):
        client = mocker.MagicMock()
        client.complete.return_value = Timeout()

        with pytest.raises(RemoteError):
            api_client.complete_with_retry(client, [], "m", None, 0, 1.5, sleep=mocker.MagicMock())

        assert client.complete.call_count == 1


class TestRedaction:
    """Tests for scrubbing credentials from raw logs."""

    def test_redact_sensitive_info_auth_header(self):
        """Verify API keys are correctly redacted from Authorization header."""
        log_entry = {
            "request": {
                "url": "https://api.openai.com/v1/chat/completions",
                "headers": {
                    "Authorization": "Bearer sk-12345ABCDEF",
                    "Content-Type": "application/json",
                },
                "payload": {"prompt": "test"},
            }
        }
        redacted_entry = api_client._redact_sensitive_info(log_entry)
        assert (
            redacted_entry["request"]["headers"]["Authorization"] == "Bearer [REDACTED]"
        )
        assert (
            log_entry["request"]["headers"]["Authorization"] == "Bearer sk-12345ABCDEF"
        )  # Original should be unchanged
