"""
Unit tests for failure classification and retry backoff.
"""

import asyncio

import pytest

from phaseguard.config.settings import ErrorRecoveryConfig
from phaseguard.core.error_policy import (
    DelayKind,
    classify_error,
    get_retry_delay,
    handle_tool_error,
    is_retryable,
    log_error,
)
from phaseguard.core.errors import CorruptionError, ToolError, ValidationError


class TestIsRetryable:
    """Tests for the retry decision."""

    @pytest.mark.parametrize("message", [
        "network timeout",
        "Rate limit exceeded",
        "HTTP 429 returned",
        "socket hang up",
        "ECONNRESET",
        "502 Bad Gateway",
        "The model is overloaded",
    ])
    def test_transient_messages_are_retryable(self, message):
        assert is_retryable(Exception(message)) is True

    @pytest.mark.parametrize("message", [
        "authentication failed",
        "Invalid API key provided",
        "403 Forbidden",
        "validation failed for input",
    ])
    def test_permanent_messages_are_not_retryable(self, message):
        assert is_retryable(Exception(message)) is False

    def test_unknown_error_is_not_retryable(self):
        """Test: unrecognized failures fail fast."""
        assert is_retryable(Exception("something odd happened")) is False
        assert classify_error(Exception("something odd happened")) is None

    def test_builtin_exception_types(self):
        assert is_retryable(TimeoutError()) is True
        assert is_retryable(ConnectionResetError()) is True
        assert is_retryable(PermissionError("no")) is False

    def test_authentication_wins_over_transient_hint(self):
        """Test: an auth failure mentioning a timeout is still permanent."""
        category = classify_error(Exception("authentication timeout"))
        assert category.name == "authentication"

    def test_phaseguard_errors_use_their_own_flag(self):
        assert is_retryable(ValidationError("network down")) is False
        assert is_retryable(ToolError("boom", source_tool="nmap", retryable=True)) is True
        assert is_retryable(CorruptionError("bad file")) is False

    def test_error_code_attribute_is_considered(self):
        error = OSError("read failed")
        error.code = "ETIMEDOUT"
        assert classify_error(error).name == "timeout"

    @pytest.mark.asyncio
    async def test_asyncio_wait_for_timeout_is_retryable(self):
        """Test: the empty-message timeout raised by asyncio.wait_for is retried."""
        with pytest.raises(asyncio.TimeoutError) as exc_info:
            await asyncio.wait_for(asyncio.sleep(1), timeout=0.01)

        assert is_retryable(exc_info.value) is True
        assert classify_error(exc_info.value).name == "timeout"
        assert get_retry_delay(exc_info.value, 1, ErrorRecoveryConfig()) == 1.0


class TestGetRetryDelay:
    """Tests for backoff computation."""

    @pytest.fixture
    def config(self):
        return ErrorRecoveryConfig()

    def test_rate_limit_delay_at_least_thirty_seconds(self, config):
        for attempt in range(1, 6):
            assert get_retry_delay(Exception("rate limit exceeded"), attempt, config) >= 30.0

    def test_rate_limit_delay_strictly_increases(self, config):
        delays = [get_retry_delay(Exception("429 Too Many Requests"), n, config) for n in range(1, 8)]
        assert delays == sorted(delays)
        assert len(set(delays)) == len(delays)

    def test_rate_limit_ordering_survives_jitter(self):
        config = ErrorRecoveryConfig(jitter_ratio=0.25)
        for attempt in range(1, 6):
            current = get_retry_delay(Exception("rate limit"), attempt, config)
            following = get_retry_delay(Exception("rate limit"), attempt + 1, config)
            assert following > current

    def test_transient_delay_grows_and_is_capped(self, config):
        delays = [get_retry_delay(Exception("network error"), n, config) for n in range(1, 10)]
        assert delays[0] == 1.0
        assert delays[1] == 2.0
        assert max(delays) == config.max_backoff_seconds

    def test_non_retryable_delay_is_zero(self, config):
        assert get_retry_delay(Exception("authentication failed"), 1, config) == 0.0
        assert get_retry_delay(Exception("no idea"), 1, config) == 0.0

    def test_wrapped_rate_limit_uses_rate_limit_curve(self, config):
        result = handle_tool_error("http", Exception("rate_limit_error"))
        assert get_retry_delay(result.error, 1, config) == 30.0

    def test_config_rejects_base_above_max(self):
        with pytest.raises(ValueError):
            ErrorRecoveryConfig(base_backoff_seconds=20.0, max_backoff_seconds=10.0)

    def test_config_rejects_small_rate_limit_base(self):
        with pytest.raises(ValueError):
            ErrorRecoveryConfig(rate_limit_base_seconds=5.0)


class TestHandleToolError:
    """Tests for tool failure wrapping."""

    def test_wraps_connection_reset_code(self):
        """Test: a raw error with code ECONNRESET becomes a retryable ToolError."""
        error = Exception("socket closed")
        error.code = "ECONNRESET"

        result = handle_tool_error("browser", error)

        assert result.success is False
        assert result.retryable is True
        assert isinstance(result.error, ToolError)
        assert result.error.source_tool == "browser"
        assert result.error.cause is error
        assert result.error.context["category"] == "connection"
        assert result.error.__cause__ is error

    def test_unknown_error_is_not_retryable(self):
        result = handle_tool_error("shell", ValueError("bad output"))

        assert result.retryable is False
        assert result.error.context["category"] == "unknown"
        assert result.error.to_dict()["cause"] == "ValueError"

    def test_to_dict_shape(self):
        data = handle_tool_error("http", Exception("503 Service Unavailable")).error.to_dict()

        assert data["type"] == "tool"
        assert data["retryable"] is True
        assert data["sourceTool"] == "http"
        assert "503" in data["message"]


class TestLogError:
    """Tests for the human-readable error log."""

    @pytest.mark.asyncio
    async def test_appends_line(self, tmp_path):
        await log_error(RuntimeError("first"), "recon attempt 1", tmp_path)
        await log_error(TimeoutError("second"), "recon attempt 2", tmp_path)

        lines = (tmp_path / "error.log").read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].startswith("[")
        assert "recon attempt 1: first (RuntimeError)" in lines[0]
        assert "(TimeoutError)" in lines[1]

    @pytest.mark.asyncio
    async def test_never_raises(self, tmp_path):
        """Test: an unwritable log location is tolerated."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        await log_error(RuntimeError("boom"), "report", blocker)

        assert blocker.read_text() == "not a directory"


def test_delay_kinds_are_strings():
    assert DelayKind.RATE_LIMIT.value == "rate_limit"
