"""
Tests for error handling.
"""

import pytest
from shared.errors import (
    AccessDeniedError,
    AgentInvocationFailedError,
    ConcurrencyExhaustedError,
    ConfigError,
    NotFoundError,
    PipelineError,
    RetryableError,
    ServiceNotConfiguredError,
    ValidationError,
    WriteConflictError
)


def test_pipeline_error_inheritance():
    """Test that all exceptions inherit from PipelineError."""
    for error_class in (
        ConfigError,
        ServiceNotConfiguredError,
        RetryableError,
        ConcurrencyExhaustedError,
        ValidationError,
        AgentInvocationFailedError,
        AccessDeniedError,
        NotFoundError,
    ):
        assert issubclass(error_class, PipelineError)


def test_write_conflict_is_retryable():
    """Lost compare-and-swap writes are retried by the store."""
    assert issubclass(WriteConflictError, RetryableError)
    assert not issubclass(ConcurrencyExhaustedError, RetryableError)


def test_pipeline_error_with_video_id():
    """Test that exceptions can include video_id."""
    error = ConfigError("Test error", video_id="video-1", code="TEST_ERROR")

    assert error.message == "Test error"
    assert error.video_id == "video-1"
    assert error.code == "TEST_ERROR"
    assert str(error) == "Test error"


def test_validation_error_lists_missing_fields():
    error = ValidationError("Step 'setup' is missing: duration", missing=["duration"])

    assert error.missing == ["duration"]
    assert ValidationError("bad").missing == []


def test_concurrency_exhausted_defaults():
    error = ConcurrencyExhaustedError("busy", attempts=5, video_id="video-1")

    assert error.attempts == 5
    assert error.code == "CONCURRENCY_EXHAUSTED"


def test_agent_invocation_failed_carries_fallback_hint():
    error = AgentInvocationFailedError("failed", agent_id="storyboard", attempts=2, fallback_available=True)

    assert error.agent_id == "storyboard"
    assert error.attempts == 2
    assert error.fallback_available is True
    assert error.code == "AGENT_INVOCATION_FAILED"


def test_errors_can_be_raised_and_caught():
    with pytest.raises(PipelineError):
        raise NotFoundError("Video not found")
