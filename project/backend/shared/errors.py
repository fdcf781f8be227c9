"""
Error handling.

Custom exception classes for consistent error handling across the step pipeline.
"""

from typing import Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        video_id: Optional[str] = None,
        code: Optional[str] = None
    ):
        """
        Initialize pipeline error.

        Args:
            message: Error message
            video_id: Optional video project ID associated with the error
            code: Optional error code for categorization
        """
        self.message = message
        self.video_id = video_id
        self.code = code
        super().__init__(self.message)


class ConfigError(PipelineError):
    """Configuration errors (missing env vars, invalid settings)."""
    pass


class ServiceNotConfiguredError(PipelineError):
    """An optional external collaborator (CDN, AI provider, renderer) is not configured."""
    pass


class RetryableError(PipelineError):
    """Error that can be retried."""
    pass


class WriteConflictError(RetryableError):
    """Compare-and-swap write lost against a concurrent writer."""
    pass


class ConcurrencyExhaustedError(PipelineError):
    """Store could not apply a write after bounded retries."""

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        video_id: Optional[str] = None,
        code: Optional[str] = None
    ):
        """
        Initialize concurrency exhausted error.

        Args:
            message: Error message
            attempts: Number of write attempts made
            video_id: Optional video project ID
            code: Optional error code for categorization
        """
        self.attempts = attempts
        super().__init__(message, video_id, code or "CONCURRENCY_EXHAUSTED")


class ValidationError(PipelineError):
    """Input validation errors (step cannot advance, bad request body)."""

    def __init__(
        self,
        message: str,
        missing: Optional[list] = None,
        video_id: Optional[str] = None,
        code: Optional[str] = None
    ):
        self.missing = list(missing or [])
        super().__init__(message, video_id, code)


class AgentInvocationFailedError(PipelineError):
    """External AI agent exhausted retries without a schema-valid response."""

    def __init__(
        self,
        message: str,
        agent_id: str,
        attempts: int = 0,
        fallback_available: bool = False,
        video_id: Optional[str] = None,
        code: Optional[str] = None
    ):
        """
        Initialize agent invocation error.

        Args:
            message: Error message
            agent_id: Agent that failed
            attempts: Number of attempts made
            fallback_available: Whether a deterministic default can be requested
            video_id: Optional video project ID
            code: Optional error code for categorization
        """
        self.agent_id = agent_id
        self.attempts = attempts
        self.fallback_available = fallback_available
        super().__init__(message, video_id, code or "AGENT_INVOCATION_FAILED")


class AccessDeniedError(PipelineError):
    """Workspace membership check failed."""
    pass


class NotFoundError(PipelineError):
    """Project or referenced sub-entity missing."""
    pass


__all__ = [
    "PipelineError",
    "ConfigError",
    "ServiceNotConfiguredError",
    "RetryableError",
    "WriteConflictError",
    "ConcurrencyExhaustedError",
    "ValidationError",
    "AgentInvocationFailedError",
    "AccessDeniedError",
    "NotFoundError",
]
