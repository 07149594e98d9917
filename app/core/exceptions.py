"""Custom exception hierarchy."""

from typing import Any, Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class DocumentExtractionError(ValidationError):
    """Raised when an uploaded document cannot be turned into text."""
    pass


class PipelineError(AppError):
    """Base exception for Launchpad pipeline errors."""
    pass


class AnalysisError(PipelineError):
    """The generative model call failed during analysis."""
    pass


class UnparseableResponseError(PipelineError):
    """The generative model returned text that is not a JSON object."""
    pass


class SessionNotFoundError(AppError):
    """Raised when a Launchpad session does not exist."""
    pass


class SessionAccessDeniedError(AppError):
    """Raised when the caller may not act on a Launchpad session."""
    pass


class InvalidStateTransitionError(AppError):
    """Raised when a session is asked to move out of a state that forbids it."""

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class CommitError(PipelineError):
    """Raised when approval could not commit every approved item.

    Carries the partial commit summary so callers can report what was
    created before and after the failing items.
    """

    def __init__(self, message: str, result: Any = None, original_error: Exception = None):
        super().__init__(message, original_error=original_error)
        self.result = result
