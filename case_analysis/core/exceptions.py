"""Custom exception hierarchy."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    status_code = 500

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""

    status_code = 400


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class NotFoundError(AppError):
    """Raised when a requested record does not exist."""

    status_code = 404


class ClientNotFoundError(NotFoundError):
    """Raised when a client id does not resolve."""
    pass


class WorkflowNotFoundError(NotFoundError):
    """Raised when a workflow id does not resolve."""
    pass


class StepConflictError(AppError):
    """Raised when a step cannot run in the workflow's current state.

    Covers out-of-order execution, steps that are already running or
    completed, and workflows that are no longer running.
    """

    status_code = 409

    def __init__(
        self,
        message: str,
        step_number: Optional[int] = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error=original_error)
        self.step_number = step_number
