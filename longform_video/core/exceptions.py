"""
Custom Exceptions
=================

Unified exception hierarchy for the video generation coordinator.

Three families reach callers:
- caller-fixable input problems (InvalidRequest, ValidationError,
  ChainLimitExceeded), raised before any network call
- backend operational failures (BackendError), carrying the backend's
  own message verbatim
- OperationTimeout, when a job never reached a terminal state in budget
"""

from typing import Optional, Dict, Any, List


class CoordinatorError(Exception):
    """Base exception for all coordinator errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class ConfigurationError(CoordinatorError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type
        super().__init__(message, details=details, **kwargs)


class InvalidRequest(CoordinatorError):
    """A generation request violates one or more shape constraints."""

    def __init__(self, message: str, errors: Optional[List[str]] = None, **kwargs):
        details = kwargs.pop("details", {})
        self.errors = list(errors or [])
        if self.errors:
            details["errors"] = self.errors
        super().__init__(message, details=details, **kwargs)


class ValidationError(CoordinatorError):
    """
    Backend parameters rejected locally, before submission.

    ``errors`` maps each offending field to the constraint it broke, so a
    caller sees every problem at once.
    """

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None, **kwargs):
        details = kwargs.pop("details", {})
        self.errors = dict(errors or {})
        if self.errors:
            details["fields"] = self.errors
        super().__init__(message, details=details, **kwargs)

    @property
    def fields(self) -> List[str]:
        return list(self.errors)


class ChainLimitExceeded(CoordinatorError):
    """An extension would break a backend chain limit."""

    def __init__(
        self,
        message: str,
        limit: Optional[str] = None,
        actual: Optional[Any] = None,
        maximum: Optional[Any] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if limit:
            details["limit"] = limit
        if actual is not None:
            details["actual"] = actual
        if maximum is not None:
            details["maximum"] = maximum
        super().__init__(message, recoverable=False, details=details, **kwargs)


class BackendError(CoordinatorError):
    """
    A backend rejected or failed a job.

    The backend's payload is kept verbatim in ``raw_message``. These are
    never retried: quota, auth and content-policy rejections do not go
    away on a second attempt.
    """

    def __init__(
        self,
        backend_name: str,
        raw_message: str,
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        self.backend_name = backend_name
        self.raw_message = raw_message
        self.status_code = status_code
        details = kwargs.pop("details", {})
        details["backend"] = backend_name
        details["raw_message"] = raw_message
        if status_code:
            details["status_code"] = status_code
        if operation:
            details["operation"] = operation
        super().__init__(
            f"{backend_name} error: {raw_message}",
            recoverable=False,
            details=details,
            **kwargs,
        )


class OperationTimeout(CoordinatorError):
    """
    A backend operation did not reach a terminal state in its polling budget.

    The job may still finish on the backend side; ``operation`` names it.
    """

    def __init__(
        self,
        message: str,
        backend_name: Optional[str] = None,
        operation: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        self.backend_name = backend_name
        self.operation = operation
        details = kwargs.pop("details", {})
        if backend_name:
            details["backend"] = backend_name
        if operation:
            details["operation"] = operation
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(message, recoverable=True, details=details, **kwargs)


class SecurityError(CoordinatorError):
    """Security-related errors (path traversal and similar)."""

    def __init__(
        self,
        message: str,
        attempted_path: Optional[str] = None,
        security_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if attempted_path:
            # Don't expose full paths in error details
            details["attempted_path"] = "***REDACTED***"
        if security_type:
            details["security_type"] = security_type
        super().__init__(message, recoverable=False, details=details, **kwargs)
