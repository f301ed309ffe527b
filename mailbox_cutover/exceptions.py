"""
Custom Exception Hierarchy for Mailbox Cutover

This module provides the exception hierarchy used across the cutover run.
Errors are grouped by how far they propagate:

- FatalSetupError: aborts the run before (or while) records are processed
- RecordResolutionError: the record is skipped, the run continues
- DirectoryServiceError: a directory/mailbox call failed; the run loop decides
  whether it is an address lookup failure or a step execution failure
"""

from typing import Any, Dict, Optional

from azure.core.exceptions import ClientAuthenticationError


class CutoverError(Exception):
    """
    Base exception class for all mailbox cutover errors.

    Provides structured error information including context, error codes,
    and optional recovery suggestions.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recovery_suggestion: Optional[str] = None,
    ) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context
            cause: Optional underlying exception that caused this error
            recovery_suggestion: Optional suggestion for error recovery
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause
        self.recovery_suggestion = recovery_suggestion

    def __str__(self) -> str:
        """Return a formatted error message with context."""
        result = self.message
        if self.error_code:
            result = f"[{self.error_code}] {result}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            result += f" (context: {context_str})"
        if self.cause:
            result += f" (caused by: {self.cause})"
        if self.recovery_suggestion:
            result += f" (suggestion: {self.recovery_suggestion})"
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
            "recovery_suggestion": self.recovery_suggestion,
        }


# Setup-related exceptions
class FatalSetupError(CutoverError):
    """Base class for errors that abort the whole run."""

    pass


class MissingInputFileError(FatalSetupError):
    """Raised when a required CSV input does not exist."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if path:
            context["path"] = path
        kwargs["context"] = context
        kwargs.setdefault("error_code", "MISSING_INPUT_FILE")
        kwargs.setdefault(
            "recovery_suggestion", "Check the CSV path passed on the command line"
        )
        super().__init__(message, **kwargs)


class InvalidInputError(FatalSetupError):
    """Raised when a CSV input cannot be parsed."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        row: Optional[int] = None,
        column: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if path:
            context["path"] = path
        if row is not None:
            context["row"] = row
        if column:
            context["column"] = column
        kwargs["context"] = context
        kwargs.setdefault("error_code", "INVALID_INPUT")
        super().__init__(message, **kwargs)


class InvalidTargetError(FatalSetupError):
    """Raised when the requested target tenant role is not recognized."""

    def __init__(self, message: str, target: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if target:
            context["target"] = target
        kwargs["context"] = context
        kwargs.setdefault("error_code", "INVALID_TARGET")
        kwargs.setdefault("recovery_suggestion", "Use 'Source' or 'Destination'")
        super().__init__(message, **kwargs)


class MissingConfigurationError(FatalSetupError):
    """Raised when required configuration is missing."""

    def __init__(
        self, message: str, missing_keys: Optional[list[str]] = None, **kwargs: Any
    ) -> None:
        context = kwargs.get("context", {})
        if missing_keys:
            context["missing_keys"] = missing_keys
        kwargs["context"] = context
        kwargs.setdefault("error_code", "MISSING_CONFIG")
        kwargs.setdefault(
            "recovery_suggestion",
            f"Set required configuration: {', '.join(missing_keys)}"
            if missing_keys
            else "Set required configuration",
        )
        super().__init__(message, **kwargs)


class DirectorySessionError(FatalSetupError):
    """
    Raised when the tenant session cannot be established or is lost.

    When raised mid-record, `outcome` holds the MigrationOutcome of the record
    that was interrupted, with the steps already applied.
    """

    def __init__(
        self, message: str, tenant_id: Optional[str] = None, **kwargs: Any
    ) -> None:
        context = kwargs.get("context", {})
        if tenant_id:
            context["tenant_id"] = tenant_id
        kwargs["context"] = context
        kwargs.setdefault("error_code", "DIRECTORY_SESSION_FAILED")
        kwargs.setdefault(
            "recovery_suggestion",
            "Check the tenant app registration credentials and admin consent",
        )
        super().__init__(message, **kwargs)
        self.outcome: Optional[Any] = None


# Record-level exceptions
class RecordResolutionError(CutoverError):
    """Base class for errors that skip a single record."""

    pass


class MissingFieldError(RecordResolutionError):
    """Raised when a resolved identity or email is empty."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        row: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if field_name:
            context["field"] = field_name
        if row is not None:
            context["row"] = row
        kwargs["context"] = context
        kwargs.setdefault("error_code", "MISSING_FIELD")
        super().__init__(message, **kwargs)


# Directory/mailbox service exceptions
class DirectoryServiceError(CutoverError):
    """Raised when a directory or mailbox call fails."""

    def __init__(
        self,
        message: str,
        identity: Optional[str] = None,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if identity:
            context["identity"] = identity
        if operation:
            context["operation"] = operation
        if status_code is not None:
            context["status_code"] = status_code
        kwargs["context"] = context
        kwargs.setdefault("error_code", "DIRECTORY_CALL_FAILED")
        super().__init__(message, **kwargs)
        self.status_code = status_code


class DirectoryObjectNotFoundError(DirectoryServiceError):
    """Raised when an identity does not resolve to a user or mailbox."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("error_code", "DIRECTORY_OBJECT_NOT_FOUND")
        super().__init__(message, **kwargs)


def wrap_directory_exception(
    exc: Exception,
    identity: Optional[str] = None,
    operation: Optional[str] = None,
) -> CutoverError:
    """
    Wrap an SDK or HTTP exception in our custom exception hierarchy.

    Authentication failures become DirectorySessionError (run-fatal), 404s
    become DirectoryObjectNotFoundError, everything else DirectoryServiceError.

    Args:
        exc: The original exception
        identity: Identity the call was made for
        operation: Directory operation name

    Returns:
        CutoverError: Wrapped exception with enhanced context
    """
    if isinstance(exc, CutoverError):
        return exc

    status_code = getattr(exc, "response_status_code", None)
    response = getattr(exc, "response", None)
    if status_code is None and response is not None:
        status_code = getattr(response, "status_code", None)
    error_message = str(exc)

    if isinstance(exc, ClientAuthenticationError) or status_code in (401, 403):
        return DirectorySessionError(
            f"Directory authentication failed: {error_message}",
            context={"identity": identity, "operation": operation},
            cause=exc,
        )
    if status_code == 404:
        return DirectoryObjectNotFoundError(
            f"Directory object not found: {identity}",
            identity=identity,
            operation=operation,
            status_code=status_code,
            cause=exc,
        )
    return DirectoryServiceError(
        f"Directory operation failed: {error_message}",
        identity=identity,
        operation=operation,
        status_code=status_code,
        cause=exc,
    )
