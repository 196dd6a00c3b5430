"""Custom exceptions for the Budget Mate allocation engine.

This module provides a hierarchy of exception classes for consistent error
handling across the engine. All exceptions inherit from BudgetMateError,
making it easy to catch all application-specific errors.

The pure computation modules (frequency normalization, allocation,
classification, validation) never raise: bad input is coerced to a safe
default instead. Only the I/O layer raises, and the consistency manager
converts those errors into save-status and warnings.

Example:
    try:
        await store.update_envelope(envelope_id, fields)
    except RemoteStoreError as e:
        if e.recoverable:
            # Keep the entity dirty and retry on the next flush
            dirty.add(envelope_id)
        else:
            raise
    except BudgetMateError as e:
        logger.error("operation_failed", error=str(e))
"""

from typing import Any, Optional


class BudgetMateError(Exception):
    """Base exception for all Budget Mate errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
        recoverable: Whether the error is potentially recoverable.

    Example:
        >>> raise BudgetMateError("Something went wrong", details={"code": 500})
        BudgetMateError: Something went wrong
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize BudgetMateError.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context about the error.
            recoverable: Whether the error is potentially recoverable through
                retry. Defaults to False.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation of the error."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable!r})"
        )


class RemoteStoreError(BudgetMateError):
    """Error raised when a call to the remote store fails.

    Covers transport failures (connection refused, timeouts) as well as
    non-2xx responses.

    Attributes:
        operation: The store operation being attempted (e.g. "update_envelope").
        status_code: HTTP status code, if a response was received.
        entity_id: Id of the envelope or draft involved, if any.

    Example:
        >>> raise RemoteStoreError(
        ...     "PATCH /envelopes/env-1 returned 503",
        ...     operation="update_envelope",
        ...     status_code=503,
        ...     entity_id="env-1",
        ... )
        RemoteStoreError: PATCH /envelopes/env-1 returned 503
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize RemoteStoreError.

        Args:
            message: Human-readable error description.
            operation: Name of the store operation that failed.
            status_code: HTTP status code of the response, if there was one.
            entity_id: Id of the entity the call was about.
            details: Optional dictionary with additional context.
            recoverable: Whether the call can be retried. Defaults to True
                since saves are idempotent "set" operations.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.operation = operation
        self.status_code = status_code
        self.entity_id = entity_id

        if operation:
            self.details["operation"] = operation
        if status_code is not None:
            self.details["status_code"] = status_code
        if entity_id:
            self.details["entity_id"] = entity_id


class EditError(BudgetMateError):
    """Error raised when an edit targets something that does not exist.

    Bad field *values* are never rejected (they are coerced to safe
    defaults). This is raised only for programming errors: an unknown
    envelope id or a field that is not editable.

    Attributes:
        envelope_id: The envelope the edit was aimed at.
        field: The field name, if the field was the problem.
    """

    def __init__(
        self,
        message: str,
        *,
        envelope_id: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details, recoverable=False)
        self.envelope_id = envelope_id
        self.field = field

        if envelope_id:
            self.details["envelope_id"] = envelope_id
        if field:
            self.details["field"] = field


class ConfigurationError(BudgetMateError):
    """Error raised when configuration is invalid or missing.

    Attributes:
        config_key: The configuration key that is problematic.
        expected: Description of the expected value or format.
        actual: The actual value found (if any).

    Example:
        >>> raise ConfigurationError(
        ...     "Remote store base URL is empty",
        ...     config_key="BUDGETMATE_REMOTE_BASE_URL",
        ...     expected="http(s) URL of the budget API",
        ... )
        ConfigurationError: Remote store base URL is empty
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Human-readable error description.
            config_key: The name of the configuration key that is problematic.
            expected: Description of what value was expected.
            actual: The actual value found (avoid including secrets).
            details: Optional dictionary with additional context.
            recoverable: Whether the error can be fixed at runtime.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.config_key = config_key
        self.expected = expected
        self.actual = actual

        if config_key:
            self.details["config_key"] = config_key
        if expected:
            self.details["expected"] = expected
        if actual is not None:
            self.details["actual"] = actual


__all__ = [
    "BudgetMateError",
    "RemoteStoreError",
    "EditError",
    "ConfigurationError",
]
