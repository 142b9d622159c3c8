"""
Custom exception classes for the DocGuard validation engine.

Business-rule violations are never raised: validators return them as data
(error/warning lists or ValidationResult items). The exceptions here cover
the two remaining cases:
- Contract violations by the caller (missing arguments, empty property
  names, wrong argument types), which fail immediately
- Explicit escalation of a failed outcome by callers that prefer exceptions
"""

import traceback
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """
    Standardized error codes for the validation engine.

    These codes provide consistent error identification for the callers
    that translate engine failures into API responses.
    """

    # Configuration Errors (1xxx)
    CONFIG_VALIDATION_FAILED = "1001"
    CONFIG_INVALID_VALUE = "1002"

    # Argument / Contract Errors (2xxx)
    ARGUMENT_REQUIRED = "2001"
    ARGUMENT_INVALID = "2002"
    ARGUMENT_OUT_OF_RANGE = "2003"

    # File Validation Errors (3xxx)
    FILE_VALIDATION_FAILED = "3001"

    # Revision Validation Errors (4xxx)
    REVISION_VALIDATION_FAILED = "4001"

    # Model Validation Errors (5xxx)
    MODEL_VALIDATION_FAILED = "5001"


class BaseCustomException(Exception):
    """
    Base exception class for all custom exceptions in the engine.

    Provides common functionality for error tracking, context preservation,
    and structured error information.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
        http_status_code: int = 500,
        correlation_id: Optional[str] = None,
        user_message: Optional[str] = None
    ):
        """
        Initialize base exception with structured error information.

        Args:
            message: Technical error message for developers
            error_code: Standardized error code for identification
            details: Additional context and debugging information
            http_status_code: Suggested HTTP status code for API layers
            correlation_id: Request correlation ID for tracking
            user_message: User-friendly error message for display
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.http_status_code = http_status_code
        self.correlation_id = correlation_id
        self.user_message = user_message or self._generate_user_message()
        self.traceback_info = traceback.format_exc()

    def _generate_user_message(self) -> str:
        """Generate a user-friendly error message based on the error code."""
        user_messages = {
            ErrorCode.CONFIG_VALIDATION_FAILED: "Configuration validation failed. Please check your settings.",
            ErrorCode.FILE_VALIDATION_FAILED: "The uploaded file failed validation.",
            ErrorCode.REVISION_VALIDATION_FAILED: "The revision details are not valid.",
            ErrorCode.MODEL_VALIDATION_FAILED: "The submitted data is not valid.",
        }
        return user_messages.get(self.error_code, "An unexpected error occurred. Please contact support.")

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
            "http_status_code": self.http_status_code,
            "correlation_id": self.correlation_id,
        }

    def add_context(self, key: str, value: Any) -> None:
        """Add additional context to the exception details."""
        self.details[key] = value

    def __str__(self) -> str:
        """String representation of the exception."""
        return f"[{self.error_code.value}] {self.message}"


class ConfigurationError(BaseCustomException):
    """Exception raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIG_VALIDATION_FAILED,
        config_section: Optional[str] = None,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs
    ):
        details = {
            "config_section": config_section,
            "config_key": config_key,
            "config_value": str(config_value) if config_value is not None else None,
        }
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            http_status_code=500,
            **kwargs
        )


class InvalidArgumentError(BaseCustomException, ValueError):
    """
    Raised when a caller breaks the engine's calling contract.

    This signals a programming error (a None collection of existing revision
    numbers, an empty property name, a non-integer size), not bad user data.
    It subclasses ValueError so generic argument handling still catches it.
    """

    def __init__(
        self,
        message: str,
        argument_name: Optional[str] = None,
        argument_value: Optional[Any] = None,
        error_code: ErrorCode = ErrorCode.ARGUMENT_INVALID,
        **kwargs
    ):
        details = {
            "argument_name": argument_name,
            "argument_value": repr(argument_value) if argument_value is not None else None,
        }
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            http_status_code=500,
            **kwargs
        )
        self.argument_name = argument_name


class ValidationError(BaseCustomException):
    """Raised by callers that escalate a failed validation into an exception."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        field_errors: Optional[List[Dict[str, Any]]] = None,
        error_code: ErrorCode = ErrorCode.FILE_VALIDATION_FAILED,
        **kwargs
    ):
        details = {
            "errors": list(errors or []),
            "field_errors": field_errors or [],
        }
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            http_status_code=422,
            **kwargs
        )
        self.errors = list(errors or [])


# Convenience functions

def raise_invalid_argument(
    message: str,
    argument_name: Optional[str] = None,
    argument_value: Optional[Any] = None,
    error_code: ErrorCode = ErrorCode.ARGUMENT_INVALID
) -> None:
    """Raise an InvalidArgumentError for a contract violation."""
    raise InvalidArgumentError(
        message=message,
        argument_name=argument_name,
        argument_value=argument_value,
        error_code=error_code
    )


def raise_validation_error(
    message: str,
    errors: Optional[List[str]] = None,
    field_errors: Optional[List[Dict[str, Any]]] = None,
    error_code: ErrorCode = ErrorCode.FILE_VALIDATION_FAILED,
    **kwargs
) -> None:
    """Raise a validation error with the collected messages."""
    raise ValidationError(
        message=message,
        errors=errors,
        field_errors=field_errors,
        error_code=error_code,
        **kwargs
    )


def require_property_name(property_name: Optional[str], argument_name: str = "property_name") -> str:
    """Return the property name, failing fast when it is missing or blank."""
    if property_name is None or not isinstance(property_name, str) or not property_name.strip():
        raise_invalid_argument(
            f"{argument_name} is required and cannot be empty",
            argument_name=argument_name,
            argument_value=property_name,
            error_code=ErrorCode.ARGUMENT_REQUIRED
        )
    return property_name
